"""
输出模块
定义统一的输出文件命名规范，并写出率定系数、集合结果表和技巧分数表
"""

from pathlib import Path
from typing import Dict, Optional, Union
import logging

import numpy as np
import pandas as pd
import xarray as xr

from ..config.settings import get_output_config
from ..core.verification import skill_score_table

logger = logging.getLogger(__name__)

# 输出文件分类
OUTPUT_FILES = {
    "coef_a": "{model}_coef_a.txt",
    "coef_b": "{model}_coef_b.txt",
    "ensemble": "{model}_ensemble.txt",
    "skill": "{model}_skill.txt",
}


def get_output_paths(output_dir: Union[str, Path], model: str) -> Dict[str, Path]:
    """
    获取某个模型的全部输出路径

    Args:
        output_dir: 输出目录
        model: 模型名称

    Returns:
        {类别: 路径}
    """
    base_path = Path(output_dir)
    base_path.mkdir(parents=True, exist_ok=True)
    return {key: base_path / pattern.format(model=model) for key, pattern in OUTPUT_FILES.items()}


def _format_block(month: int, day: int, values: np.ndarray, fmt: str, sep: str) -> str:
    lines = [f"{month}{sep}{day}"]
    values = np.asarray(values, dtype=float)
    if values.ndim == 1:
        lines.extend(fmt % v for v in values)
    else:
        lines.extend(sep.join(fmt % v for v in row) for row in values)
    return "\n".join(lines) + "\n"


def write_coefficients(coefficients: xr.Dataset, path_a: Union[str, Path],
                       path_b: Union[str, Path], config: Optional[dict] = None) -> None:
    """
    写出率定系数文件（a、b 各一个）

    每个块以 "月<TAB>日" 开头，随后为每个提前期一行系数，保留 4 位小数。

    Args:
        coefficients: 维度为 (pair, lead[, ...]) 的系数数据集，含 month/day 坐标
        path_a: a 系数文件路径
        path_b: b 系数文件路径
        config: 输出配置
    """
    config = config or get_output_config()
    fmt = config["float_format_coef"]
    sep = config["separator"]

    order = np.lexsort((coefficients["day"].values, coefficients["month"].values))
    for name, path in (("a", path_a), ("b", path_b)):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        blocks = [
            _format_block(int(coefficients["month"].values[i]), int(coefficients["day"].values[i]),
                          coefficients[name].values[i], fmt, sep)
            for i in order
        ]
        with open(path, "w", encoding=config.get("encoding", "utf-8"), newline="\n") as f:
            f.write("".join(blocks))
        logger.info(f"率定系数 {name} 已保存到: {path} ({len(blocks)} 个日历日)")


def build_result_table(result, indices: np.ndarray) -> pd.DataFrame:
    """
    组装逐 (日期, 提前期) 的集合结果表

    Args:
        result: ModelRunResult，需提供 dates、obs_agg、sim_agg、ensemble
        indices: 报告期内的记录下标

    Returns:
        列为 YearMonthDay, LeadTime, Obs, Sim, EnsembleMean, EnsembleMax, EnsembleMin, Ens1..EnsM
    """
    ensemble = result.ensemble["ensemble"].values        # (N, L, M)
    n_records, n_leads, n_members = ensemble.shape
    indices = np.asarray(indices, dtype=int)

    t = np.repeat(indices, n_leads)
    lead = np.tile(np.arange(1, n_leads + 1), indices.size)
    obs_idx = np.minimum(t + lead - 1, n_records - 1)
    members = ensemble[t, lead - 1, :]

    table = pd.DataFrame({
        "YearMonthDay": pd.DatetimeIndex(result.dates[t]).strftime("%Y%m%d"),
        "LeadTime": lead,
        "Obs": result.obs_agg[lead - 1, obs_idx],
        "Sim": result.sim_agg[lead - 1, t],
        "EnsembleMean": members.mean(axis=1),
        "EnsembleMax": members.max(axis=1),
        "EnsembleMin": members.min(axis=1),
    })
    member_frame = pd.DataFrame(members, columns=[f"Ens{m}" for m in range(1, n_members + 1)])
    return pd.concat([table, member_frame], axis=1)


def write_result_table(result, indices: np.ndarray, path: Union[str, Path],
                       config: Optional[dict] = None) -> pd.DataFrame:
    """写出集合结果表，数值保留 2 位小数，日期为 YYYYMMDD"""
    config = config or get_output_config()
    table = build_result_table(result, indices)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, sep=config["separator"], index=False,
                 float_format=config["float_format_result"], lineterminator="\n")
    logger.info(f"集合结果表已保存到: {path} ({len(table)} 行)")
    return table


def write_skill_scores(skill: pd.DataFrame, path: Union[str, Path],
                       config: Optional[dict] = None) -> pd.DataFrame:
    """写出技巧分数表（L + 2 行），未定义的分数写为 NaN"""
    config = config or get_output_config()
    table = skill_score_table(skill)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    table.to_csv(path, sep=config["separator"], index=False, float_format="%.4f",
                 na_rep="NaN", lineterminator="\n")
    logger.info(f"技巧分数已保存到: {path}")
    return table
