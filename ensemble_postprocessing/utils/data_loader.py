"""
逐日序列数据加载模块
读取空白分隔的观测/模拟列文本，验证后组装为 xarray 数据集
"""

from pathlib import Path
from typing import List, Optional, Sequence, Union
import logging

import numpy as np
import pandas as pd
import xarray as xr

from .validation import InputValidationError, validate_daily_series

logger = logging.getLogger(__name__)

BASE_COLUMNS = ["year", "month", "day", "precip", "obs"]


def _to_dataset(frame: pd.DataFrame, dates: pd.DatetimeIndex, model_names: List[str]) -> xr.Dataset:
    sim_values = frame.iloc[:, len(BASE_COLUMNS):].to_numpy(dtype=float)
    ds = xr.Dataset(
        {
            "precip": xr.DataArray(frame["precip"].to_numpy(dtype=float), dims=["time"],
                                   attrs={"description": "Precipitation or auxiliary column"}),
            "obs": xr.DataArray(frame["obs"].to_numpy(dtype=float), dims=["time"],
                                attrs={"description": "Observed daily series"}),
            "sim": xr.DataArray(sim_values, dims=["time", "model"],
                                attrs={"description": "Simulated daily series per model"}),
        },
        coords={
            "time": dates.values,
            "model": model_names,
            "year": ("time", frame["year"].to_numpy(dtype=int)),
            "month": ("time", frame["month"].to_numpy(dtype=int)),
            "day": ("time", frame["day"].to_numpy(dtype=int)),
        },
    )
    return ds


def _resolve_model_names(n_models: int, model_names: Optional[Sequence[str]]) -> List[str]:
    if model_names is None:
        return [f"model_{i}" for i in range(1, n_models + 1)]
    model_names = list(model_names)
    if len(model_names) != n_models:
        raise InputValidationError(
            f"模型名称数量 ({len(model_names)}) 与模拟列数量 ({n_models}) 不一致"
        )
    return model_names


class DailySeriesLoader:
    """逐日序列加载器"""

    def __init__(self, comment: str = "#"):
        self.comment = comment

    def read_table(self, file_path: Union[str, Path]) -> pd.DataFrame:
        """读取空白分隔文本为 DataFrame，列名为 year month day precip obs sim_1..k"""
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"输入文件不存在: {file_path}")

        try:
            frame = pd.read_csv(file_path, sep=r"\s+", header=None, comment=self.comment,
                                engine="python")
        except pd.errors.EmptyDataError as e:
            raise InputValidationError(f"输入文件为空: {file_path}") from e
        except pd.errors.ParserError as e:
            raise InputValidationError(f"输入文件列数不一致: {e}") from e

        n_sim = frame.shape[1] - len(BASE_COLUMNS)
        frame.columns = BASE_COLUMNS[:frame.shape[1]] + [f"sim_{i}" for i in range(1, n_sim + 1)]
        return frame

    def load(self, file_path: Union[str, Path],
             model_names: Optional[Sequence[str]] = None) -> xr.Dataset:
        """
        加载并验证逐日序列

        Args:
            file_path: 输入文件路径
            model_names: 模拟列对应的模型名称，None 表示 model_1..model_k

        Returns:
            包含 precip(time)、obs(time)、sim(time, model) 的数据集
        """
        frame = self.read_table(file_path)
        dates = validate_daily_series(frame)
        names = _resolve_model_names(frame.shape[1] - len(BASE_COLUMNS), model_names)
        ds = _to_dataset(frame, dates, names)
        ds.attrs["source"] = str(file_path)
        logger.info(f"数据加载完成: {file_path}, {ds.sizes['time']} 天, 模型 {names}")
        return ds


def load_daily_series(file_path: Union[str, Path],
                      model_names: Optional[Sequence[str]] = None) -> xr.Dataset:
    """加载逐日序列文件"""
    return DailySeriesLoader().load(file_path, model_names)


def from_arrays(dates: Sequence, obs: Sequence[float], sims: Union[Sequence[float], np.ndarray],
                precip: Optional[Sequence[float]] = None,
                model_names: Optional[Sequence[str]] = None) -> xr.Dataset:
    """
    由内存数组构造与 load_daily_series 相同结构的数据集

    Args:
        dates: 逐日日期
        obs: 观测序列 (N,)
        sims: 模拟序列 (N,) 或 (N, k)
        precip: 降水列（可选，缺省为 0）
        model_names: 模型名称

    Returns:
        xr.Dataset
    """
    dates = pd.DatetimeIndex(pd.to_datetime(dates))
    sims = np.asarray(sims, dtype=float)
    if sims.ndim == 1:
        sims = sims[:, np.newaxis]
    n = len(dates)
    if precip is None:
        precip = np.zeros(n)

    frame = pd.DataFrame({
        "year": dates.year, "month": dates.month, "day": dates.day,
        "precip": np.asarray(precip, dtype=float), "obs": np.asarray(obs, dtype=float),
    })
    for i in range(sims.shape[1]):
        frame[f"sim_{i + 1}"] = sims[:, i]

    checked = validate_daily_series(frame)
    names = _resolve_model_names(sims.shape[1], model_names)
    return _to_dataset(frame, checked, names)
