"""
日历日率定主流程
整合典型事件聚合、窗口构建、率定、集合组装、技巧检验与输出，提供统一的接口
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import logging
import threading

import numpy as np
import pandas as pd
import xarray as xr

from .config.settings import build_run_config, window_length
from .core.canonical_events import aggregate
from .core.calendar_windows import CalendarWindowBuilder
from .core.calibration_engine import CalibrationEngine, CalibrationError, create_engine
from .core.ensemble_assembler import EnsembleAssembler
from .core.verification import SkillRecord, VerificationEngine, records_to_frame
from .utils.output_writer import (
    get_output_paths, write_coefficients, write_result_table, write_skill_scores
)
from .utils.parallel_utils import ParallelProcessor, PipelineCancelled

logger = logging.getLogger(__name__)

# 12 个月 x 31 天，不存在的日期（如 2 月 30 日）自然没有出现
CALENDAR_PAIRS: List[Tuple[int, int]] = [
    (month, day) for month in range(1, 13) for day in range(1, 32)
]


@dataclass
class ModelRunResult:
    """单个模型的完整运行结果"""

    model: str
    dates: pd.DatetimeIndex
    obs_agg: np.ndarray
    sim_agg: np.ndarray
    ensemble: xr.Dataset
    coefficients: xr.Dataset
    skill_records: List[SkillRecord]
    skill: pd.DataFrame
    verification_indices: np.ndarray
    skipped_pairs: List[Tuple[int, int]] = field(default_factory=list)
    failed_pairs: Dict[Tuple[int, int], str] = field(default_factory=dict)


def _calibrate_pair(pair: Tuple[int, int], builder: CalendarWindowBuilder,
                    engine: CalibrationEngine, config: Dict[str, Any]) -> Dict[str, Any]:
    """单个日历日组合的工作单元 - 模块级函数，可以被pickle序列化"""
    month, day = pair
    windows = builder.build(month, day)
    if windows is None:
        return {"pair": pair, "status": "skipped"}

    try:
        output = engine.calibrate(
            windows.qobs_calb, windows.qsim_calb, windows.n_occurrences,
            config["calibration_years"], config["analysis_len"], config["forecast_len"],
            window_length(config), day, month, config["ensemble_size"], config["buffer_len"],
        )
    except CalibrationError as e:
        logger.warning(f"{month:02d}-{day:02d} 率定失败，保留默认集合: {e}")
        return {"pair": pair, "status": "failed", "error": str(e)}
    except Exception as e:
        # 外部引擎的其他异常同样按单个日历日失败处理
        logger.warning(f"{month:02d}-{day:02d} 率定引擎异常 {type(e).__name__}，保留默认集合: {e}",
                       exc_info=True)
        return {"pair": pair, "status": "failed", "error": f"{type(e).__name__}: {e}"}

    return {"pair": pair, "status": "ok", "window_starts": windows.window_starts,
            "occurrence_indices": windows.occurrence_indices, "output": output}


# 进程池中每个工作进程持有的只读上下文（窗口构建器、引擎、配置）
_worker_context: Dict[str, Any] = {}


def _init_worker(builder: CalendarWindowBuilder, engine: CalibrationEngine,
                 config: Dict[str, Any]) -> None:
    """进程池初始化函数，每个工作进程只接收一次窗口构建器"""
    _worker_context.update(builder=builder, engine=engine, config=config)


def _calibrate_pair_in_worker(pair: Tuple[int, int]) -> Dict[str, Any]:
    return _calibrate_pair(pair, **_worker_context)


def _coefficients_dataset(pairs: List[Tuple[int, int]], a_rows: List[np.ndarray],
                          b_rows: List[np.ndarray], n_leads: int, model: str) -> xr.Dataset:
    if a_rows:
        a = np.stack(a_rows)
        b = np.stack(b_rows)
    else:
        a = np.empty((0, n_leads))
        b = np.empty((0, n_leads))
    extra_dims = [f"dim_{i}" for i in range(a.ndim - 2)]
    dims = ["pair", "lead"] + extra_dims
    ds = xr.Dataset(
        {
            "a": xr.DataArray(a, dims=dims, attrs={"description": "Calibration coefficient a"}),
            "b": xr.DataArray(b, dims=dims, attrs={"description": "Calibration coefficient b"}),
        },
        coords={
            "month": ("pair", np.array([p[0] for p in pairs], dtype=int)),
            "day": ("pair", np.array([p[1] for p in pairs], dtype=int)),
            "lead": np.arange(1, n_leads + 1),
        },
    )
    ds.attrs["model"] = model
    return ds


class CalendarCalibrationPipeline:
    """日历日分层集合后处理主类"""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 engine: Optional[CalibrationEngine] = None,
                 n_jobs: Optional[int] = None, backend: Optional[str] = None):
        """
        初始化主流程

        Args:
            config: build_run_config 生成的运行配置，None 使用默认配置
            engine: 率定引擎，None 使用默认线性回归引擎
            n_jobs: 并行作业数（覆盖配置）
            backend: 并行后端（覆盖配置）
        """
        self.config = config if config is not None else build_run_config()
        self.engine = engine if engine is not None else create_engine(self.config)
        self.processor = ParallelProcessor(
            n_jobs=n_jobs if n_jobs is not None else self.config.get("n_jobs", 1),
            backend=backend or self.config.get("backend", "process"),
        )
        logger.info("CalendarCalibrationPipeline初始化完成")

    def run_model(self, dataset: xr.Dataset, model: str,
                  cancel_event: Optional[threading.Event] = None) -> ModelRunResult:
        """
        对单个模型执行率定、集合组装与技巧检验

        Args:
            dataset: load_daily_series 返回的数据集
            model: 模型名称
            cancel_event: 取消事件，在日历日组合之间检查

        Returns:
            ModelRunResult

        Raises:
            PipelineCancelled: 运行被取消
        """
        config = self.config
        lead_spans = config["lead_spans"]
        n_leads = len(lead_spans)
        logger.info(f"开始处理模型 {model}")

        obs = dataset["obs"].values.astype(float)
        sim = dataset["sim"].sel(model=model).values.astype(float)
        years = dataset["year"].values
        dates = pd.DatetimeIndex(dataset["time"].values)

        obs_agg = aggregate(obs, lead_spans)
        sim_agg = aggregate(sim, lead_spans)

        builder = CalendarWindowBuilder(
            years, dataset["month"].values, dataset["day"].values,
            obs, sim, obs_agg, sim_agg, lead_spans,
            config["analysis_len"], config["forecast_len"], config["buffer_len"],
            config["eligible_years"], config["eligible_end_inclusive"],
        )
        assembler = EnsembleAssembler(sim, n_leads, config["ensemble_size"],
                                      config["analysis_len"], config["buffer_len"],
                                      times=dates.values)

        if self.processor.backend == "process" and self.processor.n_jobs > 1:
            outcomes = self.processor.parallel_map(
                _calibrate_pair_in_worker, CALENDAR_PAIRS, cancel_event=cancel_event,
                initializer=_init_worker, initargs=(builder, self.engine, config),
            )
        else:
            outcomes = self.processor.parallel_map(
                _calibrate_pair, CALENDAR_PAIRS, cancel_event=cancel_event,
                builder=builder, engine=self.engine, config=config,
            )

        # 按日历顺序汇总
        skipped: List[Tuple[int, int]] = []
        failed: Dict[Tuple[int, int], str] = {}
        pairs, a_rows, b_rows = [], [], []
        for outcome in outcomes:
            pair = outcome["pair"]
            if outcome["status"] == "skipped":
                skipped.append(pair)
                continue
            if outcome["status"] == "failed":
                failed[pair] = outcome["error"]
                continue
            output = outcome["output"]
            assembler.scatter(output.realizations, outcome["window_starts"], output.qsim_aligned,
                              outcome["occurrence_indices"])
            pairs.append(pair)
            a_rows.append(np.asarray(output.a, dtype=float))
            b_rows.append(np.asarray(output.b, dtype=float))

        logger.info(f"{model}: 率定 {len(pairs)} 个日历日, 跳过 {len(skipped)} 个, 失败 {len(failed)} 个")

        ensemble = assembler.finalize(model)
        coefficients = _coefficients_dataset(pairs, a_rows, b_rows, n_leads, model)

        verifier = VerificationEngine(years, config["verification_years"],
                                      config["verification_end_inclusive"])
        records = verifier.verify(obs_agg, sim_agg, assembler.calibrated.T,
                                  assembler.ensemble, obs, sim)

        return ModelRunResult(
            model=model, dates=dates, obs_agg=obs_agg, sim_agg=sim_agg,
            ensemble=ensemble, coefficients=coefficients,
            skill_records=records, skill=records_to_frame(records),
            verification_indices=verifier.verification_indices(),
            skipped_pairs=skipped, failed_pairs=failed,
        )

    def write_outputs(self, result: ModelRunResult, output_dir: Union[str, Path]) -> Dict[str, Path]:
        """写出单个模型的系数、集合结果表和技巧分数表"""
        paths = get_output_paths(output_dir, result.model)
        write_coefficients(result.coefficients, paths["coef_a"], paths["coef_b"])
        write_result_table(result, result.verification_indices, paths["ensemble"])
        write_skill_scores(result.skill, paths["skill"])
        return paths

    def run(self, dataset: xr.Dataset, models: Optional[List[str]] = None,
            output_dir: Optional[Union[str, Path]] = None,
            cancel_event: Optional[threading.Event] = None) -> Dict[str, ModelRunResult]:
        """
        对多个模型依次运行

        Args:
            dataset: 输入数据集
            models: 模型列表，None表示数据集中的所有模型
            output_dir: 输出目录，None 表示不写文件
            cancel_event: 取消事件

        Returns:
            {模型: ModelRunResult}
        """
        available = [str(m) for m in dataset["model"].values]
        if models is None:
            models = available
        unknown = [m for m in models if m not in available]
        if unknown:
            raise ValueError(f"数据集中不存在的模型: {unknown}，可用模型: {available}")

        results: Dict[str, ModelRunResult] = {}
        for model in models:
            results[model] = self.run_model(dataset, model, cancel_event=cancel_event)
            if output_dir is not None:
                self.write_outputs(results[model], output_dir)
        logger.info(f"全部模型处理完成: {list(results)}")
        return results


__all__ = ["CALENDAR_PAIRS", "CalendarCalibrationPipeline", "ModelRunResult", "PipelineCancelled"]
