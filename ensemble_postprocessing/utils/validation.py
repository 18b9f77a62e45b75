"""
数据验证工具函数
检查逐日输入序列的列数、数值类型和时间连续性
"""

import logging
from typing import Any, Dict

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

MIN_COLUMNS = 6   # year month day precip observed sim_1


class InputValidationError(ValueError):
    """输入序列不符合逐日、连续、无缺测的要求"""


def build_dates(frame: pd.DataFrame) -> pd.DatetimeIndex:
    """由 year/month/day 三列构造日期，非法日期抛出 InputValidationError"""
    try:
        dates = pd.to_datetime(
            pd.DataFrame({"year": frame["year"], "month": frame["month"], "day": frame["day"]}),
            errors="raise",
        )
    except (ValueError, OverflowError) as e:
        raise InputValidationError(f"存在非法日期: {e}") from e
    return pd.DatetimeIndex(dates)


def check_temporal_consistency(dates: pd.DatetimeIndex) -> Dict[str, Any]:
    """
    检查时间一致性

    Args:
        dates: 日期索引

    Returns:
        时间一致性检查结果
    """
    result = {
        "time_points": len(dates),
        "is_monotonic": bool(dates.is_monotonic_increasing),
        "has_duplicates": bool(dates.duplicated().any()),
        "n_gaps": 0,
        "first_gap": None,
    }
    if len(dates) > 1:
        step = np.diff(dates.values).astype("timedelta64[D]").astype(int)
        bad = np.flatnonzero(step != 1)
        result["n_gaps"] = int(bad.size)
        if bad.size:
            result["first_gap"] = (dates[bad[0]].strftime("%Y-%m-%d"),
                                   dates[bad[0] + 1].strftime("%Y-%m-%d"))
    if len(dates):
        result["start_time"] = dates[0].isoformat()
        result["end_time"] = dates[-1].isoformat()
    return result


def validate_daily_series(frame: pd.DataFrame) -> pd.DatetimeIndex:
    """
    验证逐日输入表

    要求：至少 6 列、全部为数值、日期合法、严格按天递增且无缺日、观测与模拟列无缺测。

    Args:
        frame: 列为 year, month, day, precip, obs, sim_1..k 的表

    Returns:
        记录对应的日期索引

    Raises:
        InputValidationError: 任一条件不满足
    """
    if frame.shape[1] < MIN_COLUMNS:
        raise InputValidationError(
            f"列数不足: {frame.shape[1]} < {MIN_COLUMNS} (year month day precip observed sim...)"
        )
    if frame.empty:
        raise InputValidationError("输入序列为空")

    non_numeric = [col for col in frame.columns if not pd.api.types.is_numeric_dtype(frame[col])]
    if non_numeric:
        raise InputValidationError(f"存在非数值列: {non_numeric}")

    missing = frame.isna().any()
    if missing.any():
        raise InputValidationError(f"存在缺测或列数不一致: {list(missing[missing].index)}")

    dates = build_dates(frame)
    report = check_temporal_consistency(dates)
    if report["has_duplicates"]:
        raise InputValidationError("存在重复日期")
    if not report["is_monotonic"]:
        raise InputValidationError("日期不是单调递增的")
    if report["n_gaps"]:
        raise InputValidationError(
            f"日期不连续: 共 {report['n_gaps']} 处间断，首个位于 {report['first_gap']}"
        )

    logger.info(f"输入序列验证通过: {report['time_points']} 天, "
                f"{report['start_time'][:10]} ~ {report['end_time'][:10]}")
    return dates
