"""
典型事件聚合模块
将逐日序列转换为按提前期滚动平均的聚合矩阵 Agg[lead, t]
"""

import numpy as np
from typing import List, Sequence, Tuple
import logging

logger = logging.getLogger(__name__)


def aggregate(series: Sequence[float], lead_spans: List[Tuple[int, int]]) -> np.ndarray:
    """
    计算典型事件聚合矩阵

    对每个提前期 (begin, end) 和每个时刻 t，取 series[t .. t + (end - begin)] 的算术平均，
    窗口末端在记录末尾截断，因此不会越界读取。

    Args:
        series: 长度为 N 的逐日序列
        lead_spans: 每个提前期的 (begin, end) 偏移

    Returns:
        形状为 (L, N) 的聚合矩阵
    """
    values = np.asarray(series, dtype=float)
    if values.ndim != 1:
        raise ValueError(f"输入序列必须为一维: {values.shape}")

    n = values.size
    result = np.empty((len(lead_spans), n), dtype=float)
    if n == 0:
        return result

    for i, (begin, end) in enumerate(lead_spans):
        span = end - begin
        total = values.copy()
        count = np.ones(n, dtype=float)
        # 逐偏移累加，超出记录末尾的部分不计入
        for offset in range(1, min(span, n - 1) + 1):
            total[:n - offset] += values[offset:]
            count[:n - offset] += 1.0
        result[i] = total / count

    logger.debug(f"典型事件聚合完成: {len(lead_spans)} 个提前期, {n} 个时刻")
    return result
