"""
日历日窗口构建模块
针对每个 (月, 日) 组合，在历史记录中定位其出现位置，并截取定长训练窗口

窗口边界策略：
- 窗口起点 k1 = idx - buffer//2 - analysis_len，小于记录起点时置为起点
- 窗口终点超出有效上界时整体回退（slide-back），保证每个窗口恰好 ndays 个样本，
  代价是靠近记录末尾的窗口不再以 idx 为中心
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)


def year_mask(years: np.ndarray, year_range: Tuple[int, int],
              end_inclusive: bool) -> np.ndarray:
    """
    年份范围掩码

    Args:
        years: 年份数组
        year_range: (起始年, 结束年)，起始年总是包含
        end_inclusive: 结束年是否包含

    Returns:
        布尔掩码
    """
    start, end = year_range
    years = np.asarray(years)
    if end_inclusive:
        return (years >= start) & (years <= end)
    return (years >= start) & (years < end)


def find_occurrences(years: np.ndarray, months: np.ndarray, days: np.ndarray,
                     month: int, day: int, year_range: Tuple[int, int],
                     end_inclusive: bool = False) -> np.ndarray:
    """返回 (month, day) 在合格年份内出现的记录下标（按时间顺序）"""
    mask = (np.asarray(months) == month) & (np.asarray(days) == day)
    mask &= year_mask(years, year_range, end_inclusive)
    return np.flatnonzero(mask)


def lookahead_bound(n_records: int, lead_spans: List[Tuple[int, int]]) -> int:
    """窗口终点允许的最大下标（考虑最后一个提前期的前视偏移）"""
    last_lead = len(lead_spans)
    begin = lead_spans[-1][0]
    return n_records - 1 - max(0, begin - last_lead)


def window_start(idx: int, ndays: int, analysis_len: int, buffer_len: int,
                 upper: int) -> int:
    """
    计算截断后的窗口起点

    Args:
        idx: 日历日出现的记录下标
        ndays: 窗口长度
        analysis_len: 分析窗口长度
        buffer_len: 缓冲长度
        upper: 窗口终点允许的最大下标

    Returns:
        窗口起点 k1，满足 0 <= k1 且 k1 + ndays - 1 <= upper
    """
    k1 = idx - buffer_len // 2 - analysis_len
    if k1 < 0:
        k1 = 0
    k2 = k1 + ndays - 1
    if k2 > upper:
        k2 = upper
        k1 = k2 - ndays + 1
    if k1 < 0:
        raise ValueError(f"记录长度不足以容纳 {ndays} 天的窗口 (上界 {upper})")
    return k1


@dataclass
class CalendarWindows:
    """单个 (月, 日) 组合的训练窗口"""

    month: int
    day: int
    qobs_calb: np.ndarray            # (L + 1, n_occurrences, ndays)
    qsim_calb: np.ndarray            # (L + 1, n_occurrences, ndays)
    occurrence_indices: np.ndarray   # 每次出现的记录下标
    window_starts: np.ndarray        # 每个窗口的起点 k1

    @property
    def n_occurrences(self) -> int:
        return int(self.occurrence_indices.size)


class CalendarWindowBuilder:
    """日历日训练窗口构建器"""

    def __init__(self, years: Sequence[int], months: Sequence[int], days: Sequence[int],
                 obs_series: Sequence[float], sim_series: Sequence[float],
                 obs_agg: np.ndarray, sim_agg: np.ndarray,
                 lead_spans: List[Tuple[int, int]],
                 analysis_len: int, forecast_len: int, buffer_len: int,
                 eligible_years: Tuple[int, int], eligible_end_inclusive: bool = False):
        """
        初始化窗口构建器

        Args:
            years, months, days: 记录的日期分量
            obs_series, sim_series: 逐日观测与模拟序列
            obs_agg, sim_agg: 对应的典型事件聚合矩阵 (L, N)
            lead_spans: 提前期聚合区间
            analysis_len, forecast_len, buffer_len: 窗口组成长度
            eligible_years: 合格年份范围
            eligible_end_inclusive: 合格年份上界是否包含
        """
        self.years = np.asarray(years, dtype=int)
        self.months = np.asarray(months, dtype=int)
        self.days = np.asarray(days, dtype=int)
        self.obs_series = np.asarray(obs_series, dtype=float)
        self.sim_series = np.asarray(sim_series, dtype=float)
        self.obs_agg = np.asarray(obs_agg, dtype=float)
        self.sim_agg = np.asarray(sim_agg, dtype=float)
        self.lead_spans = list(lead_spans)
        self.analysis_len = int(analysis_len)
        self.forecast_len = int(forecast_len)
        self.buffer_len = int(buffer_len)
        self.eligible_years = tuple(eligible_years)
        self.eligible_end_inclusive = eligible_end_inclusive

        self.n_records = self.obs_series.size
        self.ndays = self.analysis_len + self.forecast_len + self.buffer_len
        self.upper = lookahead_bound(self.n_records, self.lead_spans)
        if self.upper + 1 < self.ndays:
            raise ValueError(
                f"记录长度 {self.n_records} 不足以构建 {self.ndays} 天的训练窗口"
            )
        expected = (len(self.lead_spans), self.n_records)
        if self.obs_agg.shape != expected or self.sim_agg.shape != expected:
            raise ValueError(
                f"聚合矩阵形状不匹配: 期望 {expected}, "
                f"实际 {self.obs_agg.shape} / {self.sim_agg.shape}"
            )

        # 每个提前期行对应的下标平移 begin - lead
        self._row_shifts = np.array(
            [begin - lead for lead, (begin, _) in enumerate(self.lead_spans, 1)], dtype=int
        )

    @property
    def target_offset(self) -> int:
        """预报目标日在窗口内的偏移"""
        return self.buffer_len // 2 + self.analysis_len

    def build(self, month: int, day: int) -> Optional[CalendarWindows]:
        """
        构建指定 (月, 日) 的训练窗口

        Returns:
            CalendarWindows；若没有任何出现则返回 None（该组合被跳过）
        """
        indices = find_occurrences(self.years, self.months, self.days, month, day,
                                   self.eligible_years, self.eligible_end_inclusive)
        if indices.size == 0:
            logger.debug(f"{month:02d}-{day:02d} 无合格出现，跳过")
            return None

        n_leads = len(self.lead_spans)
        starts = np.array([
            window_start(int(idx), self.ndays, self.analysis_len, self.buffer_len, self.upper)
            for idx in indices
        ], dtype=int)

        offsets = np.arange(self.ndays)
        qobs = np.empty((n_leads + 1, indices.size, self.ndays), dtype=float)
        qsim = np.empty_like(qobs)
        for i, k1 in enumerate(starts):
            window = k1 + offsets
            qobs[0, i] = self.obs_series[window]
            qsim[0, i] = self.sim_series[window]
            for row, shift in enumerate(self._row_shifts):
                shifted = np.clip(window + shift, 0, self.n_records - 1)
                qobs[row + 1, i] = self.obs_agg[row, shifted]
                qsim[row + 1, i] = self.sim_agg[row, shifted]

        logger.debug(f"{month:02d}-{day:02d}: {indices.size} 次出现")
        return CalendarWindows(
            month=month, day=day,
            qobs_calb=qobs, qsim_calb=qsim,
            occurrence_indices=indices, window_starts=starts,
        )


def build_windows(month_day: Tuple[int, int], builder: CalendarWindowBuilder
                  ) -> Tuple[np.ndarray, np.ndarray, int]:
    """
    构建训练窗口，返回 (qobs_calb, qsim_calb, n_occurrences)

    无出现时返回形状为 (L + 1, 0, ndays) 的空数组。
    """
    month, day = month_day
    windows = builder.build(month, day)
    if windows is None:
        empty = np.empty((len(builder.lead_spans) + 1, 0, builder.ndays), dtype=float)
        return empty, empty.copy(), 0
    return windows.qobs_calb, windows.qsim_calb, windows.n_occurrences
