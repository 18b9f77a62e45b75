"""
技巧检验模块
按提前期计算相关系数、Nash-Sutcliffe 效率系数、偏差比和 RMSE

三种候选预报：集合平均、原始模拟、率定后模拟。
注意偏差比的方向：集合平均为 sum(obs)/sum(pred)，原始/率定模拟为 sum(pred)/sum(obs)。
"""

from dataclasses import dataclass, asdict
from typing import List, Sequence
import logging

import numpy as np
import pandas as pd
from scipy import stats

logger = logging.getLogger(__name__)

UNDEFINED_METRIC = float("nan")

PREDICTORS = ("ensemble_mean", "raw", "calibrated")
SKILL_COLUMNS = ["LeadTime", "R", "EfficiencyScore", "Bias", "RMSE"]


@dataclass
class SkillRecord:
    """单个提前期、单个预报源的技巧分数"""

    lead: int
    predictor: str
    correlation: float
    efficiency: float
    bias: float
    rmse: float
    n_samples: int


def pearson_correlation(obs: np.ndarray, pred: np.ndarray) -> float:
    """Pearson 相关系数，任一序列方差为 0 时未定义"""
    obs = np.asarray(obs, dtype=float)
    pred = np.asarray(pred, dtype=float)
    if obs.size < 2 or np.ptp(obs) == 0 or np.ptp(pred) == 0:
        logger.warning("序列方差为 0 或样本不足，相关系数未定义")
        return UNDEFINED_METRIC
    corr_coef, _ = stats.pearsonr(obs, pred)
    return float(corr_coef)


def nash_sutcliffe_efficiency(obs: np.ndarray, pred: np.ndarray) -> float:
    """
    Nash-Sutcliffe 效率系数 1 - mean((obs - pred)^2) / var(obs)

    观测方差为 0 时返回 UNDEFINED_METRIC，而不是做除零运算
    """
    obs = np.asarray(obs, dtype=float)
    pred = np.asarray(pred, dtype=float)
    variance = float(np.mean((obs - obs.mean()) ** 2)) if obs.size else 0.0
    if variance == 0.0:
        logger.warning("观测方差为 0，效率系数未定义")
        return UNDEFINED_METRIC
    return float(1.0 - np.mean((obs - pred) ** 2) / variance)


def bias_ratio(numerator: np.ndarray, denominator: np.ndarray) -> float:
    """sum(numerator) / sum(denominator)，分母和为 0 时未定义"""
    total = float(np.sum(denominator))
    if total == 0.0:
        logger.warning("偏差比分母为 0，偏差比未定义")
        return UNDEFINED_METRIC
    return float(np.sum(numerator) / total)


def root_mean_square_error(obs: np.ndarray, pred: np.ndarray) -> float:
    """均方根误差"""
    obs = np.asarray(obs, dtype=float)
    pred = np.asarray(pred, dtype=float)
    return float(np.sqrt(np.mean((obs - pred) ** 2)))


def compute_skill(obs: np.ndarray, pred: np.ndarray, lead: int, predictor: str) -> SkillRecord:
    """
    计算一组 (观测, 预报) 的技巧分数

    Args:
        obs: 观测值
        pred: 预报值
        lead: 提前期编号（L+1、L+2 为附加行）
        predictor: 预报源，ensemble_mean / raw / calibrated

    Returns:
        SkillRecord
    """
    if predictor == "ensemble_mean":
        bias = bias_ratio(obs, pred)
    else:
        bias = bias_ratio(pred, obs)
    return SkillRecord(
        lead=lead,
        predictor=predictor,
        correlation=pearson_correlation(obs, pred),
        efficiency=nash_sutcliffe_efficiency(obs, pred),
        bias=bias,
        rmse=root_mean_square_error(obs, pred),
        n_samples=int(np.asarray(obs).size),
    )


class VerificationEngine:
    """技巧检验器"""

    def __init__(self, years: Sequence[int], verification_years, end_inclusive: bool = True):
        """
        初始化技巧检验器

        Args:
            years: 每条记录的年份 (N,)
            verification_years: 检验期 (起始年, 结束年)
            end_inclusive: 检验期结束年是否包含
        """
        self.years = np.asarray(years, dtype=int)
        self.verification_years = tuple(verification_years)
        self.end_inclusive = end_inclusive

    def verification_indices(self) -> np.ndarray:
        """检验期内的记录下标"""
        start, end = self.verification_years
        if self.end_inclusive:
            mask = (self.years >= start) & (self.years <= end)
        else:
            mask = (self.years >= start) & (self.years < end)
        return np.flatnonzero(mask)

    def verify(self, obs_agg: np.ndarray, sim_agg: np.ndarray, cal_agg: np.ndarray,
               ensemble: np.ndarray, obs_series: Sequence[float],
               sim_series: Sequence[float]) -> List[SkillRecord]:
        """
        计算全部提前期的技巧分数

        提前期 j 的观测取 obs_agg[j, min(t + j - 1, N - 1)]，预报取时刻 t 的值。
        另追加两行：L+1 为率定模拟、L+2 为原始模拟，均基于逐日序列、不区分提前期。

        Args:
            obs_agg: 观测聚合矩阵 (L, N)
            sim_agg: 模拟聚合矩阵 (L, N)
            cal_agg: 率定模拟矩阵 (L, N)
            ensemble: 集合数组 (N, L, M)
            obs_series: 逐日观测 (N,)
            sim_series: 逐日原始模拟 (N,)

        Returns:
            SkillRecord 列表，共 3L + 2 条
        """
        obs_agg = np.asarray(obs_agg, dtype=float)
        sim_agg = np.asarray(sim_agg, dtype=float)
        cal_agg = np.asarray(cal_agg, dtype=float)
        ensemble = np.asarray(ensemble, dtype=float)
        n_leads, n_records = obs_agg.shape

        indices = self.verification_indices()
        if indices.size == 0:
            raise ValueError(f"检验期 {self.verification_years} 内没有记录")

        logger.info(f"开始技巧检验: {n_leads} 个提前期, {indices.size} 个时刻")
        ensemble_mean = ensemble[indices].mean(axis=2)      # (n, L)

        records: List[SkillRecord] = []
        for j in range(1, n_leads + 1):
            obs_idx = np.minimum(indices + j - 1, n_records - 1)
            obs = obs_agg[j - 1, obs_idx]
            candidates = {
                "ensemble_mean": ensemble_mean[:, j - 1],
                "raw": sim_agg[j - 1, indices],
                "calibrated": cal_agg[j - 1, indices],
            }
            for predictor in PREDICTORS:
                records.append(compute_skill(obs, candidates[predictor], j, predictor))

        obs_daily = np.asarray(obs_series, dtype=float)[indices]
        records.append(compute_skill(obs_daily, cal_agg[0, indices], n_leads + 1, "calibrated"))
        records.append(compute_skill(obs_daily, np.asarray(sim_series, dtype=float)[indices],
                                     n_leads + 2, "raw"))

        logger.info("技巧检验完成")
        return records


def records_to_frame(records: List[SkillRecord]) -> pd.DataFrame:
    """SkillRecord 列表转为长表 DataFrame"""
    frame = pd.DataFrame([asdict(record) for record in records])
    return frame.rename(columns={
        "lead": "LeadTime", "predictor": "Predictor", "correlation": "R",
        "efficiency": "EfficiencyScore", "bias": "Bias", "rmse": "RMSE",
        "n_samples": "NSamples",
    })


def skill_score_table(skill: pd.DataFrame) -> pd.DataFrame:
    """
    生成技巧分数输出表（L + 2 行）

    1..L 行为集合平均，L+1 行为率定模拟，L+2 行为原始模拟
    """
    n_leads = int(skill["LeadTime"].max()) - 2
    per_lead = skill[(skill["LeadTime"] <= n_leads) & (skill["Predictor"] == "ensemble_mean")]
    extra = skill[skill["LeadTime"] > n_leads]
    table = pd.concat([per_lead, extra]).sort_values("LeadTime")
    return table[SKILL_COLUMNS].reset_index(drop=True)
