"""
率定引擎模块
定义率定引擎接口，并提供基于线性回归与残差扰动的默认实现

接口约定：
- 相同输入（含随机种子）得到相同输出
- 仅用前 calibration_years 次出现拟合系数 a/b，但对全部出现生成集合成员
- 不修改输入数组
"""

from typing import NamedTuple, Optional
import logging

import numpy as np
from scipy import stats

logger = logging.getLogger(__name__)


class CalibrationError(RuntimeError):
    """单个日历日组合的率定失败"""


class CalibrationOutput(NamedTuple):
    qobs_aligned: np.ndarray     # (n_occurrences, L) 目标日观测聚合值
    qsim_aligned: np.ndarray     # (n_occurrences, L) 目标日率定后的确定性模拟值
    n_ensemble: int
    realizations: np.ndarray     # (n_occurrences, L, ensemble_size)
    a: np.ndarray                # (L,)
    b: np.ndarray                # (L,)


class CalibrationEngine:
    """率定引擎基类"""

    def calibrate(self, qobs_calb: np.ndarray, qsim_calb: np.ndarray, n_occurrences: int,
                  calibration_years: int, analysis_len: int, forecast_len: int,
                  window_len: int, day: int, month: int, ensemble_size: int,
                  buffer_len: int) -> CalibrationOutput:
        """
        拟合率定系数并生成集合成员

        Args:
            qobs_calb: 观测训练窗口 (L + 1, n_occurrences, window_len)
            qsim_calb: 模拟训练窗口 (L + 1, n_occurrences, window_len)
            n_occurrences: 出现次数
            calibration_years: 参与拟合的前若干次出现
            analysis_len: 分析窗口长度
            forecast_len: 预报时长
            window_len: 窗口长度 ndays
            day: 日
            month: 月
            ensemble_size: 集合成员数
            buffer_len: 缓冲长度

        Returns:
            CalibrationOutput

        Raises:
            CalibrationError: 样本不足或拟合退化；流程对其他异常同样按单个日历日失败处理，
                保留该日的默认集合
        """
        raise NotImplementedError


class LinearRegressionEngine(CalibrationEngine):
    """
    线性回归率定引擎

    对每个提前期，用拟合窗口内全部日的 (模拟, 观测) 典型事件对做最小二乘回归
    obs = a + b * sim；残差标准差作为集合离散度，成员为 a + b * sim + sigma * z。
    """

    def __init__(self, seed: int = 12345, nonnegative: bool = True, min_samples: int = 3):
        self.seed = int(seed)
        self.nonnegative = nonnegative
        self.min_samples = int(min_samples)

    def _rng(self, month: int, day: int) -> np.random.Generator:
        # 每个日历日组合独立取种子，结果与执行顺序无关
        return np.random.default_rng([self.seed, int(month), int(day)])

    def _fit_lead(self, x: np.ndarray, y: np.ndarray, lead: int, month: int, day: int):
        valid = np.isfinite(x) & np.isfinite(y)
        x, y = x[valid], y[valid]
        if x.size < self.min_samples:
            raise CalibrationError(
                f"{month:02d}-{day:02d} 提前期 {lead}: 有效样本不足 ({x.size} < {self.min_samples})"
            )
        if np.ptp(x) == 0:
            raise CalibrationError(f"{month:02d}-{day:02d} 提前期 {lead}: 模拟值方差为 0，无法回归")

        fit = stats.linregress(x, y)
        residuals = y - (fit.intercept + fit.slope * x)
        ddof = 2 if x.size > 2 else 0
        sigma = float(np.sqrt(np.sum(residuals ** 2) / (x.size - ddof)))
        return float(fit.intercept), float(fit.slope), sigma

    def calibrate(self, qobs_calb, qsim_calb, n_occurrences, calibration_years,
                  analysis_len, forecast_len, window_len, day, month, ensemble_size,
                  buffer_len) -> CalibrationOutput:
        qobs_calb = np.asarray(qobs_calb, dtype=float)
        qsim_calb = np.asarray(qsim_calb, dtype=float)
        n_leads = qobs_calb.shape[0] - 1
        if qobs_calb.shape != qsim_calb.shape:
            raise CalibrationError(f"观测与模拟窗口形状不一致: {qobs_calb.shape} vs {qsim_calb.shape}")
        if qobs_calb.shape[1] != n_occurrences or qobs_calb.shape[2] != window_len:
            raise CalibrationError(
                f"窗口形状 {qobs_calb.shape} 与出现次数 {n_occurrences}、窗口长度 {window_len} 不符"
            )
        if n_occurrences == 0:
            raise CalibrationError(f"{month:02d}-{day:02d}: 没有可用的训练窗口")

        n_fit = min(int(calibration_years), n_occurrences)
        target = buffer_len // 2 + analysis_len

        a = np.empty(n_leads)
        b = np.empty(n_leads)
        sigma = np.empty(n_leads)
        for j in range(n_leads):
            x = qsim_calb[j + 1, :n_fit, :].ravel()
            y = qobs_calb[j + 1, :n_fit, :].ravel()
            a[j], b[j], sigma[j] = self._fit_lead(x, y, j + 1, month, day)

        sim_target = qsim_calb[1:, :, target].T        # (n_occurrences, L)
        qobs_aligned = qobs_calb[1:, :, target].T.copy()
        qsim_aligned = a + b * sim_target

        noise = self._rng(month, day).standard_normal((n_occurrences, n_leads, ensemble_size))
        realizations = qsim_aligned[:, :, np.newaxis] + sigma[np.newaxis, :, np.newaxis] * noise

        if self.nonnegative:
            qsim_aligned = np.maximum(qsim_aligned, 0.0)
            realizations = np.maximum(realizations, 0.0)

        logger.debug(f"{month:02d}-{day:02d}: 拟合 {n_fit}/{n_occurrences} 次出现, "
                     f"a={np.round(a, 3).tolist()}, b={np.round(b, 3).tolist()}")
        return CalibrationOutput(qobs_aligned, qsim_aligned, int(ensemble_size),
                                 realizations, a, b)


def create_engine(config: Optional[dict] = None) -> CalibrationEngine:
    """根据运行配置创建默认率定引擎"""
    config = config or {}
    return LinearRegressionEngine(seed=config.get("seed", 12345),
                                  nonnegative=config.get("nonnegative", True))
