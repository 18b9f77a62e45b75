"""
集合组装模块
将各日历日窗口的集合成员回填到全记录长度的集合数组 Ens[t, lead, member]
"""

from typing import Optional, Sequence
import logging

import numpy as np
import xarray as xr

logger = logging.getLogger(__name__)


class EnsembleAssembler:
    """集合组装器"""

    def __init__(self, sim_series: Sequence[float], n_leads: int, ensemble_size: int,
                 analysis_len: int, buffer_len: int, times: Optional[Sequence] = None):
        """
        初始化集合组装器

        集合数组预先以原始模拟值在所有提前期与成员上复制填充，
        未被任何窗口覆盖的时刻退化为成员完全相同的确定性集合。

        Args:
            sim_series: 逐日原始模拟序列 (N,)
            n_leads: 提前期数 L
            ensemble_size: 集合成员数 M
            analysis_len: 分析窗口长度
            buffer_len: 缓冲长度
            times: 时间坐标（用于 finalize 输出）
        """
        sim = np.asarray(sim_series, dtype=float)
        self.n_records = sim.size
        self.n_leads = int(n_leads)
        self.ensemble_size = int(ensemble_size)
        self.target_offset = int(buffer_len) // 2 + int(analysis_len)
        self.times = times

        self.ensemble = np.repeat(
            np.repeat(sim[:, np.newaxis, np.newaxis], self.n_leads, axis=1),
            self.ensemble_size, axis=2,
        )
        self.calibrated = np.repeat(sim[:, np.newaxis], self.n_leads, axis=1)
        self.written = np.zeros((self.n_records, self.n_leads), dtype=bool)

    def target_indices(self, window_starts: Sequence[int]) -> np.ndarray:
        """窗口起点加上 buffer//2 + analysis_len 即为预报目标日"""
        return np.asarray(window_starts, dtype=int) + self.target_offset

    def scatter(self, realizations: np.ndarray, window_starts: Sequence[int],
                calibrated: Optional[np.ndarray] = None,
                occurrence_indices: Optional[Sequence[int]] = None) -> np.ndarray:
        """
        回填一个日历日组合的集合成员

        目标日等于出现日的写入属于该日历日本身，总是生效；
        记录两端因窗口回退而偏离出现日的写入，只填充尚未写入的目标日，
        不会覆盖其他日历日的结果。

        Args:
            realizations: (n_occurrences, L, M) 集合成员
            window_starts: 每次出现对应的窗口起点 k1
            calibrated: (n_occurrences, L) 率定后的确定性值（可选）
            occurrence_indices: 每次出现的记录下标，None 表示全部视为目标日本身

        Returns:
            本次实际写入的目标日下标
        """
        realizations = np.asarray(realizations, dtype=float)
        targets = self.target_indices(window_starts)
        expected = (targets.size, self.n_leads, self.ensemble_size)
        if realizations.shape != expected:
            raise ValueError(f"集合成员形状不匹配: 期望 {expected}, 实际 {realizations.shape}")
        if targets.size and (targets.min() < 0 or targets.max() >= self.n_records):
            raise ValueError(f"目标日下标越界: [{targets.min()}, {targets.max()}]")

        if occurrence_indices is None:
            anchored = np.ones(targets.size, dtype=bool)
        else:
            anchored = targets == np.asarray(occurrence_indices, dtype=int)
        keep = anchored | ~self.written[targets].any(axis=1)
        if not keep.all():
            logger.debug(f"回退窗口的目标日已被写入，跳过 {int((~keep).sum())} 个")

        targets = targets[keep]
        self.ensemble[targets] = realizations[keep]
        if calibrated is not None:
            self.calibrated[targets] = np.asarray(calibrated, dtype=float)[keep]
        self.written[targets] = True
        return targets

    def finalize(self, model: str = "") -> xr.Dataset:
        """
        生成集合结果数据集

        Returns:
            包含 ensemble(time, lead, member)、calibrated(time, lead)、written(time, lead) 的数据集
        """
        coords = {
            "lead": np.arange(1, self.n_leads + 1),
            "member": np.arange(1, self.ensemble_size + 1),
        }
        if self.times is not None:
            coords["time"] = np.asarray(self.times)
        else:
            coords["time"] = np.arange(self.n_records)

        result = xr.Dataset({
            "ensemble": xr.DataArray(
                self.ensemble.copy(), dims=["time", "lead", "member"],
                attrs={"description": "Assembled ensemble realizations", "units": ""}
            ),
            "calibrated": xr.DataArray(
                self.calibrated.copy(), dims=["time", "lead"],
                attrs={"description": "Calibrated deterministic simulation", "units": ""}
            ),
            "written": xr.DataArray(
                self.written.copy(), dims=["time", "lead"],
                attrs={"description": "Cells overwritten by a calendar window"}
            ),
        }, coords=coords)
        result.attrs["model"] = model
        result.attrs["ensemble_size"] = self.ensemble_size
        result.attrs["calibrated_fraction"] = float(self.written.mean()) if self.written.size else 0.0

        logger.info(f"集合组装完成 {model}: 覆盖率 {result.attrs['calibrated_fraction']:.1%}")
        return result
