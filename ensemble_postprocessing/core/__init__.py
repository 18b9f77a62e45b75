"""
核心分析模块
提供典型事件聚合、日历日窗口、率定引擎、集合组装和技巧检验等核心功能
"""

from .canonical_events import *
from .calendar_windows import *
from .calibration_engine import *
from .ensemble_assembler import *
from .verification import *

__all__ = [
    # 典型事件聚合
    'aggregate',

    # 日历日窗口
    'CalendarWindowBuilder',
    'CalendarWindows',
    'build_windows',
    'find_occurrences',
    'window_start',
    'year_mask',

    # 率定引擎
    'CalibrationEngine',
    'CalibrationError',
    'CalibrationOutput',
    'LinearRegressionEngine',
    'create_engine',

    # 集合组装
    'EnsembleAssembler',

    # 技巧检验
    'VerificationEngine',
    'SkillRecord',
    'UNDEFINED_METRIC',
    'compute_skill',
    'pearson_correlation',
    'nash_sutcliffe_efficiency',
    'bias_ratio',
    'root_mean_square_error',
    'records_to_frame',
    'skill_score_table',
]
