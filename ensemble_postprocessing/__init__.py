"""
Ensemble Postprocessing Toolkit (集合预报后处理工具包)

按日历日分层的径流/降水集合预报率定与技巧检验工具包
"""

from .config.settings import *
from .core import *
from .utils import *

__version__ = "0.1.0"

# 主要类
from .pipeline import CalendarCalibrationPipeline, ModelRunResult

__all__ = [
    'CalendarCalibrationPipeline',
    'ModelRunResult',
    'build_run_config',
    'load_daily_series',
    'from_arrays',
    'setup_logging',
    'get_calibration_config',
    'get_verification_config',
    'get_lead_spans',
    'get_model_names',
]
