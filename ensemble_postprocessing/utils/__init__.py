"""
工具函数模块
提供数据加载、输入验证、日志、并行处理和结果输出等通用功能
"""

from .data_loader import *
from .validation import *
from .logging_config import *
from .parallel_utils import *
from .output_writer import *

__all__ = [
    # 数据加载
    'DailySeriesLoader',
    'load_daily_series',
    'from_arrays',

    # 数据验证
    'InputValidationError',
    'validate_daily_series',
    'check_temporal_consistency',

    # 日志
    'setup_logging',
    'get_logger',
    'configure_logging_from_config',

    # 并行
    'ParallelProcessor',
    'PipelineCancelled',

    # 输出
    'get_output_paths',
    'write_coefficients',
    'build_result_table',
    'write_result_table',
    'write_skill_scores',
]
