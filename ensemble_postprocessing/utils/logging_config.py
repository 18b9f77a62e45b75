"""
日志配置工具模块
提供统一的日志配置功能
"""

import os
import logging
from typing import Optional

from ..config.settings import get_logging_config


def setup_logging(
    log_dir: str = "./log",
    log_file: Optional[str] = None,
    log_level: str = "INFO",
    module_name: str = "ensemble_postprocessing",
    use_basic_config: bool = True
) -> logging.Logger:
    """
    设置日志配置

    Args:
        log_dir: 日志目录路径
        log_file: 日志文件名（可选）
        log_level: 日志级别
        module_name: 模块名称
        use_basic_config: 是否使用basicConfig

    Returns:
        logging.Logger: 配置好的日志记录器
    """
    os.makedirs(log_dir, exist_ok=True)

    if log_file is None:
        log_file = f"{module_name}.log"

    log_file_path = os.path.join(log_dir, log_file)
    defaults = get_logging_config()
    log_format = defaults["format"]
    file_mode = defaults["file_mode"]
    level = getattr(logging, log_level.upper())

    if use_basic_config:
        logging.basicConfig(
            level=level,
            format=log_format,
            handlers=[
                logging.FileHandler(log_file_path, mode=file_mode, encoding='utf-8'),
                logging.StreamHandler()
            ],
            force=True
        )
        return logging.getLogger(module_name)

    logger = logging.getLogger(module_name)
    logger.setLevel(level)

    # 清除现有的处理器
    logger.handlers.clear()

    file_handler = logging.FileHandler(log_file_path, mode=file_mode, encoding='utf-8')
    file_handler.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    formatter = logging.Formatter(log_format)
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def get_logger(module_name: str = "ensemble_postprocessing") -> logging.Logger:
    """
    获取日志记录器

    Args:
        module_name: 模块名称

    Returns:
        logging.Logger: 日志记录器
    """
    return logging.getLogger(module_name)


def configure_logging_from_config(config: dict) -> logging.Logger:
    """
    从配置字典配置日志

    Args:
        config: 配置字典，读取其中的 logging 子项

    Returns:
        logging.Logger: 配置好的日志记录器
    """
    log_config = get_logging_config()
    log_config.update(config.get('logging', {}))

    return setup_logging(
        log_dir=log_config['log_dir'],
        log_file=log_config.get('log_file'),
        log_level=log_config['level'],
        module_name='ensemble_postprocessing',
        use_basic_config=log_config.get('use_basic_config', True)
    )
