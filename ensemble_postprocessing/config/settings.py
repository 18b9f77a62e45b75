"""
集合后处理工具包配置文件
包含日历窗口、率定、检验、输出和日志的全部配置参数
"""

from typing import Dict, List, Any, Tuple, Optional

# ==================== 基础配置 ====================
# 候选模拟模型（输入文件中 observed 之后的模拟列，按顺序命名）
MODELS: List[str] = ["model_1"]

# 提前期聚合区间 (begin, end)，第 i 个元素对应提前期 i+1
LEAD_SPANS: List[Tuple[int, int]] = [(lead, lead) for lead in range(1, 8)]

# ==================== 率定配置 ====================
CALIBRATION_CONFIG = {
    "forecast_len": 7,           # nf: 预报时长（天）
    "analysis_len": 3,           # na: 分析窗口长度（天）
    "buffer_len": 15,            # 缓冲长度（天）
    "ensemble_size": 50,         # nmem: 集合成员数
    "calibration_years": 10,     # 用于拟合系数的前若干个出现年份
    "eligible_years": (1900, 2100),
    "eligible_end_inclusive": False,  # 率定年份上界默认不包含
    "seed": 12345,
    "nonnegative": True,         # 径流/降水成员截断为非负
}

# ==================== 检验配置 ====================
VERIFICATION_CONFIG = {
    "verification_years": (2001, 2010),
    "verification_end_inclusive": True,
}

# ==================== 并行配置 ====================
PARALLEL_CONFIG = {
    "n_jobs": 1,
    "backend": "process",
}

# ==================== 输出配置 ====================
OUTPUT_CONFIG = {
    "float_format_result": "%.2f",
    "float_format_coef": "%.4f",
    "separator": "\t",
    "encoding": "utf-8",
}

# ==================== 日志配置 ====================
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "file_mode": "w",
    "log_dir": "./log",
}


# ==================== 配置获取函数 ====================
def get_calibration_config() -> Dict[str, Any]:
    """获取率定配置"""
    return CALIBRATION_CONFIG.copy()

def get_verification_config() -> Dict[str, Any]:
    """获取检验配置"""
    return VERIFICATION_CONFIG.copy()

def get_parallel_config() -> Dict[str, Any]:
    """获取并行配置"""
    return PARALLEL_CONFIG.copy()

def get_output_config() -> Dict[str, Any]:
    """获取输出配置"""
    return OUTPUT_CONFIG.copy()

def get_logging_config() -> Dict[str, Any]:
    """获取日志配置"""
    return LOGGING_CONFIG.copy()

def get_lead_spans() -> List[Tuple[int, int]]:
    """获取提前期聚合区间"""
    return list(LEAD_SPANS)

def get_model_names() -> List[str]:
    """获取模型名称列表"""
    return list(MODELS)


def build_run_config(lead_spans: Optional[List[Tuple[int, int]]] = None,
                     **overrides) -> Dict[str, Any]:
    """
    组装一次运行所需的完整配置

    Args:
        lead_spans: 提前期聚合区间，None 表示按 forecast_len 生成单日区间
        **overrides: 覆盖率定/检验/并行配置中的任意键

    Returns:
        扁平化的运行配置字典
    """
    config: Dict[str, Any] = {}
    config.update(get_calibration_config())
    config.update(get_verification_config())
    config.update(get_parallel_config())

    unknown = [key for key in overrides if key not in config]
    if unknown:
        raise ValueError(f"未知配置项: {unknown}")
    config.update(overrides)

    if lead_spans is None:
        if "forecast_len" in overrides:
            lead_spans = [(lead, lead) for lead in range(1, config["forecast_len"] + 1)]
        else:
            lead_spans = get_lead_spans()
    config["lead_spans"] = [tuple(int(v) for v in span) for span in lead_spans]

    validate_config(config)
    return config


def _check_year_range(name: str, year_range) -> None:
    if len(year_range) != 2:
        raise ValueError(f"{name} 必须为 (起始年, 结束年): {year_range}")
    start, end = year_range
    if start > end:
        raise ValueError(f"{name} 年份范围颠倒: {year_range}")


def validate_config(config: Dict[str, Any]) -> bool:
    """
    验证配置参数

    Args:
        config: build_run_config 生成的配置字典

    Returns:
        True（无效时抛出 ValueError）
    """
    for key in ("forecast_len", "analysis_len", "ensemble_size", "calibration_years"):
        if int(config[key]) < 1:
            raise ValueError(f"配置项 {key} 必须为正整数: {config[key]}")
    if int(config["buffer_len"]) < 0:
        raise ValueError(f"配置项 buffer_len 不能为负: {config['buffer_len']}")

    lead_spans = config["lead_spans"]
    if len(lead_spans) != config["forecast_len"]:
        raise ValueError(
            f"提前期区间数量 ({len(lead_spans)}) 与 forecast_len ({config['forecast_len']}) 不一致"
        )
    for lead, (begin, end) in enumerate(lead_spans, 1):
        if begin < 1 or begin > end:
            raise ValueError(f"提前期 {lead} 的聚合区间无效: ({begin}, {end})")

    _check_year_range("eligible_years", config["eligible_years"])
    _check_year_range("verification_years", config["verification_years"])

    if config.get("backend", "process") not in ("process", "thread"):
        raise ValueError(f"不支持的并行后端: {config['backend']}")

    return True


def window_length(config: Dict[str, Any]) -> int:
    """训练窗口长度 ndays = na + nf + buffer"""
    return int(config["analysis_len"]) + int(config["forecast_len"]) + int(config["buffer_len"])
