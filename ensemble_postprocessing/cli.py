#!/usr/bin/env python3
"""
集合后处理工具包命令行接口
提供便捷的命令行操作
"""

import argparse
import datetime
import logging
import sys
from typing import List, Optional, Tuple

from .config.settings import (
    get_calibration_config, get_lead_spans, get_model_names, get_parallel_config,
    get_verification_config, build_run_config
)
from .pipeline import CalendarCalibrationPipeline
from .utils.data_loader import load_daily_series
from .utils.logging_config import setup_logging
from .utils.parallel_utils import PipelineCancelled
from .utils.validation import InputValidationError


def _lead_span(text: str) -> Tuple[int, int]:
    """解析 B:E 形式的提前期区间"""
    try:
        begin, end = (int(v) for v in text.split(":"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"提前期区间格式应为 B:E，实际: {text}")
    return begin, end


def setup_parser() -> argparse.ArgumentParser:
    """设置命令行参数解析器"""
    parser = argparse.ArgumentParser(
        description="日历日分层集合预报后处理命令行接口",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
使用示例:
  # 对输入文件中的全部模型运行率定与检验
  ensemble-postprocess run --input station.txt --output-dir ./out

  # 指定模型名称与窗口参数
  ensemble-postprocess run --input station.txt --output-dir ./out \\
      --model-names hbv gr4j --nf 7 --na 3 --buffer 15 --nmem 50

  # 显示默认配置
  ensemble-postprocess info
        """
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="日志级别 (默认: INFO)"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="日志文件名"
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default="./log",
        help="日志目录路径 (默认: ./log)"
    )

    subparsers = parser.add_subparsers(dest="command", help="可用命令")

    calibration = get_calibration_config()
    verification = get_verification_config()
    parallel = get_parallel_config()

    run_parser = subparsers.add_parser("run", help="运行日历日率定、集合组装与技巧检验")
    run_parser.add_argument("--input", required=True, help="逐日输入文件")
    run_parser.add_argument("--output-dir", required=True, help="输出目录")
    run_parser.add_argument("--model-names", nargs="+", help="模拟列对应的模型名称")
    run_parser.add_argument("--models", nargs="+", help="只处理这些模型（默认全部）")
    run_parser.add_argument("--nf", type=int, default=calibration["forecast_len"], help="预报时长")
    run_parser.add_argument("--na", type=int, default=calibration["analysis_len"], help="分析窗口长度")
    run_parser.add_argument("--buffer", type=int, default=calibration["buffer_len"], help="缓冲长度")
    run_parser.add_argument("--nmem", type=int, default=calibration["ensemble_size"], help="集合成员数")
    run_parser.add_argument("--calibration-years", type=int, default=calibration["calibration_years"],
                            help="用于拟合系数的年数")
    run_parser.add_argument("--eligible-years", nargs=2, type=int, metavar=("START", "END"),
                            default=list(calibration["eligible_years"]), help="率定合格年份范围")
    run_parser.add_argument("--eligible-end-inclusive", action="store_true",
                            help="率定年份上界包含 END（默认不包含）")
    run_parser.add_argument("--verification-years", nargs=2, type=int, metavar=("START", "END"),
                            default=list(verification["verification_years"]), help="检验年份范围（含两端）")
    run_parser.add_argument("--lead-spans", nargs="+", type=_lead_span,
                            help="每个提前期的聚合区间 B:E（默认单日区间 1:1 .. nf:nf）")
    run_parser.add_argument("--seed", type=int, default=calibration["seed"], help="随机种子")
    run_parser.add_argument("--allow-negative", action="store_true", help="不截断负的集合成员")
    run_parser.add_argument("--n-jobs", type=int, default=parallel["n_jobs"], help="并行作业数")
    run_parser.add_argument("--backend", choices=["process", "thread"], default=parallel["backend"],
                            help="并行后端")

    subparsers.add_parser("info", help="显示默认配置")

    return parser


def build_config_from_args(args) -> dict:
    """由命令行参数组装运行配置"""
    return build_run_config(
        lead_spans=args.lead_spans,
        forecast_len=args.nf,
        analysis_len=args.na,
        buffer_len=args.buffer,
        ensemble_size=args.nmem,
        calibration_years=args.calibration_years,
        eligible_years=tuple(args.eligible_years),
        eligible_end_inclusive=args.eligible_end_inclusive,
        verification_years=tuple(args.verification_years),
        seed=args.seed,
        nonnegative=not args.allow_negative,
        n_jobs=args.n_jobs,
        backend=args.backend,
    )


def run_pipeline(args) -> None:
    """运行率定流程"""
    config = build_config_from_args(args)
    dataset = load_daily_series(args.input, args.model_names)
    pipeline = CalendarCalibrationPipeline(config)
    results = pipeline.run(dataset, models=args.models, output_dir=args.output_dir)

    print(f"处理完成，结果保存在: {args.output_dir}")
    for model, result in results.items():
        print(f"  {model}: 率定 {result.coefficients.sizes['pair']} 个日历日, "
              f"失败 {len(result.failed_pairs)} 个")


def show_info(args) -> None:
    """显示默认配置"""
    print("集合预报后处理工具包")
    print("=" * 30)
    print("率定配置:")
    for key, value in get_calibration_config().items():
        print(f"  {key}: {value}")
    print("检验配置:")
    for key, value in get_verification_config().items():
        print(f"  {key}: {value}")
    print(f"提前期区间: {get_lead_spans()}")
    print(f"默认模型名称: {get_model_names()}")


def main(argv: Optional[List[str]] = None) -> int:
    """主函数"""
    parser = setup_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    log_file = args.log_file
    if log_file is None:
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = f"ensemble_postprocessing_{timestamp}.log"
    setup_logging(log_dir=args.log_dir, log_file=log_file, log_level=args.log_level)

    try:
        if args.command == "run":
            run_pipeline(args)
        elif args.command == "info":
            show_info(args)
    except KeyboardInterrupt:
        print("\n操作被用户中断")
        return 1
    except PipelineCancelled as e:
        print(f"运行被取消: {e}")
        return 1
    except (InputValidationError, ValueError, FileNotFoundError) as e:
        print(f"错误: {e}")
        if args.log_level == "DEBUG":
            logging.getLogger(__name__).exception("详细错误信息")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
