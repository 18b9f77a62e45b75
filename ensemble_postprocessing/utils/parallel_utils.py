"""
并行计算工具模块
提供按日历日组合扇出、按原顺序汇总的并行处理功能，支持协作式取消
"""

import multiprocessing as mp
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Tuple
import logging
import threading

logger = logging.getLogger(__name__)


class PipelineCancelled(RuntimeError):
    """运行在两个日历日组合之间被取消"""


class ParallelProcessor:
    """并行处理器类"""

    def __init__(self, n_jobs: Optional[int] = None, backend: str = "process"):
        """
        初始化并行处理器

        Args:
            n_jobs: 并行作业数，None表示使用所有可用CPU
            backend: 后端类型，"process"或"thread"
        """
        self.n_jobs = n_jobs or min(mp.cpu_count(), 32)  # 限制最大32个进程
        self.backend = backend
        self.executor_class = ProcessPoolExecutor if backend == "process" else ThreadPoolExecutor

        logger.debug(f"初始化并行处理器: {self.n_jobs} 个 {backend} 进程")

    @staticmethod
    def _check_cancel(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise PipelineCancelled("运行已被取消")

    def parallel_map(self, func: Callable, iterable: Iterable,
                     cancel_event: Optional[threading.Event] = None,
                     initializer: Optional[Callable] = None, initargs: Tuple = (),
                     **kwargs) -> List:
        """
        并行映射函数，结果顺序与输入一致

        Args:
            func: 要执行的函数（进程后端下须为模块级函数）
            iterable: 迭代对象
            cancel_event: 取消事件，每个任务之间检查一次
            initializer: 每个工作进程/线程启动时调用一次，用于下发大块只读数据
            initargs: initializer 的参数
            **kwargs: 传递给函数的额外参数（每个任务都会传递）

        Returns:
            结果列表

        Raises:
            PipelineCancelled: 取消事件被设置
        """
        items = list(iterable)
        if self.n_jobs == 1:
            if initializer is not None:
                initializer(*initargs)
            results = []
            for item in items:
                self._check_cancel(cancel_event)
                results.append(func(item, **kwargs))
            return results

        results = [None] * len(items)
        executor = self.executor_class(max_workers=self.n_jobs, initializer=initializer,
                                       initargs=initargs)
        try:
            futures = [executor.submit(func, item, **kwargs) for item in items]
            for i, future in enumerate(futures):
                self._check_cancel(cancel_event)
                try:
                    results[i] = future.result()
                except Exception as e:
                    logger.error(f"处理 {items[i]} 时出错: {str(e)}")
                    raise
                logger.debug(f"完成处理: {items[i]}")
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        return results
