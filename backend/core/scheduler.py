"""
后台任务调度器
用于定期执行维护任务，如清理过期的加密会话
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Scheduler:
    """简单任务调度器"""

    def __init__(self):
        self.tasks: list[asyncio.Task] = []
        self.running = False

    async def schedule_periodic(
        self,
        func: Callable[[], Awaitable[None]],
        interval_seconds: float,
        name: str = "periodic_task",
        max_retries: int = 3
    ):
        """
        调度定期任务

        Args:
            func: 要执行的异步函数
            interval_seconds: 执行间隔（秒）
            name: 任务名称
            max_retries: 单次执行失败时的最大重试次数
        """
        async def periodic_task():
            consecutive_failures = 0
            while self.running:
                await asyncio.sleep(interval_seconds)
                if not self.running:
                    break
                try:
                    logger.debug(f"执行定期任务: {name}")
                    await func()
                    consecutive_failures = 0
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    consecutive_failures += 1
                    logger.error(f"定期任务执行失败 {name}（连续第 {consecutive_failures} 次）: {e}", exc_info=True)

                    # 指数退避重试
                    if consecutive_failures <= max_retries:
                        retry_delay = min(30, 2 ** consecutive_failures)
                        logger.info(f"定期任务 {name} 将在 {retry_delay}s 后重试")
                        await asyncio.sleep(retry_delay)
                    else:
                        logger.warning(f"定期任务 {name} 连续失败 {consecutive_failures} 次，等待下次正常周期")
                        consecutive_failures = 0

        task = asyncio.create_task(periodic_task(), name=name)
        self.tasks.append(task)
        logger.debug(f"已调度定期任务: {name}, 间隔: {interval_seconds}秒")

    def start(self):
        """启动调度器"""
        self.running = True
        logger.debug("任务调度器已启动")

    async def stop(self, timeout: float = 10.0):
        """
        停止调度器，取消并等待运行中的任务

        Args:
            timeout: 等待超时时间（秒）
        """
        self.running = False
        if not self.tasks:
            logger.debug("任务调度器已停止（无活跃任务）")
            return

        for task in self.tasks:
            task.cancel()

        try:
            await asyncio.wait_for(
                asyncio.gather(*self.tasks, return_exceptions=True),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"调度器停止超时（{timeout}s），强制取消剩余任务")

        self.tasks.clear()
        logger.debug("任务调度器已停止")


# 全局调度器实例
_scheduler: Optional[Scheduler] = None


def get_scheduler() -> Scheduler:
    """获取调度器实例"""
    global _scheduler
    if _scheduler is None:
        _scheduler = Scheduler()
    return _scheduler
