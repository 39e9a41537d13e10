"""健康监控模块

按固定间隔对部署地址执行存活探测，维护连续成功/失败计数，
写入会话日志并输出控制台提示
"""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Set, Union

from ..checkers.prober import HttpProber
from ..models.health_check import HealthCheckConfig, HealthCheckResult
from ..utils.exceptions import MonitorStateError
from ..utils.log_manager import get_logger
from .health_log import HealthLogSink
from .state_manager import StateManager

DEFAULT_LOG_DIR = 'logs'

# 事件循环只弱引用任务，这里持有运行中的任务直到结束
_running_tasks: Set[asyncio.Task] = set()


class MonitorStatus(Enum):
    """监控器生命周期"""
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class HealthMonitor:
    """健康监控器

    一个实例对应一次监控会话: IDLE -> RUNNING -> STOPPED，停止后不可恢复。
    每次探测和记录完成后才开始等待下一个间隔，探测之间不会重叠。
    """

    def __init__(self, url: str, config: HealthCheckConfig,
                 log_dir: Union[str, Path] = DEFAULT_LOG_DIR,
                 prober: Optional[HttpProber] = None):
        """初始化健康监控器

        Args:
            url: 探测目标地址
            config: 健康检查配置
            log_dir: 会话日志目录
            prober: 探测器，默认按 config 创建 HttpProber
        """
        self.url = url
        self.config = config
        self.log_dir = log_dir
        self.prober = prober or HttpProber(config)
        self.status = MonitorStatus.IDLE
        self.started_at: Optional[datetime] = None
        self.sink: Optional[HealthLogSink] = None
        self.state_manager: Optional[StateManager] = None
        self.logger = get_logger('monitor')

        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def is_running(self) -> bool:
        return self.status is MonitorStatus.RUNNING

    def start(self) -> Callable[[], None]:
        """启动监控

        同步创建会话日志文件，然后在当前事件循环上调度监控任务:
        立即探测一次，之后每隔 check_interval_ms 探测一次。

        Returns:
            取消函数，可重复调用

        Raises:
            MonitorStateError: 监控器不处于 IDLE 状态
            RuntimeError: 没有正在运行的事件循环
            OSError: 日志目录或文件无法创建
        """
        if self.status is not MonitorStatus.IDLE:
            raise MonitorStateError(
                f"监控器无法重复启动: {self.url}", state=self.status.value)

        loop = asyncio.get_running_loop()

        self.started_at = datetime.now(timezone.utc)
        self.sink = HealthLogSink.create(self.log_dir, self.started_at)
        self.state_manager = StateManager()
        self._stop_event = asyncio.Event()
        self.status = MonitorStatus.RUNNING

        self.logger.info(f"🔍 开始健康监控: {self.url}")
        self.logger.info(f"健康检查间隔: {self.config.check_interval_ms}ms")
        self.logger.info(f"健康日志文件: {self.sink.log_file}")

        self._task = loop.create_task(self._run())
        _running_tasks.add(self._task)
        self._task.add_done_callback(self._on_run_done)

        return self.cancel

    def cancel(self) -> None:
        """停止监控

        不等待进行中的探测；其结果会被丢弃。重复调用无副作用。
        """
        if self.status is MonitorStatus.STOPPED:
            return

        was_running = self.status is MonitorStatus.RUNNING
        self.status = MonitorStatus.STOPPED

        if was_running:
            self._stop_event.set()
            stats = self.state_manager.get_stats()
            self.logger.info(
                f"🛑 健康监控已停止: {self.url} "
                f"(共检查 {stats['total_checks']} 次, 成功 {stats['healthy_checks']} 次)")

    async def wait_closed(self) -> None:
        """等待监控任务结束

        Raises:
            OSError: 会话日志写入失败
        """
        if self._task is not None:
            await self._task

    async def _run(self):
        """监控循环"""
        while self.is_running:
            result = await self.prober.probe(self.url)

            # 探测期间被取消，丢弃结果
            if not self.is_running:
                break

            self._log_health_check(result)

            try:
                await asyncio.wait_for(self._stop_event.wait(),
                                       timeout=self.config.check_interval_seconds)
            except asyncio.TimeoutError:
                pass

    def _log_health_check(self, result: HealthCheckResult):
        """写入会话日志、更新计数并输出控制台提示

        写入失败时不更新计数
        """
        self.sink.append(result)
        notices = self.state_manager.update_state(result)

        for notice in notices:
            self.logger.log(notice.level, notice.message)

    def _on_run_done(self, task: asyncio.Task):
        _running_tasks.discard(task)
        if task.cancelled():
            self.status = MonitorStatus.STOPPED
            return

        error = task.exception()
        if error is not None:
            self.status = MonitorStatus.STOPPED
            self.logger.error(f"健康监控异常终止: {self.url}: {error}")

    def get_status(self) -> Dict[str, Any]:
        """获取监控会话状态

        Returns:
            监控状态信息字典
        """
        status = {
            'url': self.url,
            'status': self.status.value,
            'config': self.config.to_dict(),
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'log_file': str(self.sink.log_file) if self.sink else None,
        }

        if self.state_manager:
            status.update(self.state_manager.get_stats())

        return status


def start_monitoring(url: str, config: HealthCheckConfig,
                     log_dir: Union[str, Path] = DEFAULT_LOG_DIR) -> Callable[[], None]:
    """启动健康监控的便捷函数

    Returns:
        取消函数
    """
    return HealthMonitor(url, config, log_dir).start()
