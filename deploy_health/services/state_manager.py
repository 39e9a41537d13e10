"""状态管理器模块

维护监控会话内的连续成功/失败计数，并决定每次探测后输出哪些控制台提示
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

from ..models.health_check import HealthCheckResult, MonitorState

# 连续成功达到该倍数时输出稳定提示
STABLE_HEARTBEAT_EVERY = 5
# 连续失败达到该次数后每次都输出告警
ALERT_THRESHOLD = 3


@dataclass(frozen=True)
class ConsoleNotice:
    """一条控制台提示"""
    level: int
    message: str


class StateManager:
    """状态管理器

    每个监控会话独立持有一个实例，会话结束后丢弃
    """

    def __init__(self):
        self.state = MonitorState()
        self.total_checks = 0
        self.healthy_checks = 0
        self.last_result: Optional[HealthCheckResult] = None

    def update_state(self, result: HealthCheckResult) -> List[ConsoleNotice]:
        """更新连续计数

        Args:
            result: 健康检查结果

        Returns:
            本次需要输出的控制台提示
        """
        self.state.record(result.healthy)
        self.total_checks += 1
        if result.healthy:
            self.healthy_checks += 1
        self.last_result = result

        return console_notices(result, self.state)

    def get_stats(self) -> Dict[str, Any]:
        """获取会话统计信息"""
        unhealthy_checks = self.total_checks - self.healthy_checks
        return {
            'healthy_streak': self.state.healthy_streak,
            'unhealthy_streak': self.state.unhealthy_streak,
            'total_checks': self.total_checks,
            'healthy_checks': self.healthy_checks,
            'unhealthy_checks': unhealthy_checks,
            'health_rate': self.healthy_checks / self.total_checks if self.total_checks else 0,
            'last_status': self.last_result.status if self.last_result else None,
        }


def console_notices(result: HealthCheckResult, state: MonitorState) -> List[ConsoleNotice]:
    """根据探测结果和计数决定控制台提示

    健康时只在首次成功和每 5 次连续成功时提示；不健康时每次提示，
    连续失败 3 次及以上时每次追加告警。
    """
    notices = []

    if result.healthy:
        if state.healthy_streak == 1:
            notices.append(ConsoleNotice(
                logging.INFO,
                f"✅ 健康检查通过: {result.url} (状态码: {result.status})"
            ))
        if state.healthy_streak % STABLE_HEARTBEAT_EVERY == 0:
            notices.append(ConsoleNotice(
                logging.INFO,
                f"✅ 健康检查稳定: 连续 {state.healthy_streak} 次检查成功"
            ))
    else:
        message = f"❌ 健康检查失败: {result.url} (状态码: {result.status})"
        if result.error:
            message += f": {result.error}"
        notices.append(ConsoleNotice(logging.ERROR, message))

        if state.unhealthy_streak >= ALERT_THRESHOLD:
            notices.append(ConsoleNotice(
                logging.CRITICAL,
                f"⚠️ 告警: 连续 {state.unhealthy_streak} 次健康检查失败!"
            ))

    return notices
