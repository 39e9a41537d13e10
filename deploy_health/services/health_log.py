"""健康检查日志文件

每个监控会话一个日志文件，每次探测追加一行。写入失败不在这里处理，
直接抛给调用方。
"""

from datetime import datetime
from pathlib import Path
from typing import Union

from ..models.health_check import HealthCheckResult, utc_timestamp

HEALTHY_MARKER = '✅'
UNHEALTHY_MARKER = '❌'


def session_log_filename(started_at: datetime) -> str:
    """会话日志文件名，时间中的冒号替换为短横线"""
    return f"health-{utc_timestamp(started_at).replace(':', '-')}.log"


def format_log_line(result: HealthCheckResult) -> str:
    """
    格式化单条探测记录

    格式: [时间] [INFO|ERROR] url - Status: N ✅|❌ 响应时间 - Error: 错误信息
    空的响应时间和错误部分省略

    Args:
        result: 探测结果

    Returns:
        str: 不含换行符的日志行
    """
    level = 'INFO' if result.healthy else 'ERROR'
    marker = HEALTHY_MARKER if result.healthy else UNHEALTHY_MARKER

    parts = [f"[{result.timestamp}] [{level}] {result.url} - Status: {result.status} {marker}"]
    if result.response_time:
        parts.append(result.response_time)
    if result.error:
        parts.append(f"- Error: {result.error}")
    return ' '.join(parts)


class HealthLogSink:
    """会话级的只追加日志文件"""

    def __init__(self, log_file: Path):
        self.log_file = log_file

    @classmethod
    def create(cls, log_dir: Union[str, Path], started_at: datetime) -> 'HealthLogSink':
        """
        创建日志目录和会话日志文件

        Args:
            log_dir: 日志目录，不存在时递归创建
            started_at: 会话开始时间

        Returns:
            HealthLogSink: 日志文件实例

        Raises:
            OSError: 目录或文件无法创建
        """
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / session_log_filename(started_at)
        log_file.touch(exist_ok=True)
        return cls(log_file)

    def append(self, result: HealthCheckResult) -> str:
        """追加一条探测记录，返回写入的行"""
        line = format_log_line(result)
        with open(self.log_file, 'a', encoding='utf-8') as f:
            f.write(line + '\n')
        return line

    def read_lines(self) -> list:
        """读取已写入的所有记录"""
        with open(self.log_file, 'r', encoding='utf-8') as f:
            return f.read().splitlines()
