"""HTTP 存活探测器"""

import asyncio
import time
from typing import Optional

import aiohttp

from ..models.health_check import HealthCheckConfig, HealthCheckResult, utc_timestamp
from ..utils.error_handler import RetryConfig, RetryHandler
from ..utils.exceptions import ErrorCode, ProbeError
from ..utils.log_manager import get_logger

# 传输层失败在重试耗尽后合成的状态码
UNAVAILABLE_STATUS = 503


class HttpProber:
    """HTTP 存活探测器

    对目标 URL 发起一次 GET 请求并按期望状态码分类。任何 HTTP 状态码都是
    有效结果；只有传输层失败（连接错误、超时、DNS 解析失败）才会重试，
    重试耗尽后返回 503 的不健康结果。probe 不会抛出异常。
    """

    def __init__(self, config: HealthCheckConfig,
                 retry_config: Optional[RetryConfig] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        """
        初始化探测器

        Args:
            config: 健康检查配置
            retry_config: 重试配置，默认 3 次尝试、固定间隔 1 秒
            session: 外部提供的 aiohttp 会话；为 None 时每次探测新建会话
        """
        self.config = config
        self.retry_handler = RetryHandler(retry_config)
        self.session = session
        self.logger = get_logger('checker.prober')

    async def probe(self, url: str, retry_attempt: int = 0) -> HealthCheckResult:
        """
        执行一次存活探测

        Args:
            url: 目标 URL
            retry_attempt: 已消耗的尝试次数，从第 retry_attempt + 1 次尝试开始

        Returns:
            HealthCheckResult: 探测结果
        """
        max_attempts = self.retry_handler.config.max_attempts
        attempt = retry_attempt

        while True:
            attempt += 1
            timestamp = utc_timestamp()
            try:
                return await self._request(url, timestamp, attempt)
            except ProbeError as error:
                if not self.retry_handler.should_retry(error, attempt):
                    self.logger.error(
                        f"健康检查失败 {url}，已达到最大尝试次数 {max_attempts}: {error.message}")
                    return HealthCheckResult(
                        timestamp=timestamp,
                        url=url,
                        status=UNAVAILABLE_STATUS,
                        healthy=False,
                        error=error.message
                    )

                delay = self.retry_handler.config.delay
                self.logger.warning(
                    f"健康检查尝试失败 ({attempt}/{max_attempts})，{delay:.2f}秒后重试: {error.message}")
                await asyncio.sleep(delay)

    async def _request(self, url: str, timestamp: str, attempt: int) -> HealthCheckResult:
        """发起单次 GET 请求，传输层异常统一转换为 ProbeError"""
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
        start_time = time.time()

        try:
            if self.session is not None:
                status = await self._get_status(self.session, url, timeout)
            else:
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    status = await self._get_status(session, url, timeout)
        except asyncio.TimeoutError as e:
            raise ProbeError(
                f"timeout of {self.config.timeout_ms}ms exceeded",
                ErrorCode.TIMEOUT_ERROR,
                url=url,
                attempt=attempt,
                cause=e
            )
        except Exception as e:
            raise ProbeError(
                str(e) or type(e).__name__,
                ErrorCode.CONNECTION_ERROR,
                url=url,
                attempt=attempt,
                cause=e
            )

        response_time_ms = int((time.time() - start_time) * 1000)
        return HealthCheckResult(
            timestamp=timestamp,
            url=url,
            status=status,
            healthy=status == self.config.expected_status,
            response_time_ms=response_time_ms
        )

    @staticmethod
    async def _get_status(session: aiohttp.ClientSession, url: str,
                          timeout: aiohttp.ClientTimeout) -> int:
        async with session.get(url, timeout=timeout) as response:
            await response.read()
            return response.status


async def probe(url: str, config: HealthCheckConfig, retry_attempt: int = 0) -> HealthCheckResult:
    """对 url 执行一次探测的便捷函数"""
    return await HttpProber(config).probe(url, retry_attempt)
