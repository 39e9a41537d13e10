"""健康监控器测试"""

import asyncio
import logging
import tempfile
from pathlib import Path
from unittest.mock import Mock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from deploy_health.models.health_check import HealthCheckConfig, HealthCheckResult, utc_timestamp
from deploy_health.services.health_monitor import (
    HealthMonitor,
    MonitorStatus,
    start_monitoring
)
from deploy_health.utils.exceptions import MonitorStateError

URL = 'https://example.vercel.app'
FAST_CONFIG = HealthCheckConfig(expected_status=200, timeout_ms=1000, check_interval_ms=10)


class ScriptedProber:
    """按脚本返回结果的探测器，脚本用完后停止监控"""

    def __init__(self, script, monitor=None):
        self.script = list(script)
        self.monitor = monitor
        self.calls = 0

    async def probe(self, url, retry_attempt=0):
        self.calls += 1
        if self.script:
            healthy = self.script.pop(0)
        else:
            healthy = True
            if self.monitor is not None:
                self.monitor.cancel()
        return HealthCheckResult(
            timestamp=utc_timestamp(),
            url=url,
            status=200 if healthy else 500,
            healthy=healthy,
            response_time_ms=5
        )


class BlockingProber:
    """探测一直挂起，直到测试放行"""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def probe(self, url, retry_attempt=0):
        self.started.set()
        await self.release.wait()
        return HealthCheckResult(utc_timestamp(), url, 200, True, response_time_ms=1)


async def wait_until(predicate, timeout=2.0):
    """轮询等待条件成立"""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("等待条件超时")
        await asyncio.sleep(0.005)


class TestHealthMonitorLifecycle:
    """生命周期测试"""

    @pytest.mark.asyncio
    async def test_start_creates_log_file_synchronously(self):
        """测试start返回前已创建日志文件"""
        with tempfile.TemporaryDirectory() as temp_dir:
            monitor = HealthMonitor(URL, FAST_CONFIG, f'{temp_dir}/logs',
                                    prober=ScriptedProber([]))

            cancel = monitor.start()

            assert monitor.status is MonitorStatus.RUNNING
            assert monitor.sink.log_file.exists()
            assert monitor.sink.log_file.name.startswith('health-')
            assert ':' not in monitor.sink.log_file.name

            cancel()
            await monitor.wait_closed()

    @pytest.mark.asyncio
    async def test_first_probe_is_immediate(self):
        """测试启动后立即探测，不等待间隔"""
        config = HealthCheckConfig(expected_status=200, check_interval_ms=60000)
        with tempfile.TemporaryDirectory() as temp_dir:
            prober = ScriptedProber([True])
            monitor = HealthMonitor(URL, config, temp_dir, prober=prober)
            monitor.start()

            await wait_until(lambda: len(monitor.sink.read_lines()) == 1)

            monitor.cancel()
            await asyncio.wait_for(monitor.wait_closed(), timeout=1)
            assert prober.calls == 1

    @pytest.mark.asyncio
    async def test_one_line_per_probe(self):
        """测试每次探测写一行"""
        with tempfile.TemporaryDirectory() as temp_dir:
            monitor = HealthMonitor(URL, FAST_CONFIG, temp_dir)
            prober = ScriptedProber([True, False, True], monitor)
            monitor.prober = prober

            monitor.start()
            await asyncio.wait_for(monitor.wait_closed(), timeout=2)

            lines = monitor.sink.read_lines()
            assert len(lines) == 3
            assert '[INFO]' in lines[0] and '✅' in lines[0]
            assert '[ERROR]' in lines[1] and '❌' in lines[1]
            assert all(URL in line for line in lines)

    @pytest.mark.asyncio
    async def test_cancel_is_idempotent(self):
        """测试重复取消无副作用"""
        with tempfile.TemporaryDirectory() as temp_dir:
            monitor = HealthMonitor(URL, FAST_CONFIG, temp_dir, prober=ScriptedProber([]))
            cancel = monitor.start()

            cancel()
            cancel()
            monitor.cancel()
            await monitor.wait_closed()

            assert monitor.status is MonitorStatus.STOPPED

    @pytest.mark.asyncio
    async def test_no_lines_after_cancel(self):
        """测试取消后不再写入日志"""
        with tempfile.TemporaryDirectory() as temp_dir:
            monitor = HealthMonitor(URL, FAST_CONFIG, temp_dir, prober=ScriptedProber([]))
            cancel = monitor.start()
            await wait_until(lambda: len(monitor.sink.read_lines()) >= 3)

            cancel()
            await monitor.wait_closed()
            count = len(monitor.sink.read_lines())
            await asyncio.sleep(0.05)

            assert len(monitor.sink.read_lines()) == count

    @pytest.mark.asyncio
    async def test_in_flight_result_discarded(self):
        """测试取消时进行中的探测结果被丢弃"""
        with tempfile.TemporaryDirectory() as temp_dir:
            prober = BlockingProber()
            monitor = HealthMonitor(URL, FAST_CONFIG, temp_dir, prober=prober)
            monitor.start()
            await prober.started.wait()

            monitor.cancel()
            prober.release.set()
            await monitor.wait_closed()

            assert monitor.sink.read_lines() == []
            assert monitor.state_manager.total_checks == 0

    @pytest.mark.asyncio
    async def test_start_twice_raises(self):
        """测试重复启动抛出状态错误"""
        with tempfile.TemporaryDirectory() as temp_dir:
            monitor = HealthMonitor(URL, FAST_CONFIG, temp_dir, prober=ScriptedProber([]))
            monitor.start()

            with pytest.raises(MonitorStateError):
                monitor.start()

            monitor.cancel()
            await monitor.wait_closed()

            with pytest.raises(MonitorStateError):
                monitor.start()

    def test_start_without_event_loop(self):
        """测试没有运行中的事件循环时无法启动"""
        with tempfile.TemporaryDirectory() as temp_dir:
            monitor = HealthMonitor(URL, FAST_CONFIG, temp_dir, prober=ScriptedProber([]))

            with pytest.raises(RuntimeError):
                monitor.start()

            assert monitor.status is MonitorStatus.IDLE
            assert monitor.sink is None

    @pytest.mark.asyncio
    async def test_unwritable_log_dir_fails_start(self):
        """测试日志目录无法创建时start抛出OSError"""
        with tempfile.NamedTemporaryFile() as temp_file:
            monitor = HealthMonitor(URL, FAST_CONFIG, temp_file.name, prober=ScriptedProber([]))

            with pytest.raises(OSError):
                monitor.start()

            assert monitor.status is MonitorStatus.IDLE

    @pytest.mark.asyncio
    async def test_write_failure_stops_monitor(self):
        """测试日志写入失败时监控停止并向等待方抛出"""
        with tempfile.TemporaryDirectory() as temp_dir:
            monitor = HealthMonitor(URL, FAST_CONFIG, temp_dir, prober=ScriptedProber([]))
            monitor.logger = Mock()
            monitor.start()
            monitor.sink.append = Mock(side_effect=OSError("No space left on device"))

            with pytest.raises(OSError):
                await asyncio.wait_for(monitor.wait_closed(), timeout=2)

            assert monitor.status is MonitorStatus.STOPPED
            monitor.logger.error.assert_called_once()
            monitor.logger.log.assert_not_called()

            # 写入失败的那次探测不计入统计
            status = monitor.get_status()
            assert status['total_checks'] == 0
            assert status['healthy_streak'] == 0


class TestHealthMonitorNotices:
    """控制台提示测试"""

    @pytest.mark.asyncio
    async def test_notice_sequence(self):
        """测试成功、失败、告警和恢复提示"""
        with tempfile.TemporaryDirectory() as temp_dir:
            monitor = HealthMonitor(URL, FAST_CONFIG, temp_dir)
            monitor.prober = ScriptedProber([True, True, False, False, False, True], monitor)
            monitor.logger = Mock()

            monitor.start()
            await asyncio.wait_for(monitor.wait_closed(), timeout=2)

            levels = [c.args[0] for c in monitor.logger.log.call_args_list]
            assert levels == [
                logging.INFO,
                logging.ERROR,
                logging.ERROR,
                logging.ERROR, logging.CRITICAL,
                logging.INFO,
            ]

    @pytest.mark.asyncio
    async def test_start_and_stop_banners(self):
        """测试启动和停止提示"""
        with tempfile.TemporaryDirectory() as temp_dir:
            monitor = HealthMonitor(URL, FAST_CONFIG, temp_dir, prober=ScriptedProber([]))
            monitor.logger = Mock()

            monitor.start()
            monitor.cancel()
            await monitor.wait_closed()

            messages = [c.args[0] for c in monitor.logger.info.call_args_list]
            assert URL in messages[0]
            assert any('10ms' in message for message in messages)
            assert any(str(monitor.sink.log_file) in message for message in messages)
            assert '停止' in messages[-1]


class TestHealthMonitorStatus:
    """状态查询测试"""

    @pytest.mark.asyncio
    async def test_get_status(self):
        """测试获取监控状态"""
        with tempfile.TemporaryDirectory() as temp_dir:
            monitor = HealthMonitor(URL, FAST_CONFIG, temp_dir)
            monitor.prober = ScriptedProber([True, False], monitor)

            idle = monitor.get_status()
            monitor.start()
            await monitor.wait_closed()
            stopped = monitor.get_status()

            assert idle['status'] == 'idle'
            assert idle['log_file'] is None
            assert stopped['status'] == 'stopped'
            assert stopped['total_checks'] == 2
            assert stopped['unhealthy_streak'] == 1
            assert stopped['config']['check_interval_ms'] == 10
            assert stopped['log_file'].endswith('.log')


class TestStartMonitoring:
    """便捷函数测试"""

    @pytest.mark.asyncio
    async def test_start_monitoring_against_server(self):
        """测试对本地服务启动监控并取消"""
        hits = []

        async def handler(request):
            hits.append(request.path)
            return web.Response(text='ok')

        app = web.Application()
        app.router.add_get('/', handler)
        server = TestServer(app)
        await server.start_server()

        try:
            with tempfile.TemporaryDirectory() as temp_dir:
                cancel = start_monitoring(str(server.make_url('/')), FAST_CONFIG, temp_dir)
                await wait_until(lambda: len(hits) >= 2)
                cancel()
                cancel()
                await asyncio.sleep(0.05)

                log_files = list(Path(temp_dir).glob('health-*.log'))
                assert len(log_files) == 1
                lines = log_files[0].read_text(encoding='utf-8').splitlines()
                assert lines
                assert all('Status: 200 ✅' in line for line in lines)
        finally:
            await server.close()
