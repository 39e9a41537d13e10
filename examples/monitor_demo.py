#!/usr/bin/env python3
"""
健康监控演示

在本地启动一个模拟部署服务，期间让它故障一段时间再恢复，展示：
1. 配置文件加载和环境合并
2. 连续成功/失败提示与告警
3. 会话健康日志
4. 取消监控
"""

import asyncio
import os
# 添加项目根目录到Python路径
import sys
import tempfile
from pathlib import Path

import yaml
from aiohttp import web

sys.path.insert(0, str(Path(__file__).parent.parent))

from deploy_health.services.config_manager import ConfigManager
from deploy_health.services.health_monitor import HealthMonitor
from deploy_health.utils.log_manager import configure_logging


class FlakyDeployment:
    """模拟部署: 按请求次数在正常和故障之间切换"""

    def __init__(self, failing_from: int, failing_until: int):
        self.requests = 0
        self.failing_from = failing_from
        self.failing_until = failing_until

    async def handle(self, request):
        self.requests += 1
        if self.failing_from <= self.requests < self.failing_until:
            return web.Response(status=502, text='Bad Gateway')
        return web.Response(text='ok')


async def demo_monitor():
    """演示健康监控"""
    print("🚀 部署健康监控演示")
    print("=" * 50)

    configure_logging({'log_level': 'INFO'})

    deployment = FlakyDeployment(failing_from=7, failing_until=11)
    app = web.Application()
    app.router.add_get('/', deployment.handle)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, '127.0.0.1', 8765)
    await site.start()

    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = os.path.join(temp_dir, 'deploy.yaml')
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump({
                'health_check': {'expected_status': 200, 'timeout_ms': 2000},
                'environments': {
                    'local': {
                        'url': 'http://127.0.0.1:8765/',
                        'health_check': {'check_interval_ms': 300}
                    }
                }
            }, f)

        print("\n1. 加载配置")
        config_manager = ConfigManager(config_path)
        config_manager.load_config()
        url = config_manager.get_environment_url('local')
        health_config = config_manager.get_health_check_config('local')
        print(f"   探测地址: {url}")
        print(f"   健康检查配置: {health_config.to_dict()}")

        print("\n2. 启动监控（第7到10次请求返回502）")
        monitor = HealthMonitor(url, health_config, os.path.join(temp_dir, 'logs'))
        cancel = monitor.start()

        await asyncio.sleep(5)

        print("\n3. 取消监控")
        cancel()
        await monitor.wait_closed()

        print("\n4. 会话健康日志")
        for line in monitor.sink.read_lines():
            print(f"   {line}")

        stats = monitor.get_status()
        print(f"\n共检查 {stats['total_checks']} 次, 健康率 {stats['health_rate']:.0%}")

    await runner.cleanup()
    print("\n✅ 演示完成")


if __name__ == "__main__":
    asyncio.run(demo_monitor())
