#!/usr/bin/env python3
"""
部署健康监控命令行入口

对部署地址执行单次或持续的存活探测，持续监控时写入会话健康日志，
收到 SIGINT/SIGTERM 后停止。
"""

import argparse
import asyncio
import signal
import sys
from typing import Optional, Dict, Any, List, Tuple

from deploy_health.checkers.prober import HttpProber
from deploy_health.models.health_check import HealthCheckConfig
from deploy_health.services.config_manager import ConfigManager
from deploy_health.services.health_monitor import HealthMonitor, DEFAULT_LOG_DIR
from deploy_health.utils.exceptions import DeployHealthError, ConfigError
from deploy_health.utils.log_manager import log_manager

# 版本信息
__version__ = "1.0.0"


def create_argument_parser() -> argparse.ArgumentParser:
    """创建命令行参数解析器"""
    parser = argparse.ArgumentParser(
        prog='deploy-health',
        description='部署健康监控 - 探测部署地址的存活状态并记录健康日志',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例用法:
  %(prog)s check https://example.vercel.app             # 执行一次健康检查
  %(prog)s monitor https://example.vercel.app -i 10000  # 每10秒检查一次
  %(prog)s -c deploy.yaml -e production monitor         # 使用配置文件中的环境
  %(prog)s validate deploy.yaml                         # 验证配置文件格式
        """
    )

    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config', '-c',
        help='YAML配置文件路径'
    )

    parser.add_argument(
        '--env', '-e',
        help='配置文件中的部署环境名称'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='设置日志级别（覆盖配置文件设置）'
    )

    subparsers = parser.add_subparsers(dest='command')

    monitor_parser = subparsers.add_parser(
        'monitor',
        aliases=['healthcheck'],
        help='持续监控部署健康状态'
    )
    _add_probe_arguments(monitor_parser)
    monitor_parser.add_argument(
        '--interval', '-i',
        type=int,
        help='检查间隔（毫秒），默认30000'
    )
    monitor_parser.add_argument(
        '--log-dir',
        help=f'健康日志目录，默认 {DEFAULT_LOG_DIR}'
    )

    check_parser = subparsers.add_parser(
        'check',
        help='执行一次健康检查'
    )
    _add_probe_arguments(check_parser)

    validate_parser = subparsers.add_parser(
        'validate',
        help='验证配置文件格式'
    )
    validate_parser.add_argument(
        'config_file',
        help='YAML配置文件路径'
    )

    return parser


def _add_probe_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        'url',
        nargs='?',
        help='探测地址，未指定时使用 --env 对应环境的 url'
    )
    parser.add_argument(
        '--timeout', '-t',
        type=int,
        help='请求超时（毫秒），默认5000'
    )
    parser.add_argument(
        '--status', '-s',
        type=int,
        help='期望的HTTP状态码，默认200'
    )


def configure_logging(global_config: Dict[str, Any], log_level: Optional[str] = None):
    """配置日志系统

    Args:
        global_config: 配置文件中的全局配置
        log_level: 命令行指定的日志级别
    """
    log_config = {
        'log_level': log_level or global_config.get('log_level', 'INFO'),
        'enable_console': True
    }

    if global_config.get('log_file'):
        log_config['log_file'] = global_config['log_file']

    log_manager.configure(log_config)


def resolve_target(args: argparse.Namespace) -> Tuple[str, HealthCheckConfig, Dict[str, Any]]:
    """根据命令行参数和配置文件确定探测地址与健康检查配置

    Returns:
        (探测地址, 健康检查配置, 全局配置)

    Raises:
        ConfigError: 配置无效或缺少探测地址
    """
    config_manager = ConfigManager(args.config)
    if args.config:
        config_manager.load_config()

    url = args.url
    if not url and args.env:
        url = config_manager.get_environment_url(args.env)
    if not url:
        raise ConfigError("未指定探测地址，请提供 url 参数或在环境配置中设置 url")

    overrides = {
        'expected_status': args.status,
        'timeout_ms': args.timeout,
        'check_interval_ms': getattr(args, 'interval', None),
    }
    health_config = config_manager.get_health_check_config(args.env, overrides)

    return url, health_config, config_manager.get_global_config()


def validate_config_file(config_path: str) -> bool:
    """验证配置文件

    Args:
        config_path: 配置文件路径

    Returns:
        验证是否成功
    """
    try:
        print(f"正在验证配置文件: {config_path}")

        config_manager = ConfigManager(config_path)
        config = config_manager.load_config()
        environments = config.get('environments') or {}

        # 确认每个环境合并后的配置可用
        for name in environments:
            config_manager.get_health_check_config(name)

        print("✅ 配置文件验证成功!")
        print(f"   - 部署环境数量: {len(environments)}")
        for name, environment in environments.items():
            url = (environment or {}).get('url', '未设置')
            print(f"     * {name}: {url}")

        return True

    except ConfigError as e:
        print(f"❌ 配置文件验证失败: {e}")
        return False


async def check_once(url: str, config: HealthCheckConfig) -> bool:
    """执行一次健康检查

    Args:
        url: 探测地址
        config: 健康检查配置

    Returns:
        是否健康
    """
    print(f"🔍 正在检查 {url} ...")

    result = await HttpProber(config).probe(url)

    if result.healthy:
        print(f"✅ 健康检查通过! 状态码: {result.status}, 响应时间: {result.response_time}")
    else:
        message = f"❌ 健康检查失败! 状态码: {result.status}"
        if result.error:
            message += f", 错误: {result.error}"
        print(message, file=sys.stderr)

    return result.healthy


async def run_monitor(url: str, config: HealthCheckConfig, log_dir: str) -> None:
    """持续监控直到收到停止信号

    Args:
        url: 探测地址
        config: 健康检查配置
        log_dir: 健康日志目录
    """
    monitor = HealthMonitor(url, config, log_dir)
    cancel = monitor.start()

    print(f"间隔: {config.check_interval_ms}ms, 超时: {config.timeout_ms}ms, "
          f"期望状态码: {config.expected_status}")
    print("按 Ctrl+C 停止监控")

    loop = asyncio.get_running_loop()
    installed = []
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, cancel)
            installed.append(signum)
        except NotImplementedError:
            # Windows 事件循环不支持 add_signal_handler
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(cancel))

    try:
        await monitor.wait_closed()
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)


async def main(argv: Optional[List[str]] = None) -> int:
    """主函数

    Returns:
        进程退出码
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == 'validate':
            configure_logging({}, args.log_level)
            return 0 if validate_config_file(args.config_file) else 1

        url, health_config, global_config = resolve_target(args)
        configure_logging(global_config, args.log_level)

        if args.command == 'check':
            healthy = await check_once(url, health_config)
            return 0 if healthy else 1

        log_dir = args.log_dir or global_config.get('log_dir') or DEFAULT_LOG_DIR
        await run_monitor(url, health_config, log_dir)
        return 0

    except ConfigError as e:
        print(f"配置错误: {e}", file=sys.stderr)
        return 1
    except DeployHealthError as e:
        print(f"健康监控错误: {e.format_error()}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"健康日志写入失败: {e}", file=sys.stderr)
        return 1
    finally:
        log_manager.cleanup()


def run():
    """命令行脚本入口"""
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
