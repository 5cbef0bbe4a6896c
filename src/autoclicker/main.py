"""
命令行入口：加载场景并在 ADB 设备（或回放画面）上运行。

用法：
  python -m autoclicker scenario.yaml --device 127.0.0.1:5555
  python -m autoclicker scenario.yaml --replay frames/ --max-ticks 20

可选参数：
  --device      ADB 地址，默认读取配置 adb_addr
  --replay      从目录按文件名顺序回放截图，只记录动作不注入；截图用完即结束
  --max-ticks   最多处理的帧数
  --backend     cpu / opencl
  --no-debug    关闭调试统计
"""
from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from contextlib import suppress
from pathlib import Path
from typing import List, Optional

from .core.config import settings
from .core.constants import MatcherBackend
from .core.exceptions import ConfigError
from .core.logger import logger
from .core.thread_pool import shutdown_pools
from .modules.debugging import DebugEngine, format_report
from .modules.emu.adapter import AdbActionExecutor, AdbFrameSource, LoggingActionExecutor
from .modules.emu.adb import Adb, AdbError
from .modules.engine import ScenarioProcessor, SessionOutcome, StaticFrameSource, load_scenario
from .modules.vision import create_matcher

_IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="autoclicker", description="图像条件自动点击引擎")
    parser.add_argument("scenario", help="场景 YAML 文件")
    parser.add_argument("--device", default=settings.adb_addr, help="ADB 设备地址")
    parser.add_argument("--replay", default=None, help="回放截图目录（演练模式）")
    parser.add_argument("--max-ticks", type=int, default=None, help="最多处理的帧数")
    parser.add_argument(
        "--backend",
        choices=[b.value for b in MatcherBackend],
        default=settings.matcher_backend,
        help="匹配后端",
    )
    parser.add_argument("--debug", dest="debug", action="store_true", default=settings.debug_enabled)
    parser.add_argument("--no-debug", dest="debug", action="store_false")
    return parser


def _replay_frames(directory: str) -> List[bytes]:
    paths = sorted(p for p in Path(directory).iterdir() if p.suffix.lower() in _IMAGE_SUFFIXES)
    if not paths:
        raise ConfigError(f"回放目录中没有图片: {directory}")
    return [p.read_bytes() for p in paths]


async def run_session(args: argparse.Namespace) -> SessionOutcome:
    scenario = load_scenario(args.scenario)

    if args.replay:
        source = StaticFrameSource(_replay_frames(args.replay), repeat_last=False)
        executor = LoggingActionExecutor()
    else:
        adb = Adb(settings.adb_path)
        if ":" in args.device and not adb.connect(args.device):
            logger.warning("ADB 连接失败: {}", args.device)
        if args.device not in adb.devices():
            raise AdbError(f"设备不在线: {args.device}")
        source = AdbFrameSource(adb, args.device)
        executor = AdbActionExecutor(adb, args.device)

    debug_engine = DebugEngine(scenario, buffer_size=settings.debug_channel_buffer_size) if args.debug else None

    with create_matcher(args.backend, scenario.detection_quality) as matcher:
        processor = ScenarioProcessor(scenario, matcher, executor, debug_engine=debug_engine)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Windows 事件循环不支持信号处理器
            with suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, processor.request_stop)

        outcome = await processor.run(source, max_ticks=args.max_ticks)

    logger.info(
        "场景 {} 结束: state={}, reason={}, ticks={}",
        scenario.id,
        outcome.state.value,
        outcome.reason.value if outcome.reason else None,
        outcome.ticks,
    )
    if outcome.failed:
        logger.error("失败动作: {} ({})", outcome.failed_action, outcome.error)
    if outcome.report is not None:
        for line in format_report(outcome.report):
            logger.info(line)
    return outcome


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        outcome = asyncio.run(run_session(args))
    except ConfigError as e:
        logger.error("场景配置错误:\n{}", e)
        return 2
    except AdbError as e:
        logger.error("设备不可用: {}", e)
        return 3
    finally:
        shutdown_pools()
    return 1 if outcome.failed else 0


if __name__ == "__main__":
    sys.exit(main())
