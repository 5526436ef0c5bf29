"""
Command-line entry point.

    huntbot --config configs/config.yaml
    huntbot --config configs/config.yaml --dump
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from dataclasses import asdict
from typing import Optional

import aiohttp

from . import __version__
from .actuator import BridgeClient
from .bot import run
from .config import Config, load_config
from .errors import ConfigError, HuntBotError
from .parser import StateParser

log = logging.getLogger("HuntBot")

LOG_FORMAT  = "%(asctime)s  [%(levelname)-8s]  %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str, log_file: Optional[str] = None):
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )


def resolve_log_level(arg: Optional[str], cfg: Optional[Config]) -> str:
    if arg:
        return arg
    env = os.getenv("HUNTBOT_LOG_LEVEL")
    if env:
        return env
    if cfg is not None and cfg.runtime.debug:
        return "DEBUG"
    return "INFO"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="huntbot", description="Autonomous hunting agent")
    parser.add_argument("--config", "-c", default="configs/config.yaml", help="Path to config file")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    parser.add_argument("--dump", action="store_true",
                        help="Print one parsed state snapshot from the bridge and exit")
    parser.add_argument("--version", action="store_true", help="Show version")
    return parser


async def dump_state(cfg: Config) -> dict:
    async with aiohttp.ClientSession() as session:
        bridge   = BridgeClient(cfg.runtime.bridge_url, session)
        status   = StateParser.parse_status(await bridge.get_agent_status())
        entities = StateParser.parse_entities(await bridge.get_entities())
    return {"hero": asdict(status), "mobs": [asdict(e) for e in entities]}


async def _serve(cfg: Config):
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: Ctrl+C arrives as KeyboardInterrupt instead
            pass
    await run(stop, cfg)


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.version:
        print(f"HuntBot {__version__}")
        return 0

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        setup_logging(resolve_log_level(args.log_level, None))
        log.critical(f"[CONFIG] {e}")
        return 2

    setup_logging(resolve_log_level(args.log_level, cfg), cfg.runtime.log_file)

    if args.dump:
        try:
            snapshot = asyncio.run(dump_state(cfg))
        except HuntBotError as e:
            log.critical(f"[BOT] Dump failed: {e}")
            return 1
        print(json.dumps(snapshot, indent=2))
        return 0

    log.info("=" * 60)
    log.info(f"  HUNTBOT {__version__}  |  profile: {cfg.profile.name or 'auto-detect'}")
    log.info(f"  bridge: {cfg.runtime.bridge_url}")
    log.info("=" * 60)

    try:
        asyncio.run(_serve(cfg))
    except KeyboardInterrupt:
        log.info("[BOT] Stopped. Goodbye!")
    except HuntBotError as e:
        log.critical(f"[BOT] Bot execution failed: {e}", exc_info=True)
        return 1

    log.info("[BOT] Bot stopped successfully")
    return 0
