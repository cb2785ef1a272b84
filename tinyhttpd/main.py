#!/usr/bin/env python3
"""
Точка входа для tiny, HTTP/1.0 сервера статики и CGI.

Запуск:
    python -m tinyhttpd.main 8080
    python -m tinyhttpd.main 8080 --config config.yaml
"""
import argparse
import asyncio
import logging
import signal
from pathlib import Path
from typing import List, Optional

from tinyhttpd.config import ServerConfig
from tinyhttpd.server import TinyServer
from tinyhttpd.logger import setup_logger


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Ровно один позиционный аргумент: порт.

    Нет порта или лишний аргумент: argparse печатает usage
    и выходит с кодом 2.
    """
    parser = argparse.ArgumentParser(
        description="Tiny HTTP/1.0 server: static files and CGI programs",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "port",
        type=int,
        help="Listen port",
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["debug", "info", "warning", "error"],
        help="Logging level (overrides config)",
    )
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> ServerConfig:
    """Загружает конфигурацию из файла или использует дефолтную."""
    if args.config and Path(args.config).exists():
        config = ServerConfig.from_yaml(args.config)
    else:
        config = ServerConfig.default()

    # порт из командной строки главнее конфига
    config.listen_port = args.port
    if args.log_level:
        config.log_level = args.log_level
    return config


async def shutdown(server: TinyServer, sig: signal.Signals) -> None:
    """Graceful shutdown при получении сигнала."""
    logging.getLogger("tinyhttpd").info(f"Received {sig.name}, shutting down...")
    await server.stop()


async def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    config = load_config(args)

    # Настройка логирования
    setup_logger(config.log_level)
    logger = logging.getLogger("tinyhttpd")
    logger.debug(f"Config loaded: {config}")

    server = TinyServer(config)

    # Настройка graceful shutdown
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda s=sig: asyncio.create_task(shutdown(server, s)),
        )

    try:
        await server.start()
    except asyncio.CancelledError:
        logger.info("Server shutdown complete")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
