from __future__ import annotations

import argparse
import logging
from typing import Sequence

import uvicorn

from http_exporter.config import DEFAULT_LISTEN_ADDRESS, ExporterConfig, parse_listen_address
from http_exporter.probe import DEFAULT_MAX_REDIRECTS, DEFAULT_TIMEOUT_SEC
from http_exporter.server import create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HTTP latency breakdown exporter")
    parser.add_argument("-a", "--listen-address", default=DEFAULT_LISTEN_ADDRESS, help="Listen address")
    parser.add_argument("--default-timeout", type=float, default=DEFAULT_TIMEOUT_SEC)
    parser.add_argument("--max-redirects", type=int, default=DEFAULT_MAX_REDIRECTS)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
    )
    return parser


def build_config(argv: Sequence[str] | None = None) -> ExporterConfig:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        host, port = parse_listen_address(args.listen_address)
        return ExporterConfig(
            listen_host=host,
            listen_port=port,
            default_timeout_sec=args.default_timeout,
            max_redirects=args.max_redirects,
            log_level=args.log_level,
        )
    except ValueError as exc:
        parser.error(str(exc))
        raise


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def main(argv: Sequence[str] | None = None) -> None:
    config = build_config(argv)
    configure_logging(config.log_level)
    logger.info("Listening on addr %s", config.listen_address)
    logger.debug("Exporter config: %s", dict(config.to_metadata()))
    uvicorn.run(
        create_app(config),
        host=config.listen_host,
        port=config.listen_port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
