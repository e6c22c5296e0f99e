"""CLI entry point for the collector."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List, Optional

from . import __version__
from .common.config import Settings, get_settings
from .core.domain.errors import StartupError
from .core.monitoring.metrics import serve_metrics
from .core.pipeline.backoff import BackoffPolicy
from .core.pipeline.supervisor import Supervisor
from .core.transport.broker_session import BrokerSession
from .infrastructure.persistence.sqlite_sink import SQLiteReadingSink

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="mqtt-collector",
        description="Lightweight program that collects MQTT messages and saves them to a SQLite database.",
    )
    p.add_argument("-d", "--db-path", help="SQLite file (default ./dev.db or COLLECTOR_DB_PATH)")
    p.add_argument("-i", "--device-id", help="identifier stamped on every reading (default UNKNOWN_DEVICE)")
    p.add_argument("-t", "--base-topic", help="subscription prefix; empty subscribes to every topic")
    p.add_argument("-b", "--broker-ip", dest="broker_host", help="MQTT broker host (default localhost)")
    p.add_argument("--log-level", help="logging level (default INFO or LOG_LEVEL)")
    p.add_argument("--metrics-port", type=int, help="serve Prometheus metrics on this port")
    p.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    return p


def resolve_settings(args: argparse.Namespace) -> Settings:
    return get_settings().with_overrides(
        db_path=args.db_path,
        device_id=args.device_id,
        base_topic=args.base_topic,
        broker_host=args.broker_host,
        log_level=args.log_level.upper() if args.log_level else None,
        metrics_port=args.metrics_port,
    )


def build_supervisor(
    settings: Settings,
    sink: SQLiteReadingSink,
    backoff: Optional[BackoffPolicy] = None,
) -> Supervisor:
    def session_factory() -> BrokerSession:
        return BrokerSession(
            broker_host=settings.broker_host,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
        )

    return Supervisor(
        session_factory=session_factory,
        sink=sink,
        device_id=settings.device_id,
        base_topic=settings.base_topic,
        backoff=backoff or BackoffPolicy.from_env(),
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = resolve_settings(args)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    logger.info("[COLLECTOR] Started v%s", __version__)
    logger.info(
        "[COLLECTOR] Config: db=%s device=%s base_topic=%r broker=%s",
        settings.db_path,
        settings.device_id,
        settings.base_topic,
        settings.broker_host,
    )

    try:
        backoff = BackoffPolicy.from_env()
    except StartupError as e:
        logger.error("[COLLECTOR] Cannot start: %s", e)
        return 1

    sink = SQLiteReadingSink.from_path(settings.db_path)
    try:
        try:
            sink.ensure_schema()
        except StartupError as e:
            logger.error("[COLLECTOR] Cannot start: %s", e)
            return 1

        if settings.metrics_port:
            serve_metrics(settings.metrics_port)

        supervisor = build_supervisor(settings, sink, backoff=backoff)
        try:
            asyncio.run(supervisor.run_forever())
        except KeyboardInterrupt:
            logger.info("[COLLECTOR] Interrupted. %s stored=%d", supervisor.stats, sink.appended)
    finally:
        sink.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
