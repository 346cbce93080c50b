"""CLI entry point for build-worker."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from . import metrics
from .config import load_worker_config
from .notify import BuildReporter
from .notify import Notifier
from .output import OutputSink
from .pipeline import BuildPipeline
from .workorder import WorkOrder


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="build-worker", description="Synchronize a repository and run its unit tests")
    parser.add_argument("--config", type=Path, default=os.getenv("BUILD_WORKER_CONFIG"), help="Path to worker config YAML")
    parser.add_argument("--repo", required=True, help="Repository URL or path to clone")
    parser.add_argument("--package", required=True, help="Package identifier (names the workspace)")
    parser.add_argument("--branch", required=True, help="Branch to check out")
    parser.add_argument("--environment", required=True, help="Target environment name")
    parser.add_argument("--build-number", default="", help="Build number recorded on the work order")
    parser.add_argument("--story", action="append", default=[], help="Story identifier included in release notes (repeatable)")
    parser.add_argument("--no-notify", action="store_true", help="Skip sending the summary notification")
    parser.add_argument("--log-level", type=str, default=os.getenv("LOG_LEVEL", "INFO"))
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = load_worker_config(args.config)
    except ValueError as exc:
        parser.error(str(exc))
    if config.metrics_port:
        metrics.start_server(config.metrics_port, config.metrics_host)

    reporter = None
    if not args.no_notify:
        notifier = Notifier(channel=config.notify_channel, email=config.email, webhook_url=config.webhook_url)
        reporter = BuildReporter(notifier)
    pipeline = BuildPipeline.from_config(config, reporter=reporter)

    try:
        order = WorkOrder(
            repo=args.repo,
            package=args.package,
            branch=args.branch,
            environment=args.environment,
            base_dir=config.expanded_base_dir(),
            output=OutputSink(sys.stdout.buffer),
            build_number=args.build_number,
            source_subdir=config.source_subdir,
            stories=list(args.story),
        )
    except ValueError as exc:
        parser.error(str(exc))
    pipeline.process(order)
    pipeline.notify(args.environment, [order])
    return 1 if order.failed else 0


if __name__ == "__main__":  # pragma: no cover - CLI bootstrap
    sys.exit(main())
