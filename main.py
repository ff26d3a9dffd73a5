#!/usr/bin/env python3
"""
NetDiag - headless network health monitor
Runs the initial assessment, an optional full test, then the background cycle.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from netdiag.core import (
    HistoryRepository,
    MonitoringOrchestrator,
    Settings,
    average_speed,
    filter_by_timeframe,
    newest_first,
    speed_trend,
    troubleshooting_steps,
)
from netdiag.utils.logger import setup_logger


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Network health monitor")
    parser.add_argument("--data-dir", type=Path, default=Path("data"))
    parser.add_argument("--full-test", action="store_true", help="run a full test after the initial assessment")
    parser.add_argument("--diagnostics", action="store_true", help="run DNS and route diagnostics")
    parser.add_argument("--save", action="store_true", help="save the resulting snapshot to history")
    parser.add_argument("--once", action="store_true", help="exit instead of starting the background cycle")
    return parser.parse_args(argv)


def log_history_summary(history: HistoryRepository, timeframe: str = 'week'):
    """Log average speeds and trends over recently saved tests."""
    from loguru import logger

    entries = newest_first(filter_by_timeframe(history.list(), timeframe))
    if not entries:
        return
    logger.info(
        f"History ({timeframe}, {len(entries)} tests): "
        f"down avg={average_speed(entries, 'download'):.1f}Mbps ({speed_trend(entries, 'download')}) "
        f"up avg={average_speed(entries, 'upload'):.1f}Mbps ({speed_trend(entries, 'upload')})"
    )


async def run(args) -> int:
    from loguru import logger

    settings = Settings(args.data_dir)
    history  = HistoryRepository(settings.history_file)

    async with MonitoringOrchestrator.from_settings(settings) as orchestrator:
        orchestrator.store.subscribe(
            lambda s: logger.info(
                f"Snapshot: {s.status.value} | online={s.is_online} latency={s.latency_ms}ms "
                f"local={s.is_local_issue} isp={s.is_isp_issue}"
                + (f" | error: {s.error}" if s.error else "")
            )
        )
        orchestrator.add_progress_listener(
            lambda p: p.label and logger.info(f"[{p.percent:3d}%] {p.label}")
        )

        await orchestrator.initialize_status()
        if args.full_test:
            await orchestrator.run_full_test()
        if args.diagnostics:
            await orchestrator.run_diagnostics()
        if args.save:
            orchestrator.save_current_result(history)
            log_history_summary(history)

        for step in troubleshooting_steps(orchestrator.store.snapshot):
            logger.info(f"{step.title}: {step.action}")

        if args.once:
            return 0

        orchestrator.start_monitoring()
        try:
            await asyncio.Event().wait()
        finally:
            await orchestrator.stop_monitoring()
    return 0


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    logger = setup_logger(args.data_dir / "logs")
    logger.info("=" * 50)
    logger.info("NetDiag - Starting")
    logger.info("=" * 50)

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1
    finally:
        logger.info("Application shutdown")


if __name__ == "__main__":
    sys.exit(main())
