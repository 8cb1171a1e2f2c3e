"""Command-line entry point."""

import asyncio
import logging
import signal
import sys

from sysanalyzer.config import (
    AnalysisConfig,
    configure_logging,
    parse_args,
    save_config_file,
)
from sysanalyzer.engine import AnalysisEngine, create_engine
from sysanalyzer.errors import ConfigurationError
from sysanalyzer.report import ReportGenerator
from sysanalyzer.runner import AnalysisRunner

logger = logging.getLogger(__name__)


async def run_headless(engine: AnalysisEngine, report: ReportGenerator, config: AnalysisConfig) -> int:
    """Run the analysis loop without a UI until stopped or the duration elapses."""
    runner = AnalysisRunner(
        engine,
        report=report,
        interval=config.interval_seconds,
        duration_minutes=config.duration_minutes,
    )
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, runner.stop)
        except (NotImplementedError, RuntimeError):
            pass  # Not supported on this platform
    return await runner.run()


def run_dashboard(engine: AnalysisEngine, report: ReportGenerator, config: AnalysisConfig) -> None:
    from sysanalyzer.app import SysAnalyzerApp

    SysAnalyzerApp(engine, config=config, report=report).run()


def main(argv: list[str] | None = None) -> int:
    """Entry point for the sysanalyzer command."""
    try:
        config, args = parse_args(argv)
    except ConfigurationError as exc:
        print(f"sysanalyzer: {exc}", file=sys.stderr)
        return 2

    if args.save_config:
        save_config_file(config, args.save_config)

    interactive = not config.silent
    configure_logging(config, interactive=interactive)
    logger.info(
        "System Analyzer starting: interval=%ss, duration=%smin, output=%s",
        config.interval_seconds,
        config.duration_minutes,
        config.output_path,
    )

    engine = create_engine(network_monitoring=config.network_monitoring)
    report = ReportGenerator(engine, config.output_path, config.export_format)

    try:
        if interactive:
            run_dashboard(engine, report, config)
        else:
            asyncio.run(run_headless(engine, report, config))
    except KeyboardInterrupt:
        logger.info("Analysis stopped by user.")

    path = report.write_report()
    if not config.silent:
        print(f"Report saved: {path.resolve()}")
    logger.info("Analysis completed successfully.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
