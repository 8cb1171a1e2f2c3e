"""Configuration, command-line parsing and logging setup."""

import argparse
import dataclasses
import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from sysanalyzer.errors import ConfigurationError

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_FILE = "sysanalyzer.log"


class ExportFormat(Enum):
    """Report output formats."""

    HTML = "html"
    CSV = "csv"
    JSON = "json"
    TXT = "txt"


@dataclass(slots=True, frozen=True)
class AnalysisConfig:
    """Settings for one analysis run."""

    interval_seconds: int = 60
    duration_minutes: int = 0  # 0 = run until stopped
    output_path: str = ""
    export_format: ExportFormat = ExportFormat.HTML
    verbose: bool = False
    silent: bool = False
    cpu_threshold: int = 80
    memory_threshold: int = 80
    network_monitoring: bool = True
    log_file: str = ""


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def default_output_path(export_format: ExportFormat, now: datetime | None = None) -> str:
    timestamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"system_analysis_{timestamp}.{export_format.value}"


def validate(config: AnalysisConfig) -> AnalysisConfig:
    """Return a sanitized copy of ``config``."""
    output_path = config.output_path.strip()
    if not output_path:
        output_path = default_output_path(config.export_format)
        logger.info("Auto-generated output path: %s", output_path)

    verbose = config.verbose
    if config.silent and verbose:
        logger.warning("Silent mode and verbose mode cannot be used together. Using silent mode.")
        verbose = False

    return dataclasses.replace(
        config,
        interval_seconds=_clamp(config.interval_seconds, 1, 3600),
        duration_minutes=_clamp(config.duration_minutes, 0, 1440),
        output_path=output_path,
        verbose=verbose,
        cpu_threshold=_clamp(config.cpu_threshold, 1, 100),
        memory_threshold=_clamp(config.memory_threshold, 1, 100),
    )


def _to_dict(config: AnalysisConfig) -> dict:
    data = dataclasses.asdict(config)
    data["export_format"] = config.export_format.value
    return data


def _from_dict(data: dict) -> AnalysisConfig:
    known = {f.name for f in dataclasses.fields(AnalysisConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))
    values = {key: value for key, value in data.items() if key in known}
    if "export_format" in values:
        try:
            values["export_format"] = ExportFormat(str(values["export_format"]).lower())
        except ValueError as exc:
            raise ConfigurationError(f"Unknown export format: {values['export_format']}") from exc
    try:
        return AnalysisConfig(**values)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def load_config_file(path: str | Path) -> AnalysisConfig:
    """
    Load and validate a JSON configuration file.

    Raises:
        ConfigurationError: If the file is missing or malformed.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Configuration file not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Could not read configuration file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a JSON object")

    try:
        config = validate(_from_dict(data))
    except (AttributeError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid value in configuration file {path}: {exc}") from exc
    logger.info("Configuration loaded from file: %s", path)
    return config


def save_config_file(config: AnalysisConfig, path: str | Path) -> Path:
    """Write ``config`` as JSON and return the path written."""
    path = Path(path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(_to_dict(config), indent=2), encoding="utf-8")
    logger.info("Configuration saved to %s", path)
    return path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sysanalyzer",
        description="Sample host CPU, memory, disk, process and network state, "
        "flag anomalies and write a report.",
    )
    parser.add_argument("-i", "--interval", type=int, help="seconds between snapshots (1-3600)")
    parser.add_argument("-d", "--duration", type=int, help="minutes to run, 0 = until stopped")
    parser.add_argument("-o", "--output", help="report file path")
    parser.add_argument(
        "-f",
        "--format",
        choices=[fmt.value for fmt in ExportFormat],
        type=str.lower,
        help="report format",
    )
    parser.add_argument("-v", "--verbose", action="store_true", default=None, help="debug logging")
    parser.add_argument(
        "-s", "--silent", action="store_true", default=None, help="headless mode, no dashboard"
    )
    parser.add_argument("-t", "--threshold-cpu", type=int, help="CPU highlight threshold (1-100)")
    parser.add_argument("-m", "--threshold-mem", type=int, help="memory highlight threshold (1-100)")
    parser.add_argument(
        "--no-network",
        dest="network",
        action="store_false",
        default=None,
        help="skip network collection",
    )
    parser.add_argument("--config", metavar="FILE", help="load settings from a JSON file")
    parser.add_argument("--save-config", metavar="FILE", help="save effective settings to FILE")
    parser.add_argument("--log-file", metavar="FILE", help="write logs to FILE")
    return parser


def parse_args(argv: list[str] | None = None) -> tuple[AnalysisConfig, argparse.Namespace]:
    """
    Build the effective configuration from the command line.

    Values given on the command line override those from ``--config``.

    Returns:
        The validated configuration and the raw parsed arguments.
    """
    args = build_parser().parse_args(argv)
    base = load_config_file(args.config) if args.config else AnalysisConfig()

    overrides = {
        "interval_seconds": args.interval,
        "duration_minutes": args.duration,
        "output_path": args.output,
        "export_format": ExportFormat(args.format) if args.format else None,
        "verbose": args.verbose,
        "silent": args.silent,
        "cpu_threshold": args.threshold_cpu,
        "memory_threshold": args.threshold_mem,
        "network_monitoring": args.network,
        "log_file": args.log_file,
    }
    config = dataclasses.replace(
        base, **{key: value for key, value in overrides.items() if value is not None}
    )
    return validate(config), args


def configure_logging(config: AnalysisConfig, interactive: bool = False) -> None:
    """
    Configure the root logger for a run.

    Args:
        config: Effective configuration.
        interactive: True when the dashboard owns the terminal; logs then go
            to a file instead of stderr.
    """
    if config.verbose:
        level = logging.DEBUG
    elif config.silent:
        level = logging.WARNING
    else:
        level = logging.INFO

    handlers: list[logging.Handler] = []
    log_file = config.log_file or (DEFAULT_LOG_FILE if interactive else "")
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    if not interactive:
        handlers.append(logging.StreamHandler(sys.stderr))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
