from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Sequence

import httpx
import yaml

from github_status import __version__
from github_status.durations import parse_duration
from github_status.monitor import LOGGER, MonitorConfig, StatusMonitor, run
from github_status.slack import slack_config_from_env
from github_status.state_store import LastStatusStore


DEFAULT_LOW = "1m"
DEFAULT_HIGH = "5s"

DESCRIPTION = """\
get github status by pinging the GitHub status API. Send notification to slack
channel when status changed.
slack team is required to set as Environment variable "SLACK_TEAM"
slack token is required to set as Environment variable "SLACK_TOKEN"
"""

EPILOG = """\
Example:
    SLACK_TEAM=myteam SLACK_TOKEN=123456 github-status --high 2s --low 1m --channel github
"""


def load_config(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("Config YAML must be a mapping")
    return data


def _positive_duration(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        seconds = parse_duration(str(value))
    if seconds <= 0:
        raise ValueError(f"duration must be positive, got {value!r}")
    return seconds


def _duration_arg(value: str) -> float:
    try:
        return _positive_duration(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f'{exc} (example "1s" "5m" "1.5h")') from exc


def _positive_float(value: Any, *, name: str) -> float:
    try:
        f = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if f <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return f


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="github-status",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--low",
        type=_duration_arg,
        default=None,
        help=f'low frequency ping interval (example "1s" "5m" "1.5h"). used when github is normal. default {DEFAULT_LOW}',
    )
    parser.add_argument(
        "--high",
        type=_duration_arg,
        default=None,
        help=f'high frequency ping interval (example "1s" "5m" "1.5h"). used when github is down. default {DEFAULT_HIGH}',
    )
    parser.add_argument("--channel", default=None, help="slack channel to send notifications to")
    parser.add_argument("--verbose", action="store_true", help="output verbose log")
    parser.add_argument("--config", default=None, help="Path to optional YAML config")
    parser.add_argument("--once", action="store_true", help="Run one check cycle and exit")
    parser.add_argument(
        "--ignore-unknown",
        action="store_true",
        default=None,
        help="Treat failed fetches as no observation instead of a change to 'unknown'",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (INFO, WARNING, ...)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"github status monitor Ver:{__version__}",
    )
    return parser


def build_monitor_config(
    args: argparse.Namespace,
    file_config: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> MonitorConfig:
    """
    Layering, lowest first: defaults, YAML file, environment, command line flags.
    """
    cfg = dict(file_config or {})
    env = os.environ if environ is None else environ
    defaults = MonitorConfig()

    status_url = str(cfg.get("status_url") or defaults.status_url).strip()
    env_url = (env.get("GITHUB_STATUS_URL") or "").strip()
    if env_url:
        status_url = env_url

    state_path = str(cfg.get("state_path") or defaults.state_path).strip()
    env_state_path = (env.get("STATE_PATH") or "").strip()
    if env_state_path:
        state_path = env_state_path

    if args.low is not None:
        low = args.low
    else:
        low = _positive_duration(cfg.get("low", DEFAULT_LOW))
    if args.high is not None:
        high = args.high
    else:
        high = _positive_duration(cfg.get("high", DEFAULT_HIGH))

    channel = args.channel if args.channel is not None else cfg.get("channel")
    channel = str(channel).strip() if channel else None

    if args.ignore_unknown is not None:
        ignore_unknown = bool(args.ignore_unknown)
    else:
        ignore_unknown = bool(cfg.get("ignore_unknown", defaults.ignore_unknown))

    return MonitorConfig(
        status_url=status_url,
        state_path=Path(state_path),
        low_interval_seconds=low,
        high_interval_seconds=high,
        channel=channel or None,
        fetch_timeout_seconds=_positive_float(
            cfg.get("fetch_timeout_seconds", defaults.fetch_timeout_seconds), name="fetch_timeout_seconds"
        ),
        notify_timeout_seconds=_positive_float(
            cfg.get("notify_timeout_seconds", defaults.notify_timeout_seconds), name="notify_timeout_seconds"
        ),
        ignore_unknown=ignore_unknown,
    )


async def run_monitor(config: MonitorConfig, *, once: bool = False) -> int:
    slack_cfg = slack_config_from_env(config.channel)
    if config.channel and slack_cfg is None:
        LOGGER.warning("Missing SLACK_TEAM and/or SLACK_TOKEN env vars; Slack notifications disabled")

    async with httpx.AsyncClient() as client:
        monitor = StatusMonitor(config, client, LastStatusStore(config.state_path), slack_cfg)
        return await run(monitor, once=once)


def configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    # basicConfig is a no-op once the root logger has handlers.
    logging.getLogger().setLevel(level)

    # The Slack token is embedded in the webhook URL.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging("DEBUG" if args.verbose else str(args.log_level))

    try:
        file_config = load_config(Path(args.config)) if args.config else {}
        config = build_monitor_config(args, file_config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        parser.error(str(exc))

    try:
        return asyncio.run(run_monitor(config, once=bool(args.once)))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
