from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable

import httpx

from github_status.durations import format_duration
from github_status.fetcher import DEFAULT_FETCH_TIMEOUT_SECONDS, GITHUB_STATUS_API, fetch_status
from github_status.slack import (
    DEFAULT_NOTIFY_TIMEOUT_SECONDS,
    SlackConfig,
    redact_slack_response,
    send_status_notification,
)
from github_status.state_store import DEFAULT_STATE_PATH, LastStatusStore
from github_status.status import Status


LOGGER = logging.getLogger("github-status")


@dataclass(frozen=True)
class MonitorConfig:
    status_url: str = GITHUB_STATUS_API
    state_path: Path = Path(DEFAULT_STATE_PATH)
    low_interval_seconds: float = 60.0
    high_interval_seconds: float = 5.0
    channel: str | None = None
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    notify_timeout_seconds: float = DEFAULT_NOTIFY_TIMEOUT_SECONDS
    # Treat a failed fetch as "no observation" instead of a transition to UNKNOWN.
    ignore_unknown: bool = False


@dataclass(frozen=True)
class TickResult:
    status: Status
    previous: str
    changed: bool
    saved: bool
    notified: bool
    next_interval_seconds: float


def select_interval(status: Status, low: float, high: float) -> float:
    return low if status is Status.GOOD else high


class StatusMonitor:
    """
    Change detection state machine. Each ``tick()`` is one poll cycle; the
    caller decides when to run the next one (see ``run``).
    """

    def __init__(
        self,
        config: MonitorConfig,
        client: httpx.AsyncClient,
        store: LastStatusStore,
        slack_config: SlackConfig | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.store = store
        self.slack_config = slack_config
        # "" never equals a real status, so the first observation always counts as a change.
        self.last_status = ""

    def load_initial_state(self) -> str:
        self.last_status = self.store.load()
        if self.store.load_error:
            LOGGER.warning(
                "Could not read last status path=%s error=%s; starting without prior state",
                self.store.path,
                self.store.load_error,
            )
        else:
            LOGGER.info("Loaded last status path=%s status=%r", self.store.path, self.last_status)
        return self.last_status

    def next_interval(self, status: Status) -> float:
        return select_interval(status, self.config.low_interval_seconds, self.config.high_interval_seconds)

    async def tick(self) -> TickResult:
        report = await fetch_status(self.client, self.config.status_url, timeout=self.config.fetch_timeout_seconds)
        status = report.status
        previous = self.last_status
        interval = self.next_interval(status)

        if report.ok:
            LOGGER.debug(
                "Fetched status=%s last_updated=%s elapsed_ms=%s",
                status.value,
                report.last_updated.isoformat() if report.last_updated else None,
                report.details.get("elapsed_ms"),
            )
        else:
            LOGGER.warning(
                "Status fetch failed url=%s error=%s status_code=%s",
                self.config.status_url,
                report.details.get("error"),
                report.details.get("status_code"),
            )

        if status is Status.UNKNOWN and self.config.ignore_unknown:
            return TickResult(
                status=status,
                previous=previous,
                changed=False,
                saved=False,
                notified=False,
                next_interval_seconds=interval,
            )

        if status.value == previous:
            return TickResult(
                status=status,
                previous=previous,
                changed=False,
                saved=False,
                notified=False,
                next_interval_seconds=interval,
            )

        LOGGER.info(
            "Status changed previous=%r status=%s next_interval=%s",
            previous,
            status.value,
            format_duration(interval),
        )

        saved, save_error = self.store.save(status.value)
        if not saved:
            LOGGER.warning("Failed to save last status path=%s error=%s", self.store.path, save_error)

        notified, resp = await send_status_notification(
            self.client,
            self.slack_config,
            status,
            timeout=self.config.notify_timeout_seconds,
        )
        if notified:
            LOGGER.info("Slack notification sent status=%s slack=%s", status.value, redact_slack_response(resp))
        elif resp.get("skipped"):
            LOGGER.debug("Slack notification skipped status=%s slack=%s", status.value, redact_slack_response(resp))
        else:
            LOGGER.warning("Slack notification failed status=%s slack=%s", status.value, redact_slack_response(resp))

        self.last_status = status.value
        return TickResult(
            status=status,
            previous=previous,
            changed=True,
            saved=saved,
            notified=notified,
            next_interval_seconds=interval,
        )


async def run(
    monitor: StatusMonitor,
    *,
    once: bool = False,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> int:
    monitor.load_initial_state()
    LOGGER.info(
        "Starting status monitor url=%s low=%s high=%s channel=%s notifications=%s",
        monitor.config.status_url,
        format_duration(monitor.config.low_interval_seconds),
        format_duration(monitor.config.high_interval_seconds),
        monitor.config.channel,
        "enabled" if monitor.slack_config is not None else "disabled",
    )

    while True:
        result = await monitor.tick()
        if once:
            return 0
        LOGGER.debug(
            "Cycle complete status=%s sleep=%s",
            result.status.value,
            format_duration(result.next_interval_seconds),
        )
        await sleep(result.next_interval_seconds)
