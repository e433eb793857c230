from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Mapping
from urllib.parse import quote

import httpx

from github_status.status import Status


DEFAULT_NOTIFY_TIMEOUT_SECONDS = 15.0

STATUS_MESSAGES = {
    Status.GOOD: "github is now all good :white_check_mark:",
    Status.MINOR: "github has minor issue :construction:",
    Status.MAJOR: "github is DOWN!!!! :x:",
}


@dataclass(frozen=True)
class SlackConfig:
    team: str
    token: str
    channel: str
    # Overrides https://<team>.slack.com (tests point this at a local server).
    base_url: str | None = None


def slack_config_from_env(channel: str | None, environ: Mapping[str, str] | None = None) -> SlackConfig | None:
    """
    Notifications need a channel plus SLACK_TEAM and SLACK_TOKEN; without any of
    them there is nothing to send to and None is returned.
    """
    env = os.environ if environ is None else environ
    channel = (channel or "").strip().lstrip("#")
    team = (env.get("SLACK_TEAM") or "").strip()
    token = (env.get("SLACK_TOKEN") or "").strip()
    if not channel or not team or not token:
        return None
    return SlackConfig(team=team, token=token, channel=channel)


def build_webhook_url(config: SlackConfig) -> str:
    base = (config.base_url or f"https://{config.team}.slack.com").rstrip("/")
    channel = quote(f"#{config.channel}", safe="")
    return f"{base}/services/hooks/slackbot?token={quote(config.token, safe='')}&channel={channel}"


def format_status_message(status: Status) -> str | None:
    return STATUS_MESSAGES.get(status)


async def send_slack_message(
    client: httpx.AsyncClient,
    config: SlackConfig,
    text: str,
    *,
    timeout: float = DEFAULT_NOTIFY_TIMEOUT_SECONDS,
) -> tuple[bool, dict]:
    url = build_webhook_url(config)
    try:
        resp = await client.post(
            url,
            content=text.encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=utf-8"},
            timeout=timeout,
        )
    except Exception as e:
        msg = f"{type(e).__name__}: {e}"
        for secret in {config.token, quote(config.token, safe="")}:
            if secret:
                msg = msg.replace(secret, "<redacted>")
        return False, {"ok": False, "error": msg}

    body = (resp.text or "").strip()
    if not resp.is_success:
        return False, {"ok": False, "status_code": resp.status_code, "error": body[:500]}
    return True, {"ok": True, "status_code": resp.status_code}


async def send_status_notification(
    client: httpx.AsyncClient,
    config: SlackConfig | None,
    status: Status,
    *,
    timeout: float = DEFAULT_NOTIFY_TIMEOUT_SECONDS,
) -> tuple[bool, dict]:
    """
    Post the message for ``status``. Makes no request when notifications are
    not configured or the status has no message (UNKNOWN).
    """
    if config is None:
        return False, {"ok": False, "skipped": "not_configured"}
    text = format_status_message(status)
    if text is None:
        return False, {"ok": False, "skipped": f"no_message_for_{status.value}"}
    return await send_slack_message(client, config, text, timeout=timeout)


def redact_slack_response(data: dict) -> str:
    safe = {"ok": data.get("ok")}
    for key in ("status_code", "skipped", "error"):
        if data.get(key) is not None:
            safe[key] = data[key]
    return json.dumps(safe, ensure_ascii=False)
