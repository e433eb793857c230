from __future__ import annotations

import time

import httpx

from github_status.status import Status, StatusReport, parse_status_payload


GITHUB_STATUS_API = "https://status.github.com/api/status.json"
DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0


async def fetch_status(
    client: httpx.AsyncClient,
    url: str = GITHUB_STATUS_API,
    *,
    timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
) -> StatusReport:
    """
    One GET against the status endpoint.

    Never raises: any transport error, non-2xx response or malformed body comes
    back as an UNKNOWN report with ``ok=False`` and the reason in ``details``.
    """
    started = time.perf_counter()
    try:
        resp = await client.get(url, follow_redirects=True, timeout=timeout)
    except Exception as e:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        return StatusReport(
            status=Status.UNKNOWN,
            ok=False,
            details={
                "error": f"http_error: {type(e).__name__}: {e}",
                "elapsed_ms": round(elapsed_ms, 3),
            },
        )

    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 3)
    details: dict = {"status_code": resp.status_code, "elapsed_ms": elapsed_ms}

    if not resp.is_success:
        details["error"] = f"unexpected_status_code: {resp.status_code}"
        return StatusReport(status=Status.UNKNOWN, ok=False, details=details)

    try:
        data = resp.json()
    except ValueError as e:
        details["error"] = f"invalid_json: {e}"
        return StatusReport(status=Status.UNKNOWN, ok=False, details=details)

    status, last_updated, error = parse_status_payload(data)
    if error:
        details["error"] = f"invalid_payload: {error}"
        return StatusReport(status=Status.UNKNOWN, ok=False, details=details)

    return StatusReport(status=status, ok=True, last_updated=last_updated, details=details)
