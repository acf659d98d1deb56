"""HTTP request/response capture with request timing."""

import time
from typing import Any

from uifeedback.capture.base import Collector
from uifeedback.capture.models import NetworkEntry
from uifeedback.config import NETWORK_MAX_ENTRIES


def _request_key(request: Any) -> tuple[str, str]:
    return request.method, request.url


def attach_network_collector(
    page: Any, max_entries: int = NETWORK_MAX_ENTRIES
) -> Collector[NetworkEntry]:
    """Record responses and failed requests of a Playwright page.

    Request start times are tracked by (method, url) and cleared when the
    matching response or failure arrives. A response without a tracked
    request is still recorded, with no duration.
    """
    collector: Collector[NetworkEntry] = Collector(max_entries)
    pending: dict[tuple[str, str], float] = {}

    def elapsed_ms(request: Any) -> int | None:
        started = pending.pop(_request_key(request), None)
        if started is None:
            return None
        return int((time.monotonic() - started) * 1000)

    def on_request(request: Any) -> None:
        pending[_request_key(request)] = time.monotonic()

    def on_response(response: Any) -> None:
        request = response.request
        collector.append(
            NetworkEntry(
                method=request.method,
                url=request.url,
                resource_type=request.resource_type,
                status=response.status,
                status_text=response.status_text,
                duration_ms=elapsed_ms(request),
                from_service_worker=response.from_service_worker,
            )
        )

    def on_request_failed(request: Any) -> None:
        collector.append(
            NetworkEntry(
                method=request.method,
                url=request.url,
                resource_type=request.resource_type,
                status=0,
                status_text="FAILED",
                duration_ms=elapsed_ms(request),
                error_text=request.failure,
            )
        )

    collector.listen(page, "request", on_request)
    collector.listen(page, "response", on_response)
    collector.listen(page, "requestfailed", on_request_failed)
    return collector
