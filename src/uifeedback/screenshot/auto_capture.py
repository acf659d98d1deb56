"""Automatic screenshot after every main-frame navigation."""

import logging
from typing import Any, Callable

from uifeedback.screenshot.capture import capture_page
from uifeedback.screenshot.optimize import optimize_screenshot
from uifeedback.session.models import AutoCapture
from uifeedback.session.registry import SessionRegistry

logger = logging.getLogger(__name__)


def setup_auto_capture(
    page: Any, session_id: str, registry: SessionRegistry
) -> Callable[[], None]:
    """Store a screenshot in the session's auto-capture slot on each navigation.

    Returns a function that removes the listener.
    """

    async def on_frame_navigated(frame: Any) -> None:
        if frame != page.main_frame:
            return
        try:
            await page.wait_for_load_state("load")
            optimized = optimize_screenshot(await capture_page(page))
            registry.set_auto_capture(
                session_id,
                AutoCapture(
                    image=optimized.data,
                    mime_type=optimized.mime_type,
                    url=page.url,
                    width=optimized.width,
                    height=optimized.height,
                ),
            )
            logger.debug(
                "Auto-captured %dx%d (%d bytes) for session %s",
                optimized.width,
                optimized.height,
                optimized.optimized_size,
                session_id,
            )
        except Exception:
            logger.warning("Auto-capture failed for session %s", session_id, exc_info=True)

    page.on("framenavigated", on_frame_navigated)

    def detach() -> None:
        page.remove_listener("framenavigated", on_frame_navigated)

    return detach
