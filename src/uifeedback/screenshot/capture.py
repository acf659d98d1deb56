"""Page screenshot capture."""

from typing import Any

from uifeedback.screenshot.optimize import OptimizedImage, optimize_screenshot


async def capture_page(page: Any, full_page: bool = False) -> bytes:
    """Raw PNG of a Playwright page (web or Electron window)."""
    return await page.screenshot(full_page=full_page, type="png")


async def capture_optimized(
    page: Any, *, full_page: bool = False, max_width: int, quality: int
) -> OptimizedImage:
    raw = await capture_page(page, full_page=full_page)
    return optimize_screenshot(raw, max_width=max_width, quality=quality)
