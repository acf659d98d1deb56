"""Screenshot resize + WebP re-encoding."""

import io
from dataclasses import dataclass

from PIL import Image

from uifeedback.config import SCREENSHOT_MAX_WIDTH, SCREENSHOT_QUALITY


@dataclass
class OptimizedImage:
    data: bytes
    mime_type: str
    width: int
    height: int
    original_size: int

    @property
    def optimized_size(self) -> int:
        return len(self.data)


def optimize_screenshot(
    raw: bytes,
    max_width: int = SCREENSHOT_MAX_WIDTH,
    quality: int = SCREENSHOT_QUALITY,
) -> OptimizedImage:
    """Shrink to ``max_width`` (never enlarging) and encode as WebP."""
    with Image.open(io.BytesIO(raw)) as img:
        img = img.convert("RGB")
        w, h = img.size
        if w > max_width:
            new_h = max(1, int(round(h * max_width / w)))
            img = img.resize((max_width, new_h), Image.LANCZOS)
        out = io.BytesIO()
        img.save(out, format="WEBP", quality=max(1, min(int(quality), 100)))
        width, height = img.size
    return OptimizedImage(
        data=out.getvalue(),
        mime_type="image/webp",
        width=width,
        height=height,
        original_size=len(raw),
    )
