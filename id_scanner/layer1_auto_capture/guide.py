"""
Layer 1 — Guide Region mapping
Maps the on-screen capture guide back into source-frame pixel coordinates.
The preview may be rendered aspect-fill (``cover``) or letterboxed
(``contain``), so the mapping is recomputed every tick.
"""
from dataclasses import dataclass
from typing import Optional, Tuple

FIT_COVER = 'cover'
FIT_CONTAIN = 'contain'


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in pixel units."""
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def to_dict(self):
        return {
            'x': round(self.x, 2),
            'y': round(self.y, 2),
            'width': round(self.width, 2),
            'height': round(self.height, 2),
        }


@dataclass(frozen=True)
class GuideRegion:
    """Capture guide rectangle expressed in viewport (display) coordinates."""
    rect: Rect
    viewport_width: float
    viewport_height: float
    fit: str = FIT_COVER

    @classmethod
    def full_frame(cls, width: int, height: int) -> 'GuideRegion':
        """Guide covering the whole source frame (viewport == source)."""
        return cls(Rect(0, 0, width, height), width, height, FIT_CONTAIN)

    @classmethod
    def centered(cls, viewport_width: float, viewport_height: float,
                 width_fraction: float = 0.8, aspect: float = 1.42,
                 fit: str = FIT_COVER) -> 'GuideRegion':
        """
        Portrait guide centred in the viewport.

        Args:
            width_fraction: Guide width as a fraction of the viewport width
            aspect: Guide height / width (ID-1 cards held portrait ~1.42)
        """
        w = viewport_width * width_fraction
        h = min(w * aspect, viewport_height * 0.95)
        x = (viewport_width - w) / 2.0
        y = (viewport_height - h) / 2.0
        return cls(Rect(x, y, w, h), viewport_width, viewport_height, fit)

    @classmethod
    def for_source(cls, width: int, height: int) -> 'GuideRegion':
        """
        Default guide when the client supplies none.

        A portrait card can never cover enough of a landscape frame to be
        `ready`, so landscape sources get a centred portrait box of
        nearly full height instead of the whole frame.
        """
        if height >= width:
            return cls.full_frame(width, height)
        return cls.centered(width, height, width_fraction=0.9 * height / width, fit=FIT_CONTAIN)


def _scale_and_offset(source_size: Tuple[int, int], guide: GuideRegion) -> Tuple[float, float, float]:
    sw, sh = source_size
    vw, vh = guide.viewport_width, guide.viewport_height

    if guide.fit == FIT_CONTAIN:
        scale = min(vw / sw, vh / sh)
    else:
        scale = max(vw / sw, vh / sh)

    # Negative offsets for aspect-fill cropping, positive for letterbox bars
    offset_x = (vw - sw * scale) / 2.0
    offset_y = (vh - sh * scale) / 2.0
    return scale, offset_x, offset_y


def map_guide_to_source(guide: GuideRegion, source_size: Tuple[int, int]) -> Optional[Rect]:
    """
    Map a viewport guide rectangle into integer source-frame pixels.

    Args:
        guide: Guide rectangle and viewport description
        source_size: (width, height) of the live video source

    Returns:
        Rect clamped to the frame, or None if the source has no frame or
        the mapped region is degenerate.
    """
    sw, sh = source_size
    if sw <= 0 or sh <= 0 or guide.viewport_width <= 0 or guide.viewport_height <= 0:
        return None

    scale, offset_x, offset_y = _scale_and_offset(source_size, guide)
    if scale <= 0:
        return None

    r = guide.rect
    x0 = (r.x - offset_x) / scale
    y0 = (r.y - offset_y) / scale
    x1 = (r.x + r.width - offset_x) / scale
    y1 = (r.y + r.height - offset_y) / scale

    x0 = int(max(0, min(sw, round(x0))))
    y0 = int(max(0, min(sh, round(y0))))
    x1 = int(max(0, min(sw, round(x1))))
    y1 = int(max(0, min(sh, round(y1))))

    mapped = Rect(x0, y0, x1 - x0, y1 - y0)
    if mapped.is_degenerate:
        return None
    return mapped
