"""Image bounds, viewports and the pixel-to-plane mapping."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

T = TypeVar("T", int, float)


@dataclass(frozen=True)
class ImageBounds:
    """Size of the pixel grid, in pixels."""

    width: int
    height: int

    def __post_init__(self) -> None:
        for name in ("width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}.")
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}.")

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class Viewport:
    """Rectangle of the complex plane covered by an image.

    ``upper_left`` maps onto pixel ``(0, 0)`` and ``lower_right`` onto pixel
    ``(width, height)``. Pixel rows grow downwards while the imaginary axis
    grows upwards, so the upper-left corner has the larger imaginary part.
    """

    upper_left: complex
    lower_right: complex

    def __post_init__(self) -> None:
        upper_left = complex(self.upper_left)
        lower_right = complex(self.lower_right)
        for value in (upper_left.real, upper_left.imag, lower_right.real, lower_right.imag):
            if not math.isfinite(value):
                raise ValueError("Viewport corners must be finite.")
        if not upper_left.real < lower_right.real:
            raise ValueError("upper_left must lie to the left of lower_right.")
        if not upper_left.imag > lower_right.imag:
            raise ValueError("upper_left must lie above lower_right.")
        object.__setattr__(self, "upper_left", upper_left)
        object.__setattr__(self, "lower_right", lower_right)

    @classmethod
    def _unchecked(cls, upper_left: complex, lower_right: complex) -> Viewport:
        """Build a viewport derived from an already validated one.

        Sub-regions of a deep zoom may round to zero height in float64 and
        still render like any other row.
        """

        viewport = object.__new__(cls)
        object.__setattr__(viewport, "upper_left", complex(upper_left))
        object.__setattr__(viewport, "lower_right", complex(lower_right))
        return viewport

    @property
    def plane_width(self) -> float:
        return self.lower_right.real - self.upper_left.real

    @property
    def plane_height(self) -> float:
        return self.upper_left.imag - self.lower_right.imag


def pixel_to_point(bounds: ImageBounds, pixel: tuple[int, int], viewport: Viewport) -> complex:
    """Return the point of the complex plane under ``pixel``.

    ``pixel`` is a ``(column, row)`` pair. Pixels outside ``bounds`` are not
    rejected; they extrapolate along the same affine map.
    """

    column, row = pixel
    plane_width = viewport.lower_right.real - viewport.upper_left.real
    plane_height = viewport.upper_left.imag - viewport.lower_right.imag
    return complex(
        viewport.upper_left.real + column * plane_width / bounds.width,
        # subtract: rows grow downwards, the imaginary axis upwards
        viewport.upper_left.imag - row * plane_height / bounds.height,
    )


def _parse_number(text: str, kind: Callable[[str], T]) -> Optional[T]:
    # int() and float() tolerate padding and digit separators
    if not text or text != text.strip() or "_" in text:
        return None
    try:
        return kind(text)
    except ValueError:
        return None


def parse_pair(text: str, separator: str, kind: Callable[[str], T] = float) -> Optional[tuple[T, T]]:
    """Parse ``text`` as a pair like ``"400x600"`` or ``"1.0,0.5"``.

    ``text`` must read ``<left><separator><right>``, split at the first
    ``separator``, with both halves convertible by ``kind``. Returns the
    converted pair, or ``None`` when the separator is missing or either half
    does not parse.
    """

    left, found, right = text.partition(separator)
    if not found:
        return None
    left_value = _parse_number(left, kind)
    right_value = _parse_number(right, kind)
    if left_value is None or right_value is None:
        return None
    return left_value, right_value


def parse_complex(text: str) -> Optional[complex]:
    """Parse a ``"re,im"`` pair into a complex number."""

    pair = parse_pair(text, ",", float)
    if pair is None:
        return None
    return complex(pair[0], pair[1])


def parse_bounds(text: str) -> Optional[ImageBounds]:
    """Parse a ``"WIDTHxHEIGHT"`` pair into image bounds."""

    pair = parse_pair(text, "x", int)
    if pair is None or pair[0] <= 0 or pair[1] <= 0:
        return None
    return ImageBounds(width=pair[0], height=pair[1])
