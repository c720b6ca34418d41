"""Public API for Mandelbrot rendering utilities."""

from .escape import ESCAPE_LIMIT, escape_counts, escape_time, intensities, intensity
from .plane import ImageBounds, Viewport, parse_bounds, parse_complex, parse_pair, pixel_to_point
from .renderer import (
    BACKENDS,
    EXECUTORS,
    Band,
    RenderParameters,
    RenderResult,
    allocate_pixels,
    band_viewport,
    plane_grid,
    render,
    render_band,
    render_image,
    split_bands,
)

__all__ = [
    "BACKENDS",
    "ESCAPE_LIMIT",
    "EXECUTORS",
    "Band",
    "ImageBounds",
    "RenderParameters",
    "RenderResult",
    "Viewport",
    "allocate_pixels",
    "band_viewport",
    "escape_counts",
    "escape_time",
    "intensities",
    "intensity",
    "parse_bounds",
    "parse_complex",
    "parse_pair",
    "pixel_to_point",
    "plane_grid",
    "render",
    "render_band",
    "render_image",
    "split_bands",
]
