"""Band-parallel rendering of Mandelbrot images."""

from __future__ import annotations

import os
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .escape import ESCAPE_LIMIT, escape_counts, escape_time, intensities, intensity
from .plane import ImageBounds, Viewport, pixel_to_point

BACKENDS = ("python", "numpy", "tensorflow")
EXECUTORS = ("thread", "process")


@dataclass(frozen=True)
class RenderParameters:
    """Parameters that describe a single render of the Mandelbrot set."""

    bounds: ImageBounds
    viewport: Viewport
    max_iterations: int = ESCAPE_LIMIT
    backend: str = "numpy"
    executor: str = "thread"
    workers: Optional[int] = None

    def __post_init__(self) -> None:
        _check_options(self.max_iterations, self.backend, self.executor, self.workers)


@dataclass(frozen=True)
class RenderResult:
    """A filled pixel buffer together with its size."""

    pixels: bytearray
    bounds: ImageBounds

    def as_array(self) -> np.ndarray:
        """Return the pixels as a ``(height, width)`` array of gray levels."""

        return np.frombuffer(self.pixels, dtype=np.uint8).reshape(self.bounds.height, self.bounds.width)


@dataclass(frozen=True)
class Band:
    """One pixel row of a buffer, writable in place."""

    row: int
    pixels: memoryview


def _check_options(max_iterations: int, backend: str, executor: str, workers: Optional[int]) -> None:
    if isinstance(max_iterations, bool) or not isinstance(max_iterations, int) or max_iterations <= 0:
        raise ValueError(f"max_iterations must be a positive integer, got {max_iterations!r}.")
    if backend not in BACKENDS:
        raise ValueError(f"Unknown backend '{backend}'. Valid choices: {', '.join(BACKENDS)}.")
    if executor not in EXECUTORS:
        raise ValueError(f"Unknown executor '{executor}'. Valid choices: {', '.join(EXECUTORS)}.")
    if workers is not None and workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}.")
    if backend == "tensorflow" and executor == "process":
        raise ValueError("The tensorflow backend only runs with the thread executor.")


def allocate_pixels(bounds: ImageBounds) -> bytearray:
    """Return a zero-filled buffer sized for ``bounds``."""

    return bytearray(bounds.pixel_count)


def split_bands(buffer, bounds: ImageBounds) -> list[Band]:
    """Partition ``buffer`` into one band per pixel row."""

    view = memoryview(buffer).cast("B")
    width = bounds.width
    return [Band(row=row, pixels=view[row * width:(row + 1) * width]) for row in range(bounds.height)]


def band_viewport(bounds: ImageBounds, row: int, viewport: Viewport) -> Viewport:
    """Return the sub-viewport covered by pixel row ``row``."""

    upper_left = pixel_to_point(bounds, (0, row), viewport)
    lower_right = pixel_to_point(bounds, (bounds.width, row + 1), viewport)
    return Viewport._unchecked(upper_left, lower_right)


def plane_grid(bounds: ImageBounds, viewport: Viewport) -> tuple[np.ndarray, np.ndarray]:
    """Return real and imaginary parts of every pixel, shaped ``(height, width)``.

    Matches :func:`pixel_to_point` operation for operation.
    """

    columns = np.arange(bounds.width, dtype=np.float64)
    rows = np.arange(bounds.height, dtype=np.float64)
    real = viewport.upper_left.real + columns * viewport.plane_width / bounds.width
    imag = viewport.upper_left.imag - rows * viewport.plane_height / bounds.height
    return np.broadcast_arrays(real[np.newaxis, :], imag[:, np.newaxis])


def _render_python(pixels, bounds: ImageBounds, viewport: Viewport, limit: int) -> None:
    for row in range(bounds.height):
        for column in range(bounds.width):
            point = pixel_to_point(bounds, (column, row), viewport)
            pixels[row * bounds.width + column] = intensity(escape_time(point, limit), limit)


def _render_vectorized(pixels, bounds: ImageBounds, viewport: Viewport, limit: int, backend: str) -> None:
    real, imag = plane_grid(bounds, viewport)
    if backend == "tensorflow":
        from . import tensor

        counts = tensor.escape_counts(real, imag, limit)
    else:
        counts = escape_counts(real, imag, limit)
    pixels[:] = intensities(counts, limit).tobytes()


def render_band(pixels, bounds: ImageBounds, viewport: Viewport, limit: int = ESCAPE_LIMIT, backend: str = "numpy") -> None:
    """Fill ``pixels`` with the image of ``viewport`` at size ``bounds``."""

    if len(pixels) != bounds.pixel_count:
        raise AssertionError(f"buffer holds {len(pixels)} pixels, bounds require {bounds.pixel_count}")
    if backend == "python":
        _render_python(pixels, bounds, viewport, limit)
    else:
        _render_vectorized(pixels, bounds, viewport, limit, backend)


def _compute_band(bounds: ImageBounds, viewport: Viewport, limit: int, backend: str) -> bytes:
    pixels = bytearray(bounds.pixel_count)
    render_band(pixels, bounds, viewport, limit, backend)
    return bytes(pixels)


def _make_executor(executor: str, workers: int) -> Executor:
    if executor == "process":
        return ProcessPoolExecutor(max_workers=workers)
    return ThreadPoolExecutor(max_workers=workers, thread_name_prefix="band")


def render(
    buffer,
    bounds: ImageBounds,
    viewport: Viewport,
    *,
    max_iterations: int = ESCAPE_LIMIT,
    backend: str = "numpy",
    executor: str = "thread",
    workers: Optional[int] = None,
    on_band: Optional[Callable[[int], None]] = None,
) -> None:
    """Render the Mandelbrot set over ``viewport`` into ``buffer`` in place.

    The buffer is split into one band per pixel row and every band is
    rendered as a one-row image over its own slice of the viewport. Bands
    share nothing but read-only parameters, so they run on ``workers``
    threads or processes without locking, and the result does not depend on
    how many workers were used or in which order bands finished.

    ``on_band`` is called in the caller's thread with the row index of each
    finished band.
    """

    if len(buffer) != bounds.pixel_count:
        raise AssertionError(f"buffer holds {len(buffer)} pixels, bounds require {bounds.pixel_count}")
    _check_options(max_iterations, backend, executor, workers)

    if workers is None:
        workers = os.cpu_count() or 1

    band_bounds = ImageBounds(width=bounds.width, height=1)
    bands = split_bands(buffer, bounds)

    if workers == 1:
        for band in bands:
            render_band(band.pixels, band_bounds, band_viewport(bounds, band.row, viewport), max_iterations, backend)
            if on_band is not None:
                on_band(band.row)
        return

    with _make_executor(executor, workers) as pool:
        futures = {}
        for band in bands:
            sub_viewport = band_viewport(bounds, band.row, viewport)
            if executor == "process":
                future = pool.submit(_compute_band, band_bounds, sub_viewport, max_iterations, backend)
            else:
                future = pool.submit(render_band, band.pixels, band_bounds, sub_viewport, max_iterations, backend)
            futures[future] = band

        for future in as_completed(futures):
            band = futures[future]
            data = future.result()
            if data is not None:
                band.pixels[:] = data
            if on_band is not None:
                on_band(band.row)


def render_image(params: RenderParameters, on_band: Optional[Callable[[int], None]] = None) -> RenderResult:
    """Render a Mandelbrot image given the supplied parameters."""

    pixels = allocate_pixels(params.bounds)
    render(
        pixels,
        params.bounds,
        params.viewport,
        max_iterations=params.max_iterations,
        backend=params.backend,
        executor=params.executor,
        workers=params.workers,
        on_band=on_band,
    )
    return RenderResult(pixels=pixels, bounds=params.bounds)
