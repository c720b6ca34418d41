import numpy as np
import pytest

from mandelbrot import (
    ImageBounds,
    RenderParameters,
    Viewport,
    allocate_pixels,
    band_viewport,
    escape_time,
    intensity,
    pixel_to_point,
    render,
    render_band,
    render_image,
    split_bands,
)

BOUNDS = ImageBounds(100, 100)
VIEWPORT = Viewport(complex(-2.0, 1.2), complex(0.6, -1.2))


@pytest.fixture(scope="module")
def reference():
    pixels = allocate_pixels(BOUNDS)
    render(pixels, BOUNDS, VIEWPORT, workers=1)
    return bytes(pixels)


def _render(**options):
    pixels = allocate_pixels(BOUNDS)
    render(pixels, BOUNDS, VIEWPORT, **options)
    return bytes(pixels)


def test_split_bands_partitions_the_buffer():
    bounds = ImageBounds(7, 5)
    buffer = allocate_pixels(bounds)
    bands = split_bands(buffer, bounds)
    assert [band.row for band in bands] == list(range(5))
    for band in bands:
        band.pixels[:] = bytes([band.row + 1]) * bounds.width
    assert buffer == b"".join(bytes([row + 1]) * 7 for row in range(5))


def test_band_viewport_follows_row():
    bounds = ImageBounds(4, 8)
    viewport = Viewport(complex(-1.0, 1.0), complex(1.0, -1.0))
    band = band_viewport(bounds, 2, viewport)
    assert band.upper_left == pixel_to_point(bounds, (0, 2), viewport)
    assert band.lower_right == pixel_to_point(bounds, (4, 3), viewport)
    assert band.upper_left == complex(-1.0, 0.5)
    assert band.lower_right == complex(1.0, 0.25)


def test_render_matches_per_pixel_evaluation(reference):
    band_bounds = ImageBounds(BOUNDS.width, 1)
    for row in (0, 17, 50, 99):
        sub_viewport = band_viewport(BOUNDS, row, VIEWPORT)
        for column in (0, 1, 42, 99):
            point = pixel_to_point(band_bounds, (column, 0), sub_viewport)
            expected = intensity(escape_time(point, 255))
            assert reference[row * BOUNDS.width + column] == expected


def test_render_contains_members_and_escapes(reference):
    assert 0 in reference
    assert max(reference) > 200


@pytest.mark.parametrize("workers", [2, 3, 7, 16, 150])
def test_render_is_independent_of_worker_count(reference, workers):
    assert _render(workers=workers) == reference


def test_render_with_process_pool(reference):
    assert _render(workers=3, executor="process") == reference


def test_render_is_idempotent(reference):
    assert _render(workers=4) == _render(workers=4) == reference


def test_python_backend_matches_numpy():
    bounds = ImageBounds(40, 30)
    viewport = Viewport(complex(-1.20, 0.35), complex(-1.0, 0.20))
    python_pixels = allocate_pixels(bounds)
    numpy_pixels = allocate_pixels(bounds)
    render(python_pixels, bounds, viewport, backend="python", workers=2)
    render(numpy_pixels, bounds, viewport, backend="numpy", workers=1)
    assert python_pixels == numpy_pixels


def test_tensorflow_backend_matches_numpy():
    pytest.importorskip("tensorflow")
    bounds = ImageBounds(24, 18)
    expected = allocate_pixels(bounds)
    pixels = allocate_pixels(bounds)
    render(expected, bounds, VIEWPORT, workers=1)
    render(pixels, bounds, VIEWPORT, backend="tensorflow", workers=2)
    assert pixels == expected


def test_render_accepts_numpy_buffers(reference):
    pixels = np.zeros(BOUNDS.pixel_count, dtype=np.uint8)
    render(pixels, BOUNDS, VIEWPORT, workers=2)
    assert pixels.tobytes() == reference


def test_render_rejects_mismatched_buffer():
    with pytest.raises(AssertionError):
        render(bytearray(BOUNDS.pixel_count - 1), BOUNDS, VIEWPORT)
    with pytest.raises(AssertionError):
        render_band(bytearray(3), ImageBounds(2, 1), VIEWPORT)


@pytest.mark.parametrize(
    "options",
    [
        {"workers": 0},
        {"backend": "cuda"},
        {"executor": "cluster"},
        {"max_iterations": 0},
        {"backend": "tensorflow", "executor": "process"},
    ],
)
def test_render_rejects_bad_options(options):
    with pytest.raises(ValueError):
        render(allocate_pixels(BOUNDS), BOUNDS, VIEWPORT, **options)


def test_on_band_reports_every_row():
    seen = []
    render(allocate_pixels(BOUNDS), BOUNDS, VIEWPORT, workers=4, on_band=seen.append)
    assert sorted(seen) == list(range(BOUNDS.height))


def test_render_image(reference):
    result = render_image(RenderParameters(bounds=BOUNDS, viewport=VIEWPORT, workers=3))
    assert bytes(result.pixels) == reference
    array = result.as_array()
    assert array.shape == (BOUNDS.height, BOUNDS.width)
    assert array[0].tobytes() == reference[:BOUNDS.width]


def test_larger_budget_keeps_members_black():
    bounds = ImageBounds(32, 24)
    result = render_image(RenderParameters(bounds=bounds, viewport=VIEWPORT, max_iterations=1000, workers=1))
    array = result.as_array()
    reference = render_image(RenderParameters(bounds=bounds, viewport=VIEWPORT, workers=1)).as_array()
    # every point black at 1000 iterations was already black at 255
    assert np.all(reference[array == 0] == 0)


def test_render_parameters_validation():
    with pytest.raises(ValueError):
        RenderParameters(bounds=BOUNDS, viewport=VIEWPORT, workers=-2)
    with pytest.raises(ValueError):
        RenderParameters(bounds=BOUNDS, viewport=VIEWPORT, max_iterations=True)


DEEP_VIEWPORT = Viewport(complex(-0.75, 0.1), complex(-0.75 + 1e-15, 0.1 - 1e-15))


def test_band_viewport_survives_float64_precision_limit():
    bounds = ImageBounds(100, 100)
    rows = [band_viewport(bounds, row, DEEP_VIEWPORT) for row in range(bounds.height)]
    # adjacent rows collapse onto the same imaginary value at this depth
    assert any(band.upper_left.imag == band.lower_right.imag for band in rows)


@pytest.mark.parametrize("workers", [4, 7])
def test_deep_zoom_renders_independently_of_worker_count(workers):
    bounds = ImageBounds(100, 100)
    serial = allocate_pixels(bounds)
    parallel = allocate_pixels(bounds)
    render(serial, bounds, DEEP_VIEWPORT, workers=1)
    render(parallel, bounds, DEEP_VIEWPORT, workers=workers)
    assert parallel == serial


def test_deep_zoom_with_process_pool_and_python_backend():
    bounds = ImageBounds(20, 20)
    expected = allocate_pixels(bounds)
    pixels = allocate_pixels(bounds)
    render(expected, bounds, DEEP_VIEWPORT, workers=1)
    render(pixels, bounds, DEEP_VIEWPORT, workers=2, executor="process", backend="python")
    assert pixels == expected
