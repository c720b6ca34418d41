import os
import re
import sys
import warnings
from argparse import ArgumentParser
from pathlib import Path

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

VERBOSE = _cli_verbose


def log(message, *args, **kwargs):
    if VERBOSE:
        print(message, *args, **kwargs)


import PIL.Image

from mandelbrot import (
    BACKENDS,
    ESCAPE_LIMIT,
    EXECUTORS,
    RenderParameters,
    RenderResult,
    Viewport,
    parse_bounds,
    parse_complex,
    render_image,
)

EXAMPLE = "mandel.py mandel.png 1000x750 -1.20,0.35 -1,0.20"


def build_parser():
    parser = ArgumentParser(
        usage="%(prog)s FILE PIXELS UPPERLEFT LOWERRIGHT [options]",
        description="Render the Mandelbrot set as a grayscale image.",
        epilog=f"Example: {EXAMPLE}",
    )
    # corners such as -1.20,0.35 are values, not options
    parser._negative_number_matcher = re.compile(r"^-\.?\d")

    parser.add_argument('file', metavar='FILE', help='image file to write')

    parser.add_argument('pixels', metavar='PIXELS',
                        help='image size in pixels, written WIDTHxHEIGHT (e.g. 1000x750)')

    parser.add_argument('upper_left', metavar='UPPERLEFT',
                        help='upper left corner of the viewport in the complex plane, written RE,IM')

    parser.add_argument('lower_right', metavar='LOWERRIGHT',
                        help='lower right corner of the viewport in the complex plane, written RE,IM')

    parser.add_argument('--max-iterations', type=int,
                        dest='max_iterations', help='iteration budget before a point is presumed to be in the set',
                        metavar='MAX_ITERATIONS', default=ESCAPE_LIMIT)

    parser.add_argument('--workers', type=int,
                        dest='workers', help='number of parallel workers rendering bands. Default: one per CPU.',
                        metavar='WORKERS', default=None)

    parser.add_argument('--executor', choices=EXECUTORS, default='thread',
                        help='Run bands on a thread pool or a process pool.')

    parser.add_argument('--backend', choices=BACKENDS, default='numpy',
                        help='Escape-time kernel: pure "python", vectorized "numpy" or "tensorflow".')

    parser.add_argument('--format', type=str,
                        dest='format', help='file format of the image. Can be any format supported by Pillow. Default: inferred from FILE, else "png".',
                        metavar='FORMAT', default=None)

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging, including progress and TensorFlow diagnostics.')

    return parser


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "JPG":
        return "JPEG"
    if upper == "TIF":
        return "TIFF"
    return upper


def resolve_parameters(opt, parser: ArgumentParser) -> RenderParameters:
    bounds = parse_bounds(opt.pixels)
    if bounds is None:
        parser.error(f"Error parsing image dimensions '{opt.pixels}'.")
    upper_left = parse_complex(opt.upper_left)
    if upper_left is None:
        parser.error(f"Error parsing upper left corner point '{opt.upper_left}'.")
    lower_right = parse_complex(opt.lower_right)
    if lower_right is None:
        parser.error(f"Error parsing lower right corner point '{opt.lower_right}'.")

    try:
        viewport = Viewport(upper_left, lower_right)
        return RenderParameters(
            bounds=bounds,
            viewport=viewport,
            max_iterations=opt.max_iterations,
            backend=opt.backend,
            executor=opt.executor,
            workers=opt.workers,
        )
    except ValueError as exc:
        parser.error(str(exc))


def resolve_format(output_path: Path, image_format) -> str:
    image_format = (image_format or output_path.suffix or "png").lower().lstrip(".")
    return image_format or "png"


def write_image(result: RenderResult, output_path: Path, image_format: str) -> None:
    """Write the rendered buffer to ``output_path`` as an 8-bit grayscale image."""

    image = PIL.Image.fromarray(result.as_array())
    output_path.parent.mkdir(parents=True, exist_ok=True)
    image.save(str(output_path), format=_pil_format_name(image_format))


def main(argv=None) -> int:
    parser = build_parser()
    opt = parser.parse_args(argv)

    global VERBOSE
    VERBOSE = bool(opt.verbose)

    params = resolve_parameters(opt, parser)
    output_path = Path(opt.file).expanduser()
    image_format = resolve_format(output_path, opt.format)

    if params.backend == "tensorflow" and not VERBOSE:
        import tensorflow as tf

        tf.get_logger().setLevel("ERROR")

    width, height = params.bounds.width, params.bounds.height
    log(f"Rendering {width}x{height} pixels over {params.viewport.upper_left} .. {params.viewport.lower_right}")
    log(f"Backend: {params.backend}, executor: {params.executor}, workers: {params.workers or os.cpu_count()}")

    done = 0

    def progress(row):
        nonlocal done
        done += 1
        log("row {0} out of {1}".format(done, height), end='\r')

    result = render_image(params, on_band=progress)
    log("")

    try:
        write_image(result, output_path, image_format)
    except (OSError, ValueError, KeyError) as exc:
        print(f"Error writing image file '{output_path}': {exc}", file=sys.stderr)
        return 1

    log(f"Wrote {output_path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
