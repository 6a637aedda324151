from __future__ import annotations
"""Command line for pushing checkpoint parts to text files."""
import argparse
import logging
import sys

from .converter import run_push
from .errors import ConfigurationError, ObsFsError
from .filesystem import StreamFactory

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NO_INPUT = 1
EXIT_WORKER_FAILED = 2

INPUT_NAMES = ("input", "model_in")
OUTPUT_NAMES = ("output", "push_out")
INVERSE_NAME = "need_inverse"


def parse_assignment(text: str) -> tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected name=value, got {text!r}")
    return name.strip(), value.strip()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="obsfs-push",
        description="Convert binary checkpoint parts into tab-separated text, one thread per part.",
    )
    parser.add_argument(
        "assignments",
        nargs="*",
        type=parse_assignment,
        metavar="name=value",
        help="input=<path-or-glob> output=<dir> [need_inverse=0|1]",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Bound the number of concurrent workers (default: one per file)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: INFO)",
    )
    args = parser.parse_args(argv)

    values = dict(args.assignments)
    args.input = next((values[name] for name in INPUT_NAMES if values.get(name)), None)
    args.output = next((values[name] for name in OUTPUT_NAMES if values.get(name)), None)
    args.need_inverse = values.get(INVERSE_NAME, "0") != "0"
    if not args.input or not args.output:
        parser.error("both input=<path-or-glob> and output=<dir> are required")
    if args.workers is not None and args.workers <= 0:
        parser.error("--workers must be greater than zero")
    return args


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None, factory: StreamFactory | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        report = run_push(
            args.input,
            args.output,
            need_inverse=args.need_inverse,
            factory=factory,
            max_workers=args.workers,
        )
    except ConfigurationError as exc:
        LOGGER.error("%s", exc)
        return EXIT_NO_INPUT
    except ObsFsError as exc:
        LOGGER.error("Cannot resolve %s -> %s: %s", args.input, args.output, exc)
        return EXIT_NO_INPUT

    if not report.results:
        LOGGER.info("no matched model part files for %s", args.input)
        return EXIT_NO_INPUT
    for failure in report.failures:
        LOGGER.error("push %s -> %s failed: %s", failure.source, failure.destination, failure.error)
    LOGGER.info(
        "pushed %d kv pairs from %d file(s), %d failed",
        report.total_records,
        len(report.results),
        len(report.failures),
    )
    return EXIT_WORKER_FAILED if report.failures else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
