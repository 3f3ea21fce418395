"""Command line entry point: profile a Python script and report hotspots."""

import argparse
import os
import runpy
import sys
import threading

import structlog

from cpuspot.app import ReportApp
from cpuspot.errors import SamplingError
from cpuspot.formatting import format_report
from cpuspot.log import configure_logging
from cpuspot.report import Report, build_report
from cpuspot.sampler import DEFAULT_INTERVAL, DEFAULT_SAMPLES, StackSampler

log = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cpuspot",
        description="Sample thread stacks and CPU time of a Python script and "
        "report the most expensive stacks.",
        epilog="Example: cpuspot -s 60 -i 500 server.py  "
        "(take 60 samples once every 500 milliseconds)",
    )
    parser.add_argument("script", help="Python script to run and profile")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="arguments passed to the script")
    parser.add_argument(
        "-s",
        "--samples",
        type=int,
        default=DEFAULT_SAMPLES,
        help=f"how many samples to take (default: {DEFAULT_SAMPLES})",
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=int,
        default=int(DEFAULT_INTERVAL * 1000),
        help="interval between samples in milliseconds (default: %(default)s)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=None,
        help="keep only this many innermost frames per stack",
    )
    parser.add_argument("--text", action="store_true", help="print a plain-text report")
    parser.add_argument("-v", "--verbose", action="store_true", help="log sampler progress")
    return parser


def profile_script(
    script: str,
    script_args: list[str],
    samples: int = DEFAULT_SAMPLES,
    interval: float = DEFAULT_INTERVAL,
    max_depth: int | None = None,
) -> Report:
    """
    Run a script in a worker thread while sampling the process.

    Sampling ends when the sample budget is used up or the script returns,
    whichever comes first. The script is always run to completion before
    the report is built, and the calling thread is never sampled.

    Raises:
        SamplingError: If the script does not exist or nothing was sampled.
    """
    if not os.path.isfile(script):
        raise SamplingError(f"no such script: {script}")

    finished = threading.Event()

    def run() -> None:
        try:
            runpy.run_path(script, run_name="__main__")
        except SystemExit:
            pass
        except Exception:
            log.exception("script_failed", script=script)
        finally:
            finished.set()

    saved_argv = sys.argv
    sys.argv = [script, *script_args]
    sampler = StackSampler(
        interval=interval,
        max_samples=samples,
        max_depth=max_depth,
        exclude={threading.get_ident()},
    )
    worker = threading.Thread(target=run, daemon=True, name="cpuspot-target")
    try:
        sampler.start()
        worker.start()
        while sampler.is_running and not finished.is_set():
            finished.wait(timeout=sampler.interval)
        sampler.stop()
        if not finished.is_set():
            log.info("waiting_for_script", script=script)
            worker.join()
    finally:
        sampler.stop()
        sys.argv = saved_argv

    sequences = sampler.store.sequences()
    if not sequences:
        raise SamplingError("no samples were collected")
    return build_report(sequences)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the cpuspot command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.samples < 1:
        parser.error("--samples must be at least 1")
    if args.interval < 1:
        parser.error("--interval must be at least 1 millisecond")

    configure_logging(args.verbose)

    try:
        report = profile_script(
            args.script,
            args.args,
            samples=args.samples,
            interval=args.interval / 1000,
            max_depth=args.max_depth,
        )
    except SamplingError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.text:
        print(format_report(report))
    else:
        ReportApp(report).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
