import argparse
import logging
from pathlib import Path

from ..census import Census
from ..config import DEFAULT_THROTTLE, CensusConfig
from ..errors import ConfigurationError
from ..reachability import DEFAULT_TIMEOUT
from ..reader import summarize


# =====================================================
# Helpers
# =====================================================

def split_extensions(values):
    """Accept ``-e exe -e dll`` as well as ``-e exe,dll``."""
    exts = []
    for value in values or []:
        exts.extend(v for v in value.split(",") if v.strip())
    return exts


def format_size(n: int) -> str:
    size = float(n)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


# =====================================================
# Scan Command
# =====================================================

def cmd_scan(args):
    config = CensusConfig(
        roots=args.roots,
        throttle=args.throttle,
        include_ext=split_extensions(args.include_ext),
        echo_to_console=args.echo_to_console,
        verbose_errors=args.verbose_errors,
        target_file=args.target_file,
        output_dir=args.output_dir,
        temp_dir=args.temp_dir,
        ignore_file=args.ignore_file,
        probe_timeout=args.probe_timeout,
    )

    try:
        census = Census(config)
    except ConfigurationError as exc:
        raise SystemExit(f"Error: {exc}")

    outcomes = census.run()

    if not census.found_roots:
        raise SystemExit("Error: none of the given roots could be scanned.")

    failed = [o for o in outcomes if o.status != "ok"]
    if failed:
        raise SystemExit(1)


# =====================================================
# Stats Command
# =====================================================

def cmd_stats(args):
    for archive in args.archives:
        path = Path(archive)
        if not path.exists():
            raise SystemExit(f"Archive not found: {path}")

        try:
            summary = summarize(path)
        except ValueError as exc:
            raise SystemExit(f"Error: {exc}")

        print("=" * 60)
        print(f"Archive : {path}")
        print(f"Files   : {summary.rows}")
        print(f"Size    : {format_size(summary.total_bytes)} ({summary.total_bytes} bytes)")
        if summary.largest is not None:
            print(f"Largest : {summary.largest.path} ({summary.largest.size} bytes)")

    print("=" * 60)


# =====================================================
# CLI
# =====================================================

def main(argv=None):
    parser = argparse.ArgumentParser(prog="fcensus")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # ----------------------
    # scan
    # ----------------------
    scan = sub.add_parser("scan", help="Inventory every file under the given roots")
    scan.add_argument("roots", nargs="+", help="Local folders or \\\\host\\share paths")
    scan.add_argument("-t", "--throttle", type=int, default=DEFAULT_THROTTLE,
                      help=f"Workers per root (default: {DEFAULT_THROTTLE})")
    scan.add_argument("-e", "--include-ext", action="append",
                      help="Only keep files with this extension (repeatable)")
    scan.add_argument("--echo-to-console", action="store_true",
                      help="Print each matched path as it is found")
    scan.add_argument("--verbose-errors", action="store_true",
                      help="Record every failure in errors.log")
    scan.add_argument("--target-file", help="Where to write the targets list")
    scan.add_argument("-o", "--output-dir", default="census")
    scan.add_argument("--temp-dir", help="Directory for worker temp files")
    scan.add_argument("--ignore-file", help="gitignore-style exclusion patterns")
    scan.add_argument("--probe-timeout", type=float, default=DEFAULT_TIMEOUT,
                      help="Network reachability probe timeout in seconds")
    scan.set_defaults(func=cmd_scan)

    # ----------------------
    # stats
    # ----------------------
    stats = sub.add_parser("stats", help="Summarize census archives")
    stats.add_argument("archives", nargs="+", help="<RootTag>.zip files")
    stats.set_defaults(func=cmd_stats)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
