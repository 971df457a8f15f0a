#!/usr/bin/env python3
"""Render avatar-fit and background variants for every brand icon, then package them."""

import argparse
import gc
import logging
import sys
from pathlib import Path

from config import PatcherConfig
from scheduler import copy_to_packages, generate_index_json, run_jobs, scan_jobs


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Render avatar-fit and background variants for brand icons.'
    )
    parser.add_argument(
        'brands',
        nargs='*',
        help='Only process these brands (default: all)'
    )
    parser.add_argument(
        '--config', '-c',
        help='JSON configuration file'
    )
    parser.add_argument(
        '--working-dir', '-w',
        help='Working directory holding input/icons (default: ./working)'
    )
    parser.add_argument(
        '--packages-dir', '-p',
        help='Destination for packaged output (default: ../packages)'
    )
    parser.add_argument(
        '--workers',
        type=int,
        help='Maximum number of brands processed concurrently'
    )
    parser.add_argument(
        '--dev',
        action='store_true',
        help='Process brands sequentially on the main thread'
    )
    parser.add_argument(
        '--no-package',
        action='store_true',
        help='Skip copying to the packages directory and writing index.json'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Debug logging'
    )
    return parser


def load_config(args) -> PatcherConfig:
    config = PatcherConfig.load(args.config) if args.config else PatcherConfig.from_env()

    overrides = {}
    if args.working_dir:
        overrides['working_dir'] = Path(args.working_dir)
    if args.packages_dir:
        overrides['packages_dir'] = Path(args.packages_dir)
    if args.workers is not None:
        if args.workers < 1:
            raise ValueError("--workers must be at least 1")
        overrides['max_workers'] = args.workers
    if args.dev:
        overrides['development'] = True
    return config.with_overrides(**overrides)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=logging.DEBUG if (args.verbose or config.development) else logging.INFO,
        format='%(asctime)s %(levelname)-7s %(name)s: %(message)s',
    )

    print("Starting icon patcher")

    if not config.input_icons_dir.is_dir():
        print(f"Error: Input directory not found: {config.input_icons_dir}", file=sys.stderr)
        return 2

    # Decoded images are large and short-lived; start processing from a clean heap
    gc.collect()

    print("Processing images...")
    jobs = scan_jobs(config, args.brands)
    print(f"  Discovered {len(jobs)} brands")

    report = run_jobs(jobs, config)

    print()
    for line in report.summary():
        print(f"  {line}")
    print(f"Processed {len(report.jobs)} jobs, wrote {report.produced_count} files")

    if not args.no_package:
        copy_to_packages(config)
        index_file = generate_index_json(config)
        if index_file is not None:
            print(f"Wrote: {index_file}")

    failures = report.failures
    if failures:
        print(f"Failed ({len(failures)}):", file=sys.stderr)
        for failure in failures:
            where = f"{failure.brand}/{failure.file}" if failure.file else failure.brand
            suffix = f" [{failure.suffix}]" if failure.suffix else ''
            print(f"  - {where}{suffix}: {failure.error}", file=sys.stderr)
        return 1

    print("Icon patching complete!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
