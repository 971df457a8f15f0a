#!/usr/bin/env python3
"""
Brand discovery, concurrent job execution, and the finalize step.

One job per brand directory. In production all jobs go to a bounded thread
pool and the caller blocks until every one has finished; in development they
run one after another on the calling thread.
"""

import json
import logging
import shutil
import time
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import Optional

from config import PatcherConfig
from jobs import BrandJob
from models import JobReport, RunReport


logger = logging.getLogger(__name__)


# =============================================================================
# Discovery
# =============================================================================

def is_candidate_image(path: Path, config: PatcherConfig) -> bool:
    """Supported raster extension and no ignored property token in the name."""
    if not path.is_file():
        return False
    if path.suffix.lower().lstrip('.') not in config.raster_extensions:
        return False
    return all(token not in config.ignore_properties for token in path.stem.split('-'))


def find_brand_files(brand_dir: Path, config: PatcherConfig) -> list:
    return sorted(p for p in brand_dir.iterdir() if is_candidate_image(p, config))


def scan_jobs(config: PatcherConfig, brand_filter=None) -> list:
    """
    Create one BrandJob per brand directory under the input icons directory.

    Args:
        config: Patcher configuration
        brand_filter: Optional brand names; when given, other brands are skipped

    Returns:
        List of BrandJob, sorted by brand name
    """
    input_dir = config.input_icons_dir
    if not input_dir.exists():
        return []

    brand_filter = set(brand_filter or ())
    jobs = []
    for brand_dir in sorted(p for p in input_dir.iterdir() if p.is_dir()):
        if brand_filter and brand_dir.name not in brand_filter:
            continue
        jobs.append(BrandJob(
            brand=brand_dir.name,
            files=find_brand_files(brand_dir, config),
            output_dir=config.output_icons_dir / brand_dir.name,
            config=config,
        ))
    return jobs


# =============================================================================
# Execution
# =============================================================================

def _run_job(job: BrandJob) -> JobReport:
    try:
        return job.run()
    except Exception as e:
        logger.warning(f"Error processing brand {job.brand}: {e}")
        return JobReport(brand=job.brand, error=str(e))


def run_jobs(jobs: list, config: Optional[PatcherConfig] = None) -> RunReport:
    """
    Run every job and wait for all of them.

    Returns:
        RunReport with one JobReport per job, in the order given
    """
    config = config or PatcherConfig()
    start = time.perf_counter()

    if config.development:
        reports = [_run_job(job) for job in jobs]
    else:
        with ThreadPoolExecutor(max_workers=config.max_workers, thread_name_prefix='brand') as pool:
            futures = [pool.submit(_run_job, job) for job in jobs]
            wait(futures)
        reports = [f.result() for f in futures]

    elapsed = time.perf_counter() - start
    logger.info(f"Processed {len(reports)} jobs in {elapsed:.2f}s")
    return RunReport(jobs=reports)


# =============================================================================
# Finalize
# =============================================================================

def copy_to_packages(config: PatcherConfig) -> int:
    """
    Replace the packages directory with the merged contents of the working
    directory's top-level folders.

    Returns:
        Number of folders merged
    """
    packages_dir = config.packages_dir
    if packages_dir.exists():
        logger.info(f"Removing existing {packages_dir}")
        shutil.rmtree(packages_dir)

    if not config.working_dir.exists():
        logger.warning(f"Working directory not found: {config.working_dir}")
        return 0

    merged = 0
    for entry in sorted(config.working_dir.iterdir()):
        if entry.is_dir():
            shutil.copytree(entry, packages_dir, dirs_exist_ok=True)
            merged += 1

    logger.info(f"Copied {merged} folders to {packages_dir}")
    return merged


def build_file_tree(path: Path, name: str) -> dict:
    """Directories list their children, directories first, then by name."""
    if path.is_dir():
        children = sorted(path.iterdir(), key=lambda p: (p.is_file(), p.name))
        return {
            'name': name,
            'type': 'directory',
            'children': [build_file_tree(child, child.name) for child in children],
        }
    return {'name': name, 'type': 'file'}


def generate_index_json(config: PatcherConfig) -> Optional[Path]:
    """Write index.json describing the packages tree."""
    packages_dir = config.packages_dir
    if not packages_dir.exists():
        logger.warning(f"Packages directory not found: {packages_dir}")
        return None

    tree = build_file_tree(packages_dir, packages_dir.resolve().name)
    index_file = packages_dir / 'index.json'
    index_file.write_text(json.dumps(tree, indent=2))

    logger.info(f"Generated {index_file}")
    return index_file
