#!/usr/bin/env python3
"""
Per-brand processing job.

A job detects the brand color once from its color file(s), then renders
every variant of every file. Failures are recorded per file and never stop
sibling files.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import numpy as np

import gradients
from avatar_fit import avatar_fit
from backgrounds import brand_background, composite, create_solid
from config import PatcherConfig
from models import ColorDetection, FileResult, JobReport, Variant
from pixels import load_image, save_image


logger = logging.getLogger(__name__)


BLACK = (0, 0, 0)
WHITE = (255, 255, 255)


def standard_background_color(file_name: str) -> tuple:
    """Black behind dark icons, white behind everything else."""
    return BLACK if file_name.startswith('dark') else WHITE


def build_variants(image: np.ndarray, base_name: str, extension: str,
                   detection: Optional[ColorDetection], config: PatcherConfig,
                   background_color: tuple = WHITE) -> list:
    """
    Render every variant of one regular file. Pure, no I/O.

    Brand color variants are only produced when detection is present and not NONE.
    """
    h, w = image.shape[:2]
    fitted = avatar_fit(image, config.padding_percentage, config.min_alpha_tolerance)
    standard_bg = create_solid(w, h, background_color)

    variants = [
        Variant(base_name, '-avatarfit', extension, fitted),
        Variant(base_name, '-bg', extension, composite(standard_bg, image)),
        Variant(base_name, '-bg-avatarfit', extension, composite(standard_bg, fitted)),
    ]

    if detection is not None:
        brand_bg = brand_background(detection, w, h)
        if brand_bg is not None:
            variants.extend([
                Variant(base_name, '-color-avatarfit', extension, fitted),
                Variant(base_name, '-colorbg', extension, composite(brand_bg, image)),
                Variant(base_name, '-colorbg-avatarfit', extension, composite(brand_bg, fitted)),
            ])

    return variants


def build_color_file_variants(image: np.ndarray, base_name: str, extension: str,
                              config: PatcherConfig) -> list:
    """Color files are reference inputs: only their avatar fit is emitted."""
    fitted = avatar_fit(image, config.padding_percentage, config.min_alpha_tolerance)
    return [Variant(base_name, '-avatarfit', extension, fitted)]


@dataclass
class BrandJob:
    """All processing for one brand directory."""
    brand: str
    files: list  # Paths of candidate images, already filtered
    output_dir: Path
    config: PatcherConfig = field(default_factory=PatcherConfig)
    reader: Callable = load_image
    writer: Callable = save_image

    @property
    def color_files(self) -> list:
        return [f for f in self.files if self.config.color_marker in Path(f).name]

    @property
    def regular_files(self) -> list:
        return [f for f in self.files if self.config.color_marker not in Path(f).name]

    def detect_color(self) -> Optional[ColorDetection]:
        """
        First color file that classifies as solid or linear wins. Falls back
        to the configured brand color, or None.
        """
        for color_file in self.color_files:
            try:
                logger.debug(f"Detecting color for {self.brand} using {Path(color_file).name}")
                detection = gradients.detect(
                    self.reader(color_file),
                    tolerance=self.config.delta_e_tolerance,
                    max_stops=self.config.max_color_stops,
                )
            except Exception as e:
                logger.warning(f"[{self.brand}] Error detecting color from {Path(color_file).name}: {e}")
                continue
            if not detection.is_none:
                logger.debug(f"[{self.brand}] Detected {detection.describe()}")
                return detection

        fallback = self.config.fallback_for(self.brand)
        if fallback is not None:
            logger.info(f"[{self.brand}] Using fallback color: {fallback.describe()}")
        return fallback

    def write_variants(self, source: Path, variants: list) -> list:
        results = []
        for variant in variants:
            output = self.output_dir / variant.file_name
            try:
                self.writer(variant.image, output)
                results.append(FileResult(self.brand, source.name, variant.suffix, path=output))
            except Exception as e:
                logger.warning(f"[{self.brand}] Error saving {output}: {e}")
                results.append(FileResult(self.brand, source.name, variant.suffix, error=str(e)))
        return results

    def process_file(self, image_file, detection: Optional[ColorDetection], is_color_file: bool = False) -> list:
        """Render and write all variants of one file. Never raises."""
        image_file = Path(image_file)
        try:
            image = self.reader(image_file)
            if is_color_file:
                variants = build_color_file_variants(image, image_file.stem, image_file.suffix, self.config)
            else:
                variants = build_variants(
                    image, image_file.stem, image_file.suffix, detection, self.config,
                    background_color=standard_background_color(image_file.name),
                )
        except Exception as e:
            logger.warning(f"[{self.brand}] Error processing {image_file.name}: {e}")
            return [FileResult(self.brand, image_file.name, error=str(e))]

        return self.write_variants(image_file, variants)

    def record(self, report: JobReport, results: list):
        """
        Add file results to the report. A write to a path this job already
        wrote replaces the earlier result, so each output file is reported once.
        """
        for result in results:
            if result.ok and result.path is not None:
                replaced = [r for r in report.results if r.ok and r.path == result.path]
                for earlier in replaced:
                    logger.debug(
                        f"[{self.brand}] {result.file} overwrites {earlier.file} "
                        f"{earlier.suffix} at {result.path.name}"
                    )
                    report.results.remove(earlier)
            report.results.append(result)

    def run(self) -> JobReport:
        """Process the whole brand. Never raises; failures land in the report."""
        report = JobReport(brand=self.brand)
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            report.detection = self.detect_color()

            for image_file in self.regular_files:
                self.record(report, self.process_file(image_file, report.detection))

            # Color files go last; a color file's avatar fit can share its
            # name with a regular file's -color-avatarfit and replaces it
            for color_file in self.color_files:
                self.record(report, self.process_file(color_file, None, is_color_file=True))
        except Exception as e:
            logger.warning(f"Error processing brand {self.brand}: {e}")
            report.error = str(e)

        logger.info(f"[{self.brand}] Wrote {len(report.produced())} files, {len(report.failures)} failures")
        return report
