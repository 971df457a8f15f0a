#!/usr/bin/env python3
"""
Data types shared across the patcher: color detections, variants, run reports
and the error taxonomy.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import numpy as np

from colorimetry import rgb_to_hex


# =============================================================================
# Errors
# =============================================================================

class PatcherError(Exception):
    """Base class for patcher failures."""


class DecodeFailure(PatcherError):
    """A source file could not be read or decoded."""

    def __init__(self, path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Could not decode {self.path.name}: {reason}")


class EncodeFailure(PatcherError):
    """An output variant could not be written."""

    def __init__(self, path, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Could not encode {self.path.name}: {reason}")


class NoContent(PatcherError):
    """An image has no pixel above the alpha threshold."""


# =============================================================================
# Color detection
# =============================================================================

class DetectionType(Enum):
    SOLID = 'solid'
    LINEAR = 'linear'
    NONE = 'none'


@dataclass(frozen=True)
class ColorStop:
    """One point along a gradient ramp."""
    color: tuple  # (r, g, b), 0-255
    position: float  # 0-1

    def __post_init__(self):
        if not 0.0 <= self.position <= 1.0:
            raise ValueError(f"Stop position out of range: {self.position}")


@dataclass(frozen=True)
class ColorDetection:
    """
    Classification of a brand's reference color image.

    NONE carries nothing, SOLID carries solid_color, LINEAR carries an angle
    in degrees and at least two stops ordered from position 0 to position 1.
    """
    type: DetectionType
    solid_color: Optional[tuple] = None
    angle: Optional[float] = None
    stops: tuple = ()

    def __post_init__(self):
        if self.type is DetectionType.SOLID and self.solid_color is None:
            raise ValueError("Solid detection requires a color")
        if self.type is DetectionType.LINEAR:
            if self.angle is None:
                raise ValueError("Linear detection requires an angle")
            if len(self.stops) < 2:
                raise ValueError("Linear detection requires at least 2 stops")
            positions = [s.position for s in self.stops]
            if positions != sorted(positions):
                raise ValueError("Stops must be sorted by position")
            if positions[0] != 0.0 or positions[-1] != 1.0:
                raise ValueError("Stops must start at 0 and end at 1")

    @classmethod
    def none(cls) -> 'ColorDetection':
        return cls(DetectionType.NONE)

    @classmethod
    def solid(cls, color: tuple) -> 'ColorDetection':
        return cls(DetectionType.SOLID, solid_color=tuple(int(c) for c in color))

    @classmethod
    def linear(cls, angle: float, stops) -> 'ColorDetection':
        return cls(DetectionType.LINEAR, angle=float(angle), stops=tuple(stops))

    @property
    def is_none(self) -> bool:
        return self.type is DetectionType.NONE

    def describe(self) -> str:
        if self.type is DetectionType.SOLID:
            return f"solid {rgb_to_hex(self.solid_color)}"
        if self.type is DetectionType.LINEAR:
            stops = ', '.join(f"{rgb_to_hex(s.color)}@{s.position:.2f}" for s in self.stops)
            return f"linear {self.angle:.0f}deg [{stops}]"
        return "none"


# =============================================================================
# Variants and results
# =============================================================================

@dataclass
class Variant:
    """A generated rendition of one source file, keyed by (base_name, suffix)."""
    base_name: str
    suffix: str
    extension: str  # includes the leading dot
    image: np.ndarray

    @property
    def file_name(self) -> str:
        return f"{self.base_name}{self.suffix}{self.extension}"


@dataclass
class FileResult:
    """Outcome of writing one variant (or of failing before any variant)."""
    brand: str
    file: str
    suffix: Optional[str] = None
    path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class JobReport:
    """Outcome of one brand job."""
    brand: str
    detection: Optional[ColorDetection] = None
    results: list = field(default_factory=list)  # List of FileResult
    error: Optional[str] = None

    @property
    def failures(self) -> list:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failures

    def produced(self, file_name: str = None, suffix: str = None) -> list:
        """Paths written, optionally restricted to a source file and/or suffix."""
        return [
            r.path for r in self.results
            if r.ok and r.path is not None
            and (file_name is None or r.file == file_name)
            and (suffix is None or r.suffix == suffix)
        ]


@dataclass
class RunReport:
    """All job reports of one run, in dispatch order."""
    jobs: list = field(default_factory=list)  # List of JobReport

    @property
    def failures(self) -> list:
        failed = []
        for job in self.jobs:
            if job.error is not None:
                failed.append(FileResult(brand=job.brand, file='', error=job.error))
            failed.extend(job.failures)
        return failed

    @property
    def produced_count(self) -> int:
        return sum(len(job.produced()) for job in self.jobs)

    def report_for(self, brand: str) -> Optional[JobReport]:
        for job in self.jobs:
            if job.brand == brand:
                return job
        return None

    def summary(self) -> list:
        lines = []
        for job in self.jobs:
            detection = job.detection.describe() if job.detection else 'none'
            status = 'ok' if job.ok else f"{len(job.failures) + (job.error is not None)} failed"
            lines.append(f"{job.brand:<30} {len(job.produced()):>4} files  {detection:<40} {status}")
        return lines
