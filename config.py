#!/usr/bin/env python3
"""
Patcher configuration.

Defaults live in module constants. PatcherConfig.from_env() reads the
development switch from the environment; PatcherConfig.load() overlays a JSON
file on top of the defaults.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from colorimetry import hex_to_rgb
from models import ColorDetection


logger = logging.getLogger(__name__)


# =============================================================================
# Defaults
# =============================================================================

WORKING_DIR = Path('working')
PACKAGES_DIR = Path('..') / 'packages'

RASTER_EXTENSIONS = ('png', 'webp')
IGNORE_PROPERTIES = ('text', 'brand', 'cn')
COLOR_MARKER = '-color'

# Avatar fit
PADDING_PERCENTAGE = 10
MIN_ALPHA_TOLERANCE = 127

# Gradient detection
MAX_COLOR_STOPS = 3
DELTA_E_TOLERANCE = 2.3

MAX_WORKERS = 32

# Brands whose color image can't be classified
BRAND_COLOR_FALLBACKS = {
    'openai': 0x00A67E,
    'openrouter': 0x94A3B8,
}


def default_brand_fallbacks() -> dict:
    return {brand: ColorDetection.solid(hex_to_rgb(color)) for brand, color in BRAND_COLOR_FALLBACKS.items()}


def is_development_env(environ=None) -> bool:
    environ = os.environ if environ is None else environ
    return (environ.get('NODE_ENV') == 'development'
            or environ.get('PATCHER_DEV', '').lower() == 'true')


@dataclass(frozen=True)
class PatcherConfig:
    working_dir: Path = WORKING_DIR
    packages_dir: Path = PACKAGES_DIR

    raster_extensions: tuple = RASTER_EXTENSIONS
    ignore_properties: tuple = IGNORE_PROPERTIES
    color_marker: str = COLOR_MARKER

    padding_percentage: float = PADDING_PERCENTAGE
    min_alpha_tolerance: int = MIN_ALPHA_TOLERANCE

    max_color_stops: int = MAX_COLOR_STOPS
    delta_e_tolerance: float = DELTA_E_TOLERANCE

    max_workers: int = MAX_WORKERS
    development: bool = False

    brand_fallbacks: dict = field(default_factory=default_brand_fallbacks)  # brand -> ColorDetection

    @property
    def input_icons_dir(self) -> Path:
        return self.working_dir / 'input' / 'icons'

    @property
    def output_icons_dir(self) -> Path:
        return self.working_dir / 'output' / 'icons'

    def fallback_for(self, brand: str):
        return self.brand_fallbacks.get(brand.lower())

    def with_overrides(self, **changes) -> 'PatcherConfig':
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ=None) -> 'PatcherConfig':
        return cls(development=is_development_env(environ))

    @classmethod
    def load(cls, config_path, environ=None) -> 'PatcherConfig':
        """
        Load configuration from a JSON file over the defaults.

        Missing keys keep their defaults. brand_fallbacks maps brand names to
        hex colors and replaces the default table.

        Raises:
            FileNotFoundError: If config_path doesn't exist
            ValueError: If the file isn't valid JSON or has bad values
        """
        config_path = Path(config_path)
        with open(config_path, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid config file {config_path}: {e}") from e

        config = cls.from_env(environ)
        changes = {}

        for key in ('working_dir', 'packages_dir'):
            if key in data:
                changes[key] = Path(data[key])
        for key in ('raster_extensions', 'ignore_properties'):
            if key in data:
                changes[key] = tuple(str(v).lower() for v in data[key])
        if 'color_marker' in data:
            changes['color_marker'] = str(data['color_marker'])
        for key in ('padding_percentage', 'delta_e_tolerance'):
            if key in data:
                changes[key] = float(data[key])
        for key in ('min_alpha_tolerance', 'max_color_stops', 'max_workers'):
            if key in data:
                changes[key] = int(data[key])
        if 'development' in data:
            changes['development'] = bool(data['development'])
        if 'brand_fallbacks' in data:
            changes['brand_fallbacks'] = {
                brand.lower(): ColorDetection.solid(hex_to_rgb(color))
                for brand, color in data['brand_fallbacks'].items()
            }

        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")

        if changes.get('max_workers', config.max_workers) < 1:
            raise ValueError("max_workers must be at least 1")

        logger.info(f"Loaded configuration from {config_path}")
        return config.with_overrides(**changes)
