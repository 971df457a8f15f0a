#!/usr/bin/env python3
"""
Color space conversion between sRGB and CIELAB.

Every tolerance in the patcher is a Delta E76 distance computed here, never a
raw RGB distance.
"""

import math
from dataclasses import dataclass

import numpy as np


# =============================================================================
# Constants
# =============================================================================

JND = 2.3  # Just Noticeable Difference in LAB units

# sRGB (D65) primaries
_SRGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
], dtype=np.float64)

_XYZ_TO_SRGB = np.array([
    [3.2404542, -1.5371385, -0.4985314],
    [-0.9692660, 1.8760108, 0.0415560],
    [0.0556434, -0.2040259, 1.0572252],
], dtype=np.float64)

# D65 reference white, XYZ scaled to 0-100
REFERENCE_WHITE = np.array([95.047, 100.0, 108.883], dtype=np.float64)

EPSILON = 0.008856
KAPPA = 903.3


# =============================================================================
# Array conversion
# =============================================================================

def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert RGB array (0-255), shape (..., 3), to LAB."""
    rgb_norm = np.asarray(rgb, dtype=np.float64) / 255.0

    # Inverse sRGB companding
    mask = rgb_norm > 0.04045
    rgb_linear = np.where(mask, ((rgb_norm + 0.055) / 1.055) ** 2.4, rgb_norm / 12.92)

    xyz = (rgb_linear @ _SRGB_TO_XYZ.T) * 100.0
    xyz = xyz / REFERENCE_WHITE

    f = np.where(xyz > EPSILON, np.cbrt(xyz), 7.787 * xyz + 16.0 / 116.0)

    L = 116 * f[..., 1] - 16
    a = 500 * (f[..., 0] - f[..., 1])
    b_val = 200 * (f[..., 1] - f[..., 2])

    return np.stack([L, a, b_val], axis=-1)


def lab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """Convert LAB array, shape (..., 3), to RGB (0-255)."""
    lab = np.asarray(lab, dtype=np.float64)
    L, a, b = lab[..., 0], lab[..., 1], lab[..., 2]

    fy = (L + 16) / 116
    fx = a / 500 + fy
    fz = fy - b / 200

    x = np.where(fx**3 > EPSILON, fx**3, (116 * fx - 16) / KAPPA)
    y = np.where(L > KAPPA * EPSILON, fy**3, L / KAPPA)
    z = np.where(fz**3 > EPSILON, fz**3, (116 * fz - 16) / KAPPA)

    xyz = np.stack([x, y, z], axis=-1) * REFERENCE_WHITE / 100.0
    rgb_linear = xyz @ _XYZ_TO_SRGB.T

    mask = rgb_linear > 0.0031308
    rgb = np.where(mask, 1.055 * np.power(np.clip(rgb_linear, 0, None), 1/2.4) - 0.055, 12.92 * rgb_linear)

    return np.clip(np.round(rgb * 255), 0, 255).astype(np.uint8)


def delta_e76(lab1: np.ndarray, lab2: np.ndarray) -> np.ndarray:
    """Delta E (CIE76): Euclidean distance in LAB. Broadcasts over (..., 3)."""
    diff = np.asarray(lab1, dtype=np.float64) - np.asarray(lab2, dtype=np.float64)
    return np.sqrt(np.sum(diff * diff, axis=-1))


def unique_lab(rgb: np.ndarray) -> np.ndarray:
    """
    LAB values for an (n, 3) RGB array, converting each distinct color once.

    Flat icons have few distinct colors, so this is much cheaper than
    converting every pixel.
    """
    rgb = np.asarray(rgb).reshape(-1, 3)
    if len(rgb) == 0:
        return np.empty((0, 3), dtype=np.float64)
    colors, inverse = np.unique(rgb, axis=0, return_inverse=True)
    return rgb_to_lab(colors)[inverse.reshape(-1)]


# =============================================================================
# Single colors
# =============================================================================

@dataclass(frozen=True)
class LabColor:
    """A CIELAB color, always derived from an sRGB color."""
    l: float
    a: float
    b: float

    @classmethod
    def from_rgb(cls, r: int, g: int, b: int) -> 'LabColor':
        lab = rgb_to_lab(np.array([r, g, b]))
        return cls(float(lab[0]), float(lab[1]), float(lab[2]))

    def delta_e76(self, other: 'LabColor') -> float:
        dl = self.l - other.l
        da = self.a - other.a
        db = self.b - other.b
        return math.sqrt(dl * dl + da * da + db * db)


def color_delta_e(c1: tuple, c2: tuple) -> float:
    """Delta E76 between two RGB tuples."""
    return LabColor.from_rgb(*c1).delta_e76(LabColor.from_rgb(*c2))


# =============================================================================
# Hex helpers
# =============================================================================

def rgb_to_hex(rgb: tuple) -> str:
    return f"#{rgb[0]:02x}{rgb[1]:02x}{rgb[2]:02x}"


def hex_to_rgb(value) -> tuple:
    """Parse '#RRGGBB', 'RRGGBB' or a 0xRRGGBB integer into an RGB tuple."""
    if isinstance(value, int):
        if not 0 <= value <= 0xFFFFFF:
            raise ValueError(f"Color out of range: {value:#x}")
        return ((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)

    h = value.strip().lstrip('#')
    if h.lower().startswith('0x'):
        h = h[2:]
    if len(h) != 6:
        raise ValueError(f"Invalid hex color: {value!r}")
    return (int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16))
