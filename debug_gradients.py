#!/usr/bin/env python3
"""Debug script to inspect gradient angle scoring and stop recovery for a color image."""

import sys
from pathlib import Path

import numpy as np

from bounds import find_content_bounds
from colorimetry import rgb_to_hex
from gradients import (
    BOUNDS_COARSE_STRIDE, MIN_CONSISTENCY, MIN_VARIANCE, TRANSPARENCY_THRESHOLD,
    collect_samples, detect, detect_gradient_angle, reconstruct_stops,
    scan_angles, simplify_stops,
)
from pixels import load_image


def print_angle_table(scores: list, best):
    print(f"\n  {'Angle':>6} {'Variance':>10} {'Consist.':>10} {'Score':>10}")
    print("  " + "-" * 40)
    for s in scores:
        marker = ' <' if s.angle == best.angle else ''
        print(f"  {s.angle:>5.0f}° {s.variance:>10.2f} {s.consistency:>10.3f} {s.score:>10.2f}{marker}")


def print_stops(label: str, stops: list):
    print(f"\n  {label} ({len(stops)}):")
    for stop in stops:
        print(f"    {stop.position:5.2f}  {rgb_to_hex(stop.color)}")


def visualize_scores(scores: list, stops: list, output_path: str):
    """
    Plot the coarse angle scores and the recovered stops as a color ramp.
    """
    import matplotlib.pyplot as plt

    fig, axes = plt.subplots(2, 1, figsize=(8, 6), gridspec_kw={'height_ratios': [3, 1]})

    angles = [s.angle for s in scores]
    ax = axes[0]
    ax.plot(angles, [s.variance for s in scores], label='variance')
    ax.plot(angles, [s.consistency * 100 for s in scores], label='consistency x100')
    ax.plot(angles, [s.score for s in scores], label='score', linewidth=2)
    ax.axhline(MIN_VARIANCE, color='gray', linestyle=':', linewidth=1)
    ax.axhline(MIN_CONSISTENCY * 100, color='gray', linestyle='--', linewidth=1)
    ax.set_xlabel('Angle (degrees)')
    ax.set_title('Gradient angle scores')
    ax.legend()

    ax = axes[1]
    if stops:
        positions = [s.position for s in stops]
        colors = np.array([s.color for s in stops], dtype=np.float64) / 255.0
        ramp_x = np.linspace(0, 1, 256)
        ramp = np.stack([np.interp(ramp_x, positions, colors[:, ch]) for ch in range(3)], axis=-1)
        ax.imshow(ramp[None, :, :], aspect='auto', extent=(0, 1, 0, 1))
        for p in positions:
            ax.axvline(p, color='black', linewidth=1)
    ax.set_yticks([])
    ax.set_title('Recovered stops')

    plt.tight_layout()
    plt.savefig(output_path, dpi=150)
    plt.close()
    print(f"\nSaved score plot to {output_path}")


def main():
    if len(sys.argv) < 2:
        print("Usage: python debug_gradients.py <image_path> [plot.png]")
        sys.exit(1)

    image_path = Path(sys.argv[1])
    if not image_path.exists():
        print(f"File not found: {image_path}")
        sys.exit(1)

    print(f"Analyzing: {image_path}")
    print("=" * 60)

    pixels = load_image(image_path)
    h, w = pixels.shape[:2]
    print(f"Image: {w}x{h}")

    detection = detect(pixels)
    print(f"Detection: {detection.describe()}")

    bounds = find_content_bounds(pixels, TRANSPARENCY_THRESHOLD, coarse_stride=BOUNDS_COARSE_STRIDE)
    if bounds is None:
        print("No visible content")
        return

    samples = collect_samples(pixels, bounds)
    print(f"Content: ({bounds.min_x}, {bounds.min_y})-({bounds.max_x}, {bounds.max_y}), "
          f"{len(samples):,} samples (stride {samples.stride})")
    if len(samples) < 2:
        return

    scores = scan_angles(samples)
    best = detect_gradient_angle(samples)
    print_angle_table(scores, best)
    print(f"\n  Refined best: {best.angle:.0f}° (variance={best.variance:.2f}, "
          f"consistency={best.consistency:.3f})")

    candidates = reconstruct_stops(samples, best.angle)
    simplified = simplify_stops(candidates)
    print_stops("Candidate stops", candidates)
    print_stops("Simplified stops", simplified)

    if len(sys.argv) > 2:
        visualize_scores(scores, simplified, sys.argv[2])


if __name__ == "__main__":
    main()
