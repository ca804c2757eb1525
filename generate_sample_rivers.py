#!/usr/bin/env python3
"""
Render sample river maps next to what the inference engine guesses from them.

For each seed:
1. Generate a river map
2. Reveal the river ends and a handful of random cells
3. Run the inference engine
4. Save terrain and probability heatmap side by side

Usage:
    python generate_sample_rivers.py [seed] [revealed_cells]

If no seed is provided, defaults to 42
"""

import sys

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import LinearSegmentedColormap, ListedColormap

from py_rivermap.cli import configure_logging, pick_revealed_positions
from py_rivermap.core.river_generator import create_river_map
from py_rivermap.core.river_inference import infer_terrain
from py_rivermap.core.terrain import reveal
from py_rivermap.utils.random import set_random_seed


def render_river_map(seed=42, revealed_cells=20, width=16, height=16):
    """Generate, infer and plot one river map."""

    print(f"\nGenerating river map...")
    print(f"  Dimensions: {width}x{height}")
    print(f"  Seed: {seed}")

    river = create_river_map(width, height, seed)
    print(f"  1. River of {len(river.path)} cells after {river.attempt} attempt(s)")

    set_random_seed(river.seed)
    revealed = pick_revealed_positions(width, height, revealed_cells, [river.entrance, river.exit])
    observations = reveal(river.terrain, revealed)
    print(f"  2. Revealed {len(revealed)} cells")

    result = infer_terrain(observations)
    print(f"  3. Inference done in {result.passes} passes")

    # Arrays are indexed [x, y]; imshow wants [row, column]
    terrain = river.terrain.to_numpy(dtype=float).T
    probabilities = result.to_numpy().T

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(14, 7))

    ax1.imshow(terrain, cmap=ListedColormap(["#66b266", "#0066cc"]), vmin=0, vmax=1, interpolation="nearest")
    xs = [position.x for position in revealed]
    ys = [position.y for position in revealed]
    ax1.scatter(xs, ys, marker="s", facecolors="none", edgecolors="black", s=120, linewidths=1.5)
    ax1.set_title(f"Ground truth (seed {river.seed}), revealed cells outlined")

    cmap = LinearSegmentedColormap.from_list("water_probability", ["#66b266", "#ffffcc", "#0066cc"], N=100)
    im = ax2.imshow(probabilities, cmap=cmap, vmin=0, vmax=1, interpolation="nearest")
    ax2.set_title(f"Inferred water probability, estimate {result.water_estimate}")
    plt.colorbar(im, ax=ax2, label="Water probability", shrink=0.8)

    for ax in (ax1, ax2):
        ax.set_xticks(np.arange(width))
        ax.set_yticks(np.arange(height))
        ax.tick_params(labelsize=7)

    plt.tight_layout()
    output_file = f"river_{river.seed}.png"
    plt.savefig(output_file, dpi=150, bbox_inches="tight")
    print(f"  4. Saved to: {output_file}")

    plt.close()

    return river, result


def main():
    """Render a sample river map."""
    configure_logging()

    seed = int(sys.argv[1]) if len(sys.argv) > 1 else 42
    revealed_cells = int(sys.argv[2]) if len(sys.argv) > 2 else 20

    render_river_map(seed=seed, revealed_cells=revealed_cells)


if __name__ == "__main__":
    main()
