"""Layered coherent noise sampled on a regular grid.

Both the terrain generator and the soil initialiser build their fields
from a handful of OpenSimplex layers at different spatial frequencies.
This module owns that shared step so every caller samples the same grid
points in the same way.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray
from opensimplex import OpenSimplex

# Seeds handed to OpenSimplex must fit a signed 32-bit int.
_MAX_LAYER_SEED = 2**31 - 1


def layer_seeds(seed: int, count: int) -> list[int]:
    """Derive ``count`` independent layer seeds from one master seed.

    Args:
        seed: Master seed.
        count: Number of layer seeds to draw.

    Returns:
        A list of integer seeds, identical for identical inputs.
    """
    rng = np.random.default_rng(seed)
    return [int(s) for s in rng.integers(0, _MAX_LAYER_SEED, size=count)]


def grid_axes(
    origin_x: float,
    origin_y: float,
    cols: int,
    rows: int,
    cell_size: float,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Return world-space x and y coordinates of every grid column/row.

    Args:
        origin_x: World x of column 0.
        origin_y: World y of row 0.
        cols: Number of columns.
        rows: Number of rows.
        cell_size: World units between adjacent grid points.

    Returns:
        ``(xs, ys)`` 1-D arrays of length ``cols`` and ``rows``.
    """
    xs = origin_x + np.arange(cols, dtype=np.float64) * cell_size
    ys = origin_y + np.arange(rows, dtype=np.float64) * cell_size
    return xs, ys


def layered_noise(
    xs: NDArray[np.float64],
    ys: NDArray[np.float64],
    seeds: Sequence[int],
    scales: Sequence[float],
    weights: Sequence[float],
) -> NDArray[np.float64]:
    """Sum weighted OpenSimplex layers over the grid spanned by ``xs``/``ys``.

    Each layer ``i`` is sampled at ``(x * scales[i], y * scales[i])`` from
    a generator seeded with ``seeds[i]`` and multiplied by ``weights[i]``.

    Args:
        xs: World x coordinate per column.
        ys: World y coordinate per row.
        seeds: One seed per layer.
        scales: Spatial frequency per layer.
        weights: Amplitude per layer.

    Returns:
        A ``(len(ys), len(xs))`` array.  With weights summing to 1 the
        values stay within [-1, 1].
    """
    assert len(seeds) == len(scales) == len(weights)

    total = np.zeros((ys.size, xs.size), dtype=np.float64)
    for seed, scale, weight in zip(seeds, scales, weights, strict=True):
        gen = OpenSimplex(seed=seed)
        # noise2array returns shape (len(y), len(x))
        total += gen.noise2array(xs * scale, ys * scale) * weight
    return total
