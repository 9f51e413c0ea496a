"""Spatial hash of living plants for neighbourhood queries.

Rebuilt once per flora tick, before any plant is processed.  Buckets are
keyed by ``(col, row)`` so the index works for any world extent.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field

from terraflora.flora.plant import Plant


@dataclass
class SpatialIndex:
    """Bucketed positions of living plants.

    Attributes:
        cell_size: Bucket edge length in world units.
        buckets: Plants per ``(col, row)`` bucket.
    """

    cell_size: float
    buckets: dict[tuple[int, int], list[Plant]] = field(default_factory=lambda: defaultdict(list))

    def _key(self, x: float, y: float) -> tuple[int, int]:
        return math.floor(x / self.cell_size), math.floor(y / self.cell_size)

    def insert(self, plant: Plant) -> None:
        """Add a plant to its bucket."""
        self.buckets[self._key(plant.x, plant.y)].append(plant)

    def query(
        self,
        x: float,
        y: float,
        radius: float,
        exclude: Plant | None = None,
    ) -> list[Plant]:
        """Return plants strictly within ``radius`` of ``(x, y)``.

        Args:
            x: World x of the centre.
            y: World y of the centre.
            radius: Search radius.
            exclude: A plant to leave out (usually the caller).

        Returns:
            Matching plants in bucket order.
        """
        r2 = radius * radius
        min_c, min_r = self._key(x - radius, y - radius)
        max_c, max_r = self._key(x + radius, y + radius)
        found: list[Plant] = []
        for row in range(min_r, max_r + 1):
            for col in range(min_c, max_c + 1):
                for p in self.buckets.get((col, row), ()):
                    if p is exclude:
                        continue
                    dx = p.x - x
                    dy = p.y - y
                    if dx * dx + dy * dy < r2:
                        found.append(p)
        return found

    def count_species(self, species_id: str, x: float, y: float, radius: float) -> int:
        """Count plants of one species strictly within ``radius``."""
        return sum(1 for p in self.query(x, y, radius) if p.species_id == species_id)

    def __len__(self) -> int:
        return sum(len(b) for b in self.buckets.values())


def build_spatial_index(plants: Iterable[Plant], cell_size: float = 100.0) -> SpatialIndex:
    """Index every living plant.

    Args:
        plants: Candidate plants; dead ones are skipped.
        cell_size: Bucket size, at least the typical query radius.

    Returns:
        A new SpatialIndex.
    """
    index = SpatialIndex(cell_size=cell_size)
    for plant in plants:
        if plant.is_alive:
            index.insert(plant)
    return index
