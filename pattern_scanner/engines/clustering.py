"""
Level Clustering - Greedy Price Grouping

Single pass, order dependent: each point joins the FIRST existing cluster
(in creation order) whose current running mean is within a relative
tolerance of the point's price, otherwise it founds a new cluster.

This is not an optimal partition. A point may join an older cluster that is
not the nearest one when both satisfy the tolerance; strength scoring
downstream depends on this behaviour, so do not switch to nearest-cluster
assignment.

Clusters live in a list owned by one call (an arena indexed by creation
order) and are only ever updated through Cluster.add.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from .analysis_config import safe_divide
from .swings import PivotPoint

logger = logging.getLogger(__name__)


@dataclass
class Cluster:
    """A group of nearby extrema with its running mean price."""

    avg_price: float
    points: List[PivotPoint] = field(default_factory=list)
    _price_sum: float = field(init=False, repr=False)

    def __post_init__(self):
        self._price_sum = sum(p.price for p in self.points)

    @classmethod
    def found(cls, point: PivotPoint) -> "Cluster":
        return cls(avg_price=point.price, points=[point])

    def add(self, point: PivotPoint) -> None:
        """Append a member and refresh the arithmetic mean of all members."""
        self.points.append(point)
        self._price_sum += point.price
        self.avg_price = self._price_sum / len(self.points)

    def distance(self, price: float) -> float:
        """Relative distance of price from the running mean."""
        return safe_divide(abs(price - self.avg_price), self.avg_price, default=float("inf"))

    @property
    def size(self) -> int:
        return len(self.points)

    @property
    def total_volume(self) -> float:
        return sum(p.volume for p in self.points)

    @property
    def average_volume(self) -> float:
        return safe_divide(self.total_volume, len(self.points))


class LevelClusterer:
    """Greedy first-fit clusterer over point prices."""

    def __init__(self, tolerance: float = 0.005):
        """
        Args:
            tolerance: Max relative distance from a cluster mean (0.005 = 0.5%)
        """
        if tolerance <= 0:
            raise ValueError(f"tolerance must be positive, got {tolerance!r}")
        self.tolerance = tolerance

    def cluster(self, points: Sequence[PivotPoint]) -> List[Cluster]:
        """Group points; returns clusters in creation order."""
        clusters: List[Cluster] = []

        for point in points:
            for existing in clusters:
                if existing.distance(point.price) <= self.tolerance:
                    existing.add(point)
                    break
            else:
                clusters.append(Cluster.found(point))

        logger.debug("Clustered %d points into %d clusters", len(points), len(clusters))
        return clusters


def cluster_points(
    points: Sequence[PivotPoint], tolerance: float = 0.005, min_size: int = 1
) -> List[Cluster]:
    """Cluster points and keep clusters with at least min_size members."""
    return [c for c in LevelClusterer(tolerance).cluster(points) if c.size >= min_size]
