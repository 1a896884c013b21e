"""
Unit tests for greedy level clustering.
"""

import pytest

from conftest import make_point
from pattern_scanner.engines.clustering import Cluster, LevelClusterer, cluster_points


class TestLevelClusterer:
    """First-fit clustering against running means."""

    def test_points_within_tolerance_merge(self):
        points = [make_point(0, 100.0), make_point(1, 100.4), make_point(2, 100.9)]
        clusters = LevelClusterer(tolerance=0.005).cluster(points)

        assert [c.size for c in clusters] == [2, 1]
        assert clusters[0].avg_price == pytest.approx(100.2)
        assert clusters[1].avg_price == pytest.approx(100.9)

    def test_first_fit_not_nearest(self):
        """A point joins the oldest qualifying cluster even when a newer one is closer."""
        points = [make_point(0, 100.0), make_point(1, 100.8), make_point(2, 100.42)]
        clusters = LevelClusterer(tolerance=0.005).cluster(points)

        assert [c.size for c in clusters] == [2, 1]
        assert clusters[0].points[-1].price == 100.42

    def test_reclustering_means_is_idempotent(self):
        points = [
            make_point(0, 100.0),
            make_point(1, 100.2),
            make_point(2, 110.0),
            make_point(3, 110.3),
            make_point(4, 120.0),
        ]
        clusterer = LevelClusterer(tolerance=0.005)
        first = clusterer.cluster(points)

        means = [make_point(i, c.avg_price) for i, c in enumerate(first)]
        second = clusterer.cluster(means)

        assert [c.avg_price for c in second] == [c.avg_price for c in first]
        assert all(c.size == 1 for c in second)

    def test_empty_input(self):
        assert LevelClusterer().cluster([]) == []

    @pytest.mark.parametrize("tolerance", [0, -0.01])
    def test_non_positive_tolerance_rejected(self, tolerance):
        with pytest.raises(ValueError):
            LevelClusterer(tolerance=tolerance)


class TestCluster:
    """Running mean bookkeeping."""

    def test_add_updates_mean_and_volume(self):
        cluster = Cluster.found(make_point(0, 100.0, volume=10))
        cluster.add(make_point(1, 102.0, volume=30))
        cluster.add(make_point(2, 104.0, volume=20))

        assert cluster.avg_price == pytest.approx(102.0)
        assert cluster.size == 3
        assert cluster.total_volume == 60
        assert cluster.average_volume == pytest.approx(20.0)

    def test_cluster_points_min_size(self):
        points = [make_point(0, 50.0), make_point(1, 50.1), make_point(2, 60.0)]
        clusters = cluster_points(points, tolerance=0.005, min_size=2)

        assert len(clusters) == 1
        assert clusters[0].size == 2
