import pytest

from core.aggregator import aggregate_count, aggregate_length, top_bins
from core.models import BoundingBox, Feature, FeatureCollection


@pytest.fixture
def view(km):
    west, south = km.at(-1, -1)
    east, north = km.at(1, 1)
    return BoundingBox(west, south, east, north)


def test_length_inside_view(km, view):
    fc = FeatureCollection([Feature(km.line((0, -0.5), (0, 0.5)), {"nominaldiameter": 150})])
    total, bins = aggregate_length(fc, view, bin_by="nominaldiameter")
    assert total == pytest.approx(1.0, rel=0.01)
    assert bins == {150.0: pytest.approx(total)}


def test_length_is_clipped(km, view):
    fc = FeatureCollection([Feature(km.line((0, 0), (0, 3)), {})])
    total, bins = aggregate_length(fc, view)
    assert total == pytest.approx(1.0, rel=0.01)
    assert bins == {}


def test_multiline_parts_each_clipped(km, view):
    fc = FeatureCollection([
        Feature(km.multiline([(0, -0.5), (0, 0.5)], [(0.5, 0), (0.5, 4)], [(5, 0), (5, 1)]), {"nominaldiameter": 100}),
    ])
    total, bins = aggregate_length(fc, view, bin_by="nominaldiameter")
    assert total == pytest.approx(2.0, rel=0.01)
    assert bins[100.0] == pytest.approx(total)


def test_unbinnable_values_still_count_toward_total(km, view):
    fc = FeatureCollection([
        Feature(km.line((0, -0.5), (0, 0.5)), {"nominaldiameter": None}),
        Feature(km.line((0.1, -0.5), (0.1, 0.5)), {"nominaldiameter": "n/a"}),
        Feature(km.line((0.2, -0.5), (0.2, 0.5)), {"nominaldiameter": float("nan")}),
        Feature(km.line((0.3, -0.5), (0.3, 0.5)), {}),
        Feature(km.line((0.4, -0.5), (0.4, 0.5)), {"nominaldiameter": "225"}),
    ])
    total, bins = aggregate_length(fc, view, bin_by="nominaldiameter")
    assert total == pytest.approx(5.0, rel=0.01)
    assert list(bins) == [225.0]
    assert bins[225.0] == pytest.approx(1.0, rel=0.01)


def test_unsupported_geometry_skipped(km, view):
    fc = FeatureCollection([
        Feature(km.point(0, 0), {"nominaldiameter": 150}),
        Feature(km.rectangle(0, 0, 0.5, 0.5), {"nominaldiameter": 150}),
        Feature(None, {"nominaldiameter": 150}),
    ])
    assert aggregate_length(fc, view, bin_by="nominaldiameter") == (0.0, {})
    assert aggregate_length(None, view) == (0.0, {})


def test_length_is_additive(km, view):
    features = [
        Feature(km.line((x / 10, -2), (x / 10, 2)), {"nominaldiameter": 100 + 50 * (x % 3)})
        for x in range(-8, 9)
    ]
    whole_total, whole_bins = aggregate_length(FeatureCollection(features), view, "nominaldiameter")
    a_total, a_bins = aggregate_length(FeatureCollection(features[::2]), view, "nominaldiameter")
    b_total, b_bins = aggregate_length(FeatureCollection(features[1::2]), view, "nominaldiameter")

    assert a_total + b_total == pytest.approx(whole_total)
    for value, km_len in whole_bins.items():
        assert a_bins.get(value, 0) + b_bins.get(value, 0) == pytest.approx(km_len)


def test_count_ignores_geometry(km):
    fc = FeatureCollection([Feature(None, {}), Feature(km.point(0, 0), {}), Feature(None, {"x": 1})])
    assert aggregate_count(fc) == 3
    assert aggregate_count(None) == 0


def test_top_bins_sorted_and_capped():
    bins = {float(d): float(d % 7) + d / 1000 for d in range(100, 1600, 100)}
    rows = top_bins(bins)
    assert len(rows) == 12
    lengths = [km_len for _, km_len in rows]
    assert lengths == sorted(lengths, reverse=True)
    # totals are untouched
    assert len(bins) == 15
    assert top_bins({}) == []
