"""Viewport statistics: events, debounce, paging and commit working together."""
import threading
import time
import pytest

from core.analytics import AnalysisContext, ViewportAnalytics
from core.models import BoundingBox, Feature
from core.settings import AnalysisSettings


class SlowSource:
    """Serves features page by page, optionally pausing to mimic a slow service."""

    def __init__(self, features, delay=0.0):
        self.features = features
        self.delay = delay
        self.wheres = []

    def query(self, bbox, where, offset, limit, return_geometry=True):
        self.wheres.append(where)
        time.sleep(self.delay)
        if where == "nominaldiameter >= 150":
            matching = [f for f in self.features if f.get("nominaldiameter", 0) >= 150]
        else:
            matching = self.features
        return matching[offset:offset + limit]


@pytest.fixture
def view(km):
    west, south = km.at(-1, -1)
    east, north = km.at(1, 1)
    return BoundingBox(west, south, east, north)


@pytest.fixture
def mains(km):
    return [
        Feature(km.line((x / 10, -2), (x / 10, 2)), {"nominaldiameter": 100 if x % 2 else 150})
        for x in range(-5, 5)
    ]


def test_debounced_burst_produces_one_pass(view, mains):
    sources = {"waterMains": SlowSource(mains), "hydrants": SlowSource([Feature(None, {})] * 3)}
    settings = AnalysisSettings(quiet_interval_seconds=0.2, page_size=4)
    analytics = ViewportAnalytics(
        context=AnalysisContext(["waterMains", "hydrants"]),
        source_factory=sources.__getitem__,
        settings=settings,
    )
    done = threading.Event()
    committed = []
    analytics.store.subscribe(lambda r: (committed.append(r), done.set()))

    analytics.on_viewport_change(view)
    analytics.apply_diameter_filter(150)
    analytics.set_layer_active("hydrants", True)

    assert done.wait(5)
    time.sleep(0.2)
    assert len(committed) == 1
    result = committed[0]
    assert result.count_by_network == {"waterMains": 5, "hydrants": 3}
    # each main is 2 km inside the view
    assert result.length_by_network["waterMains"] == pytest.approx(10.0, rel=0.01)
    assert set(result.length_by_attribute_bin) == {150.0}
    assert sources["waterMains"].wheres == ["nominaldiameter >= 150"] * 2


def test_refresh_after_clearing_filter(view, mains):
    sources = {"waterMains": SlowSource(mains)}
    analytics = ViewportAnalytics(
        context=AnalysisContext(["waterMains"]),
        source_factory=sources.__getitem__,
        settings=AnalysisSettings(quiet_interval_seconds=10),
    )
    analytics.on_viewport_change(view)
    analytics.apply_diameter_filter(150)
    first = analytics.refresh()
    analytics.clear_filter("waterMains")
    second = analytics.refresh()
    analytics.scheduler.cancel()

    assert second.pass_id > first.pass_id
    assert first.count_by_network["waterMains"] == 5
    assert second.count_by_network["waterMains"] == 10
    assert set(second.length_by_attribute_bin) == {100.0, 150.0}
