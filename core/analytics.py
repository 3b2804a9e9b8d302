"""
Viewport Analytics

Runs aggregation passes over the active network layers for the current
viewport:
- AnalysisContext holds which layers are active and their predicates
- run_aggregation_pass fetches every active layer concurrently and builds
  one AggregateResult
- ResultStore keeps the latest result and refuses results of older passes
- ViewportAnalytics wires UI events to a debounced scheduler
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from core.aggregator import aggregate_count, aggregate_length
from core.models import AggregateResult, BoundingBox, FeatureCollection
from core.scheduler import DebouncedScheduler
from core.settings import AnalysisSettings
from loaders.arcgis import ArcGISFeatureSource
from loaders.layers import LAYERS, default_active_layers, get_layer
from loaders.paging import PagedSource, fetch_all
from loaders.predicates import MATCH_ALL, build_where, diameter_where, normalize_where

log = logging.getLogger(__name__)

SourceFactory = Callable[[str], PagedSource]


# ═══════════════════════════════════════════════════════════════════════════
# CONTEXT
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class ContextSnapshot:
    """Immutable view of the context taken at the start of a pass."""
    active_layers: Tuple[str, ...] = ()
    predicates: Tuple[Tuple[str, str], ...] = ()

    def predicate_for(self, key: str) -> Optional[str]:
        return dict(self.predicates).get(key)


class AnalysisContext:
    """Active layers and per-layer predicates, passed to every pass explicitly."""

    def __init__(self, active_layers: Optional[Iterable[str]] = None):
        self._lock = threading.Lock()
        keys = list(default_active_layers() if active_layers is None else active_layers)
        for key in keys:
            get_layer(key)
        self._active: List[str] = list(dict.fromkeys(keys))
        self._predicates: Dict[str, str] = {}

    @property
    def active_layers(self) -> List[str]:
        with self._lock:
            return list(self._active)

    def is_active(self, key: str) -> bool:
        with self._lock:
            return key in self._active

    def set_active(self, key: str, active: bool) -> None:
        get_layer(key)
        with self._lock:
            if active and key not in self._active:
                self._active.append(key)
            elif not active and key in self._active:
                self._active.remove(key)

    def activate(self, key: str) -> None:
        self.set_active(key, True)

    def deactivate(self, key: str) -> None:
        self.set_active(key, False)

    def set_filter(self, key: str, where: Optional[str]) -> None:
        get_layer(key)
        clause = normalize_where(where)
        with self._lock:
            if clause == MATCH_ALL:
                self._predicates.pop(key, None)
            else:
                self._predicates[key] = clause

    def clear_filter(self, key: str) -> None:
        with self._lock:
            self._predicates.pop(key, None)

    def predicate_for(self, key: str) -> Optional[str]:
        with self._lock:
            return self._predicates.get(key)

    def snapshot(self) -> ContextSnapshot:
        with self._lock:
            return ContextSnapshot(
                active_layers=tuple(self._active),
                predicates=tuple(sorted(self._predicates.items())),
            )


# ═══════════════════════════════════════════════════════════════════════════
# AGGREGATION PASS
# ═══════════════════════════════════════════════════════════════════════════
def run_aggregation_pass(
    pass_id: int,
    snapshot: ContextSnapshot,
    bbox: BoundingBox,
    source_factory: SourceFactory,
    settings: Optional[AnalysisSettings] = None,
) -> AggregateResult:
    """
    Aggregate every active layer inside bbox.

    Each layer is one sequential page sequence; layers run concurrently.
    A layer whose retrieval fails is reported in failed_layers and left out
    of the length and count tables.
    """
    settings = settings or AnalysisSettings()
    keys = list(snapshot.active_layers)
    fetched: Dict[str, FeatureCollection] = {}
    failed: Dict[str, str] = {}

    def fetch(key: str) -> FeatureCollection:
        layer = get_layer(key)
        return fetch_all(
            source_factory(key),
            bbox,
            snapshot.predicate_for(key),
            page_size=settings.page_size,
            return_geometry=layer.is_line,
        )

    if keys:
        with ThreadPoolExecutor(max_workers=max(1, min(settings.max_workers, len(keys)))) as executor:
            futures = {executor.submit(fetch, key): key for key in keys}
            for future in as_completed(futures):
                key = futures[future]
                try:
                    fetched[key] = future.result()
                except Exception as e:
                    log.error(f"Pass {pass_id}: layer {key} failed: {e}")
                    failed[key] = str(e)

    lengths: Dict[str, float] = {}
    counts: Dict[str, int] = {}
    bins: Dict[float, float] = {}
    for key in keys:
        if key not in fetched:
            continue
        layer = get_layer(key)
        collection = fetched[key]
        counts[key] = aggregate_count(collection)
        if layer.is_line:
            total_km, layer_bins = aggregate_length(collection, bbox, layer.bin_by)
            lengths[key] = total_km
            for value, km in layer_bins.items():
                bins[value] = bins.get(value, 0.0) + km

    log.info(
        f"Pass {pass_id}: {len(fetched)}/{len(keys)} layers aggregated"
        + (f", failed: {sorted(failed)}" if failed else "")
    )
    return AggregateResult(
        pass_id=pass_id,
        bbox=bbox,
        length_by_network=lengths,
        count_by_network=counts,
        length_by_attribute_bin=bins,
        failed_layers={k: failed[k] for k in keys if k in failed},
    )


# ═══════════════════════════════════════════════════════════════════════════
# RESULT STORE
# ═══════════════════════════════════════════════════════════════════════════
class ResultStore:
    """
    Holds the latest AggregateResult.

    Results are replaced whole under a lock. A result from a pass older than
    the one already committed is rejected, so a slow old pass cannot
    overwrite a newer one. Passes that raise are reported through fail();
    the previous result stays in place but is no longer current.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._latest: Optional[AggregateResult] = None
        self._subscribers: List[Callable[[AggregateResult], None]] = []
        self._failure_subscribers: List[Callable[[int, BaseException], None]] = []
        self._last_failure: Optional[Tuple[int, BaseException]] = None

    def latest(self) -> Optional[AggregateResult]:
        with self._lock:
            return self._latest

    def subscribe(self, callback: Callable[[AggregateResult], None]) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def commit(self, result: AggregateResult) -> bool:
        """Replace the latest result. Returns False when the result is stale."""
        with self._lock:
            if self._latest is not None and result.pass_id < self._latest.pass_id:
                log.info(f"Discarding stale pass {result.pass_id} (showing {self._latest.pass_id})")
                return False
            self._latest = result
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(result)
        return True

    def on_failure(self, callback: Callable[[int, BaseException], None]) -> None:
        with self._lock:
            self._failure_subscribers.append(callback)

    def last_failure(self) -> Optional[Tuple[int, BaseException]]:
        """(pass_id, error) of the newest failed pass, if it is newer than the latest result."""
        with self._lock:
            if self._last_failure is None:
                return None
            if self._latest is not None and self._latest.pass_id > self._last_failure[0]:
                return None
            return self._last_failure

    def fail(self, pass_id: int, error: BaseException) -> None:
        """Record a pass that produced no result."""
        with self._lock:
            if self._last_failure is None or pass_id > self._last_failure[0]:
                self._last_failure = (pass_id, error)
            subscribers = list(self._failure_subscribers)
        log.warning(f"Pass {pass_id} failed; latest result is not current: {error}")
        for callback in subscribers:
            callback(pass_id, error)


# ═══════════════════════════════════════════════════════════════════════════
# VIEWPORT ANALYTICS
# ═══════════════════════════════════════════════════════════════════════════
class ViewportAnalytics:
    """
    Event-facing entry point of the viewport statistics.

    Usage:
        analytics = ViewportAnalytics()
        analytics.store.subscribe(render_tables)
        analytics.on_viewport_change(BoundingBox(138.55, -34.95, 138.65, -34.90))
        analytics.apply_diameter_filter(150)
    """

    def __init__(
        self,
        context: Optional[AnalysisContext] = None,
        source_factory: Optional[SourceFactory] = None,
        settings: Optional[AnalysisSettings] = None,
        store: Optional[ResultStore] = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.settings = settings or AnalysisSettings()
        self.context = context or AnalysisContext()
        self.store = store or ResultStore()
        self.source_factory = source_factory or self._arcgis_source
        # requests sessions are not shared across threads
        self._sources = threading.local()
        self._bbox: Optional[BoundingBox] = None
        self.scheduler = DebouncedScheduler(
            self._run_pass,
            quiet_interval=self.settings.quiet_interval_seconds,
            timer_factory=timer_factory,
        )

    def _arcgis_source(self, key: str) -> ArcGISFeatureSource:
        cache: Dict[str, ArcGISFeatureSource] = getattr(self._sources, "by_key", None)
        if cache is None:
            cache = self._sources.by_key = {}
        if key not in cache:
            cache[key] = ArcGISFeatureSource.for_layer(
                key,
                service_url=self.settings.service_url,
                timeout=self.settings.request_timeout_seconds,
            )
        return cache[key]

    @property
    def viewport(self) -> Optional[BoundingBox]:
        return self._bbox

    # --- Events -----------------------------------------------------------
    def on_viewport_change(self, bbox: BoundingBox) -> None:
        self._bbox = bbox
        self.scheduler.trigger("viewport")

    def set_layer_active(self, key: str, active: bool) -> None:
        self.context.set_active(key, active)
        self.scheduler.trigger(f"layer {key} {'on' if active else 'off'}")

    def set_filter(self, key: str, where: Optional[str]) -> None:
        self.context.set_filter(key, where)
        self.scheduler.trigger(f"filter {key}")

    def clear_filter(self, key: str) -> None:
        self.context.clear_filter(key)
        self.scheduler.trigger(f"filter {key} cleared")

    def apply_field_filter(self, key: str, field_name: str, op: str, value) -> str:
        """Build a clause from field metadata and apply it. Returns the clause."""
        source = self.source_factory(key)
        describe = getattr(source, "field_type", None)
        field_type = describe(field_name) if describe else ""
        clause = build_where(field_name, op, value, field_type)
        self.set_filter(key, clause)
        return clause

    def apply_diameter_filter(self, min_diameter_mm) -> str:
        clause = diameter_where(min_diameter_mm)
        self.set_filter("waterMains", clause)
        return clause

    def describe_fields(self, key: str) -> List[Dict[str, str]]:
        get_layer(key)
        return self.source_factory(key).describe_fields()

    def refresh(self) -> Optional[AggregateResult]:
        """
        Recompute immediately (refresh button).

        Returns None when the pass produced no result (no viewport yet, or the
        pass failed); an older result is never handed back as current.
        """
        pass_id = self.scheduler.run_now("refresh")
        latest = self.store.latest()
        if latest is None or latest.pass_id < pass_id:
            return None
        return latest

    # --- Pass ----------------------------------------------------------------
    def _run_pass(self, pass_id: int) -> None:
        bbox = self._bbox
        if bbox is None:
            log.debug(f"Pass {pass_id} skipped: no viewport yet")
            return
        try:
            result = run_aggregation_pass(
                pass_id, self.context.snapshot(), bbox, self.source_factory, self.settings
            )
        except Exception as e:
            self.store.fail(pass_id, e)
            raise
        self.store.commit(result)


def layer_labels() -> Dict[str, str]:
    return {key: layer.label for key, layer in LAYERS.items()}
