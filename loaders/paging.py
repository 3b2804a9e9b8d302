"""
Paged retrieval.

Pulls an unbounded remote feature set in fixed-size pages and returns one
complete collection. Pages are requested strictly in sequence; the first
short page marks the end of the data. If any page fails the whole
retrieval fails, so callers never aggregate a partial set.
"""

import logging
from typing import List, Optional, Protocol

from core.models import BoundingBox, Feature, FeatureCollection
from loaders.predicates import normalize_where

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 2000


class PagedSource(Protocol):
    def query(
        self,
        bbox: BoundingBox,
        where: Optional[str],
        offset: int,
        limit: int,
        return_geometry: bool = True,
    ) -> List[Feature]:
        ...


class RetrievalError(RuntimeError):
    """A page request failed; the retrieval produced no result."""

    def __init__(self, message: str, offset: int = 0, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.offset = offset
        self.cause = cause


def fetch_all(
    source: PagedSource,
    bbox: BoundingBox,
    predicate: Optional[str] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    return_geometry: bool = True,
) -> FeatureCollection:
    """
    Fetch every feature in bbox matching predicate.

    Args:
        source: Anything with a query(bbox, where, offset, limit, return_geometry) method
        bbox: Spatial constraint (intersects)
        predicate: Server-side where clause; None or blank matches all
        page_size: Features per page
        return_geometry: False when only counts are needed

    Returns:
        All pages concatenated in order

    Raises:
        RetrievalError: a page request failed
    """
    if not isinstance(page_size, int) or isinstance(page_size, bool) or page_size <= 0:
        raise ValueError(f"page_size must be a positive integer, got {page_size!r}")

    where = normalize_where(predicate)
    collected: List[Feature] = []
    offset = 0
    pages = 0

    while True:
        try:
            batch = list(source.query(bbox, where, offset, page_size, return_geometry))
        except Exception as e:
            raise RetrievalError(
                f"Page at offset {offset} failed: {e}", offset=offset, cause=e
            ) from e

        pages += 1
        collected.extend(batch)
        if len(batch) < page_size:
            break
        offset += page_size

    log.debug(f"Retrieved {len(collected)} features in {pages} page(s) for where={where!r}")
    return FeatureCollection(collected)
