"""
similar_quotes.py: Historical quote lookup for the RFQ form

When a sales user fills in a product on the new-RFQ form, we look for
products already quoted in the same series that agree on most attributes, and
surface the latest quotes for them as a price reference.

Matching rules:
  - Product series must be identical (hard filter, not scored)
  - 7 attributes compared: hair fiber, cap, cap size, length, density,
    color, curl style
  - A field counts only when BOTH sides are non-empty strings and exactly
    equal (case-sensitive, no normalization)
  - MIN_MATCHING_FIELDS of 7 must agree; absent fields never count against
  - Quotes are joined on product id across the whole corpus
  - Newest first, one per (rfq, product, purchaser), at most MAX_RESULTS

Pure function over a caller-supplied corpus. No I/O, no logging, no caching:
see src.knowledge.corpus for where the corpus comes from.
"""

from datetime import datetime, timezone
from typing import Iterable

from src.core.models import RFQ, Product, Quote, parse_timestamp

MIN_MATCHING_FIELDS = 5
MAX_RESULTS = 3

# Explicit accessors so a change to Product's shape can't silently
# add or drop a compared attribute.
COMPARISON_FIELDS = (
    ("hair_fiber", lambda p: p.hair_fiber),
    ("cap", lambda p: p.cap),
    ("cap_size", lambda p: p.cap_size),
    ("length", lambda p: p.length),
    ("density", lambda p: p.density),
    ("color", lambda p: p.color),
    ("curl_style", lambda p: p.curl_style),
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class InvalidInputError(ValueError):
    """Query or corpus is structurally unusable."""


def _is_value(v) -> bool:
    return isinstance(v, str) and v != ""


def count_matching_fields(query: Product, candidate: Product) -> int:
    """Number of comparison fields where both products carry the same string."""
    matches = 0
    for _name, get in COMPARISON_FIELDS:
        a, b = get(query), get(candidate)
        if _is_value(a) and _is_value(b) and a == b:
            matches += 1
    return matches


def is_similar(query: Product, candidate: Product) -> bool:
    if candidate.product_series != query.product_series:
        return False
    return count_matching_fields(query, candidate) >= MIN_MATCHING_FIELDS


def _submitted_at(quote: Quote) -> datetime:
    try:
        return parse_timestamp(quote.quote_time) or _EPOCH
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise InvalidInputError(f"quote {quote.id or quote.key} has an unreadable "
                                f"quote_time {quote.quote_time!r}") from e


def _check_entries(rfq: RFQ, attr: str, kind: type):
    entries = getattr(rfq, attr)
    if not isinstance(entries, (list, tuple)):
        raise InvalidInputError(f"RFQ {rfq.id} {attr} must be a list, got {type(entries).__name__}")
    for entry in entries:
        if not isinstance(entry, kind):
            raise InvalidInputError(f"RFQ {rfq.id} {attr} must hold {kind.__name__} "
                                    f"records, got {type(entry).__name__}")


def _materialize(corpus) -> list:
    if corpus is None:
        raise InvalidInputError("corpus is required")
    try:
        rfqs = list(corpus)
    except TypeError as e:
        raise InvalidInputError(f"corpus must be iterable, got {type(corpus).__name__}") from e
    for rfq in rfqs:
        if not isinstance(rfq, RFQ):
            raise InvalidInputError(f"corpus entries must be RFQ records, got {type(rfq).__name__}")
        _check_entries(rfq, "products", Product)
        _check_entries(rfq, "quotes", Quote)
    return rfqs


def find_similar_quotes(query: Product, corpus: Iterable[RFQ]) -> list:
    """
    Find the most recent historical quotes for products similar to `query`.

    Returns at most MAX_RESULTS Quote records, newest first, with no two
    sharing the same (rfq_id, product_id, purchaser_id). An empty list means
    nothing comparable was found.

    Raises InvalidInputError if `query` is not a Product, if `corpus` is not
    an iterable of RFQ records whose products and quotes are Product and
    Quote records, or if a candidate quote's quote_time cannot be read.
    Nothing is returned partially.
    """
    if not isinstance(query, Product):
        raise InvalidInputError(f"query must be a Product, got {type(query).__name__}")
    rfqs = _materialize(corpus)

    if not _is_value(query.product_series):
        return []

    all_quotes = [q for rfq in rfqs for q in rfq.quotes]

    candidates = []
    for rfq in rfqs:
        for historical in rfq.products:
            if not is_similar(query, historical):
                continue
            candidates.extend(q for q in all_quotes if q.product_id == historical.id)

    # sorted() is stable, so equal timestamps keep corpus order
    candidates = sorted(candidates, key=_submitted_at, reverse=True)

    seen = set()
    results = []
    for quote in candidates:
        if quote.key in seen:
            continue
        seen.add(quote.key)
        results.append(quote)
        if len(results) == MAX_RESULTS:
            break
    return results
