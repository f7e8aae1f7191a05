"""
Property-based tests for the result validator.

These tests verify that broad-search results are narrowed to consistent
records and that a usable sample is never emptied.
"""

from datetime import datetime, timedelta, timezone
from hypothesis import given, settings, strategies as st

from comparables.config import ValidationConfig
from comparables.models import ListingRecord
from comparables.validation import ResultValidator, significant_terms


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def record(title, price=1000.0, years_ago=1.0, description=None):
    return ListingRecord(
        title=title,
        currency="SEK",
        final_price=price,
        is_sold=True,
        end_date=NOW - timedelta(days=int(365 * years_ago)),
        description=description,
    )


def test_significant_terms():
    assert significant_terms('"Carl Malmsten" stol 1950') == ['carl', 'malmsten', 'stol']
    assert significant_terms('byrå ek 1800-tal') == ['byrå', '1800-tal']


@given(count=st.integers(min_value=0, max_value=3))
@settings(max_examples=20)
def test_small_samples_pass_through(count):
    records = [record("Tavla olja") for _ in range(count)]

    assert ResultValidator(now=NOW).validate(records, "byrå ek") == records


def test_object_search_keeps_records_matching_half_the_terms():
    records = [record("Byrå ek 1800-tal") for _ in range(4)] + [
        record("Tavla olja på duk"),
        record("Vas glas Orrefors"),
    ]

    kept = ResultValidator(now=NOW).validate(records, "byrå ek 1800-tal", "Object + technique + period")

    assert len(kept) == 4
    assert all("Byrå" in r.title for r in kept)


def test_decade_variants_match():
    records = [record("Byrå 1800 tal") for _ in range(3)] + [record("Byrå 1920-tal, ek"), record("Spegel")]

    kept = ResultValidator(now=NOW).validate(records, "spegel 1800-tal")

    assert len(kept) == 4


def test_name_search_requires_every_name_token():
    records = [record("Carl Malmsten stol Lilla Åland") for _ in range(4)] + [
        record("Bruno Mathsson stol Eva"),
        record("Malmsten pall"),
    ]

    kept = ResultValidator(now=NOW).validate(records, '"Carl Malmsten" stol')

    assert len(kept) == 4


def test_guard_not_adopted_when_too_few_survive():
    records = [record("Carl Malmsten stol") for _ in range(2)] + [
        record("Bruno Mathsson stol"),
        record("Alvar Aalto stol"),
        record("Hans Wegner stol"),
    ]

    kept = ResultValidator(now=NOW).validate(records, '"Carl Malmsten" stol')

    assert kept == records


def test_temporal_guard_keeps_recent_sales_when_span_is_long():
    recent = [record("Stol", years_ago=y) for y in (0.5, 1, 2, 3)]
    old = [record("Stol", years_ago=y) for y in (14, 15)]

    kept = ResultValidator(now=NOW).validate(recent + old, "stol")

    assert kept == recent


def test_temporal_guard_ignores_short_spans():
    records = [record("Stol", years_ago=y) for y in (0.5, 1, 2, 3, 6, 8)]

    assert ResultValidator(now=NOW).validate(records, "stol") == records


def test_ratio_guard_only_removes_outliers_when_enabled():
    records = [record("Stol", price=p) for p in (100, 110, 120, 130, 140, 1_000_000)]

    assert ResultValidator(now=NOW).validate(records, "stol") == records

    config = ValidationConfig(ratio_outlier_removal=True, ratio_threshold=200.0, iqr_multiplier=5.0)
    kept = ResultValidator(config, now=NOW).validate(records, "stol")

    assert [r.final_price for r in kept] == [100, 110, 120, 130, 140]


def test_term_guard_runs_when_ratio_guard_removes_nothing():
    """A wide ratio with no IQR outliers still leaves the term guard to do its work."""
    records = [record("Byrå ek 1800-tal", price=p) for p in (100, 100, 30000, 30000)] + [
        record("Tavla olja på duk", price=30000),
        record("Vas glas Orrefors", price=30000),
    ]
    config = ValidationConfig(ratio_outlier_removal=True)

    kept = ResultValidator(config, now=NOW).validate(records, "byrå ek 1800-tal")

    assert len(kept) == 4
    assert all("Byrå" in r.title for r in kept)


def test_term_guard_never_readmits_ratio_outliers():
    byraer = [record("Byrå ek", price=p) for p in (100, 110, 120, 130)]
    outlier = record("Byrå ek", price=1_000_000)
    others = [record("Tavla olja", price=140), record("Vas glas", price=150)]
    config = ValidationConfig(ratio_outlier_removal=True)

    kept = ResultValidator(config, now=NOW).validate(byraer + [outlier] + others, "byrå ek")

    assert kept == byraer


@given(
    titles=st.lists(
        st.sampled_from(["Byrå ek", "Byrå furu", "Tavla olja", "Vas glas", "Stol ek", "Spegel"]),
        min_size=4,
        max_size=20,
    ),
    years=st.lists(st.floats(min_value=0.0, max_value=30.0), min_size=20, max_size=20),
)
@settings(max_examples=100)
def test_validator_never_drops_below_minimum(titles, years):
    """
    For any input larger than three records, the validator returns a subset
    of the input with at least three records.
    """
    records = [record(title, years_ago=years[i]) for i, title in enumerate(titles)]

    kept = ResultValidator(now=NOW).validate(records, "byrå ek")

    assert len(kept) >= 3
    assert all(r in records for r in kept)
