"""
Series building: projects raw records onto aligned buckets.

Records are sorted once and swept linearly against the buckets, so the
cost is one sort plus O(records + buckets) rather than a scan per bucket.
"""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog

from exceptions import BatchLimitExceededError, InsufficientDataError, InvalidRangeError
from models.requests import AnalyticsFilters
from models.series import (
    EntityType,
    Granularity,
    HistoricalRecord,
    PeriodBucket,
    RecordKind,
    Series,
    SeriesPoint,
)
from models.trends import Metric
from services.period_service import build_buckets
from utils.decimal_utils import ZERO

logger = structlog.get_logger(__name__)

ValueSelector = Callable[[HistoricalRecord], Decimal]


# ===================
# METRICS
# ===================

# Metric → (record kind it reads, value taken from each record)
METRIC_RULES: Dict[Metric, Tuple[RecordKind, ValueSelector]] = {
    Metric.REVENUE: (RecordKind.SALE, lambda r: r.revenue),
    Metric.SALES_VOLUME: (RecordKind.SALE, lambda r: r.quantity),
    Metric.PRODUCTION: (RecordKind.PRODUCTION, lambda r: r.quantity),
    Metric.INGREDIENT_USAGE: (RecordKind.USAGE, lambda r: r.quantity),
    Metric.INGREDIENT_COST: (RecordKind.USAGE, lambda r: r.cost),
}

# Entity type each metric is read from
METRIC_ENTITY: Dict[Metric, EntityType] = {
    Metric.REVENUE: EntityType.RECIPE,
    Metric.SALES_VOLUME: EntityType.RECIPE,
    Metric.PRODUCTION: EntityType.RECIPE,
    Metric.INGREDIENT_USAGE: EntityType.INGREDIENT,
    Metric.INGREDIENT_COST: EntityType.INGREDIENT,
}


def metric_selector(metric: Metric) -> ValueSelector:
    """Value selector for a metric."""
    return METRIC_RULES[metric][1]


def metric_kind(metric: Metric) -> RecordKind:
    """Record kind a metric is computed from."""
    return METRIC_RULES[metric][0]


# ===================
# FILTERING
# ===================

def validate_filters(filters: AnalyticsFilters, max_batch_entities: int) -> None:
    """
    Reject filters the engine cannot honour.

    Raises:
        InvalidRangeError: Inverted range, or an allow-list that is present but empty
        BatchLimitExceededError: Allow-list longer than max_batch_entities
    """
    if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
        raise InvalidRangeError(
            "start_date must be on or before end_date",
            start_date=filters.start_date,
            end_date=filters.end_date,
        )

    for field in ("recipe_ids", "ingredient_ids"):
        ids = getattr(filters, field)
        if ids is None:
            continue
        if len(ids) == 0:
            raise InvalidRangeError(
                f"{field} was provided but references no entities",
                details={"field": field},
            )
        if len(ids) > max_batch_entities:
            raise BatchLimitExceededError(field, len(ids), max_batch_entities)


def _matches_entities(record: HistoricalRecord, filters: AnalyticsFilters) -> bool:
    if record.entity_type == EntityType.RECIPE:
        if filters.recipe_ids is not None and record.entity_id not in filters.recipe_ids:
            return False
        if filters.category_id is not None and record.category_id != filters.category_id:
            return False
    elif record.entity_type == EntityType.INGREDIENT:
        if filters.ingredient_ids is not None and record.entity_id not in filters.ingredient_ids:
            return False
    elif record.entity_type == EntityType.CATEGORY:
        if filters.category_id is not None and record.entity_id != filters.category_id:
            return False
    return True


def select_records(
    records: Iterable[HistoricalRecord],
    filters: AnalyticsFilters,
    kind: Optional[RecordKind] = None,
) -> List[HistoricalRecord]:
    """
    Keep the records a request is about.

    Callers normally pre-scope; this only guards against stray rows from
    another tenant, another record kind or outside the allow-lists. Date
    range is left to the bucket sweep.
    """
    return [
        r for r in records
        if r.company_id == filters.company_id
        and (kind is None or r.kind == kind)
        and _matches_entities(r, filters)
    ]


def select_metric_records(
    records: Iterable[HistoricalRecord],
    filters: AnalyticsFilters,
    metric: Metric,
) -> List[HistoricalRecord]:
    """Records of the kind and entity type a metric is computed from."""
    entity_type = METRIC_ENTITY[metric]
    return [
        r for r in select_records(records, filters, metric_kind(metric))
        if r.entity_type == entity_type
    ]


def resolve_date_range(
    filters: AnalyticsFilters,
    records: Sequence[HistoricalRecord],
    lookback_days: int,
) -> Tuple[date, date]:
    """
    Work out the [start, end] window for a request.

    end_date, else as_of, else the latest record date. start_date, else
    lookback_days ending on end (inclusive).

    Raises:
        InvalidRangeError: start_date is after the given end_date or as_of
        InsufficientDataError: No end date given and no records to infer one
    """
    end = filters.end_date or filters.as_of
    end_inferred = end is None
    if end_inferred:
        if not records:
            raise InsufficientDataError(
                "No date range given and no records to infer one",
                details={"company_id": filters.company_id},
            )
        end = max(r.occurred_on for r in records)

    start = filters.start_date or end - timedelta(days=lookback_days - 1)
    if end_inferred and start > end:
        # All records predate start_date; the period is empty
        end = start
    if start > end:
        raise InvalidRangeError(
            "start_date must be on or before end_date",
            start_date=start,
            end_date=end,
        )
    return start, end


# ===================
# SERIES
# ===================

def _bucket_totals(
    records: Iterable[HistoricalRecord],
    buckets: Sequence[PeriodBucket],
    value_selector: ValueSelector,
) -> List[Decimal]:
    totals = [ZERO] * len(buckets)
    range_start = buckets[0].period_start
    range_end = buckets[-1].period_end

    index = 0
    for record in sorted(records, key=lambda r: r.occurred_on):
        day = record.occurred_on
        if day < range_start:
            continue
        if day >= range_end:
            break
        while day >= buckets[index].period_end:
            index += 1
        totals[index] += value_selector(record)

    return totals


def build_series(
    records: Iterable[HistoricalRecord],
    buckets: Sequence[PeriodBucket],
    value_selector: ValueSelector,
    entity_id: Optional[str] = None,
) -> Series:
    """
    Sum value_selector(record) into each bucket.

    Args:
        records: Records to aggregate; those outside the buckets are ignored
        buckets: Contiguous buckets from build_buckets()
        value_selector: Extracts the Decimal value of one record
        entity_id: Entity the series describes (None for company-wide)

    Returns:
        Series with exactly one point per bucket, 0 where nothing matched

    Raises:
        InsufficientDataError: If there are no buckets
    """
    if not buckets:
        raise InsufficientDataError(
            "Cannot build a series without buckets",
            details={"entity_id": entity_id},
        )

    totals = _bucket_totals(records, buckets, value_selector)
    return Series(
        entity_id=entity_id,
        granularity=buckets[0].granularity,
        points=[
            SeriesPoint(bucket=bucket, value=total)
            for bucket, total in zip(buckets, totals)
        ],
    )


def build_entity_series(
    records: Iterable[HistoricalRecord],
    buckets: Sequence[PeriodBucket],
    value_selector: ValueSelector,
) -> Dict[str, Series]:
    """One series per entity_id, every series sharing the same buckets."""
    by_entity: Dict[str, List[HistoricalRecord]] = defaultdict(list)
    for record in records:
        by_entity[record.entity_id].append(record)

    return {
        entity_id: build_series(entity_records, buckets, value_selector, entity_id=entity_id)
        for entity_id, entity_records in sorted(by_entity.items())
    }


def build_metric_series(
    records: Iterable[HistoricalRecord],
    metric: Metric,
    start_date: date,
    end_date: date,
    granularity: Granularity,
    entity_id: Optional[str] = None,
) -> Series:
    """Bucket the range and build the series for a metric in one call."""
    kind = metric_kind(metric)
    buckets = build_buckets(start_date, end_date, granularity)
    return build_series(
        (r for r in records if r.kind == kind),
        buckets,
        metric_selector(metric),
        entity_id=entity_id,
    )
