# insight_engine/analysis/statistics.py
import math
from typing import Any, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from insight_engine.config import Config, get_config
from insight_engine.models import (
    CategoricalMetrics,
    ColumnBuckets,
    CorrelationMetrics,
    Dataset,
    DatasetProfile,
    StatisticalMetrics,
    TemporalMetrics,
)
from insight_engine.utils.values import is_empty, parse_date, to_number

Rows = Sequence[Mapping[str, Any]]

MS_PER_DAY = 86_400_000


class StatisticsEngine:
    """
    Metric computation over canonical rows.

    Every method is pure and returns None instead of raising when a column
    does not hold enough usable values.
    """

    def __init__(self, config: Optional[Config] = None):
        config = config or get_config()
        self.config = config.statistics
        self.report_config = config.report

    def calculate_numerical_statistics(self, rows: Rows, column: str) -> Optional[StatisticalMetrics]:
        numbers = [to_number(row.get(column)) for row in rows]
        values = np.array([number for number in numbers if number is not None], dtype=float)

        if values.size == 0:
            return None

        minimum = float(values.min())
        maximum = float(values.max())
        mean = float(values.mean())
        # Population variance, divided by N
        variance = float(np.mean((values - mean) ** 2))

        return StatisticalMetrics(
            average=min(max(mean, minimum), maximum),
            minimum=minimum,
            maximum=maximum,
            standard_deviation=math.sqrt(max(variance, 0.0)),
            count=int(values.size),
        )

    def analyze_categorical_distribution(self, rows: Rows, column: str) -> Optional[CategoricalMetrics]:
        keys = [str(row.get(column)) for row in rows if not is_empty(row.get(column))]

        if not keys:
            return None

        # groupby(sort=False) keeps first-seen order, the stable sort keeps it for ties
        counts = (
            pd.Series(keys, dtype=object)
            .groupby(keys, sort=False)
            .size()
            .sort_values(ascending=False, kind='stable')
        )
        frequencies = tuple((str(name), int(count)) for name, count in counts.items())
        top_category, top_count = frequencies[0]

        return CategoricalMetrics(
            unique_categories=len(frequencies),
            total_records=len(keys),
            top_category=top_category,
            top_category_count=top_count,
            diversity=len(frequencies) / len(keys),
            frequencies=frequencies,
        )

    def analyze_temporal_distribution(self, rows: Rows, column: str) -> Optional[TemporalMetrics]:
        dates = [parse_date(row.get(column)) for row in rows]
        dates = [timestamp for timestamp in dates if timestamp is not None]

        if not dates:
            return None

        earliest = min(dates)
        latest = max(dates)
        span_ms = (latest - earliest) / pd.Timedelta(milliseconds=1)

        return TemporalMetrics(
            earliest=earliest.to_pydatetime(),
            latest=latest.to_pydatetime(),
            day_span=max(int(math.ceil(span_ms / MS_PER_DAY)), 0),
            valid_date_count=len(dates),
        )

    def calculate_correlation(self, rows: Rows, column_x: str, column_y: str) -> Optional[float]:
        """Pearson r over rows where both cells are finite numbers"""
        pairs = [(to_number(row.get(column_x)), to_number(row.get(column_y))) for row in rows]
        pairs = [(x, y) for x, y in pairs if x is not None and y is not None]

        if len(pairs) < self.config.MIN_CORRELATION_PAIRS:
            return None

        x = np.array([pair[0] for pair in pairs], dtype=float)
        y = np.array([pair[1] for pair in pairs], dtype=float)
        n = float(len(pairs))

        sum_x, sum_y = float(x.sum()), float(y.sum())
        sum_xy = float((x * y).sum())
        sum_x2, sum_y2 = float((x * x).sum()), float((y * y).sum())

        numerator = n * sum_xy - sum_x * sum_y
        spread = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)

        if not math.isfinite(spread) or spread <= 0:
            return 0.0

        coefficient = numerator / math.sqrt(spread)
        if not math.isfinite(coefficient):
            return 0.0
        return max(-1.0, min(1.0, coefficient))

    def describe_correlation(self, coefficient: float) -> Tuple[str, str]:
        magnitude = abs(coefficient)
        if magnitude > self.config.STRONG_CORRELATION:
            strength = 'Strong'
        elif magnitude > self.config.MODERATE_CORRELATION:
            strength = 'Moderate'
        else:
            strength = 'Weak'

        if coefficient > 0:
            direction = 'positive'
        elif coefficient < 0:
            direction = 'negative'
        else:
            direction = 'none'
        return strength, direction

    def correlate(self, rows: Rows, column_x: str, column_y: str) -> Optional[CorrelationMetrics]:
        coefficient = self.calculate_correlation(rows, column_x, column_y)
        if coefficient is None:
            return None

        strength, direction = self.describe_correlation(coefficient)
        pair_count = sum(
            1 for row in rows
            if to_number(row.get(column_x)) is not None and to_number(row.get(column_y)) is not None
        )
        return CorrelationMetrics(column_x, column_y, coefficient, strength, direction, pair_count)

    def calculate_completeness(self, dataset: Dataset) -> float:
        """Percentage of filled cells over the leading quality sample of rows"""
        sample = dataset.rows[:self.report_config.QUALITY_SAMPLE_SIZE]
        names = dataset.column_names

        if not sample or not names:
            return 0.0

        filled = sum(1 for row in sample for name in names if not is_empty(row.get(name)))
        return filled / (len(sample) * len(names)) * 100

    def count_duplicate_rows(self, dataset: Dataset) -> int:
        """Approximate duplicates: rows sharing the values of the first key columns"""
        key_columns = dataset.column_names[:self.report_config.DUPLICATE_KEY_COLUMNS]

        if not dataset.rows or not key_columns:
            return 0

        keys = pd.Series([
            '|'.join('' if is_empty(row.get(name)) else str(row.get(name)) for name in key_columns)
            for row in dataset.rows
        ])
        return int(keys.duplicated().sum())

    def build_profile(self, dataset: Dataset, buckets: ColumnBuckets) -> DatasetProfile:
        profile = DatasetProfile(buckets=buckets)

        for info in buckets.numerical:
            metrics = self.calculate_numerical_statistics(dataset.rows, info.name)
            if metrics is not None:
                profile.numerical[info.name] = metrics

        for info in buckets.categorical:
            metrics = self.analyze_categorical_distribution(dataset.rows, info.name)
            if metrics is not None:
                profile.categorical[info.name] = metrics

        for info in buckets.temporal:
            metrics = self.analyze_temporal_distribution(dataset.rows, info.name)
            if metrics is not None:
                profile.temporal[info.name] = metrics

        # Always the first two numerical columns, not the strongest pair
        if len(buckets.numerical) >= 2:
            profile.correlation = self.correlate(
                dataset.rows, buckets.numerical[0].name, buckets.numerical[1].name
            )

        profile.completeness = self.calculate_completeness(dataset)
        profile.duplicates = self.count_duplicate_rows(dataset)
        return profile
