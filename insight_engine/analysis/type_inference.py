# insight_engine/analysis/type_inference.py
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

from insight_engine.config import Config, get_config
from insight_engine.models import (
    ColumnBuckets,
    ColumnTypeInfo,
    Dataset,
    SemanticType,
    StorageType,
)
from insight_engine.utils.values import is_boolean_token, is_empty, parse_date, to_number

TEMPORAL_NAME_PATTERN = re.compile(r'date|time|timestamp|created|updated', re.IGNORECASE)


@dataclass(frozen=True)
class ColumnSample:
    """Leading non-empty values of a column and how they parse"""
    values: List[Any]
    numeric_ratio: float
    date_ratio: float
    boolean_ratio: float

    @property
    def size(self) -> int:
        return len(self.values)


def sample_column(rows: Sequence[Mapping[str, Any]], name: str,
                  sample_size: int = 20, min_date_year: int = 1900) -> ColumnSample:
    """
    Draw up to ``sample_size`` non-empty values of a column in row order.

    Rows are scanned from the top; no shuffling, so early rows dominate.
    """
    values: List[Any] = []
    for row in rows:
        if len(values) >= sample_size:
            break
        value = row.get(name)
        if not is_empty(value):
            values.append(value)

    if not values:
        return ColumnSample(values=[], numeric_ratio=0.0, date_ratio=0.0, boolean_ratio=0.0)

    total = len(values)
    numeric_count = sum(1 for value in values if to_number(value) is not None)
    date_count = 0
    for value in values:
        timestamp = parse_date(value)
        if timestamp is not None and timestamp.year > min_date_year:
            date_count += 1
    boolean_count = sum(1 for value in values if is_boolean_token(value))

    return ColumnSample(
        values=values,
        numeric_ratio=numeric_count / total,
        date_ratio=date_count / total,
        boolean_ratio=boolean_count / total,
    )


class TypeInferenceEngine:
    """Classifies every column of a dataset into a semantic type bucket"""

    def __init__(self, config: Optional[Config] = None):
        self.config = (config or get_config()).inference

    def analyze_columns(self, dataset: Dataset) -> ColumnBuckets:
        buckets = ColumnBuckets()

        for column in dataset.columns:
            sample = sample_column(
                dataset.rows, column.name,
                sample_size=self.config.SAMPLE_SIZE,
                min_date_year=self.config.MIN_DATE_YEAR,
            )
            if sample.size == 0:
                continue

            info = self.infer_column_type(column.name, sample)
            getattr(buckets, info.semantic_type.value).append(info)

        return buckets

    def infer_column_type(self, column_name: str, sample: ColumnSample) -> ColumnTypeInfo:
        """First matching rule wins: numerical, temporal, boolean, categorical"""
        kept = tuple(sample.values[:self.config.MAX_SAMPLE_VALUES])

        if sample.numeric_ratio > self.config.NUMERIC_RATIO:
            return ColumnTypeInfo(column_name, SemanticType.NUMERICAL, sample.numeric_ratio, kept)

        if sample.date_ratio > self.config.DATE_RATIO or TEMPORAL_NAME_PATTERN.search(column_name):
            confidence = max(sample.date_ratio, self.config.NAME_MATCH_CONFIDENCE)
            return ColumnTypeInfo(column_name, SemanticType.TEMPORAL, confidence, kept)

        if sample.boolean_ratio > self.config.BOOLEAN_RATIO:
            return ColumnTypeInfo(column_name, SemanticType.BOOLEAN, sample.boolean_ratio, kept)

        confidence = 1 - max(sample.numeric_ratio, sample.date_ratio, sample.boolean_ratio)
        return ColumnTypeInfo(column_name, SemanticType.CATEGORICAL, confidence, kept)

    def storage_type(self, sample: ColumnSample) -> StorageType:
        """Coarse storage typing used when a dataset arrives with bare column names"""
        if sample.size == 0:
            return StorageType.STRING
        if sample.numeric_ratio > self.config.NUMERIC_RATIO:
            return StorageType.NUMBER
        if sample.date_ratio > self.config.DATE_RATIO:
            return StorageType.DATE
        return StorageType.STRING
