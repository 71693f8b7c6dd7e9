# insight_engine/models.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ConfidenceLevel = Literal['high', 'medium', 'low']
ResultType = Literal['summary', 'numeric', 'categorical', 'distribution', 'statistical']


# ---------------------------------------------------------------------------
# Canonical dataset
# ---------------------------------------------------------------------------

class StorageType(str, Enum):
    """Coarse storage form of a column, as declared or guessed during normalization"""
    STRING = 'string'
    NUMBER = 'number'
    DATE = 'date'
    BOOLEAN = 'boolean'

    @classmethod
    def parse(cls, value: Any) -> 'StorageType':
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.STRING


@dataclass(frozen=True)
class Column:
    name: str
    storage_type: StorageType = StorageType.STRING


@dataclass(frozen=True)
class BareColumns:
    """Columns given as plain names"""
    names: Tuple[str, ...]


@dataclass(frozen=True)
class DescriptorColumns:
    """Columns given as {name, type} descriptors"""
    columns: Tuple[Column, ...]


ColumnSpec = Union[BareColumns, DescriptorColumns]


@dataclass(frozen=True)
class DatasetSummary:
    """Advisory metadata gathered while normalizing; hints, not guarantees"""
    total_rows: int
    total_columns: int
    possible_user_id_columns: Tuple[str, ...] = ()
    possible_event_columns: Tuple[str, ...] = ()
    possible_timestamp_columns: Tuple[str, ...] = ()
    payload_size: int = 0


@dataclass(frozen=True)
class Dataset:
    """The canonical table analysed by every component; never mutated during an analysis"""
    columns: Tuple[Column, ...]
    rows: Tuple[Mapping[str, Any], ...]
    summary: Optional[DatasetSummary] = None

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.columns)


# ---------------------------------------------------------------------------
# Semantic types and metrics
# ---------------------------------------------------------------------------

class SemanticType(str, Enum):
    NUMERICAL = 'numerical'
    CATEGORICAL = 'categorical'
    TEMPORAL = 'temporal'
    BOOLEAN = 'boolean'


@dataclass(frozen=True)
class ColumnTypeInfo:
    name: str
    semantic_type: SemanticType
    confidence: float
    sample_values: Tuple[Any, ...] = ()


@dataclass
class ColumnBuckets:
    numerical: List[ColumnTypeInfo] = field(default_factory=list)
    categorical: List[ColumnTypeInfo] = field(default_factory=list)
    temporal: List[ColumnTypeInfo] = field(default_factory=list)
    boolean: List[ColumnTypeInfo] = field(default_factory=list)

    def names(self, semantic_type: SemanticType) -> List[str]:
        return [info.name for info in getattr(self, semantic_type.value)]


@dataclass(frozen=True)
class StatisticalMetrics:
    average: float
    minimum: float
    maximum: float
    standard_deviation: float
    count: int


@dataclass(frozen=True)
class CategoricalMetrics:
    unique_categories: int
    total_records: int
    top_category: str
    top_category_count: int
    diversity: float
    frequencies: Tuple[Tuple[str, int], ...] = ()


@dataclass(frozen=True)
class TemporalMetrics:
    earliest: datetime
    latest: datetime
    day_span: int
    valid_date_count: int

    @property
    def earliest_date(self) -> str:
        return self.earliest.date().isoformat()

    @property
    def latest_date(self) -> str:
        return self.latest.date().isoformat()


@dataclass(frozen=True)
class CorrelationMetrics:
    column_x: str
    column_y: str
    coefficient: float
    strength: str
    direction: str
    pair_count: int


@dataclass
class DatasetProfile:
    """Everything the assembler and narrator need, computed once per analysis"""
    buckets: ColumnBuckets
    numerical: Dict[str, StatisticalMetrics] = field(default_factory=dict)
    categorical: Dict[str, CategoricalMetrics] = field(default_factory=dict)
    temporal: Dict[str, TemporalMetrics] = field(default_factory=dict)
    correlation: Optional[CorrelationMetrics] = None
    completeness: float = 0.0
    duplicates: int = 0


# ---------------------------------------------------------------------------
# Report schemas handed to the presentation layer
# ---------------------------------------------------------------------------

class _Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


class AnalysisContext(_Schema):
    research_question: Optional[str] = None
    datasets: Optional[List[Any]] = None
    business_context: Optional[str] = None


class ReportContext(_Schema):
    """What the report echoes back about the request; raw datasets stay with the caller"""
    research_question: Optional[str] = None
    business_context: Optional[str] = None
    dataset_count: int = 0

    @classmethod
    def from_context(cls, context: Optional[AnalysisContext]) -> 'ReportContext':
        if context is None:
            return cls()
        return cls(
            research_question=context.research_question,
            business_context=context.business_context,
            dataset_count=len(context.datasets or []),
        )


class CategoryShare(_Schema):
    name: str
    count: int
    percentage: int


class AnalysisResult(_Schema):
    id: str
    title: str
    description: str
    value: Union[int, float, str]
    confidence: ConfidenceLevel
    type: ResultType
    timestamp: str
    unit: Optional[str] = None
    trend: Optional[Literal['up', 'down', 'stable']] = None
    categories: Optional[List[CategoryShare]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ValidationResult(_Schema):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    confidence: ConfidenceLevel = 'high'


class DataQuality(_Schema):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    completeness: float = 0.0


class AnalysisReport(_Schema):
    id: str
    timestamp: datetime
    context: ReportContext
    results: List[AnalysisResult] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)
    confidence: ConfidenceLevel
    recommendations: List[str] = Field(default_factory=list)
    sql_preview: str = ''
    query_breakdown: List[str] = Field(default_factory=list)
    data_quality: DataQuality
    question_kind: Optional[Literal['simple', 'complex']] = None
    execution_time: Optional[float] = None
    execution_log: List[str] = Field(default_factory=list)
