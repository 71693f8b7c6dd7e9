# insight_engine/agents/data_agent.py
import json
import logging
import re
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from insight_engine.analysis.statistics import StatisticsEngine
from insight_engine.analysis.type_inference import TypeInferenceEngine, sample_column
from insight_engine.config import Config, get_config
from insight_engine.errors import ContextError, NormalizationError
from insight_engine.models import (
    AnalysisContext,
    BareColumns,
    Column,
    ColumnSpec,
    Dataset,
    DatasetSummary,
    DescriptorColumns,
    StorageType,
    ValidationResult,
)
from insight_engine.utils.logging_config import StepLogger, get_logger
from insight_engine.utils.values import is_empty, parse_date, to_number


class DatasetNormalizer:
    """Converts whatever the decoding layer produced into the canonical Dataset"""

    USER_ID_NAMES = re.compile(r'user|customer|client|account|member|person|id', re.IGNORECASE)
    EVENT_NAMES = re.compile(r'event|action|activity|behavior|click|view|visit', re.IGNORECASE)
    TIMESTAMP_NAMES = re.compile(r'time|date|timestamp|created|updated|when', re.IGNORECASE)
    TIMESTAMP_SAMPLE_ROWS = 5

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()
        self.type_engine = TypeInferenceEngine(self.config)

    def normalize(self, raw_dataset: Any) -> Dataset:
        raw_columns, raw_rows = self._unpack(raw_dataset)
        rows = self._normalize_rows(raw_rows)
        columns = self.materialize_columns(self.resolve_columns(raw_columns, rows), rows)

        names = [column.name for column in columns]
        summary = DatasetSummary(
            total_rows=len(rows),
            total_columns=len(columns),
            possible_user_id_columns=tuple(n for n in names if self.USER_ID_NAMES.search(n)),
            possible_event_columns=tuple(n for n in names if self.EVENT_NAMES.search(n)),
            possible_timestamp_columns=tuple(self.find_timestamp_columns(names, rows)),
            payload_size=len(json.dumps(rows, default=str)),
        )

        return Dataset(columns=tuple(columns), rows=tuple(rows), summary=summary)

    def _unpack(self, raw_dataset: Any) -> Tuple[Any, Any]:
        if isinstance(raw_dataset, pd.DataFrame):
            frame = raw_dataset.copy()
            frame.columns = [str(name) for name in frame.columns]
            frame = frame.astype(object).where(frame.notna(), None)
            return list(frame.columns), frame.to_dict('records')

        if isinstance(raw_dataset, Mapping):
            return raw_dataset.get('columns'), raw_dataset.get('rows')

        if hasattr(raw_dataset, 'rows'):
            return getattr(raw_dataset, 'columns', None), getattr(raw_dataset, 'rows')

        raise NormalizationError(f"Unsupported dataset object: {type(raw_dataset).__name__}")

    def _normalize_rows(self, raw_rows: Any) -> List[Dict[str, Any]]:
        if raw_rows is None or isinstance(raw_rows, (str, bytes, Mapping)) or not isinstance(raw_rows, Sequence):
            raise NormalizationError("Dataset rows must be an ordered sequence of records")

        rows = []
        for index, row in enumerate(raw_rows):
            if not isinstance(row, Mapping):
                raise NormalizationError(f"Row {index} is not a record: {type(row).__name__}")
            rows.append({str(key): value for key, value in row.items()})
        return rows

    def resolve_columns(self, raw_columns: Any, rows: List[Dict[str, Any]]) -> ColumnSpec:
        """Decide once whether columns arrive as bare names or as descriptors"""
        if raw_columns is None or len(raw_columns) == 0:
            seen: Dict[str, None] = {}
            for row in rows:
                for key in row:
                    seen.setdefault(key, None)
            return BareColumns(names=tuple(seen))

        if isinstance(raw_columns, (str, bytes)):
            raise NormalizationError("Dataset columns must be a list")

        entries = list(raw_columns)

        if all(isinstance(entry, str) for entry in entries):
            return BareColumns(names=tuple(entries))

        if all(isinstance(entry, (Column, Mapping)) for entry in entries):
            return DescriptorColumns(columns=tuple(self._descriptor(entry) for entry in entries))

        raise NormalizationError("Dataset columns mix bare names and descriptors")

    def _descriptor(self, entry: Any) -> Column:
        if isinstance(entry, Column):
            return entry

        name = entry.get('name')
        if is_empty(name):
            raise NormalizationError(f"Column descriptor without a name: {dict(entry)}")
        return Column(name=str(name), storage_type=StorageType.parse(entry.get('type')))

    def materialize_columns(self, spec: ColumnSpec, rows: List[Dict[str, Any]]) -> List[Column]:
        if isinstance(spec, DescriptorColumns):
            return list(spec.columns)

        inference = self.config.inference
        columns = []
        for name in spec.names:
            sample = sample_column(rows, name, inference.SAMPLE_SIZE, inference.MIN_DATE_YEAR)
            columns.append(Column(name=name, storage_type=self.type_engine.storage_type(sample)))
        return columns

    def find_timestamp_columns(self, names: List[str], rows: List[Dict[str, Any]]) -> List[str]:
        candidates = []
        head = rows[:self.TIMESTAMP_SAMPLE_ROWS]

        for name in names:
            if self.TIMESTAMP_NAMES.search(name):
                candidates.append(name)
                continue

            values = [row.get(name) for row in head if not is_empty(row.get(name))]
            if not values:
                continue
            # Plain numbers are ids or measures here, not dates
            parsed = sum(1 for value in values if to_number(value) is None and parse_date(value) is not None)
            if parsed / len(values) >= 0.5:
                candidates.append(name)

        return candidates


class DataValidator:
    """Structural and quality checks; feeds confidence, never blocks the analysis"""

    GENERIC_NAMES = re.compile(r'^(unnamed.*|column\d+|field\d+)$', re.IGNORECASE)
    TIMESTAMP_NAMES = re.compile(r'timestamp|date|time|created_at|updated_at', re.IGNORECASE)
    ID_NAMES = re.compile(r'^id$|_id$|identifier', re.IGNORECASE)

    def __init__(self, dataset: Dataset, config: Optional[Config] = None,
                 logger: Optional[logging.Logger] = None):
        self.dataset = dataset
        self.config = config or get_config()
        self.logger = logger or get_logger("validator")
        self.statistics = StatisticsEngine(self.config)

    def validate(self) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []

        try:
            self._validate_structure(errors, warnings)
            self._validate_data_quality(errors, warnings)
            self._validate_columns(errors, warnings)
            self._validate_rows(errors, warnings)
        except Exception as e:
            self.logger.error(f"Data validation failed: {str(e)}")
            return ValidationResult(
                is_valid=False,
                errors=[f"Validation failed: {str(e)}"],
                warnings=warnings,
                confidence='low'
            )

        confidence = self._calculate_confidence(errors, warnings)
        if errors or warnings:
            self.logger.info(
                f"Data validation completed: {len(errors)} errors, {len(warnings)} warnings, confidence {confidence}"
            )

        return ValidationResult(
            is_valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
            confidence=confidence
        )

    def _validate_structure(self, errors: List[str], warnings: List[str]):
        dataset = self.dataset

        if dataset.column_count == 0:
            errors.append("No columns found in dataset")

        if dataset.row_count == 0:
            errors.append("No rows found in dataset")
            return

        if dataset.row_count < 3:
            warnings.append("Dataset has very few rows (< 3), analysis may be limited")
        elif dataset.row_count < self.config.validation.FEW_ROWS_THRESHOLD:
            warnings.append(
                f"Dataset has fewer than {self.config.validation.FEW_ROWS_THRESHOLD} rows, analysis may be limited"
            )

        if dataset.column_count == 0:
            return

        expected = set(dataset.column_names)
        inconsistent_rows = sum(1 for row in dataset.rows if not expected.issubset(row.keys()))
        if inconsistent_rows > 0:
            warnings.append(f"{inconsistent_rows} rows have inconsistent structure")

        undeclared = sorted({key for row in dataset.rows for key in row.keys()} - expected)
        if undeclared:
            warnings.append(f"Rows contain fields not declared as columns: {', '.join(undeclared)}")

    def _validate_data_quality(self, errors: List[str], warnings: List[str]):
        dataset = self.dataset
        if dataset.row_count == 0 or dataset.column_count == 0:
            return

        completeness = self.statistics.calculate_completeness(dataset)
        if completeness < self.config.validation.COMPLETENESS_WARNING:
            warnings.append(f"Data completeness could be improved: {completeness:.1f}%")

        sample = dataset.rows[:self.config.report.QUALITY_SAMPLE_SIZE]
        empty_columns = []
        sparse_columns = []

        for name in dataset.column_names:
            filled = sum(1 for row in sample if not is_empty(row.get(name)))
            fill_rate = filled / len(sample)
            if filled == 0:
                empty_columns.append(name)
            elif fill_rate < self.config.validation.MIN_FILL_RATE:
                sparse_columns.append(f"{name} ({fill_rate:.0%})")

        if empty_columns:
            warnings.append(f"{len(empty_columns)} columns are completely empty: {', '.join(empty_columns)}")

        if sparse_columns:
            warnings.append(f"Columns with low fill rate: {', '.join(sparse_columns)}")

    def _validate_columns(self, errors: List[str], warnings: List[str]):
        names = self.dataset.column_names
        if not names:
            return

        seen = set()
        duplicates = []
        for name in names:
            if name in seen and name not in duplicates:
                duplicates.append(name)
            seen.add(name)

        if duplicates:
            errors.append(f"Duplicate column names found: {', '.join(duplicates)}")

        generic = [name for name in names if self.GENERIC_NAMES.match(name.strip())]
        if generic:
            warnings.append(f"Found columns with generic names: {', '.join(generic)}")

        if not any(self.TIMESTAMP_NAMES.search(name) for name in names):
            warnings.append("No timestamp column detected, time-based analysis will be limited")

        if not any(self.ID_NAMES.search(name) for name in names) and \
                self.dataset.row_count > self.config.validation.ID_WARNING_MIN_ROWS:
            warnings.append("No ID column detected in large dataset, consider adding unique identifiers")

    def _validate_rows(self, errors: List[str], warnings: List[str]):
        rows = self.dataset.rows
        if not rows:
            return

        sample_size = min(self.config.validation.DUPLICATE_SAMPLE_SIZE, len(rows))
        sample = rows[:sample_size]

        empty_rows = sum(1 for row in sample if self._is_empty_row(row))
        if all(self._is_empty_row(row) for row in rows):
            errors.append("All rows are empty")
        elif empty_rows > 0:
            warnings.append(f"{empty_rows} completely empty rows found")

        fingerprints = [json.dumps(row, sort_keys=True, default=str) for row in sample]
        duplicate_count = len(fingerprints) - len(set(fingerprints))
        if duplicate_count > 0:
            warnings.append(f"Found {duplicate_count} duplicate rows in sample of {sample_size} rows")

    @staticmethod
    def _is_empty_row(row: Mapping[str, Any]) -> bool:
        return all(is_empty(value) for value in row.values())

    def _calculate_confidence(self, errors: List[str], warnings: List[str]) -> str:
        if errors:
            return 'low'
        if len(warnings) > 4:
            return 'low'
        if warnings:
            return 'medium'
        return 'high'


class DataIngestionAgent:
    """Agent responsible for request validation, normalization and data quality checks"""

    def __init__(self, config: Optional[Config] = None, logger: Optional[logging.Logger] = None):
        self.config = config or get_config()
        self.logger = logger or get_logger("data_agent")

    async def validate_context(self, state: dict) -> dict:
        """Check the research question and the dataset list before anything else"""
        state['current_step'] = 'validating'

        with StepLogger("Validating", self.logger) as step:
            try:
                context = self.parse_context(state.get('raw_context'))
                state['analysis_context'] = context

                question = (context.research_question or '').strip()
                if not question:
                    raise ContextError("Research question is required for analysis")

                if not context.datasets:
                    raise ContextError("Valid parsed data is required for analysis")

                self._require_rows(context.datasets[0])

                state['next_action'] = 'proceed'
                state['execution_log'].append(
                    f"Request accepted: {len(context.datasets)} dataset(s), question '{question}'"
                )

            except Exception as e:
                self.logger.error(f"Context validation failed: {str(e)}")
                step.fail(e)
                state['errors'].append(f"Context error: {str(e)}")
                state['next_action'] = 'error'

        return state

    def parse_context(self, raw_context: Any) -> AnalysisContext:
        if isinstance(raw_context, AnalysisContext):
            return raw_context
        if raw_context is None:
            raise ContextError("No analysis context provided")
        if not isinstance(raw_context, Mapping):
            raise ContextError(f"Unsupported analysis context: {type(raw_context).__name__}")

        try:
            return AnalysisContext.model_validate(dict(raw_context))
        except ValueError as e:
            raise ContextError(f"Malformed analysis context: {e}") from e

    def _require_rows(self, raw_dataset: Any):
        if isinstance(raw_dataset, pd.DataFrame):
            rows_present = len(raw_dataset) > 0
        elif isinstance(raw_dataset, Mapping):
            rows = raw_dataset.get('rows')
            rows_present = isinstance(rows, Sequence) and not isinstance(rows, (str, bytes)) and len(rows) > 0
        else:
            rows = getattr(raw_dataset, 'rows', None)
            rows_present = isinstance(rows, Sequence) and not isinstance(rows, (str, bytes)) and len(rows) > 0

        if not rows_present:
            raise ContextError("No data rows found in uploaded file")

    async def process(self, state: dict) -> dict:
        """Convert the first dataset of the request into the canonical shape"""
        state['current_step'] = 'normalizing'

        with StepLogger("Normalizing", self.logger) as step:
            try:
                normalizer = DatasetNormalizer(self.config)
                dataset = normalizer.normalize(state['analysis_context'].datasets[0])

                step.log_metric("rows", dataset.row_count)
                step.log_metric("columns", dataset.column_count)

                state.update({
                    'dataset': dataset,
                    'next_action': 'proceed'
                })
                state['execution_log'].append(
                    f"Data normalized: {dataset.row_count} rows, {dataset.column_count} columns"
                )

            except Exception as e:
                self.logger.error(f"Normalization failed: {str(e)}")
                step.fail(e)
                state['errors'].append(f"Normalization error: {str(e)}")
                state['next_action'] = 'error'

        return state

    async def validate(self, state: dict) -> dict:
        """Structural and quality validation of the normalized dataset"""
        state['current_step'] = 'analyzing'

        with StepLogger("Data quality", self.logger) as step:
            try:
                validation = DataValidator(state['dataset'], self.config, self.logger).validate()

                if not validation.is_valid:
                    self.logger.warning(f"Data validation issues found: {validation.errors}")

                state.update({
                    'validation': validation,
                    'next_action': 'proceed'
                })
                state['execution_log'].append(
                    f"Data validation completed: {len(validation.errors)} errors, "
                    f"{len(validation.warnings)} warnings"
                )

            except Exception as e:
                self.logger.error(f"Data quality validation failed: {str(e)}")
                step.fail(e)
                state['errors'].append(f"Data quality error: {str(e)}")
                state['next_action'] = 'error'

        return state
