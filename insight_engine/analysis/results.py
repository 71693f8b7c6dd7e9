# insight_engine/analysis/results.py
import re
from datetime import datetime, timezone
from typing import List, Optional

from insight_engine.config import Config, get_config
from insight_engine.models import (
    AnalysisResult,
    CategoricalMetrics,
    CategoryShare,
    Dataset,
    DatasetProfile,
    StatisticalMetrics,
)

CORRELATION_KEYWORDS = re.compile(r'correlation|relationship', re.IGNORECASE)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def determine_trend(stats: StatisticalMetrics) -> str:
    """Coarse direction hint from dispersion relative to the mean"""
    if stats.average == 0:
        return 'stable'
    if stats.standard_deviation / abs(stats.average) > 0.5:
        midpoint = (stats.minimum + stats.maximum) / 2
        return 'up' if stats.average > midpoint else 'down'
    return 'stable'


class ResultsAssembler:
    """Turns a dataset profile into the ordered list of typed result records"""

    def __init__(self, config: Optional[Config] = None):
        config = config or get_config()
        self.config = config.report
        self.top_categories = config.statistics.TOP_CATEGORIES

    def generate_results(self, dataset: Dataset, profile: DatasetProfile,
                         research_question: str = '') -> List[AnalysisResult]:
        results = [self.create_dataset_overview(dataset)]
        results.extend(self.generate_numerical_results(profile))
        results.extend(self.generate_categorical_results(profile))
        results.extend(self.generate_temporal_results(profile))
        results.append(self.generate_data_quality_result(profile))
        results.extend(self.generate_research_specific_results(profile, research_question))
        return results

    def create_dataset_overview(self, dataset: Dataset) -> AnalysisResult:
        return AnalysisResult(
            id='dataset_overview',
            title='Dataset Overview',
            description='Comprehensive analysis of your uploaded dataset',
            value=f"Dataset contains {dataset.row_count:,} records across {dataset.column_count} fields",
            confidence='high',
            type='summary',
            timestamp=_now(),
            metadata={'rows': dataset.row_count, 'columns': dataset.column_count},
        )

    def generate_numerical_results(self, profile: DatasetProfile) -> List[AnalysisResult]:
        results = []

        for info in profile.buckets.numerical[:self.config.MAX_NUMERICAL_RESULTS]:
            stats = profile.numerical.get(info.name)
            if stats is None or stats.count == 0:
                continue

            results.append(AnalysisResult(
                id=f'numerical_analysis_{info.name}',
                title=f'{info.name} Statistical Analysis',
                description=f'Statistical analysis of the {info.name} column',
                value=stats.average,
                confidence='high' if stats.count > 10 else 'medium',
                type='numeric',
                timestamp=_now(),
                unit='units',
                trend=determine_trend(stats),
                metadata={
                    'average': stats.average,
                    'minimum': stats.minimum,
                    'maximum': stats.maximum,
                    'standard_deviation': stats.standard_deviation,
                    'count': stats.count,
                },
            ))

        return results

    def generate_categorical_results(self, profile: DatasetProfile) -> List[AnalysisResult]:
        results = []

        for info in profile.buckets.categorical[:self.config.MAX_CATEGORICAL_RESULTS]:
            distribution = profile.categorical.get(info.name)
            if distribution is None or distribution.unique_categories <= 1:
                continue

            results.append(AnalysisResult(
                id=f'categorical_analysis_{info.name}',
                title=f'{info.name} Category Distribution',
                description=f'Categorical breakdown of {info.name}',
                value=distribution.top_category,
                confidence='high' if distribution.total_records > 5 else 'medium',
                type='categorical',
                timestamp=_now(),
                categories=self.build_category_distribution(distribution),
                metadata={
                    'unique_categories': distribution.unique_categories,
                    'total_records': distribution.total_records,
                    'top_category_count': distribution.top_category_count,
                    'diversity': distribution.diversity,
                },
            ))

        return results

    def generate_temporal_results(self, profile: DatasetProfile) -> List[AnalysisResult]:
        results = []

        for info in profile.buckets.temporal[:self.config.MAX_TEMPORAL_RESULTS]:
            time_analysis = profile.temporal.get(info.name)
            if time_analysis is None:
                continue

            results.append(AnalysisResult(
                id=f'temporal_analysis_{info.name}',
                title=f'{info.name} Time Distribution',
                description=f'Temporal distribution analysis of {info.name} column',
                value=f'Time span: {time_analysis.earliest_date} to {time_analysis.latest_date}',
                confidence='high' if time_analysis.valid_date_count > 5 else 'medium',
                type='distribution',
                timestamp=_now(),
                metadata={
                    'earliest_date': time_analysis.earliest_date,
                    'latest_date': time_analysis.latest_date,
                    'day_span': time_analysis.day_span,
                    'time_span': f'{time_analysis.day_span} days',
                    'valid_date_count': time_analysis.valid_date_count,
                },
            ))

        return results

    def generate_data_quality_result(self, profile: DatasetProfile) -> AnalysisResult:
        return AnalysisResult(
            id='data_quality_assessment',
            title='Data Quality Assessment',
            description='Data quality metrics for your dataset',
            value=f'Data is {profile.completeness:.1f}% complete with {profile.duplicates} potential duplicates',
            confidence='high',
            type='summary',
            timestamp=_now(),
            metadata={'completeness': profile.completeness, 'duplicates': profile.duplicates},
        )

    def generate_research_specific_results(self, profile: DatasetProfile,
                                           research_question: str) -> List[AnalysisResult]:
        if not CORRELATION_KEYWORDS.search(research_question or ''):
            return []

        correlation = profile.correlation
        if len(profile.buckets.numerical) < 2 or correlation is None:
            return []

        return [AnalysisResult(
            id='correlation_analysis',
            title=f'Statistical Relationship: {correlation.column_x} vs {correlation.column_y}',
            description='Statistical correlation analysis between key variables',
            value=(
                f'{correlation.strength} {correlation.direction} relationship detected '
                f'(correlation: {correlation.coefficient:.3f})'
            ),
            confidence='high',
            type='statistical',
            timestamp=_now(),
            metadata={
                'correlation_coefficient': correlation.coefficient,
                'strength': correlation.strength,
                'direction': correlation.direction,
                'columns': [correlation.column_x, correlation.column_y],
                'pair_count': correlation.pair_count,
            },
        )]

    def build_category_distribution(self, distribution: CategoricalMetrics) -> List[CategoryShare]:
        return [
            CategoryShare(
                name=name,
                count=count,
                percentage=round(count / distribution.total_records * 100),
            )
            for name, count in distribution.frequencies[:self.top_categories]
        ]
