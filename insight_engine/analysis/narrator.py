# insight_engine/analysis/narrator.py
import re
from typing import List, Optional

from insight_engine.config import Config, get_config
from insight_engine.models import Dataset, DatasetProfile, SemanticType


class InsightNarrator:
    """
    Template-based narration of a dataset profile.

    Produces the ordered insight sentences for a research question and, separately,
    the ordered recommendation list. Nothing here calls out to a text generator.
    """

    TIME_SERIES_NAMES = re.compile(r'time|date|timestamp', re.IGNORECASE)
    USER_NAMES = re.compile(r'user|customer|client', re.IGNORECASE)
    EVENT_NAMES = re.compile(r'event|action|activity', re.IGNORECASE)
    FINANCIAL_NAMES = re.compile(r'price|cost|value|amount|revenue', re.IGNORECASE)

    EXPORT_RECOMMENDATION = 'Export detailed findings and create visualizations to communicate insights effectively.'

    def __init__(self, config: Optional[Config] = None):
        self.config = (config or get_config()).report

    def generate_insights(self, dataset: Dataset, profile: DatasetProfile,
                          research_question: str = '') -> List[str]:
        insights = [
            f'Dataset Analysis: Your data contains {dataset.row_count:,} records across '
            f'{dataset.column_count} fields, providing substantial information for analysis.'
        ]

        numerical = profile.buckets.names(SemanticType.NUMERICAL)
        categorical = profile.buckets.names(SemanticType.CATEGORICAL)
        temporal = profile.buckets.names(SemanticType.TEMPORAL)

        if numerical:
            insights.append(
                f"Quantitative Analysis Available: Found {len(numerical)} numerical columns "
                f"({', '.join(numerical[:3])}) suitable for statistical analysis."
            )
            for name in numerical[:self.config.MAX_NUMERICAL_INSIGHTS]:
                stats = profile.numerical.get(name)
                if stats:
                    insights.append(
                        f'{name} Statistics: Average value is {stats.average:.2f}, ranging from '
                        f'{stats.minimum:g} to {stats.maximum:g}. Standard deviation: {stats.standard_deviation:.2f}'
                    )

        if categorical:
            insights.append(
                f'Categorical Analysis Ready: {len(categorical)} text-based columns available '
                f'for segmentation and categorical analysis.'
            )
            for name in categorical[:self.config.MAX_CATEGORICAL_INSIGHTS]:
                distribution = profile.categorical.get(name)
                if distribution and distribution.unique_categories > 1:
                    insights.append(
                        f'{name} Distribution: {distribution.unique_categories} unique categories found. '
                        f'Most common: "{distribution.top_category}" ({distribution.top_category_count} occurrences)'
                    )

        if temporal:
            insights.append(
                f'Temporal Analysis Possible: {len(temporal)} date/time columns enable trend '
                f'analysis over time periods.'
            )
            for name in temporal:
                time_range = profile.temporal.get(name)
                if time_range:
                    insights.append(
                        f'{name} Time Range: Data spans from {time_range.earliest_date} to '
                        f'{time_range.latest_date} ({time_range.day_span} days)'
                    )
                    break

        insights.extend(self.research_specific_insights(profile, research_question))

        patterns = self.detect_data_patterns(dataset)
        if patterns:
            insights.append(f"Data Patterns Detected: {', '.join(patterns)}")

        completeness = profile.completeness
        if completeness >= self.config.EXCELLENT_COMPLETENESS:
            insights.append(
                f'Data Quality Excellent: {completeness:.1f}% completeness with minimal missing '
                f'values ensures reliable analysis.'
            )
        else:
            insights.append(
                f'Data Quality Note: {completeness:.1f}% completeness - some fields contain missing '
                f'values that may affect analysis accuracy.'
            )

        return insights

    def research_specific_insights(self, profile: DatasetProfile, research_question: str) -> List[str]:
        question = (research_question or '').lower()
        numerical = profile.buckets.names(SemanticType.NUMERICAL)
        categorical = profile.buckets.names(SemanticType.CATEGORICAL)
        temporal = profile.buckets.names(SemanticType.TEMPORAL)
        insights = []

        if 'trend' in question or 'time' in question:
            if temporal:
                insights.append(
                    f"Trend Analysis Ready: Time-based analysis can be performed using "
                    f"{', '.join(temporal)} to identify patterns over time."
                )
            else:
                insights.append(
                    'Trend Analysis Limited: No clear date/time columns detected - consider adding '
                    'temporal data for trend analysis.'
                )

        if 'correlation' in question:
            if len(numerical) >= 2:
                insights.append(
                    f'Correlation Analysis Available: {len(numerical)} numerical variables enable '
                    f'correlation and relationship analysis.'
                )
            else:
                insights.append(
                    'Correlation Analysis Limited: At least two numerical columns are needed to '
                    'measure relationships between variables.'
                )

        if ('segment' in question or 'group' in question) and categorical:
            insights.append(
                f'Segmentation Analysis Ready: {len(categorical)} categorical columns available '
                f'for customer/user segmentation.'
            )

        if ('performance' in question or 'metric' in question) and numerical:
            insights.append(
                f'Performance Metrics Available: {len(numerical)} numerical metrics can be '
                f'analyzed for performance insights.'
            )

        return insights

    def detect_data_patterns(self, dataset: Dataset) -> List[str]:
        names = dataset.column_names
        patterns = []

        if any(self.TIME_SERIES_NAMES.search(name) for name in names):
            patterns.append('Time series data structure detected')

        if any(self.USER_NAMES.search(name) for name in names) and \
                any(self.EVENT_NAMES.search(name) for name in names):
            patterns.append('User behavior tracking structure identified')

        if any(self.FINANCIAL_NAMES.search(name) for name in names):
            patterns.append('Financial/transaction data patterns found')

        return patterns

    def generate_recommendations(self, dataset: Dataset, profile: DatasetProfile) -> List[str]:
        numerical = profile.buckets.names(SemanticType.NUMERICAL)
        categorical = profile.buckets.names(SemanticType.CATEGORICAL)
        temporal = profile.buckets.names(SemanticType.TEMPORAL)
        recommendations = []

        if len(numerical) >= 2:
            recommendations.append(
                f"Explore statistical relationships between {', '.join(numerical[:3])} "
                f"for deeper quantitative insights."
            )

        if numerical:
            if temporal:
                recommendations.append(
                    'Create time-based visualizations to identify trends and seasonal patterns in your data.'
                )
            else:
                recommendations.append(
                    'Visualize the distributions of your numerical columns to spot outliers and skew.'
                )

        if categorical:
            recommendations.append(
                f"Perform segmentation analysis using categorical variables like {', '.join(categorical[:2])}."
            )

        if profile.completeness < self.config.CLEANING_COMPLETENESS:
            recommendations.append(
                'Address missing data values to improve analysis accuracy and reliability.'
            )

        if dataset.row_count > self.config.SAMPLING_ROW_THRESHOLD:
            recommendations.append(
                'Consider sampling strategies for large dataset analysis to optimize processing time.'
            )

        if dataset.row_count < self.config.SMALL_DATASET_ROWS:
            recommendations.append(
                'Consider collecting more data points to increase statistical significance of findings.'
            )

        recommendations.append(self.EXPORT_RECOMMENDATION)
        return recommendations
