# tests/test_statistics.py
import math

import pytest

from insight_engine.agents.data_agent import DatasetNormalizer
from insight_engine.analysis.statistics import StatisticsEngine
from insight_engine.analysis.type_inference import TypeInferenceEngine
from insight_engine.config import Config


class TestStatisticsEngine:

    @pytest.fixture
    def config(self):
        return Config()

    @pytest.fixture
    def engine(self, config):
        return StatisticsEngine(config)

    @pytest.fixture
    def linear_rows(self):
        return [{'x': i, 'y': 2 * i, 'z': 100 - 3 * i, 'flat': 4} for i in range(1, 11)]

    def test_numerical_statistics(self, engine):
        """Test mean, extremes and population standard deviation"""
        rows = [{'v': value} for value in [1, 2, 3, 4]]
        stats = engine.calculate_numerical_statistics(rows, 'v')

        assert stats.count == 4
        assert stats.average == pytest.approx(2.5)
        assert stats.minimum == 1
        assert stats.maximum == 4
        assert stats.standard_deviation == pytest.approx(math.sqrt(1.25))

    def test_numerical_statistics_skip_unusable_cells(self, engine):
        """Test text, blanks, booleans and None are ignored"""
        rows = [{'v': 1}, {'v': 'n/a'}, {'v': None}, {'v': ''}, {'v': '3'}, {'v': True}]
        stats = engine.calculate_numerical_statistics(rows, 'v')

        assert stats.count == 2
        assert stats.average == pytest.approx(2.0)

    def test_numerical_statistics_without_numbers(self, engine):
        """Test a column without numbers yields no metrics"""
        assert engine.calculate_numerical_statistics([{'v': 'alpha'}, {'v': None}], 'v') is None

    def test_average_stays_within_range(self, engine):
        """Test min <= average <= max and non-negative spread for repeated floats"""
        stats = engine.calculate_numerical_statistics([{'v': 0.1}] * 3, 'v')

        assert stats.minimum <= stats.average <= stats.maximum
        assert stats.standard_deviation >= 0

    def test_categorical_distribution(self, engine):
        """Test counts, diversity and first-seen tie-breaking"""
        rows = [{'c': value} for value in ['beta', 'alpha', 'beta', 'alpha', 'gamma', None]]
        distribution = engine.analyze_categorical_distribution(rows, 'c')

        assert distribution.unique_categories == 3
        assert distribution.total_records == 5
        assert distribution.top_category == 'beta'
        assert distribution.top_category_count == 2
        assert distribution.diversity == pytest.approx(0.6)
        assert distribution.frequencies == (('beta', 2), ('alpha', 2), ('gamma', 1))

    def test_categorical_distribution_of_empty_column(self, engine):
        assert engine.analyze_categorical_distribution([{'c': ''}, {'c': None}], 'c') is None

    def test_temporal_distribution(self, engine):
        """Test range, day span and valid date count"""
        rows = [{'d': value} for value in ['2024-01-31', '2024-01-01', 'alpha', None]]
        time_range = engine.analyze_temporal_distribution(rows, 'd')

        assert time_range.earliest_date == '2024-01-01'
        assert time_range.latest_date == '2024-01-31'
        assert time_range.day_span == 30
        assert time_range.valid_date_count == 2

    def test_temporal_span_rounds_up_partial_days(self, engine):
        rows = [{'d': '2024-01-01T00:00:00'}, {'d': '2024-01-02T06:00:00'}]

        assert engine.analyze_temporal_distribution(rows, 'd').day_span == 2

    def test_perfect_positive_correlation(self, engine, linear_rows):
        """Test y = 2x gives r of one"""
        coefficient = engine.calculate_correlation(linear_rows, 'x', 'y')

        assert coefficient == pytest.approx(1.0)
        assert engine.describe_correlation(coefficient) == ('Strong', 'positive')

    def test_negative_correlation(self, engine, linear_rows):
        coefficient = engine.calculate_correlation(linear_rows, 'x', 'z')

        assert coefficient == pytest.approx(-1.0)
        assert engine.describe_correlation(coefficient) == ('Strong', 'negative')

    def test_correlation_is_symmetric_and_bounded(self, engine):
        """Test r(x, y) == r(y, x) and |r| <= 1"""
        rows = [{'a': a, 'b': b} for a, b in [(1, 5), (2, 3), (3, 8), (4, 1), (5, 9), (6, 2)]]
        forward = engine.calculate_correlation(rows, 'a', 'b')
        backward = engine.calculate_correlation(rows, 'b', 'a')

        assert forward == pytest.approx(backward)
        assert -1.0 <= forward <= 1.0

    def test_correlation_needs_five_pairs(self, engine):
        """Test fewer than five complete pairs yields no coefficient"""
        rows = [{'x': i, 'y': i} for i in range(4)] + [{'x': 9, 'y': None}, {'x': 'alpha', 'y': 3}]

        assert engine.calculate_correlation(rows, 'x', 'y') is None

    def test_zero_variance_correlation(self, engine, linear_rows):
        """Test a constant column correlates at zero instead of failing"""
        coefficient = engine.calculate_correlation(linear_rows, 'x', 'flat')

        assert coefficient == 0.0
        assert engine.describe_correlation(coefficient) == ('Weak', 'none')

    def test_correlation_strength_bands(self, engine):
        assert engine.describe_correlation(0.5) == ('Moderate', 'positive')
        assert engine.describe_correlation(-0.2) == ('Weak', 'negative')
        assert engine.describe_correlation(0.7)[0] == 'Moderate'

    def test_correlate_records_pair_count(self, engine, linear_rows):
        metrics = engine.correlate(linear_rows, 'x', 'y')

        assert metrics.column_x == 'x'
        assert metrics.column_y == 'y'
        assert metrics.pair_count == 10

    def test_completeness(self, config, engine):
        """Test one empty cell out of six gives 83.3% completeness"""
        dataset = DatasetNormalizer(config).normalize({
            'columns': ['name', 'score'],
            'rows': [
                {'name': 'alpha', 'score': 1},
                {'name': 'beta', 'score': ''},
                {'name': 'gamma', 'score': 3},
            ],
        })

        assert engine.calculate_completeness(dataset) == pytest.approx(83.333, abs=0.01)

    def test_completeness_uses_leading_sample(self, config, engine):
        """Test only the first hundred rows are inspected"""
        rows = [{'a': 1} for _ in range(100)] + [{'a': None} for _ in range(100)]
        dataset = DatasetNormalizer(config).normalize({'columns': ['a'], 'rows': rows})

        assert engine.calculate_completeness(dataset) == 100.0

    def test_duplicate_rows_by_leading_columns(self, config, engine):
        """Test duplicates are keyed on the first three columns only"""
        dataset = DatasetNormalizer(config).normalize({
            'columns': ['a', 'b', 'c', 'd'],
            'rows': [
                {'a': 1, 'b': 'alpha', 'c': 'x', 'd': 1},
                {'a': 1, 'b': 'alpha', 'c': 'x', 'd': 2},
                {'a': 2, 'b': 'beta', 'c': 'x', 'd': 3},
                {'a': 1, 'b': 'alpha', 'c': 'x', 'd': 4},
            ],
        })

        assert engine.count_duplicate_rows(dataset) == 2

    def test_profile_correlates_first_two_numerical_columns(self, config, engine, linear_rows):
        dataset = DatasetNormalizer(config).normalize({'columns': ['x', 'z', 'y'], 'rows': linear_rows})
        buckets = TypeInferenceEngine(config).analyze_columns(dataset)
        profile = engine.build_profile(dataset, buckets)

        assert set(profile.numerical) == {'x', 'z', 'y'}
        assert (profile.correlation.column_x, profile.correlation.column_y) == ('x', 'z')
        assert profile.completeness == 100.0
        assert profile.duplicates == 0
