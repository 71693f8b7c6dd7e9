# tests/test_pipeline.py
import json
import logging
from datetime import date, timedelta

import pandas as pd
import pytest

from insight_engine.config import Config
from insight_engine.models import AnalysisContext, AnalysisReport
from insight_engine.pipeline import AnalysisCoordinator, execute_analysis


def dated_rows(count):
    start = date(2024, 1, 1)
    return [
        {
            'id': i,
            'category': ['alpha', 'beta', 'gamma'][i % 3],
            'created_at': (start + timedelta(days=i)).isoformat(),
        }
        for i in range(count)
    ]


class TestAnalysisCoordinator:

    @pytest.fixture
    def coordinator(self):
        return AnalysisCoordinator(config=Config())

    @pytest.fixture
    def trend_request(self):
        return {
            'researchQuestion': "What's the trend over time?",
            'datasets': [{
                'columns': [
                    {'name': 'id', 'type': 'number'},
                    {'name': 'category', 'type': 'string'},
                    {'name': 'created_at', 'type': 'date'},
                ],
                'rows': dated_rows(100),
            }],
        }

    @pytest.mark.asyncio
    async def test_trend_question_over_dated_data(self, coordinator, trend_request):
        """Test a trend question yields one temporal result and trend readiness"""
        report = await coordinator.run_analysis(trend_request)

        assert isinstance(report, AnalysisReport)
        assert report.question_kind == 'complex'
        assert report.data_quality.is_valid
        assert report.confidence == 'high'

        temporal = [result for result in report.results if result.id.startswith('temporal_analysis_')]
        assert len(temporal) == 1
        assert temporal[0].metadata['valid_date_count'] == 100
        assert any(insight.startswith('Trend Analysis Ready') for insight in report.insights)

    @pytest.mark.asyncio
    async def test_correlation_question(self, coordinator):
        """Test y = 2x produces a strong positive correlation result"""
        report = await coordinator.run_analysis({
            'researchQuestion': 'Is there a correlation?',
            'datasets': [{'columns': ['x', 'y'], 'rows': [{'x': i, 'y': 2 * i} for i in range(1, 11)]}],
        })

        correlation = next(result for result in report.results if result.id == 'correlation_analysis')
        assert correlation.metadata['correlation_coefficient'] == pytest.approx(1.0)
        assert correlation.metadata['strength'] == 'Strong'
        assert correlation.metadata['direction'] == 'positive'

    @pytest.mark.asyncio
    async def test_completeness_in_data_quality(self, coordinator):
        """Test one empty cell out of six is reflected in the report"""
        report = await coordinator.run_analysis({
            'researchQuestion': 'Summarize this data',
            'datasets': [{
                'columns': ['name', 'score'],
                'rows': [
                    {'name': 'alpha', 'score': 1},
                    {'name': 'beta', 'score': ''},
                    {'name': 'gamma', 'score': 3},
                ],
            }],
        })

        assert report.data_quality.completeness == pytest.approx(83.333, abs=0.01)
        assert report.data_quality.is_valid

    @pytest.mark.asyncio
    async def test_empty_question_returns_fallback(self, coordinator, trend_request):
        """Test a blank question resolves to a low-confidence report instead of raising"""
        trend_request['researchQuestion'] = ''
        report = await coordinator.run_analysis(trend_request)

        assert report.confidence == 'low'
        assert report.data_quality.is_valid is False
        assert report.results == []
        assert report.insights[0].startswith('Analysis failed:')
        assert report.sql_preview == '-- Analysis failed'
        assert len(report.recommendations) == 3

    @pytest.mark.asyncio
    async def test_no_numerical_columns_means_no_correlation(self, coordinator):
        report = await coordinator.run_analysis({
            'researchQuestion': 'What is the relationship between region and tier?',
            'datasets': [{
                'rows': [
                    {'region': ['alpha', 'beta'][i % 2], 'tier': ['gold', 'silver', 'bronze'][i % 3]}
                    for i in range(12)
                ],
            }],
        })

        assert report.results
        assert 'correlation_analysis' not in [result.id for result in report.results]

    @pytest.mark.asyncio
    @pytest.mark.parametrize('context', [
        None,
        'just a string',
        42,
        {},
        {'researchQuestion': 'q'},
        {'researchQuestion': 'q', 'datasets': []},
        {'researchQuestion': 'q', 'datasets': 'oops'},
        {'researchQuestion': 'q', 'datasets': [{'rows': []}]},
        {'researchQuestion': 'q', 'datasets': [{'rows': [1, 2, 3]}]},
        {'researchQuestion': 'q', 'datasets': [{'columns': ['a', {'name': 'b'}], 'rows': [{'a': 1}]}]},
        {'researchQuestion': 'q', 'datasets': [object()]},
    ])
    async def test_malformed_requests_never_raise(self, coordinator, context):
        """Test every malformed request still resolves to a report"""
        report = await coordinator.run_analysis(context)

        assert isinstance(report, AnalysisReport)
        assert report.confidence == 'low'
        assert report.data_quality.is_valid is False
        assert report.data_quality.errors

    @pytest.mark.asyncio
    async def test_size_question_takes_fast_path(self, coordinator):
        """Test a row-count question returns the summary figures only"""
        report = await coordinator.run_analysis({
            'researchQuestion': 'How many rows are in this file?',
            'datasets': [{'columns': ['id', 'category', 'created_at'], 'rows': dated_rows(12)}],
        })

        assert report.question_kind == 'simple'
        assert [result.id for result in report.results] == ['total_rows', 'total_columns', 'data_completeness']
        assert report.results[0].value == 12
        assert report.results[1].value == 3
        assert report.insights == [
            'Your dataset contains 12 rows of data',
            'Dataset has 3 columns: id, category, created_at',
            'Data is 100.0% complete',
        ]
        assert all('insight' not in result.metadata for result in report.results)
        assert report.confidence == 'high'

    @pytest.mark.asyncio
    async def test_recent_question_filters_sql_preview(self, coordinator):
        """Test the illustrative SQL gains a WHERE clause for recent data"""
        report = await coordinator.run_analysis({
            'researchQuestion': 'Show recent activity by category',
            'datasets': [{'columns': ['id', 'category', 'created_at'], 'rows': dated_rows(12)}],
        })

        assert report.sql_preview.splitlines() == [
            '-- Analysis query for: Show recent activity by category',
            'SELECT id, category, created_at',
            'FROM dataset',
            'WHERE created_at >= DATE_SUB(NOW(), INTERVAL 30 DAY)',
            'ORDER BY id',
            'LIMIT 1000;',
        ]
        assert len(report.query_breakdown) == 5

    @pytest.mark.asyncio
    async def test_sql_preview_without_filter(self, coordinator):
        report = await coordinator.run_analysis({
            'researchQuestion': 'Summarize categories',
            'datasets': [{'columns': ['id', 'category', 'created_at'], 'rows': dated_rows(12)}],
        })

        assert 'WHERE' not in report.sql_preview
        assert len(report.query_breakdown) == 4

    @pytest.mark.asyncio
    async def test_dataframe_dataset(self, coordinator):
        frame = pd.DataFrame({'price': [float(i) for i in range(15)], 'region': ['alpha', 'beta', 'gamma'] * 5})
        report = await coordinator.run_analysis(
            AnalysisContext(research_question='Describe prices', datasets=[frame])
        )

        assert report.data_quality.is_valid
        assert 'numerical_analysis_price' in [result.id for result in report.results]

    @pytest.mark.asyncio
    async def test_dataframe_report_serializes(self, coordinator):
        """Test a DataFrame-sourced report dumps to JSON without echoing the raw rows"""
        frame = pd.DataFrame({'price': [float(i) for i in range(15)], 'region': ['alpha', 'beta', 'gamma'] * 5})
        report = await coordinator.run_analysis({'researchQuestion': 'Describe prices', 'datasets': [frame]})

        payload = json.loads(report.model_dump_json(by_alias=True))

        assert payload['context'] == {
            'researchQuestion': 'Describe prices',
            'businessContext': None,
            'datasetCount': 1,
        }
        assert payload['dataQuality']['isValid'] is True

    @pytest.mark.asyncio
    async def test_large_all_empty_dataset_is_low_confidence(self, coordinator):
        """Test a table of empty rows beyond the duplicate sample is still rejected"""
        report = await coordinator.run_analysis({
            'researchQuestion': 'Summarize this data',
            'datasets': [{'columns': ['a', 'b'], 'rows': [{'a': None, 'b': ''} for _ in range(1500)]}],
        })

        assert report.data_quality.is_valid is False
        assert 'All rows are empty' in report.data_quality.errors
        assert report.confidence == 'low'

    @pytest.mark.asyncio
    async def test_graph_failure_keeps_request_question(self, coordinator, trend_request):
        """Test a failure outside the nodes still echoes the question on the fallback report"""
        class BrokenGraph:
            async def ainvoke(self, state):
                raise RuntimeError("graph unavailable")

        coordinator.compiled_graph = BrokenGraph()
        report = await coordinator.run_analysis(trend_request)

        assert report.confidence == 'low'
        assert report.insights == ['Analysis failed: graph unavailable']
        assert report.context.research_question == "What's the trend over time?"
        assert report.context.dataset_count == 1

    @pytest.mark.asyncio
    async def test_report_serializes_with_camel_case_keys(self, coordinator, trend_request):
        report = await coordinator.run_analysis(trend_request)
        payload = report.model_dump(by_alias=True, mode='json')

        assert {'sqlPreview', 'queryBreakdown', 'dataQuality', 'executionLog'} <= set(payload)
        assert payload['context']['researchQuestion'] == "What's the trend over time?"

    @pytest.mark.asyncio
    async def test_execution_log_and_timing(self, coordinator, trend_request):
        report = await coordinator.run_analysis(trend_request)

        assert report.execution_log[0].startswith('Analysis started at')
        assert any(entry.startswith('Report assembled') for entry in report.execution_log)
        assert report.execution_time is not None and report.execution_time >= 0

    @pytest.mark.asyncio
    async def test_injected_logger_receives_records(self, trend_request, caplog):
        """Test the caller's logger is used instead of a global one"""
        logger = logging.getLogger('tests.injected')
        caplog.set_level(logging.INFO, logger='tests.injected')

        await AnalysisCoordinator(logger=logger, config=Config()).run_analysis(trend_request)

        assert any(record.name == 'tests.injected' for record in caplog.records)

    @pytest.mark.asyncio
    async def test_execute_analysis_helper(self, trend_request):
        report = await execute_analysis(trend_request, config=Config())

        assert report.confidence == 'high'
        assert report.id.startswith('analysis_')
