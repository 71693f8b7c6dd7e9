# insight_engine/agents/analysis_agent.py
import logging
import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from insight_engine.analysis.narrator import InsightNarrator
from insight_engine.analysis.results import ResultsAssembler
from insight_engine.analysis.statistics import StatisticsEngine
from insight_engine.analysis.type_inference import TypeInferenceEngine
from insight_engine.config import Config, get_config
from insight_engine.models import AnalysisResult, Dataset
from insight_engine.utils.logging_config import StepLogger, get_logger


class QuestionClassifier:
    """Flags questions that only ask about the size of the data"""

    SIMPLE_PATTERNS = [
        re.compile(r'how many rows', re.IGNORECASE),
        re.compile(r'number of rows', re.IGNORECASE),
        re.compile(r'row count', re.IGNORECASE),
        re.compile(r'total rows', re.IGNORECASE),
        re.compile(r'size of', re.IGNORECASE),
        re.compile(r'how much data', re.IGNORECASE),
        re.compile(r'count.*rows', re.IGNORECASE),
    ]

    @classmethod
    def is_simple_question(cls, question: Optional[str]) -> bool:
        return any(pattern.search(question or '') for pattern in cls.SIMPLE_PATTERNS)

    @classmethod
    def classify(cls, question: Optional[str]) -> str:
        return 'simple' if cls.is_simple_question(question) else 'complex'


class AnalysisAgent:
    """Agent that computes results, insights and recommendations for the dataset"""

    def __init__(self, config: Optional[Config] = None, logger: Optional[logging.Logger] = None):
        self.config = config or get_config()
        self.logger = logger or get_logger("analysis_agent")

    async def analyze(self, state: dict) -> dict:
        """Full pipeline: type inference, metrics, results, narration"""
        state['current_step'] = 'analyzing'

        with StepLogger("Full analysis", self.logger) as step:
            try:
                dataset: Dataset = state['dataset']
                question = state['analysis_context'].research_question or ''

                buckets = TypeInferenceEngine(self.config).analyze_columns(dataset)
                step.log_progress(
                    f"Column types: {len(buckets.numerical)} numerical, {len(buckets.categorical)} categorical, "
                    f"{len(buckets.temporal)} temporal, {len(buckets.boolean)} boolean"
                )

                profile = StatisticsEngine(self.config).build_profile(dataset, buckets)
                step.log_metric("completeness", f"{profile.completeness:.1f}%")

                narrator = InsightNarrator(self.config)
                insights = narrator.generate_insights(dataset, profile, question)
                results = ResultsAssembler(self.config).generate_results(dataset, profile, question)
                recommendations = narrator.generate_recommendations(dataset, profile)

                state.update({
                    'question_kind': 'complex',
                    'profile': profile,
                    'results': results,
                    'insights': insights,
                    'recommendations': recommendations,
                    'next_action': 'proceed'
                })
                state['execution_log'].append(
                    f"Analysis completed: {len(results)} results, {len(insights)} insights"
                )

            except Exception as e:
                self.logger.error(f"Analysis failed: {str(e)}")
                step.fail(e)
                state['errors'].append(f"Analysis error: {str(e)}")
                state['next_action'] = 'error'

        return state

    async def quick_summary(self, state: dict) -> dict:
        """Fast path for size questions: row, column and completeness figures only"""
        state['current_step'] = 'analyzing'

        with StepLogger("Quick summary", self.logger) as step:
            try:
                dataset: Dataset = state['dataset']
                results, insights = self.summarize_size(dataset)

                state.update({
                    'question_kind': 'simple',
                    'results': results,
                    'insights': insights,
                    'recommendations': [
                        'Ask a more specific research question to unlock statistical, categorical and temporal analysis.',
                        InsightNarrator.EXPORT_RECOMMENDATION
                    ],
                    'next_action': 'proceed'
                })
                state['execution_log'].append(f"Quick summary completed: {len(results)} results")

            except Exception as e:
                self.logger.error(f"Quick summary failed: {str(e)}")
                step.fail(e)
                state['errors'].append(f"Analysis error: {str(e)}")
                state['next_action'] = 'error'

        return state

    def summarize_size(self, dataset: Dataset) -> Tuple[List[AnalysisResult], List[str]]:
        """Size results plus one insight sentence per result, in the same order"""
        timestamp = datetime.now(timezone.utc).isoformat()
        names = dataset.column_names
        preview = ', '.join(names[:3]) + ('...' if len(names) > 3 else '')
        completeness = StatisticsEngine(self.config).calculate_completeness(dataset)

        results = [
            AnalysisResult(
                id='total_rows',
                title='Total Rows',
                description='Total number of rows in your dataset',
                value=dataset.row_count,
                confidence='high',
                type='summary',
                timestamp=timestamp,
                metadata={'rows': dataset.row_count}
            ),
            AnalysisResult(
                id='total_columns',
                title='Total Columns',
                description='Number of columns in your dataset',
                value=dataset.column_count,
                confidence='high',
                type='summary',
                timestamp=timestamp,
                metadata={'columns': names}
            ),
            AnalysisResult(
                id='data_completeness',
                title='Data Quality',
                description='Percentage of non-empty cells',
                value=round(completeness),
                confidence='high',
                type='summary',
                timestamp=timestamp,
                metadata={'completeness': completeness}
            ),
        ]
        insights = [
            f"Your dataset contains {dataset.row_count:,} rows of data",
            f"Dataset has {dataset.column_count} columns: {preview}",
            f"Data is {completeness:.1f}% complete",
        ]
        return results, insights
