# insight_engine/agents/report_agent.py
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from insight_engine.analysis.statistics import StatisticsEngine
from insight_engine.config import Config, get_config
from insight_engine.models import (
    AnalysisContext,
    AnalysisReport,
    AnalysisResult,
    DataQuality,
    Dataset,
    ReportContext,
    ValidationResult,
)
from insight_engine.utils.logging_config import StepLogger, get_logger

RECOVERY_RECOMMENDATIONS = [
    'Check your data format and ensure it contains valid information',
    'Verify that your file was uploaded correctly',
    'Try uploading a smaller sample of your data first',
]


def new_report_id(prefix: str = 'analysis') -> str:
    return f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


class ReportAgent:
    """Agent that turns the analysis state into the final AnalysisReport"""

    def __init__(self, config: Optional[Config] = None, logger: Optional[logging.Logger] = None):
        self.config = config or get_config()
        self.logger = logger or get_logger("report_agent")

    async def assemble(self, state: dict) -> dict:
        state['current_step'] = 'assembling'

        with StepLogger("Assembling", self.logger) as step:
            try:
                dataset: Dataset = state['dataset']
                context: AnalysisContext = state['analysis_context']
                validation: ValidationResult = state['validation']
                results = state.get('results') or []

                sql_preview, query_breakdown = self.generate_sql_preview(context.research_question or '', dataset)
                confidence = self.calculate_overall_confidence(validation, results)
                step.log_metric("confidence", confidence)

                report = AnalysisReport(
                    id=new_report_id(),
                    timestamp=datetime.now(timezone.utc),
                    context=ReportContext.from_context(context),
                    results=results,
                    insights=state.get('insights') or [],
                    confidence=confidence,
                    recommendations=state.get('recommendations') or [],
                    sql_preview=sql_preview,
                    query_breakdown=query_breakdown,
                    data_quality=DataQuality(
                        is_valid=validation.is_valid,
                        errors=validation.errors,
                        warnings=validation.warnings,
                        completeness=StatisticsEngine(self.config).calculate_completeness(dataset)
                    ),
                    question_kind=state.get('question_kind'),
                    execution_log=state['execution_log']
                )

                state.update({
                    'report': report,
                    'current_step': 'done',
                    'next_action': 'done'
                })
                state['execution_log'].append(
                    f"Report assembled: {len(report.results)} results, confidence {confidence}"
                )

            except Exception as e:
                self.logger.error(f"Report assembly failed: {str(e)}")
                step.fail(e)
                state['errors'].append(f"Assembly error: {str(e)}")
                state['next_action'] = 'error'

        return state

    async def handle_error(self, state: dict) -> dict:
        """Error terminal: always resolves to a degraded report"""
        errors = state.get('errors') or []
        message = errors[-1] if errors else 'Unknown error'
        self.logger.warning(f"Returning fallback report: {message}")

        state.update({
            'report': self.build_fallback_report(
                state.get('analysis_context'), message, state.get('execution_log')
            ),
            'current_step': 'error',
            'next_action': 'done'
        })
        return state

    def calculate_overall_confidence(self, validation: Optional[ValidationResult],
                                     results: Sequence[AnalysisResult]) -> str:
        if validation is None or not validation.is_valid:
            return 'low'

        high_share = sum(1 for result in results if result.confidence == 'high') / max(len(results), 1)

        if high_share > self.config.report.HIGH_CONFIDENCE_SHARE:
            return 'high'
        if high_share > self.config.report.MEDIUM_CONFIDENCE_SHARE:
            return 'medium'
        return 'low'

    def generate_sql_preview(self, research_question: str, dataset: Dataset) -> Tuple[str, List[str]]:
        """
        Illustrative SQL text plus one explanation per clause.

        The query is display-only; it is never parsed or executed.
        """
        report_config = self.config.report
        names = dataset.column_names
        clauses = [
            (f"SELECT {', '.join(names) if names else '*'}",
             'SELECT: Retrieves specified columns from the dataset'),
            (f"FROM {report_config.SQL_TABLE_NAME}",
             'FROM: Specifies the source table containing uploaded data'),
        ]

        timestamp_columns = dataset.summary.possible_timestamp_columns if dataset.summary else ()
        if 'recent' in research_question.lower() and timestamp_columns:
            clauses.append((
                f"WHERE {timestamp_columns[0]} >= DATE_SUB(NOW(), INTERVAL {report_config.RECENT_DAYS} DAY)",
                f"WHERE: Keeps only rows from the last {report_config.RECENT_DAYS} days, as the question asks for recent data"
            ))

        clauses.append((
            f"ORDER BY {names[0] if names else 'id'}",
            'ORDER BY: Sorts results for consistent output'
        ))
        clauses.append((
            f"LIMIT {report_config.SQL_ROW_LIMIT};",
            'LIMIT: Restricts number of returned rows for performance'
        ))

        header = f"-- Analysis query for: {' '.join(research_question.split())}"
        sql_preview = '\n'.join([header] + [clause for clause, _ in clauses])
        return sql_preview, [explanation for _, explanation in clauses]

    def build_fallback_report(self, context: Optional[AnalysisContext], message: str,
                              execution_log: Optional[List[str]] = None) -> AnalysisReport:
        return AnalysisReport(
            id=new_report_id('error'),
            timestamp=datetime.now(timezone.utc),
            context=ReportContext.from_context(context if isinstance(context, AnalysisContext) else None),
            results=[],
            insights=[f"Analysis failed: {message}"],
            confidence='low',
            recommendations=list(RECOVERY_RECOMMENDATIONS),
            sql_preview='-- Analysis failed',
            query_breakdown=[],
            data_quality=DataQuality(is_valid=False, errors=[message], warnings=[], completeness=0.0),
            execution_log=list(execution_log or [])
        )
