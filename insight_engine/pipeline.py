# insight_engine/pipeline.py
from langgraph.graph import StateGraph, END
from typing import TypedDict, Any, Optional, List
from datetime import datetime
import logging
import time

from insight_engine.agents.analysis_agent import AnalysisAgent, QuestionClassifier
from insight_engine.agents.data_agent import DataIngestionAgent
from insight_engine.agents.report_agent import ReportAgent
from insight_engine.config import Config, get_config
from insight_engine.errors import ContextError
from insight_engine.models import (
    AnalysisContext,
    AnalysisReport,
    AnalysisResult,
    Dataset,
    DatasetProfile,
    ValidationResult,
)
from insight_engine.utils.logging_config import get_logger

class AnalysisState(TypedDict, total=False):
    """State passed between the coordinator's steps"""
    # Input
    raw_context: Any
    analysis_context: Optional[AnalysisContext]

    # Data
    dataset: Optional[Dataset]
    validation: Optional[ValidationResult]

    # Analysis
    question_kind: Optional[str]
    profile: Optional[DatasetProfile]
    results: List[AnalysisResult]
    insights: List[str]
    recommendations: List[str]

    # Output
    report: Optional[AnalysisReport]

    # Workflow
    current_step: str
    next_action: str
    errors: List[str]
    execution_log: List[str]

class AnalysisCoordinator:
    """
    Runs one analysis request through the state machine

        validating -> normalizing -> analyzing -> assembling -> done

    with a single error terminal reachable from every step. Whatever happens,
    ``run_analysis`` resolves to an AnalysisReport; a failed run differs from a
    successful one only by confidence, sparser results and the failure insight.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, config: Optional[Config] = None):
        self.config = config or get_config()
        self.logger = logger or get_logger("coordinator")

        # Fresh agents per coordinator; nothing is shared between requests
        self.data_agent = DataIngestionAgent(self.config, self.logger)
        self.analysis_agent = AnalysisAgent(self.config, self.logger)
        self.report_agent = ReportAgent(self.config, self.logger)

        self.graph = self._build_graph()
        self.compiled_graph = self.graph.compile()

    def _build_graph(self) -> StateGraph:
        """Build the LangGraph workflow"""
        workflow = StateGraph(AnalysisState)

        workflow.add_node("validate_context", self.data_agent.validate_context)
        workflow.add_node("normalize_data", self.data_agent.process)
        workflow.add_node("check_quality", self.data_agent.validate)
        workflow.add_node("full_analysis", self.analysis_agent.analyze)
        workflow.add_node("quick_summary", self.analysis_agent.quick_summary)
        workflow.add_node("assemble_report", self.report_agent.assemble)
        workflow.add_node("handle_error", self.report_agent.handle_error)

        workflow.set_entry_point("validate_context")

        workflow.add_conditional_edges(
            "validate_context",
            self._route_on_error,
            {"proceed": "normalize_data", "error": "handle_error"}
        )
        workflow.add_conditional_edges(
            "normalize_data",
            self._route_on_error,
            {"proceed": "check_quality", "error": "handle_error"}
        )

        # Size-only questions skip the full computation
        workflow.add_conditional_edges(
            "check_quality",
            self._route_after_quality,
            {"simple": "quick_summary", "complex": "full_analysis", "error": "handle_error"}
        )

        workflow.add_conditional_edges(
            "full_analysis",
            self._route_on_error,
            {"proceed": "assemble_report", "error": "handle_error"}
        )
        workflow.add_conditional_edges(
            "quick_summary",
            self._route_on_error,
            {"proceed": "assemble_report", "error": "handle_error"}
        )
        workflow.add_conditional_edges(
            "assemble_report",
            self._route_on_error,
            {"proceed": END, "error": "handle_error"}
        )
        workflow.add_edge("handle_error", END)

        return workflow

    def _route_on_error(self, state: AnalysisState) -> str:
        return "error" if state.get("next_action") == "error" else "proceed"

    def _route_after_quality(self, state: AnalysisState) -> str:
        if state.get("next_action") == "error":
            return "error"

        context = state.get("analysis_context")
        question = context.research_question if context else None
        return QuestionClassifier.classify(question)

    async def run_analysis(self, context: Any) -> AnalysisReport:
        """Execute one analysis request; never raises for bad input"""
        started = time.perf_counter()

        initial_state = AnalysisState(
            raw_context=context,
            current_step="initialization",
            next_action="validate_context",
            errors=[],
            execution_log=[f"Analysis started at {datetime.now()}"]
        )

        self.logger.info("Starting analysis request")

        try:
            final_state = await self.compiled_graph.ainvoke(initial_state)
            report = final_state["report"]
            report.execution_log = list(final_state.get("execution_log", []))

            if final_state.get("errors"):
                self.logger.warning(f"Analysis degraded: {final_state['errors']}")
            else:
                self.logger.info(
                    f"Analysis completed: {len(report.results)} results, "
                    f"{len(report.insights)} insights, confidence {report.confidence}"
                )

        except Exception as e:
            self.logger.error(f"Analysis failed: {str(e)}")
            try:
                parsed = self.data_agent.parse_context(context)
            except ContextError:
                parsed = None
            report = self.report_agent.build_fallback_report(
                parsed, str(e), initial_state["execution_log"]
            )

        report.execution_time = time.perf_counter() - started
        return report

async def execute_analysis(context: Any,
                           logger: Optional[logging.Logger] = None,
                           config: Optional[Config] = None) -> AnalysisReport:
    """Run a single analysis with a freshly built coordinator"""
    coordinator = AnalysisCoordinator(logger=logger, config=config)
    return await coordinator.run_analysis(context)

# Example usage
if __name__ == "__main__":
    import asyncio
    from insight_engine.utils.logging_config import setup_logging

    async def main():
        setup_logging(log_level="INFO")

        report = await execute_analysis({
            "researchQuestion": "Is there a correlation between price and quantity?",
            "datasets": [{
                "columns": ["price", "quantity", "region"],
                "rows": [
                    {"price": p, "quantity": 100 - p, "region": "north" if p % 2 else "south"}
                    for p in range(1, 21)
                ]
            }]
        })

        print("Report:", report.model_dump_json(by_alias=True, indent=2))

    asyncio.run(main())
