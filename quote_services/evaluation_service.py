"""
quote_services.evaluation_service -- QuoteEvaluationService, the public facade.

Responsibility:
    The single entry point HTTP controllers and workers call.  Each public
    operation runs as one unit of work: open a session, wire the services
    for it, run, commit; roll back on any error.  Transient database
    failures re-run the whole unit with exponential backoff.

Architecture position:
    Services -- top of the stack.  Owns transaction boundaries; every
    service below it is flush-only.

Invariants enforced:
    - Exactly one commit per successful unit of work; nothing is committed
      when the unit raises.
    - Results are frozen DTOs; ORM instances never leave a unit of work.
    - Every call runs under a LogContext carrying company, actor, operation
      and a fresh correlation id.
    - submit_quote commits the quote first and evaluates anomalies in a
      second unit of work, so a failed evaluation never loses a quote.
    - get_recommendations reads its whole snapshot in one transaction,
      REPEATABLE READ on PostgreSQL.

Usage:
    service = QuoteEvaluationService(get_session_factory())
    result = service.submit_quote(ctx, QuoteSubmission(
        rfq_id=rfq_id, vendor_id=vendor_id,
        base_price="50000", gst_percent="18", transport_cost="2000",
    ))
    result.quote.landed_cost  # Decimal("61000.00")
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from quote_config import get_active_config
from quote_config.schema import EvaluationConfig
from quote_engines.anomaly import PriceAnomalyDetector
from quote_engines.landed_cost import LandedCostCalculator
from quote_engines.recommendation import VendorRecommendationRanker
from quote_engines.vendor_scoring import VendorScoringEngine
from quote_kernel.domain.clock import Clock, SystemClock
from quote_kernel.domain.records import (
    Anomaly,
    Quote,
    Recommendation,
    SubmissionResult,
    VendorScore,
)
from quote_kernel.domain.tenant import TenantContext
from quote_kernel.domain.values import parse_uuid
from quote_kernel.exceptions import QuoteEngineError, ValidationError
from quote_kernel.logging_config import LogContext, get_logger
from quote_kernel.selectors.anomaly_selector import AnomalySelector
from quote_kernel.selectors.quote_selector import QuoteSelector
from quote_kernel.selectors.recommendation_selector import RecommendationSelector
from quote_kernel.services.auditor_service import AuditorService
from quote_kernel.services.quote_number_service import QuoteNumberService
from quote_kernel.services.retry import run_with_retry
from quote_services.anomaly_service import (
    BaselineProvider,
    HistoricalBaselineProvider,
    PriceAnomalyService,
)
from quote_services.explanation import ExplanationService, TextGenerator
from quote_services.quote_lifecycle_service import QuoteLifecycleService, QuoteSubmission
from quote_services.recommendation_service import RecommendationService
from quote_services.vendor_scoring_service import VendorScoringService

logger = get_logger("services.evaluation")

T = TypeVar("T")


class _UnitOfWork:
    """Services wired to one session.  All construction happens here."""

    def __init__(
        self,
        session: Session,
        config: EvaluationConfig,
        clock: Clock,
        explanations: ExplanationService,
        baseline_factory: Callable[[Session], BaselineProvider],
        sleep: Callable[[float], None],
    ):
        self.session = session
        self.auditor = AuditorService(session, clock)
        policy = config.quote_number
        self.numbers = QuoteNumberService(
            session,
            clock,
            prefix=policy.prefix,
            date_format=policy.date_format,
            sequence_width=policy.sequence_width,
            max_retries=policy.max_retries,
            retry_base_delay=policy.retry_base_delay_ms / 1000,
            sleep=sleep,
        )
        self.lifecycle = QuoteLifecycleService(
            session, clock, self.auditor, self.numbers, LandedCostCalculator(),
        )
        self.anomalies = PriceAnomalyService(
            session,
            clock,
            self.auditor,
            baseline_factory(session),
            PriceAnomalyDetector(config.anomaly),
            explanations,
        )
        self.recommendations = RecommendationService(
            session, clock, self.auditor, VendorRecommendationRanker(config.recommendation),
        )
        self.scoring = VendorScoringService(
            session, clock, self.auditor, VendorScoringEngine(config.vendor_scoring),
        )


class QuoteEvaluationService:
    """
    Public operations of the quote evaluation engine.

    Args:
        session_factory: Creates one session per unit of work.
        config: Defaults to ``get_active_config()``.
        clock: Defaults to SystemClock.
        text_generator: Optional explanation collaborator.
        baseline_factory: Builds the BaselineProvider for a session;
            defaults to the price-history average.
        sleep: Backoff sleep, injectable for tests.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: EvaluationConfig | None = None,
        clock: Clock | None = None,
        text_generator: TextGenerator | None = None,
        baseline_factory: Callable[[Session], BaselineProvider] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._sleep = sleep
        self._explanations = ExplanationService(
            text_generator,
            timeout_seconds=self._config.explanation.timeout_seconds,
            enabled=self._config.explanation.enabled,
            max_workers=self._config.explanation.max_workers,
        )
        self._baseline_factory = baseline_factory or (
            lambda session: HistoricalBaselineProvider(
                session,
                lookback_days=self._config.baseline.lookback_days,
                min_samples=self._config.baseline.min_samples,
            )
        )

    @property
    def config(self) -> EvaluationConfig:
        return self._config

    def close(self) -> None:
        """Release the explanation worker pool."""
        self._explanations.close()

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        ctx: TenantContext,
        work: Callable[[_UnitOfWork], T],
        *,
        snapshot: bool = False,
    ) -> T:
        if not isinstance(ctx, TenantContext):
            raise ValidationError("ctx", "must be a TenantContext", ctx)

        def attempt() -> T:
            session = self._session_factory()
            try:
                if snapshot and session.get_bind().dialect.name == "postgresql":
                    session.connection(execution_options={"isolation_level": "REPEATABLE READ"})
                uow = _UnitOfWork(
                    session,
                    self._config,
                    self._clock,
                    self._explanations,
                    self._baseline_factory,
                    self._sleep,
                )
                result = work(uow)
                session.commit()
                return result
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

        retry = self._config.retry
        with LogContext.bind(
            correlation_id=str(uuid4()),
            operation=operation,
            **ctx.log_fields(),
        ):
            return run_with_retry(
                attempt,
                resource=operation,
                max_attempts=retry.max_attempts,
                base_delay=retry.base_delay_ms / 1000,
                max_delay=retry.max_delay_ms / 1000,
                sleep=self._sleep,
            )

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def submit_quote(self, ctx: TenantContext, submission: QuoteSubmission) -> SubmissionResult:
        """
        Persist a quote, then evaluate it for price anomalies.

        The quote is committed before evaluation.  If evaluation fails with
        an engine error, the quote is still returned (without anomalies)
        and evaluate_quote() can be run again later.
        """
        quote = self._run("submit_quote", ctx, lambda uow: uow.lifecycle.submit(ctx, submission))
        try:
            anomalies = self.evaluate_quote(ctx, quote.id)
        except QuoteEngineError:
            logger.warning(
                "anomaly_evaluation_deferred",
                extra={"quote_id": str(quote.id), "quote_number": quote.quote_number},
                exc_info=True,
            )
            anomalies = []
        return SubmissionResult(quote=quote, anomalies=tuple(anomalies))

    def approve_quote(self, ctx: TenantContext, quote_id: UUID | str) -> Quote:
        return self._run("approve_quote", ctx, lambda uow: uow.lifecycle.approve(ctx, quote_id))

    def list_quotes_for_rfq(self, ctx: TenantContext, rfq_id: UUID | str) -> list[Quote]:
        """Quotes of an RFQ, cheapest landed cost first."""
        rfq = parse_uuid(rfq_id, "rfq_id")
        return self._run(
            "list_quotes_for_rfq", ctx, lambda uow: QuoteSelector(uow.session).list_for_rfq(ctx, rfq),
        )

    # ------------------------------------------------------------------
    # Anomalies
    # ------------------------------------------------------------------

    def evaluate_quote(self, ctx: TenantContext, quote_id: UUID | str) -> list[Anomaly]:
        return self._run(
            "evaluate_quote", ctx, lambda uow: uow.anomalies.evaluate_quote(ctx, quote_id),
        )

    def list_anomalies(
        self,
        ctx: TenantContext,
        quote_id: UUID | str | None = None,
        unacknowledged_only: bool = False,
        limit: int = 20,
    ) -> list[Anomaly]:
        quote = parse_uuid(quote_id, "quote_id") if quote_id is not None else None
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError("limit", "must be a positive integer", limit)
        return self._run(
            "list_anomalies",
            ctx,
            lambda uow: AnomalySelector(uow.session).search(
                ctx, quote_id=quote, unacknowledged_only=unacknowledged_only, limit=limit,
            ),
        )

    def acknowledge_anomaly(self, ctx: TenantContext, anomaly_id: UUID | str) -> Anomaly:
        return self._run(
            "acknowledge_anomaly", ctx, lambda uow: uow.anomalies.acknowledge(ctx, anomaly_id),
        )

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def get_recommendations(
        self,
        ctx: TenantContext,
        item_ids: Sequence[UUID | str],
        urgency: str,
    ) -> list[Recommendation]:
        """Rank vendors for the items; the batch is persisted and returned in rank order."""
        return self._run(
            "get_recommendations",
            ctx,
            lambda uow: uow.recommendations.recommend(ctx, item_ids, urgency),
            snapshot=True,
        )

    def select_recommendation(
        self, ctx: TenantContext, recommendation_id: UUID | str,
    ) -> Recommendation:
        return self._run(
            "select_recommendation",
            ctx,
            lambda uow: uow.recommendations.select(ctx, recommendation_id),
        )

    def list_recommendations(
        self,
        ctx: TenantContext,
        request_id: UUID | str | None = None,
        limit: int = 50,
    ) -> list[Recommendation]:
        """One request's batch in rank order, or the most recent recommendations."""
        request = parse_uuid(request_id, "request_id") if request_id is not None else None

        def work(uow: _UnitOfWork) -> list[Recommendation]:
            selector = RecommendationSelector(uow.session)
            if request is not None:
                return selector.for_request(ctx, request)
            return selector.recent(ctx, limit=limit)

        return self._run("list_recommendations", ctx, work)

    # ------------------------------------------------------------------
    # Vendors
    # ------------------------------------------------------------------

    def recalculate_vendor_score(self, ctx: TenantContext, vendor_id: UUID | str) -> VendorScore:
        return self._run(
            "recalculate_vendor_score", ctx, lambda uow: uow.scoring.recalculate(ctx, vendor_id),
        )


__all__ = ["QuoteEvaluationService", "QuoteSubmission"]
