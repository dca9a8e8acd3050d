"""
Tests for vendor recommendations through the service layer.

Covers:
- Candidate selection from the catalog (active, category match, tenant)
- Factors fed from quote history
- Persistence of the ranked batch
- Selection and its idempotency
- Validation of the request
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from quote_kernel.exceptions import (
    EmptyItemSetError,
    ItemNotFoundError,
    RecommendationNotFoundError,
    ValidationError,
)
from quote_kernel.models.audit_event import AuditAction
from quote_kernel.services.auditor_service import AuditorService
from quote_services.quote_lifecycle_service import QuoteSubmission


@pytest.fixture
def market(catalog, deterministic_clock):
    """Two items and a handful of vendors in various states."""
    now = deterministic_clock.now()
    steel = catalog.item("Steel Rod", "Steel")
    cement = catalog.item("Cement 50kg", "  CEMENT ")
    return {
        "steel": steel,
        "cement": cement,
        "both": catalog.vendor("Builder Supply", ["steel", "cement"], vendor_score="85"),
        "steel_only": catalog.vendor("Acme Steel", ["Steel "], vendor_score="70"),
        "timber": catalog.vendor("Timber Yard", ["timber"], vendor_score="99"),
        "inactive": catalog.vendor("Dormant", ["steel"], vendor_score="99", is_active=False),
        "deleted": catalog.vendor("Gone", ["steel"], vendor_score="99", deleted_at=now),
    }


class TestGetRecommendations:

    def test_ranked_batch(self, service, ctx, market):
        recs = service.get_recommendations(ctx, [market["steel"], market["cement"]], "medium")

        assert [r.vendor_id for r in recs] == [market["both"], market["steel_only"]]
        assert [r.rank for r in recs] == [1, 2]
        assert [r.relevance_score for r in recs] == [Decimal("0.7200"), Decimal("0.5400")]
        assert len({r.request_id for r in recs}) == 1
        assert recs[0].vendor_score == Decimal("85")
        assert recs[0].reasons == ("Matches 2/2 requested categories", "Top-rated vendor")
        assert recs[0].was_selected is False

    def test_excluded_vendors(self, service, ctx, market):
        recs = service.get_recommendations(ctx, [market["steel"]], "low")

        vendor_ids = {r.vendor_id for r in recs}
        assert market["timber"] not in vendor_ids
        assert market["inactive"] not in vendor_ids
        assert market["deleted"] not in vendor_ids

    def test_urgency_case_insensitive(self, service, ctx, market):
        recs = service.get_recommendations(ctx, [str(market["steel"])], " HIGH ")

        assert recs

    def test_duplicate_items_counted_once(self, service, ctx, market):
        recs = service.get_recommendations(ctx, [market["steel"], market["steel"]], "medium")

        assert recs[0].reasons[0] == "Matches 1/1 requested categories"

    def test_persisted_batch_matches(self, service, ctx, market):
        recs = service.get_recommendations(ctx, [market["steel"], market["cement"]], "medium")

        stored = service.list_recommendations(ctx, request_id=recs[0].request_id)

        assert [(r.id, r.rank, r.relevance_score) for r in stored] == [
            (r.id, r.rank, r.relevance_score) for r in recs
        ]
        assert stored[0].reasons == recs[0].reasons
        assert stored[0].factors == recs[0].factors

    def test_factors_are_decimals(self, service, ctx, market):
        [first, *_] = service.get_recommendations(ctx, [market["steel"]], "medium")
        [stored, *_] = service.list_recommendations(ctx, request_id=first.request_id)

        assert set(stored.factors) == {"coverage", "price", "delivery", "trust"}
        assert all(isinstance(v, Decimal) for v in stored.factors.values())
        assert stored.factors["trust"] == Decimal("0.85")

    def test_no_matching_vendor(self, service, ctx, catalog):
        glass = catalog.item("Glass pane", "glass")

        recs = service.get_recommendations(ctx, [glass], "medium")

        assert recs == []

    def test_audited(self, service, session, ctx, market):
        recs = service.get_recommendations(ctx, [market["steel"]], "medium")

        trail = AuditorService(session).get_trail(ctx, "RecommendationRequest", recs[0].request_id)

        assert [e.action for e in trail] == [AuditAction.VENDOR_RECOMMENDATIONS_GENERATED]
        assert trail[0].payload["vendor_ids"] == [str(r.vendor_id) for r in recs]


class TestHistoryFactors:

    def test_history_changes_ranking(self, service, ctx, catalog, market, deterministic_clock):
        rfq_id = catalog.rfq("Steel rods", [(market["steel"], 1)])
        service.submit_quote(ctx, QuoteSubmission(
            rfq_id=rfq_id, vendor_id=market["both"],
            base_price="50000", gst_percent="18", transport_cost="2000", delivery_days=10,
        ))
        service.submit_quote(ctx, QuoteSubmission(
            rfq_id=rfq_id, vendor_id=market["steel_only"],
            base_price="40000", gst_percent="18", delivery_days=3,
        ))

        recs = service.get_recommendations(ctx, [market["steel"]], "low")

        assert [r.vendor_id for r in recs] == [market["steel_only"], market["both"]]
        assert recs[0].relevance_score == Decimal("0.9400")
        assert recs[1].relevance_score == Decimal("0.5200")
        assert recs[0].reasons == (
            "Matches 1/1 requested categories",
            "Competitive pricing history",
            "Fast delivery history",
        )

    def test_price_history_compared_per_unit(self, service, ctx, catalog, market):
        bulk = catalog.rfq("Steel rods bulk", [(market["steel"], 100)])
        single = catalog.rfq("Steel rod", [(market["steel"], 1)])
        service.submit_quote(ctx, QuoteSubmission(
            rfq_id=bulk, vendor_id=market["steel_only"],
            base_price="1000", gst_percent="0", delivery_days=5,
        ))
        service.submit_quote(ctx, QuoteSubmission(
            rfq_id=single, vendor_id=market["both"],
            base_price="50", gst_percent="0", delivery_days=5,
        ))

        recs = service.get_recommendations(ctx, [market["steel"]], "low")

        assert [r.vendor_id for r in recs] == [market["steel_only"], market["both"]]
        assert recs[0].factors["price"] == Decimal("1")
        assert recs[1].factors["price"] == Decimal("0")
        assert recs[0].relevance_score == Decimal("0.9400")

    def test_multi_item_rfq_has_no_price_history(self, service, ctx, catalog, market):
        mixed = catalog.rfq("Mixed", [(market["steel"], 1), (market["cement"], 2)])
        single = catalog.rfq("Steel rod", [(market["steel"], 1)])
        service.submit_quote(ctx, QuoteSubmission(
            rfq_id=mixed, vendor_id=market["both"],
            base_price="100", gst_percent="0", delivery_days=2,
        ))
        service.submit_quote(ctx, QuoteSubmission(
            rfq_id=single, vendor_id=market["steel_only"],
            base_price="900", gst_percent="0", delivery_days=6,
        ))

        recs = service.get_recommendations(ctx, [market["steel"]], "medium")

        both = next(r for r in recs if r.vendor_id == market["both"])
        steel_only = next(r for r in recs if r.vendor_id == market["steel_only"])
        assert both.factors["price"] == Decimal("0.5")
        assert both.factors["delivery"] == Decimal("1")
        assert steel_only.factors["price"] == Decimal("1")
        assert steel_only.factors["delivery"] == Decimal("0")

    def test_unrelated_history_ignored(self, service, ctx, catalog, market):
        other_item = catalog.item("Bricks", "masonry")
        rfq_id = catalog.rfq("Bricks", [(other_item, 1)])
        service.submit_quote(ctx, QuoteSubmission(
            rfq_id=rfq_id, vendor_id=market["steel_only"],
            base_price="10", gst_percent="0", delivery_days=1,
        ))

        recs = service.get_recommendations(ctx, [market["steel"]], "medium")

        steel_only = next(r for r in recs if r.vendor_id == market["steel_only"])
        assert steel_only.factors["price"] == Decimal("0.5")


class TestRecommendationValidation:

    def test_empty_items(self, service, ctx, market):
        with pytest.raises(EmptyItemSetError) as exc_info:
            service.get_recommendations(ctx, [], "medium")

        assert exc_info.value.code == "EMPTY_ITEM_SET"

    def test_bad_urgency(self, service, ctx, market):
        with pytest.raises(ValidationError) as exc_info:
            service.get_recommendations(ctx, [market["steel"]], "urgent")

        assert exc_info.value.field == "urgency"

    def test_unknown_item_persists_nothing(self, service, ctx, market):
        with pytest.raises(ItemNotFoundError):
            service.get_recommendations(ctx, [market["steel"], uuid4()], "medium")

        assert service.list_recommendations(ctx) == []

    def test_item_of_another_company(self, service, other_ctx, market):
        with pytest.raises(ItemNotFoundError):
            service.get_recommendations(other_ctx, [market["steel"]], "medium")


class TestSelectRecommendation:

    def test_select(self, service, ctx, market):
        recs = service.get_recommendations(ctx, [market["steel"]], "medium")

        selected = service.select_recommendation(ctx, recs[1].id)

        assert selected.was_selected is True
        assert selected.rank == recs[1].rank

    def test_select_is_idempotent(self, service, session, ctx, market):
        recs = service.get_recommendations(ctx, [market["steel"]], "medium")

        service.select_recommendation(ctx, recs[0].id)
        again = service.select_recommendation(ctx, recs[0].id)

        assert again.was_selected is True
        trail = AuditorService(session).get_trail(ctx, "Recommendation", recs[0].id)
        assert [e.action for e in trail] == [AuditAction.VENDOR_RECOMMENDATION_SELECTED]

    def test_other_records_untouched(self, service, ctx, market):
        recs = service.get_recommendations(ctx, [market["steel"]], "medium")
        service.select_recommendation(ctx, recs[0].id)

        stored = service.list_recommendations(ctx, request_id=recs[0].request_id)

        assert [r.was_selected for r in stored] == [True] + [False] * (len(stored) - 1)

    def test_unknown_recommendation(self, service, ctx):
        with pytest.raises(RecommendationNotFoundError):
            service.select_recommendation(ctx, uuid4())

    def test_other_company(self, service, ctx, other_ctx, market):
        recs = service.get_recommendations(ctx, [market["steel"]], "medium")

        with pytest.raises(RecommendationNotFoundError):
            service.select_recommendation(other_ctx, recs[0].id)


class TestListRecommendations:

    def test_recent_newest_first(self, service, ctx, market, deterministic_clock):
        first = service.get_recommendations(ctx, [market["steel"]], "medium")
        deterministic_clock.advance(60)
        second = service.get_recommendations(ctx, [market["cement"]], "medium")

        recent = service.list_recommendations(ctx, limit=50)

        assert recent[0].request_id == second[0].request_id
        assert {r.id for r in recent} == {r.id for r in first + second}

    def test_limit(self, service, ctx, market):
        service.get_recommendations(ctx, [market["steel"]], "medium")

        assert len(service.list_recommendations(ctx, limit=1)) == 1
