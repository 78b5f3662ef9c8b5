"""Tests for VerificationService.

Covers the level order, cooling periods, document review, uploads through
the storage collaborator, reports and the suspension lift.
"""

from __future__ import annotations

import uuid

import pytest

from trust_settlement.domain.exceptions import (
    DependencyFailureError,
    DocumentAlreadyDecidedError,
    InvalidLevelOrderError,
    NotFoundError,
    SequenceError,
    ValidationError,
)
from trust_settlement.services import VerificationService


async def _complete_level_2(verification, account_id: str) -> None:
    for doc_type in ("id_card", "selfie_with_id", "digital_signature"):
        doc = await verification.submit_document(
            account_id, doc_type, 2, f"sim://documents/{account_id}/{doc_type}"
        )
        await verification.decide_document(doc.id, "approved", reviewer_id="reviewer-1")


class TestRecords:
    @pytest.mark.asyncio
    async def test_record_created_once(self, verification) -> None:
        first = await verification.get_or_create_record("owner-1", user_type="owner")
        second = await verification.get_or_create_record("owner-1")
        assert first.id == second.id
        assert first.current_level == 1
        assert first.level_1_status is None
        assert first.trust_score == 0

    @pytest.mark.asyncio
    async def test_unknown_user_type_rejected(self, verification) -> None:
        with pytest.raises(ValidationError, match="user_type"):
            await verification.get_or_create_record("owner-1", user_type="landlord")

    @pytest.mark.asyncio
    async def test_missing_record(self, verification) -> None:
        with pytest.raises(NotFoundError):
            await verification.get_record("nobody")

    @pytest.mark.asyncio
    async def test_set_account_type(self, verification) -> None:
        await verification.get_or_create_record("owner-1")
        record = await verification.set_account_type("owner-1", "agency")
        assert record.account_type == "agency"


class TestLevelOrder:
    @pytest.mark.asyncio
    async def test_level_1_approval_opens_level_2_after_cooling(
        self, verification, verify_level_1, clock
    ) -> None:
        record = await verify_level_1("owner-1")
        assert record.level_1_status == "approved"
        assert record.level_1_completed_at == clock()
        assert record.level_2_eligible_at == clock().replace(day=11)
        assert record.trust_score == 30

    @pytest.mark.asyncio
    async def test_level_2_refused_during_cooling(self, verification, verify_level_1) -> None:
        await verify_level_1("owner-1")
        with pytest.raises(InvalidLevelOrderError, match="cooling period"):
            await verification.submit_document("owner-1", "id_card", 2, "sim://id")
        assert len(await verification.list_documents("owner-1")) == 1

    @pytest.mark.asyncio
    async def test_level_3_refused_while_level_2_pending(
        self, verification, verify_level_1, clock
    ) -> None:
        await verify_level_1("owner-1")
        clock.advance(days=1)
        await verification.submit_document("owner-1", "id_card", 2, "sim://id")

        with pytest.raises(InvalidLevelOrderError, match="level 2 is not approved"):
            await verification.submit_document("owner-1", "property_photo", 3, "sim://photo")

        record = await verification.get_record("owner-1")
        assert record.level_2_status == "pending"
        assert record.level_3_status is None
        documents = await verification.list_documents("owner-1")
        assert [d.document_type for d in documents] == ["profile_photo", "id_card"]

    @pytest.mark.asyncio
    async def test_level_needs_every_requirement_group(
        self, verification, verify_level_1, clock
    ) -> None:
        await verify_level_1("owner-1")
        clock.advance(days=1)
        doc = await verification.submit_document("owner-1", "passport", 2, "sim://passport")
        await verification.decide_document(doc.id, "approved", reviewer_id="reviewer-1")

        record = await verification.get_record("owner-1")
        assert record.level_2_status == "pending"

    @pytest.mark.asyncio
    async def test_level_2_approval(
        self, verification, verify_level_1, clock, notifier, commit
    ) -> None:
        await verify_level_1("owner-1")
        clock.advance(days=1)
        await _complete_level_2(verification, "owner-1")

        record = await verification.get_record("owner-1")
        assert record.level_2_status == "approved"
        assert record.current_level == 2
        assert record.level_3_eligible_at == clock().replace(day=18)
        await commit()
        assert notifier.kinds().count("level_approved") == 2

    @pytest.mark.asyncio
    async def test_seeker_capped_at_level_1(self, verification, verify_level_1, clock) -> None:
        await verify_level_1("seeker-1", user_type="seeker")
        clock.advance(days=2)
        with pytest.raises(InvalidLevelOrderError, match="seeker"):
            await verification.submit_document("seeker-1", "id_card", 2, "sim://id")

    @pytest.mark.asyncio
    async def test_document_type_must_belong_to_level(self, verification) -> None:
        with pytest.raises(ValidationError, match="does not count toward level 1"):
            await verification.submit_document("owner-1", "id_card", 1, "sim://id")

    @pytest.mark.asyncio
    async def test_unknown_level(self, verification) -> None:
        with pytest.raises(ValidationError, match="Unknown verification level"):
            await verification.submit_document("owner-1", "profile_photo", 5, "sim://x")

    @pytest.mark.asyncio
    async def test_eligibility_for_unknown_account(self, verification) -> None:
        levels = await verification.check_eligibility("nobody")
        assert [lvl.requestable for lvl in levels] == [True, False, False, False]
        with pytest.raises(NotFoundError):
            await verification.get_record("nobody")


class TestDocumentReview:
    @pytest.mark.asyncio
    async def test_rejection_requires_reason(self, verification) -> None:
        doc = await verification.submit_document("owner-1", "profile_photo", 1, "sim://photo")
        with pytest.raises(ValidationError, match="reason"):
            await verification.decide_document(doc.id, "rejected", reviewer_id="reviewer-1")

    @pytest.mark.asyncio
    async def test_rejection_keeps_level_pending(self, verification, notifier, commit) -> None:
        doc = await verification.submit_document("owner-1", "profile_photo", 1, "sim://photo")
        decided = await verification.decide_document(
            doc.id, "rejected", reviewer_id="reviewer-1", reason="blurry"
        )
        assert decided.status == "rejected"
        assert decided.rejection_reason == "blurry"
        record = await verification.get_record("owner-1")
        assert record.level_1_status == "pending"
        await commit()
        assert "document_rejected" in notifier.kinds()

    @pytest.mark.asyncio
    async def test_document_decided_once(self, verification) -> None:
        doc = await verification.submit_document("owner-1", "profile_photo", 1, "sim://photo")
        await verification.decide_document(doc.id, "approved", reviewer_id="reviewer-1")
        with pytest.raises(DocumentAlreadyDecidedError):
            await verification.decide_document(doc.id, "approved", reviewer_id="reviewer-2")

    @pytest.mark.asyncio
    async def test_unknown_document(self, verification) -> None:
        with pytest.raises(NotFoundError):
            await verification.decide_document(uuid.uuid4(), "approved", reviewer_id="r")

    @pytest.mark.asyncio
    async def test_reject_level_then_resubmit(self, verification) -> None:
        await verification.submit_document("owner-1", "profile_photo", 1, "sim://photo")
        record = await verification.reject_level("owner-1", 1, "reviewer-1", "not a face")
        assert record.level_1_status == "rejected"

        await verification.submit_document("owner-1", "profile_photo", 1, "sim://photo-2")
        record = await verification.get_record("owner-1")
        assert record.level_1_status == "pending"

    @pytest.mark.asyncio
    async def test_expire_pending_level_then_resubmit(self, verification) -> None:
        await verification.submit_document("owner-1", "profile_photo", 1, "sim://photo")
        record = await verification.expire_level("owner-1", 1, "ops-1", "no review within 90 days")
        assert record.level_1_status == "expired"

        await verification.submit_document("owner-1", "profile_photo", 1, "sim://photo-2")
        record = await verification.get_record("owner-1")
        assert record.level_1_status == "pending"

        events = [e.event_type for e in await verification.get_events("owner-1")]
        assert "LEVEL_EXPIRED" in events

    @pytest.mark.asyncio
    async def test_approved_level_cannot_expire(self, verification, verify_level_1) -> None:
        await verify_level_1("owner-1")
        with pytest.raises(SequenceError):
            await verification.expire_level("owner-1", 1, "ops-1", "stale")

    @pytest.mark.asyncio
    async def test_reject_unstarted_level(self, verification) -> None:
        await verification.get_or_create_record("owner-1")
        with pytest.raises(SequenceError):
            await verification.reject_level("owner-1", 2, "reviewer-1", "nothing here")

    @pytest.mark.asyncio
    async def test_events_recorded(self, verification, verify_level_1) -> None:
        await verify_level_1("owner-1")
        events = {e.event_type for e in await verification.get_events("owner-1")}
        assert {
            "RECORD_CREATED",
            "DOCUMENT_SUBMITTED",
            "LEVEL_APPROVED",
            "TRUST_SCORE_CHANGED",
        } <= events


class TestUploads:
    @pytest.mark.asyncio
    async def test_upload_stores_then_submits(self, verification, storage) -> None:
        doc = await verification.upload_document(
            "owner-1", "profile_photo", 1, b"\x89PNG...", "photo.png"
        )
        assert doc.file_url.startswith("sim://documents/")
        assert await storage.fetch(doc.file_url) == b"\x89PNG..."

    @pytest.mark.asyncio
    async def test_storage_failure_leaves_no_document(
        self, session, make_ctx, failing_storage
    ) -> None:
        service = VerificationService(session, make_ctx(storage=failing_storage))
        await service.get_or_create_record("owner-1")

        with pytest.raises(DependencyFailureError, match="document_storage"):
            await service.upload_document("owner-1", "profile_photo", 1, b"img", "a.png")

        assert await service.list_documents("owner-1") == []
        record = await service.get_record("owner-1")
        assert record.level_1_status is None

    @pytest.mark.asyncio
    async def test_empty_upload_rejected(self, verification) -> None:
        with pytest.raises(ValidationError, match="empty"):
            await verification.upload_document("owner-1", "profile_photo", 1, b"", "a.png")


class TestReportsAndSignals:
    @pytest.mark.asyncio
    async def test_self_report_rejected(self, verification) -> None:
        with pytest.raises(ValidationError):
            await verification.file_report("owner-1", "owner-1", "spam")

    @pytest.mark.asyncio
    async def test_pending_report_does_not_change_score(
        self, verification, verify_level_1
    ) -> None:
        await verify_level_1("owner-1")
        await verification.file_report("client-1", "owner-1", "fake listing")
        record = await verification.get_record("owner-1")
        assert record.trust_score == 30
        assert record.reports_count == 0

    @pytest.mark.asyncio
    async def test_validated_reports_lower_score_and_suspend(
        self, verification, verify_level_1, notifier, commit
    ) -> None:
        await verify_level_1("owner-1")
        first = await verification.file_report("client-1", "owner-1", "fake listing")
        await verification.resolve_report(first.id, "approved", actor_id="admin-1")

        record = await verification.get_record("owner-1")
        assert record.trust_score == 15
        assert record.reports_count == 1
        assert not record.is_suspended

        second = await verification.file_report("client-2", "owner-1", "no show")
        await verification.resolve_report(second.id, "approved", actor_id="admin-1")

        record = await verification.get_record("owner-1")
        assert record.trust_score == 0
        assert record.is_suspended
        await commit()
        assert "account_suspended" in notifier.kinds()

    @pytest.mark.asyncio
    async def test_dismissed_report_changes_nothing(self, verification, verify_level_1) -> None:
        await verify_level_1("owner-1")
        report = await verification.file_report("client-1", "owner-1", "rude")
        resolved = await verification.resolve_report(report.id, "rejected", actor_id="admin-1")
        assert resolved.status == "rejected"
        record = await verification.get_record("owner-1")
        assert record.trust_score == 30

    @pytest.mark.asyncio
    async def test_report_resolved_once(self, verification) -> None:
        report = await verification.file_report("client-1", "owner-1", "rude")
        await verification.resolve_report(report.id, "rejected", actor_id="admin-1")
        with pytest.raises(SequenceError):
            await verification.resolve_report(report.id, "approved", actor_id="admin-1")

    @pytest.mark.asyncio
    async def test_response_rate_feeds_score(self, verification, verify_level_1) -> None:
        await verify_level_1("owner-1")
        record = await verification.update_response_rate("owner-1", 100)
        assert record.trust_score == 50

    @pytest.mark.asyncio
    async def test_response_rate_bounds(self, verification, verify_level_1) -> None:
        await verify_level_1("owner-1")
        with pytest.raises(ValidationError):
            await verification.update_response_rate("owner-1", 101)

    @pytest.mark.asyncio
    async def test_response_rate_drop_suspends(self, verification) -> None:
        await verification.get_or_create_record("owner-1")
        record = await verification.update_response_rate("owner-1", 100)
        assert record.trust_score == 20
        assert not record.is_suspended

        record = await verification.update_response_rate("owner-1", 0)
        assert record.trust_score == 0
        assert record.is_suspended
        assert "response rate 0" in record.suspension_reason


class TestSuspensionLift:
    @pytest.mark.asyncio
    async def test_lift_requires_suspension(self, verification) -> None:
        await verification.get_or_create_record("owner-1")
        with pytest.raises(SequenceError, match="not suspended"):
            await verification.lift_suspension("owner-1", actor_id="admin-1")

    @pytest.mark.asyncio
    async def test_lift_clears_suspension(self, verification, verify_level_1) -> None:
        await verify_level_1("owner-1")
        for reporter in ("client-1", "client-2"):
            report = await verification.file_report(reporter, "owner-1", "scam")
            await verification.resolve_report(report.id, "approved", actor_id="admin-1")

        record = await verification.lift_suspension("owner-1", "admin-1", notes="appeal upheld")
        assert not record.is_suspended
        assert record.suspension_reason is None
        events = [e.event_type for e in await verification.get_events("owner-1")]
        assert "SUSPENSION_LIFTED" in events


class TestSummary:
    @pytest.mark.asyncio
    async def test_badges_and_displayed_score(self, verification, verify_level_1) -> None:
        await verify_level_1("owner-1")
        summary = await verification.get_summary("owner-1")
        assert summary.badges == ["account_confirmed"]
        assert summary.displayed_trust_score == 30
        assert [lvl.level for lvl in summary.levels] == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_seeker_score_hidden(self, verification, verify_level_1) -> None:
        await verify_level_1("seeker-1", user_type="seeker")
        summary = await verification.get_summary("seeker-1")
        assert summary.displayed_trust_score is None

    @pytest.mark.asyncio
    async def test_super_owner_badge(self, verification, verify_level_1) -> None:
        await verify_level_1("owner-1")
        record = await verification.get_record("owner-1")
        record.trust_score = 80
        summary = await verification.get_summary("owner-1")
        assert "super_owner" in summary.badges
