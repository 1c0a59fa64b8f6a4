"""Tests for the claim workflow engine (state machine)."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from claim_workflow.exceptions import (
    Conflict,
    FileValidationError,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from claim_workflow.models.claim import ClaimAction, ClaimStatus, ClaimSubmission
from claim_workflow.workflow import TRANSITIONS, next_status, parse_amount, status_path


class TestNextStatus:
    """Tests for the transition table."""

    @pytest.mark.parametrize(
        "current,action,target",
        [
            (ClaimStatus.PENDING, ClaimAction.ASSIGN, ClaimStatus.UNDER_REVIEW),
            (ClaimStatus.UNDER_REVIEW, ClaimAction.SUBMIT_FOR_APPROVAL, ClaimStatus.PENDING_APPROVAL),
            (ClaimStatus.PENDING_APPROVAL, ClaimAction.APPROVE, ClaimStatus.APPROVED),
            (ClaimStatus.PENDING_APPROVAL, ClaimAction.DENY, ClaimStatus.DENIED),
        ],
    )
    def test_allowed_transitions(self, current, action, target):
        assert next_status(current, action) is target

    def test_terminal_states_have_no_outgoing_transitions(self):
        for status in (ClaimStatus.APPROVED, ClaimStatus.DENIED):
            for action in TRANSITIONS:
                with pytest.raises(InvalidTransition):
                    next_status(status, action)

    def test_skipping_review_is_rejected(self):
        with pytest.raises(InvalidTransition, match="Pending"):
            next_status(ClaimStatus.PENDING, ClaimAction.APPROVE)


class TestParseAmount:
    def test_valid_amounts(self):
        assert parse_amount("1500", "Amount") == Decimal("1500.00")
        assert parse_amount("99.5", "Amount") == Decimal("99.50")
        assert parse_amount(0, "Amount") == Decimal("0.00")

    def test_blank_is_none(self):
        assert parse_amount(None, "Amount") is None
        assert parse_amount("  ", "Amount") is None

    @pytest.mark.parametrize("value", ["abc", "-5", "1.234", "NaN", "Infinity", True])
    def test_malformed_amounts(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value, "Amount")

    @pytest.mark.parametrize("value", ["1e30", "100000000000000000000000000"])
    def test_amount_too_large(self, value):
        with pytest.raises(ValidationError, match="too large"):
            parse_amount(value, "Amount")


class TestSubmitClaim:
    def test_creates_pending_claim_with_documents(self, engine, actors, submission, make_file):
        claim = engine.submit_claim(
            actors.claimant.id, submission, files=[make_file("a.pdf"), make_file("b.png", mime_type="image/png")]
        )
        assert claim.status is ClaimStatus.PENDING
        assert claim.claimant_id == actors.claimant.id
        assert claim.claim_type_name == "Auto"
        assert claim.version == 1
        assert [d.original_filename for d in claim.documents] == ["a.pdf", "b.png"]
        assert not any(d.is_review_document for d in claim.documents)
        assert [h.action for h in claim.history] == ["created"]

    def test_description_required(self, engine, actors, claim_type):
        with pytest.raises(ValidationError, match="Description"):
            engine.submit_claim(
                actors.claimant.id,
                ClaimSubmission(claim_type_id=claim_type.id, incident_date="2025-01-15", description="   "),
            )

    def test_future_incident_date_rejected(self, engine, actors, claim_type):
        tomorrow = (date.today() + timedelta(days=1)).isoformat()
        with pytest.raises(ValidationError, match="future"):
            engine.submit_claim(
                actors.claimant.id,
                ClaimSubmission(claim_type_id=claim_type.id, incident_date=tomorrow, description="x"),
            )

    def test_malformed_incident_date_rejected(self, engine, actors, claim_type):
        with pytest.raises(ValidationError, match="YYYY-MM-DD"):
            engine.submit_claim(
                actors.claimant.id,
                ClaimSubmission(claim_type_id=claim_type.id, incident_date="15/01/2025", description="x"),
            )

    def test_unknown_claim_type_rejected(self, engine, actors):
        with pytest.raises(ValidationError, match="claim type"):
            engine.submit_claim(
                actors.claimant.id,
                ClaimSubmission(claim_type_id=999, incident_date="2025-01-15", description="x"),
            )

    def test_only_claimants_may_submit(self, engine, actors, submission):
        with pytest.raises(Forbidden):
            engine.submit_claim(actors.reviewer.id, submission)

    def test_claimant_restricted_to_allowed_types(self, engine, directory, claim_type):
        home = directory.create_claim_type("Home")
        limited = directory.create_user(
            {
                "username": "limited",
                "email": "limited@example.com",
                "password": "password123",
                "role": "claimant",
                "claimTypeIds": [home.id],
            }
        )
        with pytest.raises(Forbidden, match="Auto"):
            engine.submit_claim(
                limited.id,
                ClaimSubmission(claim_type_id=claim_type.id, incident_date="2025-01-15", description="x"),
            )
        claim = engine.submit_claim(
            limited.id,
            ClaimSubmission(claim_type_id=home.id, incident_date="2025-01-15", description="x"),
        )
        assert claim.claim_type_name == "Home"

    def test_oversized_file_creates_nothing(self, engine, actors, submission, make_file, upload_dir):
        big = make_file("big.pdf", content=b"x" * (6 * 1024 * 1024))
        with pytest.raises(FileValidationError) as exc_info:
            engine.submit_claim(actors.claimant.id, submission, files=[make_file(), big])
        assert exc_info.value.filename == "big.pdf"
        assert "big.pdf" in exc_info.value.message
        assert engine.claims.list_claims() == []
        assert not upload_dir.exists() or list(upload_dir.iterdir()) == []

    def test_fifth_invalid_file_fails_whole_batch(self, engine, actors, submission, make_file, upload_dir):
        files = [make_file(f"doc{i}.pdf") for i in range(4)] + [make_file("script.exe")]
        with pytest.raises(FileValidationError, match="script.exe"):
            engine.submit_claim(actors.claimant.id, submission, files=files)
        assert engine.claims.list_claims() == []
        assert not upload_dir.exists() or list(upload_dir.iterdir()) == []


class TestSubmitForApproval:
    def test_moves_to_pending_approval(self, engine, under_review_claim, actors, make_file):
        claim = engine.submit_for_approval(
            under_review_claim.id,
            actors.reviewer.id,
            "Looks valid",
            settlement_amount="1200.50",
            files=[make_file("inspection.jpg", mime_type="image/jpeg")],
        )
        assert claim.status is ClaimStatus.PENDING_APPROVAL
        assert claim.reviewer_notes == "Looks valid"
        assert claim.proposed_settlement_amount == Decimal("1200.50")
        assert claim.submitted_for_approval_at is not None
        review_docs = [d for d in claim.documents if d.is_review_document]
        assert [d.original_filename for d in review_docs] == ["inspection.jpg"]

    @pytest.mark.parametrize("notes", ["", "   ", None])
    def test_empty_notes_rejected_regardless_of_status(self, engine, pending_claim, actors, notes):
        # Pending claim: input validation runs before any state check
        with pytest.raises(ValidationError, match="Reviewer notes"):
            engine.submit_for_approval(pending_claim.id, actors.reviewer.id, notes)

    def test_empty_notes_rejected_for_unknown_claim(self, engine, actors):
        with pytest.raises(ValidationError):
            engine.submit_for_approval("CLM-MISSING", actors.reviewer.id, "")

    def test_unknown_claim(self, engine, actors):
        with pytest.raises(NotFound):
            engine.submit_for_approval("CLM-MISSING", actors.reviewer.id, "notes")

    def test_other_reviewer_forbidden(self, engine, under_review_claim, actors):
        with pytest.raises(Forbidden, match="not assigned"):
            engine.submit_for_approval(under_review_claim.id, actors.other_reviewer.id, "notes")
        assert engine.require_claim(under_review_claim.id).status is ClaimStatus.UNDER_REVIEW

    def test_malformed_amount_rejected(self, engine, under_review_claim, actors):
        with pytest.raises(ValidationError, match="Settlement amount"):
            engine.submit_for_approval(
                under_review_claim.id, actors.reviewer.id, "notes", settlement_amount="12.345"
            )

    def test_huge_amount_rejected(self, engine, under_review_claim, actors):
        with pytest.raises(ValidationError, match="too large"):
            engine.submit_for_approval(
                under_review_claim.id,
                actors.reviewer.id,
                "notes",
                settlement_amount="100000000000000000000000000",
            )
        assert engine.require_claim(under_review_claim.id).status is ClaimStatus.UNDER_REVIEW

    def test_too_many_review_documents(self, engine, under_review_claim, actors, make_file):
        files = [make_file(f"r{i}.pdf") for i in range(4)]
        with pytest.raises(FileValidationError, match="maximum of 3"):
            engine.submit_for_approval(under_review_claim.id, actors.reviewer.id, "notes", files=files)
        claim = engine.load_claim(under_review_claim.id)
        assert claim.status is ClaimStatus.UNDER_REVIEW
        assert not any(d.is_review_document for d in claim.documents)

    def test_failed_submit_can_be_retried(self, engine, under_review_claim, actors):
        with pytest.raises(ValidationError):
            engine.submit_for_approval(under_review_claim.id, actors.reviewer.id, "")
        claim = engine.submit_for_approval(under_review_claim.id, actors.reviewer.id, "Second try")
        assert claim.status is ClaimStatus.PENDING_APPROVAL

    def test_no_resubmission_after_pending_approval(self, engine, pending_approval_claim, actors):
        with pytest.raises(InvalidTransition):
            engine.submit_for_approval(pending_approval_claim.id, actors.reviewer.id, "Overwrite")
        assert engine.require_claim(pending_approval_claim.id).reviewer_notes == "Looks valid"

    def test_pending_claim_has_no_reviewer(self, engine, pending_claim, actors):
        with pytest.raises(Forbidden):
            engine.submit_for_approval(pending_claim.id, actors.reviewer.id, "notes")


class TestFinalDecision:
    def test_approve(self, engine, pending_approval_claim, actors):
        claim = engine.approve(pending_approval_claim.id, actors.checker.id, settlement_amount="1450")
        assert claim.status is ClaimStatus.APPROVED
        assert claim.final_action_by_user_id == actors.checker.id
        assert claim.final_action_at is not None
        assert claim.settlement_amount == Decimal("1450.00")

    def test_approve_without_amount_leaves_settlement_unset(self, engine, pending_approval_claim, actors):
        claim = engine.approve(pending_approval_claim.id, actors.checker.id)
        assert claim.status is ClaimStatus.APPROVED
        assert claim.settlement_amount is None

    def test_approve_huge_amount_rejected(self, engine, pending_approval_claim, actors):
        with pytest.raises(ValidationError, match="too large"):
            engine.approve(pending_approval_claim.id, actors.checker.id, settlement_amount="1e30")
        assert engine.require_claim(pending_approval_claim.id).status is ClaimStatus.PENDING_APPROVAL

    def test_deny(self, engine, pending_approval_claim, actors):
        claim = engine.deny(pending_approval_claim.id, actors.checker.id, "Insufficient documentation")
        assert claim.status is ClaimStatus.DENIED
        assert claim.denial_reason == "Insufficient documentation"
        assert claim.settlement_amount is None
        assert claim.final_action_by_user_id == actors.checker.id

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_deny_requires_reason(self, engine, pending_approval_claim, actors, reason):
        with pytest.raises(ValidationError, match="Denial reason"):
            engine.deny(pending_approval_claim.id, actors.checker.id, reason)
        assert engine.require_claim(pending_approval_claim.id).status is ClaimStatus.PENDING_APPROVAL

    def test_approve_and_deny_need_pending_approval(self, engine, under_review_claim, submission, actors):
        fresh = engine.submit_claim(actors.claimant.id, submission)
        for claim_id in (fresh.id, under_review_claim.id):
            with pytest.raises(InvalidTransition):
                engine.approve(claim_id, actors.checker.id)
            with pytest.raises(InvalidTransition):
                engine.deny(claim_id, actors.checker.id, "No")

    def test_decision_is_final(self, engine, pending_approval_claim, actors):
        engine.approve(pending_approval_claim.id, actors.checker.id)
        with pytest.raises(InvalidTransition):
            engine.deny(pending_approval_claim.id, actors.other_checker.id, "Changed my mind")

    def test_reviewer_cannot_decide(self, engine, pending_approval_claim, actors):
        with pytest.raises(Forbidden):
            engine.approve(pending_approval_claim.id, actors.reviewer.id)

    def test_inactive_checker_forbidden(self, engine, directory, pending_approval_claim, actors):
        directory.set_active(actors.checker.id, False)
        with pytest.raises(Forbidden, match="inactive"):
            engine.approve(pending_approval_claim.id, actors.checker.id)

    def test_stale_snapshot_conflicts(self, engine, pending_approval_claim, actors):
        stale = engine.require_claim(pending_approval_claim.id)
        engine.approve(pending_approval_claim.id, actors.checker.id)
        with pytest.raises(Conflict):
            engine.transition(stale, ClaimAction.DENY, actors.other_checker.id, {"denial_reason": "late"})
        claim = engine.load_claim(pending_approval_claim.id)
        assert claim.status is ClaimStatus.APPROVED
        assert claim.denial_reason is None


class TestEndToEnd:
    def test_approval_path_recorded_in_order(self, engine, resolver, actors, submission):
        claim = engine.submit_claim(actors.claimant.id, submission)
        assert claim.status is ClaimStatus.PENDING

        claim = resolver.assign(claim.id, actors.reviewer.id)
        assert claim.status is ClaimStatus.UNDER_REVIEW
        assert claim.assigned_reviewer_id == actors.reviewer.id

        claim = engine.submit_for_approval(claim.id, actors.reviewer.id, "Looks valid")
        assert claim.status is ClaimStatus.PENDING_APPROVAL
        assert claim.reviewer_notes == "Looks valid"

        claim = engine.approve(claim.id, actors.checker.id)
        assert claim.status is ClaimStatus.APPROVED
        assert claim.final_action_by_user_id == actors.checker.id

        final = engine.load_claim(claim.id)
        assert status_path(final.history) == [
            ClaimStatus.PENDING,
            ClaimStatus.UNDER_REVIEW,
            ClaimStatus.PENDING_APPROVAL,
            ClaimStatus.APPROVED,
        ]
        assert final.version == 4

    def test_denial_path(self, engine, pending_approval_claim, actors):
        claim = engine.deny(pending_approval_claim.id, actors.checker.id, "Insufficient documentation")
        assert claim.status is ClaimStatus.DENIED
        assert claim.denial_reason == "Insufficient documentation"
        assert claim.settlement_amount is None
        assert [h.action for h in claim.history] == [
            "created",
            "assign",
            "submit_for_approval",
            "deny",
        ]
