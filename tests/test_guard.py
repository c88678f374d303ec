"""Tests for guard.py -- who may do what, and in which order checks fail."""

import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
sys.path.insert(0, os.path.dirname(__file__))

import unittest

import guard
from errors import Forbidden, InvalidState, Conflict
from models import Actor
from protocol import DisputeStatus, DisputeTier, Role, SettlementStatus, TERMINAL_STATUSES
from conftest import make_dispute, T0

ALICE = Actor("alice", Role.MEMBER)
BOB = Actor("bob", Role.COUNCIL)
BOB_MEMBER = Actor("bob", Role.MEMBER)
CAROL = Actor("carol", Role.COUNCIL)
DAVE = Actor("dave", Role.ADMIN)
MALLORY = Actor("mallory", Role.MEMBER)
GUS = Actor("gus", Role.GUEST)


class TestRespond(unittest.TestCase):
    def test_reviewer_can_respond(self):
        guard.check_respond(make_dispute(), BOB)

    def test_only_reviewer(self):
        for actor in (ALICE, CAROL, DAVE):
            with self.assertRaises(Forbidden):
                guard.check_respond(make_dispute(), actor)

    def test_duplicate_response_conflicts(self):
        with self.assertRaises(Conflict):
            guard.check_respond(make_dispute(response_submitted_at=T0), BOB)

    def test_terminal_before_duplicate(self):
        d = make_dispute(status=DisputeStatus.RESOLVED, response_submitted_at=T0)
        with self.assertRaises(InvalidState):
            guard.check_respond(d, BOB)

    def test_wrong_status(self):
        with self.assertRaises(InvalidState):
            guard.check_respond(make_dispute(status=DisputeStatus.APPEALED), BOB)


class TestAssign(unittest.TestCase):
    def test_council_can_assign(self):
        guard.check_assign(make_dispute(), CAROL)

    def test_member_cannot_assign(self):
        with self.assertRaises(Forbidden):
            guard.check_assign(make_dispute(), MALLORY)

    def test_reviewer_never_arbitrates(self):
        for reviewer in (BOB, BOB_MEMBER, Actor("bob", Role.ADMIN)):
            with self.assertRaises(Forbidden):
                guard.check_assign(make_dispute(), reviewer)

    def test_admin_tier_needs_admin(self):
        d = make_dispute(status=DisputeStatus.APPEALED, tier=DisputeTier.ADMIN)
        with self.assertRaises(Forbidden):
            guard.check_assign(d, CAROL)
        guard.check_assign(d, DAVE)

    def test_already_assigned_conflicts(self):
        with self.assertRaises(Conflict):
            guard.check_assign(make_dispute(arbitrator_id="erin", status=DisputeStatus.UNDER_REVIEW), CAROL)

    def test_mediation_status_not_assignable(self):
        with self.assertRaises(InvalidState):
            guard.check_assign(make_dispute(status=DisputeStatus.MEDIATION), CAROL)


class TestResolve(unittest.TestCase):
    def _review(self, **kw):
        kw.setdefault("status", DisputeStatus.UNDER_REVIEW)
        kw.setdefault("arbitrator_id", "carol")
        return make_dispute(**kw)

    def test_arbitrator_resolves(self):
        guard.check_resolve(self._review(), CAROL)

    def test_admin_resolves_without_assignment(self):
        guard.check_resolve(self._review(arbitrator_id=None), DAVE)

    def test_other_council_member_cannot(self):
        with self.assertRaises(Forbidden):
            guard.check_resolve(self._review(), Actor("erin", Role.COUNCIL))

    def test_demoted_arbitrator_cannot(self):
        with self.assertRaises(Forbidden):
            guard.check_resolve(self._review(), Actor("carol", Role.MEMBER))

    def test_reviewer_never_resolves(self):
        with self.assertRaises(Forbidden):
            guard.check_resolve(self._review(arbitrator_id="bob"), BOB)
        with self.assertRaises(Forbidden):
            guard.check_resolve(self._review(reviewer_id="dave"), DAVE)

    def test_admin_tier(self):
        d = self._review(status=DisputeStatus.APPEAL_REVIEW, tier=DisputeTier.ADMIN)
        with self.assertRaises(Forbidden):
            guard.check_resolve(d, CAROL)

    def test_not_resolvable_from_open(self):
        with self.assertRaises(InvalidState):
            guard.check_resolve(self._review(status=DisputeStatus.OPEN), CAROL)


class TestAppealWithdrawRecuse(unittest.TestCase):
    def test_only_disputant_appeals(self):
        d = make_dispute(status=DisputeStatus.RESOLVED, resolved_at=T0)
        guard.check_appeal(d, ALICE)
        with self.assertRaises(Forbidden):
            guard.check_appeal(d, BOB)

    def test_admin_ruling_is_final(self):
        d = make_dispute(status=DisputeStatus.RESOLVED, tier=DisputeTier.ADMIN, resolved_at=T0)
        with self.assertRaises(InvalidState):
            guard.check_appeal(d, ALICE)

    def test_cannot_appeal_open_or_mediated(self):
        for status in (DisputeStatus.OPEN, DisputeStatus.MEDIATED, DisputeStatus.WITHDRAWN):
            with self.assertRaises(InvalidState):
                guard.check_appeal(make_dispute(status=status), ALICE)

    def test_cannot_appeal_unsettled_ruling(self):
        for settlement in (SettlementStatus.PENDING, SettlementStatus.FAILED):
            d = make_dispute(status=DisputeStatus.RESOLVED, resolved_at=T0, settlement_status=settlement)
            with self.assertRaises(InvalidState):
                guard.check_appeal(d, ALICE)
        guard.check_appeal(make_dispute(status=DisputeStatus.RESOLVED, resolved_at=T0,
                                        settlement_status=SettlementStatus.APPLIED), ALICE)

    def test_withdraw(self):
        guard.check_withdraw(make_dispute(), ALICE)
        with self.assertRaises(Forbidden):
            guard.check_withdraw(make_dispute(), BOB)
        with self.assertRaises(InvalidState):
            guard.check_withdraw(make_dispute(status=DisputeStatus.WITHDRAWN), ALICE)

    def test_recuse_only_by_arbitrator(self):
        d = make_dispute(status=DisputeStatus.UNDER_REVIEW, arbitrator_id="carol")
        guard.check_recuse(d, CAROL)
        with self.assertRaises(Forbidden):
            guard.check_recuse(d, DAVE)
        with self.assertRaises(Forbidden):
            guard.check_recuse(make_dispute(), CAROL)


class TestTerminalImmutability(unittest.TestCase):
    def test_every_terminal_status_rejects_mutation(self):
        for status in TERMINAL_STATUSES:
            d = make_dispute(status=status, arbitrator_id="carol")
            with self.assertRaises(InvalidState):
                guard.check_add_comment(d, ALICE)
            with self.assertRaises(InvalidState):
                guard.check_mediate(d, ALICE)
            with self.assertRaises(InvalidState):
                guard.check_recuse(d, CAROL)
            # With nobody assigned the closed state is still what gets reported
            unassigned = make_dispute(status=status)
            for actor in (CAROL, DAVE):
                with self.assertRaises(InvalidState):
                    guard.check_recuse(unassigned, actor)
            with self.assertRaises(InvalidState):
                guard.check_resolve(d, CAROL)
            with self.assertRaises(InvalidState):
                guard.check_attach_evidence(d, ALICE)


class TestVisibility(unittest.TestCase):
    def test_full_view(self):
        d = make_dispute(arbitrator_id="carol")
        for actor in (ALICE, BOB_MEMBER, CAROL, DAVE, Actor("erin", Role.COUNCIL)):
            self.assertTrue(guard.can_view_full(d, actor))
        self.assertFalse(guard.can_view_full(d, MALLORY))
        self.assertFalse(guard.can_view_full(d, GUS))

    def test_comments_need_party_or_admin(self):
        d = make_dispute()
        guard.check_read_comments(d, ALICE)
        guard.check_read_comments(d, DAVE)
        with self.assertRaises(Forbidden):
            guard.check_read_comments(d, CAROL)

    def test_mediate_only_parties(self):
        d = make_dispute()
        guard.check_mediate(d, ALICE)
        guard.check_mediate(d, BOB)
        with self.assertRaises(Forbidden):
            guard.check_mediate(d, DAVE)


class TestFileDispute(unittest.TestCase):
    SUB = {"id": "sub-100", "user_id": "alice", "reviewer_id": "bob"}

    def test_author_can_file(self):
        guard.check_file_dispute(self.SUB, ALICE)

    def test_guest_cannot(self):
        with self.assertRaises(Forbidden):
            guard.check_file_dispute({**self.SUB, "user_id": "gus"}, GUS)

    def test_not_author(self):
        with self.assertRaises(Forbidden):
            guard.check_file_dispute(self.SUB, MALLORY)

    def test_own_review(self):
        with self.assertRaises(Forbidden):
            guard.check_file_dispute({**self.SUB, "reviewer_id": "alice"}, ALICE)

    def test_retry_settlement_admin_only(self):
        guard.check_retry_settlement(DAVE)
        with self.assertRaises(Forbidden):
            guard.check_retry_settlement(CAROL)
