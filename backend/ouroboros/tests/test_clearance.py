import itertools

import pytest

from ouroboros import clearance
from ouroboros.clearance import SerpentiusClearance
from ouroboros.services import proposals as proposal_service


def test_has_clearance_is_monotonic():
    levels = [None, 0, 1, 2, 3, 4, 5]
    for actor, required in itertools.product(levels, levels):
        if clearance.has_clearance(actor, required):
            higher = [lvl for lvl in levels if clearance.normalize(lvl) >= clearance.normalize(actor)]
            assert all(clearance.has_clearance(lvl, required) for lvl in higher)
            lower_req = [lvl for lvl in levels if clearance.normalize(lvl) <= clearance.normalize(required)]
            assert all(clearance.has_clearance(actor, req) for req in lower_req)


def test_missing_clearance_counts_as_zero():
    assert clearance.has_clearance(None, 0)
    assert clearance.has_clearance(None, None)
    assert not clearance.has_clearance(None, 1)
    assert clearance.clearance_title(None) == "Uncleared"


def test_security_class_ceiling():
    assert clearance.required_clearance("GREEN") == 1
    assert clearance.required_clearance("RED") == 4
    assert clearance.required_clearance("UNKNOWN") == 1
    assert clearance.can_access_security_class(4, "RED")
    assert not clearance.can_access_security_class(4, "BLACK")
    assert clearance.visible_security_classes(2) == ["GREEN", "AMBER"]
    assert clearance.visible_security_classes(0) == []


@pytest.mark.parametrize(
    "issuer, level, allowed",
    [
        (3, 1, False),
        (4, 3, True),
        (4, 4, False),
        (4, 5, False),
        (5, 5, True),
        (5, 0, True),
    ],
)
def test_invitation_ceiling(issuer, level, allowed):
    assert clearance.can_issue_invitation_at(issuer, level) is allowed


def test_capability_thresholds():
    assert clearance.can_submit_proposal(0)
    assert not clearance.can_create_project(2) and clearance.can_create_project(3)
    assert not clearance.can_review(3) and clearance.can_review(4)
    assert not clearance.can_expunge(4) and clearance.can_expunge(5)
    assert clearance.max_invitation_clearance(4) == 3
    assert clearance.max_invitation_clearance(5) == 5


def test_serpentius_order_is_independent():
    assert SerpentiusClearance.OUROBOROS_SOVEREIGN.outranks(SerpentiusClearance.OPHIDIAN_APEX)
    assert SerpentiusClearance.SCALE_BEARER.outranks(SerpentiusClearance.OUTER_COIL)
    assert not SerpentiusClearance.OUTER_COIL.outranks(SerpentiusClearance.VENOM_CIRCLE)
    assert SerpentiusClearance("venom_circle").rank == 2


def test_proposal_transition_table():
    assert proposal_service.can_transition("pending", "under_review")
    assert proposal_service.can_transition("under_review", "approved")
    assert proposal_service.can_transition("pending", "rejected")
    assert not proposal_service.can_transition("under_review", "pending")
    assert not proposal_service.can_transition("revision", "approved")
    for terminal in ("approved", "rejected"):
        assert not any(proposal_service.can_transition(terminal, target) for target in proposal_service.REVIEW_TRANSITIONS)
