"""Numeric clearance predicate and the named capability thresholds built on it."""

from __future__ import annotations

import enum

# purpose: keep every clearance threshold of the portal in one module
# status: active
# related_docs: DESIGN.md

MIN_CLEARANCE = 0
MAX_CLEARANCE = 5

CLEARANCE_LEVELS: dict[int, dict[str, str]] = {
    0: {"name": "Pending", "title": "Uncleared", "description": "Awaiting verification"},
    1: {"name": "Level 1", "title": "Initiate", "description": "Basic access to assigned projects"},
    2: {"name": "Level 2", "title": "Acolyte", "description": "Can contribute to research and view reports"},
    3: {"name": "Level 3", "title": "Adept", "description": "Can create projects and manage department activities"},
    4: {"name": "Level 4", "title": "Magos", "description": "Cross-department access, personnel management"},
    5: {"name": "Level 5", "title": "Archmagos", "description": "Full administrative access"},
}

SECURITY_CLEARANCE_MAP: dict[str, int] = {
    "GREEN": 1,
    "AMBER": 2,
    "RED": 4,
    "BLACK": 5,
}

PROJECT_CREATE_LEVEL = 3
ACCESS_RULE_LEVEL = 3
REPORT_STATUS_LEVEL = 3
REVIEWER_LEVEL = 4
INVITATION_LEVEL = 4
PERSONNEL_LEVEL = 4
ADMIN_LEVEL = 5


def normalize(level: int | None) -> int:
    return level if level is not None else 0


def has_clearance(actor_clearance: int | None, required: int | None) -> bool:
    """Return True when the actor's clearance meets the required level.

    Missing actor clearance counts as 0 and a missing requirement as 0, so the
    function never raises and is monotonic in both arguments.
    """

    return normalize(actor_clearance) >= normalize(required)


def required_clearance(security_class: str | None) -> int:
    return SECURITY_CLEARANCE_MAP.get(security_class or "", 1)


def can_access_security_class(actor_clearance: int | None, security_class: str | None) -> bool:
    return has_clearance(actor_clearance, required_clearance(security_class))


def visible_security_classes(actor_clearance: int | None) -> list[str]:
    return [name for name, level in SECURITY_CLEARANCE_MAP.items() if has_clearance(actor_clearance, level)]


def clearance_title(level: int | None) -> str:
    return CLEARANCE_LEVELS.get(normalize(level), CLEARANCE_LEVELS[0])["title"]


# capability checks: callers never compare against raw numbers


def can_submit_proposal(actor_clearance: int | None) -> bool:
    return True


def can_create_project(actor_clearance: int | None) -> bool:
    return has_clearance(actor_clearance, PROJECT_CREATE_LEVEL)


def can_manage_access_rules(actor_clearance: int | None) -> bool:
    return has_clearance(actor_clearance, ACCESS_RULE_LEVEL)


def can_change_report_status(actor_clearance: int | None) -> bool:
    return has_clearance(actor_clearance, REPORT_STATUS_LEVEL)


def can_review(actor_clearance: int | None) -> bool:
    return has_clearance(actor_clearance, REVIEWER_LEVEL)


def can_oversee_logbooks(actor_clearance: int | None) -> bool:
    return has_clearance(actor_clearance, REVIEWER_LEVEL)


def can_manage_assignments(actor_clearance: int | None) -> bool:
    return has_clearance(actor_clearance, REVIEWER_LEVEL)


def can_issue_invitations(actor_clearance: int | None) -> bool:
    return has_clearance(actor_clearance, INVITATION_LEVEL)


def can_manage_personnel(actor_clearance: int | None) -> bool:
    return has_clearance(actor_clearance, PERSONNEL_LEVEL)


def can_override_project_edit(actor_clearance: int | None) -> bool:
    return has_clearance(actor_clearance, ADMIN_LEVEL)


def can_expunge(actor_clearance: int | None) -> bool:
    return has_clearance(actor_clearance, ADMIN_LEVEL)


def can_administer(actor_clearance: int | None) -> bool:
    return has_clearance(actor_clearance, ADMIN_LEVEL)


def max_invitation_clearance(issuer_clearance: int | None) -> int:
    """Highest level an issuer may bind to an invitation.

    Issuers below the top tier may only invite strictly below themselves.
    """

    level = normalize(issuer_clearance)
    if level >= ADMIN_LEVEL:
        return MAX_CLEARANCE
    return level - 1


def can_issue_invitation_at(issuer_clearance: int | None, level: int) -> bool:
    return can_issue_invitations(issuer_clearance) and MIN_CLEARANCE <= level <= max_invitation_clearance(issuer_clearance)


class SerpentiusClearance(str, enum.Enum):
    """Council tier of a Serpentius seat, independent of numeric clearance."""

    OUROBOROS_SOVEREIGN = "ouroboros_sovereign"
    OPHIDIAN_APEX = "ophidian_apex"
    VENOM_CIRCLE = "venom_circle"
    SCALE_BEARER = "scale_bearer"
    OUTER_COIL = "outer_coil"

    @property
    def rank(self) -> int:
        return _SERPENTIUS_ORDER[self]

    def outranks(self, other: "SerpentiusClearance") -> bool:
        return self.rank > other.rank


_SERPENTIUS_ORDER: dict[SerpentiusClearance, int] = {
    SerpentiusClearance.OUROBOROS_SOVEREIGN: 4,
    SerpentiusClearance.OPHIDIAN_APEX: 3,
    SerpentiusClearance.VENOM_CIRCLE: 2,
    SerpentiusClearance.SCALE_BEARER: 1,
    SerpentiusClearance.OUTER_COIL: 0,
}
