"""Create the portal schema: directory, projects, proposals, invitations, covenant."""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261017_01"
down_revision: str | Sequence[str] | None = None
branch_labels = None
depends_on = None


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    """Create every portal table with its composite uniqueness constraints."""

    op.create_table(
        "departments",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("codename", sa.String()),
        sa.Column("description", sa.Text()),
        _uuid("head_user_id"),
        sa.Column("icon_symbol", sa.String(), server_default="⛧"),
        sa.Column("color", sa.String(), server_default="#c9a227"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_table(
        "ranks",
        _uuid("id", primary_key=True),
        _uuid("department_id", nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("short_name", sa.String()),
        sa.Column("clearance_level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.Text()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("department_id", "name", name="uq_rank_per_department"),
    )
    op.create_index("ix_ranks_department_id", "ranks", ["department_id"])

    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("title", sa.String()),
        sa.Column("designation", sa.String()),
        sa.Column("clearance_level", sa.Integer(), nullable=False, server_default="0"),
        _uuid("primary_department_id"),
        sa.Column("profile_image", sa.String()),
        sa.Column("bio", sa.Text()),
        sa.Column("specializations", sa.JSON()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_login_at", sa.DateTime()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["primary_department_id"], ["departments.id"]),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_clearance_level", "users", ["clearance_level"])
    op.create_index("ix_users_primary_department_id", "users", ["primary_department_id"])
    op.create_foreign_key("fk_departments_head_user", "departments", "users", ["head_user_id"], ["id"])

    op.create_table(
        "department_members",
        _uuid("id", primary_key=True),
        _uuid("department_id", nullable=False),
        _uuid("user_id", nullable=False),
        _uuid("rank_id"),
        sa.Column("assigned_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        _uuid("assigned_by"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["rank_id"], ["ranks.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["assigned_by"], ["users.id"]),
        sa.UniqueConstraint("department_id", "user_id", name="uq_department_member"),
    )
    op.create_index("ix_department_members_department_id", "department_members", ["department_id"])
    op.create_index("ix_department_members_user_id", "department_members", ["user_id"])
    op.create_index("ix_department_members_rank_id", "department_members", ["rank_id"])

    op.create_table(
        "projects",
        _uuid("id", primary_key=True),
        sa.Column("project_code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("codename", sa.String()),
        sa.Column("object_class", sa.String()),
        sa.Column("security_class", sa.String(), nullable=False, server_default="GREEN"),
        sa.Column("threat_level", sa.String(), nullable=False, server_default="low"),
        _uuid("department_id"),
        sa.Column("site_assignment", sa.String()),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("description", sa.Text()),
        sa.Column("containment_procedures", sa.Text()),
        sa.Column("research_protocols", sa.Text()),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("logbook_sequence", sa.Integer(), nullable=False, server_default="0"),
        _uuid("created_by"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_project_progress"),
    )
    op.create_index("ix_projects_project_code", "projects", ["project_code"], unique=True)
    op.create_index("ix_projects_security_class", "projects", ["security_class"])
    op.create_index("ix_projects_status", "projects", ["status"])
    op.create_index("ix_projects_department_id", "projects", ["department_id"])

    op.create_table(
        "project_departments",
        _uuid("id", primary_key=True),
        _uuid("project_id", nullable=False),
        _uuid("department_id", nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("project_id", "department_id", name="uq_project_department"),
    )
    op.create_index("ix_project_departments_project_id", "project_departments", ["project_id"])

    op.create_table(
        "project_assignments",
        _uuid("id", primary_key=True),
        _uuid("project_id", nullable=False),
        _uuid("user_id", nullable=False),
        sa.Column("role", sa.String(), nullable=False, server_default="researcher"),
        sa.Column("assigned_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        _uuid("assigned_by"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_by"], ["users.id"]),
        sa.UniqueConstraint("project_id", "user_id", name="uq_project_assignment"),
    )
    op.create_index("ix_project_assignments_project_id", "project_assignments", ["project_id"])
    op.create_index("ix_project_assignments_user_id", "project_assignments", ["user_id"])

    op.create_table(
        "project_access_rules",
        _uuid("id", primary_key=True),
        _uuid("project_id", nullable=False),
        sa.Column("access_type", sa.String(), nullable=False),
        _uuid("target_id"),
        sa.Column("min_clearance", sa.Integer()),
        sa.Column("role", sa.String(), nullable=False, server_default="researcher"),
        _created_at(),
        _uuid("created_by"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
    )
    op.create_index("ix_project_access_rules_project_id", "project_access_rules", ["project_id"])
    op.create_index("ix_project_access_rules_access_type", "project_access_rules", ["access_type"])

    op.create_table(
        "logbook_entries",
        _uuid("id", primary_key=True),
        _uuid("project_id", nullable=False),
        _uuid("author_id", nullable=False),
        sa.Column("entry_number", sa.Integer(), nullable=False),
        sa.Column("entry_text", sa.Text(), nullable=False),
        sa.Column("entry_type", sa.String(), nullable=False, server_default="observation"),
        sa.Column("attachments", sa.JSON()),
        sa.Column("min_clearance_to_view", sa.Integer(), server_default="0"),
        sa.Column("redacted_version", sa.Text()),
        sa.Column("is_redacted", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"]),
        sa.UniqueConstraint("project_id", "entry_number", name="uq_logbook_entry_number"),
    )
    op.create_index("ix_logbook_entries_project_id", "logbook_entries", ["project_id"])
    op.create_index("ix_logbook_entries_author_id", "logbook_entries", ["author_id"])
    op.create_index("ix_logbook_entries_created_at", "logbook_entries", ["created_at"])

    op.create_table(
        "project_proposals",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("codename", sa.String()),
        sa.Column("object_class", sa.String()),
        sa.Column("security_class", sa.String(), nullable=False, server_default="GREEN"),
        sa.Column("threat_level", sa.String(), nullable=False, server_default="low"),
        sa.Column("site_assignment", sa.String()),
        sa.Column("description", sa.Text()),
        sa.Column("containment_procedures", sa.Text()),
        sa.Column("research_protocols", sa.Text()),
        sa.Column("justification", sa.Text()),
        sa.Column("estimated_resources", sa.Text()),
        sa.Column("proposed_timeline", sa.Text()),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("admin_notes", sa.Text()),
        sa.Column("rejection_reason", sa.Text()),
        sa.Column("revision_notes", sa.Text()),
        _uuid("submitted_by", nullable=False),
        _uuid("reviewed_by"),
        sa.Column("reviewed_at", sa.DateTime()),
        _uuid("created_project_id"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["submitted_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["created_project_id"], ["projects.id"]),
    )
    op.create_index("ix_project_proposals_status", "project_proposals", ["status"])
    op.create_index("ix_project_proposals_submitted_by", "project_proposals", ["submitted_by"])
    op.create_index("ix_project_proposals_created_at", "project_proposals", ["created_at"])

    op.create_table(
        "proposal_departments",
        _uuid("id", primary_key=True),
        _uuid("proposal_id", nullable=False),
        _uuid("department_id", nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(["proposal_id"], ["project_proposals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("proposal_id", "department_id", name="uq_proposal_department"),
    )
    op.create_index("ix_proposal_departments_proposal_id", "proposal_departments", ["proposal_id"])

    op.create_table(
        "proposal_clearance_requirements",
        _uuid("id", primary_key=True),
        _uuid("proposal_id", nullable=False),
        sa.Column("clearance_level", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.ForeignKeyConstraint(["proposal_id"], ["project_proposals.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_proposal_clearance_requirements_proposal_id",
        "proposal_clearance_requirements",
        ["proposal_id"],
    )

    op.create_table(
        "reports",
        _uuid("id", primary_key=True),
        sa.Column("report_code", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text()),
        sa.Column("report_type", sa.String(), nullable=False, server_default="general"),
        sa.Column("priority", sa.String(), nullable=False, server_default="normal"),
        _uuid("project_id"),
        _uuid("author_id", nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("min_clearance_to_view", sa.Integer(), server_default="1"),
        _created_at(),
        sa.Column("acknowledged_at", sa.DateTime()),
        _uuid("acknowledged_by"),
        sa.Column("resolved_at", sa.DateTime()),
        _uuid("resolved_by"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["acknowledged_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["resolved_by"], ["users.id"]),
    )
    op.create_index("ix_reports_report_code", "reports", ["report_code"], unique=True)
    op.create_index("ix_reports_priority", "reports", ["priority"])
    op.create_index("ix_reports_status", "reports", ["status"])
    op.create_index("ix_reports_author_id", "reports", ["author_id"])

    op.create_table(
        "report_reads",
        _uuid("id", primary_key=True),
        _uuid("report_id", nullable=False),
        _uuid("user_id", nullable=False),
        sa.Column("read_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["report_id"], ["reports.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("report_id", "user_id", name="uq_report_read"),
    )

    op.create_table(
        "invitations",
        _uuid("id", primary_key=True),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("title", sa.String()),
        sa.Column("clearance_level", sa.Integer(), nullable=False, server_default="1"),
        _uuid("department_id"),
        _uuid("rank_id"),
        sa.Column("notes", sa.Text()),
        _uuid("created_by", nullable=False),
        _created_at(),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("used_at", sa.DateTime()),
        _uuid("used_by"),
        sa.ForeignKeyConstraint(["department_id"], ["departments.id"]),
        sa.ForeignKeyConstraint(["rank_id"], ["ranks.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["used_by"], ["users.id"]),
    )
    op.create_index("ix_invitations_token", "invitations", ["token"], unique=True)

    op.create_table(
        "applications",
        _uuid("id", primary_key=True),
        sa.Column("discord_handle", sa.String(), nullable=False),
        sa.Column("email", sa.String()),
        sa.Column("proposed_name", sa.String(), nullable=False),
        sa.Column("proposed_title", sa.String()),
        _uuid("requested_department_id"),
        _uuid("requested_rank_id"),
        sa.Column("username", sa.String()),
        sa.Column("hashed_password", sa.String()),
        sa.Column("motivation", sa.Text()),
        sa.Column("experience", sa.Text()),
        sa.Column("referral", sa.Text()),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("admin_notes", sa.Text()),
        _uuid("reviewed_by"),
        sa.Column("reviewed_at", sa.DateTime()),
        _uuid("created_user_id"),
        _created_at(),
        sa.ForeignKeyConstraint(["requested_department_id"], ["departments.id"]),
        sa.ForeignKeyConstraint(["requested_rank_id"], ["ranks.id"]),
        sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["created_user_id"], ["users.id"]),
    )
    op.create_index("ix_applications_status", "applications", ["status"])
    op.create_index("ix_applications_username", "applications", ["username"])
    op.create_index("ix_applications_created_at", "applications", ["created_at"])

    op.create_table(
        "activity_log",
        _uuid("id", primary_key=True),
        _uuid("user_id"),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("target_type", sa.String()),
        _uuid("target_id"),
        sa.Column("details", sa.JSON()),
        sa.Column("ip_address", sa.String()),
        sa.Column("user_agent", sa.String()),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )
    op.create_index("ix_activity_log_user_id", "activity_log", ["user_id"])
    op.create_index("ix_activity_log_action", "activity_log", ["action"])
    op.create_index("ix_activity_log_created_at", "activity_log", ["created_at"])

    op.create_table(
        "covenant_members",
        _uuid("id", primary_key=True),
        _uuid("user_id", nullable=False, unique=True),
        sa.Column("covenant_title", sa.String(), nullable=False),
        sa.Column("covenant_role", sa.String(), nullable=False, server_default="aspirant"),
        sa.Column("oath_taken_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        _uuid("inducted_by"),
        sa.Column("sigil", sa.String()),
        sa.Column("motto", sa.String()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["inducted_by"], ["users.id"]),
    )
    op.create_index("ix_covenant_members_covenant_role", "covenant_members", ["covenant_role"])

    op.create_table(
        "covenant_invitations",
        _uuid("id", primary_key=True),
        sa.Column("token", sa.String(), nullable=False),
        _uuid("target_user_id"),
        sa.Column("target_name", sa.String(), nullable=False),
        sa.Column("proposed_title", sa.String(), nullable=False),
        sa.Column("proposed_role", sa.String(), nullable=False, server_default="aspirant"),
        sa.Column("proposed_sigil", sa.String()),
        sa.Column("invocation_text", sa.Text()),
        _uuid("created_by", nullable=False),
        _created_at(),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("accepted_at", sa.DateTime()),
        sa.ForeignKeyConstraint(["target_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
    )
    op.create_index("ix_covenant_invitations_token", "covenant_invitations", ["token"], unique=True)

    op.create_table(
        "serpentius_seats",
        _uuid("id", primary_key=True),
        sa.Column("seat_id", sa.String(), nullable=False),
        sa.Column("position", sa.String(), nullable=False),
        sa.Column("serpent_title", sa.String(), nullable=False),
        sa.Column("clearance", sa.String(), nullable=False),
        sa.Column("symbol", sa.String(), nullable=False, server_default="⛧"),
        sa.Column("duties", sa.Text(), nullable=False),
        sa.Column("obligations", sa.Text(), nullable=False),
        _uuid("user_id"),
        sa.Column("member_name", sa.String()),
        sa.Column("member_discord", sa.String()),
        sa.Column("member_image", sa.String()),
        sa.Column("appointed_at", sa.DateTime()),
        _uuid("appointed_by"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["appointed_by"], ["users.id"]),
    )
    op.create_index("ix_serpentius_seats_seat_id", "serpentius_seats", ["seat_id"], unique=True)
    op.create_index("ix_serpentius_seats_user_id", "serpentius_seats", ["user_id"])
    op.create_index("ix_serpentius_seats_clearance", "serpentius_seats", ["clearance"])


def downgrade() -> None:
    """Drop the portal schema in dependency order."""

    for table in (
        "serpentius_seats",
        "covenant_invitations",
        "covenant_members",
        "activity_log",
        "applications",
        "invitations",
        "report_reads",
        "reports",
        "proposal_clearance_requirements",
        "proposal_departments",
        "project_proposals",
        "logbook_entries",
        "project_access_rules",
        "project_assignments",
        "project_departments",
        "projects",
        "department_members",
    ):
        op.drop_table(table)
    op.drop_constraint("fk_departments_head_user", "departments", type_="foreignkey")
    op.drop_table("users")
    op.drop_table("ranks")
    op.drop_table("departments")
