import uuid
import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Department(Base):
    __tablename__ = "departments"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, unique=True, nullable=False)
    codename = Column(String)
    description = Column(Text)
    head_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", use_alter=True))
    icon_symbol = Column(String, default="⛧")
    color = Column(String, default="#c9a227")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    ranks = relationship(
        "Rank",
        back_populates="department",
        cascade="all, delete-orphan",
        order_by="Rank.sort_order.desc()",
    )


class Rank(Base):
    __tablename__ = "ranks"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    department_id = Column(UUID(as_uuid=True), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    short_name = Column(String)
    clearance_level = Column(Integer, nullable=False, default=1)
    sort_order = Column(Integer, nullable=False, default=0)
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    department = relationship("Department", back_populates="ranks")

    __table_args__ = (sa.UniqueConstraint("department_id", "name", name="uq_rank_per_department"),)


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    display_name = Column(String, nullable=False)
    title = Column(String)
    designation = Column(String)
    clearance_level = Column(Integer, nullable=False, default=0, index=True)
    primary_department_id = Column(UUID(as_uuid=True), ForeignKey("departments.id"), index=True)
    profile_image = Column(String)
    bio = Column(Text)
    specializations = Column(JSON, default=list)
    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    last_login_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    primary_department = relationship("Department", foreign_keys=[primary_department_id])
    memberships = relationship(
        "DepartmentMembership",
        back_populates="user",
        foreign_keys="DepartmentMembership.user_id",
        cascade="all, delete-orphan",
    )
    assignments = relationship(
        "ProjectAssignment",
        back_populates="user",
        foreign_keys="ProjectAssignment.user_id",
    )


class DepartmentMembership(Base):
    __tablename__ = "department_members"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    department_id = Column(UUID(as_uuid=True), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    rank_id = Column(UUID(as_uuid=True), ForeignKey("ranks.id", ondelete="SET NULL"), index=True)
    assigned_at = Column(DateTime, default=utcnow, nullable=False)
    assigned_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))

    user = relationship("User", back_populates="memberships", foreign_keys=[user_id])
    department = relationship("Department")
    rank = relationship("Rank")

    __table_args__ = (sa.UniqueConstraint("department_id", "user_id", name="uq_department_member"),)


class Project(Base):
    __tablename__ = "projects"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    codename = Column(String)
    object_class = Column(String)
    security_class = Column(String, nullable=False, default="GREEN", index=True)
    threat_level = Column(String, nullable=False, default="low")
    department_id = Column(UUID(as_uuid=True), ForeignKey("departments.id"), index=True)
    site_assignment = Column(String)
    status = Column(String, nullable=False, default="active", index=True)
    description = Column(Text)
    containment_procedures = Column(Text)
    research_protocols = Column(Text)
    progress = Column(Integer, nullable=False, default=0)
    # last logbook entry number handed out; bumped with an atomic UPDATE
    logbook_sequence = Column(Integer, nullable=False, default=0)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    department = relationship("Department")
    assignments = relationship("ProjectAssignment", back_populates="project", cascade="all, delete-orphan")
    access_rules = relationship("ProjectAccessRule", back_populates="project", cascade="all, delete-orphan")
    departments = relationship("ProjectDepartment", cascade="all, delete-orphan")

    __table_args__ = (sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_project_progress"),)


class ProjectDepartment(Base):
    __tablename__ = "project_departments"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    department_id = Column(UUID(as_uuid=True), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)

    __table_args__ = (sa.UniqueConstraint("project_id", "department_id", name="uq_project_department"),)


class ProjectAssignment(Base):
    __tablename__ = "project_assignments"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String, nullable=False, default="researcher")
    assigned_at = Column(DateTime, default=utcnow, nullable=False)
    assigned_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))

    project = relationship("Project", back_populates="assignments")
    user = relationship("User", back_populates="assignments", foreign_keys=[user_id])

    __table_args__ = (sa.UniqueConstraint("project_id", "user_id", name="uq_project_assignment"),)


class ProjectAccessRule(Base):
    __tablename__ = "project_access_rules"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    access_type = Column(String, nullable=False, index=True)
    target_id = Column(UUID(as_uuid=True))
    min_clearance = Column(Integer)
    role = Column(String, nullable=False, default="researcher")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))

    project = relationship("Project", back_populates="access_rules")


class LogbookEntry(Base):
    __tablename__ = "logbook_entries"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    entry_number = Column(Integer, nullable=False)
    entry_text = Column(Text, nullable=False)
    entry_type = Column(String, nullable=False, default="observation")
    attachments = Column(JSON)
    min_clearance_to_view = Column(Integer, default=0)
    redacted_version = Column(Text)
    is_redacted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    author = relationship("User")

    __table_args__ = (sa.UniqueConstraint("project_id", "entry_number", name="uq_logbook_entry_number"),)


class ProjectProposal(Base):
    __tablename__ = "project_proposals"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    codename = Column(String)
    object_class = Column(String)
    security_class = Column(String, nullable=False, default="GREEN")
    threat_level = Column(String, nullable=False, default="low")
    site_assignment = Column(String)
    description = Column(Text)
    containment_procedures = Column(Text)
    research_protocols = Column(Text)
    justification = Column(Text)
    estimated_resources = Column(Text)
    proposed_timeline = Column(Text)
    status = Column(String, nullable=False, default="pending", index=True)
    admin_notes = Column(Text)
    rejection_reason = Column(Text)
    revision_notes = Column(Text)
    submitted_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    reviewed_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    reviewed_at = Column(DateTime)
    created_project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"))
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    submitter = relationship("User", foreign_keys=[submitted_by])
    reviewer = relationship("User", foreign_keys=[reviewed_by])
    departments = relationship(
        "ProposalDepartment",
        back_populates="proposal",
        cascade="all, delete-orphan",
    )
    clearance_requirements = relationship(
        "ProposalClearanceRequirement",
        back_populates="proposal",
        cascade="all, delete-orphan",
    )


class ProposalDepartment(Base):
    __tablename__ = "proposal_departments"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    proposal_id = Column(UUID(as_uuid=True), ForeignKey("project_proposals.id", ondelete="CASCADE"), nullable=False, index=True)
    department_id = Column(UUID(as_uuid=True), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)

    proposal = relationship("ProjectProposal", back_populates="departments")
    department = relationship("Department")

    __table_args__ = (sa.UniqueConstraint("proposal_id", "department_id", name="uq_proposal_department"),)


class ProposalClearanceRequirement(Base):
    __tablename__ = "proposal_clearance_requirements"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    proposal_id = Column(UUID(as_uuid=True), ForeignKey("project_proposals.id", ondelete="CASCADE"), nullable=False, index=True)
    clearance_level = Column(Integer, nullable=False)
    description = Column(Text)

    proposal = relationship("ProjectProposal", back_populates="clearance_requirements")


class Report(Base):
    __tablename__ = "reports"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    report_code = Column(String, unique=True, nullable=False, index=True)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    summary = Column(Text)
    report_type = Column(String, nullable=False, default="general")
    priority = Column(String, nullable=False, default="normal", index=True)
    project_id = Column(UUID(as_uuid=True), ForeignKey("projects.id"))
    author_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="pending", index=True)
    min_clearance_to_view = Column(Integer, default=1)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    acknowledged_at = Column(DateTime)
    acknowledged_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    resolved_at = Column(DateTime)
    resolved_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))

    author = relationship("User", foreign_keys=[author_id])
    project = relationship("Project")


class ReportRead(Base):
    __tablename__ = "report_reads"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    report_id = Column(UUID(as_uuid=True), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    read_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (sa.UniqueConstraint("report_id", "user_id", name="uq_report_read"),)


class Invitation(Base):
    __tablename__ = "invitations"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    token = Column(String, unique=True, nullable=False, index=True)
    display_name = Column(String, nullable=False)
    title = Column(String)
    clearance_level = Column(Integer, nullable=False, default=1)
    department_id = Column(UUID(as_uuid=True), ForeignKey("departments.id"))
    rank_id = Column(UUID(as_uuid=True), ForeignKey("ranks.id", ondelete="SET NULL"))
    notes = Column(Text)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used_at = Column(DateTime)
    used_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))

    creator = relationship("User", foreign_keys=[created_by])
    department = relationship("Department")
    rank = relationship("Rank")


class Application(Base):
    __tablename__ = "applications"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    discord_handle = Column(String, nullable=False)
    email = Column(String)
    proposed_name = Column(String, nullable=False)
    proposed_title = Column(String)
    requested_department_id = Column(UUID(as_uuid=True), ForeignKey("departments.id"))
    requested_rank_id = Column(UUID(as_uuid=True), ForeignKey("ranks.id"))
    username = Column(String, index=True)
    hashed_password = Column(String)
    motivation = Column(Text)
    experience = Column(Text)
    referral = Column(Text)
    status = Column(String, nullable=False, default="pending", index=True)
    admin_notes = Column(Text)
    reviewed_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    reviewed_at = Column(DateTime)
    created_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    requested_department = relationship("Department")
    requested_rank = relationship("Rank")


class ActivityLog(Base):
    __tablename__ = "activity_log"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), index=True)
    action = Column(String, nullable=False, index=True)
    target_type = Column(String)
    target_id = Column(UUID(as_uuid=True))
    details = Column(JSON, default=dict)
    ip_address = Column(String)
    user_agent = Column(String)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class CovenantMember(Base):
    __tablename__ = "covenant_members"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    covenant_title = Column(String, nullable=False)
    covenant_role = Column(String, nullable=False, default="aspirant", index=True)
    oath_taken_at = Column(DateTime, nullable=False, default=utcnow)
    inducted_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    sigil = Column(String)
    motto = Column(String)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", foreign_keys=[user_id])


class CovenantInvitation(Base):
    __tablename__ = "covenant_invitations"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    token = Column(String, unique=True, nullable=False, index=True)
    target_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    target_name = Column(String, nullable=False)
    proposed_title = Column(String, nullable=False)
    proposed_role = Column(String, nullable=False, default="aspirant")
    proposed_sigil = Column(String)
    invocation_text = Column(Text)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    accepted_at = Column(DateTime)

    creator = relationship("User", foreign_keys=[created_by])


class SerpentiusSeat(Base):
    __tablename__ = "serpentius_seats"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    seat_id = Column(String, unique=True, nullable=False, index=True)
    position = Column(String, nullable=False)
    serpent_title = Column(String, nullable=False)
    clearance = Column(String, nullable=False, index=True)
    symbol = Column(String, nullable=False, default="⛧")
    duties = Column(Text, nullable=False)
    obligations = Column(Text, nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
    member_name = Column(String)
    member_discord = Column(String)
    member_image = Column(String)
    appointed_at = Column(DateTime)
    appointed_by = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
