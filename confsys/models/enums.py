"""Closed enumerations persisted as PostgreSQL enum types."""

import enum

from sqlalchemy import Enum


class ConferencePhase(str, enum.Enum):
    """Conference lifecycle, declared in its only legal order."""

    CREATED = "CREATED"
    SUBMISSION = "SUBMISSION"
    ASSIGNMENT = "ASSIGNMENT"
    REVIEW = "REVIEW"
    DECISION = "DECISION"
    FINAL = "FINAL"


class PaperState(str, enum.Enum):
    CREATED = "CREATED"
    SUBMITTED = "SUBMITTED"
    REVIEWED = "REVIEWED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class RoleType(str, enum.Enum):
    """Global account capabilities."""

    AUTHOR = "AUTHOR"
    PC_CHAIR = "PC_CHAIR"
    REVIEWER = "REVIEWER"


class PaperRole(str, enum.Enum):
    """Per-paper membership roles."""

    AUTHOR = "AUTHOR"
    REVIEWER = "REVIEWER"


class Decision(str, enum.Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


conference_phase_enum = Enum(ConferencePhase, name="conference_phase")
paper_state_enum = Enum(PaperState, name="paper_state")
role_type_enum = Enum(RoleType, name="role_type")
paper_role_enum = Enum(PaperRole, name="paper_role")
