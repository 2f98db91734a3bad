"""SQLAlchemy ORM models — one file per table."""

from confsys.models.conference import Conference
from confsys.models.conference_user import ConferenceUser
from confsys.models.paper import Paper
from confsys.models.paper_content import PaperContent
from confsys.models.paper_user import PaperUser
from confsys.models.review import Review
from confsys.models.user import User
from confsys.models.user_role import UserRole

__all__ = [
    "User",
    "UserRole",
    "Conference",
    "ConferenceUser",
    "Paper",
    "PaperContent",
    "PaperUser",
    "Review",
]
