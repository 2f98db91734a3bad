"""conferences table."""

import uuid

from sqlalchemy import Index, String, Text, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from confsys.core.database import Base, TimestampMixin
from confsys.models.enums import ConferencePhase, conference_phase_enum


class Conference(TimestampMixin, Base):
    __tablename__ = "conferences"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    phase: Mapped[ConferencePhase] = mapped_column(
        conference_phase_enum,
        nullable=False,
        server_default=text(f"'{ConferencePhase.CREATED.value}'"),
    )


# backs the case-insensitive name check against concurrent inserts
Index("uq_conferences_name_lower", func.lower(Conference.name), unique=True)
