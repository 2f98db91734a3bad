"""papers table."""

import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Index, String, Text, func, text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from confsys.core.database import Base, TimestampMixin
from confsys.models.enums import PaperState, paper_state_enum


class Paper(TimestampMixin, Base):
    __tablename__ = "papers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    abstract_text: Mapped[str] = mapped_column(Text, nullable=False)
    # free-text names; not every author is a registered user
    authors: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False)
    keywords: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False)
    state: Mapped[PaperState] = mapped_column(
        paper_state_enum,
        nullable=False,
        server_default=text(f"'{PaperState.CREATED.value}'"),
    )
    conference_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conferences.id", ondelete="SET NULL"),
    )

    __table_args__ = (Index("idx_papers_conference", "conference_id"),)


Index("uq_papers_title_lower", func.lower(Paper.title), unique=True)
