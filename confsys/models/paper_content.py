"""paper_contents table — metadata of the uploaded document."""

import uuid

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from confsys.core.database import Base, TimestampMixin


class PaperContent(TimestampMixin, Base):
    __tablename__ = "paper_contents"

    paper_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("papers.id", ondelete="CASCADE"),
        primary_key=True,
    )
    original_file_name: Mapped[str] = mapped_column(String(100), nullable=False)
    # stored on disk under this name, never under the user-supplied one
    generated_file_name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    file_extension: Mapped[str] = mapped_column(String(10), nullable=False)
