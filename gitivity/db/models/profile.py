import uuid

from sqlalchemy import JSON, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gitivity.db.models.base import Base, TimestampMixin


class GitivityProfile(Base, TimestampMixin):
    __tablename__ = "gitivity_profiles"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    # Always stored lowercased
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    score_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    stats: Mapped[dict] = mapped_column(JSON, nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        Index("idx_gitivity_profiles_score", "score"),
    )

    def __repr__(self) -> str:
        return f"<GitivityProfile {self.username} score={self.score}>"
