from datetime import datetime, date
from sqlalchemy import Integer, String, Text, DateTime, Date, func, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from attune.db.base import Base


class DailyAttunement(Base):
    """
    The synthesized question/answer pair for one user on one calendar day.

    Uniqueness: (user_id, date). A second insert for the same pair is treated
    as success by the service layer, which returns the existing row.
    """

    __tablename__ = "daily_attunements"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_attunement_user_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    insightful_question: Mapped[str] = mapped_column(Text, nullable=False)
    synthesized_answer: Mapped[str] = mapped_column(Text, nullable=False)
    based_on: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON provenance: logCount and the *Available flags",
    )
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
