import datetime as dt
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from allowance.database import Base

MIN_SCORE = 1
MAX_SCORE = 5


class DailyScore(Base):
    __tablename__ = "daily_scores"
    __table_args__ = (
        UniqueConstraint("family_member_id", "date", name="uq_daily_scores_member_date"),
        CheckConstraint("score BETWEEN 1 AND 5", name="ck_daily_scores_score_range"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    family_member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("family_members.id", ondelete="CASCADE"), nullable=False,
    )
    budget_cycle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("budget_cycles.id"), nullable=False, index=True,
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    is_vacation: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    member: Mapped["FamilyMember"] = relationship(back_populates="scores")  # noqa: F821
    budget_cycle: Mapped["BudgetCycle"] = relationship(back_populates="scores")  # noqa: F821

    def __repr__(self) -> str:
        return (
            f"<DailyScore(id={self.id}, member={self.family_member_id}, "
            f"date={self.date}, score={self.score})>"
        )
