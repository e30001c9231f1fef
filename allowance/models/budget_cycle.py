import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from allowance.database import Base


class BudgetCycle(Base):
    __tablename__ = "budget_cycles"
    __table_args__ = (
        UniqueConstraint(
            "family_id", "start_date", "end_date",
            name="uq_budget_cycles_family_bounds",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    family_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("families.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    scores: Mapped[list["DailyScore"]] = relationship(back_populates="budget_cycle")  # noqa: F821

    def __repr__(self) -> str:
        return (
            f"<BudgetCycle(id={self.id}, start={self.start_date}, "
            f"end={self.end_date})>"
        )
