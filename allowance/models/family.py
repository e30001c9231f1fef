import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from allowance.database import Base


class Family(Base):
    __tablename__ = "families"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    settings: Mapped["FamilySettings"] = relationship(
        back_populates="family", uselist=False, cascade="all, delete-orphan",
    )
    members: Mapped[list["FamilyMember"]] = relationship(  # noqa: F821
        back_populates="family", cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Family(id={self.id}, name={self.name!r})>"


class FamilySettings(Base):
    __tablename__ = "family_settings"
    __table_args__ = (
        CheckConstraint("budget_cycle_start_day BETWEEN 1 AND 31", name="ck_family_settings_start_day"),
        CheckConstraint(
            "vacation_default_score IS NULL OR vacation_default_score BETWEEN 1 AND 5",
            name="ck_family_settings_vacation_score",
        ),
    )

    family_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("families.id", ondelete="CASCADE"), primary_key=True,
    )
    budget_cycle_start_day: Mapped[int] = mapped_column(Integer, nullable=False, default=25)
    # No default: null means vacation days keep their submitted score
    vacation_default_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    family: Mapped["Family"] = relationship(back_populates="settings")

    def __repr__(self) -> str:
        return (
            f"<FamilySettings(family_id={self.family_id}, "
            f"start_day={self.budget_cycle_start_day})>"
        )
