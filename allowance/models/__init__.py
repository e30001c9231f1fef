"""SQLAlchemy ORM models.

All models are imported here so that Alembic can discover them
via ``Base.metadata`` when generating migrations.
"""

from allowance.models.budget_cycle import BudgetCycle  # noqa: F401
from allowance.models.daily_score import DailyScore  # noqa: F401
from allowance.models.family import Family, FamilySettings  # noqa: F401
from allowance.models.invitation import Invitation  # noqa: F401
from allowance.models.member import FamilyMember  # noqa: F401
from allowance.models.user import RefreshToken, User  # noqa: F401

__all__ = [
    "BudgetCycle",
    "DailyScore",
    "Family",
    "FamilyMember",
    "FamilySettings",
    "Invitation",
    "RefreshToken",
    "User",
]
