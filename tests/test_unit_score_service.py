"""Score reconciliation against the per-test database session."""

import uuid
from datetime import date, datetime

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from allowance.core.errors import ConfigurationMissing, NotFoundError, ValidationError
from allowance.models.budget_cycle import BudgetCycle
from allowance.models.daily_score import DailyScore
from allowance.models.family import Family, FamilySettings
from allowance.models.member import FamilyMember
from allowance.models.user import User
from allowance.services import score_service


async def _child(db, *, with_settings: bool = True, vacation_default: int | None = 3) -> FamilyMember:
    user = User(email=f"score-{uuid.uuid4().hex[:8]}@test.de", password_hash="x")
    db.add(user)
    await db.flush()
    family = Family(name="Score Family", owner_id=user.id)
    db.add(family)
    await db.flush()
    if with_settings:
        db.add(FamilySettings(
            family_id=family.id,
            budget_cycle_start_day=25,
            vacation_default_score=vacation_default,
        ))
    member = FamilyMember(family_id=family.id, name="Ben", role="child")
    db.add(member)
    await db.flush()
    return member


class TestValidateScore:
    @pytest.mark.parametrize("score", [1, 3, 5])
    def test_accepts_range(self, score):
        score_service.validate_score(score)

    @pytest.mark.parametrize("score", [0, 6, -1, True, 2.5])
    def test_rejects_outside_range(self, score):
        with pytest.raises(ValidationError):
            score_service.validate_score(score)


class TestSaveDailyScore:
    async def test_save_then_read_back(self, db_session):
        member = await _child(db_session)
        result = await score_service.save_daily_score(
            db_session, member.id, date(2024, 3, 10), 4, notes="helped with dishes",
        )
        assert result.success, result.error

        stored = await score_service.get_daily_score(db_session, member.id, date(2024, 3, 10))
        assert stored.score == 4
        assert stored.notes == "helped with dishes"
        assert stored.is_vacation is False

        cycle = await db_session.get(BudgetCycle, stored.budget_cycle_id)
        assert (cycle.start_date, cycle.end_date) == (date(2024, 2, 25), date(2024, 3, 24))

    async def test_vacation_default_overrides_score(self, db_session):
        member = await _child(db_session, vacation_default=3)
        result = await score_service.save_daily_score(
            db_session, member.id, date(2024, 3, 10), 5, is_vacation=True,
        )
        assert result.success
        assert result.data.score == 3
        assert result.data.is_vacation is True

    async def test_vacation_without_default_keeps_score(self, db_session):
        member = await _child(db_session, vacation_default=None)
        result = await score_service.save_daily_score(
            db_session, member.id, date(2024, 3, 10), 5, is_vacation=True,
        )
        assert result.data.score == 5

    async def test_null_vacation_default_survives_insert(self, db_session):
        member = await _child(db_session, vacation_default=None)
        stored = await db_session.scalar(
            select(FamilySettings.vacation_default_score)
            .where(FamilySettings.family_id == member.family_id)
        )
        assert stored is None

    @pytest.mark.parametrize("column, value", [
        ("vacation_default_score", 6),
        ("budget_cycle_start_day", 32),
    ])
    async def test_settings_ranges_enforced_by_schema(self, db_session, column, value):
        user = User(email=f"check-{uuid.uuid4().hex[:8]}@test.de", password_hash="x")
        db_session.add(user)
        await db_session.flush()
        family = Family(name="Check Family", owner_id=user.id)
        db_session.add(family)
        await db_session.flush()

        values = {"budget_cycle_start_day": 25, "vacation_default_score": 3, column: value}
        with pytest.raises(IntegrityError):
            async with db_session.begin_nested():
                db_session.add(FamilySettings(family_id=family.id, **values))
                await db_session.flush()

    async def test_second_save_updates_same_record(self, db_session):
        member = await _child(db_session)
        first = await score_service.save_daily_score(db_session, member.id, date(2024, 3, 10), 2)
        second = await score_service.save_daily_score(db_session, member.id, date(2024, 3, 10), 5)
        assert first.data.id == second.data.id
        assert second.data.score == 5
        assert second.data.budget_cycle_id == first.data.budget_cycle_id

        count = await db_session.scalar(
            select(func.count(DailyScore.id)).where(DailyScore.family_member_id == member.id)
        )
        assert count == 1

    async def test_empty_notes_stored_as_null(self, db_session):
        member = await _child(db_session)
        result = await score_service.save_daily_score(
            db_session, member.id, date(2024, 3, 10), 3, notes="",
        )
        assert result.data.notes is None

    async def test_datetime_uses_local_day(self, db_session):
        member = await _child(db_session)
        result = await score_service.save_daily_score(
            db_session, member.id, datetime(2024, 3, 24, 23, 45), 3,
        )
        assert result.data.date == date(2024, 3, 24)

    async def test_invalid_score_rejected_before_io(self, db_session):
        result = await score_service.save_daily_score(db_session, uuid.uuid4(), date(2024, 3, 10), 9)
        assert isinstance(result.error, ValidationError)

    async def test_unknown_member(self, db_session):
        result = await score_service.save_daily_score(db_session, uuid.uuid4(), date(2024, 3, 10), 3)
        assert isinstance(result.error, NotFoundError)

    async def test_missing_settings_blocks_save(self, db_session):
        member = await _child(db_session, with_settings=False)
        result = await score_service.save_daily_score(db_session, member.id, date(2024, 3, 10), 3)
        assert isinstance(result.error, ConfigurationMissing)
        assert await score_service.get_daily_score(db_session, member.id, date(2024, 3, 10)) is None


class TestDeleteDailyScore:
    async def test_delete_existing(self, db_session):
        member = await _child(db_session)
        saved = await score_service.save_daily_score(db_session, member.id, date(2024, 3, 10), 4)
        result = await score_service.delete_daily_score(db_session, saved.data.id)
        assert result.success
        assert result.data is True
        assert await score_service.get_daily_score(db_session, member.id, date(2024, 3, 10)) is None

    async def test_delete_missing_id_is_reported(self, db_session):
        result = await score_service.delete_daily_score(db_session, uuid.uuid4())
        assert not result.success
        assert isinstance(result.error, NotFoundError)


class TestSummaries:
    async def test_list_in_range_ordered(self, db_session):
        member = await _child(db_session)
        for day, score in [(12, 2), (10, 4), (11, 5)]:
            await score_service.save_daily_score(db_session, member.id, date(2024, 3, day), score)

        records = await score_service.list_daily_scores(
            db_session, member.id, date(2024, 3, 10), date(2024, 3, 11),
        )
        assert [(r.date.day, r.score) for r in records] == [(10, 4), (11, 5)]

    async def test_cycle_summary(self, db_session):
        member = await _child(db_session, vacation_default=3)
        await score_service.save_daily_score(db_session, member.id, date(2024, 3, 1), 5)
        await score_service.save_daily_score(db_session, member.id, date(2024, 3, 2), 4)
        saved = await score_service.save_daily_score(
            db_session, member.id, date(2024, 3, 3), 5, is_vacation=True,
        )
        # Outside the cycle
        await score_service.save_daily_score(db_session, member.id, date(2024, 3, 30), 1)

        cycle = await db_session.get(BudgetCycle, saved.data.budget_cycle_id)
        summary = await score_service.summarize_cycle(db_session, member.id, cycle)
        assert summary.scored_days == 3
        assert summary.vacation_days == 1
        assert summary.average_score == 4.0
