from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from errors import DailyLogNotFound, HabitNotFound, InvalidDateRange, ValidationError
from models.daily_log import DailyLog
from services.daily_log_service import DailyLogService
from tests.helpers import TODAY, make_habit, make_log, make_user


@pytest.fixture
def alice(db):
    return make_user(db, "alice")


@pytest.fixture
def habit(db, alice):
    return make_habit(db, alice)


def count_logs(db, habit_id=None) -> int:
    query = db.query(DailyLog)
    if habit_id is not None:
        query = query.filter_by(habit_id=habit_id)
    return query.count()


class TestUpsert:
    def test_creates_then_updates_same_row(self, db, alice, habit, clock):
        first = DailyLogService.upsert(db, alice.id, habit.id, date(2026, 1, 5), True, None, clock)
        second = DailyLogService.upsert(db, alice.id, habit.id, date(2026, 1, 5), False, "skipped", clock)

        assert second.id == first.id
        assert second.completed is False
        assert second.notes == "skipped"
        assert count_logs(db, habit.id) == 1

    def test_update_clears_notes(self, db, alice, habit, clock):
        DailyLogService.upsert(db, alice.id, habit.id, TODAY, True, "note", clock)
        log = DailyLogService.upsert(db, alice.id, habit.id, TODAY, True, None, clock)
        assert log.notes is None

    def test_today_is_allowed(self, db, alice, habit, clock):
        log = DailyLogService.upsert(db, alice.id, habit.id, TODAY, True, None, clock)
        assert log.log_date == TODAY
        assert log.created_at is not None

    def test_future_date_is_rejected_before_storage(self, clock):
        fake_db = MagicMock()
        with pytest.raises(ValidationError):
            DailyLogService.upsert(fake_db, 1, 1, TODAY + timedelta(days=1), True, None, clock)
        fake_db.query.assert_not_called()
        fake_db.add.assert_not_called()
        fake_db.commit.assert_not_called()

    def test_notes_too_long(self, db, alice, habit, clock):
        with pytest.raises(ValidationError):
            DailyLogService.upsert(db, alice.id, habit.id, TODAY, True, "x" * 1001, clock)
        assert count_logs(db) == 0

    def test_other_users_habit_is_not_found(self, db, habit, clock):
        bob = make_user(db, "bob")
        with pytest.raises(HabitNotFound):
            DailyLogService.upsert(db, bob.id, habit.id, TODAY, True, None, clock)
        assert count_logs(db) == 0

    def test_concurrent_insert_is_retried_as_update(self, db, alice, habit, clock, monkeypatch):
        existing = make_log(db, habit, date(2026, 1, 4), completed=False)
        original_apply = DailyLogService._apply
        calls = []

        def racing_apply(session, h, log_date, completed, notes, clk):
            calls.append(log_date)
            if len(calls) == 1:
                # lost the race: insert without seeing the other writer's row
                session.add(DailyLog(habit_id=h.id, log_date=log_date, completed=completed))
                session.flush()
            return original_apply(session, h, log_date, completed, notes, clk)

        monkeypatch.setattr(DailyLogService, "_apply", staticmethod(racing_apply))

        log = DailyLogService.upsert(db, alice.id, habit.id, date(2026, 1, 4), True, "won", clock)

        assert len(calls) == 2
        assert log.id == existing.id
        assert log.completed is True
        assert log.notes == "won"
        assert count_logs(db, habit.id) == 1


class TestConflictRetry:
    def conflict(self):
        return IntegrityError("INSERT INTO daily_logs", {}, Exception("UNIQUE constraint failed"))

    def test_second_attempt_succeeds(self):
        fake_db = MagicMock()
        outcomes = [self.conflict(), "ok"]

        def write():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        assert DailyLogService._run_with_conflict_retry(fake_db, write) == "ok"
        assert fake_db.rollback.call_count == 1
        assert fake_db.commit.call_count == 1

    def test_gives_up_after_second_conflict(self):
        fake_db = MagicMock()

        def write():
            raise self.conflict()

        with pytest.raises(IntegrityError):
            DailyLogService._run_with_conflict_retry(fake_db, write)
        assert fake_db.rollback.call_count == 2
        fake_db.commit.assert_not_called()

    def test_other_errors_are_not_retried(self):
        fake_db = MagicMock()
        write = MagicMock(side_effect=HabitNotFound())

        with pytest.raises(HabitNotFound):
            DailyLogService._run_with_conflict_retry(fake_db, write)
        assert write.call_count == 1
        fake_db.rollback.assert_called_once()


class TestBatch:
    def entry(self, habit_id, day, completed=True, notes=None):
        return {"habit_id": habit_id, "log_date": day, "completed": completed, "notes": notes}

    def test_results_follow_input_order(self, db, alice, habit, clock):
        other = make_habit(db, alice, name="Read")
        entries = [
            self.entry(habit.id, date(2026, 1, 3)),
            self.entry(other.id, date(2026, 1, 1), notes="ch. 1"),
            self.entry(habit.id, date(2026, 1, 2), completed=False),
        ]
        logs = DailyLogService.upsert_batch(db, alice.id, entries, clock)

        assert [(l.habit_id, l.log_date, l.completed) for l in logs] == [
            (habit.id, date(2026, 1, 3), True),
            (other.id, date(2026, 1, 1), True),
            (habit.id, date(2026, 1, 2), False),
        ]
        assert logs[1].notes == "ch. 1"
        assert count_logs(db) == 3

    def test_updates_existing_rows(self, db, alice, habit, clock):
        existing = make_log(db, habit, date(2026, 1, 2), completed=False)
        logs = DailyLogService.upsert_batch(db, alice.id, [self.entry(habit.id, date(2026, 1, 2))], clock)
        assert logs[0].id == existing.id
        assert logs[0].completed is True

    def test_same_date_twice_keeps_one_row(self, db, alice, habit, clock):
        entries = [
            self.entry(habit.id, date(2026, 1, 2), completed=True),
            self.entry(habit.id, date(2026, 1, 2), completed=False, notes="changed my mind"),
        ]
        logs = DailyLogService.upsert_batch(db, alice.id, entries, clock)

        assert logs[0].id == logs[1].id
        assert count_logs(db, habit.id) == 1
        stored = db.query(DailyLog).one()
        assert stored.completed is False
        assert stored.notes == "changed my mind"

    def test_foreign_habit_rolls_back_whole_batch(self, db, alice, habit, clock):
        existing = make_log(db, habit, date(2026, 1, 1), completed=False)
        bob = make_user(db, "bob")
        bobs_habit = make_habit(db, bob, name="Bob's")

        entries = [
            self.entry(habit.id, date(2026, 1, 1)),
            self.entry(habit.id, date(2026, 1, 2)),
            self.entry(bobs_habit.id, date(2026, 1, 2)),
        ]
        with pytest.raises(HabitNotFound):
            DailyLogService.upsert_batch(db, alice.id, entries, clock)

        assert count_logs(db) == 1
        db.refresh(existing)
        assert existing.completed is False

    def test_future_entry_rejects_batch_before_storage(self, clock):
        fake_db = MagicMock()
        entries = [
            self.entry(1, TODAY),
            self.entry(1, TODAY + timedelta(days=1)),
        ]
        with pytest.raises(ValidationError):
            DailyLogService.upsert_batch(fake_db, 1, entries, clock)
        fake_db.query.assert_not_called()

    def test_empty_batch(self, db, alice, clock):
        with pytest.raises(ValidationError):
            DailyLogService.upsert_batch(db, alice.id, [], clock)

    def test_batch_of_101_is_rejected(self, db, alice, habit, clock):
        entries = [self.entry(habit.id, TODAY - timedelta(days=i)) for i in range(101)]
        with pytest.raises(ValidationError):
            DailyLogService.upsert_batch(db, alice.id, entries, clock)
        assert count_logs(db) == 0

    def test_batch_of_100_is_accepted(self, db, alice, habit, clock):
        entries = [self.entry(habit.id, TODAY - timedelta(days=i)) for i in range(100)]
        assert len(DailyLogService.upsert_batch(db, alice.id, entries, clock)) == 100


class TestQueries:
    def test_range_is_inclusive_and_sorted(self, db, alice, habit):
        for day in (5, 1, 3, 9):
            make_log(db, habit, date(2026, 1, day))
        logs = DailyLogService.get_by_range(db, alice.id, habit.id, date(2026, 1, 1), date(2026, 1, 5))
        assert [l.log_date.day for l in logs] == [1, 3, 5]

    def test_range_start_after_end(self, db, alice, habit):
        with pytest.raises(InvalidDateRange):
            DailyLogService.get_by_range(db, alice.id, habit.id, date(2026, 1, 5), date(2026, 1, 1))

    def test_range_too_long(self, db, alice, habit):
        with pytest.raises(InvalidDateRange):
            DailyLogService.get_by_range(db, alice.id, habit.id, date(2024, 1, 1), date(2025, 6, 1))

    def test_range_for_foreign_habit(self, db, habit):
        bob = make_user(db, "bob")
        with pytest.raises(HabitNotFound):
            DailyLogService.get_by_range(db, bob.id, habit.id, date(2026, 1, 1), date(2026, 1, 5))

    def test_get_and_delete_are_owner_scoped(self, db, alice, habit):
        log = make_log(db, habit, date(2026, 1, 2))
        bob = make_user(db, "bob")

        with pytest.raises(DailyLogNotFound):
            DailyLogService.get_owned(db, bob.id, log.id)
        with pytest.raises(DailyLogNotFound):
            DailyLogService.delete(db, bob.id, log.id)

        assert DailyLogService.get_owned(db, alice.id, log.id).id == log.id
        DailyLogService.delete(db, alice.id, log.id)
        assert count_logs(db) == 0

    def test_to_dict(self, db, habit):
        log = make_log(db, habit, date(2026, 1, 2), notes="ok")
        data = DailyLogService.to_dict(log)
        assert data["log_date"] == "2026-01-02"
        assert data["completed"] is True
        assert data["notes"] == "ok"
        assert data["habit_id"] == habit.id
