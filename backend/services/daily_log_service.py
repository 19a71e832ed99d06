"""
daily_log_service.py — Daily log reconciliation
Logs are written by upsert keyed on (habit, date): the existing row is updated in
place, otherwise a new one is created. The unique constraint on (habit_id, log_date)
is the safety net; when a concurrent writer wins the insert, the write is retried
and lands as an update.
"""

import logging
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import MAX_BATCH_SIZE
from errors import DailyLogNotFound, ValidationError
from models.daily_log import DailyLog
from models.habit import Habit
from services.clock import Clock
from services.habit_service import HabitService
from services.heatmap import validate_date_range

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 1000
# one retry: the second attempt sees the row the concurrent writer created
CONFLICT_ATTEMPTS = 2


class DailyLogService:
    @staticmethod
    def to_dict(log: DailyLog) -> dict:
        return {
            "id": log.id,
            "habit_id": log.habit_id,
            "log_date": log.log_date.isoformat(),
            "completed": bool(log.completed),
            "notes": log.notes,
            "created_at": log.created_at.isoformat() if log.created_at else None,
            "updated_at": log.updated_at.isoformat() if log.updated_at else None,
        }

    @staticmethod
    def _validate_entry(log_date: date, notes: str | None, today: date):
        if log_date > today:
            raise ValidationError("log_date: cannot be in the future")
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"notes: must not exceed {MAX_NOTES_LENGTH} characters")

    @staticmethod
    def get_owned(db: Session, user_id: int, log_id: int) -> DailyLog:
        """Ownership guard for logs, resolved through the parent habit."""
        log = db.query(DailyLog).join(Habit, DailyLog.habit_id == Habit.id).filter(
            DailyLog.id == log_id,
            Habit.user_id == user_id,
        ).first()
        if not log:
            raise DailyLogNotFound()
        return log

    @staticmethod
    def get_by_range(db: Session, user_id: int, habit_id: int, start_date: date, end_date: date) -> list[DailyLog]:
        HabitService.get_owned(db, user_id, habit_id)
        validate_date_range(start_date, end_date)
        return db.query(DailyLog).filter(
            DailyLog.habit_id == habit_id,
            DailyLog.log_date >= start_date,
            DailyLog.log_date <= end_date,
        ).order_by(DailyLog.log_date.asc()).all()

    @staticmethod
    def delete(db: Session, user_id: int, log_id: int):
        log = DailyLogService.get_owned(db, user_id, log_id)
        try:
            db.delete(log)
            db.commit()
        except Exception:
            db.rollback()
            raise

    # ------------------------------------------------------------------
    @staticmethod
    def _apply(db: Session, habit: Habit, log_date: date, completed: bool, notes: str | None, clock: Clock) -> DailyLog:
        """Create-or-update one row and flush it so later lookups in the transaction see it."""
        now = clock.now()
        log = db.query(DailyLog).filter_by(habit_id=habit.id, log_date=log_date).first()
        if log:
            log.completed = completed
            log.notes = notes
            log.updated_at = now
        else:
            log = DailyLog(
                habit=habit,
                log_date=log_date,
                completed=completed,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            db.add(log)
        db.flush()
        return log

    @staticmethod
    def _run_with_conflict_retry(db: Session, write):
        """Run *write* and commit; on a unique-constraint race, roll back and run it again."""
        for attempt in range(1, CONFLICT_ATTEMPTS + 1):
            try:
                result = write()
                db.commit()
                return result
            except IntegrityError:
                db.rollback()
                if attempt == CONFLICT_ATTEMPTS:
                    raise
                logger.info("Concurrent log insert detected, retrying as update")
            except Exception:
                db.rollback()
                raise

    @staticmethod
    def upsert(
        db: Session,
        user_id: int,
        habit_id: int,
        log_date: date,
        completed: bool,
        notes: str | None,
        clock: Clock,
    ) -> DailyLog:
        DailyLogService._validate_entry(log_date, notes, clock.today())

        def write():
            habit = HabitService.get_owned(db, user_id, habit_id)
            return DailyLogService._apply(db, habit, log_date, completed, notes, clock)

        log = DailyLogService._run_with_conflict_retry(db, write)
        db.refresh(log)
        return log

    @staticmethod
    def upsert_batch(db: Session, user_id: int, entries: list[dict], clock: Clock) -> list[DailyLog]:
        """All-or-nothing: one failing entry rolls back every entry of the batch."""
        if not entries:
            raise ValidationError("logs: must not be empty")
        if len(entries) > MAX_BATCH_SIZE:
            raise ValidationError(f"logs: cannot process more than {MAX_BATCH_SIZE} logs at once")

        today = clock.today()
        for entry in entries:
            DailyLogService._validate_entry(entry["log_date"], entry.get("notes"), today)

        def write():
            habits: dict[int, Habit] = {}
            results = []
            for entry in entries:
                habit_id = entry["habit_id"]
                if habit_id not in habits:
                    habits[habit_id] = HabitService.get_owned(db, user_id, habit_id)
                results.append(DailyLogService._apply(
                    db, habits[habit_id], entry["log_date"], entry["completed"], entry.get("notes"), clock
                ))
            return results

        logs = DailyLogService._run_with_conflict_retry(db, write)
        for log in logs:
            db.refresh(log)
        return logs
