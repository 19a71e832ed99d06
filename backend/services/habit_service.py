"""
habit_service.py — Habits, stats & heatmap
CRUD with soft archive and user-controlled ordering. Every lookup is scoped to the
owner; a habit belonging to someone else is reported exactly like a missing one.
"""

import logging
from datetime import date

from sqlalchemy.orm import Session

from errors import HabitNotFound, ValidationError
from models.habit import Habit
from models.daily_log import DailyLog
from services.clock import Clock
from services.heatmap import Heatmap, build_heatmap, validate_date_range
from services.stats_engine import HabitStats, compute_stats

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "description", "color", "display_order")


class HabitService:
    @staticmethod
    def to_dict(h: Habit) -> dict:
        return {
            "id": h.id,
            "name": h.name,
            "description": h.description,
            "color": h.color,
            "created_at": h.created_at.isoformat() if h.created_at else None,
            "archived": bool(h.archived),
            "archived_at": h.archived_at.isoformat() if h.archived_at else None,
            "display_order": h.display_order,
        }

    @staticmethod
    def get_owned(db: Session, user_id: int, habit_id: int) -> Habit:
        """Ownership guard: the habit if *user_id* owns it, else HabitNotFound."""
        h = db.query(Habit).filter_by(id=habit_id, user_id=user_id).first()
        if not h:
            raise HabitNotFound()
        return h

    @staticmethod
    def get_all(db: Session, user_id: int, include_archived: bool = False) -> list[Habit]:
        query = db.query(Habit).filter_by(user_id=user_id)
        if not include_archived:
            query = query.filter(Habit.archived.is_(False))
        return query.order_by(Habit.display_order.asc(), Habit.id.asc()).all()

    @staticmethod
    def create(db: Session, user_id: int, data: dict, clock: Clock) -> Habit:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("name: must not be blank")
        h = Habit(
            user_id=user_id,
            name=name,
            description=data.get("description"),
            color=data.get("color"),
            created_at=clock.now(),
        )
        try:
            db.add(h)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(h)
        return h

    @staticmethod
    def update(db: Session, user_id: int, habit_id: int, data: dict) -> Habit:
        h = HabitService.get_owned(db, user_id, habit_id)
        for k, v in data.items():
            if k not in UPDATABLE_FIELDS:
                continue
            if k == "name":
                v = (v or "").strip()
                if not v:
                    raise ValidationError("name: must not be blank")
            if k == "display_order" and v is None:
                continue
            setattr(h, k, v)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(h)
        return h

    @staticmethod
    def delete(db: Session, user_id: int, habit_id: int):
        """Hard delete; the habit's logs go with it."""
        h = HabitService.get_owned(db, user_id, habit_id)
        try:
            db.delete(h)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info(f"Deleted habit {habit_id} for user {user_id}")

    @staticmethod
    def archive(db: Session, user_id: int, habit_id: int, clock: Clock) -> Habit:
        h = HabitService.get_owned(db, user_id, habit_id)
        if not h.archived:
            h.archived = True
            h.archived_at = clock.now()
            try:
                db.commit()
            except Exception:
                db.rollback()
                raise
            db.refresh(h)
        return h

    @staticmethod
    def reorder(db: Session, user_id: int, orders: list[dict]):
        """Apply [{habit_id, display_order}] in one transaction; any unknown habit aborts all."""
        try:
            for item in orders:
                h = HabitService.get_owned(db, user_id, item["habit_id"])
                h.display_order = item["display_order"]
            db.commit()
        except Exception:
            db.rollback()
            raise

    # ------------------------------------------------------------------
    @staticmethod
    def get_stats(db: Session, user_id: int, habit_id: int, clock: Clock) -> HabitStats:
        h = HabitService.get_owned(db, user_id, habit_id)
        logs = db.query(DailyLog).filter_by(habit_id=h.id).order_by(DailyLog.log_date.asc()).all()
        return compute_stats(logs, h.created_at, clock.today())

    @staticmethod
    def get_heatmap(db: Session, user_id: int, habit_id: int, start_date: date, end_date: date) -> Heatmap:
        h = HabitService.get_owned(db, user_id, habit_id)
        validate_date_range(start_date, end_date)
        logs = db.query(DailyLog).filter(
            DailyLog.habit_id == h.id,
            DailyLog.log_date >= start_date,
            DailyLog.log_date <= end_date,
        ).order_by(DailyLog.log_date.asc()).all()
        return build_heatmap(h.id, start_date, end_date, logs)
