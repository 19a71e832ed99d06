from datetime import date
from typing import Optional, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from auth import get_current_user
from config import MAX_BATCH_SIZE
from database import get_db
from services.clock import Clock, get_clock
from services.daily_log_service import DailyLogService, MAX_NOTES_LENGTH
from errors import InvalidDateRange

router = APIRouter(prefix="/api/v1/logs", tags=["Daily Logs"])


class LogUpsert(BaseModel):
    habit_id: int
    log_date: date
    completed: bool
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)


class BatchLogUpsert(BaseModel):
    logs: List[LogUpsert] = Field(..., min_length=1, max_length=MAX_BATCH_SIZE)


@router.get("")
def list_logs(
    habit_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if start_date is None or end_date is None:
        raise InvalidDateRange("Both start_date and end_date must be provided")
    logs = DailyLogService.get_by_range(db, user_id, habit_id, start_date, end_date)
    return {"status": "success", "data": [DailyLogService.to_dict(l) for l in logs]}


@router.post("", status_code=201)
def upsert_log(
    body: LogUpsert,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Create or update the log for (habit_id, log_date)."""
    log = DailyLogService.upsert(db, user_id, body.habit_id, body.log_date, body.completed, body.notes, clock)
    return {"status": "success", "data": DailyLogService.to_dict(log)}


@router.post("/batch", status_code=201)
def upsert_logs_batch(
    body: BatchLogUpsert,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    logs = DailyLogService.upsert_batch(db, user_id, [e.model_dump() for e in body.logs], clock)
    return {"status": "success", "data": [DailyLogService.to_dict(l) for l in logs]}


@router.get("/{log_id}")
def get_log(log_id: int, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    log = DailyLogService.get_owned(db, user_id, log_id)
    return {"status": "success", "data": DailyLogService.to_dict(log)}


@router.delete("/{log_id}")
def delete_log(log_id: int, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    DailyLogService.delete(db, user_id, log_id)
    return {"status": "success"}
