from datetime import date
from typing import Optional, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from auth import get_current_user
from database import get_db
from services.clock import Clock, get_clock
from services.habit_service import HabitService
from services.heatmap import resolve_range

router = APIRouter(prefix="/api/v1/habits", tags=["Habits"])

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


def _strip_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


class HabitCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        return _strip_name(v)


class HabitUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)
    display_order: Optional[int] = Field(None, ge=0)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        return _strip_name(v)


class HabitOrderItem(BaseModel):
    habit_id: int
    display_order: int = Field(..., ge=0)


class ReorderRequest(BaseModel):
    habit_orders: List[HabitOrderItem] = Field(..., min_length=1)


@router.get("")
def list_habits(
    include_archived: bool = False,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    habits = HabitService.get_all(db, user_id, include_archived)
    return {"status": "success", "data": [HabitService.to_dict(h) for h in habits]}


@router.post("", status_code=201)
def create_habit(
    habit_data: HabitCreate,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    h = HabitService.create(db, user_id, habit_data.model_dump(), clock)
    return {"status": "success", "data": HabitService.to_dict(h)}


@router.put("/reorder")
def reorder_habits(
    body: ReorderRequest,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    HabitService.reorder(db, user_id, [item.model_dump() for item in body.habit_orders])
    return {"status": "success"}


@router.get("/{habit_id}")
def get_habit(habit_id: int, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    h = HabitService.get_owned(db, user_id, habit_id)
    return {"status": "success", "data": HabitService.to_dict(h)}


@router.put("/{habit_id}")
def update_habit(
    habit_id: int,
    habit_data: HabitUpdate,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    h = HabitService.update(db, user_id, habit_id, habit_data.model_dump(exclude_unset=True))
    return {"status": "success", "data": HabitService.to_dict(h)}


@router.delete("/{habit_id}")
def delete_habit(habit_id: int, user_id: int = Depends(get_current_user), db: Session = Depends(get_db)):
    HabitService.delete(db, user_id, habit_id)
    return {"status": "success"}


@router.put("/{habit_id}/archive")
def archive_habit(
    habit_id: int,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    h = HabitService.archive(db, user_id, habit_id, clock)
    return {"status": "success", "data": HabitService.to_dict(h)}


@router.get("/{habit_id}/stats")
def habit_stats(
    habit_id: int,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    stats = HabitService.get_stats(db, user_id, habit_id, clock)
    return {"status": "success", "data": {"habit_id": habit_id, **stats.to_dict()}}


@router.get("/{habit_id}/heatmap")
def habit_heatmap(
    habit_id: int,
    year: Optional[int] = None,
    month: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: int = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    start, end = resolve_range(clock.today(), start_date, end_date, year, month)
    heatmap = HabitService.get_heatmap(db, user_id, habit_id, start, end)
    return {"status": "success", "data": heatmap.to_dict()}
