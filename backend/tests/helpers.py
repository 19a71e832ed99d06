from datetime import date, datetime

from models.user import User
from models.habit import Habit
from models.daily_log import DailyLog

TODAY = date(2026, 1, 10)


def register(client, username="alice", email=None, password="password123"):
    resp = client.post("/api/v1/auth/register", json={
        "username": username,
        "email": email or f"{username}@example.com",
        "password": password,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def auth_headers(client, username="alice"):
    data = register(client, username)
    return {"Authorization": f"Bearer {data['access_token']}"}


def make_user(db, username="alice") -> User:
    user = User(username=username, email=f"{username}@example.com", password_hash="x")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_habit(db, user, name="Workout", created_at=datetime(2026, 1, 1, 8, 0), **fields) -> Habit:
    habit = Habit(user_id=user.id, name=name, created_at=created_at, **fields)
    db.add(habit)
    db.commit()
    db.refresh(habit)
    return habit


def make_log(db, habit, log_date, completed=True, notes=None) -> DailyLog:
    log = DailyLog(habit_id=habit.id, log_date=log_date, completed=completed, notes=notes)
    db.add(log)
    db.commit()
    db.refresh(log)
    return log
