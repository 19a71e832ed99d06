"""
export.py — Export habits and their logs to CSV or JSON files
"""

import csv
import json
from datetime import date
from pathlib import Path

CSV_HEADER = ["Habit Name", "Date", "Completed", "Notes"]


def export_to_csv(habits: list[dict], logs_by_habit: dict[int, list[dict]], path: str | Path):
    """One row per habit-day: Habit Name,Date,Completed,Notes."""
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for habit in habits:
            for log in logs_by_habit.get(habit["id"], []):
                writer.writerow([
                    habit["name"],
                    log["log_date"],
                    "true" if log["completed"] else "false",
                    log.get("notes") or "",
                ])


def export_to_json(habits: list[dict], logs_by_habit: dict[int, list[dict]], path: str | Path, export_date: date | None = None):
    data = {
        "exportDate": (export_date or date.today()).isoformat(),
        "habits": [
            {
                "id": h["id"],
                "name": h["name"],
                "description": h.get("description"),
                "color": h.get("color"),
                "displayOrder": h.get("display_order", 0),
                "archived": h.get("archived", False),
                "logs": [
                    {"date": log["log_date"], "completed": log["completed"], "notes": log.get("notes")}
                    for log in logs_by_habit.get(h["id"], [])
                ],
            }
            for h in habits
        ],
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
