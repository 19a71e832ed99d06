"""
api_client.py — HTTP client for the Tally API
Keeps the access/refresh token pair in memory or in an optional token file,
refreshes once on a 401 and unwraps the {"status", "data"} envelope. Base URL
comes from TALLY_API_URL.
"""

import json
import logging
import os
from datetime import date
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_TOKEN_FILE = Path.home() / ".tally" / "auth.json"


class ApiError(Exception):
    """Error response from the API: HTTP status plus the server's error kind and message."""

    def __init__(self, status: int, error: str, message: str):
        self.status = status
        self.error = error
        self.message = message
        super().__init__(f"{status} {error}: {message}")

    @classmethod
    def from_response(cls, resp: httpx.Response) -> "ApiError":
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return cls(
            resp.status_code,
            body.get("error") or resp.reason_phrase,
            body.get("message") or resp.reason_phrase or "Request failed",
        )


class TallyClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        token_file: str | Path | None = None,
    ):
        """*token_file* keeps the session across restarts (e.g. DEFAULT_TOKEN_FILE); None keeps it in memory."""
        self.base_url = (base_url or os.getenv("TALLY_API_URL", DEFAULT_BASE_URL)).rstrip("/")
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)
        self.access_token: str | None = None
        self.refresh_token: str | None = None
        self.user: dict | None = None
        self.token_file = Path(token_file) if token_file else None
        self._load_tokens()

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ── Session ───────────────────────────────────────────────────
    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def _store_tokens(self, data: dict):
        self.access_token = data["access_token"]
        self.refresh_token = data["refresh_token"]
        self.user = data.get("user")
        self._save_tokens()

    def _save_tokens(self):
        if not self.token_file:
            return
        try:
            self.token_file.parent.mkdir(parents=True, exist_ok=True)
            self.token_file.write_text(json.dumps({
                "access_token": self.access_token,
                "refresh_token": self.refresh_token,
                "user": self.user,
            }), encoding="utf-8")
            os.chmod(self.token_file, 0o600)
        except OSError as e:
            # the session still works from memory
            logger.warning(f"Could not save auth tokens to {self.token_file}: {e}")

    def _load_tokens(self):
        if not self.token_file or not self.token_file.exists():
            return
        try:
            data = json.loads(self.token_file.read_text(encoding="utf-8"))
            self.access_token = data.get("access_token")
            self.refresh_token = data.get("refresh_token")
            self.user = data.get("user")
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Could not load auth tokens from {self.token_file}: {e}")

    def login(self, username_or_email: str, password: str) -> dict:
        data = self._send("POST", "/api/v1/auth/login", json={
            "username_or_email": username_or_email,
            "password": password,
        }, authenticated=False)
        self._store_tokens(data)
        return data["user"]

    def register(self, username: str, email: str, password: str) -> dict:
        data = self._send("POST", "/api/v1/auth/register", json={
            "username": username,
            "email": email,
            "password": password,
        }, authenticated=False)
        self._store_tokens(data)
        return data["user"]

    def refresh(self) -> bool:
        """Swap the refresh token for a new pair. On failure the session is cleared."""
        if not self.refresh_token:
            return False
        resp = self._http.post("/api/v1/auth/refresh", json={"refresh_token": self.refresh_token})
        if resp.status_code != 200:
            logger.info("Refresh token rejected, logging out")
            self.logout()
            return False
        self._store_tokens(resp.json()["data"])
        return True

    def logout(self):
        self.access_token = None
        self.refresh_token = None
        self.user = None
        if self.token_file:
            try:
                self.token_file.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not delete auth token file {self.token_file}: {e}")

    # ── Transport ─────────────────────────────────────────────────
    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"} if self.access_token else {}

    def _send(self, method: str, path: str, authenticated: bool = True, **kwargs):
        headers = self._headers() if authenticated else {}
        resp = self._http.request(method, path, headers=headers, **kwargs)
        if resp.status_code == 401 and authenticated and self.refresh():
            resp = self._http.request(method, path, headers=self._headers(), **kwargs)

        if resp.is_error:
            raise ApiError.from_response(resp)
        body = resp.json()
        return body.get("data") if isinstance(body, dict) else body

    # ── Habits ────────────────────────────────────────────────────
    def get_habits(self, include_archived: bool = False) -> list[dict]:
        return self._send("GET", "/api/v1/habits", params={"include_archived": str(include_archived).lower()})

    def create_habit(self, name: str, color: str | None = None, description: str | None = None) -> dict:
        payload = {"name": name}
        if color is not None:
            payload["color"] = color
        if description is not None:
            payload["description"] = description
        return self._send("POST", "/api/v1/habits", json=payload)

    def update_habit(self, habit_id: int, **fields) -> dict:
        return self._send("PUT", f"/api/v1/habits/{habit_id}", json=fields)

    def archive_habit(self, habit_id: int) -> dict:
        return self._send("PUT", f"/api/v1/habits/{habit_id}/archive")

    def delete_habit(self, habit_id: int):
        self._send("DELETE", f"/api/v1/habits/{habit_id}")

    def get_stats(self, habit_id: int) -> dict:
        return self._send("GET", f"/api/v1/habits/{habit_id}/stats")

    def get_heatmap(self, habit_id: int, start_date: date | None = None, end_date: date | None = None,
                    year: int | None = None, month: str | None = None) -> dict:
        params = {}
        if start_date is not None:
            params["start_date"] = start_date.isoformat()
        if end_date is not None:
            params["end_date"] = end_date.isoformat()
        if year is not None:
            params["year"] = year
        if month is not None:
            params["month"] = month
        return self._send("GET", f"/api/v1/habits/{habit_id}/heatmap", params=params)

    # ── Logs ──────────────────────────────────────────────────────
    def get_logs(self, habit_id: int, start_date: date, end_date: date) -> list[dict]:
        return self._send("GET", "/api/v1/logs", params={
            "habit_id": habit_id,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
        })

    def set_log(self, habit_id: int, log_date: date, completed: bool, notes: str | None = None) -> dict:
        return self._send("POST", "/api/v1/logs", json={
            "habit_id": habit_id,
            "log_date": log_date.isoformat(),
            "completed": completed,
            "notes": notes,
        })

    def set_logs(self, entries: list[dict]) -> list[dict]:
        """Batch upsert; entries are {habit_id, log_date, completed, notes?} with date objects or ISO strings."""
        logs = []
        for e in entries:
            d = e["log_date"]
            logs.append({**e, "log_date": d.isoformat() if isinstance(d, date) else d})
        return self._send("POST", "/api/v1/logs/batch", json={"logs": logs})

    def delete_log(self, log_id: int):
        self._send("DELETE", f"/api/v1/logs/{log_id}")
