"""Durable store boundary.

``DurableStore`` is the request/response surface the engine talks to; rows
are plain dicts in the store's snake_case shape. ``ApiStore`` implements it
against the backend service over HTTP.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Optional, Protocol

from tracker.data.api_client import ApiClient
from tracker.settings import TrackerSettings


def _iso(value: date | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class DurableStore(Protocol):
    async def select_categories(self, owner_id: str) -> list[dict]: ...

    async def select_habits(self, owner_id: str, active_only: bool = True) -> list[dict]: ...

    async def select_habit(self, owner_id: str, habit_id: str) -> Optional[dict]: ...

    async def insert_habit(self, owner_id: str, fields: dict) -> dict: ...

    async def update_habit(self, owner_id: str, habit_id: str, fields: dict) -> dict: ...

    async def select_daily_log(self, owner_id: str, day: date) -> Optional[dict]: ...

    async def select_daily_logs(self, owner_id: str, start: date, end: date) -> list[dict]: ...

    async def upsert_daily_log(self, owner_id: str, day: date, fields: dict) -> dict: ...

    async def select_completions(
        self,
        owner_id: str,
        daily_log_id: str | None = None,
        habit_ids: Iterable[str] | None = None,
        start: date | None = None,
        end: date | None = None,
        with_habit: bool = False,
    ) -> list[dict]: ...

    async def insert_completion(self, owner_id: str, row: dict) -> dict: ...

    async def delete_completion(self, owner_id: str, daily_log_id: str, habit_id: str) -> None: ...

    async def select_event_completions(self, owner_id: str, start: date, end: date) -> list[dict]: ...

    async def insert_event_completion(self, owner_id: str, event_id: str, target_date: date) -> dict: ...

    async def delete_event_completion(self, owner_id: str, event_id: str, target_date: date) -> None: ...


class ApiStore:
    def __init__(self, client: ApiClient):
        self._client = client

    @classmethod
    def from_settings(cls, settings: TrackerSettings, transport=None) -> "ApiStore":
        return cls(
            ApiClient(
                settings.api_base_url,
                settings.backend_session_secret,
                timeout=settings.api_timeout_seconds,
                transport=transport,
            )
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def select_categories(self, owner_id: str) -> list[dict]:
        payload = await self._client.request("GET", "/v1/categories", owner_id)
        return payload.get("items", [])

    async def select_habits(self, owner_id: str, active_only: bool = True) -> list[dict]:
        payload = await self._client.request(
            "GET", "/v1/habits", owner_id, params={"active_only": str(bool(active_only)).lower()}
        )
        return payload.get("items", [])

    async def select_habit(self, owner_id: str, habit_id: str) -> Optional[dict]:
        return await self._client.request("GET", f"/v1/habits/{habit_id}", owner_id)

    async def insert_habit(self, owner_id: str, fields: dict) -> dict:
        return await self._client.request("POST", "/v1/habits", owner_id, json=fields)

    async def update_habit(self, owner_id: str, habit_id: str, fields: dict) -> dict:
        return await self._client.request("PATCH", f"/v1/habits/{habit_id}", owner_id, json=fields)

    async def select_daily_log(self, owner_id: str, day: date) -> Optional[dict]:
        payload = await self._client.request("GET", f"/v1/daily-logs/{_iso(day)}", owner_id)
        return payload.get("item")

    async def select_daily_logs(self, owner_id: str, start: date, end: date) -> list[dict]:
        payload = await self._client.request(
            "GET", "/v1/daily-logs", owner_id, params={"start": _iso(start), "end": _iso(end)}
        )
        return payload.get("items", [])

    async def upsert_daily_log(self, owner_id: str, day: date, fields: dict) -> dict:
        return await self._client.request("PUT", f"/v1/daily-logs/{_iso(day)}", owner_id, json=fields)

    async def select_completions(
        self,
        owner_id: str,
        daily_log_id: str | None = None,
        habit_ids: Iterable[str] | None = None,
        start: date | None = None,
        end: date | None = None,
        with_habit: bool = False,
    ) -> list[dict]:
        params: dict[str, Any] = {
            "daily_log_id": daily_log_id,
            "start": _iso(start),
            "end": _iso(end),
            "with_habit": "true" if with_habit else None,
        }
        if habit_ids is not None:
            params["habit_id"] = list(habit_ids)
        payload = await self._client.request("GET", "/v1/completions", owner_id, params=params)
        return payload.get("items", [])

    async def insert_completion(self, owner_id: str, row: dict) -> dict:
        body = dict(row)
        body["target_date"] = _iso(body.get("target_date"))
        return await self._client.request("POST", "/v1/completions", owner_id, json=body)

    async def delete_completion(self, owner_id: str, daily_log_id: str, habit_id: str) -> None:
        await self._client.request(
            "DELETE",
            "/v1/completions",
            owner_id,
            params={"daily_log_id": daily_log_id, "habit_id": habit_id},
        )

    async def select_event_completions(self, owner_id: str, start: date, end: date) -> list[dict]:
        payload = await self._client.request(
            "GET", "/v1/event-completions", owner_id, params={"start": _iso(start), "end": _iso(end)}
        )
        return payload.get("items", [])

    async def insert_event_completion(self, owner_id: str, event_id: str, target_date: date) -> dict:
        return await self._client.request(
            "POST",
            "/v1/event-completions",
            owner_id,
            json={"event_id": event_id, "target_date": _iso(target_date)},
        )

    async def delete_event_completion(self, owner_id: str, event_id: str, target_date: date) -> None:
        await self._client.request(
            "DELETE",
            "/v1/event-completions",
            owner_id,
            params={"event_id": event_id, "target_date": _iso(target_date)},
        )
