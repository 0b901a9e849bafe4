"""
HTTP client for the school-management REST API.

Every page talks to the backend through ApiClient. The client:

- sends JSON and the stubbed identity headers (x-user-role / x-user-id)
- applies a per-request timeout (no retries)
- turns every failure into one of the ApiError subclasses from
  schooldash.errors, so callers only need one except clause

Responses are returned as decoded JSON; converting them into dataclasses is
the job of schooldash.model.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional
from urllib.parse import quote

import requests

from schooldash.config import Config
from schooldash.errors import BusinessError, HttpStatusError, NetworkError, RequestTimeout

log = logging.getLogger(__name__)


def _clean_params(params: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Drop None/empty/'all' values so they are not sent as query parameters."""
    if not params:
        return {}
    out: dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == "" or value == "all":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        out[key] = value
    return out


def _error_detail(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or resp.reason or "").strip()
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or resp.reason or "")
    return resp.reason or ""


class ApiClient:
    def __init__(
        self,
        base_url: str,
        *,
        user_role: str = "ADMIN",
        user_id: str = "1",
        timeout: float = 30.0,
        details_timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_role = user_role
        self.user_id = str(user_id)
        self.timeout = timeout
        self.details_timeout = details_timeout
        self.session = session if session is not None else requests.Session()

    @classmethod
    def from_config(cls, config: Config, session: Optional[requests.Session] = None) -> "ApiClient":
        return cls(
            config.api_base_url,
            user_role=config.user_role,
            user_id=config.user_id,
            timeout=config.timeout,
            details_timeout=config.details_timeout,
            session=session,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self, with_body: bool) -> dict[str, str]:
        headers = {"x-user-role": self.user_role, "x-user-id": self.user_id}
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Perform one request and return the decoded JSON body (None for an
        empty body).

        Raises NetworkError, RequestTimeout, HttpStatusError or BusinessError.
        """
        url = f"{self.base_url}{path}"
        query = _clean_params(params)
        log.debug("%s %s %s", method, url, query)
        try:
            resp = self.session.request(
                method,
                url,
                params=query or None,
                json=json,
                headers=self._headers(json is not None),
                timeout=timeout if timeout is not None else self.timeout,
            )
        except requests.Timeout as e:
            raise RequestTimeout("The request timed out. Please try again.", url=url) from e
        except requests.ConnectionError as e:
            raise NetworkError("Could not connect to the server. Check your connection.", url=url) from e
        except requests.RequestException as e:
            raise NetworkError(f"Request failed: {e}", url=url) from e

        if not resp.ok:
            raise HttpStatusError(resp.status_code, _error_detail(resp), url=url)

        if not resp.content:
            return None
        try:
            body = resp.json()
        except ValueError as e:
            raise BusinessError("The server sent an invalid response.", url=url) from e

        if isinstance(body, dict) and (body.get("success") is False or ("error" in body and len(body) == 1)):
            raise BusinessError(str(body.get("error") or "The request was not successful."), url=url)
        return body

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def list_events(self, params: Optional[dict[str, Any]] = None) -> list[dict[str, Any]]:
        query = {"pageSize": 100}
        query.update(params or {})
        body = self.request("GET", "/api/events", params=query)
        items = body.get("items") if isinstance(body, dict) else body
        return items if isinstance(items, list) else []

    def create_event(self, payload: dict[str, Any]) -> dict[str, Any]:
        body = self.request("POST", "/api/events", json=payload)
        return body if isinstance(body, dict) else {}

    def update_event(self, event_id: int, payload: dict[str, Any]) -> Any:
        return self.request("PUT", f"/api/events/{event_id}", json=payload)

    def delete_event(self, event_id: int) -> Any:
        return self.request("DELETE", f"/api/events/{event_id}")

    def list_academic_years(self) -> list[dict[str, Any]]:
        body = self.request("GET", "/api/academic-years")
        return body if isinstance(body, list) else []

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    def list_trends(
        self,
        instructor_id: int,
        start: Optional[str] = None,
        end: Optional[str] = None,
        schedule_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        params = {"instructorId": instructor_id, "start": start, "end": end, "scheduleId": schedule_id}
        body = self.request("GET", "/api/analytics/trends", params=params)
        trends = body.get("trends") if isinstance(body, dict) else None
        return trends if isinstance(trends, list) else []

    def list_student_attendance(self, params: Optional[dict[str, Any]] = None) -> tuple[list[dict[str, Any]], int]:
        """
        Fetch one page of student attendance summaries.

        Returns (items, total). The total reported by the API is trusted; a
        bare list response counts as a single page.
        """
        body = self.request("GET", "/api/attendance/students", params=params)
        if isinstance(body, list):
            return body, len(body)
        if not isinstance(body, dict):
            return [], 0
        items = body.get("items", body.get("students", []))
        items = items if isinstance(items, list) else []
        try:
            total = int(body.get("total", len(items)))
        except (TypeError, ValueError):
            total = len(items)
        return items, total

    def student_details(self, student_id: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        body = self.request(
            "GET",
            f"/api/students/{quote(str(student_id), safe='')}/details",
            params=params,
            timeout=self.details_timeout,
        )
        return body if isinstance(body, dict) else {}

    def update_attendance_status(
        self, student_ids: Iterable[str], status: str, reason: Optional[str] = None
    ) -> Any:
        payload: dict[str, Any] = {"studentIds": list(student_ids), "status": status}
        if reason:
            payload["reason"] = reason
        return self.request("PATCH", "/api/attendance/students", json=payload)

    def soft_delete_student(self, student_id: str, action: str = "archive") -> Any:
        return self.request(
            "PATCH",
            f"/api/students/{quote(str(student_id), safe='')}/soft-delete",
            json={"action": action},
        )

    def analytics(self, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        query = {"noCache": 1}
        query.update(params or {})
        body = self.request("GET", "/api/attendance/analytics", params=query)
        if not isinstance(body, dict):
            return {}
        data = body.get("data", {})
        return data if isinstance(data, dict) else {}

    def analytics_filter_options(self) -> dict[str, Any]:
        body = self.request("GET", "/api/analytics/filter-options")
        return body if isinstance(body, dict) else {}
