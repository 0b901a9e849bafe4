"""
In-memory stand-ins for requests.Session used by the tests.

Routes map (METHOD, path) to a response, a list of responses (served in
order, the last one repeats) or an exception to raise. Every request is
recorded in `calls`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlparse


class FakeResponse:
    def __init__(self, body: Any = None, status_code: int = 200, reason: str = "OK", text: Optional[str] = None):
        self.status_code = status_code
        self.reason = reason
        self._body = body
        if text is not None:
            self.text = text
        elif body is None:
            self.text = ""
        else:
            self.text = json.dumps(body)
        self.content = self.text.encode("utf-8")

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        if self._body is None:
            return json.loads(self.text)
        return self._body


@dataclass
class Call:
    method: str
    path: str
    params: dict[str, Any]
    json: Any
    headers: dict[str, str]
    timeout: Any


@dataclass
class FakeSession:
    routes: dict[tuple[str, str], Any] = field(default_factory=dict)
    calls: list[Call] = field(default_factory=list)

    def add(self, method: str, path: str, response: Any) -> None:
        self.routes[(method.upper(), path)] = response

    def request(self, method, url, params=None, json=None, headers=None, timeout=None):
        path = urlparse(url).path
        self.calls.append(Call(method.upper(), path, dict(params or {}), json, dict(headers or {}), timeout))

        route = self.routes.get((method.upper(), path))
        if route is None:
            return FakeResponse({"error": "not found"}, status_code=404, reason="Not Found")
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if isinstance(route, BaseException):
            raise route
        if callable(route):
            return route(params=params, json=json)
        return route

    def calls_to(self, method: str, prefix: str = "") -> list[Call]:
        return [c for c in self.calls if c.method == method.upper() and c.path.startswith(prefix)]


def event_json(event_id: int, day: str, start_time: str = "09:00:00", end_time: str = "10:00:00", **extra: Any) -> dict[str, Any]:
    data = {
        "id": event_id,
        "title": f"Event {event_id}",
        "description": "",
        "date": day,
        "startTime": start_time,
        "endTime": end_time,
        "eventType": "ACADEMIC",
        "priority": "NORMAL",
        "status": "DRAFT",
        "createdBy": "admin",
    }
    data.update(extra)
    return data


def student_json(student_id: str, **extra: Any) -> dict[str, Any]:
    data = {
        "studentId": student_id,
        "studentName": f"Student {student_id}",
        "studentIdNum": f"2024-{student_id}",
        "department": "CS",
        "course": "BSCS",
        "yearLevel": "FIRST_YEAR",
        "section": "A",
        "totalClasses": 10,
        "attendedClasses": 9,
        "lateClasses": 1,
        "absentClasses": 1,
        "status": "ACTIVE",
    }
    data.update(extra)
    return data
