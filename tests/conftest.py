# tests/conftest.py
from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from codes_validation.config import CodeSource, EnvironmentName, ServiceName, Settings

PARTNER = 198


@pytest.fixture()
def base_env() -> dict[str, str]:
    return {
        "LT_AC_ENVIRONMENT": "local",
        "LT_AC_SERVICE": "fever2",
        "USER_TOKEN": "abcd1234secret",
    }


@pytest.fixture()
def booking_settings(tmp_path: Path) -> Settings:
    return Settings(
        environment=EnvironmentName.STAGING,
        service=ServiceName.FEVER2,
        token="abcd1234secret",
        vus=4,
        code_source=CodeSource.BOOKING,
        booking_url="http://booking.test",
        session_id=77,
        orders=2,
        tickets_per_order=3,
        codes_file=tmp_path / "codes.json",
    )


class FakeBookingApi:
    """
    In-memory booking API for httpx.MockTransport.

    ``codes_by_order`` holds the codes returned for each successive order
    (cart ids are 1-based in creation order). ``fail`` maps a step name and
    order index to the status code that step should return.
    """

    def __init__(self, codes_by_order: list[list[str]], fail: dict[tuple[str, int], int] | None = None):
        self.codes_by_order = codes_by_order
        self.fail = fail or {}
        self.carts = 0
        self.calls: list[tuple[str, str]] = []
        self.create_bodies: list[dict] = []

    def _maybe_fail(self, step: str, order: int) -> httpx.Response | None:
        status = self.fail.get((step, order))
        if status is not None:
            return httpx.Response(status, json={"detail": f"{step} refused"})
        return None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))
        prefix = f"/b2b/2.0/partners/{PARTNER}"

        if request.method == "POST" and path == f"{prefix}/carts/":
            self.carts += 1
            self.create_bodies.append(json.loads(request.content))
            return self._maybe_fail("create_cart", self.carts) or httpx.Response(201, json={"id": self.carts})

        parts = path[len(prefix) :].strip("/").split("/")
        if parts[0] == "carts" and parts[2] == "prepare":
            order = int(parts[1])
            return self._maybe_fail("prepare_booking", order) or httpx.Response(204)
        if parts[0] == "carts" and parts[2] == "book-free":
            order = int(parts[1])
            return self._maybe_fail("book_cart", order) or httpx.Response(
                200, json={"ticket_id": f"T{order}"}
            )
        if parts[0] == "tickets" and parts[2] == "codes":
            order = int(parts[1].lstrip("T"))
            return self._maybe_fail("fetch_codes", order) or httpx.Response(
                200, json=[{"code": c} for c in self.codes_by_order[order - 1]]
            )
        return httpx.Response(404)


@pytest.fixture()
def fake_booking_api() -> Callable[..., FakeBookingApi]:
    return FakeBookingApi
