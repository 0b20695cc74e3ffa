"""
Shared fixtures for offline agent tests.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.config import get_config


ORIGIN = "https://mallikarjuna.test"
FONTS_URL = "https://fonts.googleapis.com/css2?family=Poppins:wght@400;600;700&family=Inter:wght@400;500;600&display=swap"
ICONS_URL = "https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.0.0/css/all.min.css"


class FakeSite:
    """In-process stand-in for the hospital site, its CDNs and its API."""

    def __init__(self):
        self.offline = False
        self.assets: Dict[str, Tuple[int, bytes, str]] = {
            f"{ORIGIN}/": (200, b"<html>home</html>", "text/html"),
            f"{ORIGIN}/index.html": (200, b"<html>home</html>", "text/html"),
            f"{ORIGIN}/styles-minified.css": (200, b"body{}", "text/css"),
            f"{ORIGIN}/script-optimized.js": (200, b"console.log(1)", "application/javascript"),
            f"{ORIGIN}/images/logo.jpg.png": (200, b"\x89PNG-logo", "image/png"),
            f"{ORIGIN}/images/dr-gopathi.jpg.png": (200, b"\x89PNG-doctor", "image/png"),
            FONTS_URL: (200, b"@font-face{}", "text/css"),
            ICONS_URL: (200, b".fa{}", "text/css"),
        }
        self.requests: List[httpx.Request] = []
        self.appointments: List[Dict[str, Any]] = []
        self.appointment_status: Callable[[Dict[str, Any]], int] = lambda payload: 201

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def network_calls(self, method: Optional[str] = None) -> int:
        return sum(1 for r in self.requests if method is None or r.method == method)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("network unreachable", request=request)

        if request.method == "POST" and request.url.path == "/api/appointments":
            payload = json.loads(request.content)
            status = self.appointment_status(payload)
            if 200 <= status < 300:
                self.appointments.append(payload)
            return httpx.Response(status, json={"received": 200 <= status < 300})

        asset = next(
            (value for url, value in self.assets.items() if httpx.URL(url) == request.url),
            None,
        )
        if asset is None:
            return httpx.Response(404, text="not found")
        status, body, content_type = asset
        return httpx.Response(status, content=body, headers={"Content-Type": content_type})


@pytest.fixture
def site():
    return FakeSite()


@pytest.fixture
def config(tmp_path):
    return get_config(
        "offline_agent",
        8020,
        site_origin=ORIGIN,
        queue_db_path=str(tmp_path / "MallikarjunaHospitalDB.sqlite3"),
        cache_backend="memory",
        enable_metrics=True,
    )
