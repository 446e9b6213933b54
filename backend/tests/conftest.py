from __future__ import annotations

import sys
from pathlib import Path

import httpx
import pytest

# Add backend folder to sys.path so `import fiscal_receipt...` works in tests when running from backend root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))


@pytest.fixture
def unreachable_client():
    """AsyncClient whose every request fails like an unresolvable host."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Name or service not known", request=request)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def page_client():
    """Factory for an AsyncClient that serves ``html`` with ``status``."""

    def build(html: str, status: int = 200) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, text=html, headers={"content-type": "text/html; charset=utf-8"})

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return build
