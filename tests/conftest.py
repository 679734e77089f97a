"""
Shared test fixtures: test database, fake language-model gateway, identities.

Environment is set before any ``luna`` import so settings and the engine pick
up the test database.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_luna.db"
os.environ["AUTH_REQUIRED"] = "true"
os.environ["OPENAI_API_KEY"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import date
from typing import Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from luna.db import init_db, drop_db, async_session_maker
from luna.exceptions import GatewayError
from luna.main import app
from luna.services import create_access_token, create_user, get_llm_service
from luna.sse import iter_sse_payloads


class FakeGateway:
    """
    Stand-in for LLMService.

    ``failures`` maps a 1-based call number to how many fragments that call
    yields before raising ``error``.
    """

    model = "fake-model"

    def __init__(
        self,
        fragments: Optional[List[str]] = None,
        failures: Optional[Dict[int, int]] = None,
        error: Optional[Exception] = None,
        transcript: str = "Good morning! The Moon invites you to slow down today.",
    ):
        self.fragments = fragments if fragments is not None else ["Dear ", "friend, ", "the stars smile."]
        self.failures = failures or {}
        self.error = error or GatewayError("upstream unavailable")
        self.transcript = transcript
        self.calls: List[dict] = []
        self.prompts: List[str] = []
        self.finished = 0  # Streams that ran to the end or were closed

    @property
    def answer(self) -> str:
        return "".join(self.fragments)

    async def complete(self, system_prompt, history, user_context=None):
        self.calls.append({
            "system_prompt": system_prompt,
            "history": list(history),
            "user_context": user_context,
        })
        fail_after = self.failures.get(len(self.calls))
        try:
            for i, fragment in enumerate(self.fragments):
                if fail_after is not None and i >= fail_after:
                    raise self.error
                yield fragment
            if fail_after is not None:
                raise self.error
        finally:
            self.finished += 1

    async def complete_text(self, prompt, max_tokens=None):
        self.prompts.append(prompt)
        return self.transcript


def sse_payloads(body: str) -> List[dict]:
    return list(iter_sse_payloads(body.splitlines()))


def auth_headers_for(user_id: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest_asyncio.fixture
async def database():
    """Create a fresh database for each test"""
    await init_db()
    yield
    await drop_db()


@pytest_asyncio.fixture
async def db_session(database):
    """Get a database session"""
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest_asyncio.fixture
async def client(database, gateway):
    """Async test client with the fake gateway injected"""
    app.dependency_overrides[get_llm_service] = lambda: gateway
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_identity(plan: str = "essencia", email: str = "ana@example.com", whatsapp: str = "11999887766"):
    async with async_session_maker() as db:
        return await create_user(db, {
            "email": email,
            "whatsapp": whatsapp,
            "full_name": "Ana Paula Costa",
            "birth_date": date(1990, 8, 10),
            "birth_city": "Rio de Janeiro",
            "plan": plan,
        })


@pytest_asyncio.fixture
async def identity(database):
    """Tier-1 identity (3 questions a day)"""
    return await make_identity()
