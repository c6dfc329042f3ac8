"""Integration-test fixtures.

Requires a running PostgreSQL with migrations applied (`alembic upgrade head`
against DATABASE_URL); the whole directory is skipped when it is not
reachable. All integration tests share a single event loop so that the
module-level SQLAlchemy async engine pool stays valid across the session.

Only the identity node is replaced (it is an external service); storage,
routers, services and the per-offer locks are the real ones.
"""

from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.main import app
from src.pp_common.database import engine
from src.pp_gateway.identity.dependencies import get_identity_client
from src.pp_gateway.identity.models import IdentityProfile


class StubIdentityNode:
    """Accepts any signature whose `sig` is "ok"; every address has a profile."""

    async def get_profile(self, identity: str) -> IdentityProfile:
        return IdentityProfile(address=identity, display_name=f"user {identity[:8]}", avatar_ref="")

    async def verify_signature(self, signature: dict[str, Any]) -> bool:
        return signature.get("sig") == "ok"


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def migrated_database() -> None:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM offers LIMIT 1"))
    except (OSError, SQLAlchemyError) as e:
        pytest.skip(f"PostgreSQL with the offers schema is not available: {e}")


@pytest.fixture(autouse=True)
def identity_node() -> Any:
    app.dependency_overrides[get_identity_client] = StubIdentityNode
    yield
    app.dependency_overrides.pop(get_identity_client, None)


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
