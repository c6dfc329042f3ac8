"""FastAPI dependency: get_identity_client.

The client (and its pooled httpx.AsyncClient) is created once in the app
lifespan and stored on app.state. Tests replace it via
app.dependency_overrides[get_identity_client].
"""

import httpx
from fastapi import FastAPI, Request

from config.settings import settings
from src.pp_gateway.identity.client import IdentityServiceClient


async def open_identity_client(app: FastAPI) -> None:
    app.state.http_client = httpx.AsyncClient(
        timeout=settings.IDENTITY_RPC_TIMEOUT_SECONDS
    )
    app.state.identity_client = IdentityServiceClient(
        app.state.http_client, settings.IDENTITY_RPC_URL
    )


async def close_identity_client(app: FastAPI) -> None:
    http: httpx.AsyncClient | None = getattr(app.state, "http_client", None)
    if http is not None:
        await http.aclose()
        app.state.http_client = None
        app.state.identity_client = None


def get_identity_client(request: Request) -> IdentityServiceClient:
    return request.app.state.identity_client
