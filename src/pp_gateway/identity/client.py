"""IdentityServiceClient — JSON-RPC over HTTP to the identity node proxy.

Two calls are used:
  getuserprofile  {"addresses": [addr]}  -> [{"address", "name", "i"}, ...]
  checksignature  {"signature": {...}}   -> bool

Every transport, HTTP or RPC-level failure surfaces as UpstreamLookupError;
the upstream detail is logged here and never reaches the API response.
"""

import logging
import uuid
from typing import Any

import httpx

from src.pp_common.errors import UpstreamLookupError
from src.pp_gateway.identity.models import IdentityProfile

logger = logging.getLogger(__name__)


class IdentityServiceClient:
    """Implements ProfileLookupProtocol and SignatureVerifierProtocol."""

    def __init__(self, http: httpx.AsyncClient, rpc_url: str) -> None:
        self._http = http
        self._rpc_url = rpc_url

    async def get_profile(self, identity: str) -> IdentityProfile:
        result = await self._call("getuserprofile", {"addresses": [identity]})
        if not isinstance(result, list) or not result:
            logger.error("identity lookup returned no profile for %s", identity)
            raise UpstreamLookupError(f"no profile for {identity}")
        entry = result[0]
        try:
            return IdentityProfile(
                address=str(entry.get("address") or identity),
                display_name=str(entry["name"]),
                avatar_ref=str(entry.get("i") or ""),
            )
        except (KeyError, AttributeError, TypeError) as e:
            logger.error("malformed profile for %s: %r", identity, entry)
            raise UpstreamLookupError(f"malformed profile for {identity}") from e

    async def verify_signature(self, signature: dict[str, Any]) -> bool:
        result = await self._call("checksignature", {"signature": signature})
        return bool(result)

    async def _call(self, method: str, params: dict[str, Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": uuid.uuid4().hex[:12],
            "method": method,
            "params": params,
        }
        try:
            resp = await self._http.post(self._rpc_url, json=payload)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error("identity rpc %s: HTTP %d", method, e.response.status_code)
            raise UpstreamLookupError(f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("identity rpc %s unreachable: %s", method, e)
            raise UpstreamLookupError(str(e)) from e
        except ValueError as e:
            logger.error("identity rpc %s returned non-JSON body", method)
            raise UpstreamLookupError("non-JSON response") from e

        if not isinstance(body, dict):
            raise UpstreamLookupError("unexpected response shape")
        if body.get("error"):
            logger.error("identity rpc %s error: %s", method, body["error"])
            raise UpstreamLookupError(str(body["error"]))
        return body.get("result")
