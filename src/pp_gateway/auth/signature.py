"""Parsing of the `signature` request header.

The header carries a JSON object produced by the client wallet. Only
`address` is interpreted here; the whole object is forwarded untouched to
the identity service for verification.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.pp_common.errors import UnauthorizedError


class SignedIdentity(BaseModel):
    model_config = ConfigDict(extra="allow")

    address: str = Field(min_length=1)


def parse_signature_header(raw: str | None) -> tuple[SignedIdentity, dict[str, Any]]:
    """Return (parsed identity, raw signature object) or raise UnauthorizedError."""
    if not raw:
        raise UnauthorizedError("Signature is required")
    try:
        obj = json.loads(raw)
    except ValueError:
        raise UnauthorizedError("Signature header is not valid JSON") from None
    if not isinstance(obj, dict):
        raise UnauthorizedError("Signature header must be a JSON object")
    try:
        signed = SignedIdentity.model_validate(obj)
    except ValidationError:
        raise UnauthorizedError("Signature has no address") from None
    return signed, obj
