"""Identity service contracts.

Services depend on these Protocols; IdentityServiceClient is the production
implementation and tests pass fakes.
"""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class IdentityProfile:
    address: str
    display_name: str
    avatar_ref: str


class ProfileLookupProtocol(Protocol):
    async def get_profile(self, identity: str) -> IdentityProfile:
        """Raises UpstreamLookupError when unavailable or unknown."""
        ...


class SignatureVerifierProtocol(Protocol):
    async def verify_signature(self, signature: dict[str, Any]) -> bool: ...
