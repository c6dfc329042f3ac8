"""FastAPI dependency: get_current_identity.

Usage in any protected router:
    from src.pp_gateway.auth.dependencies import get_current_identity

    @router.post("/protected")
    async def protected(identity: str = Depends(get_current_identity)):
        ...

The returned identity is the only identity the services ever trust; any
identity-like field in a request body is ignored.
"""

from typing import Annotated

from fastapi import Depends, Header

from src.pp_common.errors import UnauthorizedError
from src.pp_gateway.auth.signature import parse_signature_header
from src.pp_gateway.identity.dependencies import get_identity_client
from src.pp_gateway.identity.models import SignatureVerifierProtocol


async def get_current_identity(
    verifier: Annotated[SignatureVerifierProtocol, Depends(get_identity_client)],
    signature: Annotated[str | None, Header()] = None,
) -> str:
    """Verify the `signature` header and return the signer's address.

    Raises HTTP 401 (UnauthorizedError) if the header is missing, malformed,
    or rejected by the identity service.
    Raises HTTP 500 (UpstreamLookupError) if the identity service is down.
    """
    signed, raw = parse_signature_header(signature)
    if not await verifier.verify_signature(raw):
        raise UnauthorizedError()
    return signed.address
