"""Attachment store Protocol — blob storage for payment proofs."""
from typing import Protocol

from src.pp_order.domain.models import Attachment


class AttachmentStoreProtocol(Protocol):
    async def save(self, attachment: Attachment) -> str:
        """Store the blob and return a stable reference string."""
        ...
