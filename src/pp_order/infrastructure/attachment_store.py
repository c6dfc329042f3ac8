"""LocalAttachmentStore — payment proofs on the local filesystem.

Files are written as `paymentProof-<uuid hex><ext>` under `directory` and
referenced as `<url_prefix>/<name>`; main.py serves `url_prefix` from the
same directory.
"""
import asyncio
import logging
import uuid
from pathlib import Path

from src.pp_common.errors import InternalError
from src.pp_order.domain.models import Attachment

logger = logging.getLogger(__name__)

_FIELD_NAME = "paymentProof"
_MAX_EXT_LEN = 10


def _safe_suffix(filename: str) -> str:
    suffix = Path(filename).suffix.lower()
    if len(suffix) > _MAX_EXT_LEN or not suffix[1:].isalnum():
        return ""
    return suffix


class LocalAttachmentStore:
    """Implements AttachmentStoreProtocol."""

    def __init__(self, directory: str | Path, url_prefix: str) -> None:
        self._directory = Path(directory)
        self._url_prefix = url_prefix.rstrip("/")

    async def save(self, attachment: Attachment) -> str:
        name = f"{_FIELD_NAME}-{uuid.uuid4().hex}{_safe_suffix(attachment.filename)}"
        path = self._directory / name
        try:
            await asyncio.to_thread(self._write, path, attachment.content)
        except OSError as e:
            logger.exception("failed to store attachment %s", name)
            raise InternalError(f"attachment write failed: {e}") from e
        return f"{self._url_prefix}/{name}"

    def _write(self, path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
