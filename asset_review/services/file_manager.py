import re
import time
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

from asset_review.utils.config import ALLOWED_MIME_TYPES, MAX_UPLOAD_BYTES, UPLOAD_DIR
from asset_review.utils.logger import get_logger


logger = get_logger("file-manager")

CHUNK_SIZE = 1024 * 1024


class UploadRejected(ValueError):
    """Upload refused before any processing; carries the HTTP status to answer with."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def check_content_type(content_type: Optional[str]) -> str:
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime not in ALLOWED_MIME_TYPES:
        raise UploadRejected("Invalid file type. Only JPEG, PNG, GIF, and WebP are allowed.")
    return mime


def save_temp_upload(
    stream: BinaryIO,
    filename: Optional[str],
    max_bytes: int = MAX_UPLOAD_BYTES,
    upload_dir: Path = UPLOAD_DIR,
) -> Path:
    """
    Copies an upload stream to a uniquely named file under upload_dir.
    Aborts and removes the partial copy once max_bytes is exceeded.
    """
    upload_dir.mkdir(parents=True, exist_ok=True)
    dest = upload_dir / f"{uuid.uuid4().hex}{Path(filename or '').suffix.lower()}"
    size = 0
    with open(dest, "wb") as f:
        while chunk := stream.read(CHUNK_SIZE):
            size += len(chunk)
            if size > max_bytes:
                break
            f.write(chunk)
    if size > max_bytes:
        remove_temp(dest)
        raise UploadRejected(f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB.", status_code=413)
    if size == 0:
        remove_temp(dest)
        raise UploadRejected("No image file provided")
    return dest


def remove_temp(path: Optional[Path]) -> None:
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.error("Could not remove temp upload %s: %s", path, e)


def storage_name(original_name: Optional[str]) -> str:
    """Collision-resistant object name that keeps a readable tail of the original name."""
    base = Path(original_name or "upload").name
    safe = re.sub(r"[^A-Za-z0-9._-]+", "_", base).strip("._") or "upload"
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe}"
