import logging
import re
from pathlib import Path
from uuid import uuid4

from fastapi import UploadFile

from trakly.config import settings
from trakly.core.errors import InvalidUpload

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads"
PDF_MIME = "application/pdf"


def _safe_name(filename: str) -> str:
    name = Path(filename or "").name
    return re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("._") or "file.pdf"


class LocalFileStore:
    """PDF attachments on local disk, addressed by /uploads/<name> URLs."""

    def __init__(self, root: str, max_bytes: int = 5 * 1024 * 1024):
        self.root = Path(root)
        self.max_bytes = max_bytes

    def ensure_root(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def path_for(self, url: str) -> Path:
        # Only the last component is honoured so a URL can never leave the root
        return self.root / Path(url).name

    async def save(self, upload: UploadFile) -> str:
        if upload.content_type != PDF_MIME:
            raise InvalidUpload("Only PDF files are allowed", field="pdf")

        data = await upload.read(self.max_bytes + 1)
        if len(data) > self.max_bytes:
            raise InvalidUpload(
                f"PDF exceeds the {self.max_bytes // (1024 * 1024)} MB limit", field="pdf"
            )
        if not data:
            raise InvalidUpload("Uploaded PDF is empty", field="pdf")

        final_name = f"{uuid4().hex}-{_safe_name(upload.filename)}"
        file_path = self.ensure_root() / final_name
        file_path.write_bytes(data)
        logger.info("Saved upload %s (%d bytes)", final_name, len(data))
        return f"{URL_PREFIX}/{final_name}"

    def load(self, url: str) -> bytes:
        return self.path_for(url).read_bytes()

    def delete(self, url: str) -> bool:
        path = self.path_for(url)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Could not delete %s: %s", path, exc)
            return False
        return True


def get_file_store() -> LocalFileStore:
    return LocalFileStore(settings.UPLOAD_DIR, settings.MAX_UPLOAD_BYTES)
