"""Local disk media store, used when no S3 bucket is configured"""
import os
import logging
from typing import Optional

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads"


class LocalMediaStore:
    """Same interface as S3MediaStore, backed by a directory served at /uploads"""

    def __init__(self, root_dir: str, base_url: str = None):
        self.root_dir = os.path.abspath(root_dir)
        self.base_url = (base_url or "").rstrip("/")
        os.makedirs(self.root_dir, exist_ok=True)
        logger.info(f"✅ Local media store initialized at: {self.root_dir}")

    def _path_for(self, file_key: str) -> str:
        path = os.path.abspath(os.path.join(self.root_dir, file_key))
        if os.path.commonpath([path, self.root_dir]) != self.root_dir:
            raise ValueError(f"Media key escapes upload directory: {file_key}")
        return path

    def upload_file(self, file_data: bytes, file_key: str, content_type: str = "application/octet-stream") -> Optional[str]:
        """Write the file under root_dir and return its public URL, or None on failure"""
        try:
            path = self._path_for(file_key)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(file_data)
        except (OSError, ValueError) as e:
            logger.error(f"❌ Failed to store {file_key}: {e}")
            return None

        logger.info(f"📤 Stored file locally: {file_key} ({len(file_data)} bytes)")
        return self.get_public_url(file_key)

    def delete_file(self, file_key: str) -> bool:
        try:
            os.remove(self._path_for(file_key))
            logger.info(f"✅ Deleted local file: {file_key}")
            return True
        except FileNotFoundError:
            # Already gone, nothing left to release
            return True
        except (OSError, ValueError) as e:
            logger.error(f"❌ Failed to delete local file {file_key}: {e}")
            return False

    def get_public_url(self, file_key: str) -> str:
        return f"{self.base_url}{URL_PREFIX}/{file_key}"
