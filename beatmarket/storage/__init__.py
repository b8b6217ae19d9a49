import os
import logging

from beatmarket.storage.local_storage import LocalMediaStore
from beatmarket.storage.s3_service import S3MediaStore, s3_configured

logger = logging.getLogger(__name__)


def create_media_store():
    """S3 when the bucket settings are present, local disk otherwise"""
    if s3_configured():
        return S3MediaStore()

    upload_dir = os.getenv("UPLOAD_DIR", os.path.join(os.getcwd(), "uploads"))
    logger.warning(f"⚠️  S3 not configured, storing media on disk: {upload_dir}")
    return LocalMediaStore(upload_dir, base_url=os.getenv("PUBLIC_BASE_URL"))
