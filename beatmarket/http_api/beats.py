"""
Beats API
Handles:
- Beat upload (cover + audio to the media store)
- Catalog listing
- Purchases
- Owner-only deletion
"""

import logging
from fastapi import Request, HTTPException, UploadFile
from typing import Optional, Dict, Any

from beatmarket.errors import LedgerError
from beatmarket.ledger import Ledger, MediaUpload
from beatmarket.http_api.audit_log import record_outcome
from beatmarket.http_api.errors import http_error

logger = logging.getLogger(__name__)


def get_ledger(request: Request) -> Ledger:
    return request.app.state.ledger


async def read_media(upload: Optional[UploadFile]) -> Optional[MediaUpload]:
    if upload is None:
        return None
    data = await upload.read()
    return MediaUpload(filename=upload.filename, content_type=upload.content_type, data=data)


async def list_beats_handler(request: Request, producer: Optional[str] = None):
    """List all beats, optionally only one producer's"""
    try:
        return get_ledger(request).list_beats(producer)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to list beats: {str(e)}")


async def upload_beat_handler(
    request: Request,
    title: Optional[str],
    genre: Optional[str],
    bpm: Optional[str],
    price: Optional[str],
    artist: Optional[str],
    owner_id: Optional[str],
    cover: Optional[UploadFile],
    audio: Optional[UploadFile],
    producer_name: Optional[str] = None,
    producer_avatar: Optional[str] = None,
):
    """Create a beat from multipart form data"""
    try:
        beat = get_ledger(request).upload_beat(
            title=title,
            genre=genre,
            artist=artist,
            bpm=bpm,
            price=price,
            owner_id=owner_id,
            cover=await read_media(cover),
            audio=await read_media(audio),
            producer_name=producer_name,
            producer_avatar=producer_avatar,
        )
        record_outcome(request, "beat_created", owner_id)
        return {"success": True, "beat": beat}

    except LedgerError as e:
        logger.error(f"❌ Beat upload rejected: {e}")
        record_outcome(request, type(e).__name__, owner_id)
        raise http_error(e)
    except Exception as e:
        logger.error(f"❌ Beat upload failed: {e}")
        raise HTTPException(status_code=500, detail=f"Upload failed: {str(e)}")


async def purchase_handler(request: Request, purchase_data: Dict[str, Any]):
    """Record a purchase; buying an owned beat again changes nothing"""
    user_id = purchase_data.get("userId")
    try:
        recorded = get_ledger(request).purchase(user_id, purchase_data.get("beatId"))
        record_outcome(request, "purchase_recorded" if recorded else "already_owned", user_id)
        if not recorded:
            return {"success": True, "message": "Beat already purchased"}
        return {"success": True, "message": "Purchase recorded"}

    except LedgerError as e:
        record_outcome(request, type(e).__name__, user_id)
        raise http_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Purchase failed: {str(e)}")


async def delete_beat_handler(request: Request, beat_id: str, delete_data: Optional[Dict[str, Any]], user_id: Optional[str] = None):
    """Delete a beat; only its owner may do this"""
    requester_id = (delete_data or {}).get("userId") or user_id
    try:
        removed_from = get_ledger(request).delete_beat(beat_id, requester_id)
        record_outcome(request, "beat_deleted", requester_id)
        return {"success": True, "message": f"Beat deleted, removed from {removed_from} favorites"}

    except LedgerError as e:
        record_outcome(request, type(e).__name__, requester_id)
        raise http_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete beat: {str(e)}")
