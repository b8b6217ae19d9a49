import logging
from fastapi import Request, HTTPException
from typing import Dict, Any

from beatmarket.errors import LedgerError
from beatmarket.http_api.audit_log import record_outcome
from beatmarket.http_api.beats import get_ledger
from beatmarket.http_api.errors import http_error

logger = logging.getLogger(__name__)


async def get_user_handler(request: Request, user_id: str):
    """User profile with purchases and favorites resolved to beats"""
    try:
        profile = get_ledger(request).get_user_profile(user_id)
        record_outcome(request, "profile_read", user_id)
        return profile
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to get user: {str(e)}")


async def list_producers_handler(request: Request):
    try:
        return get_ledger(request).list_producers()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to list producers: {str(e)}")


async def get_producer_handler(request: Request, producer_id: str):
    try:
        return get_ledger(request).get_producer(producer_id)
    except LedgerError as e:
        record_outcome(request, type(e).__name__)
        raise http_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to get producer: {str(e)}")


async def follow_producer_handler(request: Request, follow_data: Dict[str, Any]):
    """Follow a producer"""
    user_id = follow_data.get("userId")
    try:
        followed = get_ledger(request).follow(user_id, follow_data.get("producerId"))
        record_outcome(request, "followed" if followed else "already_following", user_id)
        if not followed:
            return {"success": True, "message": "Already following this producer"}
        return {"success": True, "message": "Producer followed successfully"}

    except LedgerError as e:
        record_outcome(request, type(e).__name__, user_id)
        raise http_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to follow producer: {str(e)}")


async def favorite_handler(request: Request, favorite_data: Dict[str, Any]):
    """Add a beat to, or remove it from, a user's favorites"""
    user_id = favorite_data.get("userId")
    action = favorite_data.get("action")
    try:
        changed = get_ledger(request).favorite(user_id, favorite_data.get("beatId"), action)
        record_outcome(request, f"favorite_{action}" if changed else f"favorite_{action}_unchanged", user_id)
        return {"success": True}

    except LedgerError as e:
        record_outcome(request, type(e).__name__, user_id)
        raise http_error(e)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update favorites: {str(e)}")
