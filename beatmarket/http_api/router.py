from fastapi import APIRouter, Request, Query, Body, UploadFile, File, Form
from typing import Optional, Dict, Any

from beatmarket import __version__
from beatmarket.http_api.beats import (
    list_beats_handler,
    upload_beat_handler,
    purchase_handler,
    delete_beat_handler,
)
from beatmarket.http_api.users import (
    get_user_handler,
    list_producers_handler,
    get_producer_handler,
    follow_producer_handler,
    favorite_handler,
)

router = APIRouter()

# Health check endpoint
@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "version": __version__}

# Beat endpoints
@router.get("/beats")
async def list_beats(request: Request, producer: Optional[str] = Query(None)):
    """List beats, optionally filtered by producer id"""
    return await list_beats_handler(request, producer)

@router.post("/upload")
async def upload_beat(
    request: Request,
    title: Optional[str] = Form(None),
    genre: Optional[str] = Form(None),
    bpm: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    artist: Optional[str] = Form(None),
    ownerId: Optional[str] = Form(None),
    producerName: Optional[str] = Form(None),
    producerAvatar: Optional[str] = Form(None),
    cover: Optional[UploadFile] = File(None),
    audio: Optional[UploadFile] = File(None),
):
    """Upload a beat with its cover art and audio"""
    return await upload_beat_handler(
        request, title, genre, bpm, price, artist, ownerId, cover, audio,
        producer_name=producerName, producer_avatar=producerAvatar,
    )

@router.post("/purchase")
async def purchase(request: Request, purchase_data: Dict[str, Any] = Body(...)):
    """Buy a beat"""
    return await purchase_handler(request, purchase_data)

@router.delete("/beat/{beat_id}")
async def delete_beat(
    request: Request,
    beat_id: str,
    delete_data: Optional[Dict[str, Any]] = Body(None),
    userId: Optional[str] = Query(None),
):
    """Delete a beat (owner only)"""
    return await delete_beat_handler(request, beat_id, delete_data, userId)

# User and producer endpoints
@router.get("/user/{user_id}")
async def get_user(request: Request, user_id: str):
    """Get user profile"""
    return await get_user_handler(request, user_id)

@router.get("/producers")
async def list_producers(request: Request):
    """List producers with beat and follower counts"""
    return await list_producers_handler(request)

@router.get("/producer/{producer_id}")
async def get_producer(request: Request, producer_id: str):
    """Get one producer profile"""
    return await get_producer_handler(request, producer_id)

@router.post("/follow")
async def follow_producer(request: Request, follow_data: Dict[str, Any] = Body(...)):
    """Follow a producer"""
    return await follow_producer_handler(request, follow_data)

@router.post("/favorite")
async def favorite(request: Request, favorite_data: Dict[str, Any] = Body(...)):
    """Add or remove a favorite beat"""
    return await favorite_handler(request, favorite_data)
