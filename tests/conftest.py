"""
Pytest configuration for the beat market.

Provides fixtures for:
- In-process MongoDB (mongomock)
- Local media store on a temporary directory
- Ledger and HTTP client wired to both
"""

from __future__ import annotations

from typing import Callable, Generator

import mongomock
import pytest
from fastapi.testclient import TestClient

from beatmarket.ledger import Ledger, MediaUpload
from beatmarket.main import create_app
from beatmarket.storage.local_storage import LocalMediaStore


@pytest.fixture
def db():
    return mongomock.MongoClient()["beatmarket_test"]


@pytest.fixture
def media_store(tmp_path) -> LocalMediaStore:
    return LocalMediaStore(str(tmp_path / "uploads"))


@pytest.fixture
def ledger(db, media_store) -> Ledger:
    return Ledger(db, media_store, env="test")


@pytest.fixture
def client(db, media_store) -> Generator[TestClient, None, None]:
    app = create_app(database=db, media_store=media_store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def cover() -> MediaUpload:
    return MediaUpload(filename="cover.png", content_type="image/png", data=b"\x89PNG fake cover")


@pytest.fixture
def audio() -> MediaUpload:
    return MediaUpload(filename="beat.mp3", content_type="audio/mpeg", data=b"ID3 fake audio")


@pytest.fixture
def make_beat(ledger: Ledger, cover: MediaUpload, audio: MediaUpload) -> Callable[..., dict]:
    """Upload a beat through the ledger with sensible defaults"""

    def _make_beat(owner_id: str = "producer-1", price: str = "9.99", **overrides) -> dict:
        fields = {
            "title": "Night Drive",
            "genre": "trap",
            "artist": "DJ Test",
            "bpm": 140,
            "price": price,
            "owner_id": owner_id,
            "cover": cover,
            "audio": audio,
        }
        fields.update(overrides)
        return ledger.upload_beat(**fields)

    return _make_beat
