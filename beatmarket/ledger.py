"""
Marketplace Ledger
Owns the beats and users collections and enforces:
- upload (media stored, beat created with zeroed counters)
- purchase (entitlement recorded once, sales/earned kept in step)
- favorite / follow (set semantics)
- owner-only delete with favorites fan-out
"""

import os
import uuid
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

from beatmarket.errors import InvalidInput, NotFound, Forbidden, StorageFailure
from beatmarket.db.init_collections import validate_document

logger = logging.getLogger(__name__)

# Storage handles and schema bookkeeping never leave the ledger
BEAT_PROJECTION = {"_id": 0, "coverKey": 0, "audioKey": 0, "schema_version": 0}
USER_PROJECTION = {"_id": 0, "schema_version": 0}

FAVORITE_ACTIONS = ("add", "remove")


@dataclass
class MediaUpload:
    filename: str
    content_type: str
    data: bytes


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _require_text(value: Any, field: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f"{field} is required")
    return str(value).strip()


def _require_beat_id(value: Any) -> str:
    beat_id = _require_text(value, "beatId")
    if not ObjectId.is_valid(beat_id):
        raise InvalidInput(f"Invalid beatId: {beat_id}")
    return beat_id


def _parse_bpm(value: Any) -> int:
    try:
        bpm = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidInput("bpm must be a positive integer")
    if bpm <= 0:
        raise InvalidInput("bpm must be a positive integer")
    return bpm


def _parse_price_cents(value: Any) -> int:
    """Decimal price string -> integer cents; at most two decimal places"""
    try:
        price = Decimal(str(value).strip())
    except (TypeError, ValueError, InvalidOperation):
        raise InvalidInput("price must be a non-negative number")
    if not price.is_finite() or price < 0:
        raise InvalidInput("price must be a non-negative number")
    cents = price * 100
    if cents != cents.to_integral_value():
        raise InvalidInput("price must have at most two decimal places")
    return int(cents)


def _from_cents(cents: int) -> Decimal:
    return Decimal(cents).scaleb(-2)


def present_beat(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Public view of a stored beat: cents become exact Decimal amounts"""
    beat = {k: v for k, v in doc.items() if k not in BEAT_PROJECTION and k not in ("priceCents", "earnedCents")}
    beat["price"] = _from_cents(doc.get("priceCents", 0))
    beat["earned"] = _from_cents(doc.get("earnedCents", 0))
    return beat


class Ledger:
    def __init__(self, db, media_store, env: str = None):
        self.db = db
        self.media = media_store
        self.env = env or os.getenv("ENV", "dev")

    # =========================================================================
    # USERS
    # =========================================================================

    def get_or_create_user(self, user_id: str, name: Optional[str] = None, avatar: Optional[str] = None) -> bool:
        """
        Ensure a user record exists. Existing identity fields are never overwritten.

        Returns:
            bool: True if the user was created by this call
        """
        defaults = {
            "schema_version": 1,
            "name": name,
            "avatar": avatar,
            "balance": 0,
            "purchases": [],
            "favorites": [],
            "followers": [],
            "created_at": _now(),
        }
        if not validate_document("users", {"id": user_id, **defaults}):
            raise InvalidInput(f"User {user_id} failed schema validation")

        try:
            result = self.db.users.update_one(
                {"id": user_id},
                {"$setOnInsert": defaults},
                upsert=True
            )
        except DuplicateKeyError:
            # Lost an upsert race on the unique id index; the record exists now
            return False

        if result.upserted_id is not None:
            logger.info(f"👤 Created user: {user_id}")
            return True
        return False

    # =========================================================================
    # WRITES
    # =========================================================================

    def upload_beat(
        self,
        title: Any,
        genre: Any,
        artist: Any,
        bpm: Any,
        price: Any,
        owner_id: Any,
        cover: Optional[MediaUpload],
        audio: Optional[MediaUpload],
        producer_name: Optional[str] = None,
        producer_avatar: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Store both media files and create a beat with zeroed counters"""
        title = _require_text(title, "title")
        genre = _require_text(genre, "genre")
        artist = _require_text(artist, "artist")
        owner_id = _require_text(owner_id, "ownerId")
        bpm = _parse_bpm(bpm)
        price_cents = _parse_price_cents(price)
        if cover is None or not cover.data or audio is None or not audio.data:
            raise InvalidInput("Both cover and audio files are required")

        stored_keys: List[str] = []
        try:
            cover_key, cover_url = self._store_media(cover, "covers")
            stored_keys.append(cover_key)
            audio_key, audio_url = self._store_media(audio, "beats")
            stored_keys.append(audio_key)

            beat = {
                "schema_version": 1,
                "id": str(ObjectId()),
                "title": title,
                "genre": genre,
                "artist": artist,
                "bpm": bpm,
                "priceCents": price_cents,
                "cover": cover_url,
                "audio": audio_url,
                "coverKey": cover_key,
                "audioKey": audio_key,
                "ownerId": owner_id,
                "uploadDate": _now(),
                "sales": 0,
                "earnedCents": 0,
            }
            if not validate_document("beats", beat):
                raise InvalidInput("Beat failed schema validation")

            self.get_or_create_user(owner_id, name=producer_name or artist, avatar=producer_avatar)
            self.db.beats.insert_one(beat)

        except Exception:
            for key in stored_keys:
                self._discard_media(key)
            raise

        logger.info(f"🎵 Beat created: {beat['id']} '{title}' by {owner_id}")
        return present_beat(beat)

    def purchase(self, user_id: Any, beat_id: Any) -> bool:
        """
        Record that user_id owns beat_id.

        Returns:
            bool: True if this call recorded the purchase, False if it was already owned
        """
        user_id = _require_text(user_id, "userId")
        beat_id = _require_beat_id(beat_id)

        beat = self.db.beats.find_one({"id": beat_id}, {"_id": 0, "priceCents": 1})
        if not beat:
            raise NotFound(f"Beat not found: {beat_id}")

        self.get_or_create_user(user_id)

        # The $ne guard makes check-and-add a single atomic update per (user, beat)
        result = self.db.users.update_one(
            {"id": user_id, "purchases": {"$ne": beat_id}},
            {"$push": {"purchases": beat_id}}
        )
        if result.modified_count == 0:
            logger.info(f"⏭️  {user_id} already owns beat {beat_id}")
            return False

        try:
            counters = self.db.beats.update_one(
                {"id": beat_id},
                {"$inc": {"sales": 1, "earnedCents": beat["priceCents"]}}
            )
        except PyMongoError as e:
            logger.error(f"❌ Failed to update counters for beat {beat_id}, rolling back purchase by {user_id}: {e}")
            self.db.users.update_one({"id": user_id}, {"$pull": {"purchases": beat_id}})
            raise StorageFailure(f"Purchase failed: {e}") from e

        if counters.matched_count == 0:
            logger.warning(f"⚠️  Beat {beat_id} vanished during purchase by {user_id}")

        logger.info(f"💰 Purchase recorded: {user_id} -> {beat_id} ({_from_cents(beat['priceCents'])})")
        return True

    def favorite(self, user_id: Any, beat_id: Any, action: Any) -> bool:
        """Add or remove beat_id in the user's favorites. Returns True if the set changed."""
        user_id = _require_text(user_id, "userId")
        beat_id = _require_beat_id(beat_id)
        action = str(action or "").strip().lower()
        if action not in FAVORITE_ACTIONS:
            raise InvalidInput("action must be 'add' or 'remove'")

        self.get_or_create_user(user_id)

        if action == "add":
            update = {"$addToSet": {"favorites": beat_id}}
        else:
            update = {"$pull": {"favorites": beat_id}}

        result = self.db.users.update_one({"id": user_id}, update)
        return result.modified_count > 0

    def follow(self, user_id: Any, producer_id: Any) -> bool:
        """Add user_id to the producer's followers. Returns True if newly followed."""
        user_id = _require_text(user_id, "userId")
        producer_id = _require_text(producer_id, "producerId")
        if user_id == producer_id:
            raise InvalidInput("Users cannot follow themselves")

        if not self.db.users.find_one({"id": producer_id}, {"_id": 1}):
            raise NotFound(f"Producer not found: {producer_id}")

        self.get_or_create_user(user_id)

        result = self.db.users.update_one(
            {"id": producer_id},
            {"$addToSet": {"followers": user_id}}
        )
        return result.modified_count > 0

    def delete_beat(self, beat_id: Any, requester_id: Any) -> int:
        """
        Delete a beat owned by requester_id.

        Returns:
            int: number of users whose favorites contained the beat
        """
        beat_id = _require_beat_id(beat_id)
        requester_id = _require_text(requester_id, "userId")

        beat = self.db.beats.find_one({"id": beat_id}, {"_id": 0})
        if not beat:
            raise NotFound(f"Beat not found: {beat_id}")
        if beat.get("ownerId") != requester_id:
            logger.warning(f"⚠️  {requester_id} tried to delete beat {beat_id} owned by {beat.get('ownerId')}")
            raise Forbidden(f"Beat {beat_id} is not owned by {requester_id}")

        for key in (beat.get("coverKey"), beat.get("audioKey")):
            if key:
                self._release_media(key, beat_id)

        self.db.beats.delete_one({"id": beat_id})

        # Unbounded fan-out, served by the users.favorites multikey index
        result = self.db.users.update_many(
            {"favorites": beat_id},
            {"$pull": {"favorites": beat_id}}
        )

        logger.info(f"🗑️  Beat deleted: {beat_id} (removed from {result.modified_count} favorites)")
        return result.modified_count

    # =========================================================================
    # READS
    # =========================================================================

    def list_beats(self, producer: Optional[str] = None) -> List[Dict[str, Any]]:
        query = {"ownerId": str(producer)} if producer else {}
        return [present_beat(b) for b in self.db.beats.find(query, BEAT_PROJECTION)]

    def list_producers(self) -> List[Dict[str, Any]]:
        """Every owner with at least one beat, joined to its user record"""
        pipeline = [
            {"$sort": {"uploadDate": 1}},
            {"$group": {"_id": "$ownerId", "beats": {"$push": "$id"}}},
            {"$lookup": {
                "from": "users",
                "localField": "_id",
                "foreignField": "id",
                "as": "profile"
            }},
            {"$sort": {"_id": 1}},
        ]

        producers = []
        for row in self.db.beats.aggregate(pipeline):
            profile = row["profile"][0] if row.get("profile") else {}
            producers.append({
                "id": row["_id"],
                "name": profile.get("name"),
                "avatar": profile.get("avatar"),
                "beats": row["beats"],
                "followers": len(profile.get("followers", [])),
            })
        return producers

    def get_producer(self, producer_id: str) -> Dict[str, Any]:
        user = self.db.users.find_one({"id": producer_id}, {"_id": 0, "name": 1, "avatar": 1, "followers": 1})
        beats = [
            b["id"] for b in
            self.db.beats.find({"ownerId": producer_id}, {"_id": 0, "id": 1}).sort("uploadDate", 1)
        ]
        if not user and not beats:
            raise NotFound(f"Producer not found: {producer_id}")

        user = user or {}
        return {
            "id": producer_id,
            "name": user.get("name"),
            "avatar": user.get("avatar"),
            "beats": beats,
            "followers": len(user.get("followers", [])),
        }

    def get_user_profile(self, user_id: str) -> Dict[str, Any]:
        """User record with purchases and favorites resolved to beats. Unknown users get an empty profile."""
        user = self.db.users.find_one({"id": user_id}, USER_PROJECTION)
        if not user:
            return {"id": user_id, "balance": 0, "purchases": [], "favorites": []}

        purchases = user.get("purchases", [])
        favorites = user.get("favorites", [])
        wanted = list(set(purchases) | set(favorites))
        beats = {}
        if wanted:
            beats = {b["id"]: present_beat(b) for b in self.db.beats.find({"id": {"$in": wanted}}, BEAT_PROJECTION)}

        # Ids of deleted beats are dropped from the resolved view
        user["purchases"] = [beats[b] for b in purchases if b in beats]
        user["favorites"] = [beats[b] for b in favorites if b in beats]
        return user

    # =========================================================================
    # MEDIA
    # =========================================================================

    def _store_media(self, media: MediaUpload, folder: str):
        ext = os.path.splitext(media.filename or "")[1].lower()
        key = f"{self.env}/{folder}/{uuid.uuid4().hex}{ext}"
        url = self.media.upload_file(media.data, key, media.content_type or "application/octet-stream")
        if not url:
            raise StorageFailure(f"Failed to store {folder} file")
        return key, url

    def _discard_media(self, key: str) -> bool:
        """Delete one stored file; store errors are logged, never raised"""
        try:
            return bool(self.media.delete_file(key))
        except Exception as e:
            logger.error(f"❌ Error releasing media {key}: {e}")
            return False

    def _release_media(self, key: str, beat_id: str):
        """Best effort: failures are logged to orphaned_media and never block the delete"""
        if self._discard_media(key):
            return

        logger.warning(f"⚠️  Media release failed for {key}, recorded for retry")
        self.db.orphaned_media.update_one(
            {"key": key},
            {"$setOnInsert": {"beatId": beat_id, "attempts": 0, "created_at": _now()}},
            upsert=True
        )
