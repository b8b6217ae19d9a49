from __future__ import annotations

import asyncio

from beatmarket.jobs.maintenance import retry_orphaned_media, run_maintenance, verify_sales_counters


def test_verify_repairs_counter_drift(ledger, make_beat, db) -> None:
    beat = make_beat(price="5.00")
    ledger.purchase("a", beat["id"])
    ledger.purchase("b", beat["id"])
    # Simulate a purchase whose counter update never landed
    db.beats.update_one({"id": beat["id"]}, {"$set": {"sales": 1, "earnedCents": 500}})

    stats = asyncio.run(verify_sales_counters(db))

    assert stats["fixed"] == 1
    stored = db.beats.find_one({"id": beat["id"]})
    assert stored["sales"] == 2
    assert stored["earnedCents"] == 1000


def test_verify_dry_run_leaves_counters(ledger, make_beat, db) -> None:
    beat = make_beat(price="5.00")
    db.beats.update_one({"id": beat["id"]}, {"$set": {"sales": 3, "earnedCents": 1500}})

    stats = asyncio.run(verify_sales_counters(db, dry_run=True))

    assert stats == {"dry_run": True, "verified": 0, "fixed": 1}
    assert db.beats.find_one({"id": beat["id"]})["sales"] == 3


def test_verify_repairs_single_cent_drift(ledger, make_beat, db) -> None:
    beat = make_beat(price="9.99")
    for buyer in ("a", "b", "c"):
        ledger.purchase(buyer, beat["id"])
    db.beats.update_one({"id": beat["id"]}, {"$inc": {"earnedCents": 1}})

    stats = asyncio.run(verify_sales_counters(db))

    assert stats["fixed"] == 1
    assert db.beats.find_one({"id": beat["id"]})["earnedCents"] == 2997


def test_verify_counts_consistent_beats(ledger, make_beat, db) -> None:
    beat = make_beat(price="9.99")
    ledger.purchase("a", beat["id"])

    stats = asyncio.run(verify_sales_counters(db))

    assert stats["verified"] == 1
    assert stats["fixed"] == 0


def test_retry_orphaned_media_clears_released_keys(db, media_store) -> None:
    media_store.upload_file(b"left over", "test/covers/orphan.png", "image/png")
    db.orphaned_media.insert_one({"key": "test/covers/orphan.png", "beatId": "b", "attempts": 0})

    stats = asyncio.run(retry_orphaned_media(db, media_store))

    assert stats["deleted"] == 1
    assert db.orphaned_media.count_documents({}) == 0


def test_retry_orphaned_media_counts_failures(db, media_store, monkeypatch) -> None:
    db.orphaned_media.insert_one({"key": "test/beats/stuck.mp3", "beatId": "b", "attempts": 0})
    monkeypatch.setattr(media_store, "delete_file", lambda key: False)

    stats = asyncio.run(retry_orphaned_media(db, media_store))

    assert stats["still_failed"] == 1
    assert db.orphaned_media.find_one({"key": "test/beats/stuck.mp3"})["attempts"] == 1


def test_run_maintenance_runs_both_jobs(db, media_store) -> None:
    results = asyncio.run(run_maintenance(db, media_store))

    assert set(results) == {"verification", "retry"}
