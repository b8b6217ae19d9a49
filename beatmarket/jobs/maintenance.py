"""
Ledger Maintenance Jobs
- Retries release of media that could not be deleted with its beat
- Repairs beat sales/earned counters that drifted from purchase records
"""

import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


async def retry_orphaned_media(db, media_store, dry_run: bool = False):
    """
    Re-attempt deletion of media keys logged in orphaned_media

    Returns:
        dict: Statistics about retry operation
    """
    try:
        pending = list(db.orphaned_media.find({}))

        logger.info(f"🔄 Retrying {len(pending)} orphaned media deletions")

        if dry_run:
            for orphan in pending:
                logger.info(f"   Would delete: {orphan['key']} (beat: {orphan.get('beatId')})")
            return {"dry_run": True, "pending": len(pending), "deleted": 0, "still_failed": 0}

        deleted_count = 0
        still_failed = 0

        for orphan in pending:
            try:
                released = media_store.delete_file(orphan["key"])
            except Exception as e:
                logger.error(f"❌ Retry error for {orphan['key']}: {e}")
                released = False

            if released:
                db.orphaned_media.delete_one({"key": orphan["key"]})
                deleted_count += 1
                logger.info(f"✅ Retry successful: {orphan['key']}")
            else:
                db.orphaned_media.update_one(
                    {"key": orphan["key"]},
                    {
                        "$inc": {"attempts": 1},
                        "$set": {"last_attempt": datetime.now(timezone.utc).isoformat()}
                    }
                )
                still_failed += 1
                logger.warning(f"⚠️  Retry failed again: {orphan['key']}")

        logger.info(f"🔄 Retry complete: {deleted_count} deleted, {still_failed} still pending")

        return {
            "dry_run": False,
            "pending": len(pending),
            "deleted": deleted_count,
            "still_failed": still_failed
        }

    except Exception as e:
        logger.error(f"❌ Retry orphaned media failed: {e}")
        raise


async def verify_sales_counters(db, dry_run: bool = False):
    """
    Recount each beat's sales from users' purchases and reset earnedCents = priceCents * sales

    Returns:
        dict: Statistics about verification operation
    """
    try:
        logger.info("🔍 Verifying beat sales counters...")

        fixed_count = 0
        verified_count = 0

        for beat in db.beats.find({}, {"_id": 0, "id": 1, "priceCents": 1, "sales": 1, "earnedCents": 1}):
            beat_id = beat["id"]
            stored_sales = beat.get("sales", 0)
            stored_earned = beat.get("earnedCents", 0)

            actual_sales = db.users.count_documents({"purchases": beat_id})
            actual_earned = beat.get("priceCents", 0) * actual_sales

            if actual_sales == stored_sales and actual_earned == stored_earned:
                verified_count += 1
                continue

            fixed_count += 1
            logger.warning(
                f"⚠️  Counter drift on beat {beat_id}: "
                f"stored sales={stored_sales} earnedCents={stored_earned}, "
                f"actual sales={actual_sales} earnedCents={actual_earned}"
            )
            if not dry_run:
                db.beats.update_one(
                    {"id": beat_id},
                    {"$set": {"sales": actual_sales, "earnedCents": actual_earned}}
                )

        logger.info(f"✅ Verification complete: {verified_count} verified, {fixed_count} fixed")

        return {
            "dry_run": dry_run,
            "verified": verified_count,
            "fixed": fixed_count
        }

    except Exception as e:
        logger.error(f"❌ Sales counter verification failed: {e}")
        raise


async def run_maintenance(db, media_store, verify: bool = True, retry: bool = True, dry_run: bool = False):
    """Run all maintenance tasks and return combined statistics"""
    results = {}

    if verify:
        logger.info("=" * 60)
        logger.info("Running sales counter verification...")
        logger.info("=" * 60)
        results["verification"] = await verify_sales_counters(db, dry_run=dry_run)

    if retry:
        logger.info("=" * 60)
        logger.info("Retrying orphaned media deletions...")
        logger.info("=" * 60)
        results["retry"] = await retry_orphaned_media(db, media_store, dry_run=dry_run)

    return results


if __name__ == "__main__":
    import asyncio
    import argparse
    from dotenv import load_dotenv
    from beatmarket.db.connection import create_mongodb_client, get_database, close_connection
    from beatmarket.storage import create_media_store

    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description="Beat market maintenance")
    parser.add_argument("--dry-run", action="store_true", help="Report problems without fixing them")
    parser.add_argument("--skip-verify", action="store_true", help="Skip sales counter verification")
    parser.add_argument("--skip-retry", action="store_true", help="Skip orphaned media retry")

    args = parser.parse_args()

    client = create_mongodb_client()
    try:
        asyncio.run(run_maintenance(
            get_database(client),
            create_media_store(),
            verify=not args.skip_verify,
            retry=not args.skip_retry,
            dry_run=args.dry_run
        ))
    finally:
        close_connection(client)
