#!/usr/bin/env python3
"""
MongoDB Collection Initialization Script
Creates collections and indexes for the beat marketplace
"""

import os
import json
import logging
from typing import Dict
from pymongo import ASCENDING
from jsonschema import validate, ValidationError

logger = logging.getLogger(__name__)

# =============================================================================
# DATA STRUCTURE CONFIGURATION
# =============================================================================

SCHEMAS_DIR = os.path.join(os.path.dirname(__file__), 'schemas')


def load_json_schema(collection_name: str) -> Dict:
    """Load JSON schema for a collection from the package schemas directory"""
    collection_to_schema_path = {
        'beats': os.path.join(SCHEMAS_DIR, 'beat.json'),
        'users': os.path.join(SCHEMAS_DIR, 'user.json'),
    }

    schema_path = collection_to_schema_path.get(collection_name)
    if not schema_path:
        logger.warning(f"No schema mapping found for collection: {collection_name}")
        return {}

    try:
        with open(schema_path, 'r') as f:
            return json.load(f)
    except FileNotFoundError:
        logger.warning(f"Schema file not found: {schema_path}")
        return {}
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in schema file {schema_path}: {e}")
        return {}


JSON_SCHEMAS = {
    "beats": load_json_schema("beats"),
    "users": load_json_schema("users"),
}

# Collection Schema Definitions
COLLECTIONS_CONFIG = {
    "beats": {
        "indexes": [
            {"fields": "id", "unique": True},
            {"fields": "ownerId", "unique": False},
            {"fields": [("ownerId", ASCENDING), ("uploadDate", ASCENDING)], "unique": False},
        ],
        "schema": JSON_SCHEMAS.get("beats", {}).get("properties", {})
    },
    "users": {
        "indexes": [
            {"fields": "id", "unique": True},
            # Multikey indexes keep the favorites fan-out on delete off a full scan
            {"fields": "favorites", "unique": False},
            {"fields": "purchases", "unique": False},
        ],
        "schema": JSON_SCHEMAS.get("users", {}).get("properties", {})
    },
    "orphaned_media": {
        "indexes": [
            {"fields": "key", "unique": True},
            {"fields": "created_at", "unique": False},
        ],
        "schema": {}
    }
}

# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================

def validate_document(collection_name: str, document: Dict) -> bool:
    """
    Validate a document against its JSON schema

    Args:
        collection_name: Name of the collection
        document: Document to validate

    Returns:
        bool: True if valid, False otherwise
    """
    schema = JSON_SCHEMAS.get(collection_name)
    if not schema:
        logger.warning(f"No schema found for collection: {collection_name}")
        return True

    try:
        validate(instance=document, schema=schema)
        return True
    except ValidationError as e:
        logger.error(f"Validation error for {collection_name}: {e.message}")
        return False

# =============================================================================
# INITIALIZATION FUNCTIONS
# =============================================================================

def init_mongodb(db, drop_existing: bool = False):
    """
    Initialize MongoDB collections and indexes

    Args:
        db: Database handle to initialise
        drop_existing: Whether to drop existing collections
    """
    try:
        logger.info("🗄️  Initializing MongoDB collections...")

        if drop_existing:
            for collection_name in COLLECTIONS_CONFIG.keys():
                db[collection_name].drop()
                logger.info(f"🗑️  Dropped collection: {collection_name}")

        create_collections_and_indexes(db)
        verify_setup(db)

    except Exception as e:
        logger.error(f"❌ Error initializing MongoDB: {e}")
        raise


def create_collections_and_indexes(db):
    """Create collections and their indexes based on configuration"""

    for collection_name, config in COLLECTIONS_CONFIG.items():
        collection = db[collection_name]

        logger.info(f"📁 Setting up collection: {collection_name}")

        for index_config in config["indexes"]:
            fields = index_config["fields"]
            unique = index_config.get("unique", False)

            try:
                collection.create_index(fields, unique=unique)
                index_name = fields if isinstance(fields, str) else str(fields)
                logger.info(f"  ✅ Index created: {index_name}")

            except Exception as e:
                logger.warning(f"  ⚠️  Index creation failed for {fields}: {e}")

        schema_fields = list(config["schema"].keys())
        logger.info(f"  📋 Schema fields: {schema_fields}")


def verify_setup(db):
    """Log document and index counts per collection"""
    collections = db.list_collection_names()

    logger.info("🔍 Verification Results:")

    for collection_name in COLLECTIONS_CONFIG.keys():
        if collection_name in collections:
            count = db[collection_name].count_documents({})
            logger.info(f"  ✅ {collection_name}: {count} documents")

            indexes = list(db[collection_name].list_indexes())
            logger.info(f"     📋 Indexes ({len(indexes)}):")
            for idx in indexes:
                index_info = f"{idx['name']}: {list(idx['key'].keys())}"
                if idx.get('unique'):
                    index_info += " (unique)"
                logger.info(f"       - {index_info}")
        else:
            logger.error(f"  ❌ {collection_name}: Collection not found!")


# =============================================================================
# MAIN EXECUTION
# =============================================================================

if __name__ == "__main__":
    import argparse
    from dotenv import load_dotenv
    from beatmarket.db.connection import create_mongodb_client, get_database, close_connection

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Initialize MongoDB collections")
    parser.add_argument("--drop", action="store_true", help="Drop existing collections")
    parser.add_argument("--list-config", action="store_true", help="List current configuration")

    args = parser.parse_args()

    if args.list_config:
        print("📋 Current Configuration:")
        for name, config in COLLECTIONS_CONFIG.items():
            print(f"\n🗂️  Collection: {name}")
            print(f"   Schema: {list(config['schema'].keys())}")
            print(f"   Indexes: {len(config['indexes'])}")
    else:
        client = create_mongodb_client()
        try:
            init_mongodb(get_database(client), drop_existing=args.drop)
        finally:
            close_connection(client)
