import os
import logging
from pymongo import MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

# Fallbacks when MONGO_URL / MONGO_DATABASE are not set
DEFAULT_MONGO_URL = "mongodb://localhost:27017"
DEFAULT_DATABASE_NAME = "beatmarket"


def create_mongodb_client(url: str = None) -> MongoClient:
    """Create a MongoDB client and check that the server answers"""
    url = url or os.getenv("MONGO_URL", DEFAULT_MONGO_URL)
    logger.info(f"Connecting to MongoDB: {url}")
    client = MongoClient(url)

    try:
        client.admin.command('ping')
        logger.info("✅ MongoDB connection successful")
    except Exception as e:
        logger.error(f"❌ MongoDB connection failed: {e}")
        client.close()
        raise

    return client


def get_database(client: MongoClient, name: str = None) -> Database:
    """Get MongoDB database instance"""
    name = name or os.getenv("MONGO_DATABASE", DEFAULT_DATABASE_NAME)
    logger.info(f"📁 Using database: {name}")
    return client[name]


def close_connection(client: MongoClient):
    """Close MongoDB connection"""
    if client is not None:
        client.close()
        logger.info("🔌 MongoDB connection closed")
