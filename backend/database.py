"""
Database Layer for Zule Mesh Store
Handles MongoDB operations for order documents
"""
import logging
from typing import Any, Dict, Optional

from pymongo import ASCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import DATABASE_NAME, MONGO_URI
from errors import PersistenceError

logger = logging.getLogger(__name__)


class DatabaseConnection:

    _instance = None
    _client = None
    _db = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._client = MongoClient(MONGO_URI)
            cls._db = cls._client[DATABASE_NAME]
        return cls._instance

    @property
    def db(self):
        return self._db


def get_db():
    """Get database instance"""
    return DatabaseConnection().db


class OrderStore:
    """
    Reads and writes order documents.

    ``orderId`` and ``trackingNumber`` are unique indexes; a colliding
    insert raises DuplicateKeyError so the caller can retry with new ids.
    """

    def __init__(self, collection=None):
        self.collection = collection if collection is not None else get_db().orders

    def ensure_indexes(self) -> None:
        try:
            self.collection.create_index([("orderId", ASCENDING)], unique=True)
            self.collection.create_index([("trackingNumber", ASCENDING)], unique=True)
            self.collection.create_index([("orderId", ASCENDING), ("email", ASCENDING)])
        except PyMongoError as e:
            logger.exception("Failed to create order indexes")
            raise PersistenceError("Database unavailable") from e

    def insert_order(self, order: Dict[str, Any]) -> None:
        try:
            # insert_one adds _id to the dict it is given
            self.collection.insert_one(dict(order))
        except DuplicateKeyError:
            raise
        except PyMongoError as e:
            logger.exception("Failed to save order %s", order.get("orderId"))
            raise PersistenceError("Failed to save order") from e

    def find_order(self, order_id: str, email: Optional[str] = None) -> Optional[Dict[str, Any]]:
        query = {"orderId": order_id}
        if email is not None:
            query["email"] = email
        try:
            return self.collection.find_one(query, {"_id": 0})
        except PyMongoError as e:
            logger.exception("Failed to read order %s", order_id)
            raise PersistenceError("Database unavailable") from e

    def update_order(self, order_id: str, changes: Dict[str, Any]) -> bool:
        try:
            result = self.collection.update_one({"orderId": order_id}, {"$set": changes})
        except PyMongoError as e:
            logger.exception("Failed to update order %s", order_id)
            raise PersistenceError("Failed to update order") from e
        return result.matched_count > 0

    def count(self) -> int:
        return self.collection.count_documents({})
