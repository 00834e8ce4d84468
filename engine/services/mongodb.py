# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling, transactions and index management.
"""

import os
import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Any
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError
)
from bson import ObjectId
from bson.errors import InvalidId

logger = logging.getLogger(__name__)

PROTOCOLS_COLLECTION = "regional_vaccinations"
RECORDS_COLLECTION = "vaccination_records"
ALERTS_COLLECTION = "vaccination_alerts"
ANIMALS_COLLECTION = "animals"
USER_PROFILES_COLLECTION = "user_profiles"

SCHEDULED_DOSE_INDEX = "unique_scheduled_dose"


class MongoDBService:
    """MongoDB service with connection pooling and transactional sessions."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/vaccination_engine_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'vaccination_engine_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            # Ping the database
            result = self.client.admin.command('ping')

            # Get server info
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    @staticmethod
    def to_object_id(doc_id: str) -> Any:
        """Convert a string ID to ObjectId, leaving non-ObjectId keys untouched."""
        try:
            return ObjectId(doc_id)
        except (InvalidId, TypeError):
            return doc_id

    @contextmanager
    def transaction(self) -> Iterator[ClientSession]:
        """
        Run a unit of work inside a multi-document transaction.

        The transaction commits when the block exits normally and aborts when
        it raises; the exception propagates to the caller.

        Yields:
            Client session to pass to every write of the unit
        """
        with self.client.start_session() as session:
            with session.start_transaction():
                yield session

    # Index Management

    def create_indexes(self) -> None:
        """Create performance indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            # Protocol indexes
            protocols = self.get_collection(PROTOCOLS_COLLECTION)
            protocols.create_index([
                ("region", ASCENDING),
                ("countries.code", ASCENDING),
                ("animalType", ASCENDING)
            ])
            protocols.create_index([("region", ASCENDING), ("animalType", ASCENDING)])

            # Vaccination record indexes
            records = self.get_collection(RECORDS_COLLECTION)
            records.create_index(
                [("animalId", ASCENDING), ("vaccineName", ASCENDING), ("doseNumber", ASCENDING)],
                name=SCHEDULED_DOSE_INDEX,
                unique=True,
                partialFilterExpression={"status": "scheduled"}
            )
            records.create_index([("ownerId", ASCENDING), ("animalId", ASCENDING), ("scheduledDate", ASCENDING)])
            records.create_index([("ownerId", ASCENDING), ("status", ASCENDING), ("nextDueDate", ASCENDING)])
            records.create_index([("ownerId", ASCENDING), ("administrationDate", DESCENDING)])

            # Alert indexes
            alerts = self.get_collection(ALERTS_COLLECTION)
            alerts.create_index([("recordId", ASCENDING), ("isActive", ASCENDING)])
            alerts.create_index([("ownerId", ASCENDING), ("isActive", ASCENDING), ("dueDate", ASCENDING)])
            alerts.create_index("expiryDate")

            # Reference collections
            self.get_collection(ANIMALS_COLLECTION).create_index("ownerId")
            self.get_collection(USER_PROFILES_COLLECTION).create_index("ownerId", unique=True)

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
