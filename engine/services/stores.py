# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Store interfaces consumed by the engine and their MongoDB implementations.

Stores translate between camelCase documents and the pydantic models; they
hold no business rules. Every write accepts an optional client session so a
caller can group writes into one transaction.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from pydantic.alias_generators import to_camel
from pymongo import ASCENDING
from pymongo.errors import BulkWriteError

from models.entities import Animal, RegionalProtocol, VaccinationAlert, VaccinationRecord
from models.enums import VaccinationStatus
from .mongodb import (
    MongoDBService,
    ALERTS_COLLECTION,
    ANIMALS_COLLECTION,
    PROTOCOLS_COLLECTION,
    RECORDS_COLLECTION,
    USER_PROFILES_COLLECTION
)

logger = logging.getLogger(__name__)

DUPLICATE_KEY_ERROR = 11000


def to_document_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Map model field names of a partial update to document keys."""
    return {to_camel(name): value for name, value in changes.items()}


# Interfaces


class AnimalStore(ABC):
    @abstractmethod
    def get(self, animal_id: str) -> Optional[Animal]:
        """Return the animal or None."""

    @abstractmethod
    def find_by_owner(self, owner_id: str) -> List[Animal]:
        """Return every animal of an owner."""


class UserProfileStore(ABC):
    @abstractmethod
    def get_region_preference(self, owner_id: str) -> Optional[str]:
        """Return the stored region preference, if any."""

    @abstractmethod
    def get_country(self, owner_id: str) -> Optional[str]:
        """Return the stored country code, if any."""


class ProtocolRepository(ABC):
    @abstractmethod
    def find(self, region: str, animal_type: str, country: Optional[str] = None) -> Optional[RegionalProtocol]:
        """Return the protocol for a region and animal type, narrowed to a country when given."""


class RecordStore(ABC):
    @abstractmethod
    def get(self, owner_id: str, record_id: str) -> Optional[VaccinationRecord]:
        """Return one record of an owner."""

    @abstractmethod
    def query_by_animal(self, owner_id: str, animal_id: str) -> List[VaccinationRecord]:
        """Return an animal's records sorted by scheduled date."""

    @abstractmethod
    def query_by_owner(self, owner_id: str) -> List[VaccinationRecord]:
        """Return every record of an owner."""

    @abstractmethod
    def query_overdue(self, owner_id: str, now: datetime) -> List[VaccinationRecord]:
        """Records whose nextDueDate has passed while scheduled or completed."""

    @abstractmethod
    def insert(self, record: VaccinationRecord, session=None) -> VaccinationRecord:
        """Insert one record."""

    @abstractmethod
    def insert_many(
        self,
        records: Sequence[VaccinationRecord],
        session=None
    ) -> Tuple[List[VaccinationRecord], int]:
        """
        Insert records, skipping those rejected by the scheduled-dose uniqueness rule.

        Returns:
            (inserted records, number of skipped duplicates)
        """

    @abstractmethod
    def update(self, record_id: str, changes: Dict[str, Any], session=None) -> bool:
        """Apply field changes to one record."""

    @abstractmethod
    def delete_many(self, record_ids: Sequence[str], session=None) -> int:
        """Delete records by id."""

    @abstractmethod
    def transaction(self):
        """Context manager grouping writes into one atomic unit; yields a session."""


class AlertStore(ABC):
    @abstractmethod
    def get(self, owner_id: str, alert_id: str) -> Optional[VaccinationAlert]:
        """Return one alert of an owner."""

    @abstractmethod
    def insert(self, alert: VaccinationAlert) -> VaccinationAlert:
        """Insert one alert."""

    @abstractmethod
    def update(self, alert_id: str, changes: Dict[str, Any]) -> bool:
        """Apply field changes to one alert."""

    @abstractmethod
    def find_active_for_records(self, record_ids: Sequence[str]) -> List[VaccinationAlert]:
        """Active alerts tied to any of the records."""

    @abstractmethod
    def query_by_owner(self, owner_id: str, active_only: bool = True) -> List[VaccinationAlert]:
        """Alerts of an owner."""


# MongoDB implementations


class MongoAnimalStore(AnimalStore):
    """Read-only view over the animals collection."""

    def __init__(self, mongodb: MongoDBService):
        self.mongodb = mongodb

    def get(self, animal_id: str) -> Optional[Animal]:
        collection = self.mongodb.get_collection(ANIMALS_COLLECTION)
        document = collection.find_one({"_id": self.mongodb.to_object_id(animal_id)})
        if not document:
            logger.debug(f"Animal {animal_id} not found")
            return None
        return Animal.from_document(document)

    def find_by_owner(self, owner_id: str) -> List[Animal]:
        collection = self.mongodb.get_collection(ANIMALS_COLLECTION)
        return [Animal.from_document(doc) for doc in collection.find({"ownerId": owner_id})]


class MongoUserProfileStore(UserProfileStore):
    """Region and country fields of the user_profiles collection."""

    def __init__(self, mongodb: MongoDBService):
        self.mongodb = mongodb

    def _profile(self, owner_id: str) -> Dict[str, Any]:
        collection = self.mongodb.get_collection(USER_PROFILES_COLLECTION)
        return collection.find_one({"ownerId": owner_id}) or {}

    def get_region_preference(self, owner_id: str) -> Optional[str]:
        return self._profile(owner_id).get("regionPreference")

    def get_country(self, owner_id: str) -> Optional[str]:
        return self._profile(owner_id).get("country")


class MongoProtocolRepository(ProtocolRepository):
    """Protocol reference data in the regional_vaccinations collection."""

    def __init__(self, mongodb: MongoDBService):
        self.mongodb = mongodb

    def find(self, region: str, animal_type: str, country: Optional[str] = None) -> Optional[RegionalProtocol]:
        query: Dict[str, Any] = {"region": region, "animalType": animal_type}
        if country is not None:
            query["countries.code"] = country

        collection = self.mongodb.get_collection(PROTOCOLS_COLLECTION)
        document = collection.find_one(query)
        if not document:
            return None
        return RegionalProtocol.from_document(document)


class MongoRecordStore(RecordStore):
    """Vaccination records in the vaccination_records collection."""

    def __init__(self, mongodb: MongoDBService):
        self.mongodb = mongodb

    @property
    def collection(self):
        return self.mongodb.get_collection(RECORDS_COLLECTION)

    def get(self, owner_id: str, record_id: str) -> Optional[VaccinationRecord]:
        document = self.collection.find_one({
            "_id": self.mongodb.to_object_id(record_id),
            "ownerId": owner_id
        })
        return VaccinationRecord.from_document(document) if document else None

    def query_by_animal(self, owner_id: str, animal_id: str) -> List[VaccinationRecord]:
        cursor = self.collection.find(
            {"ownerId": owner_id, "animalId": animal_id}
        ).sort("scheduledDate", ASCENDING)
        return [VaccinationRecord.from_document(doc) for doc in cursor]

    def query_by_owner(self, owner_id: str) -> List[VaccinationRecord]:
        cursor = self.collection.find({"ownerId": owner_id})
        return [VaccinationRecord.from_document(doc) for doc in cursor]

    def query_overdue(self, owner_id: str, now: datetime) -> List[VaccinationRecord]:
        cursor = self.collection.find({
            "ownerId": owner_id,
            "nextDueDate": {"$lt": now},
            "status": {"$in": [VaccinationStatus.SCHEDULED.value, VaccinationStatus.COMPLETED.value]}
        }).sort("nextDueDate", ASCENDING)
        return [VaccinationRecord.from_document(doc) for doc in cursor]

    def insert(self, record: VaccinationRecord, session=None) -> VaccinationRecord:
        self.collection.insert_one(record.to_document(), session=session)
        logger.info(f"Created vaccination record {record.id} for animal {record.animal_id}")
        return record

    def insert_many(
        self,
        records: Sequence[VaccinationRecord],
        session=None
    ) -> Tuple[List[VaccinationRecord], int]:
        if not records:
            return [], 0

        try:
            self.collection.insert_many(
                [record.to_document() for record in records],
                ordered=False,
                session=session
            )
            return list(records), 0
        except BulkWriteError as e:
            write_errors = e.details.get("writeErrors", [])
            if any(error.get("code") != DUPLICATE_KEY_ERROR for error in write_errors):
                raise
            rejected = {error["index"] for error in write_errors}
            inserted = [record for i, record in enumerate(records) if i not in rejected]
            logger.info(f"Skipped {len(rejected)} already scheduled doses")
            return inserted, len(rejected)

    def update(self, record_id: str, changes: Dict[str, Any], session=None) -> bool:
        result = self.collection.update_one(
            {"_id": self.mongodb.to_object_id(record_id)},
            {"$set": to_document_changes(changes)},
            session=session
        )
        return result.matched_count > 0

    def delete_many(self, record_ids: Sequence[str], session=None) -> int:
        if not record_ids:
            return 0
        result = self.collection.delete_many(
            {"_id": {"$in": [self.mongodb.to_object_id(record_id) for record_id in record_ids]}},
            session=session
        )
        return result.deleted_count

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        with self.mongodb.transaction() as session:
            yield session


class MongoAlertStore(AlertStore):
    """Derived alerts in the vaccination_alerts collection."""

    def __init__(self, mongodb: MongoDBService):
        self.mongodb = mongodb

    @property
    def collection(self):
        return self.mongodb.get_collection(ALERTS_COLLECTION)

    def get(self, owner_id: str, alert_id: str) -> Optional[VaccinationAlert]:
        document = self.collection.find_one({
            "_id": self.mongodb.to_object_id(alert_id),
            "ownerId": owner_id
        })
        return VaccinationAlert.from_document(document) if document else None

    def insert(self, alert: VaccinationAlert) -> VaccinationAlert:
        self.collection.insert_one(alert.to_document())
        logger.debug(f"Created {alert.alert_type} alert {alert.id} for record {alert.record_id}")
        return alert

    def update(self, alert_id: str, changes: Dict[str, Any]) -> bool:
        result = self.collection.update_one(
            {"_id": self.mongodb.to_object_id(alert_id)},
            {"$set": to_document_changes(changes)}
        )
        return result.matched_count > 0

    def find_active_for_records(self, record_ids: Sequence[str]) -> List[VaccinationAlert]:
        if not record_ids:
            return []
        cursor = self.collection.find({"recordId": {"$in": list(record_ids)}, "isActive": True})
        return [VaccinationAlert.from_document(doc) for doc in cursor]

    def query_by_owner(self, owner_id: str, active_only: bool = True) -> List[VaccinationAlert]:
        query: Dict[str, Any] = {"ownerId": owner_id}
        if active_only:
            query["isActive"] = True
        cursor = self.collection.find(query).sort("dueDate", ASCENDING)
        return [VaccinationAlert.from_document(doc) for doc in cursor]
