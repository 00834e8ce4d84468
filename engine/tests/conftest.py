# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.

Service-level tests run against in-memory implementations of the store
interfaces, so no MongoDB or Redis server is needed.
"""

import copy
import os
import pytest
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from models.entities import (
    Animal,
    Booster,
    Country,
    PrimaryDose,
    RegionalProtocol,
    SeasonalRecommendation,
    Vaccine,
    VaccinationAlert,
    VaccinationRecord
)
from services.alerts import AlertManager
from services.cache import InMemoryProtocolCache
from services.protocols import RegionalProtocolStore
from services.reconciliation import ReconciliationEngine
from services.region_resolver import RegionResolver
from services.stores import (
    AlertStore,
    AnimalStore,
    ProtocolRepository,
    RecordStore,
    UserProfileStore
)
from services.vaccination import VaccinationService

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['MONGODB_DATABASE'] = 'vaccination_engine_test'


class InMemoryAnimalStore(AnimalStore):
    def __init__(self, animals: Sequence[Animal] = ()):
        self.animals = {animal.id: animal for animal in animals}

    def add(self, animal: Animal) -> Animal:
        self.animals[animal.id] = animal
        return animal

    def get(self, animal_id: str) -> Optional[Animal]:
        return self.animals.get(animal_id)

    def find_by_owner(self, owner_id: str) -> List[Animal]:
        return [animal for animal in self.animals.values() if animal.owner_id == owner_id]


class InMemoryUserProfileStore(UserProfileStore):
    def __init__(self):
        self.profiles: Dict[str, Dict[str, Any]] = {}

    def set_profile(self, owner_id: str, region: Optional[str] = None, country: Optional[str] = None):
        self.profiles[owner_id] = {"region": region, "country": country}

    def get_region_preference(self, owner_id: str) -> Optional[str]:
        return self.profiles.get(owner_id, {}).get("region")

    def get_country(self, owner_id: str) -> Optional[str]:
        return self.profiles.get(owner_id, {}).get("country")


class InMemoryProtocolRepository(ProtocolRepository):
    def __init__(self, protocols: Sequence[RegionalProtocol] = ()):
        self.protocols = list(protocols)
        self.calls: List[Tuple[str, str, Optional[str]]] = []

    def find(self, region: str, animal_type: str, country: Optional[str] = None) -> Optional[RegionalProtocol]:
        self.calls.append((region, animal_type, country))
        for protocol in self.protocols:
            if protocol.region != region or protocol.animal_type != animal_type:
                continue
            if country is not None and country not in [c.code for c in protocol.countries]:
                continue
            return protocol
        return None


class InMemoryRecordStore(RecordStore):
    """Record store enforcing the scheduled-dose uniqueness rule with snapshot transactions."""

    def __init__(self):
        self.records: Dict[str, VaccinationRecord] = {}
        self.fail_on: Optional[str] = None
        self.transactions = 0

    def add(self, *records: VaccinationRecord) -> None:
        for record in records:
            self.records[record.id] = record

    def _check_failure(self, operation: str) -> None:
        if self.fail_on == operation:
            raise RuntimeError(f"simulated {operation} failure")

    def _is_duplicate(self, record: VaccinationRecord) -> bool:
        if record.status != "scheduled":
            return False
        return any(
            existing.status == "scheduled"
            and (existing.animal_id, existing.vaccine_name, existing.dose_number)
            == (record.animal_id, record.vaccine_name, record.dose_number)
            for existing in self.records.values()
        )

    def get(self, owner_id: str, record_id: str) -> Optional[VaccinationRecord]:
        record = self.records.get(record_id)
        if record is None or record.owner_id != owner_id:
            return None
        return record

    def query_by_animal(self, owner_id: str, animal_id: str) -> List[VaccinationRecord]:
        records = [
            record for record in self.records.values()
            if record.owner_id == owner_id and record.animal_id == animal_id
        ]
        return sorted(records, key=lambda record: record.scheduled_date or datetime.min)

    def query_by_owner(self, owner_id: str) -> List[VaccinationRecord]:
        return [record for record in self.records.values() if record.owner_id == owner_id]

    def query_overdue(self, owner_id: str, now: datetime) -> List[VaccinationRecord]:
        records = [
            record for record in self.records.values()
            if record.owner_id == owner_id
            and record.next_due_date is not None
            and record.next_due_date < now
            and record.status in ("scheduled", "completed")
        ]
        return sorted(records, key=lambda record: record.next_due_date)

    def insert(self, record: VaccinationRecord, session=None) -> VaccinationRecord:
        self._check_failure("insert")
        self.records[record.id] = record
        return record

    def insert_many(self, records, session=None):
        self._check_failure("insert")
        inserted = []
        for record in records:
            if self._is_duplicate(record):
                continue
            self.records[record.id] = record
            inserted.append(record)
        return inserted, len(records) - len(inserted)

    def update(self, record_id: str, changes: Dict[str, Any], session=None) -> bool:
        self._check_failure("update")
        record = self.records.get(record_id)
        if record is None:
            return False
        self.records[record_id] = record.model_copy(update=changes)
        return True

    def delete_many(self, record_ids, session=None) -> int:
        self._check_failure("delete")
        removed = 0
        for record_id in record_ids:
            if self.records.pop(record_id, None) is not None:
                removed += 1
        return removed

    @contextmanager
    def transaction(self):
        snapshot = copy.deepcopy(self.records)
        self.transactions += 1
        try:
            yield object()
        except Exception:
            self.records = snapshot
            raise


class InMemoryAlertStore(AlertStore):
    def __init__(self):
        self.alerts: Dict[str, VaccinationAlert] = {}

    def get(self, owner_id: str, alert_id: str) -> Optional[VaccinationAlert]:
        alert = self.alerts.get(alert_id)
        if alert is None or alert.owner_id != owner_id:
            return None
        return alert

    def insert(self, alert: VaccinationAlert) -> VaccinationAlert:
        self.alerts[alert.id] = alert
        return alert

    def update(self, alert_id: str, changes: Dict[str, Any]) -> bool:
        alert = self.alerts.get(alert_id)
        if alert is None:
            return False
        self.alerts[alert_id] = alert.model_copy(update=changes)
        return True

    def find_active_for_records(self, record_ids) -> List[VaccinationAlert]:
        wanted = set(record_ids)
        return [alert for alert in self.alerts.values() if alert.is_active and alert.record_id in wanted]

    def query_by_owner(self, owner_id: str, active_only: bool = True) -> List[VaccinationAlert]:
        return [
            alert for alert in self.alerts.values()
            if alert.owner_id == owner_id and (alert.is_active or not active_only)
        ]

    def active_for_record(self, record_id: str) -> List[VaccinationAlert]:
        return [alert for alert in self.alerts.values() if alert.is_active and alert.record_id == record_id]


@pytest.fixture
def now():
    """Fixed evaluation time."""
    return datetime(2024, 3, 1, 9, 0, 0)


@pytest.fixture
def owner_id():
    return "owner-1"


@pytest.fixture
def goat(owner_id):
    """Goat born 2024-01-01 (60 days old on 2024-03-01)."""
    return Animal(
        id="animal-goat",
        owner_id=owner_id,
        date_of_birth=datetime(2024, 1, 1),
        animal_type="goat",
        name="Daisy"
    )


@pytest.fixture
def cattle(owner_id):
    """Calf born 2024-01-01."""
    return Animal(
        id="animal-cattle",
        owner_id=owner_id,
        date_of_birth=datetime(2024, 1, 1),
        animal_type="cattle",
        name="Bella"
    )


@pytest.fixture
def cdt_vaccine():
    return Vaccine(
        vaccine_name="CDT",
        vaccine_type="toxoid",
        administration_route="subcutaneous",
        primary_series=[
            PrimaryDose(age_in_days=42, dose_number=1),
            PrimaryDose(age_in_days=70, dose_number=2)
        ],
        boosters=[Booster(frequency="annual", frequency_in_days=365, last_vaccination_gap=300)]
    )


@pytest.fixture
def goat_protocol(cdt_vaccine):
    """Global default goat protocol."""
    return RegionalProtocol(
        id="protocol-goat-global",
        region="global_default",
        animal_type="goat",
        vaccines=[cdt_vaccine]
    )


@pytest.fixture
def south_asia_cattle_protocol():
    return RegionalProtocol(
        id="protocol-cattle-south-asia",
        region="south_asia",
        countries=[Country(code="IN")],
        animal_type="cattle",
        vaccines=[
            Vaccine(
                vaccine_name="PPR",
                primary_series=[PrimaryDose(age_in_days=120, dose_number=1)]
            )
        ]
    )


@pytest.fixture
def europe_cattle_protocol():
    return RegionalProtocol(
        id="protocol-cattle-europe",
        region="europe",
        countries=[Country(code="DE")],
        animal_type="cattle",
        vaccines=[
            Vaccine(
                vaccine_name="IBR/BVD",
                primary_series=[PrimaryDose(age_in_days=90, dose_number=1)],
                seasonal_recommendations=[
                    SeasonalRecommendation(season="autumn", months=[9, 10], is_priority=True, reason="Housing season")
                ]
            )
        ]
    )


@pytest.fixture
def animal_store(goat, cattle):
    return InMemoryAnimalStore([goat, cattle])


@pytest.fixture
def profile_store():
    return InMemoryUserProfileStore()


@pytest.fixture
def protocol_repository(goat_protocol, south_asia_cattle_protocol, europe_cattle_protocol):
    return InMemoryProtocolRepository([goat_protocol, south_asia_cattle_protocol, europe_cattle_protocol])


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def alert_store():
    return InMemoryAlertStore()


@pytest.fixture
def protocol_store(protocol_repository):
    return RegionalProtocolStore(protocol_repository, InMemoryProtocolCache())


@pytest.fixture
def vaccination_service(animal_store, profile_store, record_store, alert_store, protocol_store):
    """Vaccination service wired against in-memory stores (no geolocation)."""
    return VaccinationService(
        animals=animal_store,
        records=record_store,
        protocols=protocol_store,
        resolver=RegionResolver(profiles=profile_store),
        alerts=AlertManager(alert_store),
        reconciliation=ReconciliationEngine(record_store)
    )


def make_record(**overrides) -> VaccinationRecord:
    """Build a vaccination record with sensible defaults."""
    data = {
        "owner_id": "owner-1",
        "animal_id": "animal-goat",
        "region": "global_default",
        "country": "unspecified",
        "vaccine_name": "CDT",
        "dose_number": 1,
        "status": "scheduled"
    }
    data.update(overrides)
    return VaccinationRecord(**data)


@pytest.fixture
def record_factory():
    return make_record
