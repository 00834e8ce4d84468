#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0

"""
Seed script for regional vaccination protocols.

Loads a small reference set (a global default goat protocol plus regional
goat and cattle protocols) for local development and manual testing.
Protocols are upserted by (region, animalType), so the script is re-runnable.
"""

import os
import sys
from datetime import datetime

# Add the parent directory to the path so we can import the engine packages
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.entities import (
    Booster,
    Country,
    PrimaryDose,
    RegionalProtocol,
    SeasonalRecommendation,
    Vaccine
)
from services.mongodb import PROTOCOLS_COLLECTION, MongoDBService


def cdt_vaccine() -> Vaccine:
    return Vaccine(
        vaccine_name="CDT",
        vaccine_type="toxoid",
        administration_route="subcutaneous",
        diseases_prevented=["Enterotoxemia", "Tetanus"],
        primary_series=[
            PrimaryDose(age_in_days=42, dose_number=1, age_description="6 weeks"),
            PrimaryDose(age_in_days=70, dose_number=2, age_description="10 weeks")
        ],
        boosters=[Booster(frequency="annual", frequency_in_days=365, last_vaccination_gap=365)]
    )


def build_protocols():
    """Reference protocols loaded by this script."""
    now = datetime.utcnow()
    return [
        RegionalProtocol(
            region="global_default",
            animal_type="goat",
            vaccines=[cdt_vaccine()],
            last_updated=now
        ),
        RegionalProtocol(
            region="south_asia",
            countries=[Country(code="IN", name="India"), Country(code="BD", name="Bangladesh")],
            animal_type="goat",
            vaccines=[
                cdt_vaccine(),
                Vaccine(
                    vaccine_name="PPR",
                    vaccine_type="live_attenuated",
                    administration_route="subcutaneous",
                    diseases_prevented=["Peste des Petits Ruminants"],
                    primary_series=[PrimaryDose(age_in_days=120, dose_number=1, age_description="4 months")],
                    boosters=[Booster(frequency="triennial", frequency_in_days=1095)],
                    seasonal_recommendations=[
                        SeasonalRecommendation(
                            season="summer",
                            months=[6, 7, 8],
                            is_priority=True,
                            reason="Monsoon outbreak risk"
                        )
                    ]
                )
            ],
            last_updated=now
        ),
        RegionalProtocol(
            region="europe",
            countries=[Country(code="DE", name="Germany"), Country(code="FR", name="France")],
            animal_type="cattle",
            vaccines=[
                Vaccine(
                    vaccine_name="IBR/BVD",
                    vaccine_type="inactivated",
                    administration_route="intramuscular",
                    diseases_prevented=["Infectious Bovine Rhinotracheitis", "Bovine Viral Diarrhea"],
                    primary_series=[
                        PrimaryDose(age_in_days=90, dose_number=1, age_description="3 months"),
                        PrimaryDose(age_in_days=120, dose_number=2, age_description="4 months")
                    ],
                    boosters=[Booster(frequency="biannual", frequency_in_days=180, last_vaccination_gap=180)],
                    seasonal_recommendations=[
                        SeasonalRecommendation(
                            season="autumn",
                            months=[9, 10],
                            is_priority=True,
                            reason="Housing season respiratory risk"
                        )
                    ]
                )
            ],
            last_updated=now
        )
    ]


def seed_protocols():
    """Upsert the reference protocols."""
    print("Seeding regional vaccination protocols...")

    mongo_svc = MongoDBService()
    collection = mongo_svc.get_collection(PROTOCOLS_COLLECTION)

    for protocol in build_protocols():
        document = protocol.to_document()
        document.pop("_id", None)
        collection.replace_one(
            {"region": protocol.region, "animalType": protocol.animal_type},
            document,
            upsert=True
        )
        print(f"  {protocol.region}/{protocol.animal_type}: {len(protocol.vaccines)} vaccines")

    mongo_svc.close_connection()
    print("Protocols seeded successfully!")


if __name__ == "__main__":
    seed_protocols()
