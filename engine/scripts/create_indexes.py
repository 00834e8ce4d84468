#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Script to create the vaccination engine's MongoDB indexes.

Includes the partial unique index that prevents a dose from being scheduled
twice for the same animal.
"""

import sys
import os
import logging

# Add the parent directory to the path so we can import the engine packages
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.mongodb import (
    RECORDS_COLLECTION,
    SCHEDULED_DOSE_INDEX,
    close_mongodb_connection,
    get_mongodb_service
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Create MongoDB indexes and confirm the scheduled-dose guard exists."""
    try:
        logger.info("Starting MongoDB index creation...")

        mongodb_service = get_mongodb_service()

        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            sys.exit(1)

        logger.info(f"Connected to MongoDB {health['version']} - Database: {health['database']}")

        mongodb_service.create_indexes()

        indexes = mongodb_service.get_collection(RECORDS_COLLECTION).index_information()
        if SCHEDULED_DOSE_INDEX not in indexes:
            logger.error(f"Index {SCHEDULED_DOSE_INDEX} missing on {RECORDS_COLLECTION}")
            sys.exit(1)

        logger.info(f"{len(indexes)} indexes present on {RECORDS_COLLECTION}")

    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")
        sys.exit(1)
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    main()
