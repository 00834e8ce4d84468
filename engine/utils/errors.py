# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Application exceptions raised by the vaccination engine.

Each exception carries an HTTP status code and an error type identifier so the
route layer can translate it without inspecting engine internals.
"""


class CustomException(Exception):
    """Base class for custom application exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(CustomException):
    """Exception for malformed animal or vaccination input."""

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class NotFoundException(CustomException):
    """Exception for resource not found errors."""

    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found")


class ProtocolNotFoundException(NotFoundException):
    """No protocol exists anywhere in the fallback chain."""

    def __init__(self, region: str, country: str, animal_type: str):
        super().__init__(
            f"No vaccination schedule found for {animal_type} in {region}/{country}"
        )
        self.error_type = "protocol-not-found"
        self.region = region
        self.country = country
        self.animal_type = animal_type


class AnimalNotFoundException(NotFoundException):
    """Animal does not exist or is not owned by the caller."""

    def __init__(self, animal_id: str):
        super().__init__(f"Animal not found: {animal_id}")
        self.animal_id = animal_id


class RecordNotFoundException(NotFoundException):
    """Vaccination record or alert does not exist for the caller."""

    def __init__(self, message: str):
        super().__init__(message)


class ConflictException(CustomException):
    """Exception for writes against immutable state."""

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict")


class PersistenceException(CustomException):
    """A store write failed; the unit of work was rolled back."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message, 503, "persistence-failure")
        self.retryable = retryable
