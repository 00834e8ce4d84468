# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and MongoDB document conversion.
"""

from datetime import datetime
from typing import Any, Dict
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


class DocumentModel(BaseModel):
    """Base model for anything stored as a camelCase MongoDB document."""

    model_config = ConfigDict(
        # Documents are stored with camelCase keys
        alias_generator=to_camel,
        # Allow population by field name or alias
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Validate assignment
        validate_assignment=True,
        # Defaults go through enum conversion too
        validate_default=True
    )

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a MongoDB document, mapping ``id`` to ``_id``."""
        document = self.model_dump(by_alias=True)
        if "id" in document:
            doc_id = document.pop("id")
            document["_id"] = ObjectId(doc_id) if ObjectId.is_valid(doc_id) else doc_id
        return document

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        """Build a model from a MongoDB document."""
        data = dict(document)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)


class BaseEntity(DocumentModel):
    """Base entity with common fields for persisted records."""

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    owner_id: str = Field(..., description="Owner scope identifier")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")
    schema_version: int = Field(default=1, description="Schema version for migrations")
