"""
quluub/models/base.py

Purpose: Shared document model

- UUID identifiers persisted as `_id`
- camelCase field aliases matching the stored documents
- Conversion to and from raw store documents
"""

import uuid
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

DocumentType = TypeVar("DocumentType", bound="Document")


def new_id() -> str:
    return str(uuid.uuid4())


class Document(BaseModel):
    """
    Base class for every persisted entity owned by the core.
    """

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True, extra="ignore")

    id: str = Field(default_factory=new_id, alias="_id")

    def to_document(self) -> Dict[str, Any]:
        """Returns the store representation (aliased field names)."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls: Type[DocumentType], document: Dict[str, Any]) -> DocumentType:
        return cls.model_validate(document)
