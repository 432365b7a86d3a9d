"""
Document records stored in each cluster's metadata file.
JSON keys are camelCase (sourceId); Python attributes are snake_case.
"""

from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, Any, Literal, Union

# Keys written by the first version of the offline generator.
_LEGACY_METADATA_KEYS = {"type": "kind", "cdsCode": "sourceId", "city": "locality"}


class BaseRecordMetadata(BaseModel):
    """Fields every record kind carries."""
    source_id: str = Field(alias="sourceId", min_length=1, description="Upstream identifier (e.g. CDS code)")
    name: str
    locality: str = Field(description="City / locality the entity is located in")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class DistrictMetadata(BaseRecordMetadata):
    kind: Literal["district"] = "district"


class SchoolMetadata(BaseRecordMetadata):
    kind: Literal["school"] = "school"


RecordMetadata = Annotated[Union[DistrictMetadata, SchoolMetadata], Field(discriminator="kind")]


class DocumentRecord(BaseModel):
    """
    One retrievable text chunk.
    - id: unique within the index
    - text: the chunk that was embedded
    - metadata: closed variant keyed by `kind`
    """
    id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    metadata: RecordMetadata

    model_config = ConfigDict(frozen=True)

    @field_validator("metadata", mode="before")
    @classmethod
    def validate_metadata(cls, v: Any) -> Any:
        """Accept the legacy generator keys (type / cdsCode / city)."""
        if isinstance(v, dict):
            return {_LEGACY_METADATA_KEYS.get(k, k): val for k, val in v.items()}
        return v

    def to_dict(self) -> dict:
        """JSON-shaped dict (camelCase keys), as written in metadata files."""
        return self.model_dump(by_alias=True)
