"""
Field and model catalog schemas.

Both catalogs are loaded once at startup and never change afterwards.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldDefinition(BaseModel):
    """One canonical field the mapper looks for in a sheet."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Canonical field name, e.g. 'title'")
    required: bool = True
    multi: bool = Field(False, description="Maps to an ordered list of headers")
    aliases: tuple[str, ...] = Field(default=(), description="Known header phrases")
    candidate_limit: int = Field(5, ge=1, le=100, description="Max candidates shown for disambiguation")

    @field_validator("aliases", mode="before")
    @classmethod
    def aliases_to_tuple(cls, value):
        if isinstance(value, str):
            return (value,)
        return tuple(value or ())


class ModelOption(BaseModel):
    """Prediction model the user can select."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    title: str
