from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict


class AcsBaseModel(BaseModel):
    """Base class for ACS Email wire payloads."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    @classmethod
    def from_wire(cls, payload: dict[str, Any]) -> Self:
        """Hydrate a model from a raw service response."""
        return cls.model_validate(payload)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON body expected by the service."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
        )
