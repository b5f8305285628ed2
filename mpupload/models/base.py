"""Base model for JSON payloads returned by the object-storage API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from pydantic import BaseModel as PydanticBaseModel
from pydantic import ConfigDict

if TYPE_CHECKING:
    from mpupload.core.transport import TransportResponse


class BaseModel(PydanticBaseModel):
    """Server payload; unknown keys are ignored, aliases and names both accepted."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def from_response(cls, resp: TransportResponse) -> Self:
        """Parse a response body.

        Raises:
            ValueError: If the body is not JSON or does not fit the model
                (pydantic's ValidationError is a ValueError).
        """
        return cls.model_validate(resp.json())
