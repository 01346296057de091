from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorResponse(CamelModel):
    success: bool = Field(False, description="Always false for errors.")
    message: str = Field(..., description="Human-readable reason.")
    code: str = Field(..., description="Machine-readable error code.")
    timestamp: str = Field(..., description="ISO-8601 time the error was produced.")
    path: str = Field(..., description="Request path.")
    method: str = Field(..., description="Request method.")
    data: Optional[Any] = Field(
        None, description="Partial results, when the failed operation produced any."
    )
