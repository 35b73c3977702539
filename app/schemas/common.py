from typing import Literal

from pydantic import BaseModel, Field

from app.utils.misc import get_utc_iso_now


class APIResponse[T](BaseModel):
    """Envelope shared by every JSON response, errors included."""

    status: Literal["success", "error"] = "success"
    data: T | None = None
    message: str | None = None
    timestamp: str = Field(default_factory=get_utc_iso_now)

    @classmethod
    def error(cls, message: str, data: T | None = None) -> "APIResponse[T]":
        return cls(status="error", message=message, data=data)
