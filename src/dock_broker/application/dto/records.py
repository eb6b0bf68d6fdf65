"""
Record DTOs

Schemas for records read from the shared sync store. Anything can be
written to the store by any peer, so inbound records are validated here
before the domain sees them.
"""

from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError

from dock_broker.shared.errors import RecordValidationError


class _StoreRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def parse(cls, value: Optional[Dict[str, Any]]):
        """
        Validate a raw store record.

        Raises:
            RecordValidationError: If the record is absent or malformed
        """
        if value is None:
            raise RecordValidationError(f"{cls.__name__}: record is empty")
        try:
            return cls.model_validate(value)
        except ValidationError as e:
            raise RecordValidationError(
                f"{cls.__name__}: invalid record",
                details={"errors": e.errors(include_url=False)},
            ) from e


class ConnectionRequestRecord(_StoreRecord):
    """A client's request to bind to one host."""

    client_id: StrictStr = Field(..., alias="clientId", min_length=1)
    target_host: StrictStr = Field(..., alias="targetHost", min_length=1)
    created_at: Optional[Union[int, float, StrictStr]] = Field(default=None, alias="createdAt")


class JobRecord(_StoreRecord):
    """A job record inside a request channel."""

    code: Optional[StrictStr] = None
    processed: Optional[StrictBool] = None
    output: Optional[StrictStr] = None
    error: Optional[StrictStr] = None
    timestamp: Optional[Union[int, float]] = None

    @property
    def is_pending(self) -> bool:
        """Carries code and has not been processed yet."""
        return bool(self.code) and not self.processed
