"""Per-user display preferences."""

from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from foretrack.models.currency import CURRENCIES


SUPPORTED_CURRENCY_CODES = frozenset(c.code for c in CURRENCIES)


class UserPreferences(BaseModel):
    """
    One row per user. Saving replaces the user's previous row, so the
    id stays the same across updates.
    """

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    currency: str = Field(default="USD")
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        code = v.strip().upper()
        if code not in SUPPORTED_CURRENCY_CODES:
            raise ValueError(f"Unsupported currency: {v}")
        return code
