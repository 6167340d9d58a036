"""
Event log and reference entity models.

These models describe rows of the three logical tables the engine reads:
``events``, ``offers`` and ``customers``. Payload fields (``value``,
``channels``) are kept as the raw text found in the source data; decoding them
is the job of :mod:`engagement.engine.payload`.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import EventKind, OfferType

OBSERVATION_HOURS = 720
"""Length of the observation window in hours (30 days)."""


class Event(BaseModel):
    """
    Immutable fact about a customer's interaction with an offer or a purchase.

    Attributes:
        customer_id: Customer the event belongs to
        event: Kind of event
        value: Raw payload text, e.g. ``{'offer id': '9b98b8c7...'}``
        time: Hour offset from the start of the observation window
    """

    model_config = ConfigDict(frozen=True)

    customer_id: Optional[str] = Field(default=None, description="Customer identifier")
    event: EventKind = Field(description="Kind of event")
    value: str = Field(default="", description="Raw key-value payload text")
    time: int = Field(ge=0, description="Hour offset from the start of the window")


class Offer(BaseModel):
    """
    Promotional campaign definition.

    ``channels`` holds the raw list text, e.g. ``['web', 'email', 'mobile']``.
    """

    model_config = ConfigDict(frozen=True)

    offer_id: str = Field(description="Offer identifier")
    offer_type: OfferType = Field(description="Campaign type")
    channels: str = Field(default="[]", description="Raw delivery channel list text")


class Customer(BaseModel):
    """
    Customer reference record.

    ``income`` and ``gender`` are frequently empty in the source data and are
    kept as raw strings; income is only interpreted by the bracket logic.
    """

    model_config = ConfigDict(frozen=True)

    customer_id: str = Field(description="Customer identifier")
    income: Optional[str] = Field(default=None, description="Raw income text")
    gender: Optional[str] = Field(default=None, description="Raw gender text")

    @field_validator("income", "gender", mode="before")
    @classmethod
    def stringify(cls, v: object) -> Optional[str]:
        """Accept numeric incomes from CSV loaders and keep them as text."""
        if v is None:
            return None
        if isinstance(v, float) and v.is_integer():
            return str(int(v))
        return str(v)
