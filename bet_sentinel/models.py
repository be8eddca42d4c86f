"""
Pydantic models for Bet Sentinel data structures.

These models represent the bet events recorded by upstream ingestion
and are used for validation and serialization.
"""

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .utils import parse_timestamp

logger = logging.getLogger(__name__)


class InvalidEventError(ValueError):
    """Raised when a bet record is missing a field or carries a bad value."""

    def __init__(self, message: str, record: Any = None):
        super().__init__(message)
        self.record = record


class GeoLocation(BaseModel):
    """Location attached to a bet at ingestion time."""

    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    ll: Optional[list[float]] = None  # [latitude, longitude]
    timezone: Optional[str] = None


class BetEvent(BaseModel):
    """A single wager placed by an actor on a game."""

    actor_id: str = Field(alias="userId", min_length=1)
    amount: float = Field(alias="betAmount", ge=0, allow_inf_nan=False)
    game_id: str = Field(alias="gameId", min_length=1)
    game_name: str = Field(alias="gameName", min_length=1)
    timestamp: datetime
    flagged: bool = False
    ip_address: Optional[str] = Field(default=None, alias="ipAddress")
    geo: Optional[GeoLocation] = None

    class Config:
        populate_by_name = True
        frozen = True

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> datetime:
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"unparseable timestamp: {value!r}")
        return parsed

    @classmethod
    def from_record(cls, record: Any) -> "BetEvent":
        """
        Build an event from a raw mapping (wire or attribute names).

        Args:
            record: Mapping with the bet fields.

        Returns:
            Validated BetEvent.

        Raises:
            InvalidEventError: If a field is missing or invalid.
        """
        if isinstance(record, BetEvent):
            return record
        if not isinstance(record, dict):
            raise InvalidEventError(
                f"bet record must be a mapping, got {type(record).__name__}", record
            )
        try:
            return cls.model_validate(record)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidEventError(f"invalid bet record ({problems})", record) from e

    def to_record(self) -> dict:
        """Convert to a wire-format dictionary."""
        record = self.model_dump(by_alias=True, exclude_none=True)
        record["timestamp"] = self.timestamp.isoformat()
        return record


def parse_events(
    records: Iterable[Any],
    skip_invalid: bool = False
) -> list[BetEvent]:
    """
    Validate a batch of raw bet records.

    Args:
        records: Raw records (mappings or BetEvent instances).
        skip_invalid: Drop bad records with a warning instead of raising.

    Returns:
        List of valid events, in input order.

    Raises:
        InvalidEventError: On the first bad record when skip_invalid is False.
    """
    events = []
    skipped = 0

    for record in records:
        try:
            events.append(BetEvent.from_record(record))
        except InvalidEventError as e:
            if not skip_invalid:
                raise
            skipped += 1
            logger.warning(f"Skipping bet record: {e}")

    if skipped:
        logger.info(f"Parsed {len(events)} bet records, skipped {skipped}")

    return events
