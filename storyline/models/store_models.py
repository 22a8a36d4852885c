"""STORYLINE — Local Key/Value Store Model."""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class KeyValueBlob(SQLModel, table=True):
    """A single keyed blob of serialized SDK state.

    The value is always written whole; there is no partial update.
    """

    __tablename__ = "storyline_kv_store"

    key: str = Field(primary_key=True, description="Fixed SDK-scoped key")
    value: str = Field(description="Serialized payload (JSON)")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
