"""Shared Pydantic base models and utilities."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    from datetime import timezone

    return datetime.now(timezone.utc)


class FitSyncBase(BaseModel):
    """Base model with shared config for all fitsync schemas."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

