"""Pydantic request models for the relcache read API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ImageSearchQuery(BaseModel):
    """Query string for image search."""

    q: str = Field(..., min_length=1, max_length=256)
    account: Optional[str] = Field(default=None, max_length=128)
    region: Optional[str] = Field(default=None, max_length=64)

    @field_validator("account", "region")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None
