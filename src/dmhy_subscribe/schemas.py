"""Versioned record schema of the subscription store file.

The store is a single JSON document:

    {"version": "<semver>", "subscriptions": [
        {"name": str, "keywords": [str], "sid": str,
         "threads": [{"title": str, "link": str, "ep": [num]}],
         "latest": num}]}
"""

from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Number = Union[int, float]


class ThreadRecord(BaseModel):
    """Stored form of a thread; enforces the same contract as ``Thread.validate``."""

    title: str = Field(min_length=1)
    link: str = Field(min_length=1)
    ep: List[Number] = Field(min_length=1)

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    @field_validator("ep", mode="before")
    @classmethod
    def _wrap_scalar_episode(cls, value: Any) -> Any:
        if isinstance(value, (int, float, str)):
            return [value]
        return value


class SubscriptionRecord(BaseModel):
    """Stored form of a subscription."""

    name: str = Field(min_length=1)
    keywords: List[str] = Field(default_factory=list)
    sid: Optional[str] = None
    threads: List[ThreadRecord] = Field(default_factory=list)
    latest: Number = -1

    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)


class StoreRecord(BaseModel):
    """Top-level store document."""

    version: str
    subscriptions: List[SubscriptionRecord] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")
