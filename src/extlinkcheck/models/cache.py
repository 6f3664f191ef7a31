from __future__ import annotations

from collections.abc import Iterator
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ManualState = bool | Literal["auto"]


class StrategyHint(StrEnum):
    """Rungs of the verification ladder, cheapest first."""

    FETCH_NODE = "fetch-node"
    FETCH_BROWSER_AGENT = "fetch-browser-agent"
    PLAYWRIGHT = "playwright"
    MANUAL = "manual"

    @property
    def is_live(self) -> bool:
        """False for the manual rung, which never touches the network."""
        return self is not StrategyHint.MANUAL

    def next(self) -> StrategyHint | None:
        """Return the rung after this one, or None once the ladder is exhausted."""
        return _NEXT_RUNG[self]

    @classmethod
    def ladder_from(cls, start: StrategyHint) -> Iterator[StrategyHint]:
        """Yield ``start`` and every rung after it, in order."""
        step: StrategyHint | None = start
        while step is not None:
            yield step
            step = step.next()


_NEXT_RUNG: dict[StrategyHint, StrategyHint | None] = {
    StrategyHint.FETCH_NODE: StrategyHint.FETCH_BROWSER_AGENT,
    StrategyHint.FETCH_BROWSER_AGENT: StrategyHint.PLAYWRIGHT,
    StrategyHint.PLAYWRIGHT: StrategyHint.MANUAL,
    StrategyHint.MANUAL: None,
}


def normalize_manual_state(raw: Any) -> ManualState | None:
    """Parse a hand-edited manual flag: ``true``/``false``/``"auto"``, else None."""
    if raw is True or raw is False:
        return raw
    if isinstance(raw, str):
        value = raw.strip().lower()
        if value == "true":
            return True
        if value == "false":
            return False
        if value == "auto":
            return "auto"
    return None


class CacheEntry(BaseModel):
    """Last known verification outcome for one external URL."""

    model_config = ConfigDict(populate_by_name=True)

    status: int | None = None
    ok: bool = False
    last_checked: str = Field(default="", alias="lastChecked")  # ISO-8601
    error: str | None = None
    hint: StrategyHint | None = None
    manual: ManualState | None = None

    @field_validator("hint", mode="before")
    @classmethod
    def _unknown_hint_is_none(cls, v: Any) -> StrategyHint | None:
        try:
            return StrategyHint(v)
        except (TypeError, ValueError):
            return None

    @field_validator("manual", mode="before")
    @classmethod
    def _normalize_manual(cls, v: Any) -> ManualState | None:
        return normalize_manual_state(v)

    def to_json_dict(self) -> dict[str, Any]:
        """On-disk shape: camelCase keys, optional fields omitted, status always present."""
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return {"status": self.status, **payload}


class CacheFile(BaseModel):
    """The whole cache document."""

    version: int = 1
    entries: dict[str, CacheEntry] = Field(default_factory=dict)
