"""Config record value type exchanged with the remote store."""

from __future__ import annotations

from dataclasses import dataclass, replace


def composite_key(category: str | None, name: str) -> str:
    """Return the ``category/name`` key used for both the snapshot and the local path."""
    return f"{category}/{name}"


@dataclass(frozen=True)
class ConfigRecord:
    """One row of remote configuration.

    ``content`` is ``None`` when only metadata was fetched.
    ``modified_time`` is milliseconds since the epoch.
    """

    id: int
    category: str | None
    name: str
    modified_time: int
    content: str | None = None

    @property
    def key(self) -> str:
        return composite_key(self.category, self.name)

    def with_content(self, content: str | None) -> ConfigRecord:
        return replace(self, content=content)
