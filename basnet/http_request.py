"""Data model for an incoming HTTP request."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Header:
    """A single HTTP header line."""

    name: str = ""
    value: str = ""


@dataclass
class Request:
    """A request received from a client."""

    method: str = ""
    uri: str = ""
    http_version_major: int = 0
    http_version_minor: int = 0
    headers: list[Header] = field(default_factory=list)

    def reset(self) -> None:
        """Return the request to its initial, empty state."""
        self.method = ""
        self.uri = ""
        self.http_version_major = 0
        self.http_version_minor = 0
        self.headers.clear()