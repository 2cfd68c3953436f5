"""Toxic descriptions as exchanged with the server."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass
class Toxic:
    """A toxic attached to one stream of a proxy."""

    name: str = ""
    type: str = ""
    stream: str = ""
    toxicity: float = 0.0
    attributes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; an empty stream is left out."""
        data: dict[str, Any] = {"name": self.name, "type": self.type}
        if self.stream:
            data["stream"] = self.stream
        data["toxicity"] = self.toxicity
        data["attributes"] = dict(self.attributes)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Toxic:
        """Build a toxic from its JSON form."""
        return cls(
            name=data.get("name") or "",
            type=data.get("type") or "",
            stream=data.get("stream") or "",
            toxicity=float(data.get("toxicity") or 0.0),
            attributes=dict(data.get("attributes") or {}),
        )


@dataclass
class ToxicOptions:
    """Everything needed to add, update or remove a toxic through a client."""

    proxy_name: str = ""
    toxic_name: str = ""
    toxic_type: str = ""
    stream: str = ""
    toxicity: float = 0.0
    attributes: dict[str, Any] = field(default_factory=dict)