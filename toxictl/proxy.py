"""Proxies managed through a Toxiproxy server."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from toxictl.errors import ClientError
from toxictl.toxic import Toxic

if TYPE_CHECKING:
    from toxictl.client import Client


@dataclass
class Proxy:
    """A proxy definition, bound to the client that talks to its server."""

    name: str = ""
    listen: str = ""
    upstream: str = ""
    enabled: bool = False
    active_toxics: list[Toxic] = field(default_factory=list)
    client: Client | None = field(default=None, repr=False, compare=False)
    created: bool = field(default=False, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form sent to the server."""
        return {
            "name": self.name,
            "listen": self.listen,
            "upstream": self.upstream,
            "enabled": self.enabled,
            "toxics": [toxic.to_dict() for toxic in self.active_toxics],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], client: Client | None = None) -> Proxy:
        """Build a proxy from its JSON form."""
        proxy = cls(client=client)
        proxy._merge(data)
        return proxy

    def _merge(self, data: Any) -> None:
        if not isinstance(data, Mapping):
            raise ClientError(f"invalid proxy data: {data!r}")
        if "name" in data:
            self.name = data["name"] or ""
        if "listen" in data:
            self.listen = data["listen"] or ""
        if "upstream" in data:
            self.upstream = data["upstream"] or ""
        if "enabled" in data:
            self.enabled = bool(data["enabled"])
        if "toxics" in data:
            self.active_toxics = [Toxic.from_dict(t) for t in data["toxics"] or []]

    def _bound(self) -> Client:
        if self.client is None:
            raise ClientError(f"proxy {self.name!r} is not bound to a client")
        return self.client

    def save(self) -> None:
        """Create the proxy on the server, or push changes if it exists."""
        client = self._bound()
        path = f"/proxies/{self.name}" if self.created else "/proxies"
        self._merge(client._post(path, self.to_dict()))
        self.created = True

    def enable(self) -> None:
        """Enable the proxy again after it has been disabled."""
        self.enabled = True
        self.save()

    def disable(self) -> None:
        """Disable the proxy, dropping all its connections."""
        self.enabled = False
        self.save()

    def delete(self) -> None:
        """Delete the proxy and close its connections."""
        try:
            self._bound()._delete(f"/proxies/{self.name}")
        except ClientError as exc:
            raise ClientError(f"Delete: {exc}", exc.status) from exc

    def toxics(self) -> list[Toxic]:
        """Return the toxics active on the proxy."""
        data = self._bound()._get(f"/proxies/{self.name}/toxics")
        if not isinstance(data, list):
            raise ClientError(f"invalid toxic list: {data!r}")
        return [Toxic.from_dict(item) for item in data]

    def add_toxic(
        self,
        name: str = "",
        type_name: str = "",
        stream: str = "",
        toxicity: float = 1.0,
        attributes: Mapping[str, Any] | None = None,
    ) -> Toxic:
        """Add a toxic; the server names it <type>_<stream> when no name is given.

        A toxicity of -1 stands for the default of 1.
        """
        client = self._bound()
        toxic = Toxic(name, type_name, stream, toxicity, dict(attributes or {}))
        if toxic.toxicity == -1:
            toxic.toxicity = 1.0
        try:
            data = client._post(f"/proxies/{self.name}/toxics", toxic.to_dict())
        except ClientError as exc:
            raise ClientError(f"AddToxic: {exc}", exc.status) from exc
        return _toxic_from(data)

    def update_toxic(
        self,
        name: str,
        toxicity: float = -1,
        attributes: Mapping[str, Any] | None = None,
    ) -> Toxic:
        """Update a toxic; a toxicity of -1 keeps the current value."""
        client = self._bound()
        body: dict[str, Any] = {"attributes": dict(attributes or {})}
        if toxicity != -1:
            body["toxicity"] = toxicity
        data = client._patch(f"/proxies/{self.name}/toxics/{name}", body)
        return _toxic_from(data)

    def remove_toxic(self, name: str) -> None:
        """Remove the toxic with the given name."""
        self._bound()._delete(f"/proxies/{self.name}/toxics/{name}")


def _toxic_from(data: Any) -> Toxic:
    if not isinstance(data, Mapping):
        raise ClientError(f"invalid toxic data: {data!r}")
    return Toxic.from_dict(data)