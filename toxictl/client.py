"""HTTP client for the Toxiproxy API."""

from __future__ import annotations

import http.client
import json
import urllib.error
import urllib.request
from typing import Any, Iterable

from toxictl.errors import ApiError, ClientError
from toxictl.proxy import Proxy
from toxictl.toxic import Toxic, ToxicOptions

_TIMEOUT = 30.0


class Client:
    """Connection details for a Toxiproxy server and the calls it answers."""

    def __init__(self, endpoint: str = "localhost:8474") -> None:
        if not endpoint.startswith(("https://", "http://")):
            endpoint = "http://" + endpoint
        self.endpoint = endpoint
        self.user_agent = "toxiproxy-cli"
        self.timeout = _TIMEOUT
        self._opener = urllib.request.build_opener(urllib.request.ProxyHandler({}))

    def version(self) -> bytes:
        """Return the raw version document of the running server."""
        return self._send("GET", "/version")

    def proxies(self) -> dict[str, Proxy]:
        """Return every proxy with its toxics, keyed by name."""
        data = self._get("/proxies")
        if not isinstance(data, dict):
            raise ClientError(f"invalid proxy list: {data!r}")
        result = {}
        for name, item in data.items():
            proxy = Proxy.from_dict(item, self)
            proxy.created = True
            result[name] = proxy
        return result

    def new_proxy(self) -> Proxy:
        """Return an unsaved proxy bound to this client."""
        return Proxy(client=self)

    def create_proxy(self, name: str, listen: str, upstream: str) -> Proxy:
        """Create an enabled proxy and start it listening."""
        proxy = Proxy(name=name, listen=listen, upstream=upstream, enabled=True, client=self)
        try:
            proxy.save()
        except ClientError as exc:
            raise ClientError(f"Create: {exc}", exc.status) from exc
        return proxy

    def proxy(self, name: str) -> Proxy:
        """Return the proxy with the given name."""
        proxy = Proxy.from_dict(self._get(f"/proxies/{name}"), self)
        proxy.created = True
        return proxy

    def populate(self, config: Iterable[Proxy]) -> list[Proxy]:
        """Create or replace proxies from a configuration list."""
        body = [proxy.to_dict() for proxy in config]
        try:
            data = self._post("/populate", body)
        except ClientError as exc:
            raise ClientError(f"Populate: {exc}", exc.status) from exc
        if not isinstance(data, dict):
            raise ClientError(f"invalid populate response: {data!r}")
        return [Proxy.from_dict(item, self) for item in data.get("proxies") or []]

    def add_toxic(self, options: ToxicOptions) -> Toxic:
        """Add a toxic to the proxy named in the options."""
        proxy = self._proxy_for(options)
        try:
            return proxy.add_toxic(
                options.toxic_name,
                options.toxic_type,
                options.stream,
                options.toxicity,
                options.attributes,
            )
        except ClientError as exc:
            raise ClientError(
                f"failed to add toxic to proxy {options.proxy_name}: {exc}", exc.status
            ) from exc

    def update_toxic(self, options: ToxicOptions) -> Toxic:
        """Update a toxic of the proxy named in the options."""
        proxy = self._proxy_for(options)
        try:
            return proxy.update_toxic(options.toxic_name, options.toxicity, options.attributes)
        except ClientError as exc:
            raise ClientError(
                f"failed to update toxic '{options.toxic_name}' "
                f"of proxy '{options.proxy_name}': {exc}",
                exc.status,
            ) from exc

    def remove_toxic(self, options: ToxicOptions) -> None:
        """Remove a toxic from the proxy named in the options."""
        proxy = self._proxy_for(options)
        try:
            proxy.remove_toxic(options.toxic_name)
        except ClientError as exc:
            raise ClientError(
                f"failed to remove toxic '{options.toxic_name}' "
                f"from proxy '{options.proxy_name}': {exc}",
                exc.status,
            ) from exc

    def reset_state(self) -> None:
        """Re-enable every proxy and remove all toxics."""
        self._send("POST", "/reset", b"")

    def _proxy_for(self, options: ToxicOptions) -> Proxy:
        try:
            return self.proxy(options.proxy_name)
        except ClientError as exc:
            raise ClientError(
                f"failed to retrieve proxy with name `{options.proxy_name}`: {exc}",
                exc.status,
            ) from exc

    def _get(self, path: str) -> Any:
        return _decode(self._send("GET", path))

    def _post(self, path: str, payload: Any) -> Any:
        return _decode(self._send("POST", path, json.dumps(payload).encode()))

    def _patch(self, path: str, payload: Any) -> Any:
        return _decode(self._send("PATCH", path, json.dumps(payload).encode()))

    def _delete(self, path: str) -> None:
        self._send("DELETE", path)

    def _send(self, verb: str, path: str, body: bytes | None = None) -> bytes:
        request = urllib.request.Request(
            self.endpoint + path,
            data=body,
            method=verb,
            headers={"User-Agent": self.user_agent, "Content-Type": "application/json"},
        )
        try:
            with self._opener.open(request, timeout=self.timeout) as response:
                return response.read()
        except urllib.error.HTTPError as exc:
            raise _api_error(exc.code, exc.read()) from None
        except (OSError, http.client.HTTPException) as exc:
            raise ClientError(f"fail to request: {exc}") from exc


def _decode(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise ClientError(f"invalid JSON response: {exc}") from exc


def _api_error(code: int, raw: bytes) -> ApiError:
    try:
        data = json.loads(raw)
    except ValueError:
        data = None
    if not isinstance(data, dict):
        return ApiError(f"Unexpected response code {code}", code)
    return ApiError(str(data.get("error", "")), int(data.get("status", code)))