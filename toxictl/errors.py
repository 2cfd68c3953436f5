"""Errors raised while talking to a Toxiproxy server."""

from __future__ import annotations


class ClientError(Exception):
    """A request to the server could not be completed."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class ApiError(ClientError):
    """The server answered with an error status and message."""

    def __init__(self, message: str, status: int) -> None:
        super().__init__(message, status)

    def __str__(self) -> str:
        return f"HTTP {self.status}: {self.message}"