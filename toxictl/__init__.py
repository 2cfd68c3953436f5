"""Client library and command-line tool for the HTTP API of a fault-injecting TCP proxy."""

__version__ = "2.0.0"
__all__ = ["cli", "client", "errors", "proxy", "toxic"]