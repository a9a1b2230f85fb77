"""Distributed grep: a gRPC worker server and a client that merges a majority of worker answers."""

__version__ = "0.1.0"

__all__ = ["client", "config", "grepsvc", "handler", "models", "server"]