"""SigV4-signed raw HTTP storage backend."""

from .backend import HttpSignedBackend

__all__ = ["HttpSignedBackend"]
