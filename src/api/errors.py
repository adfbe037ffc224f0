"""Service-level exceptions translated to HTTP responses in ``create_app``."""

from __future__ import annotations


class MediaFetchError(Exception):
    """The input media could not be downloaded or located."""


class StorageError(Exception):
    """The artifact store is unavailable or rejected an operation."""


class ArtifactNotFoundError(StorageError):
    pass
