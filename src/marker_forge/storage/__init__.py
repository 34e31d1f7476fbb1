"""
Storage Module
==============

Request naming and artifact persistence.

Components:
    - new_request_id: Time-prefixed random identifier
    - ArtifactStore: Per-request file layout with atomic writes
"""

from marker_forge.storage.naming import RequestIdFactory, new_request_id
from marker_forge.storage.artifacts import ArtifactStore

__all__ = [
    "RequestIdFactory",
    "new_request_id",
    "ArtifactStore",
]
