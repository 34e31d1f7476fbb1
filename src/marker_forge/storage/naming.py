"""
Artifact Naming
===============

Request identifiers shared by the pattern and target artifacts.

Format: "<epoch milliseconds>-<random integer below 10^9>".
The time prefix keeps names sortable; the random suffix keeps
concurrent requests in the same millisecond apart.
"""

import secrets
import time
from typing import Callable


RequestIdFactory = Callable[[], str]


def new_request_id() -> str:
    """Return a practically-unique request identifier."""
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
