from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from ..core.exceptions import DatabaseError, DomainError

logger = logging.getLogger(__name__)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Let domain errors through; log and wrap anything else as DatabaseError."""

    try:
        yield
    except DomainError:
        raise
    except Exception as e:
        logger.exception("Failed to %s", operation)
        raise DatabaseError(f"Failed to {operation}", details={"error": str(e)}) from e
