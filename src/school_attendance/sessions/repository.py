from __future__ import annotations

from typing import Protocol, Sequence

from .model import SessionConfiguration


class SessionConfigurationRepository(Protocol):
    def list_for_class_subject(self, class_id: int, subject_id: int) -> Sequence[SessionConfiguration]:
        """All configurations of the pair, active or not."""

        raise NotImplementedError
