from __future__ import annotations

from typing import Optional

from ..core.constants import DEFAULT_SESSION_NAMES
from .model import SessionOption
from .repository import SessionConfigurationRepository


class SessionService:
    """Read side of session configurations."""

    def __init__(self, configs: SessionConfigurationRepository):
        self._configs = configs

    def get_session_options(self, class_id: int, subject_id: int) -> list[SessionOption]:
        options: list[SessionOption] = []
        for config in self._configs.list_for_class_subject(class_id, subject_id):
            if not config.is_active:
                continue
            for name in config.session_names:
                options.append(
                    SessionOption(
                        value=name,
                        label=name,
                        type=config.session_type.value,
                        duration=config.session_duration,
                    )
                )
        return options

    def valid_session_names(self, class_id: int, subject_id: int, *, allow_defaults: bool = False) -> Optional[list[str]]:
        """Labels accepted for the pair.

        Returns None when the pair has no configuration at all and defaults
        are not allowed, so callers can tell "unconfigured" from "no match".
        """

        configs = list(self._configs.list_for_class_subject(class_id, subject_id))
        if not configs:
            return list(DEFAULT_SESSION_NAMES) if allow_defaults else None

        names: list[str] = []
        for config in configs:
            if config.is_active:
                names.extend(config.session_names)
        return names
