"""Custom field handlers keyed by UI hint.

A handler can veto a save (``validate`` returning False) or adjust the own-row
fragment before it is written (``apply``). Handlers are registered up front;
there is no dynamic discovery.
"""

from collections.abc import Mapping
from typing import Any, Protocol

import structlog


class CustomFieldHandler(Protocol):
    def validate(self, fragment: Mapping[str, Any], own_row: dict[str, Any]) -> bool: ...

    def apply(self, fragment: Mapping[str, Any], own_row: dict[str, Any]) -> None: ...


class CustomFieldRegistry:
    def __init__(
        self,
        handlers: Mapping[str, CustomFieldHandler] | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._handlers: dict[str, CustomFieldHandler] = dict(handlers or {})
        self._logger = logger or structlog.get_logger(__name__)

    def register(self, ui: str, handler: CustomFieldHandler) -> None:
        if ui in self._handlers:
            self._logger.warning("custom_field_handler_replaced", ui=ui)
        self._handlers[ui] = handler

    def get(self, ui: str | None) -> CustomFieldHandler | None:
        if ui is None:
            return None
        return self._handlers.get(ui)

    def __contains__(self, ui: object) -> bool:
        return ui in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
