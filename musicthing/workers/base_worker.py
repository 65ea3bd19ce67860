"""Base worker for operations run on a QThread."""

from __future__ import annotations

import logging
from typing import Any

from PySide6.QtCore import QObject, Signal

from musicthing.errors import format_error_for_user

logger = logging.getLogger(__name__)


class BaseWorker(QObject):
    """QObject moved onto a QThread; ``run`` is connected to ``thread.started``.

    Subclasses implement ``execute()``. Its return value is emitted through
    ``finished``; any exception is turned into a user-facing ``error`` string.
    Exactly one of the two is emitted per run.
    """

    started = Signal()
    progress = Signal(float)            # percent complete
    finished = Signal(object)           # result of execute()
    error = Signal(str)                 # user-facing message

    def run(self) -> None:
        self.started.emit()
        try:
            result = self.execute()
        except Exception as exc:
            logger.debug("%s failed: %s", type(self).__name__, exc)
            self.error.emit(format_error_for_user(exc))
            return
        self.finished.emit(result)

    def execute(self) -> Any:
        raise NotImplementedError
