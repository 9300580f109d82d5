"""Registration of the form-submit handler.

Submissions only need processing while at least one question is gated, so
the trigger is registered on the first enabled question and removed again
when the last one is disabled.
"""
from __future__ import annotations

import logging
import threading

from choice_eliminator.configuration import Configuration

logger = logging.getLogger(__name__)


class SubmitTrigger:
    def __init__(self, registered: bool = False) -> None:
        self._registered = registered
        self._lock = threading.Lock()

    @property
    def is_registered(self) -> bool:
        with self._lock:
            return self._registered

    def adjust(self, configuration: Configuration) -> bool:
        """Register or unregister according to *configuration*; return the new state."""
        wanted = any(settings.get("enabled") for settings in configuration.values())
        with self._lock:
            if wanted != self._registered:
                self._registered = wanted
                logger.info(
                    "form_submit_trigger_%s", "registered" if wanted else "removed"
                )
            return self._registered
