"""Per-question configuration persisted in the document property store.

Each gated question owns exactly one store entry, ``QUESTION_ID:<id>``, whose
value is a JSON object such as ``{"enabled": true}``.  Keeping one key per
question means two writers touching different questions never overwrite each
other.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from choice_eliminator.config import PREFIXES
from choice_eliminator.exceptions import ConfigurationDecodeError
from choice_eliminator.property_store import ThreadSafePropertyStore

logger = logging.getLogger(__name__)

QuestionSettings = Dict[str, Any]
Configuration = Dict[str, QuestionSettings]


def question_key(question_id: str) -> str:
    """Return the property store key holding *question_id*'s settings."""
    return f"{PREFIXES.QUESTION_ID}{question_id}"


def decode_settings(key: str, raw: str) -> QuestionSettings:
    """Decode one stored settings record.

    Raises
    ------
    ConfigurationDecodeError
        If *raw* is not JSON or does not decode to an object.
    """
    try:
        settings = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ConfigurationDecodeError(key, str(exc)) from exc
    if not isinstance(settings, dict):
        raise ConfigurationDecodeError(key, "expected a JSON object")
    return settings


class ConfigurationStore:
    """Typed view over the question settings held in a property store."""

    def __init__(self, store: ThreadSafePropertyStore) -> None:
        self._store = store

    def get(self) -> Configuration:
        """Return every decodable question setting keyed by question id.

        Entries that fail to decode are logged and left out; they never abort
        the read of the other entries.
        """
        configuration, _ = self.get_with_errors()
        return configuration

    def get_with_errors(self) -> Tuple[Configuration, List[str]]:
        """Like :meth:`get`, also returning the ids whose record could not be decoded."""
        configuration: Configuration = {}
        undecodable: List[str] = []
        for key, raw in self._store.get_properties().items():
            if not key.startswith(PREFIXES.QUESTION_ID):
                continue
            try:
                settings = decode_settings(key, raw)
            except ConfigurationDecodeError as exc:
                logger.error(
                    "configuration_decode_failed %s",
                    exc,
                    extra={"key": exc.key},
                )
                undecodable.append(key[len(PREFIXES.QUESTION_ID):])
                continue
            configuration[key[len(PREFIXES.QUESTION_ID):]] = settings
        return configuration, sorted(undecodable)

    def get_settings(self, question_id: str) -> Optional[QuestionSettings]:
        """Return the settings for *question_id* or None if absent or undecodable."""
        key = question_key(question_id)
        raw = self._store.get_property(key)
        if raw is None:
            return None
        try:
            return decode_settings(key, raw)
        except ConfigurationDecodeError as exc:
            logger.error("configuration_decode_failed %s", exc, extra={"key": key})
            return None

    def set_enabled(self, question_id: str, enabled: bool) -> Configuration:
        """Set the ``enabled`` flag of one question and return the refreshed mapping.

        Any other fields already stored for the question are preserved.  An
        undecodable record is replaced by a fresh one.
        """
        settings = self.get_settings(question_id) or {}
        settings["enabled"] = bool(enabled)
        self._store.set_property(question_key(question_id), json.dumps(settings))
        logger.info(
            "question_configuration_updated",
            extra={"question_id": question_id, "enabled": bool(enabled)},
        )
        return self.get()


def is_enabled(configuration: Configuration, question_id: str) -> bool:
    """Return True if *question_id* is gated and enabled in *configuration*."""
    settings = configuration.get(question_id)
    return bool(settings and settings.get("enabled"))
