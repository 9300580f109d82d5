"""The live survey form whose choice pools are depleted.

A form is loaded from a JSON definition::

    {
      "form_id": "team-signup",
      "title": "Team sign-up",
      "items": [
        {"id": "slot", "title": "Pick a slot", "type": "MULTIPLE_CHOICE",
         "choices": ["9am", "10am", "11am"]},
        {"id": "notes", "title": "Anything else?", "type": "PARAGRAPH_TEXT"}
      ]
    }

Items are mutable shared state: several submissions may read and rewrite the
same item's choices, so callers serialise pool read-modify-write cycles
themselves (see :mod:`choice_eliminator.locks`).
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from choice_eliminator.exceptions import FormDefinitionError, QuestionResolutionError
from choice_eliminator.models import SUPPORTED_TYPES, QuestionType, SupportedQuestion

logger = logging.getLogger(__name__)


@dataclass
class FormItem:
    id: str
    title: str
    type: QuestionType
    choices: List[str] = field(default_factory=list)
    required: bool = False


class Form:
    """In-process form made of ordered items."""

    def __init__(self, form_id: str, title: str, items: List[FormItem]):
        self.form_id = form_id
        self.title = title
        self._items: Dict[str, FormItem] = {}
        for item in items:
            if item.id in self._items:
                raise FormDefinitionError(f"Duplicate item id {item.id} in form {form_id}.")
            self._items[item.id] = item
        self._lock = threading.Lock()

    def get_items(self) -> List[FormItem]:
        """Returns a snapshot of the items in display order."""
        with self._lock:
            return [
                FormItem(i.id, i.title, i.type, list(i.choices), i.required)
                for i in self._items.values()
            ]

    def get_item_by_id(self, item_id: str) -> Optional[FormItem]:
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            return FormItem(item.id, item.title, item.type, list(item.choices), item.required)

    def _resolve(self, question_id: str, question_type: QuestionType) -> FormItem:
        item = self._items.get(question_id)
        if item is None:
            raise QuestionResolutionError(question_id)
        if question_type not in SUPPORTED_TYPES:
            raise QuestionResolutionError(
                question_id, f"has unsupported type {question_type.value}"
            )
        if item.type != question_type:
            raise QuestionResolutionError(
                question_id, f"is {item.type.value}, not {question_type.value}"
            )
        return item

    def get_choice_pool(self, question_id: str, question_type: QuestionType) -> List[str]:
        """Return the choices currently offered by a supported question.

        Raises
        ------
        QuestionResolutionError
            If the id is unknown or does not match *question_type*.
        """
        with self._lock:
            return list(self._resolve(question_id, question_type).choices)

    def set_choice_pool(
        self, question_id: str, question_type: QuestionType, pool: List[str]
    ) -> None:
        """Replace the choices offered by a supported question."""
        if not pool:
            raise ValueError(f"Refusing to write an empty choice pool to {question_id}.")
        with self._lock:
            self._resolve(question_id, question_type).choices = list(pool)


def list_supported_questions(form: Form) -> List[SupportedQuestion]:
    """Return the questions that can be gated, in form order."""
    return [
        SupportedQuestion(id=item.id, title=item.title, type=item.type)
        for item in form.get_items()
        if item.type in SUPPORTED_TYPES
    ]


# Block Kit rejects the whole modal when any option breaks these
_MAX_CHOICE_VALUE = 150
_MAX_CHOICES = {
    QuestionType.MULTIPLE_CHOICE: 100,
    QuestionType.LIST: 100,
    QuestionType.CHECKBOX: 10,
}


def _check_choices(item_id: str, item_type: QuestionType, choices: List[str]) -> None:
    if not choices:
        raise FormDefinitionError(f"Item {item_id} of type {item_type.value} needs choices.")
    if len(choices) > _MAX_CHOICES[item_type]:
        raise FormDefinitionError(
            f"Item {item_id} has {len(choices)} choices; {item_type.value} allows at most "
            f"{_MAX_CHOICES[item_type]}."
        )
    if len(set(choices)) != len(choices):
        raise FormDefinitionError(f"Item {item_id} has duplicate choices.")
    invalid = [c for c in choices if not c or len(c) > _MAX_CHOICE_VALUE]
    if invalid:
        raise FormDefinitionError(
            f"Item {item_id} has choices that are empty or longer than {_MAX_CHOICE_VALUE} characters."
        )


def _parse_item(raw: Dict[str, Any], index: int) -> FormItem:
    try:
        item_id = str(raw["id"])
        item_type = QuestionType(str(raw["type"]).upper())
    except KeyError as exc:
        raise FormDefinitionError(f"Item #{index} is missing field {exc}.") from exc
    except ValueError as exc:
        raise FormDefinitionError(f"Item #{index} has unknown type {raw.get('type')!r}.") from exc

    choices = [str(c) for c in raw.get("choices", [])]
    if item_type in SUPPORTED_TYPES:
        _check_choices(item_id, item_type, choices)
    return FormItem(
        id=item_id,
        title=str(raw.get("title", item_id)),
        type=item_type,
        choices=choices,
        required=bool(raw.get("required", False)),
    )


def form_from_dict(data: Dict[str, Any]) -> Form:
    if not isinstance(data, dict) or not isinstance(data.get("items"), list):
        raise FormDefinitionError("Form definition must be an object with an 'items' list.")
    items = [_parse_item(raw, idx) for idx, raw in enumerate(data["items"])]
    return Form(
        form_id=str(data.get("form_id", "form")),
        title=str(data.get("title", "Survey")),
        items=items,
    )


def load_form(path: str | Path) -> Form:
    """Load a :class:`Form` from the JSON definition at *path*."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FormDefinitionError(f"Failed to read form definition {path}: {exc}") from exc
    form = form_from_dict(data)
    logger.info(
        "form_loaded",
        extra={"form_id": form.form_id, "items": len(form.get_items())},
    )
    return form
