"""Data structures shared by the configuration UI and the submission handler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Sequence, Union


class QuestionType(str, Enum):
    """Item types a survey form can contain."""

    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    LIST = "LIST"
    CHECKBOX = "CHECKBOX"
    TEXT = "TEXT"
    PARAGRAPH_TEXT = "PARAGRAPH_TEXT"


# Single- or multi-answer types over a fixed textual choice set
SUPPORTED_TYPES = frozenset(
    {QuestionType.MULTIPLE_CHOICE, QuestionType.LIST, QuestionType.CHECKBOX}
)


@dataclass(frozen=True)
class SupportedQuestion:
    """Read-only snapshot of a gateable question."""

    id: str
    title: str
    type: QuestionType

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "type": self.type.value}


@dataclass(frozen=True)
class ItemResponse:
    """One answered item of a submission as delivered by the host."""

    item_id: str
    item_type: QuestionType
    response: Union[str, Sequence[str], None]


@dataclass(frozen=True)
class FormResponse:
    item_responses: List[ItemResponse] = field(default_factory=list)

    def get_item_responses(self) -> List[ItemResponse]:
        return list(self.item_responses)


@dataclass(frozen=True)
class SubmissionEvent:
    """Payload of one form submission: the live form and the response."""

    source: Any  # choice_eliminator.form.Form
    response: FormResponse
    respondent: str = ""


@dataclass(frozen=True)
class SubmissionResponse:
    """A supported-type response reduced to what depletion needs.

    ``answer`` is a string for multiple choice and list items and a
    sequence of strings for checkbox items.
    """

    item_id: str
    item_type: QuestionType
    answer: Union[str, Sequence[str], None]
