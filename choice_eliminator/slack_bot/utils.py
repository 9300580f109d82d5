"""Utility helpers for Slack interactions."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from slack_sdk.errors import SlackApiError
from slack_sdk.web import WebClient

from choice_eliminator.models import FormResponse, ItemResponse, QuestionType, SubmissionEvent

logger = logging.getLogger(__name__)

ITEM_BLOCK_PREFIX = "item_"

# Block Kit element type -> form item type
_ELEMENT_TYPES = {
    "radio_buttons": QuestionType.MULTIPLE_CHOICE,
    "static_select": QuestionType.LIST,
    "checkboxes": QuestionType.CHECKBOX,
    "plain_text_input": QuestionType.TEXT,
}


def resolve_user_email(client: WebClient, user_id: str) -> str:
    """Return the profile email of ``user_id``.

    Falls back to the user ID itself when the app lacks the
    ``users:read.email`` scope or the profile has no email.  Other Slack
    errors propagate.
    """
    try:
        info = client.users_info(user=user_id)
    except SlackApiError as exc:
        if exc.response.get("error") == "missing_scope":
            logger.warning("users:read.email scope missing; identifying %s by ID", user_id)
            return user_id
        raise
    email = info.get("user", {}).get("profile", {}).get("email")
    return email or user_id


def _element_answer(element: Dict[str, Any]) -> Any:
    element_type = element.get("type")
    if element_type in ("radio_buttons", "static_select"):
        selected = element.get("selected_option") or {}
        return selected.get("value")
    if element_type == "checkboxes":
        return [opt.get("value") for opt in element.get("selected_options") or []]
    return element.get("value")


def parse_survey_submission(
    form: Any, view: Dict[str, Any], respondent: str = ""
) -> SubmissionEvent:
    """Convert a survey modal ``view_submission`` into a :class:`SubmissionEvent`.

    Unanswered items are left out, like the host does for blank answers.
    """
    state_values = view.get("state", {}).get("values", {})
    item_responses: List[ItemResponse] = []

    for block_id, actions in state_values.items():
        if not block_id.startswith(ITEM_BLOCK_PREFIX) or not actions:
            continue
        element = next(iter(actions.values()))
        item_id = block_id[len(ITEM_BLOCK_PREFIX):]

        # The live item decides the type; the element only matters once it is gone
        item = form.get_item_by_id(item_id)
        item_type: Optional[QuestionType] = (
            item.type if item is not None else _ELEMENT_TYPES.get(element.get("type"))
        )
        if item_type is None:
            logger.debug("Ignoring block %s with element %s", block_id, element.get("type"))
            continue

        answer = _element_answer(element)
        if answer is None or answer == "" or answer == []:
            continue
        item_responses.append(
            ItemResponse(item_id=item_id, item_type=item_type, response=answer)
        )

    return SubmissionEvent(
        source=form,
        response=FormResponse(item_responses=item_responses),
        respondent=respondent,
    )
