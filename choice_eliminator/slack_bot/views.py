import json
import logging
from typing import Any, Collection, Dict, List, Optional

from slack_sdk.models.blocks import (
    ActionsBlock,
    ButtonElement,
    ContextBlock,
    DividerBlock,
    HeaderBlock,
    SectionBlock,
)

from choice_eliminator.configuration import Configuration, is_enabled
from choice_eliminator.form import Form
from choice_eliminator.models import QuestionType, SupportedQuestion
from choice_eliminator.slack_bot.utils import ITEM_BLOCK_PREFIX

logger = logging.getLogger(__name__)

SURVEY_CALLBACK_ID = "survey_modal_callback"
TOGGLE_ACTION_ID = "toggle_question"
REFRESH_ACTION_ID = "refresh_questions"
ANSWER_ACTION_ID = "answer"

UNREADABLE_SETTING_TEXT = ":warning: Stored setting unreadable; toggle to reset"

# Block Kit limits
_MAX_OPTION_TEXT = 75
_MAX_RADIO_OPTIONS = 10
_MAX_TITLE = 24

_TYPE_LABELS = {
    QuestionType.MULTIPLE_CHOICE: "Multiple choice",
    QuestionType.LIST: "Dropdown",
    QuestionType.CHECKBOX: "Checkboxes",
}


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


def build_home_view(
    questions: List[SupportedQuestion],
    configuration: Configuration,
    *,
    owner: Optional[str] = None,
    addon_name: str = "Choice Eliminator",
    undecodable: Collection[str] = (),
) -> Dict[str, Any]:
    """Return the App Home view listing every gateable question with a toggle.

    Each row shows whether options are removed once chosen and a button
    flipping that setting.  The button ``value`` carries the question id and
    the *target* state.  Questions listed in *undecodable* are flagged; their
    button enables them, which rewrites the record.
    """
    blocks: List[Any] = [
        HeaderBlock(text=_truncate(addon_name, 150)),
        SectionBlock(
            text={
                "type": "mrkdwn",
                "text": "Enable a question to remove each option once a respondent picks it.",
            }
        ),
    ]
    owner_text = (
        f"Settings owner: *{owner}*" if owner else "No owner yet: the first person to change a setting becomes its owner."
    )
    blocks.append(ContextBlock(elements=[{"type": "mrkdwn", "text": owner_text}]))
    blocks.append(DividerBlock())

    if not questions:
        blocks.append(
            SectionBlock(
                text={
                    "type": "mrkdwn",
                    "text": "This form has no multiple choice, dropdown or checkbox questions.",
                }
            )
        )

    for question in questions:
        enabled = is_enabled(configuration, question.id)
        status = ":white_check_mark: Enabled" if enabled else ":no_entry_sign: Disabled"
        if question.id in undecodable:
            status = UNREADABLE_SETTING_TEXT
        blocks.append(
            SectionBlock(
                block_id=f"question_{question.id}",
                text={
                    "type": "mrkdwn",
                    "text": f"*{question.title}*\n{_TYPE_LABELS.get(question.type, question.type.value)} · {status}",
                },
                accessory=ButtonElement(
                    text="Disable" if enabled else "Enable",
                    action_id=TOGGLE_ACTION_ID,
                    value=json.dumps({"question_id": question.id, "enabled": not enabled}),
                    style="danger" if enabled else "primary",
                ),
            )
        )

    blocks.append(
        ActionsBlock(
            elements=[ButtonElement(text="Refresh", action_id=REFRESH_ACTION_ID, value="refresh")]
        )
    )
    return {"type": "home", "blocks": [block.to_dict() for block in blocks]}


def build_locked_notice_view(owner: str) -> Dict[str, Any]:
    """Blocking notice shown when a non-owner tries to change the settings."""
    return {
        "type": "modal",
        "title": {"type": "plain_text", "text": "Settings locked"},
        "close": {"type": "plain_text", "text": "OK"},
        "blocks": [
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": "*Only the first user who configured these settings can change them.*",
                },
            },
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"Please ask {owner} to modify these settings.",
                },
            },
        ],
    }


def _options(choices: List[str]) -> List[Dict[str, Any]]:
    return [
        {
            "text": {"type": "plain_text", "text": _truncate(choice, _MAX_OPTION_TEXT)},
            "value": choice,
        }
        for choice in choices
    ]


def _input_block(item) -> Dict[str, Any]:
    if item.type == QuestionType.MULTIPLE_CHOICE and len(item.choices) <= _MAX_RADIO_OPTIONS:
        element: Dict[str, Any] = {"type": "radio_buttons", "options": _options(item.choices)}
    elif item.type in (QuestionType.MULTIPLE_CHOICE, QuestionType.LIST):
        # Radio buttons only hold 10 options; larger single-answer pools use a select
        element = {
            "type": "static_select",
            "placeholder": {"type": "plain_text", "text": "Choose an option"},
            "options": _options(item.choices),
        }
    elif item.type == QuestionType.CHECKBOX:
        element = {"type": "checkboxes", "options": _options(item.choices)}
    else:
        element = {
            "type": "plain_text_input",
            "multiline": item.type == QuestionType.PARAGRAPH_TEXT,
        }
    element["action_id"] = ANSWER_ACTION_ID
    return {
        "type": "input",
        "block_id": f"{ITEM_BLOCK_PREFIX}{item.id}",
        "optional": not item.required,
        "label": {"type": "plain_text", "text": _truncate(item.title, 2000)},
        "element": element,
    }


def build_survey_modal(form: Form) -> Dict[str, Any]:
    """Render the survey with each question's *current* choice pool."""
    return {
        "type": "modal",
        "callback_id": SURVEY_CALLBACK_ID,
        "private_metadata": form.form_id,
        "title": {"type": "plain_text", "text": _truncate(form.title, _MAX_TITLE)},
        "submit": {"type": "plain_text", "text": "Submit"},
        "close": {"type": "plain_text", "text": "Cancel"},
        "blocks": [_input_block(item) for item in form.get_items()],
    }
