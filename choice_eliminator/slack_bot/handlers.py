import json
import logging
from typing import Any, Callable, Dict

from slack_bolt import Ack
from slack_sdk.errors import SlackApiError
from slack_sdk.web import WebClient

from choice_eliminator.config import PREFIXES
from choice_eliminator.exceptions import ConfigurationLockedError
from choice_eliminator.form import list_supported_questions
from choice_eliminator.notifications.notifier import send_welcome
from choice_eliminator.services import ChoiceEliminatorServices
from choice_eliminator.slack_bot.utils import parse_survey_submission, resolve_user_email
from choice_eliminator.slack_bot.views import (
    build_home_view,
    build_locked_notice_view,
    build_survey_modal,
)

logger = logging.getLogger(__name__)


def publish_home(
    client: WebClient,
    user_id: str,
    services: ChoiceEliminatorServices,
) -> None:
    """(Re)draw the configuration Home tab for ``user_id``."""
    configuration, undecodable = services.configuration.get_with_errors()
    view = build_home_view(
        list_supported_questions(services.form),
        configuration,
        owner=services.owner(),
        addon_name=services.addon_name,
        undecodable=undecodable,
    )
    client.views_publish(user_id=user_id, view=view)


# ------------------------------------------------------------------
# Event handler: Home tab opened
# ------------------------------------------------------------------


def handle_app_home_opened(
    event: Dict[str, Any],
    client: WebClient,
    logger: logging.Logger,
    services: ChoiceEliminatorServices,
) -> None:
    """Show the configuration and welcome the first visitor of an unconfigured form."""
    if event.get("tab", "home") != "home":
        return
    user_id = event["user"]
    try:
        publish_home(client, user_id, services)
    except Exception as exc:  # pragma: no cover – catch-all to protect app thread
        logger.error("Error publishing home tab for %s: %s", user_id, exc, exc_info=True)
        return

    # One welcome per install, to the first visitor of an unconfigured form
    if services.owner() or services.store.get_property(PREFIXES.WELCOMED):
        return
    if services.store.set_property_if_absent(PREFIXES.WELCOMED, user_id) != user_id:
        return
    sent = False
    try:
        email = resolve_user_email(client, user_id)
        sent = send_welcome(
            services.sender,
            email,
            form_title=services.form.title,
            addon_name=services.addon_name,
        )
    except Exception as exc:  # noqa: BLE001 – welcome is best-effort
        logger.warning("Welcome message for %s failed: %s", user_id, exc)
    if not sent:
        services.store.delete_property(PREFIXES.WELCOMED)


# ------------------------------------------------------------------
# Interaction handler: Enable / Disable button on the Home tab
# ------------------------------------------------------------------


def handle_toggle_question(
    ack: Ack,
    body: Dict[str, Any],
    client: WebClient,
    logger: logging.Logger,
    services: ChoiceEliminatorServices,
) -> None:
    """Handle a question toggle.

    1. Parses ``{"question_id", "enabled"}`` from the button ``value``.
    2. Applies it through the ownership guard as the clicking user.
    3. Opens a blocking notice naming the owner if the settings are locked.
    4. Redraws the Home tab so it reflects the stored state.
    """
    ack()

    user_id = body["user"]["id"]
    try:
        action = body.get("actions", [{}])[0]
        try:
            payload = json.loads(action.get("value", "{}"))
            question_id = str(payload["question_id"])
            enabled = bool(payload["enabled"])
        except (ValueError, KeyError, TypeError):
            logger.warning("Toggle click with malformed payload – body=%s", body)
            return

        email = resolve_user_email(client, user_id)
        try:
            services.guard_for(email).set_enabled(question_id, enabled)
            logger.info(
                f"User '{email}' set question '{question_id}' enabled={enabled}"
            )
        except ConfigurationLockedError as exc:
            client.views_open(
                trigger_id=body["trigger_id"],
                view=build_locked_notice_view(exc.owner),
            )

        publish_home(client, user_id, services)

    except Exception as exc:  # pragma: no cover – catch-all to protect app thread
        logger.error("Error handling question toggle: %s", exc, exc_info=True)


def handle_refresh_questions(
    ack: Ack,
    body: Dict[str, Any],
    client: WebClient,
    logger: logging.Logger,
    services: ChoiceEliminatorServices,
) -> None:
    ack()
    try:
        publish_home(client, body["user"]["id"], services)
    except Exception as exc:  # pragma: no cover – catch-all to protect app thread
        logger.error("Error refreshing home tab: %s", exc, exc_info=True)


# ------------------------------------------------------------------
# Survey: slash command opens the form, modal submission depletes pools
# ------------------------------------------------------------------


def handle_survey_command(
    ack: Ack,
    command: Dict[str, Any],
    client: WebClient,
    logger: logging.Logger,
    services: ChoiceEliminatorServices,
) -> None:
    """Open the survey modal with the choices currently available."""
    ack()
    try:
        client.views_open(
            trigger_id=command["trigger_id"],
            view=build_survey_modal(services.form),
        )
    except SlackApiError as exc:
        logger.error(
            f"Error opening survey modal for user '{command.get('user_id')}': {exc.response.get('error')}"
        )


def handle_survey_submission(
    ack: Ack,
    body: Dict[str, Any],
    view: Dict[str, Any],
    logger: logging.Logger,
    services: ChoiceEliminatorServices,
    submit: Callable[..., Any],
) -> None:
    """Acknowledge the modal and deplete choice pools in the background.

    The response itself is accepted either way; depletion only runs while
    the submit trigger is registered (at least one question enabled).
    """
    ack()

    if not services.trigger.is_registered:
        logger.debug("Survey submission received with no gated question; skipping.")
        return

    try:
        respondent = body.get("user", {}).get("id", "")
        event = parse_survey_submission(services.form, view, respondent)
        logger.info(
            f"Survey submission from '{respondent}' with {len(event.response.get_item_responses())} answer(s)"
        )
        submit(services.submission_handler.handle, event)
    except Exception as exc:  # noqa: BLE001 – never fail the submission
        logger.error(f"Error dispatching survey submission: {exc}", exc_info=True)
