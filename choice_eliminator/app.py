import atexit
import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from dotenv import load_dotenv
from slack_bolt import App

from choice_eliminator import config
from choice_eliminator.form import load_form
from choice_eliminator.property_store import build_property_store
from choice_eliminator.services import ChoiceEliminatorServices, build_services
from choice_eliminator.slack_bot.handlers import (
    handle_app_home_opened,
    handle_refresh_questions,
    handle_survey_command,
    handle_survey_submission,
    handle_toggle_question,
)
from choice_eliminator.slack_bot.views import (
    REFRESH_ACTION_ID,
    SURVEY_CALLBACK_ID,
    TOGGLE_ACTION_ID,
)

# Load environment variables from .env file
load_dotenv()

# Set up logging
logging_level = os.environ.get("SLACK_LOG_LEVEL", "INFO")
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging_level
)
logger = logging.getLogger(__name__)


def _get_max_workers_from_env() -> int:  # noqa: WPS430 – tiny helper
    raw_val = os.getenv("SUBMISSION_WORKERS")
    if not raw_val:
        return 10
    try:
        parsed = int(raw_val)
        if parsed <= 0:
            logger.warning("Ignoring SUBMISSION_WORKERS=%s (must be positive int)", raw_val)
            return 10
        return parsed
    except ValueError:
        logger.warning("Invalid SUBMISSION_WORKERS value '%s'; must be integer.", raw_val)
        return 10


# Each survey submission is processed as its own short-lived task
executor = ThreadPoolExecutor(max_workers=_get_max_workers_from_env())


def shutdown_executor():
    """Gracefully shut down the thread pool executor."""
    logger.info("Shutting down thread pool executor...")
    executor.shutdown(wait=True)
    logger.info("Thread pool executor shut down gracefully.")


# Register the shutdown function to be called on exit
atexit.register(shutdown_executor)


# ------------------------------------------------------------------
# Thread helper utilities
# ------------------------------------------------------------------


def _log_future_exception(fut: Future) -> None:  # noqa: WPS430 – small util
    """Logs any exception raised by a completed *Future*."""
    exc = fut.exception()
    if exc is not None:
        logger.exception("Background task raised an exception: %s", exc, exc_info=exc)


def submit_background(func, /, *args, **kwargs) -> Future:  # noqa: WPS110
    """Submit *func* to the shared thread pool with automatic error logging."""

    fut = executor.submit(func, *args, **kwargs)
    fut.add_done_callback(_log_future_exception)
    return fut


# Log all incoming requests to help with debugging
def log_request(logger, body, next):
    logger.debug(f"Received event: {body}")
    return next()


def custom_error_handler(error, body, logger):
    logger.exception(f"Error handling request: {error}")
    logger.debug(f"Request body: {body}")


def create_app(services: Optional[ChoiceEliminatorServices] = None) -> App:
    """Build the Bolt app and register every listener.

    Without *services*, the form is loaded from ``FORM_DEFINITION_PATH`` and
    document properties from ``PROPERTY_STORE_PATH``.
    """
    # Determine if token verification should be disabled (useful for CI/test mode)
    _token_verification_enabled_env = os.getenv(
        "SLACK_BOLT_TOKEN_VERIFICATION_ENABLED", "true"
    ).lower()
    # Treat any value other than explicit "false" (case-insensitive) as truthy
    _token_verification_enabled = _token_verification_enabled_env != "false"

    app = App(
        token=os.environ.get("SLACK_BOT_TOKEN"),
        process_before_response=True,
        token_verification_enabled=_token_verification_enabled,
    )

    if services is None:
        services = build_services(
            app.client,
            load_form(config.FORM_DEFINITION_PATH),
            build_property_store(config.PROPERTY_STORE_PATH),
        )

    app.middleware(log_request)
    app.error(custom_error_handler)

    @app.event("app_home_opened")
    def app_home_opened_wrapper(event, client, logger):
        handle_app_home_opened(event=event, client=client, logger=logger, services=services)

    @app.action(TOGGLE_ACTION_ID)
    def toggle_question_wrapper(ack, body, client, logger):  # noqa: WPS110 – slack signature
        handle_toggle_question(
            ack=ack, body=body, client=client, logger=logger, services=services
        )

    @app.action(REFRESH_ACTION_ID)
    def refresh_questions_wrapper(ack, body, client, logger):
        handle_refresh_questions(
            ack=ack, body=body, client=client, logger=logger, services=services
        )

    @app.command(config.SURVEY_COMMAND)
    def survey_command_wrapper(ack, command, client, logger):
        handle_survey_command(
            ack=ack, command=command, client=client, logger=logger, services=services
        )

    @app.view(SURVEY_CALLBACK_ID)
    def survey_submission_wrapper(ack, body, view, logger):
        handle_survey_submission(
            ack=ack,
            body=body,
            view=view,
            logger=logger,
            services=services,
            submit=submit_background,
        )

    logger.info(
        "Registered %s for form '%s' (%d item(s))",
        config.ADDON_NAME,
        services.form.title,
        len(services.form.get_items()),
    )
    return app


# NOTE: Runtime startup lives in choice_eliminator/main.py to keep this module import-safe and testable.
