"""Application bootstrap for Choice Eliminator.

This module starts the Slack Bolt application via Socket Mode when executed
as a script. Keeping the runtime bootstrap here (instead of in
``choice_eliminator/app.py``) ensures the core app module can be safely
imported by unit tests and tooling without side-effects.
"""
from __future__ import annotations

import os
import sys
from contextlib import suppress

from slack_bolt.adapter.socket_mode import SocketModeHandler

from choice_eliminator.app import create_app, logger, shutdown_executor
from choice_eliminator.exceptions import FormDefinitionError


def main() -> None:  # pragma: no cover – manual run path
    """Start the bot in Socket Mode.

    The function blocks until the process receives a termination signal
    (e.g., Ctrl-C). On shutdown it drains in-flight submissions.
    """

    app_token = os.getenv("SLACK_APP_TOKEN")
    if not app_token:
        logger.error(
            "Environment variable SLACK_APP_TOKEN is required to start the bot."
        )
        sys.exit(1)

    try:
        app = create_app()
    except FormDefinitionError as exc:
        logger.error("Cannot start: %s", exc)
        sys.exit(1)

    logger.info("Launching SocketModeHandler…")
    handler = SocketModeHandler(app, app_token)

    try:
        logger.info("Bot is ready to receive submissions via Socket Mode.")
        handler.start()  # Blocking call
    except KeyboardInterrupt:  # pragma: no cover
        logger.info("Shutdown requested (KeyboardInterrupt). Exiting…")
    finally:
        with suppress(Exception):
            shutdown_executor()
        logger.info("Goodbye.")


if __name__ == "__main__":  # pragma: no cover
    main()
