"""Authorization status of the bot token the submission handler acts with."""
from __future__ import annotations

import logging
from enum import Enum

from slack_sdk.errors import SlackApiError
from slack_sdk.web import WebClient

logger = logging.getLogger(__name__)


class AuthorizationStatus(str, Enum):
    REQUIRED = "REQUIRED"
    GRANTED = "GRANTED"


# auth.test errors meaning the workspace must re-install / re-authorize the app
_REAUTH_ERRORS = frozenset(
    {
        "invalid_auth",
        "not_authed",
        "token_revoked",
        "token_expired",
        "account_inactive",
    }
)


class SlackAuthorizationChecker:
    """Derive :class:`AuthorizationStatus` from Slack's ``auth.test``."""

    def __init__(self, client: WebClient) -> None:
        self._client = client

    def get_authorization_status(self) -> AuthorizationStatus:
        """Return REQUIRED when the token no longer authorizes the app.

        Other Slack API errors propagate to the caller.
        """
        try:
            self._client.auth_test()
        except SlackApiError as exc:
            error = exc.response.get("error") if exc.response is not None else None
            if error in _REAUTH_ERRORS:
                logger.warning("authorization_required", extra={"error": error})
                return AuthorizationStatus.REQUIRED
            raise
        return AuthorizationStatus.GRANTED
