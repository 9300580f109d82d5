"""Owner notifications: re-authorization reminders and the install welcome.

While the app is not authorized every submission asks for a reminder, so
:class:`ReauthorizationNotifier` sends at most one per rolling window.  The
time of the last reminder is kept in the document property store next to the
configuration.
"""
from __future__ import annotations

import datetime
import logging
import threading
from typing import Callable, Optional

from slack_sdk.errors import SlackApiError
from slack_sdk.web import WebClient

from choice_eliminator.config import PREFIXES
from choice_eliminator.notifications.render import render_notification
from choice_eliminator.property_store import ThreadSafePropertyStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class SlackNotificationSender:
    """Deliver a direct message to the Slack user registered under an email."""

    def __init__(self, client: WebClient) -> None:
        self._client = client

    def send(self, email: str, text: str) -> None:
        """DM *text* to the user owning *email*.

        Raises
        ------
        SlackApiError
            If the user cannot be found or the message cannot be posted.
        """
        user_id = email
        if "@" in email:
            resp = self._client.users_lookupByEmail(email=email)
            user_id = resp["user"]["id"]
        self._client.chat_postMessage(channel=user_id, text=text)
        logger.info("notification_sent", extra={"recipient": email})


class ReauthorizationNotifier:
    """Rate-limited "please re-authorize" reminder for the form owner."""

    def __init__(
        self,
        store: ThreadSafePropertyStore,
        sender: SlackNotificationSender,
        *,
        form_title: str = "",
        addon_name: str = "Choice Eliminator",
        window_hours: float = 24.0,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._sender = sender
        self._form_title = form_title
        self._addon_name = addon_name
        self._window = datetime.timedelta(hours=window_hours)
        self._window_hours = window_hours
        self._clock = clock
        self._lock = threading.Lock()

    def _last_sent(self) -> Optional[datetime.datetime]:
        raw = self._store.get_property(PREFIXES.LAST_REAUTH_NOTIFICATION)
        if not raw:
            return None
        try:
            last = datetime.datetime.fromisoformat(raw)
        except ValueError:
            logger.warning("Ignoring unparseable reauthorization marker %r", raw)
            return None
        if last.tzinfo is None:
            last = last.replace(tzinfo=datetime.timezone.utc)
        return last

    def notify(self) -> bool:
        """Send the reminder unless one went out within the window.

        Returns True only when a message was actually sent.
        """
        with self._lock:
            now = self._clock()
            last = self._last_sent()
            if last is not None and now - last < self._window:
                logger.info(
                    "reauthorization_notification_suppressed",
                    extra={"last_sent": last.isoformat()},
                )
                return False

            owner = self._store.get_property(PREFIXES.OWNER)
            if not owner:
                logger.warning("Authorization required but no owner is recorded to notify.")
                return False

            text = render_notification(
                "reauthorization",
                addon_name=self._addon_name,
                form_title=self._form_title,
                window_hours=f"{self._window_hours:g}",
            )
            try:
                self._sender.send(owner, text)
            except SlackApiError as exc:
                logger.warning(
                    "Failed to send reauthorization notice to %s: %s",
                    owner,
                    exc.response.get("error") if exc.response is not None else exc,
                )
                return False

            self._store.set_property(PREFIXES.LAST_REAUTH_NOTIFICATION, now.isoformat())
            return True


def send_welcome(
    sender: SlackNotificationSender,
    email: str,
    *,
    form_title: str,
    addon_name: str = "Choice Eliminator",
) -> bool:
    """Best-effort welcome message for the user who installs the app."""
    text = render_notification("welcome", addon_name=addon_name, form_title=form_title)
    try:
        sender.send(email, text)
    except SlackApiError as exc:
        logger.warning(
            "Failed to send welcome message to %s: %s",
            email,
            exc.response.get("error") if exc.response is not None else exc,
        )
        return False
    return True
