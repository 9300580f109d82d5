"""Wiring of the configuration and submission components for one form."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from slack_sdk.web import WebClient

from choice_eliminator import config
from choice_eliminator.authorization import SlackAuthorizationChecker
from choice_eliminator.configuration import ConfigurationStore
from choice_eliminator.form import Form
from choice_eliminator.locks import QuestionLockRegistry
from choice_eliminator.notifications.notifier import (
    ReauthorizationNotifier,
    SlackNotificationSender,
)
from choice_eliminator.ownership import OwnershipGuard
from choice_eliminator.property_store import ThreadSafePropertyStore
from choice_eliminator.submission import SubmissionHandler
from choice_eliminator.triggers import SubmitTrigger

logger = logging.getLogger(__name__)


@dataclass
class ChoiceEliminatorServices:
    form: Form
    store: ThreadSafePropertyStore
    configuration: ConfigurationStore
    trigger: SubmitTrigger
    sender: SlackNotificationSender
    notifier: ReauthorizationNotifier
    submission_handler: SubmissionHandler
    addon_name: str = config.ADDON_NAME

    def guard_for(self, user_email: str) -> OwnershipGuard:
        """Ownership guard acting on behalf of *user_email*."""
        return OwnershipGuard(
            store=self.store,
            configuration=self.configuration,
            current_user_email=lambda: user_email,
            adjust_trigger=self.trigger.adjust,
        )

    def owner(self) -> Optional[str]:
        return self.store.get_property(config.PREFIXES.OWNER) or None


def build_services(
    client: WebClient,
    form: Form,
    store: ThreadSafePropertyStore,
    *,
    addon_name: str = config.ADDON_NAME,
) -> ChoiceEliminatorServices:
    """Assemble the components and sync the trigger with stored configuration."""
    configuration = ConfigurationStore(store)
    sender = SlackNotificationSender(client)
    notifier = ReauthorizationNotifier(
        store,
        sender,
        form_title=form.title,
        addon_name=addon_name,
        window_hours=config.REAUTH_NOTIFICATION_WINDOW_HOURS,
    )
    locks = QuestionLockRegistry(
        timeout=config.POOL_LOCK_TIMEOUT_SECONDS,
        retries=config.POOL_LOCK_RETRIES,
        backoff=config.POOL_LOCK_BACKOFF_SECONDS,
    )
    submission_handler = SubmissionHandler(
        configuration=configuration,
        authorization=SlackAuthorizationChecker(client),
        notifier=notifier,
        locks=locks,
    )
    trigger = SubmitTrigger()
    trigger.adjust(configuration.get())

    return ChoiceEliminatorServices(
        form=form,
        store=store,
        configuration=configuration,
        trigger=trigger,
        sender=sender,
        notifier=notifier,
        submission_handler=submission_handler,
        addon_name=addon_name,
    )
