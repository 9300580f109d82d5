"""Form submission handler.

Every submission goes through ``RECEIVED -> AUTH_CHECKED -> FILTERED ->
APPLIED``, or stops early in ``REAUTH_REQUESTED`` or ``FAILED``.  Whatever
happens inside, the host is told the submission was handled: one malformed
submission must never disable the trigger or block later submissions.
Internal problems are only visible in the logs.

Gating is opt-in.  When the configuration cannot be read, nothing is
depleted and the submission still counts as handled.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Protocol

from choice_eliminator.authorization import AuthorizationStatus
from choice_eliminator.configuration import Configuration, is_enabled
from choice_eliminator.exceptions import PoolLockTimeoutError, QuestionResolutionError
from choice_eliminator.locks import QuestionLockRegistry
from choice_eliminator.models import (
    SUPPORTED_TYPES,
    ItemResponse,
    SubmissionEvent,
    SubmissionResponse,
)
from choice_eliminator.pool import deplete, removed_values

logger = logging.getLogger(__name__)


class SubmissionState(str, Enum):
    RECEIVED = "received"
    AUTH_CHECKED = "auth_checked"
    FILTERED = "filtered"
    APPLIED = "applied"
    REAUTH_REQUESTED = "reauth_requested"
    FAILED = "failed"


@dataclass
class SubmissionOutcome:
    """What happened to one submission; ``handled`` is always True."""

    state: SubmissionState = SubmissionState.RECEIVED
    updated: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    handled: bool = True


class _ConfigurationSource(Protocol):
    def get(self) -> Configuration: ...


class _AuthorizationSource(Protocol):
    def get_authorization_status(self) -> AuthorizationStatus: ...


class _Notifier(Protocol):
    def notify(self) -> bool: ...


def filter_supported_responses(
    item_responses: Iterable[ItemResponse],
) -> List[SubmissionResponse]:
    """Keep only multiple choice, list and checkbox answers."""
    return [
        SubmissionResponse(
            item_id=response.item_id,
            item_type=response.item_type,
            answer=response.response,
        )
        for response in item_responses
        if response.item_type in SUPPORTED_TYPES
    ]


class SubmissionHandler:
    """Depletes chosen options from every gated question a submission answers."""

    def __init__(
        self,
        configuration: _ConfigurationSource,
        authorization: _AuthorizationSource,
        notifier: _Notifier,
        locks: QuestionLockRegistry,
    ) -> None:
        self._configuration = configuration
        self._authorization = authorization
        self._notifier = notifier
        self._locks = locks

    def handle(self, event: SubmissionEvent) -> SubmissionOutcome:
        """Process *event*; never raises."""
        outcome = SubmissionOutcome()
        try:
            if (
                self._authorization.get_authorization_status()
                == AuthorizationStatus.REQUIRED
            ):
                # Content is dropped from this workflow; the reminder is the only effect
                sent = self._notifier.notify()
                logger.warning(
                    "submission_skipped_reauthorization_required",
                    extra={"notification_sent": sent},
                )
                outcome.state = SubmissionState.REAUTH_REQUESTED
                return outcome
            outcome.state = SubmissionState.AUTH_CHECKED

            responses = filter_supported_responses(event.response.get_item_responses())
            outcome.state = SubmissionState.FILTERED

            try:
                configuration = self._configuration.get()
            except Exception as exc:  # noqa: BLE001 – gating fails open
                logger.warning(
                    "Configuration unavailable; treating submission as complete: %s", exc
                )
                outcome.state = SubmissionState.APPLIED
                return outcome

            for response in responses:
                if not is_enabled(configuration, response.item_id):
                    outcome.skipped.append(response.item_id)
                    continue
                try:
                    if self._apply(event.source, response):
                        outcome.updated.append(response.item_id)
                    else:
                        outcome.skipped.append(response.item_id)
                except QuestionResolutionError as exc:
                    logger.warning("Skipping response: %s", exc)
                    outcome.skipped.append(response.item_id)
                except PoolLockTimeoutError as exc:
                    logger.error("Skipping response: %s", exc)
                    outcome.skipped.append(response.item_id)

            outcome.state = SubmissionState.APPLIED
            logger.info(
                "submission_processed",
                extra={"updated": outcome.updated, "skipped": outcome.skipped},
            )
        except Exception as exc:  # noqa: BLE001 – never block future submissions
            logger.error("Error processing form submission: %s", exc, exc_info=True)
            outcome.state = SubmissionState.FAILED
        return outcome

    def _apply(self, form, response: SubmissionResponse) -> bool:
        """Remove the answered values from the live question; True if it changed."""
        removed = removed_values(response.answer)
        if not removed:
            return False

        with self._locks.hold(f"{form.form_id}:{response.item_id}"):
            current = form.get_choice_pool(response.item_id, response.item_type)
            missing = removed.difference(current)
            if missing:
                # Chosen from a stale rendering of the form; the option is already gone
                logger.warning(
                    "already_depleted",
                    extra={"question_id": response.item_id, "values": sorted(missing)},
                )
            new_pool = deplete(current, removed)
            if new_pool == current:
                return False
            form.set_choice_pool(response.item_id, response.item_type, new_pool)
            logger.info(
                "choice_pool_depleted",
                extra={
                    "question_id": response.item_id,
                    "removed": sorted(removed.intersection(current)),
                    "remaining": len(new_pool),
                },
            )
            return True
