"""Single-owner write lock around configuration changes.

The first identity that ever changes the configuration becomes its owner.
Afterwards only that identity may change it again; the submit trigger is
registered under exactly one authorizing identity, so mixed owners would add
or remove it inconsistently.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from choice_eliminator.config import PREFIXES
from choice_eliminator.configuration import Configuration, ConfigurationStore
from choice_eliminator.exceptions import ConfigurationLockedError
from choice_eliminator.property_store import ThreadSafePropertyStore

logger = logging.getLogger(__name__)


class OwnershipGuard:
    """Wraps :meth:`ConfigurationStore.set_enabled` with first-writer-wins ownership."""

    def __init__(
        self,
        store: ThreadSafePropertyStore,
        configuration: ConfigurationStore,
        current_user_email: Callable[[], str],
        adjust_trigger: Optional[Callable[[Configuration], None]] = None,
    ) -> None:
        """Create a new :class:`OwnershipGuard`.

        Args:
            store: Property store holding the ``OWNER`` entry.
            configuration: Store the guarded mutations are applied to.
            current_user_email: Returns the identity of the caller.
            adjust_trigger: Invoked once with the refreshed configuration after
                every successful mutation.
        """
        self._store = store
        self._configuration = configuration
        self._current_user_email = current_user_email
        self._adjust_trigger = adjust_trigger

    def owner(self) -> Optional[str]:
        """Return the recorded owner or None if nobody configured the form yet."""
        return self._store.get_property(PREFIXES.OWNER) or None

    def set_enabled(self, question_id: str, enabled: bool) -> Configuration:
        """Apply the toggle on behalf of the current user.

        Raises
        ------
        ConfigurationLockedError
            If an owner is recorded and it is not the current user.  Nothing
            is written in that case.
        """
        user_email = self._current_user_email()
        owner = self.owner()

        if not owner:
            # Claim and check in one step; a concurrent first writer may win
            owner = self._store.set_property_if_absent(PREFIXES.OWNER, user_email)
            if owner == user_email:
                logger.info("configuration_owner_recorded", extra={"owner": user_email})

        if owner != user_email:
            logger.warning(
                "configuration_locked",
                extra={"owner": owner, "user": user_email, "question_id": question_id},
            )
            raise ConfigurationLockedError(owner)

        configuration = self._configuration.set_enabled(question_id, enabled)

        if self._adjust_trigger is not None:
            self._adjust_trigger(configuration)

        return configuration
