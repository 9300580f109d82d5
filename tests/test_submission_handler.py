"""Tests for the form submission handler."""
from __future__ import annotations

import threading
import unittest
from unittest.mock import MagicMock

from choice_eliminator.authorization import AuthorizationStatus
from choice_eliminator.config import DEFAULT_BACKUP_TEXT
from choice_eliminator.configuration import ConfigurationStore
from choice_eliminator.form import form_from_dict
from choice_eliminator.locks import QuestionLockRegistry
from choice_eliminator.models import FormResponse, ItemResponse, QuestionType, SubmissionEvent
from choice_eliminator.property_store import ThreadSafePropertyStore
from choice_eliminator.submission import (
    SubmissionHandler,
    SubmissionState,
    filter_supported_responses,
)


def _form():
    return form_from_dict(
        {
            "form_id": "signup",
            "title": "Sign-up",
            "items": [
                {"id": "slot", "title": "Pick a slot", "type": "MULTIPLE_CHOICE",
                 "choices": ["9am", "10am", "11am"]},
                {"id": "team", "title": "Team", "type": "LIST", "choices": ["Red", "Blue"]},
                {"id": "roles", "title": "Roles", "type": "CHECKBOX",
                 "choices": ["Driver", "Navigator", "Cook"]},
                {"id": "notes", "title": "Notes", "type": "PARAGRAPH_TEXT"},
            ],
        }
    )


def _event(form, *answers):
    return SubmissionEvent(
        source=form,
        response=FormResponse(
            item_responses=[ItemResponse(i, t, r) for i, t, r in answers]
        ),
    )


def _pools(form):
    return {item.id: item.choices for item in form.get_items()}


class TestSubmissionHandler(unittest.TestCase):
    def setUp(self) -> None:
        self.form = _form()
        self.props = ThreadSafePropertyStore()
        self.configuration = ConfigurationStore(self.props)
        self.authorization = MagicMock()
        self.authorization.get_authorization_status.return_value = AuthorizationStatus.GRANTED
        self.notifier = MagicMock()
        self.handler = SubmissionHandler(
            configuration=self.configuration,
            authorization=self.authorization,
            notifier=self.notifier,
            locks=QuestionLockRegistry(timeout=1.0, retries=1, backoff=0.01),
        )

    def test_enabled_multiple_choice_answer_is_removed(self):
        self.configuration.set_enabled("slot", True)

        outcome = self.handler.handle(
            _event(self.form, ("slot", QuestionType.MULTIPLE_CHOICE, "10am"))
        )

        self.assertEqual(outcome.state, SubmissionState.APPLIED)
        self.assertTrue(outcome.handled)
        self.assertEqual(outcome.updated, ["slot"])
        self.assertEqual(
            self.form.get_choice_pool("slot", QuestionType.MULTIPLE_CHOICE), ["9am", "11am"]
        )

    def test_checkbox_removes_every_selected_value(self):
        self.configuration.set_enabled("roles", True)

        self.handler.handle(
            _event(self.form, ("roles", QuestionType.CHECKBOX, ["Driver", "Cook"]))
        )

        self.assertEqual(
            self.form.get_choice_pool("roles", QuestionType.CHECKBOX), ["Navigator"]
        )

    def test_list_pool_falls_back_to_placeholder(self):
        self.configuration.set_enabled("team", True)

        self.handler.handle(_event(self.form, ("team", QuestionType.LIST, "Red")))
        self.handler.handle(_event(self.form, ("team", QuestionType.LIST, "Blue")))

        self.assertEqual(
            self.form.get_choice_pool("team", QuestionType.LIST), [DEFAULT_BACKUP_TEXT]
        )

    def test_disabled_questions_leave_every_pool_unchanged(self):
        self.configuration.set_enabled("slot", False)
        self.configuration.set_enabled("roles", False)
        before = _pools(self.form)

        outcome = self.handler.handle(
            _event(
                self.form,
                ("slot", QuestionType.MULTIPLE_CHOICE, "9am"),
                ("team", QuestionType.LIST, "Red"),
                ("roles", QuestionType.CHECKBOX, ["Cook"]),
            )
        )

        self.assertEqual(_pools(self.form), before)
        self.assertEqual(outcome.updated, [])
        self.assertEqual(outcome.skipped, ["slot", "team", "roles"])

    def test_unsupported_types_are_filtered_out(self):
        responses = filter_supported_responses(
            [
                ItemResponse("notes", QuestionType.PARAGRAPH_TEXT, "hi"),
                ItemResponse("slot", QuestionType.MULTIPLE_CHOICE, "9am"),
            ]
        )
        self.assertEqual([r.item_id for r in responses], ["slot"])

    def test_configuration_read_failure_fails_open(self):
        configuration = MagicMock()
        configuration.get.side_effect = RuntimeError("store offline")
        handler = SubmissionHandler(
            configuration, self.authorization, self.notifier, QuestionLockRegistry()
        )
        before = _pools(self.form)

        outcome = handler.handle(
            _event(self.form, ("slot", QuestionType.MULTIPLE_CHOICE, "9am"))
        )

        self.assertTrue(outcome.handled)
        self.assertEqual(outcome.state, SubmissionState.APPLIED)
        self.assertEqual(_pools(self.form), before)

    def test_reauthorization_required_skips_content_and_notifies(self):
        self.configuration.set_enabled("slot", True)
        self.authorization.get_authorization_status.return_value = AuthorizationStatus.REQUIRED
        before = _pools(self.form)

        outcome = self.handler.handle(
            _event(self.form, ("slot", QuestionType.MULTIPLE_CHOICE, "9am"))
        )

        self.assertEqual(outcome.state, SubmissionState.REAUTH_REQUESTED)
        self.assertTrue(outcome.handled)
        self.notifier.notify.assert_called_once()
        self.assertEqual(_pools(self.form), before)

    def test_unresolvable_question_is_skipped_and_rest_applied(self):
        self.configuration.set_enabled("deleted", True)
        self.configuration.set_enabled("team", True)

        outcome = self.handler.handle(
            _event(
                self.form,
                ("deleted", QuestionType.LIST, "Red"),
                ("team", QuestionType.LIST, "Red"),
            )
        )

        self.assertEqual(outcome.state, SubmissionState.APPLIED)
        self.assertEqual(outcome.skipped, ["deleted"])
        self.assertEqual(outcome.updated, ["team"])
        self.assertEqual(self.form.get_choice_pool("team", QuestionType.LIST), ["Blue"])

    def test_lock_timeout_skips_only_that_question(self):
        self.configuration.set_enabled("slot", True)
        self.configuration.set_enabled("team", True)
        locks = QuestionLockRegistry(timeout=0.01, retries=0)
        handler = SubmissionHandler(self.configuration, self.authorization, self.notifier, locks)

        with locks.hold("signup:slot"):
            outcome = handler.handle(
                _event(
                    self.form,
                    ("slot", QuestionType.MULTIPLE_CHOICE, "9am"),
                    ("team", QuestionType.LIST, "Red"),
                )
            )

        self.assertEqual(outcome.skipped, ["slot"])
        self.assertEqual(outcome.updated, ["team"])
        self.assertEqual(
            self.form.get_choice_pool("slot", QuestionType.MULTIPLE_CHOICE),
            ["9am", "10am", "11am"],
        )

    def test_unexpected_failure_is_swallowed(self):
        self.authorization.get_authorization_status.side_effect = RuntimeError("boom")

        with self.assertLogs("choice_eliminator.submission", level="ERROR"):
            outcome = self.handler.handle(
                _event(self.form, ("slot", QuestionType.MULTIPLE_CHOICE, "9am"))
            )

        self.assertEqual(outcome.state, SubmissionState.FAILED)
        self.assertTrue(outcome.handled)

    def test_write_failure_is_swallowed(self):
        self.configuration.set_enabled("slot", True)
        form = MagicMock()
        form.form_id = "signup"
        form.get_choice_pool.return_value = ["9am", "10am"]
        form.set_choice_pool.side_effect = OSError("host unavailable")

        outcome = self.handler.handle(
            _event(form, ("slot", QuestionType.MULTIPLE_CHOICE, "9am"))
        )

        self.assertEqual(outcome.state, SubmissionState.FAILED)
        self.assertTrue(outcome.handled)

    def test_already_depleted_choice_is_ignored_not_re_added(self):
        self.configuration.set_enabled("slot", True)
        self.form.set_choice_pool("slot", QuestionType.MULTIPLE_CHOICE, ["10am", "11am"])

        with self.assertLogs("choice_eliminator.submission", level="WARNING") as logs:
            outcome = self.handler.handle(
                _event(self.form, ("slot", QuestionType.MULTIPLE_CHOICE, "9am"))
            )

        self.assertTrue(any("already_depleted" in line for line in logs.output))
        self.assertEqual(outcome.skipped, ["slot"])
        self.assertEqual(
            self.form.get_choice_pool("slot", QuestionType.MULTIPLE_CHOICE), ["10am", "11am"]
        )

    def test_placeholder_pool_is_not_rewritten(self):
        self.configuration.set_enabled("team", True)
        self.form.set_choice_pool("team", QuestionType.LIST, [DEFAULT_BACKUP_TEXT])
        form = MagicMock(wraps=self.form)
        form.form_id = "signup"

        self.handler.handle(_event(form, ("team", QuestionType.LIST, DEFAULT_BACKUP_TEXT)))

        form.set_choice_pool.assert_not_called()

    def test_concurrent_submissions_never_resurrect_options(self):
        choices = [f"slot-{i}" for i in range(20)]
        form = form_from_dict(
            {"form_id": "f", "items": [
                {"id": "slot", "title": "Slot", "type": "MULTIPLE_CHOICE", "choices": choices}
            ]}
        )
        self.configuration.set_enabled("slot", True)

        # Widen the read-modify-write window so unserialised updates would collide
        original_get = form.get_choice_pool

        def slow_get(*args):
            pool = original_get(*args)
            threading.Event().wait(0.005)
            return pool

        form.get_choice_pool = slow_get

        threads = [
            threading.Thread(
                target=self.handler.handle,
                args=(_event(form, ("slot", QuestionType.MULTIPLE_CHOICE, choice)),),
            )
            for choice in choices[:10]
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(original_get("slot", QuestionType.MULTIPLE_CHOICE), choices[10:])


class TestEndToEndSlotScenario(unittest.TestCase):
    """Three respondents claim the three slots of one enabled question."""

    def test_slots_deplete_down_to_placeholder(self):
        form = _form()
        props = ThreadSafePropertyStore()
        ConfigurationStore(props).set_enabled("slot", True)
        authorization = MagicMock()
        authorization.get_authorization_status.return_value = AuthorizationStatus.GRANTED
        handler = SubmissionHandler(
            ConfigurationStore(props), authorization, MagicMock(), QuestionLockRegistry()
        )

        def pool():
            return form.get_choice_pool("slot", QuestionType.MULTIPLE_CHOICE)

        handler.handle(_event(form, ("slot", QuestionType.MULTIPLE_CHOICE, "9am")))
        self.assertEqual(pool(), ["10am", "11am"])

        handler.handle(_event(form, ("slot", QuestionType.MULTIPLE_CHOICE, "10am")))
        self.assertEqual(pool(), ["11am"])

        handler.handle(_event(form, ("slot", QuestionType.MULTIPLE_CHOICE, "11am")))
        self.assertEqual(pool(), [DEFAULT_BACKUP_TEXT])


if __name__ == "__main__":
    unittest.main()
