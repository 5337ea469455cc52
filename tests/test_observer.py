"""Tests for the Mutation Bridge."""

import asyncio

import pytest
from unittest.mock import AsyncMock

from pagelens.browser import scripts
from pagelens.browser.observer import MutationBridge, ObserverState, decompose_records
from pagelens.browser.types import ErrorCode, ObserverError, ObserverOptions


# ── Fixtures ─────────────────────────────────────────────────────────────────


def _attribute_record(name="data-state", old="closed", new="open"):
    return {
        "type": "attributes",
        "target": {
            "tag": "div",
            "id": "panel",
            "classes": ["box"],
            "attributes": {"id": "panel", "class": "box", name: new},
        },
        "attributeName": name,
        "oldValue": old,
        "newValue": new,
    }


def _child_list_record(added=(), removed=()):
    return {
        "type": "childList",
        "added": [{"tag": tag, "id": None, "classes": []} for tag in added],
        "removed": [{"tag": tag, "id": None, "classes": []} for tag in removed],
    }


async def _observe(page, options=None):
    """Start observing and return (subscription, relay, received events)."""
    received = []
    subscription = await MutationBridge(page).observe(options, received.append)
    relay = page.expose_function.await_args.args[1]
    return subscription, relay, received


# ── Tests ────────────────────────────────────────────────────────────────────


class TestDecomposeRecords:
    def test_one_event_per_node_in_engine_order(self):
        events = decompose_records([
            _child_list_record(added=["li", "li"], removed=["p"]),
            _attribute_record(),
        ])
        assert [event.type for event in events] == ["added", "added", "removed", "modified"]

    def test_modified_event_carries_old_and_new(self):
        (event,) = decompose_records([_attribute_record()])
        assert event.target.id == "panel"
        assert event.target.classes == ["box"]
        assert event.changes.attribute == "data-state"
        assert event.changes.old_value == "closed"
        assert event.changes.new_value == "open"
        assert event.to_dict()["changes"]["old_value"] == "closed"

    def test_added_and_removed_visibility(self):
        added, removed = decompose_records([_child_list_record(added=["li"], removed=["p"])])
        assert added.target.is_visible is True
        assert removed.target.is_visible is False
        assert added.changes is None

    def test_unknown_record_type_ignored(self):
        assert decompose_records([{"type": "characterData"}]) == []


class TestMutationBridge:
    @pytest.mark.asyncio
    async def test_single_modified_event_then_none_after_teardown(self, mock_page):
        subscription, relay, received = await _observe(
            mock_page, ObserverOptions(attributes=True, subtree=True)
        )

        await relay([_attribute_record()])
        assert len(received) == 1
        assert received[0].type == "modified"
        assert received[0].changes.old_value == "closed"

        await subscription.close()
        await relay([_attribute_record(old="open", new="closed")])
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, mock_page):
        subscription, relay, received = await _observe(mock_page)

        await subscription.close()
        await subscription.close()

        # install + one teardown
        assert mock_page.evaluate.await_count == 2
        assert mock_page.evaluate.await_args.args[0] == scripts.TEARDOWN_OBSERVER
        assert subscription.state is ObserverState.TORN_DOWN

    @pytest.mark.asyncio
    async def test_close_after_navigation_does_not_raise(self, mock_page):
        mock_page.evaluate.side_effect = [True, Exception("Execution context was destroyed")]
        subscription, relay, received = await _observe(mock_page)

        await subscription.close()

        assert subscription.closed is True

    @pytest.mark.asyncio
    async def test_state_transitions(self, mock_page):
        subscription, relay, received = await _observe(mock_page)
        assert subscription.state is ObserverState.OBSERVING
        await subscription.close()
        assert subscription.state is ObserverState.TORN_DOWN

    @pytest.mark.asyncio
    async def test_default_options_watch_everything(self, mock_page):
        await _observe(mock_page)
        params = mock_page.evaluate.await_args.args[1]
        assert params["rootSelector"] == "body"
        assert params["init"] == {
            "attributes": True,
            "childList": True,
            "subtree": True,
            "attributeOldValue": True,
        }
        assert params["bindingName"] == mock_page.expose_function.await_args.args[0]

    @pytest.mark.asyncio
    async def test_attribute_filter_implies_attributes(self, mock_page):
        await _observe(mock_page, ObserverOptions(attribute_filter=["class"], root_selector="#app"))
        params = mock_page.evaluate.await_args.args[1]
        assert params["rootSelector"] == "#app"
        assert params["init"]["attributes"] is True
        assert params["init"]["attributeOldValue"] is True
        assert params["init"]["attributeFilter"] == ["class"]

    @pytest.mark.asyncio
    async def test_binding_names_are_unique(self, mock_page):
        first, _, _ = await _observe(mock_page)
        second, _, _ = await _observe(mock_page)
        assert first.binding_name != second.binding_name

    @pytest.mark.asyncio
    async def test_nothing_to_observe(self, mock_page):
        with pytest.raises(ObserverError):
            await MutationBridge(mock_page).observe(ObserverOptions(subtree=True), lambda e: None)
        mock_page.expose_function.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_relay_registration_failure(self, mock_page):
        mock_page.expose_function.side_effect = Exception("Function already registered")
        with pytest.raises(ObserverError) as exc_info:
            await MutationBridge(mock_page).observe(None, lambda e: None)
        assert exc_info.value.code is ErrorCode.OBSERVER_ERROR
        mock_page.evaluate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_install_failure_tears_down(self, mock_page):
        mock_page.evaluate.side_effect = [Exception("Observer root not found: #x"), True]
        with pytest.raises(ObserverError) as exc_info:
            await MutationBridge(mock_page).observe(
                ObserverOptions(child_list=True, root_selector="#x"), lambda e: None
            )
        assert "#x" in str(exc_info.value)
        assert mock_page.evaluate.await_args.args[0] == scripts.TEARDOWN_OBSERVER

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self, mock_page):
        callback = AsyncMock()
        await MutationBridge(mock_page).observe(None, callback)
        relay = mock_page.expose_function.await_args.args[1]

        await relay([_child_list_record(added=["li"])])

        callback.assert_awaited_once()
        assert callback.await_args.args[0].type == "added"

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, mock_page):
        received = []
        async with await MutationBridge(mock_page).observe(None, received.append) as subscription:
            relay = mock_page.expose_function.await_args.args[1]
            await relay([_child_list_record(removed=["p"])])
        await relay([_child_list_record(removed=["p"])])
        assert subscription.closed is True
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_concurrent_batches_are_not_interleaved(self, mock_page):
        delivered = []

        async def slow_callback(event):
            await asyncio.sleep(0.01)
            delivered.append(event.changes.new_value)

        await MutationBridge(mock_page).observe(None, slow_callback)
        relay = mock_page.expose_function.await_args.args[1]

        # Playwright schedules each binding call as a separate task
        await asyncio.gather(
            relay([_attribute_record(new="a"), _attribute_record(new="a2")]),
            relay([_attribute_record(new="b"), _attribute_record(new="b2")]),
        )

        assert delivered == ["a", "a2", "b", "b2"]
