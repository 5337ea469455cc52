"""Mutation Bridge — relay DOM mutations from the page to a host callback.

``MutationBridge.observe`` exposes a uniquely named binding on the page,
installs a ``MutationObserver`` that posts each mutation batch to it, and
returns an ``ObserverSubscription``. Closing the subscription stops delivery
on the Python side first, so no event reaches the callback afterwards even if
the in-page observer cannot be disconnected (page navigated or closed).
"""

import asyncio
import inspect
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from loguru import logger

from pagelens.browser import scripts
from pagelens.browser.types import (
    AttributeChange,
    ChangeEvent,
    ElementSnapshot,
    ObserverError,
    ObserverOptions,
)

ChangeCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


class ObserverState(str, Enum):
    IDLE = "idle"
    OBSERVING = "observing"
    TORN_DOWN = "torn_down"


def _target(raw: Dict[str, Any], with_attributes: bool, is_visible: bool) -> ElementSnapshot:
    return ElementSnapshot(
        tag=str(raw.get("tag", "")).lower(),
        id=raw.get("id") or None,
        classes=list(raw.get("classes") or []),
        attributes=dict(raw.get("attributes") or {}) if with_attributes else {},
        is_visible=is_visible,
    )


def decompose_records(records: List[Dict[str, Any]]) -> List[ChangeEvent]:
    """Split one relayed batch into Change Events, preserving engine order."""
    events: List[ChangeEvent] = []
    for record in records or []:
        kind = record.get("type")
        if kind == "attributes":
            events.append(ChangeEvent(
                type="modified",
                target=_target(record.get("target") or {}, with_attributes=True, is_visible=True),
                changes=AttributeChange(
                    attribute=record.get("attributeName"),
                    old_value=record.get("oldValue"),
                    new_value=record.get("newValue"),
                ),
            ))
        elif kind == "childList":
            for raw in record.get("added") or []:
                events.append(ChangeEvent(type="added", target=_target(raw, False, True)))
            for raw in record.get("removed") or []:
                events.append(ChangeEvent(type="removed", target=_target(raw, False, False)))
        else:
            logger.debug(f"[MutationBridge] Ignoring record type: {kind}")
    return events


class ObserverSubscription:
    """Caller-owned handle for one active observation."""

    def __init__(self, page, binding_name: str, observer_key: str):
        self.page = page
        self.binding_name = binding_name
        self.observer_key = observer_key
        self.state = ObserverState.IDLE

    @property
    def closed(self) -> bool:
        return self.state is ObserverState.TORN_DOWN

    async def close(self):
        """Stop delivering events. Safe to call repeatedly or after navigation."""
        if self.closed:
            return
        self.state = ObserverState.TORN_DOWN
        try:
            await self.page.evaluate(
                scripts.TEARDOWN_OBSERVER,
                {"bindingName": self.binding_name, "observerKey": self.observer_key},
            )
        except Exception as exc:
            # The relay is already detached; the page may be gone.
            logger.debug(f"[MutationBridge] In-page teardown skipped: {exc}")
        logger.debug(f"[MutationBridge] Closed {self.binding_name}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class MutationBridge:
    """Set up DOM change watches on a Playwright page."""

    def __init__(self, page):
        self.page = page

    async def observe(
        self,
        options: Optional[ObserverOptions],
        callback: ChangeCallback,
    ) -> ObserverSubscription:
        """Start relaying mutations under ``options.root_selector``.

        Args:
            options: which mutations to watch
            callback: called once per Change Event; may be a coroutine
                function. Exceptions it raises are not caught here.

        Returns:
            ObserverSubscription whose ``close()`` ends delivery

        Raises:
            ObserverError: invalid options or relay/observer setup failure
        """
        options = options or ObserverOptions(attributes=True, child_list=True, subtree=True)
        init = options.to_init()
        if not init["attributes"] and not init["childList"]:
            raise ObserverError("Nothing to observe: enable attributes or child_list")

        binding_name = f"__pagelens_observer_{uuid.uuid4().hex[:12]}"
        subscription = ObserverSubscription(self.page, binding_name, f"{binding_name}_instance")

        # Playwright runs each binding call as its own task; one batch at a time.
        delivery = asyncio.Lock()

        async def relay(records):
            async with delivery:
                if subscription.closed:
                    return
                for event in decompose_records(records):
                    if subscription.closed:
                        break
                    result = callback(event)
                    if inspect.isawaitable(result):
                        await result

        try:
            await self.page.expose_function(binding_name, relay)
        except Exception as exc:
            raise ObserverError(f"Failed to register relay: {exc}", exc) from exc

        try:
            await self.page.evaluate(
                scripts.INSTALL_OBSERVER,
                {
                    "bindingName": binding_name,
                    "observerKey": subscription.observer_key,
                    "rootSelector": options.root_selector,
                    "init": init,
                },
            )
        except Exception as exc:
            await subscription.close()
            raise ObserverError(f"Failed to install observer: {exc}", exc) from exc

        if not subscription.closed:
            subscription.state = ObserverState.OBSERVING
        logger.debug(f"[MutationBridge] Observing {options.root_selector} via {binding_name}")
        return subscription
