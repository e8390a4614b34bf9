"""The call mechanism underneath a proxy.

The engine treats the transport as opaque: it only needs a way to check that an endpoint is
reachable and a way to send one call and receive the reply tuple. Identities and credentials
live inside concrete transports.
"""

from __future__ import annotations

import inspect
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any, override

logger = logging.getLogger(__name__)

REJECT_KEY = "$reject"


class Transport(ABC):
    """Sends calls to remote services."""

    async def connect(self, canister_id: str) -> None:
        """Check that a service is reachable.

        Raises:
            ConnectionError: If the service cannot be reached or does not exist.
        """
        return None

    @abstractmethod
    async def call(self, canister_id: str, method: str, args: Sequence[Any], *, query: bool) -> Sequence[Any]:
        """Invoke a procedure and return its reply values.

        Args:
            canister_id: Text form of the service's principal.
            method: Name of the procedure.
            args: Arguments in wire representation.
            query: Whether the call may be treated as side-effect free.

        Returns:
            The reply tuple, one entry per declared return value.
        """


Reply = Any | BaseException | Callable[..., Any]


class RecordedTransport(Transport):
    """Replays canned replies instead of talking to a network.

    A reply is either a plain value, an exception instance that is raised, or a callable that
    receives the call arguments and returns the value (awaitables are awaited). Every call is
    recorded in `calls`.
    """

    def __init__(self, replies: Mapping[str, Reply], canister_ids: Iterable[str] | None = None):
        self.replies = dict(replies)
        self.canister_ids = set(canister_ids) if canister_ids is not None else None
        self.calls: list[tuple[str, list[Any], bool]] = []

    @classmethod
    def from_json(cls, path: str | Path) -> RecordedTransport:
        """Load replies from a JSON document.

        The document has a `replies` object mapping method names to reply values; an object
        of the form `{"$reject": "message"}` makes the call fail with that message. An
        optional `canister_ids` list restricts which services are reachable.
        """
        with open(path, encoding="utf8") as f:
            document = json.load(f)

        replies: dict[str, Reply] = {}
        for method, reply in document.get("replies", {}).items():
            if isinstance(reply, dict) and set(reply) == {REJECT_KEY}:
                replies[method] = RuntimeError(reply[REJECT_KEY])
            else:
                replies[method] = reply

        logger.info(f"Loaded {len(replies)} recorded replies from {path}")
        return cls(replies, document.get("canister_ids"))

    @override
    async def connect(self, canister_id: str) -> None:
        if self.canister_ids is not None and canister_id not in self.canister_ids:
            raise ConnectionError(f"Canister {canister_id} not found")

    @override
    async def call(self, canister_id: str, method: str, args: Sequence[Any], *, query: bool) -> Sequence[Any]:
        self.calls.append((method, list(args), query))

        if method not in self.replies:
            kind = "query" if query else "update"
            raise RuntimeError(f"Canister {canister_id} has no {kind} method '{method}': method does not exist")

        reply = self.replies[method]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(*args)
            if inspect.isawaitable(reply):
                reply = await reply
        return [reply]

    def calls_to(self, method: str) -> list[list[Any]]:
        """Arguments of every recorded call to `method`."""
        return [args for name, args, _ in self.calls if name == method]
