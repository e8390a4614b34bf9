"""Synthesize callable proxies from parsed interface descriptions.

A proxy is an ordered table from procedure name to an async invoker closure. Invokers built
from an evaluated factory check arity and coerce every argument with its exact type; invokers
built from a reconstructed service pass arguments through unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping, Sequence
from typing import Any, override

from canister_mapper import idl
from canister_mapper.errors import InvocationErrorKind, MethodInvocationError, ProxyCreationError
from canister_mapper.models import InterfaceDescription
from canister_mapper.parser import InterfaceDescriptionParser
from canister_mapper.principal import decode_principal
from canister_mapper.transport import Transport

logger = logging.getLogger(__name__)

Invoker = Callable[..., Awaitable[Any]]


class ProxyTier:
    """How much type information a proxy was synthesized with."""

    EXACT = 1
    RECONSTRUCTED = 2
    EMPTY = 3


class ProxyHandle(Mapping[str, Invoker]):
    """Dispatch table standing in for a compiled client binding.

    Attributes:
        canister_id: Text form of the service's principal.
        tier: The `ProxyTier` that produced the invokers.
    """

    def __init__(self, canister_id: str, tier: int, invokers: dict[str, Invoker]):
        self.canister_id = canister_id
        self.tier = tier
        self._invokers = invokers

    @override
    def __getitem__(self, name: str) -> Invoker:
        return self._invokers[name]

    @override
    def __iter__(self) -> Iterator[str]:
        return iter(self._invokers)

    @override
    def __len__(self) -> int:
        return len(self._invokers)

    def names(self) -> list[str]:
        return list(self._invokers)

    async def call(self, name: str, *args: Any) -> Any:
        """Invoke a procedure by name.

        Raises:
            MethodInvocationError: If the procedure is unknown or the call failed.
        """
        if name not in self._invokers:
            raise MethodInvocationError(name, InvocationErrorKind.NOT_FOUND, f"Method '{name}' does not exist")
        return await self._invokers[name](*args)

    @override
    def __repr__(self) -> str:
        return f"ProxyHandle({self.canister_id!r}, tier={self.tier}, methods={self.names()})"


def decode_reply(func: idl.FuncType, reply: Sequence[Any]) -> Any:
    """Turn a reply tuple into a single result.

    No return value yields None, one yields that value and several yield a list.
    """
    if not isinstance(reply, (list, tuple)):
        reply = [reply]

    if not func.ret_types:
        return None
    if len(func.ret_types) == 1:
        return func.ret_types[0].decode(reply[0]) if reply else None
    return [ret.decode(value) for ret, value in zip(func.ret_types, reply)]


class ProxySynthesizer:
    """Builds a `ProxyHandle` for one service over a transport."""

    def __init__(self, transport: Transport):
        self.transport = transport

    async def synthesize(self, canister_id: str, description: InterfaceDescription) -> ProxyHandle:
        """Create a proxy exposing exactly the procedures of a parsed description.

        Args:
            canister_id: Text form of the service's principal.
            description: The parsed interface description.

        Returns:
            The proxy. It is empty, and the degradation is logged, when nothing was parsed.

        Raises:
            ProxyCreationError: If the identifier is malformed or the service is unreachable.
        """
        try:
            decode_principal(canister_id)
        except ValueError as e:
            raise ProxyCreationError(canister_id, f"Malformed canister id: {e}") from e

        try:
            await self.transport.connect(canister_id)
        except (ConnectionError, OSError) as e:
            raise ProxyCreationError(canister_id, f"Could not reach canister {canister_id}: {e}") from e

        if description.service is None:
            logger.warning(f"No interface available for {canister_id}, creating an empty proxy")
            return ProxyHandle(canister_id, ProxyTier.EMPTY, {})

        exact = description.has_exact_types
        tier = ProxyTier.EXACT if exact else ProxyTier.RECONSTRUCTED

        invokers: dict[str, Invoker] = {}
        for signature in description.signatures:
            func = description.service.methods[signature.name]
            invokers[signature.name] = self._make_invoker(canister_id, signature.name, func, exact)

        if not invokers:
            logger.warning(f"Proxy for {canister_id} has no callable methods")
        else:
            logger.info(f"Created tier {tier} proxy for {canister_id} with {len(invokers)} methods")
            logger.debug(f"Available methods: {', '.join(invokers)}")

        return ProxyHandle(canister_id, tier, invokers)

    async def synthesize_from_text(
        self,
        canister_id: str,
        executable: str | None = None,
        declaration: str | None = None,
        parser: InterfaceDescriptionParser | None = None,
    ) -> ProxyHandle:
        """Parse the description texts and create a proxy from the result."""
        parser = parser or InterfaceDescriptionParser()
        return await self.synthesize(canister_id, parser.parse(executable, declaration))

    def _make_invoker(self, canister_id: str, name: str, func: idl.FuncType, exact: bool) -> Invoker:
        transport = self.transport

        async def invoke(*args: Any) -> Any:
            if exact:
                if len(args) != len(func.arg_types):
                    raise MethodInvocationError(
                        name,
                        InvocationErrorKind.ARITY_MISMATCH,
                        f"Wrong number of message arguments for {name}: "
                        f"expected {len(func.arg_types)}, got {len(args)}",
                    )
                try:
                    wire_args = [arg_type.coerce(arg) for arg_type, arg in zip(func.arg_types, args)]
                except (TypeError, ValueError) as e:
                    raise MethodInvocationError(name, InvocationErrorKind.INVALID_ARGUMENT, str(e)) from e
            else:
                wire_args = list(args)

            logger.debug(f"Calling {name} on {canister_id} with {len(wire_args)} arguments")
            try:
                reply = await transport.call(canister_id, name, wire_args, query=func.is_query)
            except Exception as e:
                raise MethodInvocationError.from_exception(name, e) from e

            try:
                return decode_reply(func, reply)
            except (TypeError, ValueError) as e:
                raise MethodInvocationError(name, InvocationErrorKind.OTHER, f"Malformed reply: {e}") from e

        invoke.__name__ = name
        return invoke
