"""Tests for synthesizing proxies and invoking procedures through them."""

from __future__ import annotations

import asyncio

import pytest
from conftest import CANISTER_ID, SERVICE_DID_D_TS, SERVICE_DID_JS

from canister_mapper.errors import InvocationErrorKind, MethodInvocationError, ProxyCreationError
from canister_mapper.models import InterfaceDescription
from canister_mapper.parser import InterfaceDescriptionParser
from canister_mapper.proxy import ProxySynthesizer, ProxyTier
from canister_mapper.transport import RecordedTransport

MULTI_RETURN_DID_JS = """\
export const idlFactory = ({ IDL }) => {
  return IDL.Service({
    'getRange' : IDL.Func([], [IDL.Nat, IDL.Nat], ['query']),
    'ping' : IDL.Func([], [], []),
  });
};
"""


def _synthesize(transport, executable=None, declaration=None, canister_id=CANISTER_ID):
    synthesizer = ProxySynthesizer(transport)
    return asyncio.run(synthesizer.synthesize_from_text(canister_id, executable, declaration))


class TestSynthesis:
    def test_exact_proxy_exposes_parsed_names(self, transport):
        proxy = _synthesize(transport, executable=SERVICE_DID_JS)
        description = InterfaceDescriptionParser().parse(executable=SERVICE_DID_JS)

        assert proxy.tier == ProxyTier.EXACT
        assert proxy.names() == description.names
        assert "getUsers" in proxy
        assert len(proxy) == len(description.signatures)

    def test_reconstructed_proxy(self, transport):
        proxy = _synthesize(transport, declaration=SERVICE_DID_D_TS)

        assert proxy.tier == ProxyTier.RECONSTRUCTED
        assert proxy.names() == ["getCounter", "getSecret", "getUsers", "searchUsers", "setUsers", "resetAll"]

    def test_empty_proxy_is_degraded(self, transport, caplog):
        proxy = asyncio.run(ProxySynthesizer(transport).synthesize(CANISTER_ID, InterfaceDescription(None, 0)))

        assert proxy.tier == ProxyTier.EMPTY
        assert len(proxy) == 0
        assert "empty proxy" in caplog.text

    def test_malformed_canister_id(self, transport):
        with pytest.raises(ProxyCreationError, match="Malformed") as info:
            _synthesize(transport, executable=SERVICE_DID_JS, canister_id="not-a-canister")
        assert info.value.canister_id == "not-a-canister"

    def test_unreachable_canister(self, service_replies):
        transport = RecordedTransport(service_replies, canister_ids=["aaaaa-aa"])

        with pytest.raises(ProxyCreationError, match="not found"):
            _synthesize(transport, executable=SERVICE_DID_JS)


class TestExactInvocation:
    def test_call_returns_single_value(self, transport, users):
        proxy = _synthesize(transport, executable=SERVICE_DID_JS)

        assert asyncio.run(proxy.call("getUsers")) == users
        assert transport.calls == [("getUsers", [], True)]

    def test_arguments_are_coerced(self, transport):
        proxy = _synthesize(transport, executable=SERVICE_DID_JS)

        asyncio.run(proxy.call("searchUsers", "ada", None))
        asyncio.run(proxy.call("searchUsers", "ada", "5"))

        assert transport.calls_to("searchUsers") == [["ada", []], ["ada", [5]]]

    def test_arity_is_checked_before_calling(self, transport):
        proxy = _synthesize(transport, executable=SERVICE_DID_JS)

        with pytest.raises(MethodInvocationError) as info:
            asyncio.run(proxy.call("getSecret"))

        assert info.value.kind == InvocationErrorKind.ARITY_MISMATCH
        assert transport.calls == []

    def test_invalid_arguments(self, transport):
        proxy = _synthesize(transport, executable=SERVICE_DID_JS)

        with pytest.raises(MethodInvocationError) as info:
            asyncio.run(proxy.call("setUsers", "not a list"))

        assert info.value.kind == InvocationErrorKind.INVALID_ARGUMENT
        assert transport.calls == []

    def test_no_return_value(self):
        transport = RecordedTransport({"ping": None})
        proxy = _synthesize(transport, executable=MULTI_RETURN_DID_JS)

        assert asyncio.run(proxy.call("ping")) is None

    def test_multiple_return_values(self):
        class RangeTransport(RecordedTransport):
            async def call(self, canister_id, method, args, *, query):
                return [1, 10]

        proxy = _synthesize(RangeTransport({}), executable=MULTI_RETURN_DID_JS)
        assert asyncio.run(proxy.call("getRange")) == [1, 10]


class TestReconstructedInvocation:
    def test_arguments_pass_through(self, transport):
        proxy = _synthesize(transport, declaration=SERVICE_DID_D_TS)

        asyncio.run(proxy.call("searchUsers", "ada", [7]))
        assert transport.calls_to("searchUsers") == [["ada", [7]]]

    def test_query_flag_is_kept(self, transport):
        proxy = _synthesize(transport, declaration=SERVICE_DID_D_TS)

        asyncio.run(proxy.call("getCounter"))
        asyncio.run(proxy.call("setUsers", []))

        assert [query for _, _, query in transport.calls] == [True, False]


class TestInvocationErrors:
    @pytest.mark.parametrize(
        "message,kind",
        [
            ("Canister trapped explicitly: boom", InvocationErrorKind.TRAPPED),
            ("Caller not authorized", InvocationErrorKind.UNAUTHORIZED),
            ("IDL error: Wrong number of message arguments", InvocationErrorKind.ARITY_MISMATCH),
            ("connection reset", InvocationErrorKind.OTHER),
        ],
    )
    def test_transport_errors_are_classified(self, service_replies, message, kind):
        service_replies["getCounter"] = RuntimeError(message)
        proxy = _synthesize(RecordedTransport(service_replies), executable=SERVICE_DID_JS)

        with pytest.raises(MethodInvocationError) as info:
            asyncio.run(proxy.call("getCounter"))

        assert info.value.kind == kind
        assert info.value.method == "getCounter"

    def test_missing_method_on_canister(self):
        proxy = _synthesize(RecordedTransport({}), executable=SERVICE_DID_JS)

        with pytest.raises(MethodInvocationError) as info:
            asyncio.run(proxy.call("getUsers"))

        assert info.value.kind == InvocationErrorKind.NOT_FOUND
        assert info.value.reason == "Method not found on canister"

    def test_unknown_method_on_proxy(self, transport):
        proxy = _synthesize(transport, executable=SERVICE_DID_JS)

        with pytest.raises(MethodInvocationError) as info:
            asyncio.run(proxy.call("dropTables"))

        assert info.value.kind == InvocationErrorKind.NOT_FOUND
