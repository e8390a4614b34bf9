"""Tests for converting values between wire and form representation."""

from __future__ import annotations

import pytest

from canister_mapper.coercion import coerce_arguments, coerce_parameter, to_form, to_wire
from canister_mapper.config import MAX_SAFE_INTEGER
from canister_mapper.idl import Idl
from canister_mapper.models import ParameterRequirement, ParameterType


def _parameter(logical_type: str) -> ParameterType:
    return ParameterType(name="param0", logical_type=logical_type, wire_type="")


class TestRoundTrip:
    @pytest.mark.parametrize("value", [0, 1, -1, 42, MAX_SAFE_INTEGER, -MAX_SAFE_INTEGER])
    def test_safe_integers(self, value):
        assert to_form(to_wire(value)) == value
        assert to_wire(to_form(value)) == value

    @pytest.mark.parametrize("value", [MAX_SAFE_INTEGER + 1, 2**64, -(2**70)])
    def test_large_integers_travel_as_text(self, value):
        form = to_form(value)

        assert form == str(value)
        assert to_wire(form) == value


class TestToForm:
    def test_nested_structures(self):
        wire = {"id": 2**64, "tags": ("a", "b"), "owner": {"balance": 10, "active": True}, "note": None}
        assert to_form(wire) == {
            "id": "18446744073709551616",
            "tags": ["a", "b"],
            "owner": {"balance": 10, "active": True},
            "note": None,
        }

    def test_booleans_are_not_numbers(self):
        assert to_form(True) is True

    def test_blobs_become_lists(self):
        assert to_form(b"\x01\x02") == [1, 2]


class TestToWire:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("42", 42),
            ("-7", -7),
            ("3.5", 3.5),
            ("2.0", 2),
            ("1e3", 1000),
            ("12345678901234567890", 12345678901234567890),
        ],
    )
    def test_numeric_text(self, text, expected):
        result = to_wire(text)
        assert result == expected
        assert type(result) is type(expected)

    @pytest.mark.parametrize("text", ["hello", "", "1.2.3", "inf", "nan", "0x10"])
    def test_other_text_is_kept(self, text):
        assert to_wire(text) == text

    def test_huge_integral_float(self):
        assert to_wire(1e20) == 10**20

    def test_nested_structures(self):
        assert to_wire([{"id": "1", "name": "a"}, {"id": "2", "flag": False}]) == [
            {"id": 1, "name": "a"},
            {"id": 2, "flag": False},
        ]


class TestParameterCoercion:
    def test_unbounded_integers(self):
        parameter = _parameter("unbounded-integer")
        assert coerce_parameter("12", parameter) == 12
        assert coerce_parameter("123456789012345678901234", parameter) == 123456789012345678901234
        assert coerce_parameter(5.0, parameter) == 5
        assert coerce_parameter("7.0", parameter) == 7

    def test_fractional_text_is_not_truncated(self):
        value = coerce_parameter("7.5", _parameter("unbounded-integer"))

        assert value == "7.5"
        with pytest.raises(ValueError):
            Idl.Nat.coerce(value)

    def test_vectors(self):
        parameter = _parameter("vector")
        assert coerce_parameter('["a", "b"]', parameter) == ["a", "b"]
        assert coerce_parameter("plain", parameter) == ["plain"]
        assert coerce_parameter('{"a": 1}', parameter) == [{"a": 1}]
        assert coerce_parameter(3, parameter) == [3]
        assert coerce_parameter(("x",), parameter) == ["x"]

    def test_optionals(self):
        parameter = _parameter("optional")
        assert coerce_parameter("null", parameter) is None
        assert coerce_parameter(None, parameter) is None
        assert coerce_parameter("value", parameter) == "value"

    def test_missing_values(self):
        assert coerce_parameter("", _parameter("text")) is None
        assert coerce_parameter(None, _parameter("text")) is None

    def test_unknown_parameters_pass_through(self):
        assert coerce_parameter("12", None) == "12"
        assert coerce_parameter("12", _parameter("text")) == "12"

    def test_coerce_arguments(self):
        requirement = ParameterRequirement(
            has_parameters=True,
            parameter_count=2,
            parameter_types=(
                ParameterType("param0", "unbounded-integer", "nat"),
                ParameterType("param1", "vector", "vec text"),
            ),
        )
        assert coerce_arguments(["7", "a"], requirement) == [7, ["a"]]
        assert coerce_arguments(["7", "a", "extra"], requirement) == [7, ["a"], "extra"]
        assert coerce_arguments(["7"], None) == ["7"]
