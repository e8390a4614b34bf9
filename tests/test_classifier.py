"""Tests for classifying procedures into getters, setters, queries and updates."""

from __future__ import annotations

import pytest
from conftest import SERVICE_DID_JS

from canister_mapper.classifier import MethodClassifier
from canister_mapper.config import MapperConfig
from canister_mapper.models import AccessMode, ClassifiedMethod, MethodCategory, ProcedureSignature
from canister_mapper.parser import InterfaceDescriptionParser


@pytest.fixture
def signatures():
    return InterfaceDescriptionParser().parse(executable=SERVICE_DID_JS).signatures


@pytest.fixture
def classifier():
    return MethodClassifier()


def _signature(name: str, access_mode: str = AccessMode.UPDATE) -> ProcedureSignature:
    return ProcedureSignature(name=name, parameter_types=(), return_type="()", access_mode=access_mode)


class TestCategories:
    def test_buckets(self, classifier, signatures):
        groups = classifier.group(signatures)

        assert [method.name for method in groups.getters] == [
            "getUsers",
            "getProfile",
            "getCounter",
            "getSecret",
            "getStatus",
            "getTree",
        ]
        assert [method.name for method in groups.setters] == ["setUsers", "updateProfile"]
        assert [method.name for method in groups.queries] == ["searchUsers", "whoami"]
        assert [method.name for method in groups.updates] == ["resetAll"]

    def test_prefix_wins_over_access_mode(self, classifier):
        assert classifier.categorize(_signature("getThing", AccessMode.UPDATE)) == MethodCategory.GETTER
        assert classifier.categorize(_signature("createThing", AccessMode.QUERY)) == MethodCategory.SETTER
        assert classifier.categorize(_signature("count", AccessMode.QUERY)) == MethodCategory.QUERY
        assert classifier.categorize(_signature("reset")) == MethodCategory.UPDATE

    @pytest.mark.parametrize(
        "name,section_name",
        [
            ("getUsers", "user"),
            ("setUsers", "user"),
            ("updateThemeConfig", "theme"),
            ("listProjects", "project"),
            ("addAPICredential", "aPICredential"),
            ("get", "get"),
        ],
    )
    def test_section_names(self, classifier, name, section_name):
        (method,) = classifier.classify([_signature(name)])
        assert method.section_name == section_name


class TestLoggingMethods:
    def test_logging_methods_never_appear(self, classifier, signatures):
        names = [method.name for method in classifier.group(signatures).all()]
        assert "getLogs" not in names
        assert "clearAllLogs" not in names

    def test_fragments_match_case_insensitively(self, classifier):
        assert classifier.classify([_signature("updateLoggerConfig"), _signature("logInfo")]) == []

    def test_fragments_are_configurable(self):
        classifier = MethodClassifier(MapperConfig(logging_fragments=frozenset({"audit"})))
        names = [method.name for method in classifier.classify([_signature("getAuditTrail"), _signature("getLogs")])]
        assert names == ["getLogs"]


def test_classification_is_deterministic(classifier, signatures):
    first = classifier.classify(signatures)
    second = classifier.classify(signatures)

    assert first == second
    assert all(isinstance(method, ClassifiedMethod) for method in first)


def test_setter_for_section(classifier, signatures):
    groups = classifier.group(signatures)

    assert groups.setter_for("user").name == "setUsers"
    assert groups.setter_for("profile").name == "updateProfile"
    assert groups.setter_for("counter") is None


def test_replacing_setter_is_preferred(classifier):
    groups = classifier.group([_signature("addUser"), _signature("createUser"), _signature("setUsers")])
    assert groups.setter_for("user").name == "setUsers"

    groups = classifier.group([_signature("addUser"), _signature("createUser")])
    assert groups.setter_for("user").name == "addUser"


def test_group_by_section(classifier, signatures):
    sections = classifier.group(signatures).group_by_section()

    assert [method.name for method in sections["user"][MethodCategory.GETTER]] == ["getUsers"]
    assert [method.name for method in sections["user"][MethodCategory.SETTER]] == ["setUsers"]


def test_no_methods_is_reported(classifier, caplog):
    groups = classifier.group([_signature("getLogs")])

    assert not groups.has_any_methods()
    assert "No valid methods" in caplog.text
