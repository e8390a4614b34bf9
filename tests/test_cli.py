"""CLI tests for canister-mapper.

Tests cover:
- Argument parsing and validation
- Inspecting interface descriptions
- Loading data from recorded replies
- Error codes
"""

from __future__ import annotations

import json

import pytest
from conftest import CANISTER_ID, SERVICE_DID, SERVICE_DID_JS

from canister_mapper.cli import main, setup_parser
from canister_mapper.config import DEFAULT_BULK_METHOD


@pytest.fixture
def did_js(tmp_path):
    path = tmp_path / "service.did.js"
    path.write_text(SERVICE_DID_JS)
    return path


@pytest.fixture
def did(tmp_path):
    path = tmp_path / "service.did"
    path.write_text(SERVICE_DID)
    return path


@pytest.fixture
def replies_file(tmp_path, service_replies):
    service_replies["getStatus"] = {"$reject": "Caller not authorized"}
    path = tmp_path / "replies.json"
    path.write_text(json.dumps({"canister_ids": [CANISTER_ID], "replies": service_replies}))
    return path


class TestArgumentParsing:
    def test_inspect_arguments(self):
        args = setup_parser().parse_args(["inspect", "--did-js", "a.did.js", "--did", "a.did"])

        assert args.command == "inspect"
        assert args.did_js == "a.did.js"
        assert args.did == "a.did"
        assert args.output == ""
        assert not args.verbose

    def test_load_arguments(self):
        args = setup_parser().parse_args(
            ["-v", "load", CANISTER_ID, "-r", "replies.json", "--did-js", "a.did.js", "--privileged"]
        )

        assert args.command == "load"
        assert args.canister_id == CANISTER_ID
        assert args.replies == "replies.json"
        assert args.privileged
        assert args.bulk_method == DEFAULT_BULK_METHOD
        assert args.verbose

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            setup_parser().parse_args([])

    def test_load_requires_replies(self):
        with pytest.raises(SystemExit):
            setup_parser().parse_args(["load", CANISTER_ID, "--did-js", "a.did.js"])

    def test_a_description_is_required(self):
        with pytest.raises(SystemExit):
            main(["inspect"])


class TestInspect:
    def test_inspect_executable(self, did_js, tmp_path):
        output = tmp_path / "out.json"
        assert main(["inspect", "--did-js", str(did_js), "-o", str(output)]) == 0

        result = json.loads(output.read_text())
        assert result["encoding"] == "executable"
        assert result["tier"] == 1
        methods = {method["name"]: method for method in result["methods"]}
        assert methods["getUsers"]["category"] == "getter"
        assert methods["getUsers"]["section"] == "user"
        assert methods["getSecret"]["parameter_count"] == 1
        assert methods["getLogs"]["category"] is None

    def test_inspect_declaration_to_stdout(self, did, capsys):
        assert main(["inspect", "--did", str(did)]) == 0

        result = json.loads(capsys.readouterr().out)
        assert result["encoding"] == "declaration"
        assert [method["name"] for method in result["methods"]][:2] == ["getCounter", "getSecret"]

    def test_unparseable_description(self, tmp_path):
        path = tmp_path / "broken.did.js"
        path.write_text("not an interface")

        assert main(["inspect", "--did-js", str(path)]) == 1


class TestLoad:
    def test_load(self, did_js, replies_file, tmp_path):
        output = tmp_path / "out.json"
        argv = ["load", CANISTER_ID, "-r", str(replies_file), "--did-js", str(did_js), "-o", str(output)]
        assert main(argv) == 0

        result = json.loads(output.read_text())
        assert result["proxy_tier"] == 1
        assert result["data"]["users"] == [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]
        assert result["report"]["skipped"] == [{"name": "getSecret", "reason": "requires 1 parameter(s)"}]
        assert result["report"]["failed"][0]["name"] == "getStatus"
        assert result["report"]["failed"][0]["kind"] == "unauthorized"
        sections = {section["id"]: section for section in result["schema"]["sections"]}
        assert sections["users"]["editable"]
        assert sections["counter"]["type"] == "primitive"

    def test_unknown_canister(self, did_js, replies_file):
        argv = ["load", "aaaaa-aa", "-r", str(replies_file), "--did-js", str(did_js)]
        assert main(argv) == 1
