"""Top-level module for inspecting and loading services from the command line."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import os.path
import sys
from typing import Any

from canister_mapper.classifier import MethodClassifier
from canister_mapper.config import MapperConfig
from canister_mapper.coordinator import connect
from canister_mapper.parser import InterfaceDescriptionParser
from canister_mapper.requirements import ParameterRequirementAnalyzer
from canister_mapper.transport import RecordedTransport

logger = logging.getLogger(__name__)


def _read_text(root_directory: str, path: str | None) -> str | None:
    if not path:
        return None
    full_path = os.path.join(root_directory, path)
    with open(full_path, encoding="utf8") as f:
        text = f.read()
    logger.info(f"Read interface description {full_path}")
    return text


def config_from_args(args: argparse.Namespace) -> MapperConfig:
    """Build the connection settings, overriding defaults with command-line flags."""
    bulk_method = getattr(args, "bulk_method", None)
    if bulk_method:
        return MapperConfig(bulk_method=bulk_method)
    return MapperConfig()


def inspect_command(args: argparse.Namespace, root_directory: str) -> dict[str, Any]:
    """Parse interface descriptions and report what was discovered.

    Args:
        args (argparse.Namespace): The arguments of the `inspect` command.
        root_directory (str): The directory that relative paths are resolved against.

    Returns:
        dict[str, Any]: The parse provenance, the classified methods and their parameter
            requirements.
    """
    config = config_from_args(args)
    executable = _read_text(root_directory, args.did_js)
    declaration = _read_text(root_directory, args.did)

    description = InterfaceDescriptionParser(config).parse_or_raise(executable, declaration)
    requirements = ParameterRequirementAnalyzer().analyze(description)
    classified = {method.name: method for method in MethodClassifier(config).classify(description.signatures)}

    methods = []
    for signature in description.signatures:
        method = classified.get(signature.name)
        requirement = requirements[signature.name]
        methods.append(
            {
                "name": signature.name,
                "category": method.category if method else None,
                "section": method.section_name if method else None,
                "access_mode": signature.access_mode,
                "parameter_types": list(signature.parameter_types),
                "return_type": signature.return_type,
                "parameter_count": requirement.parameter_count,
            }
        )

    return {"encoding": description.encoding, "tier": description.tier, "methods": methods}


async def load_command(args: argparse.Namespace, root_directory: str) -> dict[str, Any]:
    """Connect through recorded replies, load all data and report the result.

    Args:
        args (argparse.Namespace): The arguments of the `load` command.
        root_directory (str): The directory that relative paths are resolved against.

    Returns:
        dict[str, Any]: The load report, the snapshot and the inferred schema.
    """
    config = config_from_args(args)
    transport = RecordedTransport.from_json(os.path.join(root_directory, args.replies))

    connection = await connect(
        args.canister_id,
        transport,
        executable=_read_text(root_directory, args.did_js),
        declaration=_read_text(root_directory, args.did),
        config=config,
    )
    report = await connection.coordinator.load(privileged=args.privileged)

    return {
        "canister_id": connection.canister_id,
        "proxy_tier": connection.proxy.tier,
        "report": {
            "successful": report.successful,
            "failed": [dataclasses.asdict(failure) for failure in report.failed],
            "skipped": [dataclasses.asdict(skipped) for skipped in report.skipped],
            "used_bulk_path": report.used_bulk_path,
        },
        "data": connection.snapshot,
        "schema": dataclasses.asdict(connection.schema),
    }


def run(args: argparse.Namespace, root_directory: str):
    """Run a command and write its result as JSON.

    Args:
        args (argparse.Namespace): The arguments that were passed on the command line.
        root_directory (str): The directory, from which the command is executed.
    """
    if args.command == "inspect":
        result = inspect_command(args, root_directory)
    else:
        result = asyncio.run(load_command(args, root_directory))

    output = json.dumps(result, indent=2)
    if args.output:
        output_path = os.path.join(root_directory, args.output)
        with open(output_path, "w", encoding="utf8") as f:
            f.write(output + "\n")
        logger.info(f"Wrote result to {output_path}")
    else:
        sys.stdout.write(output + "\n")
