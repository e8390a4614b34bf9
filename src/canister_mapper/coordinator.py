"""Load, diff and save the data of one connected service."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from canister_mapper import helper
from canister_mapper.classifier import MethodClassifier, MethodGroups, preferred_setter
from canister_mapper.coercion import coerce_arguments, to_form, to_wire
from canister_mapper.config import DEFAULT_CONFIG, MapperConfig
from canister_mapper.errors import (
    DataLoadError,
    InvocationErrorKind,
    MethodInvocationError,
    PersistenceError,
)
from canister_mapper.idl import LogicalType
from canister_mapper.models import (
    ClassifiedMethod,
    GetterFailure,
    InterfaceDescription,
    LoadReport,
    ParameterRequirement,
    Schema,
    SkippedGetter,
)
from canister_mapper.parser import InterfaceDescriptionParser
from canister_mapper.proxy import ProxyHandle, ProxySynthesizer
from canister_mapper.requirements import ParameterRequirementAnalyzer
from canister_mapper.schema import SchemaInferencer, resolve_data_key
from canister_mapper.transport import Transport

logger = logging.getLogger(__name__)


def unwrap_result(value: Any) -> tuple[bool, Any]:
    """Split a `{ok: value}` or `{err: reason}` result variant.

    Returns:
        Whether the value is a success, and the payload. Values that are not result variants
        count as success and are returned unchanged.
    """
    if isinstance(value, Mapping) and len(value) == 1:
        if "ok" in value:
            return True, value["ok"]
        if "err" in value:
            return False, value["err"]
    return True, value


def deep_equal(left: Any, right: Any) -> bool:
    """Structural equality of form values.

    Unlike `==`, booleans never equal numbers. Sequences are compared length first, then
    element-wise; mappings by key set, then value by value.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return False
        return all(deep_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if left.keys() != right.keys():
            return False
        return all(deep_equal(left[key], right[key]) for key in left)
    if isinstance(left, (list, tuple, Mapping)) or isinstance(right, (list, tuple, Mapping)):
        return False
    return left == right


def find_changed_sections(current: Mapping[str, Any], original: Mapping[str, Any]) -> list[str]:
    """Keys of `current` whose value differs from `original`, including new keys."""
    return [key for key, value in current.items() if key not in original or not deep_equal(value, original[key])]


class DataAccessCoordinator:
    """Orchestrates loading and saving through a proxy.

    The coordinator owns the last loaded snapshot and the schema inferred from it. Both are
    replaced, never mutated in place, by `load` and `save`.

    Attributes:
        snapshot: Section data in form representation, keyed by data key.
        schema: Schema of the snapshot.
    """

    def __init__(
        self,
        proxy: ProxyHandle,
        groups: MethodGroups,
        requirements: Mapping[str, ParameterRequirement],
        config: MapperConfig = DEFAULT_CONFIG,
        inferencer: SchemaInferencer | None = None,
    ):
        self.proxy = proxy
        self.groups = groups
        self.requirements = dict(requirements)
        self.config = config
        self.inferencer = inferencer or SchemaInferencer()
        self.snapshot: dict[str, Any] = {}
        self.schema = Schema()

    async def load(self, privileged: bool = False) -> LoadReport:
        """Load the data of every section.

        Args:
            privileged: Try the bulk method first, falling back to the getters.

        Returns:
            The report of the load. Its data also becomes the new snapshot.

        Raises:
            DataLoadError: If every getter failed and none was skipped.
        """
        report = None
        if privileged:
            report = await self._load_bulk()
        if report is None:
            report = await self._load_getters()

        if not report.succeeded:
            raise DataLoadError(report.failed)

        self.snapshot = copy.deepcopy(report.data)
        self.schema = self.inferencer.infer(self.groups.all(), self.snapshot)
        logger.info(
            f"Loaded {len(report.data)} sections: {len(report.successful)} successful, "
            f"{len(report.failed)} failed, {len(report.skipped)} skipped"
        )
        return report

    async def _load_bulk(self) -> LoadReport | None:
        method = self.config.bulk_method
        requirement = self.requirements.get(method)
        if method not in self.proxy or (requirement and requirement.has_parameters):
            logger.info(f"Bulk method {method} not available, using getters")
            return None

        try:
            result = await self.proxy.call(method)
        except MethodInvocationError as e:
            logger.warning(f"Bulk method {method} failed, falling back to getters: {e.reason}")
            return None

        ok, payload = unwrap_result(result)
        if not ok:
            logger.warning(f"Bulk method {method} returned error, falling back to getters: {payload}")
            return None
        if not isinstance(payload, Mapping):
            logger.warning(f"Bulk method {method} returned {type(payload).__name__}, falling back to getters")
            return None

        report = LoadReport(successful=[method], used_bulk_path=True)
        for key, value in payload.items():
            if key.startswith(self.config.counter_prefixes):
                logger.debug(f"Skipping counter field: {key}")
                continue
            if not isinstance(value, (list, tuple, Mapping)):
                logger.debug(f"Skipping scalar field: {key}")
                continue
            report.data[key] = to_form(value, self.config.max_safe_integer)

        logger.info(f"Loaded {len(report.data)} sections via {method}")
        return report

    async def _load_getters(self) -> LoadReport:
        report = LoadReport()

        for getter in self.groups.getters:
            requirement = self.requirements.get(getter.name)
            if requirement is not None and requirement.has_parameters:
                reason = f"requires {requirement.parameter_count} parameter(s)"
                logger.debug(f"Skipping {getter.name}: {reason}")
                report.skipped.append(SkippedGetter(getter.name, reason))
                continue

            try:
                result = await self.proxy.call(getter.name)
            except MethodInvocationError as e:
                if e.kind == InvocationErrorKind.ARITY_MISMATCH:
                    logger.warning(f"{getter.name} requires parameters that were not declared: {e}")
                    report.skipped.append(SkippedGetter(getter.name, e.reason))
                else:
                    logger.warning(f"Calling {getter.name} failed: {e}")
                    report.failed.append(GetterFailure(getter.name, e.reason, e.kind))
                continue

            ok, payload = unwrap_result(result)
            if not ok:
                logger.warning(f"{getter.name} returned error: {payload}")
                report.failed.append(
                    GetterFailure(getter.name, f"Canister returned error: {payload}", InvocationErrorKind.OTHER)
                )
                continue

            report.data[helper.format_data_key(getter.name)] = to_form(payload, self.config.max_safe_integer)
            report.successful.append(getter.name)

        if report.skipped:
            logger.info(f"{len(report.skipped)} methods need explicit arguments: {[s.name for s in report.skipped]}")
        return report

    def setter_for_key(self, key: str) -> ClassifiedMethod | None:
        """Find the setter that persists the data stored under `key`.

        When several setters map to the key, `set`, `update` and `save` setters win over `add`
        and `create` setters, then the first declared one.
        """
        return preferred_setter(
            setter
            for setter in self.groups.setters
            if resolve_data_key([key], setter.section_name, setter.name) == key
        )

    async def save(self, current: Mapping[str, Any]) -> list[str]:
        """Persist every changed section that has a setter.

        Args:
            current: The edited data, in form representation, keyed like the snapshot.

        Returns:
            The keys of the sections that were saved.

        Raises:
            PersistenceError: If any setter call failed or returned an error.
        """
        changed = find_changed_sections(current, self.snapshot)
        pending = []
        for key in changed:
            setter = self.setter_for_key(key)
            if setter is None:
                logger.debug(f"Section {key} changed, but has no setter")
                continue
            pending.append((key, setter))

        if not pending:
            logger.info("No changes to save")
            return []

        await asyncio.gather(*(self._save_section(key, setter, current[key]) for key, setter in pending))

        snapshot = copy.deepcopy(self.snapshot)
        for key, _ in pending:
            snapshot[key] = copy.deepcopy(current[key])
        self.snapshot = snapshot
        self.schema = self.inferencer.infer(self.groups.all(), self.snapshot)

        saved = [key for key, _ in pending]
        logger.info(f"Saved {len(saved)} sections: {', '.join(saved)}")
        return saved

    async def _save_section(self, key: str, setter: ClassifiedMethod, value: Any) -> None:
        logger.debug(f"Calling {setter.name} for section {key}")
        try:
            result = await self.proxy.call(setter.name, to_wire(value, self.config.max_safe_integer))
        except MethodInvocationError as e:
            raise PersistenceError(key, setter.name, e.reason) from e

        ok, payload = unwrap_result(result)
        if not ok:
            raise PersistenceError(key, setter.name, str(payload))

    async def invoke(self, name: str, *raw_args: Any) -> Any:
        """Call any procedure with raw arguments, e.g. typed into a query tool.

        Arguments are coerced with the parameter types of the procedure. The result is
        returned in form representation.

        Raises:
            MethodInvocationError: If arguments are missing or the call failed.
        """
        requirement = self.requirements.get(name)
        args = coerce_arguments(raw_args, requirement)

        if requirement is not None and requirement.parameter_types:
            if len(args) < requirement.parameter_count:
                raise MethodInvocationError(
                    name,
                    InvocationErrorKind.ARITY_MISMATCH,
                    f"{name} requires {requirement.parameter_count} parameter(s), got {len(args)}",
                )
            missing = [
                parameter.name
                for parameter, arg in zip(requirement.parameter_types, args)
                if arg is None and parameter.logical_type != LogicalType.OPTIONAL
            ]
            if missing:
                raise MethodInvocationError(
                    name, InvocationErrorKind.INVALID_ARGUMENT, f"Missing value for {', '.join(missing)}"
                )

        result = await self.proxy.call(name, *args)
        return to_form(result, self.config.max_safe_integer)


@dataclass
class CanisterConnection:
    """Everything discovered about one service during one connect cycle."""

    canister_id: str
    description: InterfaceDescription
    proxy: ProxyHandle
    groups: MethodGroups
    requirements: dict[str, ParameterRequirement]
    coordinator: DataAccessCoordinator

    @property
    def schema(self) -> Schema:
        return self.coordinator.schema

    @property
    def snapshot(self) -> dict[str, Any]:
        return self.coordinator.snapshot


async def connect(
    canister_id: str,
    transport: Transport,
    executable: str | None = None,
    declaration: str | None = None,
    config: MapperConfig = DEFAULT_CONFIG,
) -> CanisterConnection:
    """Discover a service from its interface descriptions and connect to it.

    Args:
        canister_id: Text form of the service's principal.
        transport: The call mechanism.
        executable: Text of the `.did.js` descriptor, if available.
        declaration: Text of the `.did.d.ts` or `.did` declaration, if available.
        config: Settings of the connection.

    Returns:
        The connection, not loaded yet.

    Raises:
        DescriptionParseError: If none of the descriptions could be parsed.
        NoMethodsDiscoveredError: If the descriptions declare no procedure.
        ProxyCreationError: If the service is unreachable or the id is malformed.
    """
    description = InterfaceDescriptionParser(config).parse_or_raise(executable, declaration)
    requirements = ParameterRequirementAnalyzer().analyze(description)
    groups = MethodClassifier(config).group(description.signatures)
    # Only warns: a service whose methods are all logging facilities still connects.
    groups.has_any_methods()

    proxy = await ProxySynthesizer(transport).synthesize(canister_id, description)
    coordinator = DataAccessCoordinator(proxy, groups, requirements, config)

    logger.info(f"Connected to {canister_id}")
    return CanisterConnection(
        canister_id=canister_id,
        description=description,
        proxy=proxy,
        groups=groups,
        requirements=requirements,
        coordinator=coordinator,
    )
