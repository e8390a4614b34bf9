"""Parse interface descriptions into normalized procedure signatures.

Two encodings are understood. The executable descriptor (`.did.js`) embeds an `idlFactory`
that is evaluated against the type grammar; when that fails, the `IDL.Service` block and
finally the individual `IDL.Func` tuples are recovered by pattern matching. The static
declaration is either the TypeScript declaration (`.did.d.ts`) or the Candid service block
(`.did`), both parsed with regular expressions and bracket matching.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable

from canister_mapper import helper, idl
from canister_mapper.config import DEFAULT_CONFIG, MapperConfig
from canister_mapper.errors import (
    CanisterMapperError,
    DescriptionParseError,
    FactoryEvaluationError,
    NoMethodsDiscoveredError,
)
from canister_mapper.factory import FactoryInterpreter
from canister_mapper.models import AccessMode, Encoding, InterfaceDescription, ParameterType, ProcedureSignature

logger = logging.getLogger(__name__)


class ParseTier:
    """Tiers of the executable descriptor parser, in priority order."""

    EVALUATED = 1
    SERVICE_BLOCK = 2
    FUNC_TUPLES = 3


class DescriptionTierError(CanisterMapperError):
    """Raised by a parsing tier that could not find what it was looking for."""

    pass


_SERVICE_CALL_PATTERN = re.compile(r"(?:return\s+)?IDL\.Service\s*\(")
_SERVICE_ENTRY_PATTERN = re.compile(r"^'([^']+)'\s*:\s*IDL\.Func\s*\(", re.DOTALL)
_FUNC_TUPLE_PATTERN = re.compile(
    r"'([^']+)'\s*:\s*IDL\.Func\s*\(\s*\[(.*?)\]\s*,\s*\[(.*?)\]\s*(?:,\s*\[(.*?)\])?\s*\)", re.DOTALL
)
_TS_SERVICE_PATTERN = re.compile(r"export\s+interface\s+_SERVICE\s*\{")
_TS_METHOD_PATTERN = re.compile(r"'([^']+)'\s*:\s*ActorMethod\s*<")
_CANDID_SERVICE_PATTERN = re.compile(r"(?m)^\s*service\s*(?:[A-Za-z_]\w*\s*)?:")
_CANDID_METHOD_PATTERN = re.compile(r'^"?([A-Za-z_][\w]*)"?\s*:\s*\(', re.DOTALL)
_CANDID_ANNOTATIONS = ("composite_query", "query", "oneway")
_CANDID_INTEGER_PATTERN = re.compile(r"\b(nat|int)(8|16|32|64)?\b")


def signatures_from_service(
    service: idl.ServiceType, exact: bool, declared_parameters: dict[str, list[str]] | None = None
) -> tuple[ProcedureSignature, ...]:
    """Build normalized signatures from a service type.

    Args:
        service: The evaluated or reconstructed service type.
        exact: Whether the argument types are exact, in which case per-parameter types are kept.
        declared_parameters: Raw parameter expressions per method, used instead of the type
            display when the service was reconstructed from a static declaration.

    Returns:
        The signatures in declaration order.
    """
    signatures = []
    for name, func in service.methods.items():
        if declared_parameters and name in declared_parameters:
            parameter_types = tuple(declared_parameters[name])
        else:
            parameter_types = tuple(arg.display() for arg in func.arg_types)

        parameters = None
        if exact:
            parameters = tuple(
                ParameterType(name=f"param{index}", logical_type=arg.logical_type, wire_type=arg.display())
                for index, arg in enumerate(func.arg_types)
            )

        signatures.append(
            ProcedureSignature(
                name=name,
                parameter_types=parameter_types,
                return_type=", ".join(ret.display() for ret in func.ret_types) or "()",
                access_mode=AccessMode.QUERY if func.is_query else AccessMode.UPDATE,
                parameters=parameters,
            )
        )
    return tuple(signatures)


def guess_type_from_expression(expression: str) -> idl.IdlType:
    """Guess a coarse type from a TypeScript or Candid type expression.

    Only a handful of markers are recognized: arrays and vectors, optional unions, booleans and
    unbounded integers. Everything else is opaque.
    """
    expression = expression.strip()
    if "Array<" in expression or expression.startswith("vec ") or expression == "blob":
        return idl.VecType(idl.Idl.Unknown)
    elif "[] | [" in expression or expression.startswith("opt "):
        return idl.OptType(idl.Idl.Unknown)
    elif expression in ("boolean", "bool"):
        return idl.Idl.Bool
    elif "bigint" in expression or _CANDID_INTEGER_PATTERN.fullmatch(expression):
        return idl.Idl.Nat
    return idl.Idl.Unknown


def _block_after(text: str, match: re.Match[str] | None, opening: str) -> str:
    """Return the content of the bracket block that starts at or after the end of `match`."""
    if match is None:
        raise DescriptionTierError("Block not found.")

    open_index = text.find(opening, match.end() - 1)
    if open_index < 0:
        raise DescriptionTierError(f"No '{opening}' after {match.group(0)!r}.")

    try:
        close_index = helper.find_matching_bracket(text, open_index)
    except ValueError as e:
        raise DescriptionTierError(str(e)) from e
    return text[open_index + 1 : close_index]


class InterfaceDescriptionParser:
    """Turns interface description text into an `InterfaceDescription`."""

    def __init__(self, config: MapperConfig = DEFAULT_CONFIG):
        self.config = config
        self.interpreter = FactoryInterpreter()

    def parse(self, executable: str | None = None, declaration: str | None = None) -> InterfaceDescription:
        """Parse the richest of the supplied descriptions.

        The executable descriptor is preferred. The static declaration is only used when the
        executable descriptor is missing or yields no signature. Results are never mixed.

        Args:
            executable: Text of the executable descriptor, if available.
            declaration: Text of the static declaration, if available.

        Returns:
            The parsed description. If nothing could be parsed, its `encoding` is None and it
            has no signatures.
        """
        parsed_empty: InterfaceDescription | None = None

        if executable:
            description = self.parse_executable(executable)
            if description is not None and description.signatures:
                return description
            parsed_empty = parsed_empty or description

        if declaration:
            description = self.parse_declaration(declaration)
            if description is not None and description.signatures:
                return description
            parsed_empty = parsed_empty or description

        if parsed_empty is not None:
            logger.warning("Interface descriptions parsed, but no methods were declared.")
            return parsed_empty

        logger.warning("No interface description could be parsed.")
        return InterfaceDescription(encoding=None, tier=0)

    def parse_or_raise(self, executable: str | None = None, declaration: str | None = None) -> InterfaceDescription:
        """Like `parse`, but raise when no signature was discovered.

        Raises:
            DescriptionParseError: If every tier of every supplied encoding failed.
            NoMethodsDiscoveredError: If a description parsed, but declares no procedure.
        """
        description = self.parse(executable, declaration)
        if description.signatures:
            return description
        if description.encoding is None:
            raise DescriptionParseError("Could not parse any of the supplied interface descriptions.")
        raise NoMethodsDiscoveredError("No methods discovered in the canister interface.")

    def parse_executable(self, text: str) -> InterfaceDescription | None:
        """Parse an executable descriptor with the tiered strategy.

        Returns:
            The description produced by the first tier that succeeded, or None if all failed.
        """
        tiers: list[tuple[int, Callable[[str], idl.ServiceType]]] = [
            (ParseTier.EVALUATED, self.interpreter.evaluate),
            (ParseTier.SERVICE_BLOCK, self._service_from_block),
            (ParseTier.FUNC_TUPLES, self._service_from_func_tuples),
        ]

        for tier, build_service in tiers:
            try:
                service = build_service(text)
            except (FactoryEvaluationError, DescriptionTierError, ValueError) as e:
                logger.debug(f"Executable descriptor tier {tier} failed: {e}")
                continue

            signatures = signatures_from_service(service, exact=tier == ParseTier.EVALUATED)
            logger.info(f"Parsed {len(signatures)} methods from executable descriptor (tier {tier})")
            return InterfaceDescription(
                encoding=Encoding.EXECUTABLE, tier=tier, signatures=signatures, service=service
            )

        logger.warning("All executable descriptor tiers failed.")
        return None

    def parse_declaration(self, text: str) -> InterfaceDescription | None:
        """Parse a static declaration, either the TypeScript or the Candid dialect.

        Returns:
            The parsed description, or None if no service declaration was found.
        """
        for dialect, build_service in (
            ("TypeScript", self._service_from_typescript),
            ("Candid", self._service_from_candid),
        ):
            try:
                service, declared_parameters = build_service(text)
            except (DescriptionTierError, ValueError) as e:
                logger.debug(f"{dialect} declaration not recognized: {e}")
                continue

            signatures = signatures_from_service(service, exact=False, declared_parameters=declared_parameters)
            logger.info(f"Parsed {len(signatures)} methods from {dialect} declaration")
            return InterfaceDescription(encoding=Encoding.DECLARATION, tier=1, signatures=signatures, service=service)

        logger.warning("No service declaration found.")
        return None

    def _service_from_block(self, text: str) -> idl.ServiceType:
        """Reconstruct the service from the literal `IDL.Service({...})` block."""
        matches = list(_SERVICE_CALL_PATTERN.finditer(text))
        # The service returned by the factory wins over service types used as arguments.
        service_match = next((m for m in matches if m.group(0).startswith("return")), matches[0] if matches else None)
        call_content = _block_after(text, service_match, "(")
        block = helper.strip_enclosing(call_content, "{", "}")

        methods: dict[str, idl.FuncType] = {}
        for entry in helper.split_top_level(block):
            match = _SERVICE_ENTRY_PATTERN.match(entry)
            if not match:
                logger.debug(f"Skipping service entry {entry[:40]!r}")
                continue

            func_parts = helper.split_top_level(_block_after(entry, match, "("))
            arg_count = len(helper.split_parameter_list(func_parts[0])) if func_parts else 0
            has_returns = len(func_parts) > 1 and bool(helper.strip_enclosing(func_parts[1], "[", "]"))
            annotations = ["query"] if "'query'" in entry or "'composite_query'" in entry else []

            methods[match.group(1)] = idl.FuncType(
                [idl.Idl.Unknown] * arg_count, [idl.Idl.Unknown] if has_returns else [], annotations
            )

        return idl.ServiceType(methods)

    def _service_from_func_tuples(self, text: str) -> idl.ServiceType:
        """Reconstruct the service from every `'name' : IDL.Func([...], [...], [...])` in the text."""
        methods: dict[str, idl.FuncType] = {}
        for match in _FUNC_TUPLE_PATTERN.finditer(text):
            name, args, rets, annotations = match.group(1), match.group(2), match.group(3), match.group(4) or ""
            arg_count = len(helper.split_top_level(args))
            methods[name] = idl.FuncType(
                [idl.Idl.Unknown] * arg_count,
                [idl.Idl.Unknown] if rets.strip() else [],
                ["query"] if "'query'" in annotations else [],
            )

        if not methods:
            raise DescriptionTierError("No IDL.Func definitions found.")
        return idl.ServiceType(methods)

    def _service_from_typescript(self, text: str) -> tuple[idl.ServiceType, dict[str, list[str]]]:
        block = _block_after(text, _TS_SERVICE_PATTERN.search(text), "{")

        methods: dict[str, idl.FuncType] = {}
        declared_parameters: dict[str, list[str]] = {}
        for match in _TS_METHOD_PATTERN.finditer(block):
            name = match.group(1)
            try:
                generic_arguments = helper.split_top_level(_block_after(block, match, "<"))
            except DescriptionTierError as e:
                logger.debug(f"Skipping malformed declaration of {name}: {e}")
                continue

            parameters = helper.split_parameter_list(generic_arguments[0])
            return_expression = generic_arguments[1] if len(generic_arguments) > 1 else ""

            declared_parameters[name] = parameters
            methods[name] = idl.FuncType(
                [guess_type_from_expression(parameter) for parameter in parameters],
                [guess_type_from_expression(return_expression)] if return_expression else [],
                ["query"] if self._looks_like_query(name) else [],
            )

        return idl.ServiceType(methods), declared_parameters

    def _service_from_candid(self, text: str) -> tuple[idl.ServiceType, dict[str, list[str]]]:
        match = _CANDID_SERVICE_PATTERN.search(text)
        if match is None:
            raise DescriptionTierError("No Candid service declaration found.")

        position = match.end()
        while position < len(text) and text[position].isspace():
            position += 1
        # Skip the init arguments of `service : (init) -> { ... }`.
        if text.startswith("(", position):
            position = helper.find_matching_bracket(text, position) + 1

        open_index = text.find("{", position)
        if open_index < 0:
            raise DescriptionTierError("Candid service declaration has no method block.")
        block = text[open_index + 1 : helper.find_matching_bracket(text, open_index)]

        methods: dict[str, idl.FuncType] = {}
        declared_parameters: dict[str, list[str]] = {}
        for entry in helper.split_top_level(block, separator=";"):
            method_match = _CANDID_METHOD_PATTERN.match(entry)
            if not method_match:
                logger.debug(f"Skipping service entry {entry[:40]!r}")
                continue

            name = method_match.group(1)
            args_open = method_match.end() - 1
            args_close = helper.find_matching_bracket(entry, args_open)
            parameters = helper.split_top_level(entry[args_open + 1 : args_close])

            rest = entry[args_close + 1 :].strip()
            if not rest.startswith("->"):
                logger.debug(f"Skipping service entry {name} without return arrow")
                continue
            rest = rest[2:].strip()

            annotations = []
            for annotation in _CANDID_ANNOTATIONS:
                if re.search(rf"\b{annotation}\s*$", rest):
                    annotations.append("query" if annotation != "oneway" else annotation)
                    rest = re.sub(rf"\b{annotation}\s*$", "", rest).strip()
                    break

            returns = helper.split_top_level(helper.strip_enclosing(rest, "(", ")"))
            declared_parameters[name] = parameters
            methods[name] = idl.FuncType(
                [guess_type_from_expression(parameter) for parameter in parameters],
                [guess_type_from_expression(ret) for ret in returns],
                annotations,
            )

        return idl.ServiceType(methods), declared_parameters

    def _looks_like_query(self, name: str) -> bool:
        return name.startswith(self.config.query_prefixes)
