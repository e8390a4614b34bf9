"""Data model shared by all components: signatures, classifications, schemas and reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from canister_mapper.idl import ServiceType


class AccessMode:
    """Access modes of remote procedures."""

    QUERY = "query"
    UPDATE = "update"


class Encoding:
    """Textual encodings of an interface description."""

    EXECUTABLE = "executable"  # .did.js, an idlFactory evaluated against the type grammar
    DECLARATION = "declaration"  # .did.d.ts or .did, regex parsed


class MethodCategory:
    """Roles a procedure can play in the data mapping."""

    GETTER = "getter"
    SETTER = "setter"
    QUERY = "query"
    UPDATE = "update"


class SectionType:
    """Shapes of section data."""

    OBJECT = "object"
    ARRAY = "array"
    PRIMITIVE = "primitive"


class FieldType:
    """Form field types inferred from example values."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True)
class ParameterType:
    """One parameter of a procedure whose exact type is known.

    Attributes:
        name: Positional name, e.g. `param0`.
        logical_type: Coarse logical kind, one of the `idl.LogicalType` values.
        wire_type: Canonical type expression, e.g. `vec text` or `opt nat`.
    """

    name: str
    logical_type: str
    wire_type: str


@dataclass(frozen=True)
class ProcedureSignature:
    """A normalized remote procedure signature."""

    name: str
    parameter_types: tuple[str, ...]
    return_type: str
    access_mode: str = AccessMode.UPDATE
    parameters: tuple[ParameterType, ...] | None = None

    @property
    def is_query(self) -> bool:
        return self.access_mode == AccessMode.QUERY


@dataclass(frozen=True)
class InterfaceDescription:
    """Result of parsing one service description.

    Attributes:
        encoding: The `Encoding` the signatures were taken from.
        tier: The parsing tier that produced them (1 is exact, higher is best-effort).
        signatures: The normalized signatures, in declaration order.
        service: The service type the signatures were derived from, used to build proxies.
    """

    encoding: str | None
    tier: int
    signatures: tuple[ProcedureSignature, ...] = ()
    service: ServiceType | None = field(default=None, compare=False, repr=False)

    @property
    def names(self) -> list[str]:
        return [signature.name for signature in self.signatures]

    @property
    def has_exact_types(self) -> bool:
        return self.encoding == Encoding.EXECUTABLE and self.tier == 1


@dataclass(frozen=True)
class ClassifiedMethod:
    """A procedure together with its category and section."""

    name: str
    section_name: str
    category: str


@dataclass(frozen=True)
class ParameterRequirement:
    """Whether invoking a procedure needs arguments."""

    has_parameters: bool
    parameter_count: int
    parameter_types: tuple[ParameterType, ...] | None = None


@dataclass(frozen=True)
class FieldDescriptor:
    type: str
    title: str


@dataclass(frozen=True)
class Section:
    """A logical group of procedures and the data they expose."""

    id: str
    title: str
    fields: dict[str, FieldDescriptor]
    type: str
    editable: bool = False


@dataclass(frozen=True)
class Schema:
    sections: tuple[Section, ...] = ()

    def section(self, section_id: str) -> Section | None:
        """Look up a section by its id."""
        for section in self.sections:
            if section.id == section_id:
                return section
        return None


@dataclass(frozen=True)
class GetterFailure:
    name: str
    reason: str
    kind: str


@dataclass(frozen=True)
class SkippedGetter:
    name: str
    reason: str


@dataclass
class LoadReport:
    """Outcome of one load cycle.

    Attributes:
        data: Section data in form representation, keyed by data key.
        successful: Names of getters that returned data.
        failed: Getters whose invocation failed.
        skipped: Getters that were deliberately not invoked.
        used_bulk_path: Whether the privileged bulk method supplied the data.
    """

    data: dict[str, Any] = field(default_factory=dict)
    successful: list[str] = field(default_factory=list)
    failed: list[GetterFailure] = field(default_factory=list)
    skipped: list[SkippedGetter] = field(default_factory=list)
    used_bulk_path: bool = False

    @property
    def succeeded(self) -> bool:
        """A load succeeds unless every attempted getter failed."""
        return bool(self.successful or self.skipped or not self.failed or self.used_bulk_path)
