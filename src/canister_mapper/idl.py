"""Type grammar primitives that interface factories are evaluated against.

Each type knows its canonical display text, a coarse logical kind, how to coerce a Python
argument into its wire representation and how to decode a wire reply. Wire values follow the
conventions of the JavaScript agent: optionals are `[]` or `[value]`, variants are single-key
dicts and records are dicts.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, override


class LogicalType:
    """Coarse logical kinds of wire types."""

    TEXT = "text"
    BOOLEAN = "boolean"
    UNBOUNDED_INTEGER = "unbounded-integer"
    INTEGER = "integer"
    FLOAT = "float"
    VECTOR = "vector"
    OPTIONAL = "optional"
    RECORD = "record"
    TUPLE = "tuple"
    VARIANT = "variant"
    PRINCIPAL = "principal"
    NULL = "null"
    RESERVED = "reserved"
    FUNC = "func"
    SERVICE = "service"
    UNKNOWN = "unknown"


class IdlType:
    """Base class of all types of the grammar."""

    logical_type = LogicalType.UNKNOWN

    def display(self) -> str:
        return "unknown"

    def coerce(self, value: Any) -> Any:
        """Coerce a Python value into the wire representation of this type.

        Raises:
            TypeError, ValueError: If the value cannot represent this type.
        """
        return value

    def decode(self, value: Any) -> Any:
        """Decode a wire reply of this type."""
        return value

    @override
    def __str__(self) -> str:
        return self.display()

    @override
    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.display()}>"


class PrimitiveType(IdlType):
    def __init__(self, name: str, logical_type: str):
        self.name = name
        self.logical_type = logical_type

    @override
    def display(self) -> str:
        return self.name


class TextType(PrimitiveType):
    def __init__(self):
        super().__init__("text", LogicalType.TEXT)

    @override
    def coerce(self, value: Any) -> Any:
        if isinstance(value, str):
            return value
        # Numeric-looking text turns into numbers on the way back from forms.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise TypeError(f"Expected text, got {type(value).__name__}")


class BoolType(PrimitiveType):
    def __init__(self):
        super().__init__("bool", LogicalType.BOOLEAN)

    @override
    def coerce(self, value: Any) -> Any:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        raise TypeError(f"Expected bool, got {type(value).__name__}")


class NullType(PrimitiveType):
    def __init__(self):
        super().__init__("null", LogicalType.NULL)

    @override
    def coerce(self, value: Any) -> Any:
        if value is not None:
            raise TypeError(f"Expected null, got {type(value).__name__}")
        return None


class ReservedType(PrimitiveType):
    def __init__(self):
        super().__init__("reserved", LogicalType.RESERVED)

    @override
    def coerce(self, value: Any) -> Any:
        return None


class EmptyType(PrimitiveType):
    def __init__(self):
        super().__init__("empty", LogicalType.UNKNOWN)

    @override
    def coerce(self, value: Any) -> Any:
        raise TypeError("Values of type empty cannot be constructed")


class PrincipalType(PrimitiveType):
    def __init__(self):
        super().__init__("principal", LogicalType.PRINCIPAL)

    @override
    def coerce(self, value: Any) -> Any:
        if not isinstance(value, str):
            raise TypeError(f"Expected principal text, got {type(value).__name__}")
        return value


class IntegerType(PrimitiveType):
    """Natural and signed integers, bounded when `bits` is given."""

    def __init__(self, signed: bool, bits: int | None = None):
        name = ("int" if signed else "nat") + (str(bits) if bits else "")
        super().__init__(name, LogicalType.INTEGER if bits else LogicalType.UNBOUNDED_INTEGER)
        self.signed = signed
        self.bits = bits

    @override
    def coerce(self, value: Any) -> Any:
        if isinstance(value, bool):
            raise TypeError(f"Expected {self.name}, got bool")
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(f"Expected {self.name}, got fractional number {value}")
            value = int(value)
        elif isinstance(value, str):
            value = int(value.strip())
        elif not isinstance(value, int):
            raise TypeError(f"Expected {self.name}, got {type(value).__name__}")

        if not self.signed and value < 0:
            raise ValueError(f"Expected {self.name}, got negative number {value}")
        if self.bits:
            low, high = (-(2 ** (self.bits - 1)), 2 ** (self.bits - 1) - 1) if self.signed else (0, 2**self.bits - 1)
            if not low <= value <= high:
                raise ValueError(f"{value} is out of range for {self.name}")
        return value

    @override
    def decode(self, value: Any) -> Any:
        if isinstance(value, str):
            return int(value)
        return value


class FloatType(PrimitiveType):
    def __init__(self, bits: int):
        super().__init__(f"float{bits}", LogicalType.FLOAT)

    @override
    def coerce(self, value: Any) -> Any:
        if isinstance(value, bool):
            raise TypeError(f"Expected {self.name}, got bool")
        return float(value)


class UnknownType(PrimitiveType):
    """Opaque placeholder for types that could not be determined."""

    def __init__(self):
        super().__init__("unknown", LogicalType.UNKNOWN)


class VecType(IdlType):
    logical_type = LogicalType.VECTOR

    def __init__(self, inner: IdlType):
        self.inner = inner

    @override
    def display(self) -> str:
        if isinstance(self.inner, IntegerType) and self.inner.name == "nat8":
            return "blob"
        return f"vec {self.inner.display()}"

    @override
    def coerce(self, value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            value = list(value)
        if isinstance(value, (str, Mapping)) or not isinstance(value, Sequence):
            raise TypeError(f"Expected a sequence for {self.display()}, got {type(value).__name__}")
        return [self.inner.coerce(item) for item in value]

    @override
    def decode(self, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [self.inner.decode(item) for item in value]
        return value


class OptType(IdlType):
    logical_type = LogicalType.OPTIONAL

    def __init__(self, inner: IdlType):
        self.inner = inner

    @override
    def display(self) -> str:
        return f"opt {self.inner.display()}"

    @override
    def coerce(self, value: Any) -> Any:
        if value is None or (isinstance(value, list) and not value):
            return []
        if isinstance(value, list) and len(value) == 1:
            # `[v]` is the wire form of a present value, unless `v` does not fit the inner type,
            # as with a bare one-element vector.
            try:
                return [self.inner.coerce(value[0])]
            except (TypeError, ValueError):
                if not isinstance(self.inner, VecType):
                    raise
        return [self.inner.coerce(value)]

    @override
    def decode(self, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return [self.inner.decode(item) for item in value]
        return value


class RecordType(IdlType):
    logical_type = LogicalType.RECORD

    def __init__(self, fields: Mapping[str, IdlType]):
        self.fields = dict(fields)

    @override
    def display(self) -> str:
        inner = "; ".join(f"{name}:{field_type.display()}" for name, field_type in self.fields.items())
        return f"record {{{inner}}}"

    @override
    def coerce(self, value: Any) -> Any:
        if not isinstance(value, Mapping):
            raise TypeError(f"Expected a record, got {type(value).__name__}")
        result = {}
        for name, field_type in self.fields.items():
            if name in value:
                result[name] = field_type.coerce(value[name])
            elif isinstance(field_type, (OptType, ReservedType)):
                result[name] = field_type.coerce(None)
            else:
                raise ValueError(f"Record field '{name}' is missing")
        return result

    @override
    def decode(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                key: self.fields[key].decode(item) if key in self.fields else item for key, item in value.items()
            }
        return value


class TupleType(IdlType):
    logical_type = LogicalType.TUPLE

    def __init__(self, components: Sequence[IdlType]):
        self.components = list(components)

    @override
    def display(self) -> str:
        return f"record {{{'; '.join(component.display() for component in self.components)}}}"

    @override
    def coerce(self, value: Any) -> Any:
        if isinstance(value, (str, Mapping)) or not isinstance(value, Sequence):
            raise TypeError(f"Expected a tuple, got {type(value).__name__}")
        if len(value) != len(self.components):
            raise ValueError(f"Expected a tuple of {len(self.components)} values, got {len(value)}")
        return [component.coerce(item) for component, item in zip(self.components, value)]

    @override
    def decode(self, value: Any) -> Any:
        if isinstance(value, (list, tuple)) and len(value) == len(self.components):
            return [component.decode(item) for component, item in zip(self.components, value)]
        return value


class VariantType(IdlType):
    logical_type = LogicalType.VARIANT

    def __init__(self, fields: Mapping[str, IdlType]):
        self.fields = dict(fields)

    @override
    def display(self) -> str:
        inner = "; ".join(f"{name}:{field_type.display()}" for name, field_type in self.fields.items())
        return f"variant {{{inner}}}"

    @override
    def coerce(self, value: Any) -> Any:
        # A bare tag is accepted for tags without payload, e.g. "Active" for {Active: null}.
        if isinstance(value, str) and isinstance(self.fields.get(value), NullType):
            return {value: None}
        if not isinstance(value, Mapping) or len(value) != 1:
            raise TypeError(f"Expected a variant with exactly one tag for {self.display()}")
        (tag, payload), = value.items()
        if tag not in self.fields:
            raise ValueError(f"Unknown variant tag '{tag}'")
        return {tag: self.fields[tag].coerce(payload)}

    @override
    def decode(self, value: Any) -> Any:
        if isinstance(value, Mapping) and len(value) == 1:
            (tag, payload), = value.items()
            if tag in self.fields:
                return {tag: self.fields[tag].decode(payload)}
        return value


class FuncType(IdlType):
    logical_type = LogicalType.FUNC

    def __init__(self, arg_types: Sequence[IdlType], ret_types: Sequence[IdlType], annotations: Sequence[str] = ()):
        self.arg_types = list(arg_types)
        self.ret_types = list(ret_types)
        self.annotations = tuple(annotations)

    @property
    def is_query(self) -> bool:
        return "query" in self.annotations or "composite_query" in self.annotations

    @override
    def display(self) -> str:
        args = ", ".join(arg.display() for arg in self.arg_types)
        rets = ", ".join(ret.display() for ret in self.ret_types)
        suffix = "".join(f" {annotation}" for annotation in self.annotations)
        return f"({args}) -> ({rets}){suffix}"


class ServiceType(IdlType):
    logical_type = LogicalType.SERVICE

    def __init__(self, methods: Mapping[str, FuncType]):
        for name, method in methods.items():
            if not isinstance(method, FuncType):
                raise TypeError(f"Service member '{name}' is not a function type")
        self.methods = dict(methods)

    @override
    def display(self) -> str:
        inner = "; ".join(f"{name}:{method.display()}" for name, method in self.methods.items())
        return f"service {{{inner}}}"


class RecType(IdlType):
    """A forward-declared type, completed later with `fill`."""

    def __init__(self, name: str | None = None):
        self.name = name
        self.target: IdlType | None = None

    def fill(self, target: IdlType) -> None:
        self.target = target

    @property
    def logical_type(self) -> str:  # type: ignore[override]
        return self.target.logical_type if self.target else LogicalType.UNKNOWN

    @override
    def display(self) -> str:
        # Never expand, the definition may refer to itself.
        return self.name or "rec"

    @override
    def coerce(self, value: Any) -> Any:
        if self.target is None:
            raise TypeError(f"Recursive type {self.display()} was never filled")
        return self.target.coerce(value)

    @override
    def decode(self, value: Any) -> Any:
        return self.target.decode(value) if self.target else value


class Idl:
    """The primitive library handed to interface factories as `IDL`."""

    Text = TextType()
    Bool = BoolType()
    Null = NullType()
    Reserved = ReservedType()
    Empty = EmptyType()
    Principal = PrincipalType()
    Nat = IntegerType(signed=False)
    Nat8 = IntegerType(signed=False, bits=8)
    Nat16 = IntegerType(signed=False, bits=16)
    Nat32 = IntegerType(signed=False, bits=32)
    Nat64 = IntegerType(signed=False, bits=64)
    Int = IntegerType(signed=True)
    Int8 = IntegerType(signed=True, bits=8)
    Int16 = IntegerType(signed=True, bits=16)
    Int32 = IntegerType(signed=True, bits=32)
    Int64 = IntegerType(signed=True, bits=64)
    Float32 = FloatType(32)
    Float64 = FloatType(64)
    Unknown = UnknownType()

    Vec = VecType
    Opt = OptType
    Record = RecordType
    Tuple = TupleType
    Variant = VariantType
    Func = FuncType
    Service = ServiceType
    Rec = RecType


IDL_VALUES = {
    name: value
    for name, value in vars(Idl).items()
    if isinstance(value, IdlType)
}
"""Members of `Idl` that are type instances."""

IDL_CONSTRUCTORS = {
    name: value
    for name, value in vars(Idl).items()
    if isinstance(value, type) and issubclass(value, IdlType)
}
"""Members of `Idl` that construct types when called."""
