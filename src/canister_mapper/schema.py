"""Infer an editable schema from the shapes of loaded data."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from canister_mapper import helper
from canister_mapper.models import (
    ClassifiedMethod,
    FieldDescriptor,
    FieldType,
    MethodCategory,
    Schema,
    Section,
    SectionType,
)

logger = logging.getLogger(__name__)

PRIMITIVE_FIELD = "value"
MISSING_DATA_FIELDS = ("id", "name", "description")
EMPTY_ARRAY_FIELDS = ("id", "name", "value")


def resolve_data_key(keys: Iterable[str], section_name: str, method_name: str | None = None) -> str | None:
    """Find the snapshot key that holds the data of a section.

    The section name is tried as is and in plural form, then the data key of the method. Exact
    matches win over case-insensitive ones.

    Args:
        keys: The keys of the data snapshot.
        section_name: Section name derived from a method, e.g. `user`.
        method_name: Name of the getter or setter of the section, e.g. `getUsers`.

    Returns:
        The matching key, or None if the snapshot holds no data for the section.
    """
    keys = list(keys)
    candidates = [section_name, section_name + "s"]
    if method_name:
        candidates.append(helper.format_data_key(method_name))

    for candidate in candidates:
        if candidate in keys:
            return candidate

    lowered = {key.lower(): key for key in reversed(keys)}
    for candidate in candidates:
        if candidate.lower() in lowered:
            return lowered[candidate.lower()]

    return None


def infer_field_type(value: Any) -> str:
    if isinstance(value, bool):
        return FieldType.BOOLEAN
    if isinstance(value, (int, float)):
        return FieldType.NUMBER
    if isinstance(value, (list, tuple)):
        return FieldType.ARRAY
    if isinstance(value, Mapping):
        return FieldType.OBJECT
    return FieldType.STRING


def _fields_of(value: Mapping[str, Any]) -> dict[str, FieldDescriptor]:
    return {
        key: FieldDescriptor(type=infer_field_type(item), title=helper.format_field_label(key))
        for key, item in value.items()
    }


def _value_field(value: Any) -> dict[str, FieldDescriptor]:
    return {PRIMITIVE_FIELD: FieldDescriptor(type=infer_field_type(value), title=helper.format_field_label(PRIMITIVE_FIELD))}


def _placeholder_fields(names: Sequence[str]) -> dict[str, FieldDescriptor]:
    return {name: FieldDescriptor(type=FieldType.STRING, title=helper.format_field_label(name)) for name in names}


class SchemaInferencer:
    """Builds a `Schema` from classified methods and a data snapshot.

    Inference has no state and no side effects, so identical inputs always yield equal schemas.
    """

    def infer(self, methods: Sequence[ClassifiedMethod], data: Mapping[str, Any]) -> Schema:
        """Infer one section per distinct getter section.

        Args:
            methods: The classified methods of the service.
            data: The most recent snapshot, in form representation.

        Returns:
            The schema, with sections in getter order.
        """
        setter_sections = {method.section_name for method in methods if method.category == MethodCategory.SETTER}

        sections = []
        seen = set()
        for method in methods:
            if method.category != MethodCategory.GETTER or method.section_name in seen:
                continue
            seen.add(method.section_name)

            key = resolve_data_key(data.keys(), method.section_name, method.name)
            editable = method.section_name in setter_sections
            if key is None:
                section_id = helper.format_data_key(method.name)
                section = Section(
                    id=section_id,
                    title=helper.format_field_label(section_id),
                    fields=_placeholder_fields(MISSING_DATA_FIELDS),
                    type=SectionType.OBJECT,
                    editable=editable,
                )
            else:
                section = self.infer_section(key, data[key], editable)
            logger.debug(f"Section {section.id}: {section.type} with {len(section.fields)} fields, editable={editable}")
            sections.append(section)

        logger.info(f"Generated schema with {len(sections)} sections")
        return Schema(sections=tuple(sections))

    def infer_section(self, section_id: str, value: Any, editable: bool) -> Section:
        """Infer the type and fields of one section from its value."""
        if isinstance(value, (list, tuple)):
            section_type = SectionType.ARRAY
            if value and isinstance(value[0], Mapping):
                fields = _fields_of(value[0])
            elif value:
                fields = _value_field(value[0])
            else:
                fields = _placeholder_fields(EMPTY_ARRAY_FIELDS)
        elif isinstance(value, Mapping):
            section_type = SectionType.OBJECT
            fields = _fields_of(value)
        else:
            section_type = SectionType.PRIMITIVE
            fields = _value_field(value)

        return Section(
            id=section_id,
            title=helper.format_field_label(section_id),
            fields=fields,
            type=section_type,
            editable=editable,
        )
