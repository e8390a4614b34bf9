"""Naming and text helpers that are used in other modules of this package."""

from __future__ import annotations

import re

SECTION_VERB_PREFIXES = ("get", "set", "update", "create", "delete", "list", "find", "fetch", "save", "add")

_SECTION_PREFIX_PATTERN = re.compile(rf"^({'|'.join(SECTION_VERB_PREFIXES)})")
_CAMEL_BOUNDARY_PATTERN = re.compile(r"([A-Z])")

_BRACKETS = {"(": ")", "[": "]", "{": "}", "<": ">"}


def lower_first(name: str) -> str:
    """Lowercase the first character of a name, e.g. `UserProfile` becomes `userProfile`."""
    return name[:1].lower() + name[1:]


def strip_verb_prefix(method_name: str) -> str:
    """Remove a known verb prefix from a method name.

    Args:
        method_name (str): The method name, e.g. `getUsers`.

    Returns:
        str: The remainder, e.g. `Users`.
    """
    return _SECTION_PREFIX_PATTERN.sub("", method_name, count=1)


def format_section_name(method_name: str) -> str:
    """Derive the section name of a method.

    The verb prefix, a trailing `Config` and a trailing plural `s` are removed and the rest is
    lower camel cased. If nothing remains, the lowercased method name is used.

    Examples:
        >>> format_section_name("getUsers")
        'user'
        >>> format_section_name("updateThemeConfig")
        'theme'
        >>> format_section_name("get")
        'get'
    """
    section_name = strip_verb_prefix(method_name)
    section_name = re.sub(r"Config$", "", section_name)
    section_name = re.sub(r"s$", "", section_name)
    section_name = lower_first(section_name)

    if not section_name:
        section_name = method_name.lower()

    return section_name


def format_data_key(method_name: str) -> str:
    """Derive the key under which a getter's data is stored.

    Unlike the section name the key keeps its plural form, so `getUsers` stores `users`.
    """
    data_key = lower_first(strip_verb_prefix(method_name))
    return data_key or method_name.lower()


def format_field_label(name: str) -> str:
    """Turn a camel case or snake case key into a human-readable title.

    Examples:
        >>> format_field_label("createdAt")
        'Created At'
        >>> format_field_label("user_name")
        'User name'
    """
    label = _CAMEL_BOUNDARY_PATTERN.sub(r" \1", name)
    label = label.replace("_", " ")
    label = label[:1].upper() + label[1:]
    return label.strip()


def split_top_level(expression: str, separator: str = ",") -> list[str]:
    """Split a type expression on separators that are not nested inside brackets.

    Empty parts are dropped, so `""` and `"  "` both yield no parts.

    Args:
        expression (str): The text to split, e.g. `Principal, [] | [bigint], Array<string>`.
        separator (str): The single character separator.

    Returns:
        list[str]: The stripped parts.
    """
    parts: list[str] = []
    stack: list[str] = []
    current: list[str] = []

    for char in expression:
        if char in _BRACKETS:
            stack.append(_BRACKETS[char])
        elif stack and char == stack[-1]:
            stack.pop()
        elif char == separator and not stack:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)

    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def strip_enclosing(expression: str, opening: str, closing: str) -> str:
    """Remove one pair of enclosing brackets, if present."""
    expression = expression.strip()
    if expression.startswith(opening) and expression.endswith(closing):
        return expression[1:-1].strip()
    return expression


def find_matching_bracket(text: str, open_index: int) -> int:
    """Find the index of the bracket closing the one at `open_index`.

    Quoted strings are skipped, nested brackets of all kinds are balanced.

    Raises:
        ValueError: If `open_index` is not an opening bracket, or it is never closed.
    """
    if text[open_index] not in _BRACKETS:
        raise ValueError(f"No opening bracket at index {open_index}")

    stack: list[str] = []
    quote: str | None = None
    index = open_index

    while index < len(text):
        char = text[index]
        if quote:
            if char == "\\":
                index += 1
            elif char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == ">" and text[index - 1] in ("-", "="):
            # Arrows are not brackets.
            pass
        elif char in _BRACKETS:
            stack.append(_BRACKETS[char])
        elif stack and char == stack[-1]:
            stack.pop()
            if not stack:
                return index
        index += 1

    raise ValueError(f"Bracket at index {open_index} is never closed")


def split_parameter_list(parameter_list: str) -> list[str]:
    """Split a declared parameter list into its parameter expressions.

    The enclosing brackets are optional. An empty or blank list, as well as the literal `[]`
    or `()`, has no parameters.

    Examples:
        >>> split_parameter_list("[]")
        []
        >>> split_parameter_list("[Principal, [] | [bigint]]")
        ['Principal', '[] | [bigint]']
    """
    parameter_list = parameter_list.strip()
    if parameter_list.startswith("["):
        parameter_list = strip_enclosing(parameter_list, "[", "]")
    elif parameter_list.startswith("("):
        parameter_list = strip_enclosing(parameter_list, "(", ")")
    return split_top_level(parameter_list)
