"""Sandboxed evaluation of `idlFactory` functions found in executable descriptors.

The factory source is parsed with the tree-sitter JavaScript grammar and walked by a small
evaluator that only understands the constructs emitted by interface generators: `const`
bindings, members and calls of the `IDL` primitive library, `Rec().fill(...)`, object, array,
string and number literals and a final `return`. Anything else is rejected, so evaluating a
factory can never run arbitrary code.
"""

from __future__ import annotations

import logging
from types import MethodType
from typing import Any

import tree_sitter_javascript
from tree_sitter import Language, Node, Parser

from canister_mapper import idl
from canister_mapper.errors import FactoryEvaluationError

logger = logging.getLogger(__name__)

JS_LANGUAGE = Language(tree_sitter_javascript.language())

FACTORY_NAME = "idlFactory"
IDL_PARAMETER = "IDL"


def node_text(source_bytes: bytes, node: Node) -> str:
    """Slice the source text that belongs to a node."""
    return source_bytes[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _string_value(source_bytes: bytes, node: Node) -> str:
    # Generated descriptors only use plain quoted names, without escapes.
    return node_text(source_bytes, node)[1:-1]


class FactoryInterpreter:
    """Evaluates the `idlFactory` of an executable descriptor against the `idl` library."""

    def __init__(self):
        self.parser = Parser(JS_LANGUAGE)

    def find_factory(self, source: str) -> tuple[bytes, Node]:
        """Locate the factory function in a descriptor.

        Args:
            source: Text of the executable descriptor.

        Returns:
            The encoded source and the arrow function node of the factory.

        Raises:
            FactoryEvaluationError: If the text does not parse or declares no factory.
        """
        source_bytes = source.encode("utf-8")
        tree = self.parser.parse(source_bytes)
        root = tree.root_node

        if root.has_error:
            raise FactoryEvaluationError("The descriptor contains syntax errors.")

        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "variable_declarator":
                name_node = node.child_by_field_name("name")
                value_node = node.child_by_field_name("value")
                if (
                    name_node is not None
                    and value_node is not None
                    and node_text(source_bytes, name_node) == FACTORY_NAME
                    and value_node.type == "arrow_function"
                ):
                    return source_bytes, value_node
            stack.extend(reversed(node.children))

        raise FactoryEvaluationError(f"No '{FACTORY_NAME}' arrow function found.")

    def evaluate(self, source: str) -> idl.ServiceType:
        """Evaluate the factory and return the service type it describes.

        Raises:
            FactoryEvaluationError: If the factory uses unsupported constructs, or does not
                return a service type.
        """
        source_bytes, factory = self.find_factory(source)
        self._check_parameters(source_bytes, factory)

        body = factory.child_by_field_name("body")
        if body is None:
            raise FactoryEvaluationError("The factory has no body.")

        evaluation = _Evaluation(source_bytes)
        if body.type == "statement_block":
            result = evaluation.run_block(body)
        else:
            result = evaluation.evaluate(body)

        if not isinstance(result, idl.ServiceType):
            raise FactoryEvaluationError(f"The factory returned {type(result).__name__}, not a service.")

        logger.debug(f"Evaluated {FACTORY_NAME} with {len(result.methods)} methods")
        return result

    def _check_parameters(self, source_bytes: bytes, factory: Node) -> None:
        parameters = factory.child_by_field_name("parameters")
        if parameters is None:
            raise FactoryEvaluationError("The factory takes no parameters.")

        names = [
            node_text(source_bytes, child)
            for child in _walk(parameters)
            if child.type in ("shorthand_property_identifier_pattern", "identifier")
        ]
        if IDL_PARAMETER not in names:
            raise FactoryEvaluationError(f"The factory does not destructure '{IDL_PARAMETER}'.")


def _expressions(node: Node) -> list[Node]:
    """Named children of a node, without comments."""
    return [child for child in node.named_children if child.type != "comment"]


def _walk(node: Node):
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


class _Evaluation:
    """State of one factory evaluation: the source and the `const` bindings seen so far."""

    def __init__(self, source_bytes: bytes):
        self.source_bytes = source_bytes
        self.bindings: dict[str, Any] = {}

    def run_block(self, block: Node) -> Any:
        for statement in block.named_children:
            if statement.type == "comment":
                continue
            elif statement.type == "lexical_declaration":
                self._declare(statement)
            elif statement.type == "expression_statement":
                self.evaluate(statement.named_children[0])
            elif statement.type == "return_statement":
                if not statement.named_children:
                    return None
                return self.evaluate(statement.named_children[0])
            else:
                raise FactoryEvaluationError(f"Unsupported statement '{statement.type}'.")

        raise FactoryEvaluationError("The factory does not return a value.")

    def _declare(self, declaration: Node) -> None:
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            value_node = declarator.child_by_field_name("value")
            if name_node is None or name_node.type != "identifier" or value_node is None:
                raise FactoryEvaluationError("Only simple const bindings are supported.")

            name = node_text(self.source_bytes, name_node)
            value = self.evaluate(value_node)
            if isinstance(value, idl.RecType) and value.name is None:
                value.name = name
            self.bindings[name] = value

    def evaluate(self, node: Node) -> Any:
        if node.type == "parenthesized_expression":
            return self.evaluate(_expressions(node)[0])

        elif node.type == "identifier":
            name = node_text(self.source_bytes, node)
            if name not in self.bindings:
                raise FactoryEvaluationError(f"Unknown identifier '{name}'.")
            return self.bindings[name]

        elif node.type == "string":
            return _string_value(self.source_bytes, node)

        elif node.type == "number":
            text = node_text(self.source_bytes, node)
            try:
                return int(text, 0)
            except ValueError as e:
                raise FactoryEvaluationError(f"Unsupported number literal '{text}'.") from e

        elif node.type == "array":
            return [self.evaluate(child) for child in _expressions(node)]

        elif node.type == "object":
            return self._object(node)

        elif node.type == "member_expression":
            return self._member(node)

        elif node.type == "call_expression":
            return self._call(node)

        raise FactoryEvaluationError(f"Unsupported expression '{node.type}'.")

    def _object(self, node: Node) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for child in node.named_children:
            if child.type == "comment":
                continue
            if child.type != "pair":
                raise FactoryEvaluationError(f"Unsupported object member '{child.type}'.")

            key_node = child.child_by_field_name("key")
            value_node = child.child_by_field_name("value")
            if key_node is None or value_node is None:
                raise FactoryEvaluationError("Malformed object member.")

            if key_node.type == "string":
                key = _string_value(self.source_bytes, key_node)
            else:
                key = node_text(self.source_bytes, key_node)
            result[key] = self.evaluate(value_node)
        return result

    def _member(self, node: Node) -> Any:
        object_node = node.child_by_field_name("object")
        property_node = node.child_by_field_name("property")
        if object_node is None or property_node is None:
            raise FactoryEvaluationError("Malformed member expression.")

        member = node_text(self.source_bytes, property_node)
        if object_node.type == "identifier" and node_text(self.source_bytes, object_node) == IDL_PARAMETER:
            if member in idl.IDL_VALUES:
                return idl.IDL_VALUES[member]
            if member in idl.IDL_CONSTRUCTORS:
                return idl.IDL_CONSTRUCTORS[member]
            raise FactoryEvaluationError(f"Unknown type grammar member 'IDL.{member}'.")

        target = self.evaluate(object_node)
        if isinstance(target, idl.RecType) and member == "fill":
            return target.fill
        raise FactoryEvaluationError(f"Unsupported member access '.{member}'.")

    def _call(self, node: Node) -> Any:
        function_node = node.child_by_field_name("function")
        arguments_node = node.child_by_field_name("arguments")
        if function_node is None or arguments_node is None:
            raise FactoryEvaluationError("Malformed call expression.")

        function = self.evaluate(function_node)
        arguments = [self.evaluate(child) for child in _expressions(arguments_node)]

        is_fill = isinstance(function, MethodType) and isinstance(function.__self__, idl.RecType)
        if function not in idl.IDL_CONSTRUCTORS.values() and not is_fill:
            raise FactoryEvaluationError(f"'{node_text(self.source_bytes, function_node)}' is not callable.")

        try:
            if function is idl.TupleType:
                # IDL.Tuple takes its components as separate arguments.
                return idl.TupleType(arguments)
            return function(*arguments)
        except (TypeError, ValueError) as e:
            raise FactoryEvaluationError(f"Invalid call of '{node_text(self.source_bytes, function_node)}': {e}") from e
