"""JavaScriptFrontend — tree-sitter JavaScript CST → ESTree-shaped AST lowering."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Callable

from . import ast_types as ast
from . import constants

logger = logging.getLogger(__name__)

_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}
_ESCAPE_RE = re.compile(r"\\(u\{[0-9a-fA-F]+\}|u[0-9a-fA-F]{4}|x[0-9a-fA-F]{2}|\n|.)")


class JSSyntaxError(Exception):
    """Raised when source text cannot be parsed into the supported subset."""


# ── Parser factory ───────────────────────────────────────────────


class ParserFactory(ABC):
    """Supplies the tree-sitter parser for the JavaScript grammar."""

    @abstractmethod
    def get_parser(self): ...


class TreeSitterParserFactory(ParserFactory):
    """Loads the grammar from tree-sitter-language-pack on first use and keeps it."""

    def __init__(self):
        self._parser = None

    def get_parser(self):
        if self._parser is None:
            import tree_sitter_language_pack as tslp

            self._parser = tslp.get_parser(constants.LANGUAGE)
        return self._parser


_DEFAULT_PARSER_FACTORY = TreeSitterParserFactory()


def _unescape(body: str) -> str:
    def replace(match: re.Match) -> str:
        esc = match.group(1)
        if esc.startswith("u{"):
            return chr(int(esc[2:-1], 16))
        if esc.startswith("u") and len(esc) == 5:
            return chr(int(esc[1:], 16))
        if esc.startswith("x") and len(esc) == 3:
            return chr(int(esc[1:], 16))
        if esc == "\n":
            return ""
        return _ESCAPES.get(esc, esc)

    return _ESCAPE_RE.sub(replace, body)


def _parse_number(text: str) -> int | float:
    cleaned = text.replace("_", "")
    lowered = cleaned.lower()
    if lowered.startswith("0x"):
        return int(lowered, 16)
    if lowered.startswith("0o"):
        return int(lowered[2:], 8)
    if lowered.startswith("0b"):
        return int(lowered[2:], 2)
    value = float(cleaned)
    if value.is_integer() and abs(value) < 2**53:
        return int(value)
    return value


class _OffsetMap:
    """Converts tree-sitter byte offsets into character offsets."""

    def __init__(self, source: str):
        self._identity = source.isascii()
        if self._identity:
            self._table: list[int] = []
            return
        table = []
        for index, char in enumerate(source):
            table.extend([index] * len(char.encode("utf-8")))
        table.append(len(source))
        self._table = table

    def __call__(self, byte_offset: int) -> int:
        if self._identity:
            return byte_offset
        return self._table[byte_offset]


class JavaScriptFrontend:
    """Lowers a JavaScript tree-sitter tree into the closed node family of ``ast_types``."""

    COMMENT_TYPES = frozenset({"comment", "hash_bang_line", "html_comment"})
    LOGICAL_OPERATORS = frozenset({"&&", "||", "??"})

    def __init__(self):
        self._source = ""
        self._offsets = _OffsetMap("")
        self._STMT_DISPATCH: dict[str, Callable] = {
            "expression_statement": self._lower_expression_statement,
            "variable_declaration": self._lower_var_declaration,
            "lexical_declaration": self._lower_var_declaration,
            "function_declaration": self._lower_function_declaration,
            "statement_block": self._lower_block,
            "if_statement": self._lower_if,
            "for_statement": self._lower_for,
            "while_statement": self._lower_while,
            "do_statement": self._lower_do_while,
            "return_statement": self._lower_return,
            "break_statement": self._lower_break,
            "continue_statement": self._lower_continue,
            "empty_statement": self._lower_empty,
        }
        self._EXPR_DISPATCH: dict[str, Callable] = {
            "identifier": self._lower_identifier,
            "undefined": self._lower_identifier,
            "number": self._lower_number,
            "string": self._lower_string,
            "template_string": self._lower_template_string,
            "true": self._lower_keyword_literal,
            "false": self._lower_keyword_literal,
            "null": self._lower_keyword_literal,
            "parenthesized_expression": self._lower_paren,
            "binary_expression": self._lower_binary,
            "unary_expression": self._lower_unary,
            "update_expression": self._lower_update,
            "assignment_expression": self._lower_assignment,
            "augmented_assignment_expression": self._lower_assignment,
            "call_expression": self._lower_call,
            "member_expression": self._lower_member,
            "subscript_expression": self._lower_subscript,
            "array": self._lower_array,
            "object": self._lower_object,
            "ternary_expression": self._lower_ternary,
            "sequence_expression": self._lower_sequence,
            "function": self._lower_function_expression,
            "function_expression": self._lower_function_expression,
        }

    # ── Entry point ──────────────────────────────────────────────

    def lower(self, tree, source: str) -> ast.Program:
        self._source = source
        self._offsets = _OffsetMap(source)
        root = tree.root_node
        if root.has_error:
            self._raise_parse_error(root)
        body = tuple(self._lower_stmt(child) for child in self._named(root))
        return ast.Program(start=0, end=len(source), body=body)

    # ── Helpers ──────────────────────────────────────────────────

    def _named(self, node) -> list:
        return [c for c in node.named_children if c.type not in self.COMMENT_TYPES]

    def _node_text(self, node) -> str:
        return node.text.decode("utf-8")

    def _span(self, node) -> dict[str, int]:
        return {
            "start": self._offsets(node.start_byte),
            "end": self._offsets(node.end_byte),
        }

    def _unsupported(self, node):
        line = node.start_point[0] + 1
        raise JSSyntaxError(f"Unsupported syntax '{node.type}' at line {line}")

    def _raise_parse_error(self, root):
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "ERROR" or node.is_missing:
                line = node.start_point[0] + 1
                raise JSSyntaxError(f"Unexpected token at line {line}")
            stack.extend(reversed(node.children))
        raise JSSyntaxError("Unexpected token")

    def _field(self, node, name: str):
        child = node.child_by_field_name(name)
        if child is not None and child.type in self.COMMENT_TYPES:
            return None
        return child

    def _lower_stmt(self, node) -> ast.Node:
        handler = self._STMT_DISPATCH.get(node.type)
        if handler is None:
            if node.type in self._EXPR_DISPATCH:
                expr = self._lower_expr(node)
                return ast.ExpressionStatement(**self._span(node), expression=expr)
            self._unsupported(node)
        return handler(node)

    def _lower_expr(self, node) -> ast.Node:
        handler = self._EXPR_DISPATCH.get(node.type)
        if handler is None:
            self._unsupported(node)
        return handler(node)

    def _lower_clause(self, node) -> ast.Node | None:
        """Lower a for-statement clause, which may be wrapped in a statement node."""
        if node is None or node.type in (";", "empty_statement"):
            return None
        if node.type == "expression_statement":
            inner = self._named(node)
            return self._lower_expr(inner[0]) if inner else None
        if node.type in ("variable_declaration", "lexical_declaration"):
            return self._lower_var_declaration(node)
        return self._lower_expr(node)

    # ── Statements ───────────────────────────────────────────────

    def _lower_expression_statement(self, node) -> ast.ExpressionStatement:
        inner = self._named(node)
        if not inner:
            self._unsupported(node)
        return ast.ExpressionStatement(
            **self._span(node), expression=self._lower_expr(inner[0])
        )

    def _lower_var_declaration(self, node) -> ast.VariableDeclaration:
        kind = node.children[0].type
        declarators = []
        for child in self._named(node):
            if child.type != "variable_declarator":
                self._unsupported(child)
            name_node = self._field(child, "name")
            if name_node is None or name_node.type != "identifier":
                self._unsupported(name_node or child)
            value_node = self._field(child, "value")
            declarators.append(
                ast.VariableDeclarator(
                    **self._span(child),
                    id=self._lower_identifier(name_node),
                    init=self._lower_expr(value_node) if value_node else None,
                )
            )
        return ast.VariableDeclaration(
            **self._span(node), kind=kind, declarations=tuple(declarators)
        )

    def _lower_params(self, node) -> tuple[ast.Identifier, ...]:
        params = []
        for param in self._named(node):
            if param.type != "identifier":
                self._unsupported(param)
            params.append(self._lower_identifier(param))
        return tuple(params)

    def _lower_function_declaration(self, node) -> ast.FunctionDeclaration:
        return ast.FunctionDeclaration(
            **self._span(node),
            id=self._lower_identifier(self._field(node, "name")),
            params=self._lower_params(self._field(node, "parameters")),
            body=self._lower_block(self._field(node, "body")),
        )

    def _lower_block(self, node) -> ast.BlockStatement:
        body = tuple(self._lower_stmt(child) for child in self._named(node))
        return ast.BlockStatement(**self._span(node), body=body)

    def _lower_if(self, node) -> ast.IfStatement:
        alternative = self._field(node, "alternative")
        alternate = None
        if alternative is not None:
            inner = self._named(alternative) if alternative.type == "else_clause" else [alternative]
            alternate = self._lower_stmt(inner[0])
        return ast.IfStatement(
            **self._span(node),
            test=self._lower_expr(self._field(node, "condition")),
            consequent=self._lower_stmt(self._field(node, "consequence")),
            alternate=alternate,
        )

    def _lower_for(self, node) -> ast.ForStatement:
        return ast.ForStatement(
            **self._span(node),
            init=self._lower_clause(self._field(node, "initializer")),
            test=self._lower_clause(self._field(node, "condition")),
            update=self._lower_clause(self._field(node, "increment")),
            body=self._lower_stmt(self._field(node, "body")),
        )

    def _lower_while(self, node) -> ast.WhileStatement:
        return ast.WhileStatement(
            **self._span(node),
            test=self._lower_expr(self._field(node, "condition")),
            body=self._lower_stmt(self._field(node, "body")),
        )

    def _lower_do_while(self, node) -> ast.DoWhileStatement:
        return ast.DoWhileStatement(
            **self._span(node),
            body=self._lower_stmt(self._field(node, "body")),
            test=self._lower_expr(self._field(node, "condition")),
        )

    def _lower_return(self, node) -> ast.ReturnStatement:
        inner = self._named(node)
        argument = self._lower_expr(inner[0]) if inner else None
        return ast.ReturnStatement(**self._span(node), argument=argument)

    def _lower_break(self, node) -> ast.BreakStatement:
        if self._named(node):
            self._unsupported(node)
        return ast.BreakStatement(**self._span(node))

    def _lower_continue(self, node) -> ast.ContinueStatement:
        if self._named(node):
            self._unsupported(node)
        return ast.ContinueStatement(**self._span(node))

    def _lower_empty(self, node) -> ast.EmptyStatement:
        return ast.EmptyStatement(**self._span(node))

    # ── Expressions ──────────────────────────────────────────────

    def _lower_identifier(self, node) -> ast.Identifier:
        return ast.Identifier(**self._span(node), name=self._node_text(node))

    def _lower_number(self, node) -> ast.Literal:
        raw = self._node_text(node)
        return ast.Literal(**self._span(node), value=_parse_number(raw), raw=raw)

    def _lower_string(self, node) -> ast.Literal:
        raw = self._node_text(node)
        return ast.Literal(**self._span(node), value=_unescape(raw[1:-1]), raw=raw)

    def _lower_template_string(self, node) -> ast.Literal:
        if any(c.type == "template_substitution" for c in node.named_children):
            self._unsupported(node)
        raw = self._node_text(node)
        return ast.Literal(**self._span(node), value=_unescape(raw[1:-1]), raw=raw)

    def _lower_keyword_literal(self, node) -> ast.Literal:
        raw = self._node_text(node)
        value = {"true": True, "false": False, "null": None}[raw]
        return ast.Literal(**self._span(node), value=value, raw=raw)

    def _lower_paren(self, node) -> ast.Node:
        inner = self._named(node)
        if len(inner) != 1:
            self._unsupported(node)
        return self._lower_expr(inner[0])

    def _lower_binary(self, node) -> ast.Node:
        operator = self._field(node, "operator").type
        left = self._lower_expr(self._field(node, "left"))
        right = self._lower_expr(self._field(node, "right"))
        if operator in self.LOGICAL_OPERATORS:
            return ast.LogicalExpression(
                **self._span(node), operator=operator, left=left, right=right
            )
        return ast.BinaryExpression(
            **self._span(node), operator=operator, left=left, right=right
        )

    def _lower_unary(self, node) -> ast.UnaryExpression:
        operator = self._field(node, "operator").type
        if operator == "delete":
            self._unsupported(node)
        return ast.UnaryExpression(
            **self._span(node),
            operator=operator,
            argument=self._lower_expr(self._field(node, "argument")),
        )

    def _lower_update(self, node) -> ast.UpdateExpression:
        operator = self._field(node, "operator").type
        prefix = node.children[0].type in ("++", "--")
        return ast.UpdateExpression(
            **self._span(node),
            operator=operator,
            argument=self._lower_target(self._field(node, "argument")),
            prefix=prefix,
        )

    def _lower_target(self, node) -> ast.Node:
        target = self._lower_expr(node)
        if not isinstance(target, (ast.Identifier, ast.MemberExpression)):
            line = node.start_point[0] + 1
            raise JSSyntaxError(f"Invalid assignment target at line {line}")
        return target

    def _lower_assignment(self, node) -> ast.AssignmentExpression:
        operator_node = self._field(node, "operator")
        operator = operator_node.type if operator_node is not None else "="
        return ast.AssignmentExpression(
            **self._span(node),
            operator=operator,
            left=self._lower_target(self._field(node, "left")),
            right=self._lower_expr(self._field(node, "right")),
        )

    def _lower_call(self, node) -> ast.CallExpression:
        arguments_node = self._field(node, "arguments")
        if arguments_node is None or arguments_node.type != "arguments":
            self._unsupported(node)
        return ast.CallExpression(
            **self._span(node),
            callee=self._lower_expr(self._field(node, "function")),
            arguments=tuple(self._lower_expr(a) for a in self._named(arguments_node)),
        )

    def _lower_member(self, node) -> ast.MemberExpression:
        property_node = self._field(node, "property")
        if property_node.type == "private_property_identifier":
            self._unsupported(property_node)
        return ast.MemberExpression(
            **self._span(node),
            object=self._lower_expr(self._field(node, "object")),
            property=self._lower_identifier(property_node),
            computed=False,
        )

    def _lower_subscript(self, node) -> ast.MemberExpression:
        return ast.MemberExpression(
            **self._span(node),
            object=self._lower_expr(self._field(node, "object")),
            property=self._lower_expr(self._field(node, "index")),
            computed=True,
        )

    def _lower_array(self, node) -> ast.ArrayExpression:
        return ast.ArrayExpression(
            **self._span(node),
            elements=tuple(self._lower_expr(e) for e in self._named(node)),
        )

    def _property_key(self, node) -> str:
        if node.type == "string":
            return _unescape(self._node_text(node)[1:-1])
        if node.type == "number":
            value = _parse_number(self._node_text(node))
            return str(value)
        if node.type == "property_identifier":
            return self._node_text(node)
        self._unsupported(node)

    def _lower_object(self, node) -> ast.ObjectExpression:
        properties = []
        for child in self._named(node):
            if child.type == "pair":
                value = self._lower_expr(self._field(child, "value"))
                key = self._property_key(self._field(child, "key"))
            elif child.type == "shorthand_property_identifier":
                value = self._lower_identifier(child)
                key = value.name
            else:
                self._unsupported(child)
            properties.append(ast.Property(**self._span(child), key=key, value=value))
        return ast.ObjectExpression(**self._span(node), properties=tuple(properties))

    def _lower_ternary(self, node) -> ast.ConditionalExpression:
        return ast.ConditionalExpression(
            **self._span(node),
            test=self._lower_expr(self._field(node, "condition")),
            consequent=self._lower_expr(self._field(node, "consequence")),
            alternate=self._lower_expr(self._field(node, "alternative")),
        )

    def _lower_sequence(self, node) -> ast.SequenceExpression:
        expressions: list[ast.Node] = []
        for child in self._named(node):
            lowered = self._lower_expr(child)
            if child.type == "sequence_expression":
                expressions.extend(lowered.expressions)
            else:
                expressions.append(lowered)
        return ast.SequenceExpression(
            **self._span(node), expressions=tuple(expressions)
        )

    def _lower_function_expression(self, node) -> ast.FunctionExpression:
        name_node = self._field(node, "name")
        return ast.FunctionExpression(
            **self._span(node),
            id=self._lower_identifier(name_node) if name_node is not None else None,
            params=self._lower_params(self._field(node, "parameters")),
            body=self._lower_block(self._field(node, "body")),
        )


def parse_program(
    source: str, parser_factory: ParserFactory | None = None
) -> ast.Program:
    """Parse *source* and lower it into a ``Program`` node.

    Raises:
        JSSyntaxError: if the text does not parse or uses unsupported syntax.
    """
    parser = (parser_factory or _DEFAULT_PARSER_FACTORY).get_parser()
    tree = parser.parse(source.encode("utf-8"))
    program = JavaScriptFrontend().lower(tree, source)
    logger.debug("Parsed program: %d top-level statements", len(program.body))
    return program
