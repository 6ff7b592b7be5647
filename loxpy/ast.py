"""Syntax tree nodes for Lox programs and their s-expression rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

from .numbers import format_number

LiteralValue = Union[None, bool, float, str]


def format_literal(value: LiteralValue) -> str:
    """Render a literal value the way the tree printer shows it."""
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(float(value))
    return str(value)


class _Op(Enum):
    def __str__(self) -> str:
        return self.value


class UnaryOp(_Op):
    NOT = "!"
    NEG = "-"


class FactorOp(_Op):
    DIV = "/"
    MUL = "*"


class TermOp(_Op):
    ADD = "+"
    SUB = "-"


class CmpOp(_Op):
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="


class EqOp(_Op):
    EQ = "=="
    NEQ = "!="


BinaryOp = Union[FactorOp, TermOp, CmpOp, EqOp]


@dataclass(frozen=True)
class Node:
    """Base of every tree node; line is zero-based, pos is a source offset."""

    line: int = field(default=0, kw_only=True, compare=False)
    pos: int = field(default=0, kw_only=True, compare=False)


# Expressions


@dataclass(frozen=True)
class Literal(Node):
    value: LiteralValue

    def __str__(self) -> str:
        return format_literal(self.value)


@dataclass(frozen=True)
class Variable(Node):
    name: str

    def __str__(self) -> str:
        return f"(ident {self.name})"


@dataclass(frozen=True)
class This(Node):
    def __str__(self) -> str:
        return "this"


@dataclass(frozen=True)
class Super(Node):
    method: str

    def __str__(self) -> str:
        return f"super.{self.method}"


@dataclass(frozen=True)
class Grouping(Node):
    expression: Node

    def __str__(self) -> str:
        return f"(group {self.expression})"


@dataclass(frozen=True)
class Unary(Node):
    op: UnaryOp
    operand: Node

    def __str__(self) -> str:
        return f"({self.op} {self.operand})"


@dataclass(frozen=True)
class Binary(Node):
    left: Node
    op: BinaryOp
    right: Node

    def __str__(self) -> str:
        return f"({self.op} {self.left} {self.right})"


@dataclass(frozen=True)
class Logical(Node):
    """An "and" or "or" expression; operator is the keyword spelling."""

    left: Node
    operator: str
    right: Node

    def __post_init__(self) -> None:
        if self.operator not in ("and", "or"):
            raise ValueError(f"unknown logical operator: {self.operator!r}")

    def __str__(self) -> str:
        return f"({self.operator} {self.left} {self.right})"


@dataclass(frozen=True)
class Call(Node):
    callee: Node
    arguments: Tuple[Node, ...] = ()

    def __str__(self) -> str:
        parts = ["call", str(self.callee), *map(str, self.arguments)]
        return f"({' '.join(parts)})"


@dataclass(frozen=True)
class Access(Node):
    obj: Node
    name: str

    def __str__(self) -> str:
        return f"(access {self.obj} {self.name})"


@dataclass(frozen=True)
class Assign(Node):
    """Assignment to a variable, or to a property of target when it is set."""

    name: str
    value: Node
    target: Optional[Node] = None

    def __str__(self) -> str:
        if self.target is not None:
            return f"(assign (access {self.target} {self.name}) {self.value})"
        return f"(assign {self.name} {self.value})"


# Statements


@dataclass(frozen=True)
class ExprStmt(Node):
    expression: Node

    def __str__(self) -> str:
        return str(self.expression)


@dataclass(frozen=True)
class PrintStmt(Node):
    expression: Node

    def __str__(self) -> str:
        return f"(print {self.expression})"


@dataclass(frozen=True)
class ReturnStmt(Node):
    value: Optional[Node] = None

    def __str__(self) -> str:
        if self.value is None:
            return "(return)"
        return f"(return {self.value})"


@dataclass(frozen=True)
class IfStmt(Node):
    condition: Node
    then_branch: Node
    else_branch: Optional[Node] = None

    def __str__(self) -> str:
        text = f"(if {self.condition} then {self.then_branch}"
        if self.else_branch is not None:
            text += f" else {self.else_branch}"
        return text + ")"


@dataclass(frozen=True)
class WhileStmt(Node):
    condition: Node
    body: Node

    def __str__(self) -> str:
        return f"(while {self.condition} {self.body})"


@dataclass(frozen=True)
class ForStmt(Node):
    initializer: Optional[Node]
    condition: Optional[Node]
    increment: Optional[Node]
    body: Node

    def __str__(self) -> str:
        clauses = ";".join(
            "" if part is None else str(part)
            for part in (self.initializer, self.condition, self.increment)
        )
        return f"(for ({clauses};) {self.body})"


@dataclass(frozen=True)
class Block(Node):
    declarations: Tuple[Node, ...] = ()

    def __str__(self) -> str:
        return "".join(["(block", *(f" {decl}" for decl in self.declarations), ")"])


# Declarations


@dataclass(frozen=True)
class VarDecl(Node):
    name: str
    value: Optional[Node] = None

    def __str__(self) -> str:
        if self.value is None:
            return f"(varDecl {self.name})"
        return f"(varDecl {self.name} {self.value})"


@dataclass(frozen=True)
class FunDecl(Node):
    name: str
    params: Tuple[str, ...]
    body: Block

    def __str__(self) -> str:
        parts = ["funDecl", self.name, *self.params, str(self.body)]
        return f"({' '.join(parts)})"


@dataclass(frozen=True)
class ClassDecl(Node):
    name: str
    superclass: Optional[str] = None
    methods: Tuple[FunDecl, ...] = ()

    def __str__(self) -> str:
        head = f"(classDecl {self.name}"
        if self.superclass is not None:
            head += f" < {self.superclass}"
        methods = "".join(f" {method}" for method in self.methods)
        return f"{head} (methods{methods}))"


@dataclass(frozen=True)
class Program(Node):
    """The top-level sequence of declarations."""

    declarations: Tuple[Node, ...] = ()

    def __iter__(self):
        return iter(self.declarations)

    def __len__(self) -> int:
        return len(self.declarations)