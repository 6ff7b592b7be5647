"""Runtime values, variable environments and runtime errors for Lox."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from .ast import Node
from .numbers import format_plain

PRIMARY_TYPES = (type(None), bool, int, float, str)


class RuntimeErrorKind(Enum):
    """Kinds of runtime failure; each value is its message template."""

    MUST_BE_NUMBER = "Operand must be a number"
    BOTH_MUST_BE_NUMBERS = "Operands must be numbers"
    BOTH_MUST_BE_NUMBERS_OR_STRINGS = "Operands must be two numbers or two strings"
    UNDEFINED_VARIABLE = "Undefined variable '{detail}'"
    UNDEFINED_PROPERTY = "Undefined property '{detail}'"
    ONLY_INSTANCES_HAVE = "Only instances have {detail}"
    NOT_CALLABLE = "Can only call functions and classes"
    INCORRECT_ARG_COUNT = "Expected {expected} arguments but got {got}"
    SUPERCLASS_MUST_BE_A_CLASS = "Superclass must be a class"
    IO = "IO error"


class LoxRuntimeError(Exception):
    """A runtime error raised while executing a program; line is zero-based."""

    def __init__(
        self,
        kind: RuntimeErrorKind,
        line: int,
        *,
        detail: Optional[str] = None,
        got: Optional[int] = None,
        expected: Optional[int] = None,
    ) -> None:
        self.kind = kind
        self.line = line
        self.detail = detail
        self.got = got
        self.expected = expected
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return self.kind.value.format(
            detail=self.detail, got=self.got, expected=self.expected
        )

    def __str__(self) -> str:
        return f"{self.message}.\n[line {self.line + 1}]"


class ReturnSignal(Exception):
    """Unwinds a function body carrying the cell of the returned value."""

    def __init__(self, cell: Cell) -> None:
        super().__init__("return")
        self.cell = cell


@dataclass(eq=False)
class Cell:
    """A shared, mutable slot holding one runtime value."""

    value: Any = None


@dataclass(eq=False)
class NativeFunction:
    """A function provided by the interpreter itself; takes no arguments."""

    name: str
    function: Callable[[], Any]

    def __str__(self) -> str:
        return "<native fn>"


@dataclass(eq=False)
class LoxFunction:
    """A user-defined function or method together with its closure."""

    name: str
    params: Tuple[str, ...]
    body: Tuple[Node, ...]
    pos: int
    env: Environment = field(repr=False)
    is_constructor: bool = False

    def __str__(self) -> str:
        return f"<fn {self.name}>"


@dataclass(eq=False)
class LoxClass:
    """A class with its own and inherited methods."""

    name: str
    superclass: Optional[LoxClass] = None
    methods: Dict[str, LoxFunction] = field(default_factory=dict, repr=False)

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class LoxInstance:
    """An instance of a class; props maps a name to its position and cell."""

    klass: LoxClass
    props: Dict[str, Tuple[int, Cell]] = field(default_factory=dict, repr=False)

    def get(self, name: str, line: int) -> Cell:
        """Return the cell of a property; functions come back as fresh copies."""
        try:
            _, cell = self.props[name]
        except KeyError:
            raise LoxRuntimeError(
                RuntimeErrorKind.UNDEFINED_PROPERTY, line, detail=name
            ) from None
        if isinstance(cell.value, LoxFunction):
            return Cell(dataclasses.replace(cell.value))
        return cell

    def set(self, name: str, value: Cell, pos: int) -> None:
        """Store a property cell, recording the position it was set at."""
        self.props[name] = (pos, value)

    def __str__(self) -> str:
        return f"{self.klass.name} instance"


@dataclass(eq=False)
class Environment:
    """A scope of variable definitions chained to its enclosing scope."""

    parent: Optional[Environment] = field(default=None, repr=False)
    this: Optional[Cell] = field(default=None, repr=False)
    superclass: Optional[LoxClass] = field(default=None, repr=False)
    definitions: Dict[str, Tuple[int, Cell]] = field(default_factory=dict, repr=False)

    def define(self, name: str, pos: int, value: Cell) -> None:
        """Bind name to a cell, visible from source position pos onwards."""
        self.definitions[name] = (pos, value)

    def resolve(self, name: str, pos: int, line: int) -> Cell:
        """Find the cell bound to name as seen from source position pos."""
        env: Optional[Environment] = self
        while env is not None:
            entry = env.definitions.get(name)
            if entry is not None and pos >= entry[0]:
                return entry[1]
            env = env.parent
        raise LoxRuntimeError(RuntimeErrorKind.UNDEFINED_VARIABLE, line, detail=name)

    def resolve_this(self) -> Cell:
        """Return the cell of the instance bound as 'this' in this scope chain."""
        env: Optional[Environment] = self
        while env is not None:
            if env.this is not None:
                return env.this
            env = env.parent
        raise LookupError("'this' is not bound in any enclosing scope")

    def resolve_super(self, method: str, line: int) -> Cell:
        """Return a superclass method bound to the current 'this'."""
        env: Optional[Environment] = self
        while env is not None:
            if env.superclass is not None:
                found = env.superclass.methods.get(method)
                if found is None:
                    raise LoxRuntimeError(
                        RuntimeErrorKind.UNDEFINED_PROPERTY, line, detail=method
                    )
                bound = dataclasses.replace(found)
                bound.env.this = self.resolve_this()
                return Cell(bound)
            env = env.parent
        raise LookupError("'super' is not bound in any enclosing scope")

    def copy(self) -> Environment:
        """Return a shallow copy sharing parent and cells but not the mapping."""
        return Environment(
            parent=self.parent,
            this=self.this,
            superclass=self.superclass,
            definitions=dict(self.definitions),
        )


def _primary_kind(value: Any) -> Optional[str]:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    return None


def is_truthy(value: Any) -> bool:
    """Only nil and false are falsey."""
    return not (value is None or value is False)


def values_equal(a: Any, b: Any) -> bool:
    """Compare two primary values; anything else is never equal by value."""
    kind_a, kind_b = _primary_kind(a), _primary_kind(b)
    if kind_a is None or kind_b is None or kind_a != kind_b:
        return False
    if kind_a == "number":
        return float(a) == float(b)
    return a == b


def stringify(value: Any) -> str:
    """Render a value the way print shows it."""
    kind = _primary_kind(value)
    if kind == "nil":
        return "nil"
    if kind == "bool":
        return "true" if value else "false"
    if kind == "number":
        return format_plain(float(value))
    return str(value)