"""Tree-walking evaluator for parsed Lox programs."""

from __future__ import annotations

import copy
import dataclasses
import math
import sys
import time
from typing import Any, Iterable, List, Optional, Sequence, TextIO

from .ast import (
    Access,
    Assign,
    Binary,
    Block,
    Call,
    ClassDecl,
    CmpOp,
    EqOp,
    ExprStmt,
    FactorOp,
    ForStmt,
    FunDecl,
    Grouping,
    IfStmt,
    Literal,
    Logical,
    Node,
    PrintStmt,
    ReturnStmt,
    Super,
    TermOp,
    This,
    Unary,
    UnaryOp,
    VarDecl,
    Variable,
    WhileStmt,
)
from .lexer import tokenize
from .parser import CONSTRUCTOR_NAME, parse
from .values import (
    PRIMARY_TYPES,
    Cell,
    Environment,
    LoxClass,
    LoxFunction,
    LoxInstance,
    LoxRuntimeError,
    NativeFunction,
    ReturnSignal,
    RuntimeErrorKind,
    is_truthy,
    stringify,
    values_equal,
)


def _clock() -> float:
    """Seconds since the Unix epoch, truncated to whole seconds."""
    return float(int(time.time()))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _divide(a: float, b: float) -> float:
    try:
        return a / b
    except ZeroDivisionError:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)


class Interpreter:
    """Executes a parsed program, writing printed values to stdout."""

    def __init__(self, program: Iterable[Node], stdout: Optional[TextIO] = None) -> None:
        self._program: Sequence[Node] = tuple(program)
        self._stdout = sys.stdout if stdout is None else stdout
        self.environment = Environment()
        self.environment.define("clock", 0, Cell(NativeFunction("clock", _clock)))
        self._line = 0
        self._pos = 0

    # Public entry points

    def eval(self) -> str:
        """Evaluate a program made of one expression and return its printed form."""
        if not self._program or not isinstance(self._program[0], ExprStmt):
            raise ValueError("eval only supports programs with one expression")
        return stringify(self._eval_expr(self._program[0].expression).value)

    def run(self) -> None:
        """Execute every declaration of the program in order."""
        self._eval_decls(self._program)

    # Scopes and errors

    def _child(self, environment: Environment) -> Interpreter:
        child = copy.copy(self)
        child.environment = environment
        return child

    def _inner(self) -> Interpreter:
        return self._child(Environment(parent=self.environment))

    def _error(self, kind: RuntimeErrorKind, **details: Any) -> LoxRuntimeError:
        return LoxRuntimeError(kind, self._line, **details)

    def _set_line(self, node: Node) -> None:
        self._line = node.line
        self._pos = node.pos

    # Declarations

    def _eval_decls(self, decls: Iterable[Node]) -> None:
        for decl in decls:
            self._eval_decl(decl)

    def _eval_decl(self, decl: Node) -> None:
        self._set_line(decl)
        if isinstance(decl, VarDecl):
            self._eval_var_decl(decl)
        elif isinstance(decl, FunDecl):
            # Global functions are visible everywhere once defined; local ones
            # behave like ordinary variables.
            is_global = self.environment.parent is None
            self.environment.define(
                decl.name,
                0 if is_global else self._pos,
                Cell(self._function_value(decl)),
            )
        elif isinstance(decl, ClassDecl):
            self._eval_class_decl(decl)
        else:
            self._eval_stmt(decl)

    def _eval_var_decl(self, decl: VarDecl) -> None:
        if decl.value is not None:
            pos = decl.value.pos
            cell = self._eval_expr(decl.value)
        else:
            pos = self._pos
            cell = Cell(None)
        self.environment.define(decl.name, pos, cell)

    def _function_value(self, decl: FunDecl) -> LoxFunction:
        return LoxFunction(
            name=decl.name,
            params=tuple(decl.params),
            body=tuple(decl.body.declarations),
            pos=self._pos,
            env=Environment(parent=self.environment),
        )

    def _eval_class_decl(self, decl: ClassDecl) -> None:
        superclass: Optional[LoxClass] = None
        if decl.superclass is not None:
            found = self.environment.resolve(decl.superclass, self._pos, self._line)
            if not isinstance(found.value, LoxClass):
                raise self._error(RuntimeErrorKind.SUPERCLASS_MUST_BE_A_CLASS)
            superclass = found.value

        methods = {}
        for method in decl.methods:
            function = self._function_value(method)
            function.env.superclass = superclass
            methods[method.name] = function

        # Walk from the nearest ancestor upwards so overrides win.
        ancestor = superclass
        while ancestor is not None:
            for name, function in ancestor.methods.items():
                methods.setdefault(name, function)
            ancestor = ancestor.superclass

        self.environment.define(
            decl.name, self._pos, Cell(LoxClass(decl.name, superclass, methods))
        )

    # Statements

    def _eval_stmt(self, stmt: Node) -> None:
        self._set_line(stmt)
        if isinstance(stmt, ExprStmt):
            self._eval_expr(stmt.expression)
        elif isinstance(stmt, ForStmt):
            self._eval_for(stmt)
        elif isinstance(stmt, IfStmt):
            if is_truthy(self._eval_expr(stmt.condition).value):
                self._eval_stmt(stmt.then_branch)
            elif stmt.else_branch is not None:
                self._eval_stmt(stmt.else_branch)
        elif isinstance(stmt, WhileStmt):
            while is_truthy(self._eval_expr(stmt.condition).value):
                self._eval_stmt(stmt.body)
        elif isinstance(stmt, PrintStmt):
            text = stringify(self._eval_expr(stmt.expression).value)
            try:
                self._stdout.write(text + "\n")
            except OSError as exc:
                raise self._error(RuntimeErrorKind.IO) from exc
        elif isinstance(stmt, ReturnStmt):
            cell = Cell(None) if stmt.value is None else self._eval_expr(stmt.value)
            raise ReturnSignal(cell)
        elif isinstance(stmt, Block):
            self._inner()._eval_decls(stmt.declarations)
        else:
            raise TypeError(f"unsupported statement node: {type(stmt).__name__}")

    def _eval_for(self, stmt: ForStmt) -> None:
        inner = self._inner()
        if isinstance(stmt.initializer, VarDecl):
            inner._eval_var_decl(stmt.initializer)
        elif stmt.initializer is not None:
            inner._eval_expr(stmt.initializer)

        while stmt.condition is None or is_truthy(inner._eval_expr(stmt.condition).value):
            inner._eval_stmt(stmt.body)
            if stmt.increment is not None:
                inner._eval_expr(stmt.increment)

    # Expressions

    def _eval_expr(self, expr: Node) -> Cell:
        self._set_line(expr)
        if isinstance(expr, Literal):
            return Cell(expr.value)
        if isinstance(expr, Variable):
            cell = self.environment.resolve(expr.name, self._pos, self._line)
            # Primary values are copied; everything else is shared.
            if isinstance(cell.value, PRIMARY_TYPES):
                return Cell(cell.value)
            return cell
        if isinstance(expr, Assign):
            return self._eval_assign(expr)
        if isinstance(expr, Logical):
            left = self._eval_expr(expr.left)
            if is_truthy(left.value) == (expr.operator == "or"):
                return left
            return self._eval_expr(expr.right)
        if isinstance(expr, Binary):
            return self._eval_binary(expr)
        if isinstance(expr, Unary):
            return self._eval_unary(expr)
        if isinstance(expr, Call):
            args: List[Cell] = [self._eval_expr(arg) for arg in expr.arguments]
            callee = self._eval_expr(expr.callee)
            return self._call(callee.value, args)
        if isinstance(expr, Access):
            target = self._eval_expr(expr.obj).value
            if not isinstance(target, LoxInstance):
                raise self._error(RuntimeErrorKind.ONLY_INSTANCES_HAVE, detail="properties")
            return target.get(expr.name, self._line)
        if isinstance(expr, Grouping):
            return self._eval_expr(expr.expression)
        if isinstance(expr, This):
            return self.environment.resolve_this()
        if isinstance(expr, Super):
            return self.environment.resolve_super(expr.method, self._line)
        raise TypeError(f"unsupported expression node: {type(expr).__name__}")

    def _eval_assign(self, expr: Assign) -> Cell:
        if expr.target is not None:
            target = self._eval_expr(expr.target).value
            value = self._eval_expr(expr.value)
            if not isinstance(target, LoxInstance):
                raise self._error(RuntimeErrorKind.ONLY_INSTANCES_HAVE, detail="fields")
            target.set(expr.name, value, self._pos)
            return value

        value = self._eval_expr(expr.value)
        self.environment.resolve(expr.name, self._pos, self._line).value = value.value
        return value

    def _eval_unary(self, expr: Unary) -> Cell:
        operand = self._eval_expr(expr.operand).value
        if expr.op is UnaryOp.NOT:
            return Cell(not is_truthy(operand))
        if not _is_number(operand):
            raise self._error(RuntimeErrorKind.MUST_BE_NUMBER)
        return Cell(-float(operand))

    def _eval_binary(self, expr: Binary) -> Cell:
        left = self._eval_expr(expr.left)
        right = self._eval_expr(expr.right)
        op = expr.op

        if isinstance(op, EqOp):
            a, b = left.value, right.value
            if isinstance(a, PRIMARY_TYPES) and isinstance(b, PRIMARY_TYPES):
                equal = values_equal(a, b)
                result = equal if op is EqOp.EQ else not equal
            else:
                result = False
            return Cell(result or left is right)

        a, b = left.value, right.value
        if op is TermOp.ADD:
            if isinstance(a, str) and isinstance(b, str):
                return Cell(a + b)
            if _is_number(a) and _is_number(b):
                return Cell(float(a) + float(b))
            raise self._error(RuntimeErrorKind.BOTH_MUST_BE_NUMBERS_OR_STRINGS)

        if not (_is_number(a) and _is_number(b)):
            raise self._error(RuntimeErrorKind.BOTH_MUST_BE_NUMBERS)
        x, y = float(a), float(b)

        if op is TermOp.SUB:
            return Cell(x - y)
        if op is FactorOp.MUL:
            return Cell(x * y)
        if op is FactorOp.DIV:
            return Cell(_divide(x, y))
        comparisons = {
            CmpOp.GT: x > y,
            CmpOp.GTE: x >= y,
            CmpOp.LT: x < y,
            CmpOp.LTE: x <= y,
        }
        return Cell(comparisons[op])

    # Calls

    def _call(self, callee: Any, args: List[Cell]) -> Cell:
        if isinstance(callee, NativeFunction):
            return Cell(callee.function())
        if isinstance(callee, LoxFunction):
            return self._call_function(callee, args)
        if isinstance(callee, LoxClass):
            return self._instantiate(callee, args)
        raise self._error(RuntimeErrorKind.NOT_CALLABLE)

    def _call_function(self, function: LoxFunction, args: List[Cell]) -> Cell:
        if len(args) != len(function.params):
            raise self._error(
                RuntimeErrorKind.INCORRECT_ARG_COUNT,
                got=len(args),
                expected=len(function.params),
            )

        frame = self._child(function.env)._inner()
        frame._pos = function.pos
        for name, arg in zip(function.params, args):
            frame.environment.define(name, function.pos, arg)

        try:
            frame._eval_decls(function.body)
            result = Cell(None)
        except ReturnSignal as signal:
            result = signal.cell

        if function.is_constructor:
            return frame.environment.resolve_this()
        return result

    def _instantiate(self, klass: LoxClass, args: List[Cell]) -> Cell:
        instance = LoxInstance(klass)
        instance_cell = Cell(instance)
        constructor: Optional[LoxFunction] = None

        # Each instance gets its own copies of the methods, bound to it.
        for name, method in klass.methods.items():
            env = method.env.copy()
            env.this = instance_cell
            bound = dataclasses.replace(
                method, env=env, is_constructor=name == CONSTRUCTOR_NAME
            )
            instance.set(name, Cell(bound), 0)
            if bound.is_constructor:
                constructor = bound

        if constructor is not None:
            self._call_function(constructor, args)
        elif args:
            raise self._error(
                RuntimeErrorKind.INCORRECT_ARG_COUNT, got=len(args), expected=0
            )
        return instance_cell


def run_source(src: str, stdout: Optional[TextIO] = None) -> None:
    """Scan, parse and run src; raise ValueError on scanning errors."""
    symbols, errors = tokenize(src)
    if errors:
        raise ValueError("\n".join(map(str, errors)))
    Interpreter(parse(symbols), stdout).run()