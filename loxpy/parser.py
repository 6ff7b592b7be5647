"""Recursive descent parser for Lox, with the resolver's static checks."""

from __future__ import annotations

import dataclasses
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional, Sequence

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
    Program,
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
from .lexer import Keyword, Symbol, Token, TokenKind

CONSTRUCTOR_NAME = "init"
MAX_PARAM_COUNT = 255

_RECOVERY_KEYWORDS = frozenset(
    {
        Keyword.CLASS,
        Keyword.FUN,
        Keyword.VAR,
        Keyword.FOR,
        Keyword.IF,
        Keyword.WHILE,
        Keyword.PRINT,
        Keyword.RETURN,
    }
)

_EQ_OPS = {TokenKind.EQUAL_EQUAL: EqOp.EQ, TokenKind.BANG_EQUAL: EqOp.NEQ}
_CMP_OPS = {
    TokenKind.GREATER: CmpOp.GT,
    TokenKind.GREATER_EQUAL: CmpOp.GTE,
    TokenKind.LESS: CmpOp.LT,
    TokenKind.LESS_EQUAL: CmpOp.LTE,
}
_TERM_OPS = {TokenKind.PLUS: TermOp.ADD, TokenKind.MINUS: TermOp.SUB}
_FACTOR_OPS = {TokenKind.SLASH: FactorOp.DIV, TokenKind.STAR: FactorOp.MUL}
_UNARY_OPS = {TokenKind.BANG: UnaryOp.NOT, TokenKind.MINUS: UnaryOp.NEG}


class ParseErrorKind(Enum):
    CUSTOM = auto()
    TOKEN_AFTER = auto()
    TOKEN_BEFORE = auto()
    TOKEN_AFTER_TOKEN = auto()
    CANT_READ_LOCAL_VAR_IN_OWN_INIT = auto()
    DUPLICATE_VARIABLE = auto()
    INVALID_RETURN = auto()
    INVALID_ASSIGNMENT_TARGET = auto()
    CANT_USE_THIS_OUTSIDE_OF_CLASS = auto()
    CANT_RETURN_FROM_INIT = auto()
    CANT_INHERIT_FROM_ITSELF = auto()
    INVALID_SUPER_USAGE = auto()
    TOO_MANY_PARAMETERS = auto()
    TOO_MANY_ARGS = auto()


@dataclass(frozen=True)
class SyntaxIssue:
    """One syntax or resolution problem; line is zero-based, token None at end."""

    line: int
    token: Optional[Token]
    kind: ParseErrorKind
    message: str

    def __str__(self) -> str:
        where = "end" if self.token is None else f"'{self.token.lexeme()}'"
        return f"[line {self.line + 1}] Error at {where}: {self.message}."


class ParseError(Exception):
    """Raised when a program has syntax or resolution problems."""

    def __init__(self, issues: Sequence[SyntaxIssue]) -> None:
        self.issues = list(issues)
        super().__init__("\n".join(map(str, self.issues)))


class _Failure(Exception):
    def __init__(self, issue: SyntaxIssue) -> None:
        super().__init__(str(issue))
        self.issue = issue


@dataclass(frozen=True)
class _VarScope:
    name: str


@dataclass(frozen=True)
class _ClassScope:
    has_super: bool


@dataclass(frozen=True)
class _FunScope:
    is_init: bool


class Parser:
    """Parses a token stream into a Program, collecting every problem found."""

    def __init__(self, tokens: Sequence[Symbol]) -> None:
        self._tokens = list(tokens)
        self._idx = 0
        self._is_global_scope = True
        self._declaring: list = []
        self._defined: set[str] = set()
        self._errors: list[SyntaxIssue] = []
        self._resolver_errors: list[SyntaxIssue] = []

    # Token navigation

    def _symbol(self, idx: int) -> Optional[Symbol]:
        if 0 <= idx < len(self._tokens):
            return self._tokens[idx]
        return None

    def _anchor(self) -> Optional[Symbol]:
        symbol = self._symbol(self._idx)
        if symbol is None and self._tokens:
            return self._tokens[-1]
        return symbol

    def _line(self) -> int:
        symbol = self._anchor()
        return symbol.line if symbol else 0

    def _line_pos(self) -> dict:
        symbol = self._anchor()
        if symbol is None:
            return {"line": 0, "pos": 0}
        return {"line": symbol.line, "pos": symbol.pos}

    def _peek(self) -> Optional[Token]:
        symbol = self._symbol(self._idx)
        return symbol.token if symbol else None

    def _peek_kind(self) -> Optional[TokenKind]:
        token = self._peek()
        return token.kind if token else None

    def _next(self) -> Optional[Token]:
        token = self._peek()
        if token is not None:
            self._idx += 1
        return token

    def _prev(self) -> Optional[Token]:
        self._idx -= 1
        return self._peek()

    def _accept(self, kind: TokenKind) -> Optional[Token]:
        if self._peek_kind() is kind:
            return self._next()
        return None

    @staticmethod
    def _is_keyword(token: Optional[Token], keyword: Keyword) -> bool:
        return token is not None and token.kind is TokenKind.KEYWORD and token.keyword is keyword

    # Errors

    def _issue(self, kind: ParseErrorKind, message: str) -> SyntaxIssue:
        return SyntaxIssue(self._line(), self._peek(), kind, message)

    def _fail(self, kind: ParseErrorKind, message: str) -> _Failure:
        return _Failure(self._issue(kind, message))

    def _custom(self, what: str) -> _Failure:
        return self._fail(ParseErrorKind.CUSTOM, f"Expect {what}")

    def _expect_custom(self, kind: TokenKind, what: str) -> Token:
        token = self._accept(kind)
        if token is None:
            raise self._custom(what)
        return token

    def _expect_after(self, kind: TokenKind, after: str) -> Token:
        token = self._accept(kind)
        if token is None:
            raise self._fail(
                ParseErrorKind.TOKEN_AFTER, f"Expect '{Token(kind).lexeme()}' after {after}"
            )
        return token

    def _expect_before(self, kind: TokenKind, before: str) -> Token:
        token = self._accept(kind)
        if token is None:
            raise self._fail(
                ParseErrorKind.TOKEN_BEFORE, f"Expect '{Token(kind).lexeme()}' before {before}"
            )
        return token

    def _expect_after_token(self, kind: TokenKind) -> Token:
        token = self._accept(kind)
        if token is None:
            previous = self._tokens[self._idx - 1].token
            raise self._fail(
                ParseErrorKind.TOKEN_AFTER_TOKEN,
                f"Expect '{Token(kind).lexeme()}' after '{previous.lexeme()}'",
            )
        return token

    def _parse_ident(self, what: str) -> str:
        token = self._next()
        if token is None or token.kind is not TokenKind.IDENTIFIER:
            if token is not None:
                self._prev()
            raise self._custom(what)
        return token.text

    def _recover(self) -> None:
        while True:
            token = self._next()
            if token is None or token.kind is TokenKind.SEMICOLON:
                return
            upcoming = self._peek()
            if (
                upcoming is not None
                and upcoming.kind is TokenKind.KEYWORD
                and upcoming.keyword in _RECOVERY_KEYWORDS
            ):
                return

    def _resolver_error(self, kind: ParseErrorKind, message: str) -> None:
        self._prev()
        self._resolver_errors.append(self._issue(kind, message))
        self._next()

    def _resolver_error_at(self, kind: ParseErrorKind, message: str, idx: int) -> None:
        saved = self._idx
        self._idx = idx
        self._resolver_errors.append(self._issue(kind, message))
        self._idx = saved

    @contextmanager
    def _inner_scope(self, declared: Optional[set] = None) -> Iterator[None]:
        saved_defined, saved_global = self._defined, self._is_global_scope
        self._defined = set(declared) if declared else set()
        self._is_global_scope = False
        try:
            yield
        finally:
            self._defined, self._is_global_scope = saved_defined, saved_global

    # Grammar

    def parse(self) -> Program:
        """Parse the whole token stream; raise ParseError listing every problem."""
        line_pos = self._line_pos()
        declarations = []
        while self._peek() is not None:
            decl = self._parse_decl()
            if decl is not None:
                declarations.append(decl)

        if self._errors or self._resolver_errors:
            raise ParseError(self._errors + self._resolver_errors)
        return Program(tuple(declarations), **line_pos)

    def _parse_decl(self) -> Optional[Node]:
        line_pos = self._line_pos()
        saved_declaring = list(self._declaring)
        try:
            token = self._next()
            if self._is_keyword(token, Keyword.CLASS):
                result = self._parse_class_decl(line_pos)
            elif self._is_keyword(token, Keyword.FUN):
                result = self._parse_fun_decl(False, line_pos)
            elif self._is_keyword(token, Keyword.VAR):
                result = self._parse_var_decl(line_pos)
            else:
                self._prev()
                result = self._parse_stmt()
        except _Failure as failure:
            self._errors.append(failure.issue)
            self._recover()
            result = None
        self._declaring = saved_declaring
        return result

    def _parse_stmt(self) -> Node:
        line_pos = self._line_pos()
        token = self._next()
        if self._is_keyword(token, Keyword.FOR):
            return self._parse_for_stmt()
        if self._is_keyword(token, Keyword.IF):
            return self._parse_if_stmt()
        if self._is_keyword(token, Keyword.PRINT):
            expr = self._parse_expr()
            self._expect_after(TokenKind.SEMICOLON, "value")
            return PrintStmt(expr, **line_pos)
        if self._is_keyword(token, Keyword.RETURN):
            return self._parse_return(line_pos)
        if self._is_keyword(token, Keyword.WHILE):
            return self._parse_while_stmt()
        if token is not None and token.kind is TokenKind.LEFT_BRACE:
            return dataclasses.replace(self._parse_block(), **line_pos)
        self._prev()
        return ExprStmt(self._parse_expr_stmt(), **line_pos)

    def _parse_return(self, line_pos: dict) -> Node:
        idx_at_return = self._idx - 1
        if not any(isinstance(d, _FunScope) for d in self._declaring):
            self._resolver_error(
                ParseErrorKind.INVALID_RETURN, "Can't return from top-level code"
            )
        try:
            value = self._parse_expr()
        except _Failure:
            value = None
        if value is not None and self._declaring and self._declaring[-1] == _FunScope(True):
            self._resolver_error_at(
                ParseErrorKind.CANT_RETURN_FROM_INIT,
                "Can't return a value from an initializer",
                idx_at_return,
            )
        self._expect_after(TokenKind.SEMICOLON, "return value")
        return ReturnStmt(value, **line_pos)

    def _parse_expr_stmt(self) -> Node:
        expr = self._parse_expr()
        self._expect_after(TokenKind.SEMICOLON, "expression")
        return expr

    def _parse_for_stmt(self) -> Node:
        with self._inner_scope():
            line_pos = self._line_pos()
            self._expect_after_token(TokenKind.LEFT_PAREN)

            token = self._next()
            if token is not None and token.kind is TokenKind.SEMICOLON:
                initializer = None
            elif self._is_keyword(token, Keyword.VAR):
                initializer = self._parse_var_decl(line_pos)
            else:
                self._prev()
                initializer = self._parse_expr_stmt()

            failure = None
            try:
                condition = self._parse_expr()
            except _Failure as exc:
                condition, failure = None, exc
            after = self._next()
            if after is None or after.kind is not TokenKind.SEMICOLON:
                if failure is not None:
                    raise failure
                raise self._fail(ParseErrorKind.TOKEN_AFTER, "Expect ';' after condition")

            if self._peek_kind() is TokenKind.RIGHT_PAREN:
                increment = None
            else:
                increment = self._parse_expr()

            self._expect_after(TokenKind.RIGHT_PAREN, "for clauses")
            body = self._parse_stmt()
            return ForStmt(initializer, condition, increment, body, **line_pos)

    def _parse_if_stmt(self) -> Node:
        line_pos = self._line_pos()
        self._expect_after_token(TokenKind.LEFT_PAREN)
        condition = self._parse_expr()
        self._expect_after(TokenKind.RIGHT_PAREN, "if condition")
        body = self._parse_stmt()
        else_branch = None
        if self._is_keyword(self._peek(), Keyword.ELSE):
            self._next()
            else_branch = self._parse_stmt()
        return IfStmt(condition, body, else_branch, **line_pos)

    def _parse_while_stmt(self) -> Node:
        line_pos = self._line_pos()
        self._expect_after_token(TokenKind.LEFT_PAREN)
        condition = self._parse_expr()
        self._expect_after(TokenKind.RIGHT_PAREN, "condition")
        body = self._parse_stmt()
        return WhileStmt(condition, body, **line_pos)

    def _parse_block(self, declared: Optional[set] = None) -> Block:
        line_pos = self._line_pos()
        with self._inner_scope(declared):
            declarations = []
            while self._peek_kind() not in (TokenKind.RIGHT_BRACE, None):
                decl = self._parse_decl()
                if decl is not None:
                    declarations.append(decl)
            self._expect_after(TokenKind.RIGHT_BRACE, "block")
            return Block(tuple(declarations), **line_pos)

    def _parse_class_decl(self, line_pos: dict) -> Node:
        name = self._parse_ident("class name")

        superclass = None
        if self._peek_kind() is TokenKind.LESS:
            self._next()
            token = self._next()
            if token is None or token.kind is not TokenKind.IDENTIFIER:
                self._prev()
                raise self._custom("superclass name")
            superclass = token.text

        if superclass == name:
            self._resolver_error(
                ParseErrorKind.CANT_INHERIT_FROM_ITSELF, "A class can't inherit from itself"
            )

        self._expect_before(TokenKind.LEFT_BRACE, "class body")

        self._declaring.append(_ClassScope(superclass is not None))
        methods = []
        while self._peek_kind() not in (TokenKind.RIGHT_BRACE, None):
            methods.append(self._parse_fun_decl(True, self._line_pos()))
        self._declaring.pop()

        self._expect_custom(TokenKind.RIGHT_BRACE, "after class body")
        self._defined.add(name)
        return ClassDecl(name, superclass, tuple(methods), **line_pos)

    def _parse_parameters(self) -> list[str]:
        params: list[str] = []
        token = self._peek()
        if token is not None and token.kind is TokenKind.IDENTIFIER:
            self._next()
            params.append(token.text)

        while self._peek_kind() is TokenKind.COMMA:
            self._next()
            param = self._parse_ident("parameter name")
            if param in params:
                self._resolver_error(
                    ParseErrorKind.DUPLICATE_VARIABLE,
                    "Already a variable with this name in this scope",
                )
            if len(params) == MAX_PARAM_COUNT:
                self._prev()
                raise self._fail(
                    ParseErrorKind.TOO_MANY_PARAMETERS,
                    f"Can't have more than {MAX_PARAM_COUNT} parameters",
                )
            params.append(param)
        return params

    def _parse_fun_decl(self, is_method: bool, line_pos: dict) -> FunDecl:
        name = self._parse_ident("method name" if is_method else "function name")
        self._expect_after(TokenKind.LEFT_PAREN, "function name")
        params = self._parse_parameters()
        self._expect_after(TokenKind.RIGHT_PAREN, "parameters")
        self._expect_before(TokenKind.LEFT_BRACE, "function body")

        is_init = (
            is_method
            and name == CONSTRUCTOR_NAME
            and bool(self._declaring)
            and isinstance(self._declaring[-1], _ClassScope)
        )
        self._declaring.append(_FunScope(is_init))
        body = self._parse_block(set(params))
        self._declaring.pop()

        self._defined.add(name)
        return FunDecl(name, tuple(params), body, **line_pos)

    def _parse_var_decl(self, line_pos: dict) -> VarDecl:
        name = self._parse_ident("variable name")
        if name in self._defined and not self._is_global_scope:
            self._resolver_error(
                ParseErrorKind.DUPLICATE_VARIABLE,
                "Already a variable with this name in this scope",
            )

        self._declaring.append(_VarScope(name))
        token = self._next()
        if token is not None and token.kind is TokenKind.EQUAL:
            value = self._parse_expr()
            self._expect_after(TokenKind.SEMICOLON, "variable declaration")
        elif token is not None and token.kind is TokenKind.SEMICOLON:
            value = None
        else:
            raise self._fail(
                ParseErrorKind.TOKEN_AFTER, "Expect ';' after variable declaration"
            )

        self._defined.add(name)
        self._declaring.pop()
        return VarDecl(name, value, **line_pos)

    def _parse_expr(self) -> Node:
        target = self._parse_logic_or()
        if self._accept(TokenKind.EQUAL) is None:
            return target

        assign_idx = self._idx - 1
        value = self._parse_expr()
        if isinstance(target, Variable):
            return Assign(target.name, value, **self._line_pos())
        if isinstance(target, Access):
            return Assign(target.name, value, target.obj, **self._line_pos())
        self._idx = assign_idx
        raise self._fail(ParseErrorKind.INVALID_ASSIGNMENT_TARGET, "Invalid assignment target")

    def _parse_logical(self, keyword: Keyword, operand) -> Node:
        line_pos = self._line_pos()
        left = operand()
        while self._is_keyword(self._peek(), keyword):
            self._next()
            left = Logical(left, keyword.value, operand(), **line_pos)
        return left

    def _parse_logic_or(self) -> Node:
        return self._parse_logical(Keyword.OR, self._parse_logic_and)

    def _parse_logic_and(self) -> Node:
        return self._parse_logical(Keyword.AND, self._parse_eq)

    def _parse_binary(self, ops: dict, operand) -> Node:
        line_pos = self._line_pos()
        left = operand()
        while self._peek_kind() in ops:
            op = ops[self._next().kind]
            left = Binary(left, op, operand(), **line_pos)
        return left

    def _parse_eq(self) -> Node:
        return self._parse_binary(_EQ_OPS, self._parse_cmp)

    def _parse_cmp(self) -> Node:
        return self._parse_binary(_CMP_OPS, self._parse_term)

    def _parse_term(self) -> Node:
        return self._parse_binary(_TERM_OPS, self._parse_factor)

    def _parse_factor(self) -> Node:
        return self._parse_binary(_FACTOR_OPS, self._parse_unary)

    def _parse_unary(self) -> Node:
        line_pos = self._line_pos()
        token = self._accept(TokenKind.BANG) or self._accept(TokenKind.MINUS)
        if token is None:
            return self._parse_call()
        return Unary(_UNARY_OPS[token.kind], self._parse_unary(), **line_pos)

    def _parse_arguments(self) -> list[Node]:
        args: list[Node] = []
        if self._peek_kind() is TokenKind.RIGHT_PAREN:
            return args
        args.append(self._parse_expr())
        while self._peek_kind() is TokenKind.COMMA:
            self._next()
            if len(args) == MAX_PARAM_COUNT:
                raise self._fail(
                    ParseErrorKind.TOO_MANY_ARGS,
                    f"Can't have more than {MAX_PARAM_COUNT} arguments",
                )
            args.append(self._parse_expr())
        return args

    def _parse_call(self) -> Node:
        line_pos = self._line_pos()
        expr = self._parse_primary()
        while True:
            paren = self._accept(TokenKind.LEFT_PAREN)
            dot = self._accept(TokenKind.DOT)
            token = paren or dot
            if token is None:
                return expr
            if token.kind is TokenKind.DOT:
                name = self._parse_ident("property name after '.'")
                expr = Access(expr, name, **line_pos)
            else:
                args = self._parse_arguments()
                self._expect_after(TokenKind.RIGHT_PAREN, "arguments")
                expr = Call(expr, tuple(args), **line_pos)

    def _parse_group(self) -> Node:
        line_pos = self._line_pos()
        inner = self._parse_expr()
        self._expect_after(TokenKind.RIGHT_PAREN, "expression")
        return Grouping(inner, **line_pos)

    def _parse_primary(self) -> Node:
        line_pos = self._line_pos()
        token = self._next()
        kind = token.kind if token else None

        if kind is TokenKind.NUMBER:
            return Literal(token.number, **line_pos)
        if kind is TokenKind.STRING:
            return Literal(token.text, **line_pos)
        if kind is TokenKind.KEYWORD:
            if token.keyword is Keyword.TRUE:
                return Literal(True, **line_pos)
            if token.keyword is Keyword.FALSE:
                return Literal(False, **line_pos)
            if token.keyword is Keyword.NIL:
                return Literal(None, **line_pos)
            if token.keyword is Keyword.THIS:
                if not any(isinstance(d, _ClassScope) for d in self._declaring):
                    self._resolver_error(
                        ParseErrorKind.CANT_USE_THIS_OUTSIDE_OF_CLASS,
                        "Can't use 'this' outside of a class",
                    )
                return This(**line_pos)
            if token.keyword is Keyword.SUPER:
                return self._parse_super(line_pos)
        if kind is TokenKind.IDENTIFIER:
            name = token.text
            declaring_it = any(
                isinstance(d, _VarScope) and d.name == name for d in self._declaring
            )
            if name not in self._defined and declaring_it:
                self._resolver_error(
                    ParseErrorKind.CANT_READ_LOCAL_VAR_IN_OWN_INIT,
                    "Can't read local variable in its own initializer",
                )
            return Variable(name, **line_pos)
        if kind is TokenKind.LEFT_PAREN:
            return self._parse_group()

        self._prev()
        raise self._custom("expression")

    def _parse_super(self, line_pos: dict) -> Node:
        enclosing = next((d for d in self._declaring if isinstance(d, _ClassScope)), None)
        if enclosing is None:
            self._resolver_error(
                ParseErrorKind.INVALID_SUPER_USAGE, "Can't use 'super' outside of a class"
            )
        elif not enclosing.has_super:
            self._resolver_error(
                ParseErrorKind.INVALID_SUPER_USAGE,
                "Can't use 'super' in a class with no superclass",
            )
        self._expect_after_token(TokenKind.DOT)
        method = self._parse_ident("superclass method name")
        return Super(method, **line_pos)


def parse(tokens: Sequence[Symbol]) -> Program:
    """Parse tokens into a Program, raising ParseError on any problem."""
    return Parser(tokens).parse()