"""Tokenizer for Lox source text."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto

from .numbers import format_number, parse_number


class Keyword(Enum):
    """Reserved words of the language."""

    AND = "and"
    CLASS = "class"
    ELSE = "else"
    FALSE = "false"
    FOR = "for"
    FUN = "fun"
    IF = "if"
    NIL = "nil"
    OR = "or"
    PRINT = "print"
    RETURN = "return"
    SUPER = "super"
    THIS = "this"
    TRUE = "true"
    VAR = "var"
    WHILE = "while"

    @classmethod
    def from_word(cls, word: str) -> Keyword | None:
        """Return the keyword spelled by word, or None if it is not reserved."""
        try:
            return cls(word)
        except ValueError:
            return None


class TokenKind(Enum):
    LEFT_PAREN = auto()
    RIGHT_PAREN = auto()
    LEFT_BRACE = auto()
    RIGHT_BRACE = auto()
    MINUS = auto()
    PLUS = auto()
    SLASH = auto()
    STAR = auto()
    COMMA = auto()
    DOT = auto()
    SEMICOLON = auto()
    EQUAL = auto()
    EQUAL_EQUAL = auto()
    BANG = auto()
    BANG_EQUAL = auto()
    LESS = auto()
    LESS_EQUAL = auto()
    GREATER = auto()
    GREATER_EQUAL = auto()
    STRING = auto()
    NUMBER = auto()
    IDENTIFIER = auto()
    KEYWORD = auto()


_FIXED_LEXEMES = {
    TokenKind.LEFT_PAREN: "(",
    TokenKind.RIGHT_PAREN: ")",
    TokenKind.LEFT_BRACE: "{",
    TokenKind.RIGHT_BRACE: "}",
    TokenKind.MINUS: "-",
    TokenKind.PLUS: "+",
    TokenKind.SLASH: "/",
    TokenKind.STAR: "*",
    TokenKind.COMMA: ",",
    TokenKind.DOT: ".",
    TokenKind.SEMICOLON: ";",
    TokenKind.EQUAL: "=",
    TokenKind.EQUAL_EQUAL: "==",
    TokenKind.BANG: "!",
    TokenKind.BANG_EQUAL: "!=",
    TokenKind.LESS: "<",
    TokenKind.LESS_EQUAL: "<=",
    TokenKind.GREATER: ">",
    TokenKind.GREATER_EQUAL: ">=",
}


@dataclass(frozen=True)
class Token:
    """A token; text holds the source text of strings, numbers and identifiers."""

    kind: TokenKind
    text: str = ""
    number: float | None = None
    keyword: Keyword | None = None

    def lexeme(self) -> str:
        if self.kind is TokenKind.STRING:
            return f'"{self.text}"'
        if self.kind is TokenKind.KEYWORD:
            return self.keyword.value
        if self.kind in (TokenKind.NUMBER, TokenKind.IDENTIFIER):
            return self.text
        return _FIXED_LEXEMES[self.kind]

    def literal(self) -> str:
        if self.kind is TokenKind.NUMBER:
            return format_number(self.number)
        if self.kind is TokenKind.STRING:
            return self.text
        return "null"

    def token_type(self) -> str:
        if self.kind is TokenKind.KEYWORD:
            return self.keyword.name
        return self.kind.name

    def __str__(self) -> str:
        return f"{self.token_type()} {self.lexeme()} {self.literal()}"


@dataclass(frozen=True)
class Symbol:
    """A token with its zero-based line and its offset in the source."""

    line: int
    pos: int
    token: Token

    def __str__(self) -> str:
        return str(self.token)


class LexErrorKind(Enum):
    UNEXPECTED_CHARACTER = "Unexpected character"
    UNTERMINATED_STRING = "Unterminated string"


@dataclass(frozen=True)
class LexError:
    """A problem found while scanning, with its zero-based line."""

    line: int
    pos: int
    kind: LexErrorKind
    char: str | None = None

    def __str__(self) -> str:
        return f"[line {self.line + 1}] Error: {self.kind.value}."


_SINGLE_CHAR = {
    "(": TokenKind.LEFT_PAREN,
    ")": TokenKind.RIGHT_PAREN,
    "{": TokenKind.LEFT_BRACE,
    "}": TokenKind.RIGHT_BRACE,
    "-": TokenKind.MINUS,
    "+": TokenKind.PLUS,
    "*": TokenKind.STAR,
    ",": TokenKind.COMMA,
    ".": TokenKind.DOT,
    ";": TokenKind.SEMICOLON,
}

_WITH_EQUAL = {
    "=": (TokenKind.EQUAL, TokenKind.EQUAL_EQUAL),
    "!": (TokenKind.BANG, TokenKind.BANG_EQUAL),
    "<": (TokenKind.LESS, TokenKind.LESS_EQUAL),
    ">": (TokenKind.GREATER, TokenKind.GREATER_EQUAL),
}

_DIGITS = frozenset("0123456789")
_IDENT_START = frozenset("_abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ")
_IDENT_REST = re.compile(r"[A-Za-z0-9_]*")


@dataclass
class Lexer:
    """Collects tokens and errors from one or more calls to lex."""

    errors: list[LexError] = field(default_factory=list)
    tokens: list[Symbol] = field(default_factory=list)

    def without_symbols(self) -> list[Token]:
        return [symbol.token for symbol in self.tokens]

    def _emit(self, line: int, pos: int, token: Token) -> None:
        self.tokens.append(Symbol(line, pos, token))

    def _error(self, line: int, pos: int, kind: LexErrorKind, char: str | None = None) -> None:
        self.errors.append(LexError(line, pos, kind, char))

    def lex(self, src: str) -> None:
        line = 0
        cursor = 0
        end = len(src)

        while cursor < end:
            pos = cursor
            char = src[cursor]
            cursor += 1

            if char == "\n":
                line += 1
            elif char in _SINGLE_CHAR:
                self._emit(line, pos, Token(_SINGLE_CHAR[char]))
            elif char in _WITH_EQUAL:
                plain, doubled = _WITH_EQUAL[char]
                if src.startswith("=", cursor):
                    cursor += 1
                    self._emit(line, pos, Token(doubled))
                else:
                    self._emit(line, pos, Token(plain))
            elif char == "/":
                if src.startswith("/", cursor):
                    newline = src.find("\n", cursor)
                    cursor = end if newline == -1 else newline + 1
                    line += 1
                else:
                    self._emit(line, pos, Token(TokenKind.SLASH))
            elif char == '"':
                close = src.find('"', cursor)
                if close == -1:
                    line += src.count("\n", cursor)
                    cursor = end
                    self._error(line, pos, LexErrorKind.UNTERMINATED_STRING)
                else:
                    text = src[cursor:close]
                    line += text.count("\n")
                    cursor = close + 1
                    self._emit(line, pos, Token(TokenKind.STRING, text))
            elif char in _DIGITS:
                cursor = self._lex_number(src, pos, cursor, line)
            elif char in _IDENT_START:
                match = _IDENT_REST.match(src, cursor)
                cursor = match.end()
                word = src[pos:cursor]
                keyword = Keyword.from_word(word)
                if keyword is not None:
                    self._emit(line, pos, Token(TokenKind.KEYWORD, keyword=keyword))
                else:
                    self._emit(line, pos, Token(TokenKind.IDENTIFIER, word))
            elif char.isspace():
                continue
            else:
                self._error(line, pos, LexErrorKind.UNEXPECTED_CHARACTER, char)

    def _lex_number(self, src: str, start: int, cursor: int, line: int) -> int:
        seen_dot = False
        while cursor < len(src):
            char = src[cursor]
            if char in _DIGITS:
                cursor += 1
            elif char == "." and not seen_dot:
                seen_dot = True
                cursor += 1
            elif char == ".":
                self._error(line, start, LexErrorKind.UNEXPECTED_CHARACTER, char)
                return cursor + 1
            else:
                break

        text = src[start:cursor]
        trailing_dot = text.endswith(".")
        if trailing_dot:
            text = text[:-1]
        self._emit(line, start, Token(TokenKind.NUMBER, text, parse_number(text)))
        if trailing_dot:
            self._emit(line, start, Token(TokenKind.DOT))
        return cursor


def tokenize(src: str) -> tuple[list[Symbol], list[LexError]]:
    """Scan src and return its tokens and the errors found."""
    lexer = Lexer()
    lexer.lex(src)
    return lexer.tokens, lexer.errors