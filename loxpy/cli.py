"""Command that runs a Lox script file."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional, Sequence

from .interpreter import Interpreter
from .lexer import LexErrorKind, Lexer
from .parser import ParseError, Parser
from .values import LoxRuntimeError

EXIT_DATA_ERROR = 65
EXIT_SOFTWARE_ERROR = 70
EXIT_USAGE = 2


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the script named by the first argument and return the exit status."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: loxpy <filename>", file=sys.stderr)
        return EXIT_USAGE

    filename = args[0]
    try:
        source = Path(filename).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        print(f"Failed to read file {filename}", file=sys.stderr)
        source = ""

    lexer = Lexer()
    lexer.lex(source)
    for error in lexer.errors:
        print(error, file=sys.stderr)

    # Only unterminated strings stop the run; other scanning errors are reported.
    if any(error.kind is LexErrorKind.UNTERMINATED_STRING for error in lexer.errors):
        return EXIT_DATA_ERROR

    try:
        program = Parser(lexer.tokens).parse()
    except ParseError as exc:
        for issue in exc.issues:
            print(issue, file=sys.stderr)
        return EXIT_DATA_ERROR

    try:
        Interpreter(program, sys.stdout).run()
    except LoxRuntimeError as exc:
        print(exc, file=sys.stderr)
        return EXIT_SOFTWARE_ERROR
    return 0


if __name__ == "__main__":
    raise SystemExit(main())