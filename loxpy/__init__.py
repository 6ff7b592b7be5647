"""A tree-walking interpreter for the Lox programming language: lexer, parser, evaluator and command."""

__version__ = "0.1.0"