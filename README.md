# loxpy

A tree-walking interpreter for the Lox language: a lexer, a recursive-descent
parser with static checks, and an evaluator that supports variables, closures,
functions, classes, inheritance, `this` and `super`. The one built-in function
is `clock()`, which returns the current Unix time in whole seconds.

## Installation

```
pip install .
```

## Running a script

```
loxpy program.lox
```

Output from `print` statements goes to standard output. Diagnostics go to
standard error, and the exit status is:

- `0` on success,
- `2` when no file name is given,
- `65` for an unterminated string or any syntax/resolution error,
- `70` for a runtime error.

Lexer errors other than unterminated strings (for example an unexpected
character) are reported but do not stop the run. A file that cannot be read is
reported as `Failed to read file <name>` and then treated as an empty program.

## Example

```lox
class Greeter {
  init(name) {
    this.name = name;
  }

  greet() {
    print "Hello, " + this.name;
  }
}

Greeter("world").greet();
```

## Using it from Python

```python
import io
from loxpy.interpreter import run_source

out = io.StringIO()
run_source("var a = 1; print a + 2;", out)
print(out.getvalue())   # "3\n"
```

`run_source` raises `ValueError` if the scanner reports any error.

The separate stages can also be used directly:

```python
from loxpy.lexer import tokenize
from loxpy.parser import parse
from loxpy.interpreter import Interpreter

symbols, errors = tokenize("1 + 2 * 45;")
program = parse(symbols)
print(Interpreter(program).eval())   # "91"
```

- `loxpy.lexer.Lexer` collects `tokens` (a list of `Symbol`) and `errors`
  (a list of `LexError`) across calls to `lex`.
- `loxpy.parser.ParseError` carries every syntax issue found in a program in
  its `issues` list; each `SyntaxIssue` prints as
  `[line N] Error at '<token>': <message>.`
- `loxpy.values.LoxRuntimeError` reports a runtime failure with its `kind`
  and the line where it happened.
- `str()` of any node in `loxpy.ast` gives an s-expression form of the tree,
  e.g. `(/ (* 82.0 99.0) 18.0)`.

## What it does not do

There is no interactive prompt: the `loxpy` command only runs a script file.
There is no standard library beyond `clock()`.

## Running the tests

```
pip install ".[test]"
pytest
```