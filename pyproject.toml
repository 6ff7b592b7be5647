[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "loxpy"
version = "0.1.0"
description = "A tree-walking interpreter for the Lox programming language"
requires-python = ">=3.10"
dependencies = []
keywords = ["lox", "interpreter", "language", "parser", "lexer"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Interpreters",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
loxpy = "loxpy.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["loxpy"]

[tool.pytest.ini_options]
addopts = "-ra"
