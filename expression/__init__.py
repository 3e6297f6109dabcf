"""
Tiny matrix-expression engine: parse once, replay many times.
"""

from .parser import (
    ExpressionError,
    ExpressionSyntaxError,
    parse,
    tokenize,
    free_names,
)
from .program import (
    Slot,
    SymbolTable,
    Program,
    compile_statement,
    compile_statements,
    run_programs,
)

__all__ = [
    "ExpressionError",
    "ExpressionSyntaxError",
    "parse",
    "tokenize",
    "free_names",
    "Slot",
    "SymbolTable",
    "Program",
    "compile_statement",
    "compile_statements",
    "run_programs",
]
