"""
Compilation of parsed statements into replayable instruction sequences.

Names are resolved once, at compile time, to Slots. A Slot is a mutable
reference to a live array: rebinding it (`SymbolTable.alias`) changes which
array the slot points to without copying, and every compiled Program sees the
new target on its next run. Intermediate results live in registers whose
buffers are sized once from the operand shapes, so replaying a Program does
no parsing and no shape analysis.
"""

import numpy as np
from typing import Dict, Iterable, List, Tuple, Union

from .parser import (
    Assign,
    BinOp,
    ExpressionError,
    Inverse,
    Name,
    Negate,
    Node,
    Number,
    Transpose,
    parse,
)
from ..errors import DimensionError
from ..utils.linalg import invert_into


# =============================================================================
# Operands
# =============================================================================

class Slot:
    """Named, rebindable reference to a 2-D float64 array."""

    __slots__ = ("name", "value", "shape")

    def __init__(self, name: str, array: np.ndarray):
        array = np.asarray(array, dtype=np.float64)
        if array.ndim != 2:
            raise DimensionError(f"{name} must be a 2-D array, got shape {array.shape}")
        self.name = name
        self.value = array
        self.shape = array.shape

    def alias(self, array: np.ndarray):
        """Point this slot at another live array of the same shape."""
        if array.shape != self.shape:
            raise DimensionError(
                f"cannot alias {self.name} {self.shape} to an array of shape {array.shape}"
            )
        self.value = array

    def __repr__(self) -> str:
        return f"Slot({self.name}, shape={self.shape})"


class Constant:
    """Scalar literal."""

    __slots__ = ("value", "shape")

    def __init__(self, value: float):
        self.value = value
        self.shape = ()

    def __repr__(self) -> str:
        return f"Constant({self.value})"


class Register:
    """Intermediate result. Holds a preallocated buffer or a view."""

    __slots__ = ("index", "value", "shape")

    def __init__(self, index: int, shape: Tuple[int, ...], allocate: bool = True, order: str = "C"):
        self.index = index
        self.shape = shape
        self.value = np.empty(shape, dtype=np.float64, order=order) if allocate else None

    def __repr__(self) -> str:
        return f"r{self.index}"


Operand = Union[Slot, Constant, Register]


class SymbolTable:
    """Mapping from variable name to Slot."""

    def __init__(self):
        self._slots: Dict[str, Slot] = {}

    def bind(self, name: str, array: np.ndarray) -> Slot:
        """Create a slot for `name` pointing at `array` (no copy)."""
        if name == "inv":
            raise ExpressionError("'inv' is reserved")
        if name in self._slots:
            raise ExpressionError(f"{name} is already bound; use alias() to retarget it")
        slot = Slot(name, array)
        self._slots[name] = slot
        return slot

    def alias(self, name: str, array: np.ndarray):
        """Retarget an existing slot at another array (no copy)."""
        self[name].alias(array)

    def __getitem__(self, name: str) -> Slot:
        try:
            return self._slots[name]
        except KeyError:
            raise ExpressionError(f"unbound name {name!r}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._slots

    def names(self) -> List[str]:
        return list(self._slots)


# =============================================================================
# Instructions
# =============================================================================

class _MatMul:
    __slots__ = ("a", "b", "out")

    def __init__(self, a, b, out):
        self.a, self.b, self.out = a, b, out

    def run(self):
        np.matmul(self.a.value, self.b.value, out=self.out.value)

    def __repr__(self):
        return f"{self.out!r} = {self.a!r} @ {self.b!r}"


class _Elementwise:
    __slots__ = ("ufunc", "a", "b", "out")

    def __init__(self, ufunc, a, b, out):
        self.ufunc, self.a, self.b, self.out = ufunc, a, b, out

    def run(self):
        self.ufunc(self.a.value, self.b.value, out=self.out.value)

    def __repr__(self):
        return f"{self.out!r} = {self.ufunc.__name__}({self.a!r}, {self.b!r})"


class _Negate:
    __slots__ = ("a", "out")

    def __init__(self, a, out):
        self.a, self.out = a, out

    def run(self):
        np.negative(self.a.value, out=self.out.value)

    def __repr__(self):
        return f"{self.out!r} = -{self.a!r}"


class _Transpose:
    __slots__ = ("a", "out")

    def __init__(self, a, out):
        self.a, self.out = a, out

    def run(self):
        # A view; re-taken every run because `a` may be a rebound slot
        self.out.value = self.a.value.T

    def __repr__(self):
        return f"{self.out!r} = {self.a!r}'"


class _Inverse:
    __slots__ = ("a", "out", "finite")

    def __init__(self, a, out):
        self.a, self.out = a, out
        self.finite = np.empty(out.shape, dtype=bool)

    def run(self):
        invert_into(self.a.value, self.out.value, self.finite)

    def __repr__(self):
        return f"{self.out!r} = inv({self.a!r})"


_UFUNCS = {"+": np.add, "-": np.subtract, "*": np.multiply}


# =============================================================================
# Compiler
# =============================================================================

class _Compiler:

    def __init__(self, table: SymbolTable, source: str):
        self.table = table
        self.source = source
        self.instructions = []
        self.n_registers = 0

    def _register(self, shape, allocate=True, order="C") -> Register:
        reg = Register(self.n_registers, shape, allocate=allocate, order=order)
        self.n_registers += 1
        return reg

    def _shape_error(self, message: str):
        raise DimensionError(f"{message} in {self.source!r}")

    def compile(self, node: Node) -> Operand:
        if isinstance(node, Name):
            return self.table[node.id]

        if isinstance(node, Number):
            return Constant(node.value)

        if isinstance(node, Transpose):
            a = self.compile(node.operand)
            if a.shape == ():
                return a
            out = self._register(a.shape[::-1], allocate=False)
            self.instructions.append(_Transpose(a, out))
            return out

        if isinstance(node, Negate):
            a = self.compile(node.operand)
            out = self._register(a.shape)
            self.instructions.append(_Negate(a, out))
            return out

        if isinstance(node, Inverse):
            a = self.compile(node.operand)
            if len(a.shape) != 2 or a.shape[0] != a.shape[1]:
                self._shape_error(f"inv() needs a square matrix, got shape {a.shape}")
            out = self._register(a.shape, order="F")
            self.instructions.append(_Inverse(a, out))
            return out

        if isinstance(node, BinOp):
            a = self.compile(node.left)
            b = self.compile(node.right)
            return self._binop(node.op, a, b)

        raise ExpressionError(f"cannot compile node {node!r}")

    def _binop(self, op: str, a: Operand, b: Operand) -> Operand:
        if op == "*" and a.shape != () and b.shape != ():
            if a.shape[1] != b.shape[0]:
                self._shape_error(f"cannot multiply {a.shape} by {b.shape}")
            out = self._register((a.shape[0], b.shape[1]))
            self.instructions.append(_MatMul(a, b, out))
            return out

        # Elementwise: equal shapes, or a scalar on either side
        if a.shape != b.shape and () not in (a.shape, b.shape):
            verb = {"+": "add", "-": "subtract"}[op]
            self._shape_error(f"cannot {verb} {a.shape} and {b.shape}")
        shape = a.shape if a.shape != () else b.shape
        out = self._register(shape)
        self.instructions.append(_Elementwise(_UFUNCS[op], a, b, out))
        return out


class Program:
    """
    A compiled `target = expr` statement.

    run() replays the instruction list against the slots' current targets
    and writes the result into the target slot's array in place.
    """

    def __init__(self, source: str, target: Slot, instructions: list, result: Operand):
        self.source = source
        self.target = target
        self.instructions = instructions
        self.result = result

    def run(self):
        for instruction in self.instructions:
            instruction.run()
        np.copyto(self.target.value, self.result.value)

    def __len__(self) -> int:
        return len(self.instructions)

    def disassemble(self) -> str:
        """Human-readable listing of the instruction sequence."""
        lines = [f"; {self.source}"]
        lines += [repr(ins) for ins in self.instructions]
        lines.append(f"{self.target.name} <- {self.result!r}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Program({self.source!r}, {len(self)} instructions)"


def compile_statement(source: str, table: SymbolTable) -> Program:
    """
    Parse and compile one statement against a symbol table.

    Raises:
        ExpressionSyntaxError: source does not parse
        ExpressionError: a name is unbound
        DimensionError: operand shapes are inconsistent, or the result
            does not match the target's shape
    """
    tree: Assign = parse(source)
    target = table[tree.target]

    compiler = _Compiler(table, source)
    result = compiler.compile(tree.value)
    if result.shape != target.shape:
        raise DimensionError(
            f"result shape {result.shape} does not match {target.name} "
            f"{target.shape} in {source!r}"
        )
    return Program(source, target, compiler.instructions, result)


def compile_statements(sources: Iterable[str], table: SymbolTable) -> List[Program]:
    """Compile a block of statements, in order."""
    return [compile_statement(source, table) for source in sources]


def run_programs(programs: Iterable[Program]):
    """Replay a compiled block."""
    for program in programs:
        program.run()
