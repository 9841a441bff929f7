"""
Symbol table - the alphabet genes are written in.

A gene is a string of indices into a SymbolTable. The table is laid out as

    [operators..., input variables x0..x{n-1}, constants c0..c{k-1}]

so every index >= n_operators is a terminal. Operators work on whole
columns (numpy arrays) at once and use guarded arithmetic: division by ~0,
roots and logs of out-of-domain values return a fixed sentinel instead of
NaN/inf, and every result is clamped to +/- GUARD_LIMIT. Expressions can
therefore never crash a run or produce a non-finite value; a gene that
runs into the clamp is simply a bad gene (see `gepr.core.codec`).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np


GUARD_LIMIT = 1e150
DIV_EPSILON = 1e-10
EXP_CLIP = 700.0

# Sentinels returned on degenerate inputs
DIV_SENTINEL = 1.0
SQRT_SENTINEL = 0.0
LOG_SENTINEL = 0.0


def clamp(x: np.ndarray) -> np.ndarray:
    """Replace NaN with 0 and clip everything into [-GUARD_LIMIT, GUARD_LIMIT]."""
    x = np.nan_to_num(x, nan=0.0, posinf=GUARD_LIMIT, neginf=-GUARD_LIMIT)
    return np.clip(x, -GUARD_LIMIT, GUARD_LIMIT)


def add(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a + b


def sub(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a - b


def mul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    return a * b


def protected_div(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """a / b, or DIV_SENTINEL where |b| < DIV_EPSILON."""
    small = np.abs(b) < DIV_EPSILON
    safe_b = np.where(small, 1.0, b)
    return np.where(small, DIV_SENTINEL, a / safe_b)


def square(a: np.ndarray) -> np.ndarray:
    return a * a


def protected_sqrt(a: np.ndarray) -> np.ndarray:
    """sqrt(a), or SQRT_SENTINEL where a < 0."""
    return np.where(a < 0, SQRT_SENTINEL, np.sqrt(np.abs(a)))


def sine(a: np.ndarray) -> np.ndarray:
    return np.sin(a)


def protected_log(a: np.ndarray) -> np.ndarray:
    """Natural log, or LOG_SENTINEL where a <= 0."""
    positive = a > 0
    return np.where(positive, np.log(np.where(positive, a, 1.0)), LOG_SENTINEL)


def protected_exp(a: np.ndarray) -> np.ndarray:
    """exp with the argument clipped so it cannot overflow."""
    return np.exp(np.clip(a, -EXP_CLIP, EXP_CLIP))


class Operator(str, Enum):
    """Built-in operators. Declaration order is the on-disk index order."""
    ADD = 'add'
    SUB = 'sub'
    MUL = 'mul'
    DIV = 'div'
    SQ = 'sq'
    SQRT = 'sqrt'
    SIN = 'sin'
    LOG = 'log'
    EXP = 'exp'


class OperatorSpec:
    """Wrapper for an operator function with its arity and display form."""

    def __init__(
        self,
        operator: Operator,
        func: Callable,
        arity: int,
        infix: Optional[str] = None,
        description: str = '',
    ):
        self.operator = operator
        self.func = func
        self.arity = arity
        self.infix = infix
        self.description = description

    @property
    def name(self) -> str:
        return self.operator.value

    def __call__(self, *args: np.ndarray) -> np.ndarray:
        with np.errstate(all='ignore'):
            return clamp(self.func(*args))

    def __repr__(self):
        return f"OperatorSpec({self.name}, arity={self.arity})"


# Registry of all operators
OPERATORS: Dict[Operator, OperatorSpec] = {
    Operator.ADD: OperatorSpec(Operator.ADD, add, 2, infix='+',
                               description='Addition'),
    Operator.SUB: OperatorSpec(Operator.SUB, sub, 2, infix='-',
                               description='Subtraction'),
    Operator.MUL: OperatorSpec(Operator.MUL, mul, 2, infix='*',
                               description='Multiplication'),
    Operator.DIV: OperatorSpec(Operator.DIV, protected_div, 2, infix='/',
                               description='Division, 1.0 when the divisor is ~0'),
    Operator.SQ: OperatorSpec(Operator.SQ, square, 1,
                              description='Square'),
    Operator.SQRT: OperatorSpec(Operator.SQRT, protected_sqrt, 1,
                                description='Square root, 0.0 for negative input'),
    Operator.SIN: OperatorSpec(Operator.SIN, sine, 1,
                               description='Sine'),
    Operator.LOG: OperatorSpec(Operator.LOG, protected_log, 1,
                               description='Natural log, 0.0 for non-positive input'),
    Operator.EXP: OperatorSpec(Operator.EXP, protected_exp, 1,
                               description='Exponential with clipped argument'),
}

BUILTIN_OPERATORS: Tuple[Operator, ...] = tuple(Operator)


def get_operator(name: str) -> Operator:
    """Get an operator by name."""
    try:
        return Operator(name)
    except ValueError:
        available = ', '.join(op.value for op in BUILTIN_OPERATORS)
        raise ValueError(f"Unknown operator '{name}'. Available: {available}")


def list_operators() -> Dict[str, Dict]:
    """List all built-in operators with their arity and description."""
    return {
        spec.name: {'arity': spec.arity, 'description': spec.description}
        for spec in OPERATORS.values()
    }


class SymbolKind(str, Enum):
    OPERATOR = 'operator'
    VARIABLE = 'variable'
    CONSTANT = 'constant'


@dataclass(frozen=True)
class Symbol:
    """
    One letter of the gene alphabet.

    Exactly one of `operator`, `index` or `value` is meaningful, chosen by
    `kind`. Terminals have arity 0.
    """
    kind: SymbolKind
    name: str
    arity: int = 0
    operator: Optional[Operator] = None
    index: Optional[int] = None
    value: Optional[float] = None

    @classmethod
    def for_operator(cls, operator: Operator) -> 'Symbol':
        spec = OPERATORS[operator]
        return cls(SymbolKind.OPERATOR, spec.name, spec.arity, operator=operator)

    @classmethod
    def for_variable(cls, index: int) -> 'Symbol':
        return cls(SymbolKind.VARIABLE, f'x{index}', index=index)

    @classmethod
    def for_constant(cls, value: float) -> 'Symbol':
        return cls(SymbolKind.CONSTANT, f'{value:.6g}', value=float(value))

    @property
    def is_terminal(self) -> bool:
        return self.kind is not SymbolKind.OPERATOR


class SymbolTable:
    """
    Read-only catalog of operators and terminals for one run.

    Arity lookup is a single array index (`table.arities[i]`), and terminals
    occupy the contiguous index range [n_operators, len(table)).
    """

    TABLE_ID = 'gepr-ops'
    TABLE_VERSION = 1

    def __init__(
        self,
        n_variables: int,
        constants: Iterable[float] = (),
        operators: Optional[Sequence[Operator]] = None,
    ):
        if n_variables < 1:
            raise ValueError(f"n_variables must be >= 1, got {n_variables}")
        operators = tuple(BUILTIN_OPERATORS if operators is None else operators)
        if not operators:
            raise ValueError("At least one operator is required")

        self.operators: Tuple[Operator, ...] = operators
        self.n_variables = int(n_variables)
        self.constants: Tuple[float, ...] = tuple(float(c) for c in constants)

        symbols: List[Symbol] = [Symbol.for_operator(op) for op in operators]
        symbols += [Symbol.for_variable(i) for i in range(self.n_variables)]
        symbols += [Symbol.for_constant(c) for c in self.constants]
        self.symbols: Tuple[Symbol, ...] = tuple(symbols)

        self.arities = np.array([s.arity for s in self.symbols], dtype=np.int64)
        self.arities.setflags(write=False)
        self.n_operators = len(operators)
        self.n_terminals = len(self.symbols) - self.n_operators
        self.max_arity = int(self.arities[:self.n_operators].max())

    @classmethod
    def create(
        cls,
        n_variables: int,
        rng: np.random.Generator,
        n_constants: int = 10,
        const_range: Tuple[float, float] = (-1.0, 1.0),
        operators: Optional[Sequence[Operator]] = None,
    ) -> 'SymbolTable':
        """Build a table whose constants are drawn uniformly from const_range."""
        low, high = const_range
        constants = rng.uniform(low, high, size=n_constants) if n_constants else []
        return cls(n_variables, constants=constants, operators=operators)

    def __len__(self) -> int:
        return len(self.symbols)

    def __getitem__(self, index: int) -> Symbol:
        return self.symbols[index]

    def arity(self, index: int) -> int:
        return int(self.arities[index])

    def is_terminal(self, index: int) -> bool:
        return index >= self.n_operators

    def tail_length(self, head_length: int) -> int:
        """Tail length that guarantees every head decodes to a complete tree."""
        return head_length * (self.max_arity - 1) + 1

    def gene_length(self, head_length: int) -> int:
        return head_length + self.tail_length(head_length)

    @property
    def operator_names(self) -> List[str]:
        return [op.value for op in self.operators]

    def to_dict(self) -> Dict:
        return {
            'id': self.TABLE_ID,
            'version': self.TABLE_VERSION,
            'operators': self.operator_names,
            'constants': list(self.constants),
        }

    def __repr__(self) -> str:
        return (
            f"SymbolTable(operators={self.n_operators}, "
            f"variables={self.n_variables}, constants={len(self.constants)})"
        )
