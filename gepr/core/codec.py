"""
Chromosome codec: head/tail genes <-> expression trees.

A gene of head length h over a table with maximum arity m has a tail of
h * (m - 1) + 1 symbols. Head positions may hold any symbol, tail positions
only terminals. Genes are decoded breadth-first (Karva notation): the first
symbol is the root, and each following symbol fills the next open argument
slot, level by level. The tail is long enough that all slots are always
filled; any symbols left over are ignored.

    gene:  mul add x0 | x1 c3 x0 x1
    tree:  mul(add(x1, c3), x0)

A chromosome is several genes whose outputs are combined linearly:

    y_hat = intercept + sum_i coef_i * gene_i(x)
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import numpy as np

from .symbols import GUARD_LIMIT, OPERATORS, Symbol, SymbolKind, SymbolTable


@dataclass
class ExpressionNode:
    """A decoded expression tree node."""
    symbol_index: int
    symbol: Symbol
    children: List['ExpressionNode'] = field(default_factory=list)

    @property
    def size(self) -> int:
        """Number of nodes in the subtree."""
        return 1 + sum(child.size for child in self.children)

    @property
    def depth(self) -> int:
        if not self.children:
            return 1
        return 1 + max(child.depth for child in self.children)


def check_gene(gene: Sequence[int], table: SymbolTable, head_length: Optional[int] = None) -> np.ndarray:
    """
    Validate a gene against a symbol table and return it as an int array.

    Args:
        gene: Symbol indices
        table: Symbol table the indices refer to
        head_length: Expected head length (inferred from the gene length if None)

    Raises:
        ValueError: if the gene has the wrong length, an out-of-range index,
            or an operator in its tail
    """
    gene = np.asarray(gene)
    if gene.ndim != 1 or gene.size == 0:
        raise ValueError(f"A gene must be a non-empty 1-D sequence, got shape {gene.shape}")
    if not np.issubdtype(gene.dtype, np.integer):
        raise ValueError(f"Gene symbols must be integers, got dtype {gene.dtype}")

    if head_length is None:
        # gene_length = h + h * (m - 1) + 1 = h * m + 1
        head_length, remainder = divmod(gene.size - 1, table.max_arity)
        if remainder or head_length < 1:
            raise ValueError(f"Gene length {gene.size} is not a valid head/tail length")
    if gene.size != table.gene_length(head_length):
        raise ValueError(
            f"Gene length {gene.size} does not match head length {head_length} "
            f"(expected {table.gene_length(head_length)})"
        )
    if gene.min() < 0 or gene.max() >= len(table):
        raise ValueError(f"Gene references symbols outside the table (size {len(table)})")
    if np.any(gene[head_length:] < table.n_operators):
        raise ValueError("Gene tail contains an operator")
    return gene.astype(np.int64, copy=False)


def decode(gene: Sequence[int], table: SymbolTable) -> ExpressionNode:
    """
    Decode a gene into an expression tree (breadth-first, Karva notation).

    Deterministic and side-effect free. Only as many symbols as the tree
    needs are consumed.

    Raises:
        ValueError: if the gene is not a legal head/tail gene for `table`
    """
    gene = check_gene(gene, table)

    root = ExpressionNode(int(gene[0]), table[int(gene[0])])
    nodes = [root]
    next_position = 1
    i = 0
    while i < len(nodes):
        node = nodes[i]
        for _ in range(node.symbol.arity):
            index = int(gene[next_position])
            child = ExpressionNode(index, table[index])
            node.children.append(child)
            nodes.append(child)
            next_position += 1
        i += 1
    return root


def coding_length(gene: Sequence[int], table: SymbolTable) -> int:
    """Number of symbols the decoded tree actually uses (the ORF length)."""
    return decode(gene, table).size


def _evaluate_node(node: ExpressionNode, data: np.ndarray) -> np.ndarray:
    symbol = node.symbol
    if symbol.kind is SymbolKind.VARIABLE:
        return data[:, symbol.index]
    if symbol.kind is SymbolKind.CONSTANT:
        return np.full(data.shape[0], symbol.value)
    args = [_evaluate_node(child, data) for child in node.children]
    return OPERATORS[symbol.operator](*args)


def evaluate(tree: ExpressionNode, rows: np.ndarray) -> Union[float, np.ndarray]:
    """
    Evaluate an expression tree.

    Args:
        tree: Decoded gene
        rows: A single input row (1-D) or a table of rows (2-D)

    Returns:
        A float for a single row, otherwise one value per row. The result is
        always finite for finite input.
    """
    data = np.asarray(rows, dtype=float)
    single_row = data.ndim == 1
    if single_row:
        data = data[np.newaxis, :]
    with np.errstate(all='ignore'):
        values = np.array(_evaluate_node(tree, data), dtype=float)
    if single_row:
        return float(values[0])
    return values


def random_gene(rng: np.random.Generator, head_length: int, table: SymbolTable) -> np.ndarray:
    """
    Draw a random gene.

    Head symbols are uniform over the whole table, tail symbols uniform over
    the terminals.
    """
    head = rng.integers(0, len(table), size=head_length)
    tail = table.n_operators + rng.integers(0, table.n_terminals, size=table.tail_length(head_length))
    return np.concatenate([head, tail]).astype(np.int64)


def gene_outputs(genes: Sequence[Sequence[int]], table: SymbolTable, rows: np.ndarray) -> np.ndarray:
    """
    Evaluate every gene of a chromosome.

    Returns:
        Array of shape (n_rows, n_genes)
    """
    data = np.atleast_2d(np.asarray(rows, dtype=float))
    columns = [evaluate(decode(gene, table), data) for gene in genes]
    return np.column_stack(columns)


def is_degenerate(values: np.ndarray) -> bool:
    """True if a gene's output ran into the guard clamp somewhere."""
    return bool(np.any(np.abs(values) >= GUARD_LIMIT))


def link(
    outputs: np.ndarray,
    coefficients: Sequence[float],
    intercept: float = 0.0,
) -> Union[float, np.ndarray]:
    """
    Combine gene outputs linearly.

    Args:
        outputs: Gene outputs for one row (n_genes,) or many rows (n_rows, n_genes)
        coefficients: One weight per gene
        intercept: Constant term

    Returns:
        A float for a single row, otherwise one value per row
    """
    outputs = np.asarray(outputs, dtype=float)
    coefficients = np.asarray(coefficients, dtype=float)
    if outputs.shape[-1] != coefficients.shape[0]:
        raise ValueError(
            f"Got {outputs.shape[-1]} gene outputs but {coefficients.shape[0]} coefficients"
        )
    with np.errstate(all='ignore'):
        combined = outputs @ coefficients + intercept
    if outputs.ndim == 1:
        return float(combined)
    return combined


# =============================================================================
# Formula rendering
# =============================================================================

def to_expression_string(
    tree: ExpressionNode,
    variable_names: Optional[Sequence[str]] = None,
) -> str:
    """Render a tree as an infix expression, e.g. '(x0 + sqrt(x1))'."""
    symbol = tree.symbol
    if symbol.kind is SymbolKind.VARIABLE:
        if variable_names is not None:
            return str(variable_names[symbol.index])
        return symbol.name
    if symbol.kind is SymbolKind.CONSTANT:
        return f'{symbol.value:.6g}'

    spec = OPERATORS[symbol.operator]
    args = [to_expression_string(child, variable_names) for child in tree.children]
    if spec.infix is not None:
        return f'({args[0]} {spec.infix} {args[1]})'
    return f"{spec.name}({', '.join(args)})"


def chromosome_formula(
    genes: Sequence[Sequence[int]],
    coefficients: Sequence[float],
    intercept: float,
    table: SymbolTable,
    variable_names: Optional[Sequence[str]] = None,
    precision: int = 6,
) -> str:
    """
    Render a whole chromosome as 'y = b0 + b1 * gene1 + ...'.

    Genes with a zero coefficient are left out.
    """
    pieces = [f'{intercept:.{precision}g}']
    for gene, coef in zip(genes, coefficients):
        if coef == 0:
            continue
        sign = '-' if coef < 0 else '+'
        expr = to_expression_string(decode(gene, table), variable_names)
        pieces.append(f'{sign} {abs(coef):.{precision}g} * {expr}')
    return 'y = ' + ' '.join(pieces)
