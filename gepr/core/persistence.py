"""
Model store: JSON artifacts for trained models.

A model file is self-describing. It records the symbol table (operator
names in index order plus the constant pool) next to the genes, so it can
be decoded without any of the training state:

    {
      "format": "gepr-model", "format_version": 1,
      "symbol_table": {"id": "gepr-ops", "version": 1,
                       "operators": [...], "constants": [...]},
      "n_variables": k, "gene_count": g, "head_length": h, "tail_length": t,
      "genes": [[...], ...], "coefficients": [...], "intercept": b0,
      "fitness": r2, "metadata": {...}
    }

Writes go through a temporary file and a FileLock on '<path>.lock', so a
reader never sees a half-written model.
"""

import json
import hashlib
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
from filelock import FileLock

from ..exceptions import FormatError
from .codec import check_gene, chromosome_formula
from .symbols import BUILTIN_OPERATORS, SymbolTable, get_operator

logger = logging.getLogger(__name__)

MODEL_FORMAT = 'gepr-model'
FORMAT_VERSION = 1


@dataclass
class PersistedModel:
    """
    A trained model as stored on disk.

    Attributes:
        n_variables: Input columns the model expects
        head_length: Head length of every gene
        genes: Symbol indices, one list per gene
        coefficients: Linear weight per gene
        intercept: Constant term
        fitness: Training R-squared
        operators: Operator names in symbol-index order
        constants: Constant terminal values in symbol-index order
        metadata: Free-form run information (creation time, config, ...)
    """
    n_variables: int
    head_length: int
    genes: List[List[int]]
    coefficients: List[float]
    intercept: float
    fitness: float
    operators: List[str] = field(default_factory=lambda: [op.value for op in BUILTIN_OPERATORS])
    constants: List[float] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def gene_count(self) -> int:
        return len(self.genes)

    @property
    def tail_length(self) -> int:
        return self.symbol_table().tail_length(self.head_length)

    @classmethod
    def from_individual(
        cls,
        individual,
        table: SymbolTable,
        n_rows: Optional[int] = None,
        variable_names: Optional[Sequence[str]] = None,
        config: Optional[Dict[str, Any]] = None,
        generations: Optional[int] = None,
        rounds: Optional[int] = None,
    ) -> 'PersistedModel':
        """
        Build an artifact from an evaluated Individual.

        Args:
            individual: Evaluated Individual (genes, coefficients, intercept)
            table: Symbol table the genes were evolved with
            n_rows: Number of training rows
            variable_names: Optional column names for formula rendering
            config: RunConfig.to_dict() of the run
            generations: Generations completed in the run
            rounds: Rounds completed in the run
        """
        if not individual.is_evaluated:
            raise ValueError("Only an evaluated individual can be persisted")
        metadata = {
            'created_at': datetime.now().isoformat(),
            'n_rows': n_rows,
            'variable_names': list(variable_names) if variable_names is not None else None,
            'config': config or {},
            'generations': generations,
            'rounds': rounds,
        }
        return cls(
            n_variables=table.n_variables,
            head_length=individual.head_length,
            genes=individual.genes.tolist(),
            coefficients=[float(c) for c in individual.coefficients],
            intercept=float(individual.intercept),
            fitness=float(individual.fitness),
            operators=table.operator_names,
            constants=list(table.constants),
            metadata=metadata,
        )

    def symbol_table(self) -> SymbolTable:
        """Rebuild the symbol table the genes refer to."""
        return SymbolTable(
            self.n_variables,
            constants=self.constants,
            operators=[get_operator(name) for name in self.operators],
        )

    def formula(self, variable_names: Optional[Sequence[str]] = None) -> str:
        if variable_names is None:
            variable_names = self.metadata.get('variable_names')
        return chromosome_formula(self.genes, self.coefficients, self.intercept,
                                  self.symbol_table(), variable_names)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'format': MODEL_FORMAT,
            'format_version': FORMAT_VERSION,
            'symbol_table': {
                'id': SymbolTable.TABLE_ID,
                'version': SymbolTable.TABLE_VERSION,
                'operators': list(self.operators),
                'constants': [float(c) for c in self.constants],
            },
            'n_variables': self.n_variables,
            'gene_count': self.gene_count,
            'head_length': self.head_length,
            'tail_length': self.tail_length,
            'genes': [[int(s) for s in gene] for gene in self.genes],
            'coefficients': [float(c) for c in self.coefficients],
            'intercept': float(self.intercept),
            'fitness': float(self.fitness),
            'metadata': self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'PersistedModel':
        """
        Parse and fully validate an artifact dictionary.

        Raises:
            FormatError: if anything about the artifact is missing,
                inconsistent or from an unsupported version
        """
        if not isinstance(data, dict):
            raise FormatError("Model file does not contain a JSON object")
        if data.get('format') != MODEL_FORMAT:
            raise FormatError("Not a gepr model file", {'format': data.get('format')})
        if data.get('format_version') != FORMAT_VERSION:
            raise FormatError("Unsupported model format version",
                              {'format_version': data.get('format_version')})

        table_info = data.get('symbol_table')
        if not isinstance(table_info, dict):
            raise FormatError("Model file has no symbol table")
        if (table_info.get('id') != SymbolTable.TABLE_ID
                or table_info.get('version') != SymbolTable.TABLE_VERSION):
            raise FormatError("Unknown symbol table",
                              {'id': table_info.get('id'), 'version': table_info.get('version')})

        builtin = [op.value for op in BUILTIN_OPERATORS]
        operators = table_info.get('operators')
        if not isinstance(operators, list) or len(operators) > len(builtin):
            raise FormatError("Model operator list is larger than the built-in set")
        if operators != builtin:
            raise FormatError("Model operator list differs from the built-in set",
                              {'operators': operators})

        try:
            constants = [float(c) for c in table_info.get('constants', [])]
            n_variables = data['n_variables']
            head_length = data['head_length']
            gene_count = data['gene_count']
            tail_length = data['tail_length']
            genes = data['genes']
            coefficients = data['coefficients']
            intercept = data['intercept']
            fitness = data['fitness']
        except KeyError as e:
            raise FormatError(f"Model file is missing field {e.args[0]!r}")
        except (TypeError, ValueError):
            raise FormatError("Model constants are not numeric")

        for name, value in (('n_variables', n_variables), ('head_length', head_length),
                            ('gene_count', gene_count), ('tail_length', tail_length)):
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise FormatError(f"Model field {name} must be a positive integer", {name: value})

        try:
            table = SymbolTable(n_variables, constants=constants,
                                operators=[get_operator(name) for name in operators])
        except ValueError as e:
            raise FormatError(f"Cannot rebuild symbol table: {e}")

        if tail_length != table.tail_length(head_length):
            raise FormatError("Tail length does not match head length",
                              {'head_length': head_length, 'tail_length': tail_length})
        if not isinstance(genes, list) or len(genes) != gene_count:
            raise FormatError("Gene count does not match", {'gene_count': gene_count})
        for i, gene in enumerate(genes):
            if not isinstance(gene, list) or not all(
                    isinstance(s, int) and not isinstance(s, bool) for s in gene):
                raise FormatError(f"Gene {i} is not a list of symbol indices")
            try:
                check_gene(np.asarray(gene, dtype=np.int64), table, head_length)
            except ValueError as e:
                raise FormatError(f"Gene {i} is invalid: {e}")

        if not isinstance(coefficients, list) or len(coefficients) != gene_count:
            raise FormatError("Expected one coefficient per gene", {'gene_count': gene_count})
        try:
            numbers = np.asarray(coefficients + [intercept, fitness], dtype=float)
        except (TypeError, ValueError):
            raise FormatError("Coefficients must be numeric")
        if not np.all(np.isfinite(numbers)):
            raise FormatError("Model has non-finite coefficients")

        metadata = data.get('metadata') or {}
        if not isinstance(metadata, dict):
            raise FormatError("Model metadata must be an object")

        return cls(
            n_variables=n_variables,
            head_length=head_length,
            genes=[list(g) for g in genes],
            coefficients=[float(c) for c in coefficients],
            intercept=float(intercept),
            fitness=float(fitness),
            operators=list(operators),
            constants=constants,
            metadata=metadata,
        )

    def summary(self) -> Dict[str, Any]:
        """Short description for listings."""
        return {
            'n_variables': self.n_variables,
            'gene_count': self.gene_count,
            'head_length': self.head_length,
            'fitness': self.fitness,
            'formula': self.formula(),
            'created_at': self.metadata.get('created_at'),
        }


def _get_lock(path: Path) -> FileLock:
    """Get a file lock for atomic operations."""
    return FileLock(str(path) + '.lock')


def save_model(model: PersistedModel, path: Union[str, Path]) -> Path:
    """
    Write a model atomically.

    The artifact is written to a temporary file next to `path` and moved
    into place while holding the lock. Readers need no lock since the
    move is atomic.
    """
    path = Path(path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)

    text = json.dumps(model.to_dict(), indent=2)
    tmp_path = path.with_name(path.name + '.tmp')
    with _get_lock(path):
        try:
            tmp_path.write_text(text)
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
    logger.debug("Saved model to %s", path)
    return path


def load_model(path: Union[str, Path]) -> PersistedModel:
    """
    Read and validate a model written by save_model().

    Raises:
        FileNotFoundError: if there is no file at `path`
        FormatError: if the file is truncated, corrupt or incompatible
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Model file not found: {path}")

    text = path.read_text()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(f"Model file is not valid JSON: {e.msg}", {'path': str(path)})

    model = PersistedModel.from_dict(data)
    logger.debug("Loaded model from %s", path)
    return model


class ModelStore:
    """
    Directory of model files addressed by id.

    Storage structure:
        <base_path>/
        ├── index.json          # id -> summary lookup
        └── models/
            └── mdl_<timestamp>_<hash>.json
    """

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path)
        self.models_dir = self.base_path / 'models'
        self.index_file = self.base_path / 'index.json'
        self.models_dir.mkdir(parents=True, exist_ok=True)

    def _read_index(self) -> Dict:
        """Read the index file (caller should hold lock for read-modify-write)."""
        if self.index_file.exists():
            return json.loads(self.index_file.read_text())
        return {'version': FORMAT_VERSION, 'models': {}}

    def _write_index(self, index: Dict) -> None:
        self.index_file.write_text(json.dumps(index, indent=2))

    def generate_model_id(self) -> str:
        """Generate a unique model ID."""
        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        random_hash = hashlib.sha256(os.urandom(16)).hexdigest()[:8]
        return f'mdl_{timestamp}_{random_hash}'

    def path_for(self, model_id: str) -> Path:
        # Ids come from HTTP requests; never let them leave the models directory
        if not model_id or Path(model_id).name != model_id or model_id.startswith('.'):
            raise KeyError(model_id)
        return self.models_dir / f'{model_id}.json'

    def exists(self, model_id: str) -> bool:
        try:
            return self.path_for(model_id).exists()
        except KeyError:
            return False

    def new_path(self) -> Path:
        """Reserve a fresh id and return the path its model should be written to."""
        return self.path_for(self.generate_model_id())

    def register(self, path: Union[str, Path]) -> str:
        """Add a model already written to path_for(...) to the index."""
        path = Path(path)
        model_id = path.stem
        model = load_model(path)
        with _get_lock(self.index_file):
            index = self._read_index()
            index['models'][model_id] = model.summary()
            self._write_index(index)
        return model_id

    def save(self, model: PersistedModel) -> str:
        """Store a model under a new id."""
        path = self.new_path()
        save_model(model, path)
        return self.register(path)

    def load(self, model_id: str) -> PersistedModel:
        """
        Raises:
            KeyError: if there is no model with that id
            FormatError: if the stored file is corrupt
        """
        if not self.exists(model_id):
            raise KeyError(model_id)
        return load_model(self.path_for(model_id))

    def list_models(self) -> List[Dict[str, Any]]:
        """Index entries, newest first."""
        index = self._read_index()
        models = [{'model_id': mid, **info} for mid, info in index['models'].items()]
        models.sort(key=lambda m: m.get('created_at') or '', reverse=True)
        return models

    def delete(self, model_id: str) -> bool:
        if not self.exists(model_id):
            return False
        self.path_for(model_id).unlink()
        with _get_lock(self.index_file):
            index = self._read_index()
            index['models'].pop(model_id, None)
            self._write_index(index)
        return True
