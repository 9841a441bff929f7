"""
Tests for the model store and scorer.

Run with: python -m pytest tests/test_persistence.py -v
"""

import json

import pytest
import numpy as np
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from gepr.config import RunConfig, validate_training_data
from gepr.core.persistence import (
    ModelStore,
    PersistedModel,
    load_model,
    save_model,
)
from gepr.core.scoring import Scorer, predict
from gepr.core.symbols import SymbolTable
from gepr.evolution.chromosome import Individual
from gepr.evolution.engine import EvolutionEngine
from gepr.evolution.fitness import compute_fitness
from gepr.exceptions import FormatError, ValidationError


@pytest.fixture
def training_data():
    x = np.linspace(0.1, 2.0, 10)
    return x[:, np.newaxis], 1.0 + 2.0 * x + 3.0 * x ** 2


@pytest.fixture
def trained(training_data):
    """Individual for y = b0 + b1 * x0 + b2 * sq(x0), evaluated."""
    X, y = training_data
    table = SymbolTable(1, constants=[0.5])
    ind = Individual(genes=np.array([[9, 9, 9], [4, 9, 10]]), head_length=1)
    ind.apply_fitness(compute_fitness(ind.genes, X, y, table))
    return ind, table


@pytest.fixture
def model(trained):
    ind, table = trained
    return PersistedModel.from_individual(ind, table, n_rows=10, variable_names=['t'],
                                          config={'headlen': 1}, generations=0, rounds=1)


@pytest.fixture
def model_file(model, tmp_path):
    path = tmp_path / 'model.dat'
    save_model(model, path)
    return path


def rewrite(path, change):
    """Apply change() to the stored JSON and write it back."""
    data = json.loads(path.read_text())
    change(data)
    path.write_text(json.dumps(data))


class TestPersistedModel:
    """Tests for building and serializing artifacts."""

    def test_from_individual(self, model, trained):
        ind, table = trained
        assert model.n_variables == 1
        assert model.gene_count == 2
        assert model.head_length == 1
        assert model.tail_length == 2
        assert model.genes == [[9, 9, 9], [4, 9, 10]]
        assert model.fitness == pytest.approx(1.0)
        assert model.constants == [0.5]
        assert model.metadata['variable_names'] == ['t']
        assert 'created_at' in model.metadata

    def test_requires_evaluated_individual(self):
        ind = Individual(genes=np.array([[9, 9, 9]]), head_length=1)
        with pytest.raises(ValueError):
            PersistedModel.from_individual(ind, SymbolTable(1))

    def test_artifact_layout(self, model):
        data = model.to_dict()
        assert data['format'] == 'gepr-model'
        assert data['format_version'] == 1
        assert data['symbol_table']['id'] == 'gepr-ops'
        assert data['symbol_table']['version'] == 1
        assert data['symbol_table']['operators'][0] == 'add'
        assert data['gene_count'] == 2
        assert data['tail_length'] == 2
        assert len(data['coefficients']) == 2

    def test_formula(self, model):
        assert 'sq(t)' in model.formula()
        assert 'sq(z)' in model.formula(['z'])

    def test_symbol_table_roundtrip(self, model, trained):
        _, table = trained
        rebuilt = model.symbol_table()
        assert len(rebuilt) == len(table)
        assert rebuilt.constants == table.constants


class TestSaveLoad:
    """Tests for writing and reading model files."""

    def test_roundtrip(self, model, model_file):
        loaded = load_model(model_file)
        assert loaded.genes == model.genes
        assert loaded.coefficients == model.coefficients
        assert loaded.intercept == model.intercept
        assert loaded.metadata['config'] == {'headlen': 1}

    def test_no_temporary_file_left(self, model_file):
        assert not model_file.with_name(model_file.name + '.tmp').exists()

    def test_failed_write_removes_temporary_file(self, model, tmp_path, monkeypatch):
        def write_then_fail(self, text, *args, **kwargs):
            with open(self, 'w') as handle:
                handle.write(text[:10])
            raise OSError(28, 'No space left on device')

        monkeypatch.setattr(Path, 'write_text', write_then_fail)
        path = tmp_path / 'model.dat'
        with pytest.raises(OSError):
            save_model(model, path)
        assert not path.with_name(path.name + '.tmp').exists()
        assert not path.exists()

    def test_creates_parent_directory(self, model, tmp_path):
        path = tmp_path / 'nested' / 'dir' / 'model.dat'
        save_model(model, path)
        assert load_model(path).gene_count == 2

    def test_predictions_match_individual(self, model_file, trained, training_data):
        ind, table = trained
        X, _ = training_data
        rows = np.vstack([X, [[-3.0], [0.0], [7.5]]])
        np.testing.assert_allclose(predict(load_model(model_file), rows), ind.predict(rows, table))

    def test_predictions_match_evolved_individual(self, tmp_path):
        rng = np.random.default_rng(4)
        X, y = validate_training_data(rng.normal(size=25), rng.uniform(-2, 2, size=(25, 2)))
        config = RunConfig(popsize=10, maxiter=3, goal=1.0, maxpass=1, nthreads=1, verbose=0)
        result = EvolutionEngine(config, X, y).evolve()

        path = tmp_path / 'evolved.dat'
        save_model(PersistedModel.from_individual(result.best, result.symbol_table), path)
        rows = rng.uniform(-5, 5, size=(40, 2))
        np.testing.assert_allclose(
            predict(load_model(path), rows),
            result.best.predict(rows, result.symbol_table),
        )

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_model(tmp_path / 'nope.dat')

    def test_truncated_file(self, model_file):
        text = model_file.read_text()
        model_file.write_text(text[:len(text) // 2])
        with pytest.raises(FormatError, match='not valid JSON'):
            load_model(model_file)

    def test_empty_file(self, model_file):
        model_file.write_text('')
        with pytest.raises(FormatError):
            load_model(model_file)

    def test_not_an_object(self, model_file):
        model_file.write_text('[1, 2, 3]')
        with pytest.raises(FormatError):
            load_model(model_file)

    @pytest.mark.parametrize('change, message', [
        (lambda d: d.update(format='other'), 'Not a gepr model'),
        (lambda d: d.update(format_version=2), 'Unsupported'),
        (lambda d: d['symbol_table'].update(id='x-ops'), 'Unknown symbol table'),
        (lambda d: d['symbol_table'].update(version=7), 'Unknown symbol table'),
        (lambda d: d['symbol_table']['operators'].append('tanh'), 'larger'),
        (lambda d: d['symbol_table']['operators'].reverse(), 'differs'),
        (lambda d: d.update(gene_count=3), 'Gene count'),
        (lambda d: d.update(head_length=2), 'Tail length'),
        (lambda d: d['genes'][0].__setitem__(2, 50), 'outside'),
        (lambda d: d['genes'][1].__setitem__(1, 0), 'tail'),
        (lambda d: d['genes'][0].__setitem__(0, 1.5), 'symbol indices'),
        (lambda d: d.update(coefficients=[1.0]), 'one coefficient per gene'),
        (lambda d: d['coefficients'].__setitem__(0, float('nan')), 'non-finite'),
        (lambda d: d.update(intercept=float('inf')), 'non-finite'),
        (lambda d: d.pop('genes'), 'missing field'),
    ])
    def test_corrupt_models(self, model_file, change, message):
        rewrite(model_file, change)
        with pytest.raises(FormatError, match=message):
            load_model(model_file)


class TestScorer:
    """Tests for scoring with a stored model."""

    def test_predict_matches_formula(self, model, training_data):
        X, y = training_data
        np.testing.assert_allclose(Scorer(model).predict(X), y, atol=1e-8)

    def test_single_column_input(self, model):
        predictions = predict(model, [0.0, 1.0])
        assert predictions.shape == (2,)
        np.testing.assert_allclose(predictions, [1.0, 6.0], atol=1e-8)

    def test_wrong_column_count(self, model):
        with pytest.raises(ValidationError, match='same number of columns'):
            predict(model, np.ones((3, 2)))

    def test_missing_values(self, model):
        with pytest.raises(ValidationError, match='missing value'):
            predict(model, [[1.0], [np.nan]])


class TestModelStore:
    """Tests for the id-addressed model directory."""

    def test_save_load_list_delete(self, model, tmp_path):
        store = ModelStore(tmp_path / 'store')
        model_id = store.save(model)

        assert model_id.startswith('mdl_')
        assert store.exists(model_id)
        assert store.load(model_id).genes == model.genes

        listing = store.list_models()
        assert [m['model_id'] for m in listing] == [model_id]
        assert listing[0]['gene_count'] == 2

        assert store.delete(model_id)
        assert not store.exists(model_id)
        assert store.list_models() == []
        assert not store.delete(model_id)

    def test_unknown_and_unsafe_ids(self, tmp_path):
        store = ModelStore(tmp_path)
        with pytest.raises(KeyError):
            store.load('mdl_missing')
        with pytest.raises(KeyError):
            store.load('../index')
        assert not store.exists('')
