"""
Tests for the train/score entry points and the command line interface.

Run with: python -m pytest tests/test_api.py -v
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from gepr import FormatError, RunConfig, ValidationError, fit, score, train
from gepr.__main__ import main
from gepr.core.persistence import load_model


QUICK = dict(popsize=8, maxiter=3, maxpass=1, nthreads=1, verbose=0)


@pytest.fixture
def data():
    rng = np.random.default_rng(11)
    x = rng.uniform(-1, 1, size=(20, 2))
    y = x[:, 0] ** 2 - x[:, 1]
    return x, y


class TestValidation:
    """Every bad argument is rejected before any work starts."""

    def test_length_mismatch(self, data, tmp_path):
        x, y = data
        with pytest.raises(ValidationError, match='Lengths of x and y do not match'):
            train(y[:-1], x, sol_file=str(tmp_path / 'm.dat'), **QUICK)
        assert not (tmp_path / 'm.dat').exists()

    @pytest.mark.parametrize('bad', [np.nan, np.inf])
    def test_non_finite_input(self, data, tmp_path, bad):
        x, y = data
        x = x.copy()
        x[3, 1] = bad
        with pytest.raises(ValidationError):
            train(y, x, sol_file=str(tmp_path / 'm.dat'), **QUICK)

    def test_missing_response(self, data, tmp_path):
        x, y = data
        y = y.copy()
        y[0] = np.nan
        with pytest.raises(ValidationError, match='y contains missing value'):
            train(y, x, sol_file=str(tmp_path / 'm.dat'), **QUICK)

    def test_single_row(self, tmp_path):
        with pytest.raises(ValidationError, match='At least 2 rows'):
            train([1.0], [[1.0]], sol_file=str(tmp_path / 'm.dat'), **QUICK)

    def test_non_numeric(self, tmp_path):
        with pytest.raises(ValidationError, match='numeric'):
            train(['a', 'b'], [[1.0], [2.0]], sol_file=str(tmp_path / 'm.dat'), **QUICK)

    @pytest.mark.parametrize('name, value', [
        ('px1', 1.5),
        ('px2', -0.1),
        ('pm', 2),
        ('maxiter', 1),
        ('maxiter', 10.5),
        ('headlen', 0),
        ('headlen', 101),
        ('popsize', 0),
        ('eliterate', 1.1),
        ('goal', -0.5),
        ('rseed', 0),
        ('nthreads', 0),
        ('verbose', 3),
        ('fit_method', 2),
        ('maxpass', 0),
        ('sol_file', ''),
        ('ngenes', 0),
        ('n_constants', -1),
        ('const_range', (1.0, -1.0)),
    ])
    def test_parameter_ranges(self, data, tmp_path, name, value):
        x, y = data
        params = dict(QUICK, sol_file=str(tmp_path / 'm.dat'))
        params[name] = value
        with pytest.raises(ValidationError, match=name):
            train(y, x, **params)

    def test_classification_not_implemented(self, data, tmp_path):
        x, y = data
        with pytest.raises(ValidationError, match='not implemented'):
            train(y, x, fit_method=1, sol_file=str(tmp_path / 'm.dat'), **QUICK)

    def test_variable_names_must_match_columns(self, data, tmp_path):
        x, y = data
        path = tmp_path / 'm.dat'
        with pytest.raises(ValidationError, match='variable_names'):
            train(y, x, variable_names=['a'], sol_file=str(path), **QUICK)
        assert not path.exists()

    def test_validation_error_is_value_error(self):
        with pytest.raises(ValueError):
            RunConfig(popsize=-1)

    def test_config_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ValidationError, match='Unknown configuration keys'):
            RunConfig.from_dict({'popsize': 10, 'generations': 3})

    def test_config_defaults(self):
        config = RunConfig()
        assert (config.px1, config.px2, config.pm) == (0.4, 0.1, 0.3)
        assert (config.maxiter, config.headlen, config.popsize) == (1000, 5, 100)
        assert (config.goal, config.rseed, config.maxpass) == (0.95, 8888, 3)
        assert config.sol_file == 'gep_sol.dat'
        assert config.n_elite == 10

    @pytest.mark.parametrize('eliterate, popsize, expected', [
        (0.07, 100, 7),
        (0.14, 100, 14),
        (0.1, 100, 10),
        (0.15, 10, 2),
        (1.0, 10, 10),
    ])
    def test_elite_count_rounds_up_exact_products(self, eliterate, popsize, expected):
        assert RunConfig(eliterate=eliterate, popsize=popsize).n_elite == expected


class TestTrainScore:
    """End-to-end training and scoring."""

    def test_train_returns_path_and_writes_model(self, data, tmp_path):
        x, y = data
        path = train(y, x, sol_file=str(tmp_path / 'model.dat'), **QUICK)
        assert path == str(tmp_path / 'model.dat')
        model = load_model(path)
        assert model.n_variables == 2
        assert model.gene_count == 3
        assert model.metadata['config']['popsize'] == 8

    def test_verbose_prints_save_message(self, data, tmp_path, capsys):
        x, y = data
        path = str(tmp_path / 'model.dat')
        train(y, x, sol_file=path, **dict(QUICK, verbose=1))
        assert f"GEP model saved to file {path}" in capsys.readouterr().out

    def test_silent_when_not_verbose(self, data, tmp_path, capsys):
        x, y = data
        train(y, x, sol_file=str(tmp_path / 'model.dat'), **QUICK)
        assert capsys.readouterr().out == ''

    def test_boundary_scenario(self, tmp_path):
        """headlen=1, one variable, popsize=4, maxiter=2, goal=1.0."""
        rng = np.random.default_rng(21)
        x = rng.uniform(0, 1, size=12)
        y = rng.normal(size=12)
        path, result = fit(y, x, headlen=1, popsize=4, maxiter=2, goal=1.0, maxpass=1,
                           nthreads=1, verbose=0, sol_file=str(tmp_path / 'b.dat'))

        assert result.generations_completed == 2
        assert not result.converged
        predictions = score(np.array([[0.1], [0.5], [0.9]]), path)
        assert predictions.shape == (3,)
        assert np.all(np.isfinite(predictions))

    @pytest.mark.parametrize('rseed', [8888, 1, 7, 23])
    def test_end_to_end_scenario(self, tmp_path, rseed):
        """Response equal to the single input converges and scores back."""
        y = np.array([1.0, 2.0, 3.0, 4.0])
        x = y.copy()
        path, result = fit(y, x, px1=0.4, px2=0.1, pm=0.3, popsize=20, headlen=3, goal=0.99,
                           maxiter=50, rseed=rseed, nthreads=1, verbose=0,
                           sol_file=str(tmp_path / 'e.dat'))

        assert result.converged
        assert result.best_fitness >= 0.99
        assert result.generations_completed <= 50
        np.testing.assert_allclose(score(x, path), y, atol=0.25)

    def test_seeded_training_is_reproducible(self, data, tmp_path):
        x, y = data
        first = load_model(train(y, x, rseed=5, sol_file=str(tmp_path / 'a.dat'), **QUICK))
        second = load_model(train(y, x, rseed=5, sol_file=str(tmp_path / 'b.dat'), **QUICK))
        assert first.genes == second.genes
        assert first.coefficients == second.coefficients
        assert first.constants == second.constants

    def test_two_workers_match_serial(self, data, tmp_path):
        x, y = data
        serial = load_model(train(y, x, sol_file=str(tmp_path / 's.dat'), **QUICK))
        parallel = load_model(train(y, x, sol_file=str(tmp_path / 'p.dat'),
                                    **dict(QUICK, nthreads=2)))
        assert serial.genes == parallel.genes
        assert serial.fitness == parallel.fitness

    def test_score_validates_columns(self, data, tmp_path):
        x, y = data
        path = train(y, x, sol_file=str(tmp_path / 'model.dat'), **QUICK)
        with pytest.raises(ValidationError):
            score(np.ones((4, 3)), path)

    def test_score_leaves_model_directory_untouched(self, data, tmp_path):
        x, y = data
        path = Path(train(y, x, sol_file=str(tmp_path / 'm.dat'), **QUICK))
        for stray in tmp_path.iterdir():
            if stray != path:
                stray.unlink()
        before = sorted(p.name for p in tmp_path.iterdir())
        score(x, str(path))
        assert sorted(p.name for p in tmp_path.iterdir()) == before == ['m.dat']

    def test_score_missing_model(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            score(np.ones((2, 1)), str(tmp_path / 'missing.dat'))

    def test_score_corrupt_model(self, tmp_path):
        path = tmp_path / 'bad.dat'
        path.write_text('{"format": "gepr-model"')
        with pytest.raises(FormatError):
            score(np.ones((2, 1)), str(path))


class TestCommandLine:
    """Tests for python -m gepr."""

    CLI_QUICK = ['--popsize', '8', '--maxiter', '3', '--maxpass', '1',
                 '--nthreads', '1', '--verbose', '0']

    @pytest.fixture
    def csv_file(self, tmp_path, data):
        x, y = data
        path = tmp_path / 'data.csv'
        np.savetxt(path, np.column_stack([y, x]), delimiter=',',
                   header='y,a,b', comments='')
        return path

    def test_train_and_score(self, csv_file, tmp_path, capsys):
        model_path = tmp_path / 'model.dat'
        code = main(['train', str(csv_file), '--skip-header', '1', '--target-column', '0',
                     '-o', str(model_path)] + self.CLI_QUICK)
        assert code == 0
        assert load_model(model_path).n_variables == 2

        features = tmp_path / 'features.csv'
        np.savetxt(features, np.loadtxt(csv_file, delimiter=',', skiprows=1)[:, 1:],
                   delimiter=',')
        out = tmp_path / 'predictions.csv'
        assert main(['score', str(features), '-m', str(model_path), '-o', str(out)]) == 0
        assert np.loadtxt(out, delimiter=',').shape == (20,)

    def test_demo_with_history_and_plot(self, tmp_path, capsys):
        model_path = tmp_path / 'demo.dat'
        history_path = tmp_path / 'history.json'
        plot_path = tmp_path / 'trajectory.png'
        code = main(['demo', '--dataset', 'linear', '-o', str(model_path),
                     '--history', str(history_path), '--plot', str(plot_path)] + self.CLI_QUICK)
        assert code == 0
        assert model_path.exists()
        assert history_path.exists()
        assert plot_path.stat().st_size > 0
        assert capsys.readouterr().out == ''

    def test_corrupt_model_exit_code(self, csv_file, tmp_path, capsys):
        bad = tmp_path / 'bad.dat'
        bad.write_text('not json')
        code = main(['score', str(csv_file), '--skip-header', '1', '-m', str(bad)])
        assert code == 2
        assert 'Error' in capsys.readouterr().err

    def test_invalid_parameter_exit_code(self, csv_file, tmp_path, capsys):
        code = main(['train', str(csv_file), '--skip-header', '1', '--popsize', '0',
                     '-o', str(tmp_path / 'm.dat')])
        assert code == 2
        assert 'popsize' in capsys.readouterr().err
