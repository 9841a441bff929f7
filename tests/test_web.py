"""
Tests for the Flask web API.

Run with: python -m pytest tests/test_web.py -v
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from gepr.web.app import create_app


QUICK_CONFIG = {'popsize': 8, 'maxiter': 3, 'maxpass': 1}


@pytest.fixture
def client(tmp_path):
    app = create_app(model_dir=str(tmp_path / 'models'))
    app.config['TESTING'] = True
    return app.test_client()


@pytest.fixture
def posted_data():
    rng = np.random.default_rng(9)
    x = rng.uniform(-1, 1, size=(15, 2))
    y = 2 * x[:, 0] - x[:, 1] ** 2
    return x.tolist(), y.tolist()


def train_model(client, posted_data):
    x, y = posted_data
    response = client.post('/api/train', json={'x': x, 'y': y, 'config': QUICK_CONFIG})
    assert response.status_code == 200
    return response.get_json()


class TestWebApi:
    """Tests for the JSON endpoints."""

    def test_datasets(self, client):
        response = client.get('/api/datasets')
        assert response.status_code == 200
        data = response.get_json()
        assert 'polynomial' in data
        assert 'function' not in data['polynomial']

    def test_train_on_posted_data(self, client, posted_data):
        result = train_model(client, posted_data)
        assert result['model_id'].startswith('mdl_')
        assert 0.0 <= result['fitness'] <= 1.0
        assert result['formula'].startswith('y = ')
        assert result['rounds'] == 1
        assert len(result['trajectory']) == result['generations'] + 1

    def test_train_on_dataset(self, client):
        response = client.post('/api/train', json={'dataset': 'linear', 'config': QUICK_CONFIG})
        assert response.status_code == 200
        assert response.get_json()['model_id']

    def test_unknown_dataset(self, client):
        response = client.post('/api/train', json={'dataset': 'nope'})
        assert response.status_code == 404

    def test_model_summary_and_listing(self, client, posted_data):
        model_id = train_model(client, posted_data)['model_id']

        response = client.get(f'/api/model/{model_id}')
        assert response.status_code == 200
        summary = response.get_json()
        assert summary['n_variables'] == 2
        assert summary['gene_count'] == 3
        assert summary['metadata']['config']['popsize'] == 8

        listing = client.get('/api/models').get_json()['models']
        assert [m['model_id'] for m in listing] == [model_id]

    def test_unknown_model(self, client):
        assert client.get('/api/model/mdl_missing').status_code == 404
        response = client.post('/api/score', json={'model': 'mdl_missing', 'x': [[1.0, 2.0]]})
        assert response.status_code == 404

    def test_score(self, client, posted_data):
        model_id = train_model(client, posted_data)['model_id']
        response = client.post('/api/score', json={'model': model_id, 'x': [[0.1, 0.2], [0.3, 0.4]]})
        assert response.status_code == 200
        predictions = response.get_json()['predictions']
        assert len(predictions) == 2
        assert all(np.isfinite(predictions))

    def test_score_wrong_columns(self, client, posted_data):
        model_id = train_model(client, posted_data)['model_id']
        response = client.post('/api/score', json={'model': model_id, 'x': [[0.1, 0.2, 0.3]]})
        assert response.status_code == 400
        assert 'columns' in response.get_json()['error']

    @pytest.mark.parametrize('payload', [
        {},
        {'x': [[1.0], [2.0]]},
        {'x': [[1.0], [2.0]], 'y': [1.0]},
        {'x': [[1.0], [2.0]], 'y': [1.0, 2.0], 'config': {'popsize': 0}},
        {'x': [[1.0], [2.0]], 'y': [1.0, 2.0], 'config': {'generations': 5}},
        {'x': [[1.0], [2.0]], 'y': [1.0, 2.0], 'config': {'fit_method': 1}},
    ])
    def test_bad_train_requests(self, client, payload):
        response = client.post('/api/train', json=payload)
        assert response.status_code == 400
        assert 'error' in response.get_json()

    @pytest.mark.parametrize('names', [['a'], ['a', 'b', 'c'], 'ab', [1, 2]])
    def test_train_rejects_bad_variable_names(self, client, posted_data, names):
        x, y = posted_data
        response = client.post('/api/train', json={'x': x, 'y': y, 'config': QUICK_CONFIG,
                                                   'variable_names': names})
        assert response.status_code == 400
        assert 'variable_names' in response.get_json()['error']

    def test_train_with_variable_names(self, client, posted_data):
        x, y = posted_data
        response = client.post('/api/train', json={'x': x, 'y': y, 'config': QUICK_CONFIG,
                                                   'variable_names': ['speed', 'load']})
        assert response.status_code == 200
        assert 'x0' not in response.get_json()['formula']

    def test_score_requires_model_and_rows(self, client):
        assert client.post('/api/score', json={'x': [[1.0]]}).status_code == 400
