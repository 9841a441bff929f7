"""
Flask web application for gepr.

Provides a small JSON API to train models on posted data or toy datasets,
inspect stored models, and score new rows.
"""

import os

from flask import Flask, jsonify, request
import numpy as np

from ..api import fit_config
from ..config import RunConfig, validate_training_data
from ..core.persistence import ModelStore
from ..core.scoring import predict
from ..datasets.toy import get_dataset, list_datasets
from ..exceptions import FormatError, ValidationError

# Web requests run in the server process; keep them bounded
MAX_GENERATIONS = 2000
WEB_DEFAULTS = {'nthreads': 1, 'verbose': 0, 'maxiter': 200, 'maxpass': 1}


def create_app(model_dir=None):
    """
    Create and configure the Flask application.

    Args:
        model_dir: Directory trained models are stored in (default:
            $GEPR_MODEL_DIR or ./models)
    """
    if model_dir is None:
        model_dir = os.environ.get('GEPR_MODEL_DIR', 'models')

    app = Flask(__name__)
    store = ModelStore(model_dir)
    app.config['MODEL_STORE'] = store

    @app.errorhandler(ValidationError)
    @app.errorhandler(FormatError)
    def handle_bad_request(error):
        return jsonify({'error': str(error)}), 400

    @app.route('/api/datasets')
    def api_datasets():
        """List available datasets."""
        return jsonify(list_datasets())

    @app.route('/api/models')
    def api_models():
        """List stored models."""
        return jsonify({'models': store.list_models()})

    @app.route('/api/model/<model_id>')
    def api_model(model_id):
        """Get the summary of a stored model."""
        try:
            model = store.load(model_id)
        except KeyError:
            return jsonify({'error': f'Model {model_id} not found'}), 404
        return jsonify({'model_id': model_id, **model.summary(), 'metadata': model.metadata})

    @app.route('/api/train', methods=['POST'])
    def api_train():
        """Train a model on posted data (x, y) or a named toy dataset."""
        data = request.get_json(silent=True) or {}

        dataset_name = data.get('dataset')
        if dataset_name is not None:
            try:
                x, y = get_dataset(dataset_name)
            except ValueError as e:
                return jsonify({'error': str(e)}), 404
        elif 'x' in data and 'y' in data:
            x, y = data['x'], data['y']
        else:
            return jsonify({'error': "Provide either 'dataset' or both 'x' and 'y'"}), 400

        X, y = validate_training_data(y, x)

        overrides = data.get('config') or {}
        if not isinstance(overrides, dict):
            raise ValidationError("config must be an object")
        settings = {**WEB_DEFAULTS, **overrides}
        settings['sol_file'] = str(store.new_path())
        config = RunConfig.from_dict(settings)
        if config.maxiter > MAX_GENERATIONS:
            config = config.replace(maxiter=MAX_GENERATIONS)

        path, result = fit_config(config, X, y, variable_names=data.get('variable_names'))
        model_id = store.register(path)

        return jsonify({
            'model_id': model_id,
            'fitness': result.best_fitness,
            'formula': store.load(model_id).formula(),
            'converged': result.converged,
            'rounds': result.rounds_completed,
            'generations': result.generations_completed,
            'trajectory': result.fitness_trajectory,
        })

    @app.route('/api/score', methods=['POST'])
    def api_score():
        """Score rows with a stored model."""
        data = request.get_json(silent=True) or {}
        model_id = data.get('model')
        if model_id is None or 'x' not in data:
            return jsonify({'error': "Provide 'model' and 'x'"}), 400
        try:
            model = store.load(str(model_id))
        except KeyError:
            return jsonify({'error': f'Model {model_id} not found'}), 404

        predictions = predict(model, data['x'])
        return jsonify({'model_id': model_id, 'predictions': np.asarray(predictions).tolist()})

    return app


def main():
    """Run the Flask development server."""
    app = create_app()
    print("\n" + "="*60)
    print("GEPR - Gene Expression Programming Regression")
    print("="*60)
    print("\nStarting server at http://localhost:5000")
    print("Press Ctrl+C to stop\n")
    app.run(debug=True, port=5000)


if __name__ == '__main__':
    main()
