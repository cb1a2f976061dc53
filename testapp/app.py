"""
Test app for tabula-agents.
A small Flask app exposing ingest, analyze, formula generation/application and export.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import io
import logging

from flask import Flask, request, jsonify, send_file
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

load_dotenv()

from tabula_agents import DataAnalyzer, FormulaGenerator, InvalidInput, Table, apply_formula, export, ingest
from tabula_agents import config
from tabula_agents.file_io import kind_from_filename
from data import SAMPLE_CSV, EXAMPLE_PROMPTS, EXAMPLE_FORMULA_PROMPTS

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong while processing your request. Please try again."


def _error(message, status, hint=None):
    body = {'error': message}
    if hint:
        body['hint'] = hint
    return jsonify(body), status


def _rows_from_request(payload):
    data = payload.get('data')
    if not isinstance(data, list) or not data or not all(isinstance(r, dict) for r in data):
        raise InvalidInput("Valid data array is required", hint="Upload a file or paste data first.")
    return data


def create_app(analyzer=None, formula_generator=None):
    """
    Build the Flask app.

    Args:
        analyzer: DataAnalyzer to use (default: one with remote insights when configured)
        formula_generator: FormulaGenerator to use (default: remote when configured)
    """
    app = Flask(__name__)
    analyzer = analyzer or DataAnalyzer()
    formula_generator = formula_generator or FormulaGenerator()

    @app.errorhandler(InvalidInput)
    def handle_invalid_input(e):
        return _error(str(e), 400, e.hint)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception("Unhandled error in %s", request.path)
        return _error(GENERIC_ERROR, 500)

    # --- Data ---

    @app.route('/api/sample')
    def sample():
        table = ingest(SAMPLE_CSV, 'csv')
        return jsonify({
            'data': table.records(),
            'columns': list(table.columns),
            'prompts': EXAMPLE_PROMPTS,
            'formula_prompts': EXAMPLE_FORMULA_PROMPTS,
        })

    @app.route('/api/ingest', methods=['POST'])
    def ingest_data():
        upload = request.files.get('file')
        if upload is not None:
            table = ingest(upload.read(), kind_from_filename(upload.filename))
        else:
            payload = request.get_json(silent=True) or {}
            table = ingest(payload.get('text', ''), payload.get('kind', 'csv'))
        return jsonify({'data': table.records(), 'columns': list(table.columns), 'row_count': len(table)})

    @app.route('/api/export', methods=['POST'])
    def export_data():
        payload = request.get_json(silent=True) or {}
        table = Table.from_records(_rows_from_request(payload))
        kind = payload.get('kind', 'csv')
        base_name = str(payload.get('fileName') or 'download').rsplit('.', 1)[0]
        content = export(table, kind)
        if isinstance(content, str):
            return send_file(io.BytesIO(content.encode('utf-8')), mimetype='text/csv',
                             as_attachment=True, download_name=f"{base_name}.csv")
        return send_file(io.BytesIO(content),
                         mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
                         as_attachment=True, download_name=f"{base_name}.xlsx")

    # --- Analyze tab ---

    @app.route('/api/analyze', methods=['POST'])
    def analyze():
        payload = request.get_json(silent=True) or {}
        rows = _rows_from_request(payload)
        prompt = (payload.get('prompt') or '').strip()
        if not prompt:
            return _error('Prompt is required', 400, 'Describe what you want to do with the data.')

        result = analyzer.analyze(rows, prompt)
        return jsonify(result.to_dict())

    # --- Formula tab ---

    @app.route('/api/generate-formula', methods=['POST'])
    def generate_formula():
        payload = request.get_json(silent=True) or {}
        rows = _rows_from_request(payload)
        prompt = (payload.get('prompt') or '').strip()
        if not prompt:
            return _error('Prompt is required', 400, 'Describe the formula you need.')

        headers = payload.get('headers') or list(rows[0].keys())
        return jsonify(formula_generator.generate_formula(prompt, rows[:5], headers))

    @app.route('/api/apply-formula', methods=['POST'])
    def apply():
        payload = request.get_json(silent=True) or {}
        rows = _rows_from_request(payload)
        formula = payload.get('formula') or ''
        column = (payload.get('column') or '').strip()
        table = apply_formula(Table.from_records(rows), formula, column)
        return jsonify({'data': table.records(), 'columns': list(table.columns)})

    return app


if __name__ == '__main__':
    logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    config.validate_config(logger=logger)
    print("Test app running at http://localhost:5003")
    create_app().run(debug=True, port=5003)
