import io
from unittest.mock import MagicMock

import pytest

# Temporarily add the parent directory and the test app to the path to allow imports
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'testapp')))

from app import GENERIC_ERROR, create_app
from tabula_agents import DataAnalyzer, FormulaGenerator

ROWS = [
    {'region': 'West', 'revenue': '100', 'cost': '40'},
    {'region': 'East', 'revenue': '300', 'cost': '120'},
    {'region': 'West', 'revenue': '200', 'cost': '150'},
]


@pytest.fixture
def client():
    app = create_app(analyzer=DataAnalyzer(insight_fn=None), formula_generator=FormulaGenerator(bot=None))
    app.config['TESTING'] = True
    return app.test_client()


def test_sample(client):
    response = client.get('/api/sample')
    assert response.status_code == 200
    body = response.get_json()
    assert len(body['data']) == 15
    assert body['columns'][0] == 'name'
    assert body['prompts']


def test_analyze(client):
    response = client.post('/api/analyze', json={'data': ROWS, 'prompt': 'summarize by region'})
    assert response.status_code == 200
    body = response.get_json()
    assert body['summary'].startswith("Smart Analysis: Grouped 3 records by region into 2 categories.")
    assert [r['region'] for r in body['data']] == ['West', 'East']


@pytest.mark.parametrize("payload", [
    {'prompt': 'summarize'},
    {'data': [], 'prompt': 'summarize'},
    {'data': 'region,revenue', 'prompt': 'summarize'},
    {'data': ROWS, 'prompt': '  '},
])
def test_analyze_bad_request(client, payload):
    """
    Missing data or prompt is a 400 with an actionable hint.
    """
    response = client.post('/api/analyze', json=payload)
    assert response.status_code == 400
    body = response.get_json()
    assert body['error']
    assert body['hint']


def test_unexpected_errors_are_generic():
    analyzer = MagicMock()
    analyzer.analyze.side_effect = RuntimeError("database password is hunter2")
    app = create_app(analyzer=analyzer, formula_generator=FormulaGenerator(bot=None))
    response = app.test_client().post('/api/analyze', json={'data': ROWS, 'prompt': 'top 3'})
    assert response.status_code == 500
    assert response.get_json() == {'error': GENERIC_ERROR}


def test_unknown_route_is_404(client):
    assert client.get('/api/nope').status_code == 404


def test_generate_formula(client):
    response = client.post('/api/generate-formula', json={'data': ROWS, 'prompt': 'calculate profit margin'})
    assert response.status_code == 200
    assert response.get_json()['formula'] == "=(revenue - cost) / revenue"


def test_apply_formula(client):
    response = client.post('/api/apply-formula', json={
        'data': ROWS, 'formula': '=revenue - cost', 'column': 'profit',
    })
    assert response.status_code == 200
    body = response.get_json()
    assert body['columns'] == ['region', 'revenue', 'cost', 'profit']
    assert [r['profit'] for r in body['data']] == [60, 180, 50]


def test_apply_formula_errors_stay_in_cells(client):
    response = client.post('/api/apply-formula', json={'data': ROWS, 'formula': '=SUM(', 'column': 'x'})
    assert response.status_code == 200
    assert {r['x'] for r in response.get_json()['data']} == {'#ERROR'}


def test_apply_formula_requires_column(client):
    response = client.post('/api/apply-formula', json={'data': ROWS, 'formula': '=1', 'column': ''})
    assert response.status_code == 400


def test_ingest_text(client):
    response = client.post('/api/ingest', json={'text': 'a,b\n1,2\n', 'kind': 'csv'})
    assert response.status_code == 200
    assert response.get_json() == {'data': [{'a': '1', 'b': '2'}], 'columns': ['a', 'b'], 'row_count': 1}


def test_ingest_upload(client):
    response = client.post(
        '/api/ingest',
        data={'file': (io.BytesIO(b'a,b\n1,2\n3,4\n'), 'numbers.csv')},
        content_type='multipart/form-data',
    )
    assert response.status_code == 200
    assert response.get_json()['row_count'] == 2


def test_ingest_empty_is_bad_request(client):
    assert client.post('/api/ingest', json={'text': ''}).status_code == 400


def test_export_csv(client):
    response = client.post('/api/export', json={'data': ROWS, 'kind': 'csv', 'fileName': 'report.xlsx'})
    assert response.status_code == 200
    assert 'report.csv' in response.headers['Content-Disposition']
    assert response.data.decode('utf-8').splitlines()[0] == 'region,revenue,cost'


def test_export_workbook(client):
    response = client.post('/api/export', json={'data': ROWS, 'kind': 'xlsx'})
    assert response.status_code == 200
    assert response.data[:2] == b'PK'
