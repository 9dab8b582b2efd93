from fastapi.testclient import TestClient

from aitrader.api import create_app


def test_root(client):
    response = client.get('/')
    assert response.status_code == 200
    assert response.json()['status'] == 'running'


def test_health_reports_store(client):
    assert client.get('/health').json() == {'status': 'healthy', 'store': 'sqlite'}


def test_members_are_latest_snapshot_sorted(client):
    response = client.get('/api/nasdaq100/members')

    assert response.status_code == 200
    assert response.json() == {'members': [
        {'symbol': 'AAPL', 'name': 'Apple Inc.'},
        {'symbol': 'MSFT', 'name': 'Microsoft Corporation'},
        {'symbol': 'NVDA', 'name': 'NVIDIA Corporation'},
    ]}
    assert response.headers['cache-control'] == 'public, s-maxage=3600, stale-while-revalidate=7200'


def test_members_without_snapshot_are_empty_and_uncached(config, store):
    with TestClient(create_app(config, store=store)) as client:
        response = client.get('/api/nasdaq100/members')

    assert response.json() == {'members': []}
    assert 'cache-control' not in response.headers


def test_price_lookup_normalizes_symbol(client):
    response = client.get('/api/stocks/price', params={'symbol': ' aapl '})

    assert response.status_code == 200
    assert response.json() == {
        'found': True,
        'symbol': 'AAPL',
        'companyName': 'Apple Inc.',
        'lastSalePrice': '$227.80',
        'netChange': '-2.30',
        'percentageChange': '-1.00%',
        'asOf': '2026-02-03',
    }
    assert response.headers['cache-control'] == 'public, s-maxage=300, stale-while-revalidate=600'


def test_price_unknown_symbol(client):
    response = client.get('/api/stocks/price', params={'symbol': 'zzzz'})

    assert response.status_code == 200
    assert response.json() == {'found': False, 'symbol': 'ZZZZ'}
    assert 'cache-control' not in response.headers


def test_price_requires_symbol(client):
    for params in ({}, {'symbol': '   '}):
        response = client.get('/api/stocks/price', params=params)
        assert response.status_code == 400
        assert response.json() == {'error': 'Missing symbol parameter'}


def test_members_are_empty_when_store_is_unavailable(offline_client):
    response = offline_client.get('/api/nasdaq100/members')

    assert response.status_code == 200
    assert response.json() == {'members': []}
    assert 'cache-control' not in response.headers


def test_price_and_health_when_store_is_unavailable(offline_client):
    response = offline_client.get('/api/stocks/price', params={'symbol': 'AAPL'})

    assert response.status_code == 500
    assert response.json()['error'].startswith('Cannot create database directory')
    assert offline_client.get('/health').json() == {'status': 'degraded', 'store': 'sqlite'}
