import pytest
from flask_jwt_extended import create_access_token

from wheel_be.error_codes import ErrorCodes
from wheel_be.services.wheel_admin_service import WheelAdminService


@pytest.fixture
def auth_headers(app):
    token = create_access_token(identity='42')
    return {'Authorization': f'Bearer {token}'}


def test_config_without_live_campaign(client):
    response = client.get('/api/wheel/config')
    assert response.status_code == 200
    data = response.get_json()
    assert data['is_enabled'] is False
    assert data['segments'] == []


def test_config_lists_segments_without_costs(client, make_campaign):
    campaign = make_campaign([0, 10, 25])
    response = client.get('/api/wheel/config')
    assert response.status_code == 200
    data = response.get_json()
    assert data['is_enabled'] is True
    assert data['campaign_id'] == campaign.id
    assert [s['position'] for s in data['segments']] == [0, 1, 2]
    assert all('cost' not in s for s in data['segments'])


def test_spin_requires_token(client, make_campaign):
    make_campaign([0, 10])
    response = client.post('/api/wheel/spin', json={})
    assert response.status_code == 401
    assert response.get_json()['error_code'] == ErrorCodes.UNAUTHENTICATED


def test_spin_success(client, make_campaign, auth_headers):
    campaign = make_campaign([0, 10])
    response = client.post('/api/wheel/spin', json={'campaign_id': campaign.id}, headers=auth_headers)
    assert response.status_code == 200
    data = response.get_json()
    assert data['status'] is True
    result = data['result']
    assert result['user_id'] == 42
    assert result['campaign_id'] == campaign.id
    assert result['slice_position'] in (0, 1)
    assert 'cost' not in result
    assert data['spin_status']['window_spins'] == 1


def test_spin_without_body_uses_live_campaign(client, make_campaign, auth_headers):
    campaign = make_campaign([0, 10])
    response = client.post('/api/wheel/spin', headers=auth_headers)
    assert response.status_code == 200
    assert response.get_json()['result']['campaign_id'] == campaign.id


def test_spin_rejects_client_supplied_outcome(client, make_campaign, auth_headers):
    make_campaign([0, 10])
    response = client.post('/api/wheel/spin', json={'slice_position': 1, 'cost': 0}, headers=auth_headers)
    assert response.status_code == 422
    data = response.get_json()
    assert data['error_code'] == ErrorCodes.VALIDATION_ERROR
    assert data['details']['error_code'] == ErrorCodes.OUTCOME_TAMPERING
    assert data['details']['fields'] == ['cost', 'slice_position']


def test_spin_rejects_unknown_fields(client, make_campaign, auth_headers):
    make_campaign([0, 10])
    response = client.post('/api/wheel/spin', json={'lucky': True}, headers=auth_headers)
    assert response.status_code == 422
    assert response.get_json()['error_code'] == ErrorCodes.VALIDATION_ERROR


def test_spin_rate_limited(client, make_campaign, auth_headers):
    make_campaign([0, 10], spins_per_window=1)
    assert client.post('/api/wheel/spin', headers=auth_headers).status_code == 200

    response = client.post('/api/wheel/spin', headers=auth_headers)
    assert response.status_code == 429
    data = response.get_json()
    assert data['error_code'] == ErrorCodes.SPIN_RATE_LIMITED
    assert 'reset_at' in data['details']
    retry_after = int(response.headers['Retry-After'])
    assert 0 < retry_after <= 12 * 3600


def test_spin_on_paused_campaign(client, make_campaign, auth_headers):
    campaign = make_campaign([0, 10])
    WheelAdminService().set_campaign_status(campaign.id, 'paused')
    response = client.post('/api/wheel/spin', json={'campaign_id': campaign.id}, headers=auth_headers)
    assert response.status_code == 409
    assert response.get_json()['error_code'] == ErrorCodes.CAMPAIGN_NOT_LIVE


def test_spin_status(client, make_campaign, auth_headers):
    make_campaign([0, 10], spins_per_window=3)
    client.post('/api/wheel/spin', headers=auth_headers)

    response = client.get('/api/wheel/spin-status', headers=auth_headers)
    assert response.status_code == 200
    data = response.get_json()
    assert data['wheel_enabled'] is True
    assert data['spins_remaining'] == 2
    assert data['next_reset_time'] is not None


def test_spin_history_hides_costs(client, make_campaign, auth_headers):
    make_campaign([0, 10])
    for _ in range(3):
        client.post('/api/wheel/spin', headers=auth_headers)

    response = client.get('/api/wheel/spins', headers=auth_headers)
    assert response.status_code == 200
    spins = response.get_json()['spins']
    assert len(spins) == 3
    assert all('cost' not in s and 'user_id' not in s for s in spins)


def test_request_id_is_echoed(client):
    response = client.get('/api/wheel/config', headers={'X-Request-ID': 'abc-123'})
    assert response.headers['X-Request-ID'] == 'abc-123'
