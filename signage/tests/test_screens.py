"""
Integration tests for screen management endpoints and app-level handlers.

Tests:
- GET/POST /api/screens - List and create screens
- GET/DELETE /api/screens/<id> - Get and delete a screen
- GET /health - Health check
- JSON error handlers
"""

from datetime import datetime, timezone, timedelta

from signage.models import ActivationCode, DeviceBinding, Screen


class TestScreensAPI:
    """Tests for the screens collection and item endpoints."""

    def test_create_screen(self, client, auth_headers):
        """POST /screens should create a screen owned by the caller."""
        response = client.post('/api/screens', json={'name': 'Lobby', 'location': 'Hall'}, headers=auth_headers)

        assert response.status_code == 201
        data = response.get_json()
        assert data['name'] == 'Lobby'
        assert data['orientation'] == 'landscape'
        assert data['status'] == 'offline'
        assert data['playable'] is True

    def test_create_screen_requires_name(self, client, auth_headers):
        response = client.post('/api/screens', json={'location': 'Hall'}, headers=auth_headers)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'name is required'

    def test_create_screen_invalid_orientation(self, client, auth_headers):
        response = client.post('/api/screens', json={'name': 'Lobby', 'orientation': 'diagonal'}, headers=auth_headers)
        assert response.status_code == 400

    def test_list_only_own_screens(self, client, auth_headers, outsider_headers, sample_screen):
        assert client.get('/api/screens', headers=auth_headers).get_json()['count'] == 1
        assert client.get('/api/screens', headers=outsider_headers).get_json()['count'] == 0

    def test_get_screen(self, client, auth_headers, sample_screen):
        response = client.get('/api/screens/42', headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()['name'] == 'Lobby'

    def test_get_unowned_screen(self, client, outsider_headers, sample_screen):
        assert client.get('/api/screens/42', headers=outsider_headers).status_code == 404

    def test_screen_status_follows_heartbeat(self, client, auth_headers, db_session, sample_screen):
        sample_screen.last_heartbeat = datetime.now(timezone.utc) - timedelta(minutes=5)
        sample_screen.status = 'online'
        db_session.commit()

        assert client.get('/api/screens/42', headers=auth_headers).get_json()['status'] == 'offline'

    def test_delete_screen_removes_codes_and_bindings(self, client, auth_headers, db_session, sample_screen):
        code = client.post('/api/screens/42/activation-codes', headers=auth_headers).get_json()['code']
        client.post('/api/screens/activate', json={'code': code})

        response = client.delete('/api/screens/42', headers=auth_headers)

        assert response.status_code == 204
        db_session.expire_all()
        assert db_session.get(Screen, 42) is None
        assert ActivationCode.query.filter_by(screen_id=42).count() == 0
        assert DeviceBinding.query.filter_by(screen_id=42).count() == 0

    def test_delete_unowned_screen(self, client, outsider_headers, sample_screen):
        assert client.delete('/api/screens/42', headers=outsider_headers).status_code == 404


class TestAppHandlers:
    """Tests for the health check and JSON error handlers."""

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json()['status'] == 'healthy'

    def test_unknown_route_is_json_404(self, client):
        response = client.get('/api/does-not-exist')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'Not Found'

    def test_wrong_method_is_json_405(self, client):
        response = client.get('/api/screens/activate')

        assert response.status_code == 405
        assert response.get_json()['error'] == 'Method Not Allowed'
