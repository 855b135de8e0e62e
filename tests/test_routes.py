"""Tests for the dashboard HTTP API and the Socket.IO channel."""

from datetime import datetime, timedelta

from vitalwatch.extensions import db, socketio
from vitalwatch.models import Alert, Patient
from vitalwatch.publisher import SocketIOPublisher
from vitalwatch.thresholds import emergency_alert, evaluate


def login(client, username='admin', password='admin123'):
    return client.post('/api/auth/login', json={'username': username, 'password': password})


class TestAuth:

    def test_login_and_profile(self, client):
        response = login(client)
        assert response.status_code == 200
        data = response.get_json()
        assert data['user']['username'] == 'admin'
        assert data['user']['role'] == 'doctor'

        me = client.get('/api/me', headers={'Authorization': f"Bearer {data['token']}"})
        assert me.status_code == 200
        assert me.get_json()['email'] == 'admin@example.com'

    def test_wrong_password(self, client):
        response = login(client, password='nope')
        assert response.status_code == 401
        assert response.get_json() == {'error': 'Invalid credentials'}

    def test_profile_requires_token(self, client):
        assert client.get('/api/me').status_code == 401


class TestVitalsApi:

    def test_latest_vitals_joined_with_patient(self, client, pipeline):
        pipeline.persister.record('P001', 72, 97)
        [row] = client.get('/api/vitals').get_json()
        assert row['patient_id'] == 'P001'
        assert row['name'] == 'ESP32 Patient'
        assert (row['heart_rate'], row['spo2']) == (72, 97)

    def test_patient_vitals_newest_first(self, client, pipeline):
        pipeline.persister.record('P001', 70, 98, timestamp=datetime(2024, 5, 1, 12, 0))
        pipeline.persister.record('P001', 75, 97, timestamp=datetime(2024, 5, 1, 12, 5))
        rows = client.get('/api/vitals/P001').get_json()
        assert [r['heart_rate'] for r in rows] == [75, 70]

    def test_history_since(self, client, pipeline):
        pipeline.persister.record('P001', 70, 98, timestamp=datetime(2024, 5, 1, 12, 0))
        pipeline.persister.record('P001', 75, 97, timestamp=datetime(2024, 5, 1, 13, 0))
        rows = client.get('/api/vitals/history?since=2024-05-01T12:30:00Z').get_json()
        assert [r['heart_rate'] for r in rows] == [75]

    def test_history_rejects_bad_since(self, client):
        response = client.get('/api/vitals/history?since=yesterday')
        assert response.status_code == 400
        assert 'error' in response.get_json()


class TestAlertsApi:

    def test_active_alerts_exclude_acknowledged(self, client, pipeline):
        pipeline.persister.ensure_patient('P001')
        first = pipeline.disseminator.raise_alert('P001', evaluate(130, None)[0])
        second = pipeline.disseminator.raise_alert('P001', emergency_alert('Patient fell'))
        pipeline.disseminator.acknowledge(first['id'])

        rows = client.get('/api/alerts').get_json()
        assert [r['id'] for r in rows] == [second['id']]
        assert rows[0]['name'] == 'ESP32 Patient'

        history = client.get('/api/alerts/history').get_json()
        assert {r['id'] for r in history} == {first['id'], second['id']}

    def test_acknowledge_route(self, client, pipeline, publisher):
        pipeline.persister.ensure_patient('P001')
        record = pipeline.disseminator.raise_alert('P001', emergency_alert('Patient fell'))

        response = client.put(f"/api/alerts/{record['id']}/acknowledge")
        assert response.status_code == 200
        assert response.get_json() == {'message': 'Alert acknowledged'}
        assert db.session.get(Alert, record['id']).acknowledged is True
        assert publisher.of('alerts:update') == [{'id': record['id'], 'acknowledged': True}]

    def test_acknowledge_unknown(self, client):
        response = client.put('/api/alerts/999/acknowledge')
        assert response.status_code == 404
        assert response.get_json() == {'error': 'Alert not found'}


class TestDashboard:

    def test_stats(self, client, pipeline, add_staff):
        add_staff('nina', 'nina@example.com', role='nurse')
        db.session.add(Patient(id='P002', name='Jane Doe'))
        db.session.commit()
        pipeline.persister.record('P001', 72, 97)
        pipeline.persister.record('P001', 70, 98, timestamp=datetime.utcnow() - timedelta(hours=1))
        pipeline.disseminator.raise_alert('P001', emergency_alert('Patient fell'))
        pipeline.disseminator.raise_alert('P001', evaluate(130, None)[0])

        stats = client.get('/api/dashboard/stats').get_json()
        assert stats == {
            'totalPatients': 2,
            'activeMonitors': 1,
            'criticalAlerts': 1,
            'totalNurses': 1,
        }

    def test_health(self, client):
        data = client.get('/api/health').get_json()
        assert data['status'] == 'ok'
        assert data['mqtt_connected'] is False

    def test_unknown_endpoint(self, client):
        response = client.get('/api/nowhere')
        assert response.status_code == 404
        assert response.get_json() == {'error': 'Endpoint not found'}


class TestSocketChannel:

    def test_connect_greeting(self, app):
        socket_client = socketio.test_client(app)
        assert socket_client.is_connected()
        received = socket_client.get_received()
        assert received[0]['name'] == 'connection_response'
        assert received[0]['args'][0] == {'data': 'Connected to VitalWatch'}
        socket_client.disconnect()

    def test_publisher_broadcasts_to_clients(self, app):
        socket_client = socketio.test_client(app)
        socket_client.get_received()

        SocketIOPublisher(socketio).publish('vitals', {'patient_id': 'P001', 'heart_rate': 72})

        [event] = socket_client.get_received()
        assert event['name'] == 'vitals'
        assert event['args'][0] == {'patient_id': 'P001', 'heart_rate': 72}
        socket_client.disconnect()
