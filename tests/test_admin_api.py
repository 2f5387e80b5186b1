"""Tests for the administration endpoints."""


class TestAdminUsers:

    def test_counts(self, client, seeded):
        body = client.get('/api/admin/users').get_json()
        by_email = {row['email']: row for row in body}
        assert by_email[seeded.patient_email]['counts'] == {
            'doctor_appointments': 0, 'patient_appointments': 1, 'consultations': 0,
        }

    def test_create(self, client):
        response = client.post('/api/admin/users', json={'name': 'Dr. Carlos Rodríguez',
                                                         'email': 'carlos@summari.test', 'role': 'doctor'})
        assert response.status_code == 201
        assert response.get_json()['role'] == 'DOCTOR'


class TestAdminAppointments:

    def test_newest_first(self, client, seeded):
        client.post('/api/admin/appointments', json={
            'doctor_id': seeded.doctor_id, 'patient_id': seeded.patient_id, 'date': '2027-01-10T09:00:00',
        })
        body = client.get('/api/admin/appointments').get_json()
        assert [a['date'][:10] for a in body] == ['2027-01-10', '2026-10-19']


class TestAnalytics:

    def test_snapshot_then_report(self, client, seeded):
        assert client.post('/api/admin/analytics').status_code == 201
        body = client.get('/api/admin/analytics', query_string={'days': 7}).get_json()
        assert len(body['analytics']) == 1
        assert set(body['summary']) >= {'total_consultations', 'completion_rate', 'cancellation_rate',
                                        'average_duration', 'total_revenue', 'active_users'}

    def test_negative_days(self, client):
        assert client.get('/api/admin/analytics', query_string={'days': -1}).status_code == 400


class TestSettings:

    def test_defaults(self, client):
        body = client.get('/api/admin/settings').get_json()
        assert body['consultation_price'] == 50.0
        assert body['currency'] == 'USD'
        assert body['cancellation_deadline'] == 24

    def test_update(self, client):
        response = client.post('/api/admin/settings', json={'consultation_price': '80',
                                                            'allow_cancellation': 'false'})
        assert response.status_code == 201
        body = client.get('/api/admin/settings').get_json()
        assert body['consultation_price'] == 80.0
        assert body['allow_cancellation'] is False
        assert body['time_zone'] == 'America/New_York'

    def test_invalid(self, client):
        response = client.post('/api/admin/settings', json={'cancellation_deadline': 'soon'})
        assert response.status_code == 400
