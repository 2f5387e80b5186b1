"""Shared pytest fixtures."""

import io
from datetime import datetime
from types import SimpleNamespace
from urllib.parse import urlsplit

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from summari import create_app, db
from summari.gateway import HttpGateway
from summari.models import User, Appointment


@pytest.fixture
def app(tmp_path):
    """Application on an in-memory database with uploads under tmp_path."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'PUBLIC_APP_URL': 'http://summari.test',
        'NOTIFY_REQUIRE_DELIVERY': False,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    """Push an application context for tests that call services directly."""
    with app.app_context():
        yield


@pytest.fixture
def seeded(app):
    """A doctor, a patient, an admin and one scheduled appointment between them."""
    with app.app_context():
        doctor = User(name='Dr. María González', email='maria.gonzalez@summari.test', role='DOCTOR')
        patient = User(name='Ana Martínez', email='ana.martinez@summari.test', role='PATIENT')
        admin = User(name='Admin Principal', email='admin@summari.test', role='ADMIN')
        db.session.add_all([doctor, patient, admin])
        db.session.commit()

        appointment = Appointment(doctor_id=doctor.id, patient_id=patient.id,
                                  date=datetime(2026, 10, 19, 9, 0), notes='Control rutinario')
        db.session.add(appointment)
        db.session.commit()
        return SimpleNamespace(
            doctor_id=doctor.id,
            patient_id=patient.id,
            admin_id=admin.id,
            appointment_id=appointment.id,
            patient_email=patient.email,
        )


class FlaskClientSession:
    """Stands in for requests.Session and routes each call to a Flask test client."""

    def __init__(self, client):
        self.client = client
        self.calls = []

    def request(self, method, url, timeout=None, params=None, json=None, data=None, files=None):
        self.calls.append({'method': method, 'url': url, 'timeout': timeout})
        kwargs = {'method': method, 'query_string': params}
        if files:
            form = {k: str(v) for k, v in (data or {}).items() if v is not None}
            for key, (filename, content, mimetype) in files.items():
                form[key] = (io.BytesIO(content), filename, mimetype)
            kwargs['data'] = form
            kwargs['content_type'] = 'multipart/form-data'
        elif json is not None:
            kwargs['json'] = json

        flask_response = self.client.open(urlsplit(url).path, **kwargs)

        response = requests.Response()
        response.status_code = flask_response.status_code
        response.headers = CaseInsensitiveDict(flask_response.headers)
        response._content = flask_response.get_data()
        response.encoding = 'utf-8'
        response.url = url
        return response


@pytest.fixture
def api_session(client):
    return FlaskClientSession(client)


@pytest.fixture
def gateway(api_session):
    return HttpGateway('http://summari.test', session=api_session)
