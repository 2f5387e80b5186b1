"""Tests for document delivery and consultation completion."""

from unittest.mock import MagicMock

import pytest

from summari import db
from summari.errors import ValidationError
from summari.models import Appointment, Consultation
from summari.notifications import NotificationService, compose_email, compose_whatsapp
from summari.services import ConsultationService
from summari.utils import verify_share_token


@pytest.fixture
def consultation(seeded, ctx):
    consultation, _ = ConsultationService().start_consultation(
        seeded.appointment_id, diagnosis='Faringitis', treatment='Gárgaras de agua con sal',
        prescription='Amoxicilina 500mg')
    return consultation


class TestSend:

    def test_send_completes_consultation_once(self, consultation, seeded):
        service = NotificationService()
        first = service.send('email', consultation.id, seeded.patient_email)
        second = service.send('email', consultation.id, seeded.patient_email)

        assert first.success and second.success
        assert first.completed is True
        assert second.completed is False
        assert db.session.get(Consultation, consultation.id).status == 'COMPLETED'
        assert db.session.get(Appointment, seeded.appointment_id).status == 'COMPLETED'

    def test_whatsapp_message(self, consultation):
        result = NotificationService().send('whatsapp', consultation.id, '+34600000000')
        assert result.message == 'WhatsApp sent successfully'

    def test_unknown_method(self, consultation):
        with pytest.raises(ValidationError):
            NotificationService().send('fax', consultation.id, '123')

    def test_blank_destination(self, consultation):
        with pytest.raises(ValidationError):
            NotificationService().send('email', consultation.id, '   ')

    def test_transport_receives_message(self, consultation, seeded):
        transport = MagicMock()
        transport.deliver.return_value = True
        NotificationService(transports={'email': transport}).send(
            'email', consultation.id, seeded.patient_email, documents=[{'id': 'a'}, {'id': 'b'}])
        message = transport.deliver.call_args[0][0]
        assert message.to == seeded.patient_email
        assert 'Documentos adjuntos: 2' in message.body

    def test_failed_delivery_ignored_by_default(self, consultation, seeded):
        transport = MagicMock()
        transport.deliver.return_value = False
        result = NotificationService(transports={'email': transport}).send(
            'email', consultation.id, seeded.patient_email)
        assert result.success
        assert consultation.status == 'COMPLETED'

    def test_failed_delivery_when_required(self, app, consultation, seeded):
        app.config['NOTIFY_REQUIRE_DELIVERY'] = True
        transport = MagicMock()
        transport.deliver.return_value = False
        result = NotificationService(transports={'email': transport}).send(
            'email', consultation.id, seeded.patient_email)
        assert not result.success
        assert db.session.get(Consultation, consultation.id).status == 'IN_PROGRESS'


class TestMessages:

    def test_email_body(self, consultation):
        message = compose_email(consultation, 'ana@summari.test', [])
        assert message.subject == 'Documentos de consulta médica - Dr. María González'
        assert 'Estimado/a Ana Martínez,' in message.body
        assert '- Diagnóstico: Faringitis' in message.body
        assert 'Prescripción: Amoxicilina 500mg' in message.body

    def test_whatsapp_link_is_signed(self, consultation):
        url = NotificationService().download_url(consultation.id)
        assert url.startswith('http://summari.test/api/documents/shared/')
        token = url.rsplit('/', 1)[1]
        assert verify_share_token(token) == consultation.id

        message = compose_whatsapp(consultation, '+34600000000', [], url)
        assert url in message.body
        assert '*Diagnóstico:* Faringitis' in message.body
