"""Delivery of consultation documents to the patient.

Transports are simulated: they log the composed message and report success.
A real email or WhatsApp integration only has to provide `deliver(message)`.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from .errors import ValidationError
from .pdf import doctor_title
from .services import ConsultationService
from .utils import format_long_date, generate_share_token

logger = logging.getLogger(__name__)

METHODS = ('email', 'whatsapp')


@dataclass
class OutgoingMessage:
    channel: str
    to: str
    body: str
    subject: str = ''
    documents: list = field(default_factory=list)


@dataclass
class DispatchResult:
    success: bool
    message: str
    sent_at: str
    completed: bool


class SimulatedEmailTransport:
    def deliver(self, message):
        logger.info('Simulated email to %s: %s\n%s', message.to, message.subject, message.body)
        return True


class SimulatedWhatsAppTransport:
    def deliver(self, message):
        logger.info('Simulated WhatsApp message to %s:\n%s', message.to, message.body)
        return True


def compose_email(consultation, destination, documents):
    appointment = consultation.appointment
    doctor = doctor_title(appointment.doctor.name)
    when = format_long_date(consultation.date)
    lines = [
        f'Estimado/a {appointment.patient.name},',
        '',
        f'Adjunto encontrará los documentos de su consulta médica realizada el {when}.',
        '',
        'Detalles de la consulta:',
        f'- Médico: {doctor}',
        f'- Fecha: {when}',
        f'- Diagnóstico: {consultation.diagnosis or "No especificado"}',
        f'- Tratamiento: {consultation.treatment or "No especificado"}',
    ]
    if consultation.prescription:
        lines.append(f'Prescripción: {consultation.prescription}')
    if consultation.notes:
        lines.append(f'Notas adicionales: {consultation.notes}')
    lines += [
        '',
        f'Documentos adjuntos: {len(documents)}',
        '',
        'Para cualquier consulta, no dude en contactarnos.',
        '',
        'Saludos cordiales,',
        'Equipo Médico Summari',
    ]
    return OutgoingMessage(
        channel='email',
        to=destination,
        subject=f'Documentos de consulta médica - {doctor}',
        body='\n'.join(lines),
        documents=list(documents),
    )


def compose_whatsapp(consultation, destination, documents, download_url):
    appointment = consultation.appointment
    lines = [
        '*Summari - Documentos de Consulta*',
        '',
        f'Hola {appointment.patient.name},',
        '',
        f'Sus documentos de la consulta con {doctor_title(appointment.doctor.name)} están listos.',
        '',
        f'*Fecha:* {format_long_date(consultation.date)}',
    ]
    if consultation.diagnosis:
        lines.append(f'*Diagnóstico:* {consultation.diagnosis}')
    if consultation.treatment:
        lines.append(f'*Tratamiento:* {consultation.treatment}')
    if consultation.prescription:
        lines.append(f'*Prescripción:* {consultation.prescription}')
    lines += [
        '',
        f'*Documentos adjuntos:* {len(documents)}',
        '',
        f'Para descargar sus documentos, visite: {download_url}',
        '',
        '¿Preguntas? Responda a este mensaje.',
        '',
        '_Equipo Médico Summari_',
    ]
    return OutgoingMessage(channel='whatsapp', to=destination, body='\n'.join(lines),
                           documents=list(documents))


class NotificationService:
    def __init__(self, transports=None):
        self.consultations = ConsultationService()
        self.transports = transports or {
            'email': SimulatedEmailTransport(),
            'whatsapp': SimulatedWhatsAppTransport(),
        }

    def download_url(self, consultation_id):
        base = current_app.config['PUBLIC_APP_URL'].rstrip('/')
        return f'{base}/api/documents/shared/{generate_share_token(consultation_id)}'

    def send(self, method, consultation_id, destination, documents=None):
        """
        Deliver the consultation summary and mark the consultation COMPLETED.
        Completion is written once; repeated sends leave the status untouched.
        """
        if method not in METHODS:
            raise ValidationError(f"Invalid method '{method}'. Use: email or whatsapp.")
        destination = (destination or '').strip()
        if not consultation_id or not destination:
            raise ValidationError('consultation_id and destination are required.')
        consultation = self.consultations.get_consultation(consultation_id)
        if documents is None:
            documents = consultation.get_documents()

        if method == 'email':
            message = compose_email(consultation, destination, documents)
        else:
            message = compose_whatsapp(consultation, destination, documents,
                                       self.download_url(consultation.id))

        delivered = self.transports[method].deliver(message)
        if not delivered and current_app.config.get('NOTIFY_REQUIRE_DELIVERY'):
            current_app.logger.warning('Delivery of consultation %s via %s failed', consultation.id, method)
            return DispatchResult(False, f'{method} delivery failed', _now(), False)

        _, changed = self.consultations.complete_consultation(consultation.id)
        label = 'Email' if method == 'email' else 'WhatsApp'
        return DispatchResult(True, f'{label} sent successfully', _now(), changed)


def _now():
    return datetime.utcnow().isoformat() + 'Z'
