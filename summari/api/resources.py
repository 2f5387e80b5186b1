import io

from flask import request, send_file
from flask_restful import reqparse, marshal, marshal_with, abort

from .common import (
    ApiResource, user_fields, user_detail_fields, appointment_fields,
    consultation_fields, medical_record_fields,
)
from ..documents import DocumentStore, UploadHandler
from ..errors import NotFoundError
from ..notifications import NotificationService
from ..pdf import MedicalDocumentData, generate_document, readiness
from ..services import UserService, AppointmentService, ConsultationService, MedicalRecordService
from ..utils import verify_share_token

user_parser = reqparse.RequestParser()
user_parser.add_argument('name', type=str, location='json')
user_parser.add_argument('email', type=str, location='json')
user_parser.add_argument('role', type=str, location='json')

appointment_parser = reqparse.RequestParser()
appointment_parser.add_argument('doctor_id', type=int, location='json')
appointment_parser.add_argument('patient_id', type=int, location='json')
appointment_parser.add_argument('date', type=str, location='json')
appointment_parser.add_argument('notes', type=str, location='json')

appointment_update_parser = reqparse.RequestParser()
appointment_update_parser.add_argument('status', type=str, location='json')
appointment_update_parser.add_argument('notes', type=str, location='json')

consultation_parser = reqparse.RequestParser()
consultation_parser.add_argument('appointment_id', type=int, location='json')
consultation_parser.add_argument('doctor_id', type=int, location='json')
consultation_parser.add_argument('medical_record_id', type=int, location='json')
for _name in ('symptoms', 'diagnosis', 'treatment', 'prescription', 'notes'):
    consultation_parser.add_argument(_name, type=str, location='json')

consultation_update_parser = reqparse.RequestParser()
consultation_update_parser.add_argument('status', type=str, location='json')
consultation_update_parser.add_argument('documents', type=list, location='json')
for _name in ('symptoms', 'diagnosis', 'treatment', 'prescription', 'notes'):
    consultation_update_parser.add_argument(_name, type=str, location='json')

record_parser = reqparse.RequestParser()
record_parser.add_argument('patient_id', type=int, location='json')
for _name in ('diagnosis', 'treatment', 'medications', 'allergies', 'notes'):
    record_parser.add_argument(_name, type=str, location='json')

document_parser = reqparse.RequestParser()
document_parser.add_argument('consultation_id', type=int, location='json')
document_parser.add_argument('document', type=dict, location='json')
document_parser.add_argument('expected_version', type=int, location='json')

generate_parser = reqparse.RequestParser()
generate_parser.add_argument('consultation_id', type=int, location='json')
generate_parser.add_argument('document_type', type=str, location='json')

send_parser = reqparse.RequestParser()
send_parser.add_argument('consultation_id', type=int, location='json')
send_parser.add_argument('destination', type=str, location='json')
send_parser.add_argument('patient_email', type=str, location='json')
send_parser.add_argument('patient_phone', type=str, location='json')
send_parser.add_argument('documents', type=list, location='json')


# ---------- USERS ----------
class UserListResource(ApiResource):
    @marshal_with(user_fields)
    def get(self):
        return UserService().list_users(), 200

    @marshal_with(user_fields)
    def post(self):
        args = user_parser.parse_args()
        user = UserService().register_user(args['name'], args['email'], args['role'])
        return user, 201


class UserResource(ApiResource):
    @marshal_with(user_detail_fields)
    def get(self, user_id):
        return UserService().get_user(user_id), 200


# ---------- APPOINTMENTS ----------
class AppointmentListResource(ApiResource):
    @marshal_with(appointment_fields)
    def get(self):
        return AppointmentService().list_appointments(
            doctor_id=request.args.get('doctor_id', type=int),
            patient_id=request.args.get('patient_id', type=int),
            status=request.args.get('status'),
        ), 200

    @marshal_with(appointment_fields)
    def post(self):
        args = appointment_parser.parse_args()
        appt = AppointmentService().create_appointment(args['doctor_id'], args['patient_id'],
                                                       args['date'], args['notes'])
        return appt, 201


class AppointmentResource(ApiResource):
    @marshal_with(appointment_fields)
    def get(self, appointment_id):
        return AppointmentService().get_appointment(appointment_id), 200

    @marshal_with(appointment_fields)
    def put(self, appointment_id):
        args = appointment_update_parser.parse_args()
        return AppointmentService().update_appointment(appointment_id, status=args['status'],
                                                       notes=args['notes']), 200


# ---------- CONSULTATIONS ----------
class ConsultationListResource(ApiResource):
    @marshal_with(consultation_fields)
    def get(self):
        return ConsultationService().list_consultations(
            appointment_id=request.args.get('appointment_id', type=int),
            doctor_id=request.args.get('doctor_id', type=int),
        ), 200

    @marshal_with(consultation_fields)
    def post(self):
        args = consultation_parser.parse_args()
        consultation, created = ConsultationService().start_consultation(**args)
        return consultation, 201 if created else 200


class ConsultationResource(ApiResource):
    @marshal_with(consultation_fields)
    def get(self, consultation_id):
        return ConsultationService().get_consultation(consultation_id), 200

    @marshal_with(consultation_fields)
    def put(self, consultation_id):
        args = consultation_update_parser.parse_args()
        return ConsultationService().update_consultation(consultation_id, **args), 200


# ---------- MEDICAL RECORDS ----------
class MedicalRecordListResource(ApiResource):
    @marshal_with(medical_record_fields)
    def get(self):
        return MedicalRecordService().list_records(patient_id=request.args.get('patient_id', type=int)), 200

    @marshal_with(medical_record_fields)
    def post(self):
        args = record_parser.parse_args()
        return MedicalRecordService().create_record(**args), 201


# ---------- DOCUMENTS ----------
class DocumentListResource(ApiResource):
    def get(self):
        consultation_id = request.args.get('consultation_id', type=int)
        return {'documents': DocumentStore().list(consultation_id)}, 200

    def post(self):
        args = document_parser.parse_args()
        consultation, documents = DocumentStore().attach(args['consultation_id'], args['document'],
                                                         expected_version=args['expected_version'])
        return {
            'success': True,
            'consultation': marshal(consultation, consultation_fields),
            'documents': documents,
        }, 200

    def delete(self):
        _, documents = DocumentStore().remove(
            request.args.get('consultation_id', type=int),
            request.args.get('document_id'),
            expected_version=request.args.get('expected_version', type=int),
        )
        return {'success': True, 'documents': documents}, 200


class SharedDocumentsResource(ApiResource):
    def get(self, token):
        consultation_id = verify_share_token(token)
        if consultation_id is None:
            raise NotFoundError('Link is invalid or has expired.')
        consultation = ConsultationService().get_consultation(consultation_id)
        return {
            'consultation_id': consultation.id,
            'patient_name': consultation.appointment.patient.name,
            'doctor_name': consultation.appointment.doctor.name,
            'documents': consultation.get_documents(),
        }, 200


class UploadResource(ApiResource):
    def post(self):
        document = UploadHandler.from_app().accept_file(
            request.files.get('file'),
            consultation_id=request.form.get('consultation_id', type=int),
            document_type=request.form.get('document_type'),
        )
        return {'success': True, 'document': document}, 201


class GeneratePdfResource(ApiResource):
    def get(self):
        consultation = ConsultationService().get_consultation(request.args.get('consultation_id', type=int))
        flags = readiness(consultation)
        available = ['report', 'instructions']
        if flags['prescription']:
            available.insert(1, 'prescription')
        return {
            'message': 'Documents available for generation',
            'patient_name': consultation.appointment.patient.name,
            'doctor_name': consultation.appointment.doctor.name,
            'available_documents': available,
            'has_data': flags,
        }, 200

    def post(self):
        args = generate_parser.parse_args()
        if not args['consultation_id'] or not args['document_type']:
            abort(400, message='consultation_id and document_type are required')
        if args['document_type'] not in ('report', 'prescription', 'instructions'):
            abort(400, message='Invalid document type. Use: report, prescription, or instructions')
        consultation = ConsultationService().get_consultation(args['consultation_id'])
        document = generate_document(args['document_type'], MedicalDocumentData.from_consultation(consultation))
        return send_file(io.BytesIO(document.content), mimetype=document.mimetype,
                         as_attachment=True, download_name=document.filename)


# ---------- SEND ----------
class SendResource(ApiResource):
    method = None
    destination_key = None

    def post(self):
        args = send_parser.parse_args()
        destination = args['destination'] or args[self.destination_key]
        result = NotificationService().send(self.method, args['consultation_id'], destination,
                                            documents=args['documents'])
        if not result.success:
            abort(502, message=result.message)
        return {'success': True, 'message': result.message, 'sent_at': result.sent_at}, 200


class EmailSendResource(SendResource):
    method = 'email'
    destination_key = 'patient_email'


class WhatsAppSendResource(SendResource):
    method = 'whatsapp'
    destination_key = 'patient_phone'
