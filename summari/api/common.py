from functools import wraps

from flask import current_app
from flask_restful import Resource, fields, abort
from werkzeug.exceptions import HTTPException

from .. import db
from ..errors import ServiceError


def handle_errors(fn):
    """
    Translate service errors into HTTP responses.
    Anything unexpected is logged and reported as a generic 500 without details.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ServiceError as e:
            abort(e.status_code, message=e.message)
        except HTTPException:
            raise
        except Exception:
            db.session.rollback()
            current_app.logger.exception('Unhandled error in %s', fn.__qualname__)
            abort(500, message='Internal server error')
    return wrapper


class ApiResource(Resource):
    method_decorators = [handle_errors]


timestamp_fields = {
    'created_at': fields.DateTime(dt_format='iso8601'),
    'updated_at': fields.DateTime(dt_format='iso8601'),
}

user_fields = {
    'id': fields.Integer,
    'name': fields.String,
    'email': fields.String,
    'role': fields.String,
    **timestamp_fields,
}

appointment_base_fields = {
    'id': fields.Integer,
    'date': fields.DateTime(dt_format='iso8601'),
    'status': fields.String,
    'notes': fields.String,
    'doctor_id': fields.Integer,
    'patient_id': fields.Integer,
    **timestamp_fields,
}

consultation_base_fields = {
    'id': fields.Integer,
    'date': fields.DateTime(dt_format='iso8601'),
    'symptoms': fields.String,
    'diagnosis': fields.String,
    'treatment': fields.String,
    'prescription': fields.String,
    'notes': fields.String,
    'documents': fields.Raw(attribute=lambda c: c.get_documents()),
    'status': fields.String,
    'version': fields.Integer,
    'appointment_id': fields.Integer,
    'doctor_id': fields.Integer,
    'medical_record_id': fields.Integer,
    **timestamp_fields,
}

medical_record_base_fields = {
    'id': fields.Integer,
    'diagnosis': fields.String,
    'treatment': fields.String,
    'medications': fields.String,
    'allergies': fields.String,
    'notes': fields.String,
    'patient_id': fields.Integer,
    **timestamp_fields,
}

appointment_fields = {
    **appointment_base_fields,
    'doctor': fields.Nested(user_fields),
    'patient': fields.Nested(user_fields),
    'consultation': fields.Nested(consultation_base_fields, allow_null=True),
}

consultation_fields = {
    **consultation_base_fields,
    'appointment': fields.Nested({
        **appointment_base_fields,
        'doctor': fields.Nested(user_fields),
        'patient': fields.Nested(user_fields),
    }),
    'doctor': fields.Nested(user_fields),
    'medical_record': fields.Nested(medical_record_base_fields, allow_null=True),
}

medical_record_fields = {
    **medical_record_base_fields,
    'patient': fields.Nested(user_fields),
    'consultations': fields.List(fields.Nested({
        **consultation_base_fields,
        'doctor': fields.Nested(user_fields),
        'appointment': fields.Nested(appointment_base_fields),
    }), attribute=lambda r: r.consultations.all()),
}

user_detail_fields = {
    **user_fields,
    'doctor_appointments': fields.List(fields.Nested({
        **appointment_base_fields,
        'patient': fields.Nested(user_fields),
    }), attribute=lambda u: u.doctor_appointments.all()),
    'patient_appointments': fields.List(fields.Nested({
        **appointment_base_fields,
        'doctor': fields.Nested(user_fields),
    }), attribute=lambda u: u.patient_appointments.all()),
    'medical_records': fields.List(fields.Nested(medical_record_base_fields),
                                   attribute=lambda u: u.medical_records.all()),
}

analytics_fields = {
    'id': fields.Integer,
    'date': fields.DateTime(dt_format='iso8601'),
    'total_consultations': fields.Integer,
    'completed_consultations': fields.Integer,
    'cancelled_consultations': fields.Integer,
    'average_duration': fields.Float,
    'total_revenue': fields.Float,
    'active_users': fields.Integer,
    'created_at': fields.DateTime(dt_format='iso8601'),
}

settings_fields = {
    'id': fields.Integer,
    'consultation_price': fields.Float,
    'currency': fields.String,
    'time_zone': fields.String,
    'max_consultation_duration': fields.Integer,
    'allow_cancellation': fields.Boolean,
    'cancellation_deadline': fields.Integer,
    **timestamp_fields,
}
