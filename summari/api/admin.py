from flask import request
from flask_restful import reqparse, marshal, marshal_with

from .common import ApiResource, user_fields, appointment_fields, analytics_fields, settings_fields
from ..services import UserService, AppointmentService, AnalyticsService, SettingsService
from .resources import user_parser, appointment_parser

COUNT_KEYS = ('doctor_appointments', 'patient_appointments', 'consultations')

settings_parser = reqparse.RequestParser()
for _name in ('consultation_price', 'currency', 'time_zone', 'max_consultation_duration',
              'allow_cancellation', 'cancellation_deadline'):
    settings_parser.add_argument(_name, type=str, location='json')


class AdminUserListResource(ApiResource):
    def get(self):
        rows = UserService().list_users_with_counts()
        return [{
            **marshal(row['user'], user_fields),
            'counts': {k: row[k] for k in COUNT_KEYS},
        } for row in rows], 200

    @marshal_with(user_fields)
    def post(self):
        args = user_parser.parse_args()
        return UserService().register_user(args['name'], args['email'], args['role']), 201


class AdminAppointmentListResource(ApiResource):
    @marshal_with(appointment_fields)
    def get(self):
        return AppointmentService().list_appointments(newest_first=True), 200

    @marshal_with(appointment_fields)
    def post(self):
        args = appointment_parser.parse_args()
        return AppointmentService().create_appointment(args['doctor_id'], args['patient_id'],
                                                       args['date'], args['notes']), 201


class AnalyticsResource(ApiResource):
    def get(self):
        report = AnalyticsService().report(days=request.args.get('days', 7, type=int))
        return {
            'analytics': marshal(report['analytics'], analytics_fields),
            'summary': report['summary'],
        }, 200

    @marshal_with(analytics_fields)
    def post(self):
        return AnalyticsService().record_snapshot(), 201


class SettingsResource(ApiResource):
    @marshal_with(settings_fields)
    def get(self):
        return SettingsService().current(), 200

    @marshal_with(settings_fields)
    def post(self):
        args = settings_parser.parse_args()
        return SettingsService().update(**args), 201
