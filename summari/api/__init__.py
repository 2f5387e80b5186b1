from flask import Blueprint
from flask_restful import Api

api_bp = Blueprint('api', __name__, url_prefix='/api')
api = Api(api_bp)

from .resources import (  # noqa: E402
    UserListResource, UserResource,
    AppointmentListResource, AppointmentResource,
    ConsultationListResource, ConsultationResource,
    MedicalRecordListResource,
    DocumentListResource, SharedDocumentsResource, UploadResource, GeneratePdfResource,
    EmailSendResource, WhatsAppSendResource,
)
from .admin import (  # noqa: E402
    AdminUserListResource, AdminAppointmentListResource, AnalyticsResource, SettingsResource,
)

api.add_resource(UserListResource, '/users')
api.add_resource(UserResource, '/users/<int:user_id>')
api.add_resource(AppointmentListResource, '/appointments')
api.add_resource(AppointmentResource, '/appointments/<int:appointment_id>')
api.add_resource(ConsultationListResource, '/consultations')
api.add_resource(ConsultationResource, '/consultations/<int:consultation_id>')
api.add_resource(MedicalRecordListResource, '/medical-records')
api.add_resource(DocumentListResource, '/documents')
api.add_resource(SharedDocumentsResource, '/documents/shared/<string:token>')
api.add_resource(UploadResource, '/upload')
api.add_resource(GeneratePdfResource, '/generate-pdf')
api.add_resource(EmailSendResource, '/send/email')
api.add_resource(WhatsAppSendResource, '/send/whatsapp')
api.add_resource(AdminUserListResource, '/admin/users')
api.add_resource(AdminAppointmentListResource, '/admin/appointments')
api.add_resource(AnalyticsResource, '/admin/analytics')
api.add_resource(SettingsResource, '/admin/settings')
