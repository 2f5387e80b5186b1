APP_NAME = 'Summari'
APP_VERSION = '1.0.0'
DB_NAME = 'summari.db'

DOCTOR = 'DOCTOR'
PATIENT = 'PATIENT'
ADMIN = 'ADMIN'
ROLES = (DOCTOR, PATIENT, ADMIN)

APPOINTMENT_STATUSES = ('SCHEDULED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED')
CONSULTATION_STATUSES = ('IN_PROGRESS', 'COMPLETED', 'CANCELLED')

# Appointment status moves forward only; a status may always be re-applied.
APPOINTMENT_TRANSITIONS = {
    'SCHEDULED': ('IN_PROGRESS', 'COMPLETED', 'CANCELLED'),
    'IN_PROGRESS': ('COMPLETED', 'CANCELLED'),
    'COMPLETED': (),
    'CANCELLED': (),
}

ALLOWED_UPLOAD_TYPES = (
    'application/pdf',
    'image/jpeg',
    'image/png',
    'image/webp',
    'text/plain',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
)
MAX_UPLOAD_SIZE = 5 * 1024 * 1024  # 5MB

DOCUMENT_KINDS = ('report', 'prescription', 'instructions')

DEFAULT_SETTINGS = {
    'consultation_price': 50.0,
    'currency': 'USD',
    'time_zone': 'America/New_York',
    'max_consultation_duration': 60,
    'allow_cancellation': True,
    'cancellation_deadline': 24,
}
