import random
from datetime import datetime, date, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from . import db
from .constants import (
    ROLES, APPOINTMENT_STATUSES, APPOINTMENT_TRANSITIONS, CONSULTATION_STATUSES, DEFAULT_SETTINGS,
)
from .errors import ValidationError, NotFoundError, ConflictError
from .repositories import (
    userRepository, appointmentRepository, consultationRepository,
    medicalRecordRepository, analyticsRepository, settingsRepository,
)
from .utils import parse_datetime

CONSULTATION_TEXT_FIELDS = ('symptoms', 'diagnosis', 'treatment', 'prescription', 'notes')


class UserService:
    def __init__(self):
        self.user_repo = userRepository()

    def register_user(self, name, email, role):
        name = (name or '').strip()
        email = (email or '').strip().lower()
        role = (role or '').strip().upper()
        if not name or not email or not role:
            raise ValidationError('Name, email and role are required.')
        if role not in ROLES:
            raise ValidationError(f"Invalid role '{role}'. Use one of: {', '.join(ROLES)}.")
        if self.user_repo.get_by_email(email):
            raise ConflictError('User with this email already exists.')
        try:
            return self.user_repo.create(name, email, role)
        except IntegrityError:
            db.session.rollback()
            raise ConflictError('User with this email already exists.')

    def get_user(self, user_id):
        user = self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError('User not found.')
        return user

    def get_user_with_role(self, user_id, role):
        user = self.get_user(user_id)
        if user.role != role:
            raise ValidationError(f'User {user_id} is not a {role.lower()}.')
        return user

    def list_users(self):
        return self.user_repo.get_list()

    def list_users_with_counts(self):
        """Newest first, each with the number of appointments and consultations it takes part in."""
        users = self.user_repo.get_list_newest_first()
        return [{
            'user': user,
            'doctor_appointments': user.doctor_appointments.count(),
            'patient_appointments': user.patient_appointments.count(),
            'consultations': user.consultations.count(),
        } for user in users]


class AppointmentService:
    def __init__(self):
        self.appointment_repo = appointmentRepository()
        self.users = UserService()

    def list_appointments(self, doctor_id=None, patient_id=None, status=None, newest_first=False):
        if status and status not in APPOINTMENT_STATUSES:
            raise ValidationError(f"Invalid status '{status}'.")
        return self.appointment_repo.get_list(doctor_id=doctor_id, patient_id=patient_id,
                                              status=status, newest_first=newest_first)

    def get_appointment(self, appointment_id):
        appointment = self.appointment_repo.get_by_id(appointment_id)
        if not appointment:
            raise NotFoundError('Appointment not found.')
        return appointment

    def create_appointment(self, doctor_id, patient_id, date, notes=''):
        if not doctor_id or not patient_id or not date:
            raise ValidationError('doctor_id, patient_id and date are required.')
        when = parse_datetime(date)
        if when is None:
            raise ValidationError('date must be an ISO-8601 date or datetime.')
        self.users.get_user_with_role(doctor_id, 'DOCTOR')
        self.users.get_user_with_role(patient_id, 'PATIENT')
        return self.appointment_repo.create(doctor_id, patient_id, when, notes)

    def update_appointment(self, appointment_id, status=None, notes=None):
        appointment = self.get_appointment(appointment_id)
        if status:
            self._check_transition(appointment, status)
        return self.appointment_repo.update(appointment, status=status, notes=notes)

    def advance(self, appointment, status):
        """Move forward to `status` if the appointment has not already passed it."""
        if appointment.status == status or status not in APPOINTMENT_TRANSITIONS[appointment.status]:
            return appointment
        return self.appointment_repo.update(appointment, status=status)

    def _check_transition(self, appointment, status):
        if status not in APPOINTMENT_STATUSES:
            raise ValidationError(f"Invalid status '{status}'.")
        if status != appointment.status and status not in APPOINTMENT_TRANSITIONS[appointment.status]:
            raise ConflictError(f'Cannot move appointment from {appointment.status} to {status}.')


class ConsultationService:
    def __init__(self):
        self.consultation_repo = consultationRepository()
        self.appointments = AppointmentService()
        self.users = UserService()

    def list_consultations(self, appointment_id=None, doctor_id=None):
        return self.consultation_repo.get_list(appointment_id=appointment_id, doctor_id=doctor_id)

    def get_consultation(self, consultation_id):
        if not consultation_id:
            raise ValidationError('consultation_id is required.')
        consultation = self.consultation_repo.get_by_id(consultation_id)
        if not consultation:
            raise NotFoundError('Consultation not found.')
        return consultation

    def start_consultation(self, appointment_id, doctor_id=None, medical_record_id=None, **fields):
        """
        Create the consultation of an appointment, or return the one it already has.
        Returns (consultation, created). A new consultation puts its appointment IN_PROGRESS.
        """
        if not appointment_id:
            raise ValidationError('appointment_id is required.')
        appointment = self.appointments.get_appointment(appointment_id)

        existing = self.consultation_repo.get_by_appointment(appointment.id)
        if existing:
            return existing, False

        doctor_id = doctor_id or appointment.doctor_id
        self.users.get_user_with_role(doctor_id, 'DOCTOR')
        values = {k: fields[k] for k in CONSULTATION_TEXT_FIELDS if fields.get(k)}
        try:
            consultation = self.consultation_repo.create(
                appointment.id, doctor_id, medical_record_id=medical_record_id, **values)
        except IntegrityError:
            # another request created it between the lookup and the insert
            db.session.rollback()
            existing = self.consultation_repo.get_by_appointment(appointment.id)
            if existing is None:
                raise
            return existing, False

        self.appointments.advance(appointment, 'IN_PROGRESS')
        current_app.logger.info('Consultation %s started for appointment %s', consultation.id, appointment.id)
        return consultation, True

    def update_consultation(self, consultation_id, status=None, documents=None, **fields):
        """
        Apply the non-empty fields. A COMPLETED status also completes the appointment.
        """
        consultation = self.get_consultation(consultation_id)
        if status and status not in CONSULTATION_STATUSES:
            raise ValidationError(f"Invalid status '{status}'.")

        for name in CONSULTATION_TEXT_FIELDS:
            if fields.get(name):
                setattr(consultation, name, fields[name])
        if status:
            consultation.status = status
        if documents:
            consultation.set_documents(documents)
        self.save(consultation)

        if status == 'COMPLETED':
            self.appointments.advance(consultation.appointment, 'COMPLETED')
        return consultation

    def complete_consultation(self, consultation_id):
        """Mark COMPLETED once. Returns (consultation, changed)."""
        consultation = self.get_consultation(consultation_id)
        if consultation.status == 'COMPLETED':
            self.appointments.advance(consultation.appointment, 'COMPLETED')
            return consultation, False
        return self.update_consultation(consultation.id, status='COMPLETED'), True

    def save(self, consultation):
        try:
            return self.consultation_repo.save(consultation)
        except StaleDataError:
            db.session.rollback()
            raise ConflictError('Consultation was modified by another request. Reload and retry.')


class MedicalRecordService:
    def __init__(self):
        self.record_repo = medicalRecordRepository()
        self.users = UserService()

    def list_records(self, patient_id=None):
        return self.record_repo.get_list(patient_id=patient_id)

    def create_record(self, patient_id, diagnosis, treatment, medications=None, allergies=None, notes=None):
        if not patient_id or not diagnosis or not treatment:
            raise ValidationError('patient_id, diagnosis and treatment are required.')
        self.users.get_user_with_role(patient_id, 'PATIENT')
        return self.record_repo.create(patient_id, diagnosis, treatment,
                                       medications=medications, allergies=allergies, notes=notes)


class SettingsService:
    def __init__(self):
        self.settings_repo = settingsRepository()

    def current(self):
        settings = self.settings_repo.get_latest()
        if not settings:
            settings = self.settings_repo.create(**DEFAULT_SETTINGS)
        return settings

    def update(self, **values):
        """Append a new settings row; omitted values carry over from the current one."""
        current = self.current()
        merged = {}
        try:
            for name, default in DEFAULT_SETTINGS.items():
                value = values.get(name)
                if value is None or value == '':
                    merged[name] = getattr(current, name)
                elif isinstance(default, bool):
                    merged[name] = _to_bool(value)
                else:
                    merged[name] = type(default)(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid value for '{name}'.")
        if merged['consultation_price'] < 0:
            raise ValidationError('consultation_price must not be negative.')
        return self.settings_repo.create(**merged)


class AnalyticsService:
    def __init__(self):
        self.analytics_repo = analyticsRepository()
        self.consultation_repo = consultationRepository()
        self.settings = SettingsService()

    def report(self, days=7):
        if days < 0:
            raise ValidationError('days must not be negative.')
        start = date.today() - timedelta(days=days)
        snapshots = self.analytics_repo.get_since(start)
        return {'analytics': snapshots, 'summary': summarize(snapshots)}

    def record_snapshot(self, day=None):
        """Append the counts for `day` (default today) computed from its consultations."""
        day = day or date.today()
        start = datetime.combine(day, datetime.min.time())
        consultations = self.consultation_repo.get_between(start, start + timedelta(days=1))

        completed = [c for c in consultations if c.status == 'COMPLETED']
        durations = [(c.updated_at - c.date).total_seconds() / 60 for c in completed]
        active = set()
        for c in consultations:
            active.add(c.doctor_id)
            active.add(c.appointment.patient_id)
        price = self.settings.current().consultation_price

        return self.analytics_repo.create(
            date=day,
            total_consultations=len(consultations),
            completed_consultations=len(completed),
            cancelled_consultations=sum(1 for c in consultations if c.status == 'CANCELLED'),
            average_duration=sum(durations) / len(durations) if durations else 0.0,
            total_revenue=price * len(completed),
            active_users=len(active),
        )

    def record_demo_snapshot(self, day, rng=random):
        """Append made-up but internally consistent counts for `day`, for demo data."""
        total = rng.randint(10, 29)
        completed = rng.randint(8, total)
        return self.analytics_repo.create(
            date=day,
            total_consultations=total,
            completed_consultations=completed,
            cancelled_consultations=rng.randint(0, min(3, total - completed)),
            average_duration=float(rng.randint(25, 54)),
            total_revenue=float(rng.randint(500, 1499)),
            active_users=rng.randint(20, 69),
        )


def summarize(snapshots):
    totals = {
        'total_consultations': 0,
        'completed_consultations': 0,
        'cancelled_consultations': 0,
        'total_revenue': 0.0,
        'average_duration': 0.0,
        'active_users': 0,
    }
    for s in snapshots:
        totals['total_consultations'] += s.total_consultations
        totals['completed_consultations'] += s.completed_consultations
        totals['cancelled_consultations'] += s.cancelled_consultations
        totals['total_revenue'] += s.total_revenue
        totals['average_duration'] += s.average_duration
        totals['active_users'] = max(totals['active_users'], s.active_users)

    total = totals['total_consultations']
    totals['average_duration'] = round(totals['average_duration'] / len(snapshots)) if snapshots else 0
    totals['completion_rate'] = round(totals['completed_consultations'] / total * 100) if total else 0
    totals['cancellation_rate'] = round(totals['cancelled_consultations'] / total * 100) if total else 0
    return totals


def _to_bool(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)
