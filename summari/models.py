import json
from datetime import datetime

from . import db


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class User(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    role = db.Column(db.String(20), nullable=False)  # DOCTOR/PATIENT/ADMIN

    doctor_appointments = db.relationship(
        'Appointment', foreign_keys='Appointment.doctor_id', back_populates='doctor', lazy='dynamic')
    patient_appointments = db.relationship(
        'Appointment', foreign_keys='Appointment.patient_id', back_populates='patient', lazy='dynamic')
    consultations = db.relationship('Consultation', back_populates='doctor', lazy='dynamic')
    medical_records = db.relationship('MedicalRecord', back_populates='patient', lazy='dynamic')


class Appointment(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), default='SCHEDULED', nullable=False)
    notes = db.Column(db.Text, default='')
    doctor_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    patient_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    doctor = db.relationship('User', foreign_keys=[doctor_id], back_populates='doctor_appointments')
    patient = db.relationship('User', foreign_keys=[patient_id], back_populates='patient_appointments')
    consultation = db.relationship('Consultation', back_populates='appointment', uselist=False)


class MedicalRecord(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    diagnosis = db.Column(db.Text, nullable=False)
    treatment = db.Column(db.Text, nullable=False)
    medications = db.Column(db.Text)
    allergies = db.Column(db.Text)
    notes = db.Column(db.Text)
    patient_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    patient = db.relationship('User', back_populates='medical_records')
    consultations = db.relationship('Consultation', back_populates='medical_record', lazy='dynamic')


class Consultation(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    symptoms = db.Column(db.Text)
    diagnosis = db.Column(db.Text)
    treatment = db.Column(db.Text)
    prescription = db.Column(db.Text)
    notes = db.Column(db.Text)
    documents = db.Column(db.Text)  # JSON list of document descriptors
    status = db.Column(db.String(20), default='IN_PROGRESS', nullable=False)
    version = db.Column(db.Integer, nullable=False)
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointment.id'), nullable=False)
    doctor_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    medical_record_id = db.Column(db.Integer, db.ForeignKey('medical_record.id'))

    appointment = db.relationship('Appointment', back_populates='consultation')
    doctor = db.relationship('User', back_populates='consultations')
    medical_record = db.relationship('MedicalRecord', back_populates='consultations')

    __table_args__ = (
        db.UniqueConstraint('appointment_id', name='uix_consultation_appointment'),
    )
    __mapper_args__ = {'version_id_col': version}

    def get_documents(self):
        if not self.documents:
            return []
        return json.loads(self.documents)

    def set_documents(self, documents):
        self.documents = json.dumps(documents)


class Analytics(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False)
    total_consultations = db.Column(db.Integer, default=0, nullable=False)
    completed_consultations = db.Column(db.Integer, default=0, nullable=False)
    cancelled_consultations = db.Column(db.Integer, default=0, nullable=False)
    average_duration = db.Column(db.Float, default=0.0, nullable=False)
    total_revenue = db.Column(db.Float, default=0.0, nullable=False)
    active_users = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class SystemSettings(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    consultation_price = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(10), nullable=False)
    time_zone = db.Column(db.String(64), nullable=False)
    max_consultation_duration = db.Column(db.Integer, nullable=False)
    allow_cancellation = db.Column(db.Boolean, default=True, nullable=False)
    cancellation_deadline = db.Column(db.Integer, nullable=False)
