from . import db
from .models import User, Appointment, Consultation, MedicalRecord, Analytics, SystemSettings


class userRepository:

    def get_by_id(self, user_id):
        return db.session.get(User, user_id)

    def get_by_email(self, email):
        return User.query.filter_by(email=email).first()

    def create(self, name, email, role):
        user = User(name=name, email=email, role=role)
        db.session.add(user)
        db.session.commit()
        return user

    def get_list(self):
        return User.query.order_by(User.role, User.name).all()

    def get_list_newest_first(self):
        return User.query.order_by(User.created_at.desc(), User.id.desc()).all()


class appointmentRepository:

    def get_by_id(self, appointment_id):
        return db.session.get(Appointment, appointment_id)

    def create(self, doctor_id, patient_id, date, notes=''):
        appointment = Appointment(doctor_id=doctor_id, patient_id=patient_id, date=date,
                                  notes=notes or '', status='SCHEDULED')
        db.session.add(appointment)
        db.session.commit()
        return appointment

    def get_list(self, doctor_id=None, patient_id=None, status=None, newest_first=False):
        q = Appointment.query
        if doctor_id:
            q = q.filter_by(doctor_id=doctor_id)
        if patient_id:
            q = q.filter_by(patient_id=patient_id)
        if status:
            q = q.filter_by(status=status)
        order = Appointment.date.desc() if newest_first else Appointment.date.asc()
        return q.order_by(order).all()

    def update(self, appointment, status=None, notes=None):
        if status:
            appointment.status = status
        if notes:
            appointment.notes = notes
        db.session.commit()
        return appointment


class consultationRepository:

    def get_by_id(self, consultation_id):
        return db.session.get(Consultation, consultation_id)

    def get_by_appointment(self, appointment_id):
        return Consultation.query.filter_by(appointment_id=appointment_id).first()

    def create(self, appointment_id, doctor_id, **fields):
        consultation = Consultation(appointment_id=appointment_id, doctor_id=doctor_id,
                                    status='IN_PROGRESS', **fields)
        db.session.add(consultation)
        db.session.commit()
        return consultation

    def get_list(self, appointment_id=None, doctor_id=None):
        q = Consultation.query
        if appointment_id:
            q = q.filter_by(appointment_id=appointment_id)
        if doctor_id:
            q = q.filter_by(doctor_id=doctor_id)
        return q.order_by(Consultation.date.desc()).all()

    def get_between(self, start, end):
        return Consultation.query.filter(Consultation.date >= start, Consultation.date < end).all()

    def save(self, consultation):
        db.session.add(consultation)
        db.session.commit()
        return consultation


class medicalRecordRepository:

    def get_by_id(self, record_id):
        return db.session.get(MedicalRecord, record_id)

    def create(self, patient_id, diagnosis, treatment, medications=None, allergies=None, notes=None):
        record = MedicalRecord(patient_id=patient_id, diagnosis=diagnosis, treatment=treatment,
                               medications=medications, allergies=allergies, notes=notes)
        db.session.add(record)
        db.session.commit()
        return record

    def get_list(self, patient_id=None):
        q = MedicalRecord.query
        if patient_id:
            q = q.filter_by(patient_id=patient_id)
        return q.order_by(MedicalRecord.created_at.desc(), MedicalRecord.id.desc()).all()


class analyticsRepository:

    def create(self, **fields):
        snapshot = Analytics(**fields)
        db.session.add(snapshot)
        db.session.commit()
        return snapshot

    def get_since(self, start_date):
        return (Analytics.query
                .filter(Analytics.date >= start_date)
                .order_by(Analytics.date.asc(), Analytics.id.asc())
                .all())


class settingsRepository:

    def get_latest(self):
        return (SystemSettings.query
                .order_by(SystemSettings.created_at.desc(), SystemSettings.id.desc())
                .first())

    def create(self, **fields):
        settings = SystemSettings(**fields)
        db.session.add(settings)
        db.session.commit()
        return settings
