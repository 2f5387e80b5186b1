"""Tests for the service layer: users, appointments, consultations, settings, analytics."""

import random
from datetime import date, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

from summari.errors import ConflictError, NotFoundError, ValidationError
from summari.models import Appointment, Consultation
from summari import db
from summari.repositories import consultationRepository
from summari.services import (
    UserService, AppointmentService, ConsultationService, MedicalRecordService,
    SettingsService, AnalyticsService, summarize,
)


class TestUserService:

    def test_register_normalises_email_and_role(self, ctx):
        user = UserService().register_user(' Juan Pérez ', 'Juan.Perez@Email.com', 'patient')
        assert user.name == 'Juan Pérez'
        assert user.email == 'juan.perez@email.com'
        assert user.role == 'PATIENT'

    def test_duplicate_email_is_a_conflict(self, seeded, ctx):
        with pytest.raises(ConflictError):
            UserService().register_user('Otra Ana', 'ana.martinez@summari.test', 'PATIENT')

    def test_unknown_role_rejected(self, ctx):
        with pytest.raises(ValidationError):
            UserService().register_user('Nadie', 'nadie@summari.test', 'NURSE')

    def test_missing_fields_rejected(self, ctx):
        with pytest.raises(ValidationError):
            UserService().register_user('', 'x@summari.test', 'DOCTOR')

    def test_counts_per_user(self, seeded, ctx):
        rows = {row['user'].id: row for row in UserService().list_users_with_counts()}
        assert rows[seeded.doctor_id]['doctor_appointments'] == 1
        assert rows[seeded.patient_id]['patient_appointments'] == 1
        assert rows[seeded.admin_id]['consultations'] == 0


class TestAppointmentService:

    def test_create_checks_roles(self, seeded, ctx):
        with pytest.raises(ValidationError):
            AppointmentService().create_appointment(seeded.patient_id, seeded.doctor_id, '2026-10-20T10:00:00')

    def test_create_rejects_bad_date(self, seeded, ctx):
        with pytest.raises(ValidationError):
            AppointmentService().create_appointment(seeded.doctor_id, seeded.patient_id, 'tomorrow')

    def test_create_parses_utc_offset(self, seeded, ctx):
        appt = AppointmentService().create_appointment(seeded.doctor_id, seeded.patient_id,
                                                       '2026-10-20T10:00:00Z', 'Revisión')
        assert appt.status == 'SCHEDULED'
        assert appt.date.hour == 10

    def test_status_moves_forward_only(self, seeded, ctx):
        service = AppointmentService()
        service.update_appointment(seeded.appointment_id, status='IN_PROGRESS')
        service.update_appointment(seeded.appointment_id, status='COMPLETED')
        with pytest.raises(ConflictError):
            service.update_appointment(seeded.appointment_id, status='SCHEDULED')
        with pytest.raises(ConflictError):
            service.update_appointment(seeded.appointment_id, status='IN_PROGRESS')

    def test_same_status_can_be_reapplied(self, seeded, ctx):
        appt = AppointmentService().update_appointment(seeded.appointment_id, status='SCHEDULED')
        assert appt.status == 'SCHEDULED'

    def test_cancelled_is_final(self, seeded, ctx):
        service = AppointmentService()
        service.update_appointment(seeded.appointment_id, status='CANCELLED')
        with pytest.raises(ConflictError):
            service.update_appointment(seeded.appointment_id, status='COMPLETED')

    def test_advance_never_goes_back(self, seeded, ctx):
        service = AppointmentService()
        appt = service.update_appointment(seeded.appointment_id, status='COMPLETED')
        assert service.advance(appt, 'IN_PROGRESS').status == 'COMPLETED'

    def test_unknown_appointment(self, ctx):
        with pytest.raises(NotFoundError):
            AppointmentService().get_appointment(999)


class TestConsultationService:

    def test_start_puts_appointment_in_progress(self, seeded, ctx):
        consultation, created = ConsultationService().start_consultation(seeded.appointment_id)
        assert created
        assert consultation.status == 'IN_PROGRESS'
        assert consultation.doctor_id == seeded.doctor_id
        assert db.session.get(Appointment, seeded.appointment_id).status == 'IN_PROGRESS'

    def test_start_twice_returns_existing(self, seeded, ctx):
        service = ConsultationService()
        first, created_first = service.start_consultation(seeded.appointment_id, seeded.doctor_id)
        second, created_second = service.start_consultation(seeded.appointment_id, seeded.doctor_id)
        assert created_first and not created_second
        assert first.id == second.id
        assert Consultation.query.filter_by(appointment_id=seeded.appointment_id).count() == 1

    def test_concurrent_start_returns_the_row_that_won(self, seeded, ctx):
        existing = consultationRepository().create(seeded.appointment_id, seeded.doctor_id)
        # the lookup misses, as it would for a request that raced the insert
        with patch.object(consultationRepository, 'get_by_appointment', side_effect=[None, existing]):
            consultation, created = ConsultationService().start_consultation(seeded.appointment_id)
        assert not created
        assert consultation.id == existing.id
        assert Consultation.query.filter_by(appointment_id=seeded.appointment_id).count() == 1

    def test_one_consultation_per_appointment_in_storage(self, seeded, ctx):
        consultationRepository().create(seeded.appointment_id, seeded.doctor_id)
        db.session.add(Consultation(appointment_id=seeded.appointment_id, doctor_id=seeded.doctor_id,
                                      status='IN_PROGRESS'))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()
        assert Consultation.query.filter_by(appointment_id=seeded.appointment_id).count() == 1

    def test_start_requires_doctor(self, seeded, ctx):
        with pytest.raises(ValidationError):
            ConsultationService().start_consultation(seeded.appointment_id, doctor_id=seeded.patient_id)

    def test_update_skips_empty_fields(self, seeded, ctx):
        service = ConsultationService()
        consultation, _ = service.start_consultation(seeded.appointment_id, diagnosis='Gripe')
        service.update_consultation(consultation.id, diagnosis='', treatment='Reposo')
        assert consultation.diagnosis == 'Gripe'
        assert consultation.treatment == 'Reposo'

    def test_completed_status_completes_appointment(self, seeded, ctx):
        service = ConsultationService()
        consultation, _ = service.start_consultation(seeded.appointment_id)
        service.update_consultation(consultation.id, status='COMPLETED')
        assert db.session.get(Appointment, seeded.appointment_id).status == 'COMPLETED'

    def test_invalid_status(self, seeded, ctx):
        service = ConsultationService()
        consultation, _ = service.start_consultation(seeded.appointment_id)
        with pytest.raises(ValidationError):
            service.update_consultation(consultation.id, status='DONE')

    def test_complete_is_idempotent(self, seeded, ctx):
        service = ConsultationService()
        consultation, _ = service.start_consultation(seeded.appointment_id)
        _, changed = service.complete_consultation(consultation.id)
        version = consultation.version
        _, changed_again = service.complete_consultation(consultation.id)
        assert changed and not changed_again
        assert consultation.version == version

    def test_missing_id(self, ctx):
        with pytest.raises(ValidationError):
            ConsultationService().get_consultation(None)


class TestMedicalRecordService:

    def test_create_and_list(self, seeded, ctx):
        service = MedicalRecordService()
        service.create_record(seeded.patient_id, 'Hipertensión arterial', 'Enalapril',
                              allergies='Penicilina')
        records = service.list_records(patient_id=seeded.patient_id)
        assert [r.allergies for r in records] == ['Penicilina']

    def test_record_needs_patient(self, seeded, ctx):
        with pytest.raises(ValidationError):
            MedicalRecordService().create_record(seeded.doctor_id, 'X', 'Y')


class TestSettingsService:

    def test_defaults_created_on_first_read(self, ctx):
        settings = SettingsService().current()
        assert settings.consultation_price == 50.0
        assert settings.currency == 'USD'
        assert settings.allow_cancellation is True

    def test_update_appends_and_carries_over(self, ctx):
        service = SettingsService()
        first = service.current()
        updated = service.update(consultation_price='75', allow_cancellation='false')
        assert updated.id != first.id
        assert updated.consultation_price == 75.0
        assert updated.allow_cancellation is False
        assert updated.time_zone == first.time_zone
        assert service.current().id == updated.id

    def test_invalid_value(self, ctx):
        with pytest.raises(ValidationError):
            SettingsService().update(max_consultation_duration='an hour')

    def test_negative_price(self, ctx):
        with pytest.raises(ValidationError):
            SettingsService().update(consultation_price='-1')


class TestAnalytics:

    def test_snapshot_counts_consultations(self, seeded, ctx):
        consultation, _ = ConsultationService().start_consultation(seeded.appointment_id)
        ConsultationService().complete_consultation(consultation.id)
        snapshot = AnalyticsService().record_snapshot(consultation.date.date())
        assert snapshot.total_consultations == 1
        assert snapshot.completed_consultations == 1
        assert snapshot.total_revenue == 50.0
        assert snapshot.active_users == 2

    def test_report_covers_requested_window(self, seeded, ctx):
        AnalyticsService().record_snapshot(date.today())
        report = AnalyticsService().report(days=7)
        assert len(report['analytics']) == 1
        assert report['summary']['total_consultations'] == 0

    def test_summarize_rates(self):
        class Snap:
            def __init__(self, total, completed, cancelled, duration, revenue, active):
                self.total_consultations = total
                self.completed_consultations = completed
                self.cancelled_consultations = cancelled
                self.average_duration = duration
                self.total_revenue = revenue
                self.active_users = active

        summary = summarize([Snap(10, 8, 1, 30, 400, 20), Snap(10, 7, 1, 40, 350, 25)])
        assert summary['total_consultations'] == 20
        assert summary['completion_rate'] == 75
        assert summary['cancellation_rate'] == 10
        assert summary['average_duration'] == 35
        assert summary['active_users'] == 25
        assert summary['total_revenue'] == 750

    def test_summarize_empty(self):
        summary = summarize([])
        assert summary['completion_rate'] == 0
        assert summary['average_duration'] == 0

    def test_demo_snapshots_are_consistent(self, ctx):
        service = AnalyticsService()
        rng = random.Random(7)
        snapshots = [service.record_demo_snapshot(date.today() - timedelta(days=n), rng=rng)
                     for n in range(200)]
        for s in snapshots:
            assert s.completed_consultations + s.cancelled_consultations <= s.total_consultations
        summary = summarize(snapshots)
        finished = summary['completed_consultations'] + summary['cancelled_consultations']
        assert finished <= summary['total_consultations']
        assert summary['completion_rate'] <= 100
