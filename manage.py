from datetime import date, timedelta

import click

from summari import create_app, db
from summari.models import User
from summari.services import (
    UserService, AppointmentService, MedicalRecordService, SettingsService, AnalyticsService,
)

app = create_app()

SEED_USERS = [
    ('Admin Principal', 'admin@summari.com', 'ADMIN'),
    ('Gerente de Operaciones', 'gerente@summari.com', 'ADMIN'),
    ('Dr. María González', 'maria.gonzalez@summari.com', 'DOCTOR'),
    ('Dr. Carlos Rodríguez', 'carlos.rodriguez@summari.com', 'DOCTOR'),
    ('Ana Martínez', 'ana.martinez@email.com', 'PATIENT'),
    ('Juan Pérez', 'juan.perez@email.com', 'PATIENT'),
    ('Sofia López', 'sofia.lopez@email.com', 'PATIENT'),
]

SEED_RECORDS = [
    ('ana.martinez@email.com', 'Hipertensión arterial', 'Medicación antihipertensiva',
     'Enalapril 10mg', 'Penicilina', 'Paciente con buen control de presión arterial'),
    ('juan.perez@email.com', 'Diabetes tipo 2', 'Control dietético y medicación',
     'Metformina 850mg', 'Ninguna conocida', 'Paciente colaborativo con el tratamiento'),
]

SEED_APPOINTMENTS = [
    ('maria.gonzalez@summari.com', 'ana.martinez@email.com', '2025-08-12T09:00:00',
     'Control rutinario de hipertensión'),
    ('maria.gonzalez@summari.com', 'juan.perez@email.com', '2025-08-12T10:30:00',
     'Revisión de diabetes'),
    ('carlos.rodriguez@summari.com', 'sofia.lopez@email.com', '2025-08-12T11:00:00',
     'Primera consulta'),
]


@app.cli.command("initdb")
def initdb():
    db.create_all()
    print('Database tables created')


@app.cli.command("seed")
def seed():
    """Load demo users, records, appointments, settings and a week of analytics."""
    db.create_all()
    if User.query.first():
        print('Database already has users, skipping seed')
        return

    users = {}
    for name, email, role in SEED_USERS:
        users[email] = UserService().register_user(name, email, role)

    for email, diagnosis, treatment, medications, allergies, notes in SEED_RECORDS:
        MedicalRecordService().create_record(users[email].id, diagnosis, treatment,
                                             medications=medications, allergies=allergies, notes=notes)

    for doctor, patient, when, notes in SEED_APPOINTMENTS:
        AppointmentService().create_appointment(users[doctor].id, users[patient].id, when, notes)

    SettingsService().current()

    analytics = AnalyticsService()
    for days_ago in range(6, -1, -1):
        analytics.record_demo_snapshot(date.today() - timedelta(days=days_ago))

    print('Database seeded with demo data')
    print(f"Admins: {', '.join(n for n, _, r in SEED_USERS if r == 'ADMIN')}")
    print(f"Doctors: {', '.join(n for n, _, r in SEED_USERS if r == 'DOCTOR')}")
    print(f"Patients: {', '.join(n for n, _, r in SEED_USERS if r == 'PATIENT')}")


@app.cli.command("snapshot-analytics")
@click.option('--day', default=None, help='ISO date to snapshot, defaults to today.')
def snapshot_analytics(day):
    snapshot = AnalyticsService().record_snapshot(date.fromisoformat(day) if day else None)
    print(f'Recorded analytics for {snapshot.date}: {snapshot.total_consultations} consultations, '
          f'{snapshot.completed_consultations} completed')


if __name__ == '__main__':
    app.run(debug=True)
