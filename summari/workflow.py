"""Step-by-step consultation workflow driven over the HTTP API."""

import logging
from dataclasses import dataclass, field
from enum import Enum

from .constants import ADMIN, DOCTOR, PATIENT
from .gateway import GatewayError
from .utils import compose_notes, split_notes

logger = logging.getLogger(__name__)


class Step(Enum):
    """Screens of the consultation journey."""
    USER_SELECTION = "user_selection"
    ADMIN_DASHBOARD = "admin_dashboard"
    DOCTOR_AGENDA = "doctor_agenda"
    PATIENT_SELECTION = "patient_selection"
    PATIENT_INFO = "patient_info"
    VIDEO_CONSULTATION = "video_consultation"
    MEDICAL_NOTES = "medical_notes"
    DOCUMENTS = "documents"
    SEND_DOCUMENTS = "send_documents"


class InvalidTransition(ValueError):
    """The action is not available from the current step."""


class ActionRefused(Exception):
    """The action is valid here but cannot run with the current selections."""


@dataclass
class MedicalNotes:
    symptoms: str = ''
    diagnosis: str = ''
    treatment: str = ''
    prescription: str = ''
    recommendations: str = ''
    follow_up: str = ''
    additional_notes: str = ''

    @classmethod
    def from_consultation(cls, consultation: dict) -> "MedicalNotes":
        additional, recommendations, follow_up = split_notes(consultation.get('notes'))
        return cls(
            symptoms=consultation.get('symptoms') or '',
            diagnosis=consultation.get('diagnosis') or '',
            treatment=consultation.get('treatment') or '',
            prescription=consultation.get('prescription') or '',
            recommendations=recommendations or '',
            follow_up=follow_up or '',
            additional_notes=additional or '',
        )

    def composed(self) -> str:
        return compose_notes(self.additional_notes, self.recommendations, self.follow_up)


# ---------- actions ----------
@dataclass(frozen=True)
class PickRole:
    role: str


@dataclass(frozen=True)
class PickDoctor:
    doctor: dict


@dataclass(frozen=True)
class PickAppointment:
    appointment: dict


@dataclass(frozen=True)
class ViewPatientInfo:
    pass


@dataclass(frozen=True)
class PickPatient:
    patient: dict


@dataclass(frozen=True)
class StartConsultation:
    pass


@dataclass(frozen=True)
class CompleteConsultation:
    pass


@dataclass(frozen=True)
class SaveNotes:
    notes: MedicalNotes
    finalize: bool = False


@dataclass(frozen=True)
class UploadDocument:
    filename: str
    content: bytes
    mimetype: str
    document_type: str = 'document'


@dataclass(frozen=True)
class RemoveDocument:
    document_id: str


@dataclass(frozen=True)
class GenerateDocument:
    kind: str


@dataclass(frozen=True)
class ProceedToSend:
    pass


@dataclass(frozen=True)
class SendDocuments:
    method: str
    destination: str


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class NewConsultation:
    pass


# Steps each action may be dispatched from
ALLOWED_FROM = {
    PickRole: (Step.USER_SELECTION,),
    PickDoctor: (Step.DOCTOR_AGENDA,),
    PickAppointment: (Step.DOCTOR_AGENDA, Step.PATIENT_INFO),
    ViewPatientInfo: (Step.DOCTOR_AGENDA,),
    PickPatient: (Step.PATIENT_SELECTION,),
    StartConsultation: (Step.PATIENT_INFO,),
    CompleteConsultation: (Step.VIDEO_CONSULTATION,),
    SaveNotes: (Step.MEDICAL_NOTES,),
    UploadDocument: (Step.VIDEO_CONSULTATION, Step.MEDICAL_NOTES, Step.DOCUMENTS),
    RemoveDocument: (Step.VIDEO_CONSULTATION, Step.MEDICAL_NOTES, Step.DOCUMENTS),
    GenerateDocument: (Step.DOCUMENTS, Step.SEND_DOCUMENTS),
    ProceedToSend: (Step.DOCUMENTS,),
    SendDocuments: (Step.SEND_DOCUMENTS,),
    Back: tuple(s for s in Step if s is not Step.USER_SELECTION),
    NewConsultation: (Step.SEND_DOCUMENTS,),
}

ROLE_HOME = {
    DOCTOR: Step.DOCTOR_AGENDA,
    PATIENT: Step.PATIENT_SELECTION,
    ADMIN: Step.ADMIN_DASHBOARD,
}

PREVIOUS = {
    Step.ADMIN_DASHBOARD: Step.USER_SELECTION,
    Step.DOCTOR_AGENDA: Step.USER_SELECTION,
    Step.PATIENT_SELECTION: Step.USER_SELECTION,
    Step.VIDEO_CONSULTATION: Step.PATIENT_INFO,
    Step.MEDICAL_NOTES: Step.VIDEO_CONSULTATION,
    Step.DOCUMENTS: Step.MEDICAL_NOTES,
    Step.SEND_DOCUMENTS: Step.DOCUMENTS,
}


@dataclass
class GeneratedFile:
    filename: str
    content: bytes


@dataclass
class WorkflowSession:
    """Everything the journey has selected, fetched and typed so far."""
    step: Step = Step.USER_SELECTION
    role: str | None = None

    users: list = field(default_factory=list)
    appointments: list = field(default_factory=list)
    medical_records: list = field(default_factory=list)

    selected_doctor: dict | None = None
    selected_patient: dict | None = None
    selected_appointment: dict | None = None
    consultation: dict | None = None

    notes: MedicalNotes = field(default_factory=MedicalNotes)
    documents: list = field(default_factory=list)
    available_documents: list = field(default_factory=list)
    generated: dict = field(default_factory=dict)
    send_method: str = 'email'
    send_destination: str = ''

    # admin dashboard
    analytics: dict | None = None
    all_users: list = field(default_factory=list)
    all_appointments: list = field(default_factory=list)
    settings: dict | None = None

    alerts: list = field(default_factory=list)
    loading: bool = False

    @property
    def doctors(self) -> list:
        return [u for u in self.users if u.get('role') == DOCTOR]

    @property
    def patients(self) -> list:
        return [u for u in self.users if u.get('role') == PATIENT]


def get_next_step(session: WorkflowSession, action) -> Step:
    """Where `action` leads from the session's current step. Raises InvalidTransition."""
    current = session.step
    allowed = ALLOWED_FROM.get(type(action))
    if allowed is None or current not in allowed:
        raise InvalidTransition(f'{type(action).__name__} is not available from {current.name}')

    if isinstance(action, PickRole):
        if action.role not in ROLE_HOME:
            raise InvalidTransition(f'Unknown role: {action.role}')
        return ROLE_HOME[action.role]

    if isinstance(action, (ViewPatientInfo, StartConsultation)):
        if session.selected_appointment is None:
            raise InvalidTransition('An appointment must be selected first')
        return Step.PATIENT_INFO if isinstance(action, ViewPatientInfo) else Step.VIDEO_CONSULTATION

    if isinstance(action, PickPatient):
        return Step.PATIENT_INFO

    if isinstance(action, CompleteConsultation):
        if session.role != DOCTOR:
            return current
        return Step.MEDICAL_NOTES

    if isinstance(action, SaveNotes):
        return Step.DOCUMENTS

    if isinstance(action, ProceedToSend):
        return Step.SEND_DOCUMENTS

    if isinstance(action, Back):
        if current == Step.PATIENT_INFO:
            return Step.DOCTOR_AGENDA if session.role == DOCTOR else Step.PATIENT_SELECTION
        return PREVIOUS[current]

    if isinstance(action, NewConsultation):
        return Step.USER_SELECTION

    # PickDoctor, PickAppointment, document actions, SendDocuments
    return current


class WorkflowController:
    """
    Runs the side effects of each action through the gateway, then advances.
    A failed call leaves the step unchanged and records an alert instead.
    """

    def __init__(self, gateway, session: WorkflowSession | None = None):
        self.gateway = gateway
        self.session = session or WorkflowSession()
        self._handlers = {
            PickRole: self._pick_role,
            PickDoctor: self._pick_doctor,
            PickAppointment: self._pick_appointment,
            ViewPatientInfo: self._view_patient_info,
            PickPatient: self._pick_patient,
            StartConsultation: self._start_consultation,
            CompleteConsultation: self._complete_consultation,
            SaveNotes: self._save_notes,
            UploadDocument: self._upload_document,
            RemoveDocument: self._remove_document,
            GenerateDocument: self._generate_document,
            ProceedToSend: self._proceed_to_send,
            SendDocuments: self._send_documents,
            Back: lambda action: None,
            NewConsultation: self._new_consultation,
        }

    @property
    def step(self) -> Step:
        return self.session.step

    def dispatch(self, action) -> bool:
        """Apply `action`. Returns False when it failed and an alert was recorded."""
        next_step = get_next_step(self.session, action)
        self.session.loading = True
        try:
            self._handlers[type(action)](action)
        except GatewayError as e:
            logger.warning('%s failed: %s', type(action).__name__, e.message)
            self.session.alerts.append(e.message)
            return False
        except ActionRefused as e:
            self.session.alerts.append(str(e))
            return False
        finally:
            self.session.loading = False
        self.session.step = next_step
        return True

    def _ensure_users(self):
        if not self.session.users:
            self.session.users = self.gateway.list_users()

    def _require_consultation(self):
        if not self.session.consultation:
            raise ActionRefused('No consultation in progress.')
        return self.session.consultation['id']

    def _pick_role(self, action):
        if action.role == ADMIN:
            self.session.analytics = self.gateway.analytics(days=7)
            self.session.all_users = self.gateway.admin_users()
            self.session.all_appointments = self.gateway.admin_appointments()
            self.session.settings = self.gateway.settings()
        else:
            self._ensure_users()
        self.session.role = action.role

    def _pick_doctor(self, action):
        appointments = self.gateway.list_appointments(doctor_id=action.doctor['id'])
        self.session.selected_doctor = action.doctor
        self.session.appointments = appointments
        self.session.selected_appointment = None

    def _pick_appointment(self, action):
        self.session.selected_appointment = action.appointment

    def _view_patient_info(self, action):
        patient = self.session.selected_appointment['patient']
        self.session.medical_records = self.gateway.list_medical_records(patient['id'])
        self.session.selected_patient = patient

    def _pick_patient(self, action):
        patient_id = action.patient['id']
        records = self.gateway.list_medical_records(patient_id)
        appointments = self.gateway.list_appointments(patient_id=patient_id)
        self.session.selected_patient = action.patient
        self.session.medical_records = records
        self.session.appointments = appointments
        self.session.selected_appointment = None

    def _start_consultation(self, action):
        appointment = self.session.selected_appointment
        doctor = self.session.selected_doctor or appointment.get('doctor')
        if not doctor:
            raise ActionRefused('The appointment has no doctor assigned.')
        consultation = self.gateway.create_consultation(appointment['id'], doctor['id'])
        self.session.selected_doctor = doctor
        self.session.consultation = consultation
        self.session.selected_appointment = consultation.get('appointment') or appointment
        self.session.documents = consultation.get('documents') or []
        logger.info('Consultation %s started for appointment %s', consultation['id'], appointment['id'])

    def _complete_consultation(self, action):
        if self.session.role != DOCTOR:
            raise ActionRefused('The consultation will be finalized by the doctor.')
        consultation = self.gateway.get_consultation(self._require_consultation())
        self.session.consultation = consultation
        self.session.notes = MedicalNotes.from_consultation(consultation)
        self.session.documents = consultation.get('documents') or []

    def _save_notes(self, action):
        consultation_id = self._require_consultation()
        notes = action.notes
        payload = {
            'symptoms': notes.symptoms,
            'diagnosis': notes.diagnosis,
            'treatment': notes.treatment,
            'prescription': notes.prescription,
            'notes': notes.composed(),
        }
        if action.finalize:
            payload['status'] = 'COMPLETED'
        consultation = self.gateway.update_consultation(consultation_id, **payload)
        self.session.consultation = consultation
        self.session.notes = notes
        self.session.documents = self.gateway.list_documents(consultation_id)
        self.session.available_documents = self.gateway.document_status(consultation_id)['available_documents']

    def _upload_document(self, action):
        consultation_id = self._require_consultation()
        descriptor = self.gateway.upload_document(consultation_id, action.filename, action.content,
                                                  action.mimetype, action.document_type)
        self.session.documents = self.gateway.attach_document(consultation_id, descriptor)

    def _remove_document(self, action):
        consultation_id = self._require_consultation()
        self.session.documents = self.gateway.remove_document(consultation_id, action.document_id)

    def _generate_document(self, action):
        consultation_id = self._require_consultation()
        if action.kind not in self.session.available_documents:
            raise ActionRefused(f'The {action.kind} is not available for this consultation.')
        filename, content = self.gateway.generate_document(consultation_id, action.kind)
        self.session.generated[action.kind] = GeneratedFile(filename, content)

    def _proceed_to_send(self, action):
        self._require_consultation()
        if not self.session.send_destination and self.session.selected_patient:
            self.session.send_destination = self.session.selected_patient.get('email') or ''

    def _send_documents(self, action):
        consultation_id = self._require_consultation()
        destination = (action.destination or '').strip()
        if not destination:
            raise ActionRefused('Please enter a destination.')
        result = self.gateway.send_documents(action.method, consultation_id, destination,
                                             self.session.documents)
        self.session.send_method = action.method
        self.session.send_destination = destination
        self.session.alerts.append(result['message'])

    def _new_consultation(self, action):
        users = self.session.users
        self.session = WorkflowSession(users=users)
