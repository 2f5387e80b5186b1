"""Fixed-layout medical documents: report, prescription and instructions.

Each builder lays the document out on an A4 grid measured in millimetres from
the top-left corner (the way the forms were designed) and `render_pdf` draws
the resulting text runs with ReportLab.
"""

import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from .utils import format_long_date, split_notes

logger = logging.getLogger(__name__)

PAGE_WIDTH = 210
PAGE_HEIGHT = 297
MARGIN = 20
TOP = 30
BOTTOM = PAGE_HEIGHT - MARGIN
TEXT_WIDTH = PAGE_WIDTH - 2 * MARGIN
SIGNATURE_X = PAGE_WIDTH - MARGIN - 60
SIGNATURE_HEIGHT = 15

REGULAR = 'Helvetica'
BOLD = 'Helvetica-Bold'

EMPTY_REQUIRED = 'No especificado'

FILENAME_PREFIXES = {
    'report': 'informe_medico',
    'prescription': 'receta_medica',
    'instructions': 'indicaciones',
}


@dataclass
class MedicalDocumentData:
    patient_name: str
    doctor_name: str
    date: object
    symptoms: str = ''
    diagnosis: str = ''
    treatment: str = ''
    prescription: str = ''
    recommendations: str = ''
    follow_up: str = ''
    observations: str = ''

    @classmethod
    def from_consultation(cls, consultation):
        appointment = consultation.appointment
        additional, recommendations, follow_up = split_notes(consultation.notes)
        if recommendations is None and follow_up is None:
            # plain notes without the composed markers
            recommendations, additional = additional, ''
        return cls(
            patient_name=appointment.patient.name,
            doctor_name=appointment.doctor.name,
            date=consultation.created_at or consultation.date,
            symptoms=consultation.symptoms or '',
            diagnosis=consultation.diagnosis or '',
            treatment=consultation.treatment or '',
            prescription=consultation.prescription or '',
            recommendations=recommendations or '',
            follow_up=follow_up or '',
            observations=additional or '',
        )


@dataclass
class TextRun:
    page: int
    x: float
    y: float
    text: str
    font: str = REGULAR
    size: int = 12
    centered: bool = False


@dataclass
class DocumentLayout:
    title: str
    runs: list = field(default_factory=list)
    page: int = 0
    y: float = TOP

    @property
    def page_count(self):
        return self.page + 1

    def lines(self):
        return [run.text for run in self.runs]

    def text(self):
        return '\n'.join(self.lines())

    def new_page(self):
        self.page += 1
        self.y = TOP

    def draw(self, text, x=MARGIN, font=REGULAR, size=12, centered=False):
        if self.y > BOTTOM:
            self.new_page()
        self.runs.append(TextRun(self.page, x, self.y, text, font, size, centered))

    def header(self, text, size, gap):
        self.draw(text, x=PAGE_WIDTH / 2, font=BOLD, size=size, centered=True)
        self.y += gap

    def identity_block(self, data, gap):
        self.draw(f'Paciente: {data.patient_name}')
        self.y += 10
        self.draw(f'Médico: {doctor_title(data.doctor_name)}')
        self.y += 10
        self.draw(f'Fecha: {format_long_date(data.date)}')
        self.y += gap

    def section(self, heading, body, heading_size=12, heading_gap=10, line_height=5, gap=10):
        self.draw(heading, font=BOLD, size=heading_size)
        self.y += heading_gap
        for line in wrap(body):
            self.draw(line)
            self.y += line_height
        self.y += gap

    def signature(self, data, min_y):
        """Signature block: never above `min_y`, below the content when it runs longer."""
        self.y = max(self.y, min_y)
        if self.y + SIGNATURE_HEIGHT > BOTTOM:
            self.new_page()
        self.draw('_________________________', x=SIGNATURE_X)
        self.y += 10
        self.draw(doctor_title(data.doctor_name), x=SIGNATURE_X)
        self.y += 5
        self.draw('Firma del Médico', x=SIGNATURE_X, size=8)


def doctor_title(name):
    name = (name or '').strip()
    if re.match(r'^(dr|dra)\.?\s', name, re.IGNORECASE):
        return name
    return f'Dr. {name}'


def wrap(text, font=REGULAR, size=12):
    return simpleSplit(text or '', font, size, TEXT_WIDTH * mm)


def build_report(data):
    layout = DocumentLayout('INFORME MÉDICO')
    layout.header(layout.title, size=20, gap=20)
    layout.identity_block(data, gap=20)
    if data.symptoms:
        layout.section('SÍNTOMAS PRESENTADOS:', data.symptoms)
    if data.observations:
        layout.section('OBSERVACIONES CLÍNICAS:', data.observations)
    if data.diagnosis:
        layout.section('DIAGNÓSTICO:', data.diagnosis)
    if data.treatment:
        layout.section('TRATAMIENTO RECOMENDADO:', data.treatment, gap=15)
    layout.signature(data, min_y=250)
    return layout


def build_prescription(data):
    layout = DocumentLayout('RECETA MÉDICA')
    layout.header(layout.title, size=18, gap=25)
    layout.identity_block(data, gap=25)
    layout.section('MEDICAMENTOS PRESCRITOS:', data.prescription or EMPTY_REQUIRED,
                   heading_size=14, heading_gap=15, line_height=6, gap=20)
    if data.diagnosis:
        layout.section('DIAGNÓSTICO:', data.diagnosis, gap=20)
    if data.recommendations:
        layout.section('INDICACIONES ESPECIALES:', data.recommendations, gap=20)
    layout.signature(data, min_y=240)
    return layout


def build_instructions(data):
    layout = DocumentLayout('INDICACIONES MÉDICAS')
    layout.header(layout.title, size=18, gap=25)
    layout.identity_block(data, gap=25)
    layout.section('RECOMENDACIONES GENERALES:', data.recommendations or EMPTY_REQUIRED,
                   heading_size=14, heading_gap=15, line_height=6, gap=15)
    if data.treatment:
        layout.section('TRATAMIENTO A SEGUIR:', data.treatment, gap=15)
    if data.follow_up:
        layout.section('SEGUIMIENTO:', data.follow_up, gap=20)
    layout.signature(data, min_y=240)
    return layout


BUILDERS = {
    'report': build_report,
    'prescription': build_prescription,
    'instructions': build_instructions,
}


def render_pdf(layout):
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle(layout.title)
    for page in range(layout.page_count):
        for run in (r for r in layout.runs if r.page == page):
            pdf.setFont(run.font, run.size)
            x, y = run.x * mm, (PAGE_HEIGHT - run.y) * mm
            if run.centered:
                pdf.drawCentredString(x, y, run.text)
            else:
                pdf.drawString(x, y, run.text)
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


@dataclass
class GeneratedDocument:
    kind: str
    filename: str
    content: bytes
    layout: DocumentLayout

    mimetype = 'application/pdf'


def document_filename(kind, patient_name, on=None):
    on = on or date.today()
    if isinstance(on, datetime):
        on = on.date()
    patient = re.sub(r'\s+', '_', (patient_name or '').strip())
    return f'{FILENAME_PREFIXES[kind]}_{patient}_{on.isoformat()}.pdf'


def generate_document(kind, data, on=None):
    if kind not in BUILDERS:
        raise ValueError(f"Invalid document type '{kind}'. Use: report, prescription, or instructions")
    layout = BUILDERS[kind](data)
    content = render_pdf(layout)
    logger.debug('Rendered %s for %s (%d pages, %d bytes)', kind, data.patient_name, layout.page_count, len(content))
    return GeneratedDocument(kind, document_filename(kind, data.patient_name, on), content, layout)


def generate_all(data, on=None):
    return {kind: generate_document(kind, data, on) for kind in BUILDERS}


def readiness(consultation):
    """Which fields carry content; callers use it to offer only the relevant downloads."""
    return {
        'symptoms': bool(consultation.symptoms),
        'diagnosis': bool(consultation.diagnosis),
        'treatment': bool(consultation.treatment),
        'prescription': bool(consultation.prescription),
        'notes': bool(consultation.notes),
    }
