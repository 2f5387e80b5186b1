import os
import uuid
from datetime import datetime

from flask import current_app
from werkzeug.utils import secure_filename

from .constants import ALLOWED_UPLOAD_TYPES, MAX_UPLOAD_SIZE
from .errors import ValidationError, NotFoundError, ConflictError, UploadRejected
from .services import ConsultationService


class DocumentStore:
    """
    Attachment list of a consultation, kept as one JSON column.

    Every mutation reads the whole list, changes it and writes it back. Two
    writers racing on the same consultation would lose an update; the
    consultation's version counter turns that into a ConflictError instead.
    """

    def __init__(self):
        self.consultations = ConsultationService()

    def list(self, consultation_id):
        return self.consultations.get_consultation(consultation_id).get_documents()

    def attach(self, consultation_id, document, expected_version=None):
        if not consultation_id or not document:
            raise ValidationError('consultation_id and document are required.')
        if not isinstance(document, dict) or not document.get('id'):
            raise ValidationError('document must be an object with an id.')
        consultation = self._load(consultation_id, expected_version)
        documents = consultation.get_documents()
        documents.append(document)
        consultation.set_documents(documents)
        self.consultations.save(consultation)
        return consultation, documents

    def remove(self, consultation_id, document_id, expected_version=None):
        if not consultation_id or not document_id:
            raise ValidationError('consultation_id and document_id are required.')
        consultation = self._load(consultation_id, expected_version)
        documents = consultation.get_documents()
        remaining = [d for d in documents if str(d.get('id')) != str(document_id)]
        if len(remaining) == len(documents):
            raise NotFoundError('Document not found.')
        consultation.set_documents(remaining)
        self.consultations.save(consultation)
        return consultation, remaining

    def _load(self, consultation_id, expected_version):
        consultation = self.consultations.get_consultation(consultation_id)
        if expected_version is not None and int(expected_version) != consultation.version:
            raise ConflictError('Documents changed since they were read. Reload and retry.')
        return consultation


class UploadHandler:
    """Validates uploaded files and stores them under <root>/<consultation id or 'general'>/."""

    def __init__(self, upload_root, url_prefix='/uploads', max_size=MAX_UPLOAD_SIZE,
                 allowed_types=ALLOWED_UPLOAD_TYPES):
        self.upload_root = upload_root
        self.url_prefix = url_prefix.rstrip('/')
        self.max_size = max_size
        self.allowed_types = allowed_types

    @classmethod
    def from_app(cls, app=None):
        app = app or current_app
        return cls(app.config['UPLOAD_FOLDER'], max_size=app.config['MAX_UPLOAD_SIZE'])

    def validate(self, mimetype, size):
        if mimetype not in self.allowed_types:
            raise UploadRejected('File type not allowed.', reason='bad_type')
        if size > self.max_size:
            limit_mb = self.max_size // (1024 * 1024)
            raise UploadRejected(f'File is too large (maximum {limit_mb}MB).', reason='too_large')

    def accept(self, content, mimetype, filename, consultation_id=None, document_type=None):
        """Store `content` (bytes) and return its document descriptor."""
        if not filename:
            raise ValidationError('No file uploaded.')
        self.validate(mimetype, len(content))

        _, ext = os.path.splitext(filename)
        unique_name = f'{uuid.uuid4()}{ext.lower()}'
        folder = secure_filename(str(consultation_id)) if consultation_id else 'general'
        target_dir = os.path.join(self.upload_root, folder)
        os.makedirs(target_dir, exist_ok=True)
        with open(os.path.join(target_dir, unique_name), 'wb') as fh:
            fh.write(content)

        return {
            'id': str(uuid.uuid4()),
            'file_name': filename,
            'original_name': filename,
            'unique_name': unique_name,
            'file_url': f'{self.url_prefix}/{folder}/{unique_name}',
            'file_type': mimetype,
            'file_size': len(content),
            'document_type': document_type or 'document',
            'consultation_id': consultation_id,
            'uploaded_at': datetime.utcnow().isoformat() + 'Z',
        }

    def accept_file(self, file_storage, consultation_id=None, document_type=None):
        """Same as accept() for a werkzeug FileStorage from a multipart request."""
        if file_storage is None or not file_storage.filename:
            raise ValidationError('No file uploaded.')
        content = file_storage.read()
        return self.accept(content, file_storage.mimetype, file_storage.filename,
                           consultation_id=consultation_id, document_type=document_type)
