"""Tests for the consultation document list and upload validation."""

import os

import pytest

from summari.documents import DocumentStore, UploadHandler
from summari.errors import ConflictError, NotFoundError, UploadRejected, ValidationError
from summari.services import ConsultationService

MB = 1024 * 1024


@pytest.fixture
def consultation_id(seeded, ctx):
    consultation, _ = ConsultationService().start_consultation(seeded.appointment_id)
    return consultation.id


def make_descriptor(doc_id='doc-1', name='analitica.pdf'):
    return {
        'id': doc_id,
        'file_name': name,
        'original_name': name,
        'file_url': f'/uploads/1/{doc_id}.pdf',
        'file_type': 'application/pdf',
        'file_size': 1234,
        'document_type': 'lab',
        'uploaded_at': '2026-10-19T09:00:00Z',
    }


class TestDocumentStore:

    def test_attach_then_list_returns_same_descriptor(self, consultation_id):
        store = DocumentStore()
        descriptor = make_descriptor()
        store.attach(consultation_id, descriptor)
        assert store.list(consultation_id) == [descriptor]

    def test_remove_by_id(self, consultation_id):
        store = DocumentStore()
        store.attach(consultation_id, make_descriptor('a'))
        store.attach(consultation_id, make_descriptor('b'))
        _, remaining = store.remove(consultation_id, 'a')
        assert [d['id'] for d in remaining] == ['b']
        assert [d['id'] for d in store.list(consultation_id)] == ['b']

    def test_remove_unknown_id(self, consultation_id):
        with pytest.raises(NotFoundError):
            DocumentStore().remove(consultation_id, 'missing')

    def test_attach_requires_id(self, consultation_id):
        with pytest.raises(ValidationError):
            DocumentStore().attach(consultation_id, {'file_name': 'x.pdf'})

    def test_stale_version_is_a_conflict(self, consultation_id):
        store = DocumentStore()
        consultation, _ = store.attach(consultation_id, make_descriptor('a'), expected_version=1)
        assert consultation.version == 2
        with pytest.raises(ConflictError):
            store.attach(consultation_id, make_descriptor('b'), expected_version=1)
        assert [d['id'] for d in store.list(consultation_id)] == ['a']

    def test_unknown_consultation(self, ctx):
        with pytest.raises(NotFoundError):
            DocumentStore().list(12345)


class TestUploadHandler:

    def test_pdf_under_limit_is_stored(self, tmp_path):
        handler = UploadHandler(str(tmp_path))
        content = b'%PDF-1.4' + b'0' * (4 * MB)
        descriptor = handler.accept(content, 'application/pdf', 'resultados.pdf',
                                    consultation_id=7, document_type='lab')
        assert descriptor['file_size'] == len(content)
        assert descriptor['file_url'] == f"/uploads/7/{descriptor['unique_name']}"
        assert descriptor['unique_name'].endswith('.pdf')
        assert descriptor['original_name'] == 'resultados.pdf'
        assert descriptor['document_type'] == 'lab'
        assert os.path.exists(os.path.join(str(tmp_path), '7', descriptor['unique_name']))

    def test_too_large(self, tmp_path):
        with pytest.raises(UploadRejected) as exc:
            UploadHandler(str(tmp_path)).accept(b'0' * (6 * MB), 'application/pdf', 'big.pdf')
        assert exc.value.reason == 'too_large'
        assert not os.listdir(str(tmp_path))

    def test_type_checked_before_size(self, tmp_path):
        with pytest.raises(UploadRejected) as exc:
            UploadHandler(str(tmp_path)).accept(b'0' * (6 * MB), 'application/x-msdownload', 'setup.exe')
        assert exc.value.reason == 'bad_type'

    def test_without_consultation_goes_to_general(self, tmp_path):
        descriptor = UploadHandler(str(tmp_path)).accept(b'hola', 'text/plain', 'nota.txt')
        assert descriptor['file_url'].startswith('/uploads/general/')
        assert descriptor['document_type'] == 'document'

    def test_unique_names(self, tmp_path):
        handler = UploadHandler(str(tmp_path))
        first = handler.accept(b'a', 'image/png', 'foto.png')
        second = handler.accept(b'b', 'image/png', 'foto.png')
        assert first['unique_name'] != second['unique_name']
        assert first['id'] != second['id']

    def test_missing_filename(self, tmp_path):
        with pytest.raises(ValidationError):
            UploadHandler(str(tmp_path)).accept(b'a', 'image/png', '')
