"""HTTP client for the Summari API, used by the workflow controller."""

import logging
import os
import re
from urllib.parse import unquote

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = float(os.environ.get('REQUEST_TIMEOUT', 10))


class GatewayError(Exception):
    """A request failed: transport error, timeout or non-2xx answer."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        self.status = status


class HttpGateway:
    def __init__(self, base_url, timeout=DEFAULT_TIMEOUT, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method, path, **kwargs):
        url = f'{self.base_url}{path}'
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            logger.warning('%s %s timed out after %ss', method, path, self.timeout)
            raise GatewayError(f'The server did not answer within {self.timeout:g}s')
        except requests.exceptions.ConnectionError:
            logger.warning('%s %s: connection failed', method, path)
            raise GatewayError('Could not connect to the server')
        except requests.exceptions.RequestException as e:
            logger.warning('%s %s failed: %s', method, path, e)
            raise GatewayError('Request failed')

        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = body.get('message') if isinstance(body, dict) else None
            raise GatewayError(message or f'HTTP {response.status_code}', status=response.status_code)
        return response

    def _json(self, method, path, **kwargs):
        response = self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError:
            logger.warning('%s %s: response is not JSON', method, path)
            raise GatewayError('Invalid response from server', status=response.status_code)

    # users / appointments / records
    def list_users(self):
        return self._json('GET', '/api/users')

    def list_appointments(self, doctor_id=None, patient_id=None, status=None):
        params = {k: v for k, v in (('doctor_id', doctor_id), ('patient_id', patient_id),
                                    ('status', status)) if v}
        return self._json('GET', '/api/appointments', params=params)

    def list_medical_records(self, patient_id):
        return self._json('GET', '/api/medical-records', params={'patient_id': patient_id})

    # consultations
    def create_consultation(self, appointment_id, doctor_id):
        return self._json('POST', '/api/consultations',
                          json={'appointment_id': appointment_id, 'doctor_id': doctor_id})

    def get_consultation(self, consultation_id):
        return self._json('GET', f'/api/consultations/{consultation_id}')

    def update_consultation(self, consultation_id, **fields):
        return self._json('PUT', f'/api/consultations/{consultation_id}', json=fields)

    # documents
    def list_documents(self, consultation_id):
        return self._json('GET', '/api/documents', params={'consultation_id': consultation_id})['documents']

    def upload_document(self, consultation_id, filename, content, mimetype, document_type='document'):
        data = self._json('POST', '/api/upload',
                          files={'file': (filename, content, mimetype)},
                          data={'consultation_id': consultation_id, 'document_type': document_type})
        return data['document']

    def attach_document(self, consultation_id, document):
        data = self._json('POST', '/api/documents',
                          json={'consultation_id': consultation_id, 'document': document})
        return data['documents']

    def remove_document(self, consultation_id, document_id):
        data = self._json('DELETE', '/api/documents',
                          params={'consultation_id': consultation_id, 'document_id': document_id})
        return data['documents']

    def document_status(self, consultation_id):
        return self._json('GET', '/api/generate-pdf', params={'consultation_id': consultation_id})

    def generate_document(self, consultation_id, kind):
        """Returns (filename, pdf bytes)."""
        response = self._request('POST', '/api/generate-pdf',
                                 json={'consultation_id': consultation_id, 'document_type': kind})
        disposition = response.headers.get('Content-Disposition', '')
        encoded = re.search(r"filename\*=UTF-8''([^;]+)", disposition, re.IGNORECASE)
        if encoded:
            filename = unquote(encoded.group(1).strip())
        else:
            match = re.search(r'filename="?([^";]+)"?', disposition)
            filename = match.group(1) if match else f'{kind}.pdf'
        return filename, response.content

    def send_documents(self, method, consultation_id, destination, documents=None):
        return self._json('POST', f'/api/send/{method}',
                          json={'consultation_id': consultation_id, 'destination': destination,
                                'documents': documents})

    # admin
    def analytics(self, days=7):
        return self._json('GET', '/api/admin/analytics', params={'days': days})

    def admin_users(self):
        return self._json('GET', '/api/admin/users')

    def admin_appointments(self):
        return self._json('GET', '/api/admin/appointments')

    def settings(self):
        return self._json('GET', '/api/admin/settings')
