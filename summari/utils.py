import re
from datetime import datetime, date

from flask import current_app
from itsdangerous import URLSafeTimedSerializer, SignatureExpired, BadSignature

RECOMMENDATIONS_LABEL = 'Recomendaciones:'
FOLLOW_UP_LABEL = 'Seguimiento:'

SPANISH_MONTHS = (
    'enero', 'febrero', 'marzo', 'abril', 'mayo', 'junio',
    'julio', 'agosto', 'septiembre', 'octubre', 'noviembre', 'diciembre',
)


def compose_notes(additional_notes='', recommendations='', follow_up=''):
    """Join the free-text notes with the recommendation and follow-up lines."""
    return (f"{additional_notes or ''}\n\n"
            f"{RECOMMENDATIONS_LABEL} {recommendations or ''}\n"
            f"{FOLLOW_UP_LABEL} {follow_up or ''}").strip()


def split_notes(notes):
    """
    Inverse of compose_notes.
    Returns (additional_notes, recommendations, follow_up); the last two are
    None when the notes carry no such line.
    """
    if not notes:
        return '', None, None
    rec_match = re.search(rf'^{RECOMMENDATIONS_LABEL}[ \t]*(.*)$', notes, re.MULTILINE)
    follow_match = re.search(rf'^{FOLLOW_UP_LABEL}[ \t]*(.*)$', notes, re.MULTILINE)
    if not rec_match and not follow_match:
        return notes.strip(), None, None
    cut = min(m.start() for m in (rec_match, follow_match) if m)
    additional = notes[:cut].strip()
    recommendations = rec_match.group(1).strip() if rec_match else None
    follow_up = follow_match.group(1).strip() if follow_match else None
    return additional, recommendations, follow_up


def format_long_date(value):
    """'2026-10-19' -> '19 de octubre de 2026'"""
    if isinstance(value, str):
        value = parse_datetime(value)
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        return ''
    return f'{value.day} de {SPANISH_MONTHS[value.month - 1]} de {value.year}'


def parse_datetime(value):
    """Parse an ISO-8601 date or datetime string. Returns None when it is not one."""
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    # stored datetimes are naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


# ----------------------
# Share link tokens
# ----------------------
def get_serializer(secret_key=None):
    key = secret_key or current_app.config.get('SECRET_KEY')
    return URLSafeTimedSerializer(key)


def generate_share_token(consultation_id):
    s = get_serializer()
    return s.dumps(consultation_id, salt='consultation-share-salt')


def verify_share_token(token, max_age=None):
    s = get_serializer()
    if max_age is None:
        max_age = current_app.config.get('SHARE_LINK_MAX_AGE')
    try:
        return s.loads(token, salt='consultation-share-salt', max_age=max_age)
    except SignatureExpired:
        return None
    except BadSignature:
        return None
