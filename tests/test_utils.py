"""Tests for notes composition, dates and share tokens."""

from datetime import date, datetime

from summari.utils import (
    compose_notes, split_notes, format_long_date, parse_datetime,
    generate_share_token, verify_share_token,
)


class TestNotes:

    def test_compose_with_additional(self):
        assert compose_notes('Estable', 'Reposo', '1 semana') == \
            'Estable\n\nRecomendaciones: Reposo\nSeguimiento: 1 semana'

    def test_compose_empty(self):
        assert compose_notes() == 'Recomendaciones: \nSeguimiento:'

    def test_split_plain_text(self):
        assert split_notes('Solo texto') == ('Solo texto', None, None)

    def test_split_empty(self):
        assert split_notes(None) == ('', None, None)


class TestDates:

    def test_long_date(self):
        assert format_long_date(date(2026, 10, 19)) == '19 de octubre de 2026'
        assert format_long_date('2026-01-05T08:00:00') == '5 de enero de 2026'

    def test_parse_offset_to_naive_utc(self):
        assert parse_datetime('2026-10-19T10:00:00+02:00') == datetime(2026, 10, 19, 8, 0)

    def test_parse_invalid(self):
        assert parse_datetime('next tuesday') is None
        assert parse_datetime('') is None


class TestShareTokens:

    def test_round_trip(self, ctx):
        assert verify_share_token(generate_share_token(42)) == 42

    def test_expired(self, ctx):
        assert verify_share_token(generate_share_token(42), max_age=-1) is None

    def test_tampered(self, ctx):
        assert verify_share_token(generate_share_token(42) + 'x') is None
