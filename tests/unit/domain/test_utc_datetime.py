"""Unit tests for the UTC timestamp column type"""

from datetime import datetime, timedelta, timezone
from sqlalchemy.dialects import sqlite
from src.domain.base import UTCDateTime, utcnow


class TestUTCDateTime:

    def test_aware_values_are_stored_as_naive_utc(self):
        column_type = UTCDateTime()
        moment = datetime(2024, 1, 1, 5, 30, tzinfo=timezone(timedelta(hours=5, minutes=30)))

        stored = column_type.process_bind_param(moment, sqlite.dialect())

        assert stored == datetime(2024, 1, 1, 0, 0)
        assert stored.tzinfo is None

    def test_naive_values_are_taken_as_utc(self):
        column_type = UTCDateTime()

        assert column_type.process_bind_param(datetime(2024, 1, 1), sqlite.dialect()) == datetime(2024, 1, 1)

    def test_loaded_values_are_tagged_utc(self):
        column_type = UTCDateTime()

        loaded = column_type.process_result_value(datetime(2024, 2, 1), sqlite.dialect())

        assert loaded == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert loaded.tzinfo is timezone.utc

    def test_none_passes_through(self):
        column_type = UTCDateTime()

        assert column_type.process_bind_param(None, sqlite.dialect()) is None
        assert column_type.process_result_value(None, sqlite.dialect()) is None

    def test_utcnow_is_aware(self):
        assert utcnow().tzinfo is timezone.utc
