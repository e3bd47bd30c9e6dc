"""
Logging: request scope stamped onto records, and both formatters rendering it.
"""

import json
import logging

from flask import g

from tierbook.middleware.logging_config import JSONFormatter, ReadableFormatter, RequestContextFilter


def _record(msg="x", **extra):
    record = logging.LogRecord("tierbook.test", logging.INFO, __file__, 1, msg, None, None)
    for key, val in extra.items():
        setattr(record, key, val)
    return record


class TestRequestContextFilter:
    def test_outside_request_leaves_record_alone(self):
        record = _record()
        assert RequestContextFilter().filter(record) is True
        assert not hasattr(record, "tier_id")

    def test_stamps_route_ids_and_actor(self, app):
        with app.test_request_context("/api/v1/tiers/5/fields/9", method="DELETE"):
            g.request_id = "abc123"
            g.current_user = {"id": 7, "email": "admin@example.com", "is_admin": True}
            record = _record()
            RequestContextFilter().filter(record)
        assert (record.request_id, record.user_id, record.tier_id, record.field_id) == ("abc123", 7, 5, 9)
        assert record.project_id is None

    def test_field_id_from_query(self, app):
        with app.test_request_context("/api/v1/tiers/5/fields?fieldId=3", method="DELETE"):
            record = _record()
            RequestContextFilter().filter(record)
        assert (record.tier_id, record.field_id) == (5, 3)

    def test_explicit_extra_wins(self, app):
        with app.test_request_context("/api/v1/projects/2/tiers", method="POST"):
            record = _record(project_id=99)
            RequestContextFilter().filter(record)
        assert record.project_id == 99


class TestFormatters:
    def test_json_carries_scope(self):
        entry = json.loads(JSONFormatter().format(_record("Tier deleted", tier_id=5, request_id="r1")))
        assert entry["message"] == "Tier deleted"
        assert entry["tier_id"] == 5
        assert entry["request_id"] == "r1"
        assert "field_id" not in entry

    def test_readable_shows_scope_tags(self):
        line = ReadableFormatter().format(_record("Tier deleted", tier_id=5, field_id=9))
        assert "Tier deleted (tier=5 field=9)" in line

    def test_readable_without_scope(self):
        line = ReadableFormatter().format(_record("Started"))
        assert line.endswith("Started")
