"""
FieldType coercion: which column a value lands in and how it is normalised.
"""

import pytest

from tierbook.core.exceptions import ValidationError
from tierbook.core.field_types import FieldType, parse_options


class TestParse:
    def test_known_names(self):
        assert FieldType.parse("Number") is FieldType.NUMBER
        assert FieldType.parse("multi-employee") is FieldType.MULTI_EMPLOYEE

    def test_unknown_name(self):
        with pytest.raises(ValidationError):
            FieldType.parse("matrix")

    def test_only_number_is_numeric(self):
        assert [ft for ft in FieldType if ft.is_numeric] == [FieldType.NUMBER]
        assert FieldType.NUMBER.storage_column == "value"
        assert FieldType.DATE.storage_column == "text_value"


class TestCoerce:
    @pytest.mark.parametrize("field_type,raw,expected", [
        (FieldType.NUMBER, "12.5", (12.5, None)),
        (FieldType.NUMBER, 3, (3.0, None)),
        (FieldType.STRING, 42, (None, "42")),
        (FieldType.DATE, "2024-03-01", (None, "2024-03-01")),
        (FieldType.DATE, "01.03.2024", (None, "2024-03-01")),
        (FieldType.TIME, "9:05", (None, "09:05")),
        (FieldType.TIME, "23:59:30", (None, "23:59:30")),
        (FieldType.DATETIME, "2024-03-01T10:00:00Z", (None, "2024-03-01T10:00:00+00:00")),
        (FieldType.COLOR, "#ABC", (None, "#aabbcc")),
        (FieldType.COLOR, "#00FF7f", (None, "#00ff7f")),
        (FieldType.EMAIL, "Someone@Example.com", (None, "Someone@example.com")),
        (FieldType.PHONE, "+49 (30) 123-456", (None, "+49 (30) 123-456")),
        (FieldType.CHECKBOX, True, (None, "true")),
        (FieldType.CHECKBOX, "no", (None, "false")),
        (FieldType.URL, "https://example.com/x", (None, "https://example.com/x")),
        (FieldType.MULTI_EMPLOYEE, ["Ann", " Bo ", ""], (None, "Ann,Bo")),
        (FieldType.MULTI_EMPLOYEE, "Ann, Bo", (None, "Ann,Bo")),
    ])
    def test_valid(self, field_type, raw, expected):
        assert field_type.coerce(raw) == expected

    @pytest.mark.parametrize("field_type,raw", [
        (FieldType.NUMBER, "twelve"),
        (FieldType.NUMBER, True),
        (FieldType.NUMBER, "inf"),
        (FieldType.NUMBER, 10 ** 400),
        (FieldType.DATE, "March 1st"),
        (FieldType.TIME, "25:00"),
        (FieldType.COLOR, "red"),
        (FieldType.EMAIL, "nobody"),
        (FieldType.PHONE, "call me"),
        (FieldType.CHECKBOX, "maybe"),
        (FieldType.URL, "example.com"),
    ])
    def test_invalid(self, field_type, raw):
        with pytest.raises(ValidationError):
            field_type.coerce(raw)

    def test_empty_clears_both_columns(self):
        assert FieldType.NUMBER.coerce(None) == (None, None)
        assert FieldType.STRING.coerce("   ") == (None, None)
        assert FieldType.MULTI_EMPLOYEE.coerce(" , ") == (None, None)

    def test_dropdown_checks_options(self):
        assert FieldType.DROPDOWN.coerce("Done", ["Open", "Done"]) == (None, "Done")
        with pytest.raises(ValidationError):
            FieldType.DROPDOWN.coerce("Later", ["Open", "Done"])

    def test_display_reads_routed_column(self):
        assert FieldType.NUMBER.display(4.0, "ignored") == 4.0
        assert FieldType.STRING.display(4.0, "kept") == "kept"


def test_parse_options():
    assert parse_options("a\n b \n\n") == ["a", "b"]
    assert parse_options(["x", None, " "]) == ["x"]
    assert parse_options(None) == []
