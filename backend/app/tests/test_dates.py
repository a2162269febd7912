from datetime import date, datetime

from app.services.dates import normalize_sheet_date, parse_date


def test_iso_input_is_normalized_to_sheet_format():
    assert normalize_sheet_date("2024-03-05") == "05/03/2024"
    assert normalize_sheet_date("2024-03-05T13:45:00") == "05/03/2024"


def test_sheet_formats_are_accepted():
    assert normalize_sheet_date("05/03/2024") == "05/03/2024"
    assert normalize_sheet_date("05-03-2024") == "05/03/2024"
    assert normalize_sheet_date("05/03/24") == "05/03/2024"


def test_invalid_or_empty_values():
    assert normalize_sheet_date("") is None
    assert normalize_sheet_date("-") is None
    assert normalize_sheet_date("amanha") is None
    assert parse_date(None) is None


def test_date_objects_pass_through():
    assert parse_date(date(2024, 3, 5)) == date(2024, 3, 5)
    assert parse_date(datetime(2024, 3, 5, 10, 0)) == date(2024, 3, 5)
