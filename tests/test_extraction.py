"""
Tests for the heuristic extraction layer: amounts, dates, the intake record,
the regex extractor and the automation form builder.

Pure functions only: no network and no language model.
"""

import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from paycheck_agent.extraction import (
    AutomationFormData,
    IntakeData,
    build_form_data,
    describe_form_data,
    extract_from_conversation,
    extract_from_text,
    form_data_from_webhook,
    is_empty,
)
from paycheck_agent.extraction.amounts import digits_only, format_currency, parse_amount
from paycheck_agent.extraction.dates import (
    calculate_age,
    calculate_retirement_age,
    extract_retirement_month_year,
    format_retirement_date,
    parse_birthday,
    parse_date_text,
    parse_retirement_date,
    resolve_retirement_age,
)
from paycheck_agent.extraction.text_extractor import (
    extract_birthday,
    extract_first_name,
    extract_retirement_date,
    extract_savings,
)


# ═══════════════════════════════════════════════════════════════
# AMOUNTS
# ═══════════════════════════════════════════════════════════════

class TestAmounts:
    @pytest.mark.parametrize("text,expected", [
        ("$130,000", 130000),
        ("130k", 130000),
        ("about 1.2 million dollars", 1200000),
        ("50 grand", 50000),
        ("none", None),
        ("", None),
    ])
    def test_parse_amount(self, text, expected):
        assert parse_amount(text) == expected

    def test_numbers_pass_through(self):
        assert parse_amount(250000) == 250000
        assert parse_amount(99.6) == 100

    def test_bool_is_not_an_amount(self):
        assert parse_amount(True) is None

    def test_account_names_are_not_amounts(self):
        assert parse_amount("my 401k has 300k") == 300000
        assert parse_amount("403(b)") is None

    def test_digits_only(self):
        assert digits_only("$130,000") == "130000"
        assert digits_only(None) == ""

    def test_format_currency(self):
        assert format_currency(130000) == "$130,000"
        assert format_currency("250000") == "$250,000"
        assert format_currency(None) == "N/A"
        assert format_currency("lots") == "lots"


# ═══════════════════════════════════════════════════════════════
# DATES
# ═══════════════════════════════════════════════════════════════

class TestDateParsing:
    def test_year_month_day_spoken_order(self):
        assert parse_date_text("2004 March 6th") == date(2004, 3, 6)

    def test_us_and_iso_formats(self):
        assert parse_date_text("04/06/1964") == date(1964, 4, 6)
        assert parse_date_text("1964-04-06") == date(1964, 4, 6)

    def test_bare_numbers_are_not_dates(self):
        assert parse_date_text("65") is None

    def test_invalid_calendar_date(self):
        assert parse_date_text("02/30/1964") is None

    def test_birthday_default(self):
        assert parse_birthday("no idea") == date(1970, 1, 1)
        assert parse_birthday(None) == date(1970, 1, 1)

    def test_retirement_date_year_and_default(self):
        assert parse_retirement_date("2031") == date(2031, 1, 1)
        assert parse_retirement_date("") == date(2030, 1, 1)
        assert parse_retirement_date("whenever") == date(2030, 1, 1)

    def test_impossible_year_uses_default(self):
        assert parse_retirement_date("0000") == date(2030, 1, 1)
        assert parse_retirement_date("9999") == date(2030, 1, 1)
        assert parse_birthday("0000-01-01") == date(1970, 1, 1)

    def test_calculate_age_before_and_after_birthday(self):
        assert calculate_age("01/15/1960", today=date(2026, 1, 14)) == 65
        assert calculate_age("01/15/1960", today=date(2026, 1, 15)) == 66
        assert calculate_age("not a date") == 0


class TestRetirementMonthYear:
    def test_plain_year(self):
        assert extract_retirement_month_year("2031") == ("1", "2031")

    def test_month_slash_year_is_unpadded(self):
        assert extract_retirement_month_year("06/2030") == ("6", "2030")

    def test_month_name_and_year(self):
        assert extract_retirement_month_year("June 2031") == ("6", "2031")

    def test_bare_age_with_birthday(self):
        assert extract_retirement_month_year("65", "1960-01-01") == ("1", "2025")

    def test_bare_age_without_birthday(self):
        assert extract_retirement_month_year("65", today=date(2026, 1, 1)) == ("1", "2061")

    def test_in_n_years(self):
        assert extract_retirement_month_year("in 5 years", today=date(2026, 5, 1)) == ("1", "2031")

    def test_fallback(self):
        assert extract_retirement_month_year("") == ("1", "2030")
        assert extract_retirement_month_year("when the kids move out") == ("1", "2030")
        assert extract_retirement_month_year("0000") == ("1", "2030")


class TestRetirementAge:
    def test_from_year(self):
        assert calculate_retirement_age("1960-01-01", "2027") == 67

    def test_age_phrase(self):
        assert calculate_retirement_age("1960-01-01", "at age 63") == 63

    def test_in_years_adds_to_current_age(self):
        assert calculate_retirement_age("1960-06-01", "in 5 years", today=date(2026, 1, 1)) == 70

    def test_needs_birthday(self):
        assert calculate_retirement_age(None, "65") == 0

    def test_resolve_defaults_to_62(self):
        assert resolve_retirement_age(None, "whenever") == 62
        assert resolve_retirement_age("1960-01-01", "2200") == 62

    def test_impossible_year_is_not_an_age(self):
        assert calculate_retirement_age("01/01/1970", "0000") == 0
        assert resolve_retirement_age("01/01/1970", "0000") == 62

    def test_resolve_without_birthday(self):
        assert resolve_retirement_age(None, "65") == 65
        assert resolve_retirement_age(None, "at age 67") == 67


class TestFormatRetirementDate:
    def test_year(self):
        assert format_retirement_date("2031") == "January 1, 2031"

    def test_age(self):
        result = format_retirement_date("65", current_age=60, today=date(2026, 1, 1))
        assert result == "January 1, 2031 (at age 65)"

    def test_month_year(self):
        assert format_retirement_date("june 2031") == "June 1, 2031"

    def test_in_years(self):
        result = format_retirement_date("in 5 years", today=date(2026, 1, 1))
        assert result == "January 1, 2031 (in 5 years)"

    def test_empty(self):
        assert format_retirement_date(None) == ""


# ═══════════════════════════════════════════════════════════════
# INTAKE RECORD
# ═══════════════════════════════════════════════════════════════

class TestIntakeData:
    def test_from_dict_accepts_aliases(self):
        intake = IntakeData.from_dict({
            "savedmoney": "100k",
            "birthday": "1/1/1960",
            "retirementdate": "2031",
        })
        assert intake.current_savings == "100k"
        assert intake.date_of_birth == "1/1/1960"
        assert intake.retirement_date == "2031"

    def test_from_dict_ignores_non_mappings(self):
        assert IntakeData.from_dict("abc").to_dict() == {}
        assert IntakeData.from_dict([("dateOfBirth", "1964")]).to_dict() == {}

    def test_unknown_keys_go_to_additional_info(self):
        intake = IntakeData.from_dict({"hobby": "golf", "additionalInfo": "likes travel"})
        assert intake.additional_info == {"hobby": "golf", "notes": "likes travel"}

    def test_to_dict_is_camel_case_without_empties(self):
        data = IntakeData(first_name="Ann", current_savings=250000, retirement_date="").to_dict()
        assert data == {"firstName": "Ann", "currentRetirementSavings": 250000}

    def test_merge_keeps_known_values(self):
        known = IntakeData(first_name="Ann", current_savings=100)
        merged = known.merge(IntakeData(current_savings=None, retirement_date="2030"))
        assert merged.first_name == "Ann"
        assert merged.current_savings == 100
        assert merged.retirement_date == "2030"
        # merge returns a copy
        assert known.retirement_date is None

    def test_merge_newer_value_wins(self):
        merged = IntakeData(current_savings=100).merge(IntakeData(current_savings=200))
        assert merged.current_savings == 200

    def test_completion(self):
        intake = IntakeData(date_of_birth="1960-01-01")
        assert intake.missing_fields() == ["retirement_date", "current_savings"]
        assert intake.completion_percentage() == 33
        assert intake.has_any
        assert not intake.is_complete

    def test_is_empty(self):
        assert is_empty("N/A")
        assert is_empty("  ")
        assert is_empty([])
        assert not is_empty(0)
        assert not is_empty("2030")


# ═══════════════════════════════════════════════════════════════
# REGEX EXTRACTOR
# ═══════════════════════════════════════════════════════════════

class TestTextExtractor:
    def test_birthday_spoken(self):
        assert extract_birthday("I was born on March 6, 1964") == "03/06/1964"

    def test_birthday_numeric(self):
        assert extract_birthday("my date of birth is 04/06/1964") == "04/06/1964"

    def test_birth_year_only(self):
        assert extract_birthday("I was born in 1964") == "1964"

    def test_retirement_age(self):
        assert extract_retirement_date("I want to retire at 65") == "65"

    def test_retirement_in_years(self):
        assert extract_retirement_date("I'd like to retire in 5 years") == "in 5 years"

    def test_retirement_year(self):
        assert extract_retirement_date("hoping to retire in 2031") == "2031"

    def test_savings_before_keyword(self):
        assert extract_savings("I have about $250,000 saved") == 250000

    def test_savings_after_account_name(self):
        assert extract_savings("My 401k has 300k in it") == 300000

    def test_small_bare_numbers_are_not_savings(self):
        assert extract_savings("I saved for 12 years") is None

    def test_first_name(self):
        assert extract_first_name("Hi, my name is Sarah") == "Sarah"
        assert extract_first_name("I'm Retired now") is None

    def test_full_utterance(self):
        intake = extract_from_text(
            "I was born on March 6, 1964 and want to retire at 65. I have $250,000 saved."
        )
        assert intake.date_of_birth == "03/06/1964"
        assert intake.retirement_date == "65"
        assert intake.current_savings == 250000
        assert intake.is_complete

    def test_blank_text(self):
        assert extract_from_text("   ").to_dict() == {}

    def test_conversation_skips_assistant_turns(self):
        intake = extract_from_conversation([
            {"type": "assistant", "content": "Did you retire at 70?"},
            {"type": "user", "content": "I want to retire at 65"},
            {"role": "user", "content": "actually I want to retire at 67"},
        ])
        assert intake.retirement_date == "67"


# ═══════════════════════════════════════════════════════════════
# AUTOMATION FORM DATA
# ═══════════════════════════════════════════════════════════════

class TestFormBuilder:
    def test_defaults(self):
        form = AutomationFormData()
        assert form.investment_amount == "130000"
        assert form.birthday == "07/01/1967"
        assert form.retirement_age == "62"
        assert form.longevity_estimate == "100"
        assert (form.retirement_month, form.retirement_year) == ("1", "2030")

    def test_from_dict_keeps_defaults_for_blanks(self):
        form = AutomationFormData.from_dict({
            "investmentAmount": "$1,000",
            "retirementMonth": "6",
            "birthday": "",
        })
        assert form.investment_amount == "1000"
        assert form.retirement_month == "6"
        assert form.birthday == "07/01/1967"

    def test_from_dict_ignores_non_mappings(self):
        assert AutomationFormData.from_dict("abc").investment_amount == "130000"
        assert AutomationFormData.from_dict([1, 2]).retirement_age == "62"

    def test_from_dict_snake_case(self):
        form = AutomationFormData.from_dict({"session_id": "abc", "retirement_year": "2033"})
        assert form.session_id == "abc"
        assert form.retirement_year == "2033"

    def test_to_dict_drops_none(self):
        data = AutomationFormData().to_dict()
        assert "sessionId" not in data
        assert data["investmentAmount"] == "130000"

    def test_build_from_intake(self):
        intake = IntakeData(
            date_of_birth="03/06/1964",
            retirement_date="65",
            current_savings="$250,000",
        )
        form = build_form_data(intake, session_id="s-1")
        assert form.session_id == "s-1"
        assert form.birthday == "03/06/1964"
        assert form.retirement_age == "65"
        assert (form.retirement_month, form.retirement_year) == ("1", "2029")
        assert form.investment_amount == "250000"

    def test_build_with_gaps_uses_defaults(self):
        form = build_form_data(IntakeData())
        assert form.investment_amount == "130000"
        assert form.retirement_age == "62"

    def test_webhook_fields(self):
        form = form_data_from_webhook("$500,000", "2031", "1965-06-15")
        assert form.investment_amount == "500000"
        assert form.birthday == "06/15/1965"
        assert form.retirement_age == "65"
        assert form.retirement_year == "2031"
        assert form.retirement_month == "1"
        assert form.longevity_estimate == "100"

    def test_webhook_impossible_year(self):
        form = form_data_from_webhook("100000", "0000", "1970-01-01")
        assert form.retirement_year == "2030"
        assert form.retirement_age == "60"

    def test_webhook_fallbacks(self):
        form = form_data_from_webhook("", "sometime", "unknown")
        assert form.investment_amount == "130000"
        assert form.birthday == "01/01/1970"
        assert form.retirement_year == "2030"
        assert form.retirement_age == "60"

    def test_describe(self):
        intake = IntakeData(date_of_birth="1960-01-01", retirement_date="2031")
        form = build_form_data(intake)
        info = describe_form_data(intake, form)
        assert info["retirementAge"] == 71
        assert info["displayRetirementDate"] == "January 1, 2031"
        assert info["completion"] == 67
        assert info["missingFields"] == ["current_savings"]
