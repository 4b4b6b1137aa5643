"""Tests for specialty normalization."""
import pytest

from clinic_booking.specialties import (
    SpecialtyEncoding,
    classify_specialties,
    normalize_specialties,
    specialty_label,
)


class TestClassifySpecialties:
    """Test tagging of raw specialty values."""

    @pytest.mark.parametrize("raw", [None, "", "   ", []])
    def test_empty_values(self, raw):
        """None, blank strings and empty lists are EMPTY."""
        encoding, _ = classify_specialties(raw)
        assert encoding == SpecialtyEncoding.EMPTY

    def test_plain_string(self):
        assert classify_specialties("Cardiology")[0] == SpecialtyEncoding.PLAIN

    def test_json_string(self):
        assert classify_specialties('["Cardiology"]')[0] == SpecialtyEncoding.JSON_LIST

    def test_list(self):
        assert classify_specialties(["Cardiology"])[0] == SpecialtyEncoding.LIST


class TestNormalizeSpecialties:
    """Every encoding normalizes to the same ordered list."""

    def test_plain_single(self):
        assert normalize_specialties("Cardiology") == ["Cardiology"]

    def test_plain_comma_separated(self):
        """Comma separated string is split and trimmed."""
        assert normalize_specialties("Cardiology, Internal Medicine") == [
            "Cardiology",
            "Internal Medicine",
        ]

    def test_json_encoded_list(self):
        assert normalize_specialties('["Cardiology", "Hypertension"]') == [
            "Cardiology",
            "Hypertension",
        ]

    def test_clean_list(self):
        assert normalize_specialties([" Pediatrics ", "Family Medicine"]) == [
            "Pediatrics",
            "Family Medicine",
        ]

    def test_list_of_json_fragments(self):
        """A JSON array that was split on commas is reassembled."""
        raw = ['["Cardiology"', '"Internal Medicine"]']
        assert normalize_specialties(raw) == ["Cardiology", "Internal Medicine"]

    def test_broken_json_falls_back_to_stripping(self):
        """Unparseable JSON keeps the names between brackets and quotes."""
        assert normalize_specialties('["Cardiology", "Hypertension"') == [
            "Cardiology",
            "Hypertension",
        ]

    def test_duplicates_and_blanks_removed(self):
        """First occurrence wins, empty entries dropped."""
        assert normalize_specialties("Cardiology, , Cardiology, Dermatology") == [
            "Cardiology",
            "Dermatology",
        ]

    def test_json_scalar(self):
        assert normalize_specialties('["Neurology"]') == ["Neurology"]

    def test_none_is_empty_list(self):
        assert normalize_specialties(None) == []


def test_specialty_label_joins_names():
    assert specialty_label(["Cardiology", "Hypertension"], "General Medicine") == "Cardiology, Hypertension"


def test_specialty_label_uses_default_when_empty():
    assert specialty_label([], "General Medicine") == "General Medicine"
