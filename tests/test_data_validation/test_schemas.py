"""
Schema validation tests for pipeline models and request parsing.

Tests verify bill id parsing, camelCase serialization and the
validation rules on counts and confidence.
"""
import pytest
from pydantic import ValidationError

from policy_core.exceptions import InvalidBillIdError, InvalidRequestError
from policy_core.models import (
    BillLocator,
    ChangeSummary,
    DateRange,
    PolicyDNAResult,
    PolicyFilters,
    PolicySearchHit,
    PolicySectionHit,
)
from policy_core.service import parse_chat_request


class TestBillLocatorParse:
    """Tests for BillLocator.parse() composite id handling."""

    def test_parses_canonical_id(self):
        locator = BillLocator.parse("118-hr-1234")
        assert locator.congress == 118
        assert locator.bill_type == "hr"
        assert locator.bill_number == "1234"

    def test_bill_type_lowercased(self):
        """Upper-case bill types should be stored lower-case."""
        locator = BillLocator.parse("118-HR-1234")
        assert locator.bill_type == "hr"
        assert locator.bill_id == "118-hr-1234"

    def test_alias_display_form(self):
        assert BillLocator.parse("117-sjres-12").alias == "SJRES 12"

    @pytest.mark.parametrize("bill_id", [
        "118-hr",
        "hr-1234",
        "",
        "118--1234",
        "abc-hr-1234",
        "0-hr-1234",
    ])
    def test_malformed_ids_rejected(self, bill_id):
        with pytest.raises(InvalidBillIdError):
            BillLocator.parse(bill_id)

    def test_non_string_rejected(self):
        with pytest.raises(InvalidBillIdError):
            BillLocator.parse(None)

    def test_invalid_bill_id_is_value_error(self):
        """Callers catching ValueError should still see bad ids."""
        with pytest.raises(ValueError):
            BillLocator.parse("118-hr")

    def test_locator_is_frozen(self):
        locator = BillLocator.parse("118-hr-1234")
        with pytest.raises(ValidationError):
            locator.congress = 117


class TestCamelCaseSerialization:
    """Tests for the wire format of response models."""

    def test_search_hit_uses_camel_case(self):
        hit = PolicySearchHit(
            bill_id="118-hr-1234",
            congress=118,
            bill_type="hr",
            bill_number="1234",
            title="Clean Energy Tax Credit Extension Act",
            latest_action="Reported by the Committee on Ways and Means.",
            confidence=88,
        )
        payload = hit.to_json_dict()
        assert payload["billId"] == "118-hr-1234"
        assert payload["latestAction"].startswith("Reported")
        assert "bill_id" not in payload

    def test_relevance_never_serialized(self):
        hit = PolicySearchHit(
            bill_id="118-hr-1234", congress=118, bill_type="hr", bill_number="1234",
            title="Title", relevance=0.9,
        )
        assert "relevance" not in hit.to_json_dict()
        assert "relevance" not in hit.model_dump()

    def test_search_hit_defaults(self):
        hit = PolicySearchHit(
            bill_id="118-s-5", congress=118, bill_type="s", bill_number="5", title="Title",
        )
        assert hit.status == "Unknown"
        assert hit.jurisdiction == "federal"
        assert hit.sections == []

    def test_none_fields_omitted(self):
        payload = PolicySectionHit(id="1234-summary", snippet="text").to_json_dict()
        assert "heading" not in payload
        assert "sourceUri" not in payload

    def test_date_range_from_to_aliases(self):
        date_range = DateRange.model_validate({"from": "2024-01-01", "to": "2024-06-30"})
        assert date_range.date_from == "2024-01-01"
        assert date_range.to_json_dict() == {"from": "2024-01-01", "to": "2024-06-30"}

    def test_filters_accept_camel_case_input(self):
        filters = PolicyFilters.model_validate({
            "billId": "118-hr-1234",
            "dateRange": {"from": "2024-01-01T00:00:00Z"},
            "keywords": ["solar"],
        })
        assert filters.bill_id == "118-hr-1234"
        assert filters.date_range.date_from == "2024-01-01T00:00:00Z"


class TestValueRules:
    """Tests for numeric bounds on model fields."""

    def test_negative_change_counts_rejected(self):
        with pytest.raises(ValidationError):
            ChangeSummary(added=-1)

    def test_confidence_upper_bound(self):
        with pytest.raises(ValidationError):
            PolicySearchHit(
                bill_id="118-hr-1", congress=118, bill_type="hr", bill_number="1",
                title="Title", confidence=100,
            )

    def test_section_score_upper_bound(self):
        with pytest.raises(ValidationError):
            PolicySectionHit(id="x", score=1.0)

    def test_dna_result_is_frozen(self):
        dna = PolicyDNAResult(bill_id="118-hr-1234")
        with pytest.raises(ValidationError):
            dna.bill_id = "118-hr-1"


class TestParseChatRequest:
    """Tests for parse_chat_request() body validation."""

    def test_message_only(self):
        message, filters = parse_chat_request({"message": "What changed in HR 1234?"})
        assert message == "What changed in HR 1234?"
        assert filters is None

    @pytest.mark.parametrize("body", [
        None,
        [],
        {},
        {"message": ""},
        {"message": "   "},
        {"message": 42},
    ])
    def test_missing_message(self, body):
        with pytest.raises(InvalidRequestError, match="Missing message"):
            parse_chat_request(body)

    def test_filters_parsed(self):
        _, filters = parse_chat_request({
            "message": "solar",
            "filters": {"congress": 118, "keywords": ["tax credit"]},
        })
        assert filters.congress == 118
        assert filters.keywords == ["tax credit"]

    def test_malformed_filters(self):
        with pytest.raises(InvalidRequestError, match="Invalid filters"):
            parse_chat_request({"message": "solar", "filters": {"congress": "not-a-number"}})

    def test_malformed_filter_bill_id(self):
        with pytest.raises(InvalidBillIdError):
            parse_chat_request({"message": "solar", "filters": {"billId": "118-hr"}})
