import json

from lead_scout.payloads import (
    decode_payload, is_html_shaped, locate_businesses, record_from_entry, records_from_payloads, strip_prefix,
)

from fixtures import dense_entry, dense_payload


class TestDecoding:

    def test_strips_xssi_prefix(self):
        assert strip_prefix(")]}'[1,2]") == "[1,2]"
        assert strip_prefix("[1,2]") == "[1,2]"
        assert decode_payload(")]}'\n{\"a\": 1}") == {"a": 1}

    def test_html_payloads_are_rejected_without_parsing(self):
        assert is_html_shaped("<!DOCTYPE html><html><body></body></html>")
        assert is_html_shaped("  <html lang='en'>")
        assert is_html_shaped('{"x": "<script>alert(1)</script>"}')
        assert decode_payload("<!doctype html><p>blocked</p>") is None

    def test_malformed_json_decodes_to_none(self):
        assert decode_payload("{not json") is None
        assert decode_payload("") is None


class TestLocateBusinesses:

    def test_positional_array(self):
        entries = [dense_entry("Joe's Cafe")]
        parsed = json.loads(dense_payload(*entries, prefix=False))
        assert locate_businesses(parsed) == entries

    def test_wrapped_inner_document(self):
        inner = [None] * 6 + [[[dense_entry("Inner Cafe")]]]
        parsed = {"d": ")]}'" + json.dumps(inner)}
        found = locate_businesses(parsed)
        assert found[0][14] == "Inner Cafe"

    def test_named_results_and_features(self):
        assert locate_businesses({"results": [{"name": "A1"}]}) == [{"name": "A1"}]
        assert locate_businesses({"features": [{"name": "B1"}]}) == [{"name": "B1"}]

    def test_unknown_shape(self):
        assert locate_businesses({"status": "ok"}) is None


class TestRecordFromEntry:

    def test_dense_entry_fields(self):
        entry = dense_entry(
            "Joe's Cafe", phone="+1 512-555-0100", address="12 Main St", category="Cafe",
            website="https://joescafe.com", description="Coffee and pastries", url="https://maps/x",
            rating=4.5, count=120,
        )
        record = record_from_entry(entry)
        assert record.name == "Joe's Cafe"
        assert record.address == "12 Main St"
        assert record.category == "Cafe"
        assert record.rating == 4.5
        assert record.rating_count == "120"
        assert record.phone == "+1 512-555-0100"
        assert record.website == "https://joescafe.com"
        assert record.description == "Coffee and pastries"
        assert record.detail_url == "https://maps/x"
        assert record.details_needed is False

    def test_named_entry_fallback(self):
        record = record_from_entry({
            "title": "Bean There", "address": "3 Oak Ave", "types": ["coffee_shop"],
            "rating": 4.2, "user_ratings_total": 88, "url": "https://maps/y",
        })
        assert record.name == "Bean There"
        assert record.category == "coffee_shop"
        assert record.rating == 4.2
        assert record.rating_count == "88"
        assert record.details_needed is True

    def test_missing_rating_defaults(self):
        record = record_from_entry(dense_entry("No Stars"))
        assert record.rating == 0.0
        assert record.rating_count == "0"

    def test_entry_without_name(self):
        assert record_from_entry(dense_entry("")) is None
        assert record_from_entry({"address": "nowhere"}) is None


class TestRecordsFromPayloads:

    def test_keeps_first_record_per_name_across_responses(self):
        first = dense_payload(dense_entry("Joe's Cafe", address="first"), dense_entry("Bean There"))
        second = dense_payload(dense_entry("Joe's Cafe", address="second"), dense_entry("Cup Co"))
        records = records_from_payloads([first, second])
        assert [r.name for r in records] == ["Joe's Cafe", "Bean There", "Cup Co"]
        assert records[0].address == "first"

    def test_html_response_yields_nothing(self):
        assert records_from_payloads(["<!DOCTYPE html><html><body>captcha</body></html>"]) == []

    def test_same_input_same_order(self):
        body = dense_payload(*(dense_entry(f"Shop {i}") for i in range(5)))
        assert [r.name for r in records_from_payloads([body])] == [r.name for r in records_from_payloads([body])]
