from datetime import datetime, timezone

from core.frontmatter import (
    extract_user_content,
    metadata_order,
    metadata_timestamp,
    parse_document,
    serialize_document,
)


def test_roundtrip_keeps_special_values_and_unknown_keys():
    meta = {
        "id": "1700000000000-fix-parser",
        "title": 'Fix: "quoted" title with colon',
        "stage": "queue",
        "tags": ["solo"],
        "contexts": ["api", "db"],
        "notes": "line one\nline two\n",
        "url": "http://example.com:8080/x",
        "order": 2,
        "custom_field": "keep me",
    }
    body = "\nBody text\n"

    doc = parse_document(serialize_document(body, meta))

    assert doc.has_metadata_block
    assert doc.metadata == meta
    assert doc.body == body


def test_single_element_list_stays_a_list():
    text = serialize_document("", {"tags": ["only"]})
    assert "tags: [only]" in text
    assert parse_document(text).metadata["tags"] == ["only"]


def test_none_values_are_dropped():
    text = serialize_document("body", {"title": "x", "phase": None})
    assert "phase" not in text
    assert parse_document(text).metadata == {"title": "x"}


def test_missing_block_is_whole_body():
    doc = parse_document("just some text\n")
    assert doc.metadata == {}
    assert doc.body == "just some text\n"
    assert not doc.has_metadata_block


def test_malformed_block_never_raises():
    raw = "---\ntitle: [unclosed\n---\nbody"
    doc = parse_document(raw)
    assert doc.metadata == {}
    assert doc.body == raw
    assert not doc.has_metadata_block


def test_unterminated_block_is_body():
    raw = "---\ntitle: x\nno closing delimiter"
    doc = parse_document(raw)
    assert doc.metadata == {}
    assert doc.body == raw


def test_non_mapping_block_is_body():
    raw = "---\n- a\n- b\n---\nbody"
    doc = parse_document(raw)
    assert doc.metadata == {}
    assert doc.body == raw


def test_extract_user_content():
    body = "\n<!-- MANAGED: DO NOT EDIT BELOW THIS LINE -->\nstuff\n<!-- USER CONTENT -->\n  hello world \n"
    assert extract_user_content(body) == "hello world"
    assert extract_user_content("no marker here") is None


def test_metadata_order_accepts_integers_and_numeric_strings():
    assert metadata_order({"order": 3}) == 3
    assert metadata_order({"order": 2.0}) == 2
    assert isinstance(metadata_order({"order": 2.0}), int)
    assert metadata_order({"order": 1.5}) is None
    assert metadata_order({"order": "4"}) == 4
    assert metadata_order({"order": "soon"}) is None
    assert metadata_order({"order": True}) is None
    assert metadata_order({}) is None


def test_metadata_timestamp_accepts_native_dates():
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert metadata_timestamp({"created": moment}, "created") == moment.isoformat()
    assert metadata_timestamp({"created": "2024-01-01"}, "created") == "2024-01-01"
    assert metadata_timestamp({"created": ""}, "created") is None


def test_unquoted_yaml_timestamp_is_parsed_as_date():
    doc = parse_document("---\ncreated: 2024-01-01T00:00:00Z\n---\n")
    assert metadata_timestamp(doc.metadata, "created").startswith("2024-01-01T00:00:00")
