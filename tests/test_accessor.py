import codecs
import json

import pytest

from annot_lib.accessor import count_records, decode_content, iter_ndjson_records, load_document, read_records
from annot_lib.errors import MalformedRecordError

FORMAT_C = {
    "count": 1,
    "data": [{
        "user_id": "u1",
        "line_index": 0,
        "id": "x",
        "sessions": [{"session_id": "s1", "turns": [{"utterance_index": 0, "role": "user", "text": "hi"}]}],
        "intents_ranked": [{
            "intent_category": "informational",
            "probability": 1.0,
            "reasoning": "r",
            "evidence": [{"utterance_index": 0, "text": "hi"}],
        }],
    }],
}


def ndjson(n):
    return "\n".join(json.dumps({"session_id": f"s{i}"}) for i in range(n))


def test_format_c_example_yields_one_normalized_record():
    doc = load_document(json.dumps(FORMAT_C), "batch.json")
    assert doc.tag == "format_c"
    assert doc.total == 1
    rec = doc.get_record(0)
    assert rec["session_id"] == "s1"
    assert len(rec["intents_ranked"]) == 1
    assert doc.user_id == "u1"


def test_ndjson_windows_and_total():
    doc = load_document(ndjson(5), "x.ndjson")
    assert doc.total == 5
    assert [r["session_id"] for r in doc.get_records(1, 2)] == ["s1", "s2"]
    assert [r["session_id"] for r in doc.get_records(4, 10)] == ["s4"]
    assert doc.get_records(5, 3) == []
    assert doc.get_records(0, 0) == []
    with pytest.raises(ValueError):
        doc.get_records(-1, 1)


def test_blank_lines_are_skipped():
    text = '{"a": 1}\n\n   \n{"a": 2}\n'
    assert [r["a"] for r in iter_ndjson_records(text)] == [1, 2]


def test_corrupt_line_aborts_with_its_line_number():
    text = '{"a": 1}\n{"a": 2}\n{"a": \n{"a": 4}'
    with pytest.raises(MalformedRecordError) as exc:
        load_document(text, "x.jsonl")
    assert exc.value.line == 3


def test_window_before_corrupt_line_is_still_served():
    text = '{"a": 1}\n{"a": 2}\n{"a": \n{"a": 4}'
    assert [r["a"] for r in read_records(text, 0, 2, "x.jsonl")] == [1, 2]
    with pytest.raises(MalformedRecordError):
        read_records(text, 1, 5, "x.jsonl")


def test_ndjson_line_holding_user_envelope_expands_to_sessions():
    line1 = json.dumps({"user_id": "u", "sessions": [{"session_id": "a"}, {"session_id": "b"}]})
    line2 = json.dumps({"session_id": "c"})
    doc = load_document(line1 + "\n" + line2, "x.ndjson")
    assert doc.total == 3
    assert [r["session_id"] for r in doc.get_records(0, 3)] == ["a", "b", "c"]


def test_pretty_ndjson_is_preprocessed():
    text = "\n".join(json.dumps({"session_id": f"s{i}"}, indent=2) for i in range(3))
    doc = load_document(text, "x.ndjson")
    assert doc.processed is not None
    assert count_records(doc) == doc.total == 3


def test_format_a_object_has_one_record():
    doc = load_document('{"session_id": "only"}', "a.json")
    assert doc.total == 1
    assert doc.get_records(0, 5) == [{"session_id": "only"}]
    assert doc.get_records(1, 5) == []


def test_boms_are_stripped():
    raw = b"\xef\xbb\xbf" + b'[{"session_id": "s1"}]'
    assert decode_content(raw).startswith("[")
    utf16 = codecs.BOM_UTF16_LE + '[{"session_id": "s1"}]'.encode("utf-16-le")
    doc = load_document(utf16, "a.json")
    assert doc.get_record(0) == {"session_id": "s1"}
    assert decode_content("\ufeff{}") == "{}"


def test_count_matches_retrievable_records():
    doc = load_document(ndjson(7), "x.jsonl")
    assert len(doc.get_records(0, 100)) == count_records(doc) == 7


def test_batch_with_non_object_item_fails_to_load():
    text = json.dumps({"count": 2, "data": ["garbage", {"user_id": "u", "sessions": [{"session_id": "s1"}]}]})
    with pytest.raises(MalformedRecordError):
        load_document(text, "c.json")


def test_undecodable_bytes_are_a_load_error():
    with pytest.raises(MalformedRecordError):
        load_document(b'{"session_id": "s\xc3"}', "a.json")
    with pytest.raises(MalformedRecordError):
        decode_content(codecs.BOM_UTF16_LE + b"\x00\xd8")
