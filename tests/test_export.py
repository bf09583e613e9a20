import json

import pytest

from annot_lib.accessor import load_document
from annot_lib.errors import MalformedRecordError
from annot_lib.export import (
    count_intents,
    count_memories,
    export_document,
    export_filename,
    fold_annotations,
    reassemble,
)
from annot_lib.modifications import ModificationMap


def intent(cat, p=1.0):
    return {"intent_category": cat, "probability": p, "reasoning": "r", "evidence": [{"utterance_index": 0, "text": "hi"}]}


def memory(sid, mid="m1"):
    return {"memory_id": mid, "label": "Possessions/Pet", "evidence": {"session_id": sid, "utterance_index": 0, "text": "hi"}}


def test_empty_map_returns_original_unchanged():
    for text, name in [
        ('[{"session_id": "s1", "intents_ranked": []}]', "a.json"),
        ('{"user_id": "u", "sessions": [{"session_id": "s1"}], "intents_ranked": [], "extra": 1}', "b.json"),
        ('{"count": 9, "data": [{"user_id": "u", "sessions": []}]}', "c.json"),
    ]:
        doc = load_document(text, name)
        assert reassemble(doc, ModificationMap()) == json.loads(text)


def test_format_c_edit_keeps_count():
    src = {
        "count": 1,
        "data": [{"user_id": "u1", "line_index": 0, "id": "x", "sessions": [{"session_id": "s1", "turns": []}],
                  "intents_ranked": [intent("informational")]}],
    }
    doc = load_document(json.dumps(src), "batch.json")
    edited = dict(doc.get_record(0), intents_ranked=[intent("creative")])
    out = reassemble(doc, ModificationMap({0: edited}))
    assert out["count"] == 1
    assert out["data"][0]["intents_ranked"][0]["intent_category"] == "creative"
    assert out["data"][0]["id"] == "x"


def test_format_b_single_session_round_trip():
    src = {
        "user_id": "u1",
        "sessions": [{"session_id": "s1", "turns": [], "note": "keep"}],
        "intents_ranked": [intent("informational")],
        "memory_items": [memory("s1")],
        "memory_reasoning": "why",
    }
    doc = load_document(json.dumps(src), "b.json")
    rec = doc.get_record(0)
    edited = dict(rec, intents_ranked=[intent("creative")], memory_reasoning="new reason")
    out = reassemble(doc, ModificationMap({0: edited}))
    assert [i["intent_category"] for i in out["intents_ranked"]] == ["creative"]
    assert out["memory_items"] == [memory("s1")]
    assert out["memory_reasoning"] == "new reason"
    assert out["sessions"] == [{"session_id": "s1", "turns": [], "note": "keep"}]


def test_format_b_multi_session_recollects_and_renumbers():
    src = {
        "user_id": "u1",
        "sessions": [{"session_id": "s1"}, {"session_id": "s2"}],
        "intents_ranked": [intent("transactional")],
        "memory_items": [memory("s1", "m1"), memory("s2", "m2"), memory("gone", "m3")],
        "memory_reasoning": "shared",
    }
    doc = load_document(json.dumps(src), "b.json")
    s2 = doc.get_record(1)
    edited = dict(s2, memory_items=s2["memory_items"] + [memory("s2", "m9")], intents_ranked=[intent("creative")])
    out = reassemble(doc, ModificationMap({1: edited}))

    cats = [i["intent_category"] for i in out["intents_ranked"]]
    assert cats == ["transactional", "creative"]
    sids = [m["evidence"]["session_id"] for m in out["memory_items"]]
    assert sids == ["s1", "s2", "s2", "gone"]
    assert [m["memory_id"] for m in out["memory_items"]] == ["m1", "m2", "m3", "m4"]
    assert out["memory_reasoning"] == "shared"
    for session in out["sessions"]:
        assert "intents_ranked" not in session
        assert "memory_items" not in session
        assert "memory_reasoning" not in session


def test_bare_array_patched_by_position():
    doc = load_document('[{"session_id": "a"}, {"session_id": "b", "x": 1}]', "a.json")
    edited = {"session_id": "b", "x": 1, "intents_ranked": [intent("creative")], "memory_items": []}
    out = reassemble(doc, ModificationMap({1: edited}))
    assert out[0] == {"session_id": "a"}
    assert out[1]["intents_ranked"][0]["intent_category"] == "creative"
    assert out[1]["x"] == 1


def test_ndjson_is_flattened_to_array():
    doc = load_document('{"session_id": "a"}\n{"session_id": "b"}', "x.ndjson")
    edited = {"session_id": "b", "intents_ranked": [intent("creative")]}
    result = export_document(doc, ModificationMap({1: edited}), epoch_ms=1700000000000)
    value = json.loads(result.text)
    assert value == [{"session_id": "a"}, edited]
    assert result.flattened
    assert result.filename == "intent-memory-annotations-1700000000000.json"
    assert result.modified == 1
    assert result.intents == 1


def test_fold_removes_fields_absent_from_edit():
    out = fold_annotations({"session_id": "s", "memory_items": [1], "UserMemory": {"k": "v"}}, {"intents_ranked": []})
    assert out == {"session_id": "s", "intents_ranked": []}


def test_counts_cover_sessions_and_data_items():
    value = {"intents_ranked": [1], "sessions": [{"intents_ranked": [1, 2]}], "data": [{"memory_items": [1]}]}
    assert count_intents(value) == 3
    assert count_memories(value) == 1
    assert count_intents([{"intents_ranked": [1]}, "x"]) == 1


def test_export_filename_uses_prefix():
    assert export_filename("p", 5) == "p-5.json"


def test_export_fails_when_content_no_longer_parses():
    doc = load_document('[{"session_id": "a"}]', "a.json")
    broken = doc.__class__(doc.filename, "[{", doc.detection, doc.processed, doc.total)
    with pytest.raises(MalformedRecordError):
        reassemble(broken, ModificationMap())
