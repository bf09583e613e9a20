import pytest

from annot_lib.errors import MalformedRecordError
from annot_lib.normalize import (
    conversation_to_turns,
    distribute_envelope,
    normalize_batch,
    record_key,
    undistributed_memories,
    user_turns,
)


def intent(cat, p=1.0):
    return {"intent_category": cat, "probability": p, "reasoning": "r", "evidence": [{"utterance_index": 0, "text": "hi"}]}


def memory(sid=None, label="Possessions/Pet"):
    ev = {"utterance_index": 0, "text": "hi"}
    if sid is not None:
        ev["session_id"] = sid
    return {"memory_id": "m1", "label": label, "evidence": ev}


def test_single_session_top_level_intents_override_local():
    env = {
        "user_id": "u1",
        "sessions": [{"session_id": "s1", "intents_ranked": [intent("creative")]}],
        "intents_ranked": [intent("informational")],
    }
    (rec,) = distribute_envelope(env)
    assert [i["intent_category"] for i in rec["intents_ranked"]] == ["informational"]
    # envelope is not mutated
    assert env["sessions"][0]["intents_ranked"][0]["intent_category"] == "creative"


def test_multi_session_keeps_local_intents_and_partitions_memories():
    env = {
        "user_id": "u1",
        "sessions": [
            {"session_id": "s1", "intents_ranked": [intent("creative")]},
            {"conversation_id": "s2"},
        ],
        "intents_ranked": [intent("informational")],
        "memory_items": [memory("s2"), memory(None), memory("s1"), memory("zz")],
        "memory_reasoning": "shared",
    }
    s1, s2 = distribute_envelope(env)
    assert [i["intent_category"] for i in s1["intents_ranked"]] == ["creative"]
    assert s2["intents_ranked"] == []
    assert [m["evidence"].get("session_id") for m in s1["memory_items"]] == ["s1"]
    assert [m["evidence"].get("session_id") for m in s2["memory_items"]] == ["s2"]
    assert s1["memory_reasoning"] == s2["memory_reasoning"] == "shared"


def test_single_session_receives_unscoped_memories_after_matching_ones():
    env = {
        "user_id": "u1",
        "sessions": [{"session_id": "s1", "memory_items": [memory("s1", "Possessions/Important_Items")]}],
        "memory_items": [memory(None), memory("s1"), memory("other")],
    }
    (rec,) = distribute_envelope(env)
    labels = [m["label"] for m in rec["memory_items"]]
    assert labels == ["Possessions/Important_Items", "Possessions/Pet", "Possessions/Pet"]
    assert undistributed_memories(env) == [memory("other")]


def test_missing_reasoning_keeps_session_value():
    env = {"user_id": "u", "sessions": [{"session_id": "s1", "memory_reasoning": "own"}, {"session_id": "s2"}]}
    s1, s2 = distribute_envelope(env)
    assert s1["memory_reasoning"] == "own"
    assert s2["memory_reasoning"] is None


def test_non_object_session_is_malformed():
    with pytest.raises(MalformedRecordError):
        distribute_envelope({"user_id": "u", "sessions": ["oops"]})


def test_non_object_batch_item_is_malformed():
    batch = {"count": 2, "data": ["garbage", {"user_id": "u", "sessions": [{"session_id": "s1"}]}]}
    with pytest.raises(MalformedRecordError) as exc:
        normalize_batch(batch)
    assert exc.value.object_index == 0


def test_batch_items_are_flattened_and_tagged():
    batch = {
        "count": 2,
        "data": [
            {"user_id": "u1", "line_index": 0, "id": "a", "sessions": [{"session_id": "s1"}, {"session_id": "s2"}]},
            {"line_index": 1, "id": "b", "sessions": [{"session_id": "s3"}]},
        ],
    }
    recs = normalize_batch(batch)
    assert [r["session_id"] for r in recs] == ["s1", "s2", "s3"]
    assert recs[0]["data_item_user_id"] == "u1"
    assert recs[2]["data_item_user_id"] == "unknown_user"
    assert recs[2]["data_item_line_index"] == 1
    assert recs[2]["data_item_id"] == "b"


def test_record_key_falls_back_to_conversation_id():
    assert record_key({"session_id": "", "conversation_id": "c1"}) == "c1"
    assert record_key({}, "unknown") == "unknown"


def test_conversation_pairs_become_indexed_turns():
    turns = conversation_to_turns([{"human": "hi", "assistant": "hello"}, {"human": "bye"}, {"human": "again", "assistant": "ok"}])
    assert [(t["utterance_index"], t["role"]) for t in turns] == [
        (0, "user"), (1, "assistant"), (2, "user"), (3, "user"), (4, "assistant"),
    ]
    assert [t["text"] for t in user_turns({"conversation": [{"human": "hi", "assistant": "x"}]})] == ["hi"]
