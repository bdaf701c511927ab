from __future__ import annotations

import json
import os

import pytest

from fission_upgrade.errors import DeserializationError
from fission_upgrade.models.v1 import Metadata, V1State
from fission_upgrade.snapshot import (
    load_snapshot,
    parse_snapshot,
    serialize_snapshot,
    store_snapshot,
)


def test_round_trip_preserves_state_and_name_changes(sample_state, tmp_path):
    state = sample_state.model_copy(update={"namechanges": {"My_Func": "my-func", "hello": "hello"}})
    path = str(tmp_path / "nested" / "state.json")
    store_snapshot(path, state)
    loaded = load_snapshot(path)
    assert loaded == state
    assert not os.path.exists(path + ".tmp")


def test_serialized_field_names_are_stable(sample_state):
    doc = json.loads(serialize_snapshot(sample_state))
    assert set(doc) == {
        "functions",
        "environments",
        "httptriggers",
        "mqtriggers",
        "timetriggers",
        "watches",
        "namechanges",
    }
    # indented output for human review
    assert b'\n    "functions"' in serialize_snapshot(sample_state)


def test_uid_omitted_when_absent():
    state = V1State(
        timetriggers=[],
        namechanges={},
    )
    doc = json.loads(serialize_snapshot(state))
    assert doc["functions"] == []
    assert "uid" not in Metadata(name="x").model_dump(exclude_none=True)


def test_go_style_nulls_and_blank_uid_accepted():
    payload = json.dumps(
        {
            "functions": None,
            "environments": [{"metadata": {"name": "env", "uid": ""}, "runContainerImageUrl": "img"}],
            "httptriggers": None,
            "mqtriggers": None,
            "timetriggers": None,
            "watches": None,
            "namechanges": None,
        }
    )
    state = parse_snapshot(payload)
    assert state.functions == []
    assert state.namechanges == {}
    assert state.environments[0].metadata.uid is None


@pytest.mark.parametrize(
    "payload",
    [
        b"",
        b"not json",
        b'{"functions": "nope"}',
        b'{"httptriggers": [{"metadata": {"name": "r"}}]}',
    ],
)
def test_malformed_payload_raises_deserialization_error(payload):
    with pytest.raises(DeserializationError):
        parse_snapshot(payload)


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_snapshot(str(tmp_path / "absent.json"))
