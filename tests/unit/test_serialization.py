from __future__ import annotations

import json
from types import MappingProxyType

import pytest
from pydantic import BaseModel

from logship.core.errors import ErrorCategory, SerializationError
from logship.core.serialization import estimate_record_size, serialize_batch


class _Payload(BaseModel):
    msg: str
    extra: str | None = None


def test_serialize_batch_is_json_array_in_order() -> None:
    records = [{"msg": "a"}, {"msg": "b", "n": 2}, {"msg": "c"}]
    view = serialize_batch(records)
    assert json.loads(view.data) == records
    assert len(view) == len(view.data)
    assert bytes(view.view) == view.data


def test_serialize_batch_accepts_pydantic_models() -> None:
    view = serialize_batch([_Payload(msg="hi")])
    assert json.loads(view.data) == [{"msg": "hi"}]


def test_unserializable_record_raises_serialization_error() -> None:
    with pytest.raises(SerializationError) as exc_info:
        serialize_batch([{"msg": "ok"}, {"bad": object()}])
    err = exc_info.value
    assert err.category is ErrorCategory.SERIALIZATION
    assert isinstance(err.cause, TypeError)
    assert err.to_fields()["error_type"] == "TypeError"


def test_estimate_record_size() -> None:
    assert estimate_record_size({"msg": "a"}) == len(b'{"msg":"a"}')
    assert estimate_record_size({"bad": object()}) == 0


def test_non_dict_mappings_are_encoded() -> None:
    records = [
        {"msg": "a"},
        MappingProxyType({"msg": "b", "nested": MappingProxyType({"k": 1})}),
    ]
    view = serialize_batch(records)
    assert json.loads(view.data) == [{"msg": "a"}, {"msg": "b", "nested": {"k": 1}}]
    assert estimate_record_size(MappingProxyType({"msg": "a"})) == len(b'{"msg":"a"}')
