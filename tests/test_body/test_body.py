"""Tests for vrest.body -- request body and response destination unions."""

from __future__ import annotations

import dataclasses
import io
from typing import Optional

import pytest
from pydantic import BaseModel, ValidationError

from vrest.body import (
    RawBytes,
    RawBytesTarget,
    Stream,
    StreamTarget,
    Structured,
    StructuredTarget,
    Text,
    as_body,
    as_target,
)
from vrest.exceptions import InvalidRequestError


class Item(BaseModel):
    text: str = ""
    number: int = 0


@dataclasses.dataclass
class DataItem:
    text: str = ""
    number: int = 0


class PlainItem:
    def __init__(self) -> None:
        self.text: Optional[str] = None


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class TestAsBody:
    def test_none_means_no_body(self) -> None:
        assert as_body(None) is None

    def test_bytes(self) -> None:
        assert as_body(b"abc") == RawBytes(b"abc")
        assert as_body(bytearray(b"abc")) == RawBytes(b"abc")

    def test_str(self) -> None:
        body = as_body("héllo")
        assert body == Text("héllo")
        assert body.encode() == "héllo".encode("utf-8")

    def test_file_like_is_streamed(self) -> None:
        source = io.BytesIO(b"data")
        body = as_body(source)
        assert isinstance(body, Stream)
        assert b"".join(body.chunks()) == b"data"

    def test_iterator_is_streamed(self) -> None:
        body = as_body(iter([b"a", b"b"]))
        assert isinstance(body, Stream)
        assert list(body.chunks()) == [b"a", b"b"]

    def test_everything_else_is_structured(self) -> None:
        assert as_body({"a": 1}) == Structured({"a": 1})
        item = Item(text="x")
        assert as_body(item) == Structured(item)

    def test_union_members_pass_through(self) -> None:
        body = Text("x")
        assert as_body(body) is body


# ---------------------------------------------------------------------------
# Response destinations
# ---------------------------------------------------------------------------


class TestAsTarget:
    def test_none(self) -> None:
        assert as_target(None) is None

    def test_targets_pass_through(self) -> None:
        for target in (RawBytesTarget(), StreamTarget(), StructuredTarget(Item)):
            assert as_target(target) is target

    def test_type_becomes_structured(self) -> None:
        target = as_target(Item)
        assert isinstance(target, StructuredTarget)
        assert target.type is Item
        assert target.value is None

    @pytest.mark.parametrize("value", [5, "text", b"raw", 1.5, True, (1, 2), frozenset()])
    def test_immutable_values_are_rejected(self, value) -> None:
        with pytest.raises(InvalidRequestError, match="mutable reference"):
            as_target(value)

    def test_object_without_dict_is_rejected(self) -> None:
        with pytest.raises(InvalidRequestError):
            as_target(object())

    def test_type_without_validator_is_rejected(self) -> None:
        with pytest.raises(InvalidRequestError, match="type PlainItem cannot be decoded") as exc_info:
            StructuredTarget(PlainItem)
        assert exc_info.value.__cause__ is not None

    def test_generic_of_undecodable_type_is_rejected(self) -> None:
        with pytest.raises(InvalidRequestError, match="cannot be decoded"):
            as_target(list[PlainItem])

    def test_plain_instance_in_place_is_accepted(self) -> None:
        item = PlainItem()
        assert as_target(item).value is item


class TestStructuredTargetLoad:
    def test_fresh_model(self) -> None:
        target = StructuredTarget(Item)
        target.load({"text": "test", "number": 123})
        assert target.value == Item(text="test", number=123)

    def test_fresh_generic(self) -> None:
        target = StructuredTarget(list[int])
        target.load(["1", 2])
        assert target.value == [1, 2]

    def test_model_in_place(self) -> None:
        item = Item()
        StructuredTarget(item).load({"text": "test", "number": 123})
        assert item.text == "test"
        assert item.number == 123

    def test_dataclass_in_place(self) -> None:
        item = DataItem()
        StructuredTarget(item).load({"text": "test", "number": "123"})
        assert item == DataItem(text="test", number=123)

    def test_dict_in_place(self) -> None:
        data = {"stale": True}
        StructuredTarget(data).load({"fresh": 1})
        assert data == {"fresh": 1}

    def test_list_in_place(self) -> None:
        data = [1]
        StructuredTarget(data).load([2, 3])
        assert data == [2, 3]

    def test_plain_object_in_place(self) -> None:
        item = PlainItem()
        StructuredTarget(item).load({"text": "test"})
        assert item.text == "test"

    def test_plain_object_rejects_non_mapping(self) -> None:
        with pytest.raises(TypeError):
            StructuredTarget(PlainItem()).load([1, 2])

    def test_validation_error_is_value_error(self) -> None:
        with pytest.raises(ValidationError):
            StructuredTarget(Item).load({"number": "not a number"})
        assert issubclass(ValidationError, ValueError)


class TestStreamTarget:
    def test_empty_before_call(self) -> None:
        target = StreamTarget()
        assert target.read() == b""
        assert list(target.iter_bytes()) == []
        target.close()
