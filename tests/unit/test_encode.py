"""Tests for output encoders."""

import pytest

from streamkit.errors import ConfigError, EncodeError
from streamkit.pipeline import JsonEncoder, JsonEncoderConfig, LineJoiner, Pipeline


async def create_async_iter(items: list):
    """Create async iterator from list."""
    for item in items:
        yield item


class TestJsonEncoder:
    """Tests for JsonEncoder."""

    @pytest.mark.asyncio
    async def test_output_includes_newline(self) -> None:
        """Test each record becomes one compact JSON line."""
        encoder = JsonEncoder()
        chunks = [c async for c in encoder.process(create_async_iter([{"a": 1}, {"b": 2}]))]
        assert chunks == ['{"a":1}\n', '{"b":2}\n']

    def test_key_order_preserved(self) -> None:
        """Test keys are written in record order, not sorted."""
        assert JsonEncoder().encode({"z": 1, "a": 2}) == '{"z":1,"a":2}\n'

    def test_non_ascii_kept(self) -> None:
        """Test non-ASCII text is not escaped."""
        assert JsonEncoder().encode({"city": "Zürich"}) == '{"city":"Zürich"}\n'

    def test_absent_values_left_out(self) -> None:
        """Test None values of a record are dropped by default."""
        encoder = JsonEncoder()
        assert encoder.encode({"a": "1", "b": None, "c": {"d": None}}) == '{"a":"1","c":{"d":null}}\n'

    def test_absent_values_left_out_of_batched_records(self) -> None:
        """Test records inside a batch drop their None values too."""
        line = JsonEncoder().encode([{"a": "1", "b": None}, {"a": None, "b": "2"}])
        assert line == '[{"a":"1"},{"b":"2"}]\n'

    @pytest.mark.asyncio
    async def test_empty_field_left_out_end_to_end(self) -> None:
        """Test an empty delimited field produces no key in the output."""
        result = await Pipeline.delimited().encode_json().collect(b"a,b\n1,\n")
        assert result == ['{"a":"1"}\n']

    def test_absent_written_as_null_when_kept(self) -> None:
        """Test omit_absent=False writes None as null."""
        encoder = JsonEncoder(omit_absent=False)
        assert encoder.encode({"a": "1", "b": None}) == '{"a":"1","b":null}\n'

    def test_non_dict_values_unchanged(self) -> None:
        """Test None items of plain lists are still written as null."""
        encoder = JsonEncoder(JsonEncoderConfig(omit_absent=True))
        assert encoder.encode([None, 1]) == "[null,1]\n"
        assert encoder.encode(None) == "null\n"

    def test_batch_encoding(self) -> None:
        """Test a batch of records is one line."""
        line = JsonEncoder().encode([{"x": 1, "y": 2}, {"x": 3, "y": 4}])
        assert line == '[{"x":1,"y":2},{"x":3,"y":4}]\n'

    def test_unserializable_value(self) -> None:
        """Test values JSON cannot represent raise EncodeError."""
        with pytest.raises(EncodeError):
            JsonEncoder().encode({"s": {1, 2}})

    @pytest.mark.parametrize("number", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_numbers_rejected(self, number: float) -> None:
        """Test NaN and infinities raise instead of becoming NaN/Infinity or null."""
        with pytest.raises(EncodeError):
            JsonEncoder().encode({"n": number})

    def test_unknown_option(self) -> None:
        """Test unknown options are rejected."""
        with pytest.raises(ConfigError):
            JsonEncoder(indent=2)


class TestLineJoiner:
    """Tests for LineJoiner."""

    @pytest.mark.asyncio
    async def test_values_to_lines(self) -> None:
        """Test scalars use their canonical text form."""
        joiner = LineJoiner()
        lines = [c async for c in joiner.process(create_async_iter(["a", 1, 2.5, None]))]
        assert lines == ["a\n", "1\n", "2.5\n", "None\n"]

    def test_bytes_decoded(self) -> None:
        """Test bytes are decoded as UTF-8."""
        assert LineJoiner().encode("é".encode()) == "é\n"

    def test_invalid_bytes(self) -> None:
        """Test undecodable bytes raise EncodeError."""
        with pytest.raises(EncodeError):
            LineJoiner().encode(b"\xff")
