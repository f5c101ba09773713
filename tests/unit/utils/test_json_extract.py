"""Unit tests for JSON extraction from LLM responses."""

from cicd_agents.utils.json_extract import extract_json_from_response, parse_json_object


class TestExtractJson:
    def test_fenced_json_block(self) -> None:
        response = 'Here you go:\n```json\n{"score": 90}\n```\nThanks'
        assert extract_json_from_response(response) == '{"score": 90}'

    def test_raw_object_with_prose(self) -> None:
        response = 'The result is {"outcome": "success"} as requested.'
        assert extract_json_from_response(response) == '{"outcome": "success"}'

    def test_empty_response(self) -> None:
        assert extract_json_from_response("") is None
        assert extract_json_from_response("   ") is None

    def test_no_object(self) -> None:
        assert extract_json_from_response("no json here") is None


class TestParseJsonObject:
    def test_parses_object(self) -> None:
        assert parse_json_object('```\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_malformed_returns_none(self) -> None:
        assert parse_json_object('{"a": }') is None

    def test_non_object_returns_none(self) -> None:
        assert parse_json_object("[1, 2, 3]") is None
