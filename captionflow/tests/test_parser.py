"""Response parsing for the labeled and JSON output formats."""
import logging

import pytest

from captionflow.core.errors import GenerationFailedError
from captionflow.features.captions.parser import (
    JsonCaptionParser,
    LabeledTextParser,
    ParsedCaption,
    normalize_hashtags,
    parse_caption_response,
)


def test_parses_caption_and_hashtags():
    assert parse_caption_response("CAPTION: Hello world\nHASHTAGS: #a #b #c") == ParsedCaption(
        caption="Hello world", hashtags=["a", "b", "c"]
    )


def test_labels_are_case_insensitive_and_multiline_caption_kept():
    parsed = LabeledTextParser().parse("caption: Line one\nLine two\n\nhashtags: #x   #y")
    assert parsed.caption == "Line one\nLine two"
    assert parsed.hashtags == ["x", "y"]


def test_missing_caption_label_degrades_to_empty(caplog):
    with caplog.at_level(logging.WARNING, logger="captionflow"):
        parsed = LabeledTextParser().parse("Just some text\nHASHTAGS: #one two")
    assert parsed.caption == ""
    assert parsed.hashtags == ["one", "two"]
    assert any(r.getMessage() == "parser.degraded" for r in caplog.records)


def test_missing_hashtags_label_yields_empty_list():
    parsed = LabeledTextParser().parse("CAPTION: only a caption")
    assert parsed == ParsedCaption(caption="only a caption", hashtags=[])


def test_normalize_strips_single_hash_and_drops_empties():
    assert normalize_hashtags(["#a", "##b", "#", "", "c"]) == ["a", "#b", "c"]


def test_json_parser_reads_structured_output():
    parser = JsonCaptionParser()
    assert parser.json_mode is True
    parsed = parser.parse('{"caption": " Hi there ", "hashtags": ["#one", "two"]}')
    assert parsed == ParsedCaption(caption="Hi there", hashtags=["one", "two"])


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"caption": 5}', '{"caption": "x", "hashtags": "a b"}'])
def test_json_parser_rejects_bad_documents(raw):
    with pytest.raises(GenerationFailedError):
        JsonCaptionParser().parse(raw)
