"""Tests for inline entity citation parsing."""

import pytest

from campaign_assist.core.citations.parser import (
    ContentSegment,
    count_citations,
    format_citation,
    has_citations,
    parse_citations,
    parse_content_segments,
    strip_citations,
)

ALDRIC = "[[character:550e8400-e29b-41d4-a716-446655440000:Aldric]]"
TOWER = "[[location:7c9e6679-7425-40de-944b-e07fc1f90ae7:The Obsidian Tower]]"


def test_parse_single_citation() -> None:
    text = f"See {ALDRIC} now."
    (citation,) = parse_citations(text)
    assert citation.entity_type == "character"
    assert citation.entity_id == "550e8400-e29b-41d4-a716-446655440000"
    assert citation.display_name == "Aldric"
    assert citation.raw == ALDRIC
    assert text[citation.start_index : citation.end_index] == ALDRIC


def test_parse_multiple_citations_in_order() -> None:
    citations = parse_citations(f"{TOWER} houses {ALDRIC}")
    assert [c.display_name for c in citations] == ["The Obsidian Tower", "Aldric"]
    assert citations[0].end_index <= citations[1].start_index


@pytest.mark.parametrize(
    "text",
    [
        "[[character:550E8400-E29B-41D4-A716-446655440000:Upper]]",
        "[[character:not-a-uuid:Name]]",
        "[[character:550e8400-e29b-41d4-a716-446655440000:]]",
        "[character:550e8400-e29b-41d4-a716-446655440000:Single]",
        "[[persönlich:550e8400-e29b-41d4-a716-446655440000:Unicode type]]",
    ],
)
def test_malformed_citations_are_ignored(text: str) -> None:
    assert parse_citations(text) == []
    assert not has_citations(text)


def test_segments_alternate_text_and_citations() -> None:
    segments = parse_content_segments(f"Ask {ALDRIC} about {TOWER}.")
    assert [s.type for s in segments] == ["text", "citation", "text", "citation", "text"]
    assert segments[1].citation is not None
    assert segments[1].citation.display_name == "Aldric"
    assert segments[0] == ContentSegment("text", "Ask ")


@pytest.mark.parametrize(
    "text",
    ["", "no citations", ALDRIC, f"{ALDRIC}{TOWER}", f" {ALDRIC} and [[broken]] {TOWER}!"],
)
def test_segments_reconstruct_original_text(text: str) -> None:
    assert "".join(s.content for s in parse_content_segments(text)) == text


def test_format_then_strip_yields_display_name() -> None:
    citation = format_citation("quest", "7c9e6679-7425-40de-944b-e07fc1f90ae7", "Find the Relic")
    assert citation == "[[quest:7c9e6679-7425-40de-944b-e07fc1f90ae7:Find the Relic]]"
    assert strip_citations(citation + " tonight") == "Find the Relic tonight"


def test_helpers_agree_with_parser() -> None:
    text = f"{ALDRIC}, {TOWER} and {ALDRIC}"
    assert count_citations(text) == len(parse_citations(text)) == 3
    assert has_citations(text)
    assert strip_citations(text) == "Aldric, The Obsidian Tower and Aldric"
