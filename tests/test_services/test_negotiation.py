"""Tests for Accept header negotiation between JSON and XML."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tablesync.services.negotiation import (
    MEDIA_APPLICATION_JSON,
    MEDIA_APPLICATION_XML_UTF8,
    MEDIA_TEXT_XML_UTF8,
    MediaRange,
    Representation,
    choose_representation,
    parse_accept,
)


class TestChooseRepresentation:
    def test_heavier_xml_wins(self) -> None:
        chosen = choose_representation("application/json;q=0.5, application/xml;q=0.9")
        assert chosen.representation is Representation.XML
        assert chosen.media_type == MEDIA_APPLICATION_XML_UTF8

    def test_tie_with_wildcard_is_json(self) -> None:
        chosen = choose_representation("application/json;q=0.9, */*;q=0.9")
        assert chosen.representation is Representation.JSON
        assert chosen.media_type == MEDIA_APPLICATION_JSON

    @pytest.mark.parametrize("header", [None, "", "*/*", "application/*", "garbage"])
    def test_defaults_to_json(self, header: str | None) -> None:
        assert choose_representation(header).representation is Representation.JSON

    def test_text_xml_keeps_text_type(self) -> None:
        assert choose_representation("text/xml").media_type == MEDIA_TEXT_XML_UTF8

    def test_equal_weights_prefer_json(self) -> None:
        chosen = choose_representation("text/xml, application/json")
        assert chosen.representation is Representation.JSON

    def test_invalid_weight_counts_as_one(self) -> None:
        chosen = choose_representation("application/json;q=0.5, text/xml;q=bogus")
        assert chosen.representation is Representation.XML

    def test_zero_weight_xml_is_not_chosen(self) -> None:
        assert choose_representation("text/xml;q=0").representation is Representation.JSON


class TestParseAccept:
    def test_parses_params(self) -> None:
        [media_range] = parse_accept('Text/XML; charset="utf-8"; q=0.4')
        assert media_range == MediaRange("text", "xml")
        assert media_range.params["charset"] == "utf-8"
        assert media_range.weight == 0.4

    def test_bare_star_is_wildcard(self) -> None:
        assert parse_accept("*") == [MediaRange("*", "*")]

    def test_non_finite_weight_counts_as_one(self) -> None:
        [media_range] = parse_accept("text/xml;q=nan")
        assert media_range.weight == 1.0


_WEIGHT = st.sampled_from(["0", "0.1", "0.5", "0.9", "1", "bogus"])


@settings(max_examples=200, deadline=None)
@given(json_q=_WEIGHT, xml_q=_WEIGHT)
def test_choice_follows_max_weights(json_q: str, xml_q: str) -> None:
    header = f"application/json;q={json_q}, application/xml;q={xml_q}"
    json_weight = parse_accept(f"a/b;q={json_q}")[0].weight
    xml_weight = parse_accept(f"a/b;q={xml_q}")[0].weight
    expected = Representation.JSON if json_weight >= xml_weight else Representation.XML
    assert choose_representation(header).representation is expected
