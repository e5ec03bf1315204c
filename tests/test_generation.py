"""Tests for the generation clients and response validation."""

import json

import httpx
import pytest

from ideacanvas.generation import (
    LINK_COUNT, GenerationError, GenerationMode, GenerationRequest, HttpGenerator,
    OfflineGenerator, clean_labels, clean_links, parse_response,
)

URL = "http://generator.test/generate"
RELATED = GenerationRequest(GenerationMode.RELATED, "Urban gardening", parent_label="Compost")
ELABORATE = GenerationRequest(GenerationMode.ELABORATE, "Urban gardening", parent_label="Compost")
LINKS = GenerationRequest(GenerationMode.LINKS, "Urban gardening", parent_label="Compost", count=2)


def make_generator(handler) -> HttpGenerator:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpGenerator(URL, client=client)


class TestRequestPayload:
    """Tests for the wire payload."""

    def test_optional_fields_are_omitted(self):
        payload = GenerationRequest(GenerationMode.INITIAL, "topic").to_payload()

        assert payload == {"mode": "initial", "topicContext": "topic"}

    def test_all_fields(self):
        request = GenerationRequest(GenerationMode.RELATED, "topic", "parent", "extra")

        assert request.to_payload() == {
            "mode": "related",
            "topicContext": "topic",
            "parentLabel": "parent",
            "extraContext": "extra",
        }


    def test_link_count_is_sent(self):
        assert LINKS.to_payload() == {
            "mode": "links",
            "topicContext": "Urban gardening",
            "parentLabel": "Compost",
            "count": 2,
        }


class TestParseResponse:
    """Tests for mode-specific response validation."""

    def test_labels_are_cleaned_and_trimmed(self):
        response = parse_response(RELATED, {"labels": [" a ", "", 7, "b", "c", "d"]})

        assert response.labels == ["a", "b", "c"]

    def test_clean_labels_limit(self):
        assert clean_labels(["x", "y"], limit=1) == ["x"]

    @pytest.mark.parametrize("body", [
        [],
        "labels",
        {},
        {"labels": []},
        {"labels": ["  ", None]},
        {"labels": "not a list"},
        {"elaboration": "text only"},
    ])
    def test_bad_label_bodies(self, body):
        with pytest.raises(GenerationError):
            parse_response(RELATED, body)

    def test_elaboration(self):
        response = parse_response(ELABORATE, {"elaboration": "  Worms help.  "})

        assert response.elaboration == "Worms help."

    def test_elaboration_missing(self):
        with pytest.raises(GenerationError):
            parse_response(ELABORATE, {"labels": ["a"]})

    def test_links_are_validated_and_capped(self):
        body = {"links": [
            {"title": " Soil biology ", "url": " https://soil.example/biology ", "snippet": " Why. "},
            {"title": "No scheme", "url": "soil.example/x", "snippet": "Dropped."},
            {"title": "", "url": "https://soil.example/empty", "snippet": "Dropped."},
            {"title": "Missing snippet", "url": "https://soil.example/m"},
            "not an object",
            {"title": "Composting", "url": "http://compost.example", "snippet": ""},
            {"title": "Third", "url": "https://third.example", "snippet": "Over the count."},
        ]}

        response = parse_response(LINKS, body)

        assert [(link.title, link.url, link.snippet) for link in response.links] == [
            ("Soil biology", "https://soil.example/biology", "Why."),
            ("Composting", "http://compost.example", ""),
        ]

    def test_clean_links_default_limit(self):
        raw = [{"title": f"t{i}", "url": f"https://x.example/{i}", "snippet": ""}
               for i in range(LINK_COUNT + 2)]

        assert len(clean_links(raw)) == LINK_COUNT

    @pytest.mark.parametrize("body", [
        {},
        {"labels": ["a"]},
        {"links": []},
        {"links": [{"title": "x", "url": "ftp://x.example", "snippet": ""}]},
    ])
    def test_bad_link_bodies(self, body):
        with pytest.raises(GenerationError):
            parse_response(LINKS, body)


class TestHttpGenerator:
    """Tests for the httpx-backed client."""

    @pytest.mark.asyncio
    async def test_posts_payload_and_parses(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"labels": ["one", "two", "three"]})

        generator = make_generator(handler)
        response = await generator.generate(RELATED)
        await generator.client.aclose()

        assert seen["method"] == "POST"
        assert seen["body"]["parentLabel"] == "Compost"
        assert response.labels == ["one", "two", "three"]

    @pytest.mark.asyncio
    async def test_http_error_status_raises(self):
        generator = make_generator(lambda request: httpx.Response(503))

        with pytest.raises(httpx.HTTPStatusError):
            await generator.generate(RELATED)

    @pytest.mark.asyncio
    async def test_invalid_json_raises_generation_error(self):
        generator = make_generator(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(GenerationError):
            await generator.generate(RELATED)

    @pytest.mark.asyncio
    async def test_aclose_keeps_injected_client_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json={"labels": ["a"]})))
        generator = HttpGenerator(URL, client=client)

        await generator.aclose()

        assert not client.is_closed
        await client.aclose()


class TestOfflineGenerator:
    """Tests for the placeholder generator."""

    @pytest.mark.asyncio
    async def test_returns_three_labels(self):
        response = await OfflineGenerator().generate(RELATED)

        assert len(response.labels) == 3
        assert all("Compost" in label for label in response.labels)

    @pytest.mark.asyncio
    async def test_elaboration_mentions_extra_context(self):
        request = GenerationRequest(GenerationMode.ELABORATE, "topic", "Compost", "worms")
        response = await OfflineGenerator().generate(request)

        assert "worms" in response.elaboration

    @pytest.mark.asyncio
    async def test_links_are_search_urls_for_the_focus(self):
        response = await OfflineGenerator().generate(LINKS)

        assert len(response.links) == 2
        assert all(link.url.startswith("https://") for link in response.links)
        assert all("Urban+gardening+Compost" in link.url for link in response.links)
