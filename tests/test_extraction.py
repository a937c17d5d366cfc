"""Test the vision extraction adapter without network access.

Tests cover:
1. Image normalization with Pillow
2. Model reply parsing
3. Provider fallback order and error surfacing
4. Mapping drafts into a new quiz set
"""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from ox_quiz_engine.config import load_config
from ox_quiz_engine.errors import ExtractionError
from ox_quiz_engine.extraction import (
    AnthropicProvider,
    OpenAIProvider,
    build_prompt,
    build_quiz_set,
    extract_quiz_from_image,
    has_api_key,
    parse_quiz_response,
    prepare_image,
    providers_from_config,
)
from ox_quiz_engine.types import ExtractedQuestion, ExtractionResponse

GOOD_REPLY = """Here you go:
{
  "questions": [
    {"question": "The Earth orbits the Sun.", "answer": true, "explanation": "Heliocentric model."},
    {"question": "Water freezes at 10C.", "answer": false}
  ]
}"""


@dataclass
class FakeProvider:
    name: str
    reply: str | None = None
    error: Exception | None = None
    calls: list[tuple[str, str]] = field(default_factory=list)

    def complete(self, image_b64: str, prompt: str) -> str:
        self.calls.append((image_b64, prompt))
        if self.error is not None:
            raise self.error
        return self.reply or ""


def _png_bytes(size=(3000, 1000), color=(200, 30, 30), mode="RGB") -> bytes:
    buf = BytesIO()
    Image.new(mode, size, color=color).save(buf, format="PNG")
    return buf.getvalue()


# ═══════════════════════════════════════════════════════════════════════════════
# IMAGE PREPARATION
# ═══════════════════════════════════════════════════════════════════════════════

class TestPrepareImage:
    def test_downscales_and_reencodes_as_jpeg(self):
        out = prepare_image(_png_bytes(), max_side=600)
        img = Image.open(BytesIO(out))
        assert img.format == "JPEG"
        assert img.mode == "RGB"
        assert max(img.size) == 600
        assert img.size == (600, 200)

    def test_small_image_not_upscaled(self):
        img = Image.open(BytesIO(prepare_image(_png_bytes(size=(120, 80)), max_side=600)))
        assert img.size == (120, 80)

    def test_rgba_from_path(self, tmp_path: Path):
        p = tmp_path / "photo.png"
        Image.new("RGBA", (50, 50), color=(0, 0, 255, 128)).save(p)
        img = Image.open(BytesIO(prepare_image(p)))
        assert img.mode == "RGB"

    def test_garbage_bytes_raise_extraction_error(self):
        with pytest.raises(ExtractionError):
            prepare_image(b"definitely not an image")


# ═══════════════════════════════════════════════════════════════════════════════
# RESPONSE PARSING
# ═══════════════════════════════════════════════════════════════════════════════

class TestParseQuizResponse:
    def test_parses_embedded_json(self):
        questions = parse_quiz_response(GOOD_REPLY)
        assert questions == [
            ExtractedQuestion("The Earth orbits the Sun.", True, "Heliocentric model."),
            ExtractedQuestion("Water freezes at 10C.", False, None),
        ]

    def test_drops_malformed_items(self):
        reply = '{"questions": [{"question": "ok", "answer": false}, {"question": "bad", "answer": "yes"}, 3]}'
        assert parse_quiz_response(reply) == [ExtractedQuestion("ok", False)]

    @pytest.mark.parametrize(
        "reply",
        [
            "",
            "I cannot read this image.",
            "{ broken json",
            '{"items": []}',
            '{"questions": []}',
            '{"questions": [{"question": 1, "answer": true}]}',
        ],
    )
    def test_unusable_reply_raises(self, reply: str):
        with pytest.raises(ExtractionError):
            parse_quiz_response(reply)


# ═══════════════════════════════════════════════════════════════════════════════
# PROVIDER FALLBACK
# ═══════════════════════════════════════════════════════════════════════════════

class TestExtractQuizFromImage:
    def test_first_provider_success(self):
        first = FakeProvider("a", reply=GOOD_REPLY)
        second = FakeProvider("b", reply=GOOD_REPLY)

        response = extract_quiz_from_image(_png_bytes(size=(64, 64)), [first, second], language="English")

        assert response.provider == "a"
        assert len(response.questions) == 2
        assert second.calls == []
        image_b64, prompt = first.calls[0]
        assert Image.open(BytesIO(base64.b64decode(image_b64))).format == "JPEG"
        assert "English" in prompt

    def test_falls_back_on_error_and_bad_json(self, caplog):
        failing = FakeProvider("a", error=ExtractionError("401 unauthorized"))
        garbled = FakeProvider("b", reply="not json")
        good = FakeProvider("c", reply=GOOD_REPLY)

        with caplog.at_level("WARNING", logger="ox_quiz_engine.extraction"):
            response = extract_quiz_from_image(_png_bytes(size=(64, 64)), [failing, garbled, good])

        assert response.provider == "c"
        assert "provider a failed" in caplog.text
        assert "provider b failed" in caplog.text

    def test_all_fail_raises_with_last_cause(self):
        last = ExtractionError("network down")
        with pytest.raises(ExtractionError) as exc_info:
            extract_quiz_from_image(
                _png_bytes(size=(64, 64)),
                [FakeProvider("a", reply="nope"), FakeProvider("b", error=last)],
            )
        assert exc_info.value.__cause__ is last

    def test_no_providers(self):
        with pytest.raises(ExtractionError):
            extract_quiz_from_image(_png_bytes(size=(8, 8)), [])

    def test_unexpected_exceptions_propagate(self):
        """Only ExtractionError triggers fallback; programming errors surface."""
        with pytest.raises(RuntimeError):
            extract_quiz_from_image(
                _png_bytes(size=(8, 8)),
                [FakeProvider("a", error=RuntimeError("bug")), FakeProvider("b", reply=GOOD_REPLY)],
            )


class TestProvidersFromConfig:
    def test_anthropic_first_when_both_keys(self):
        cfg = load_config(env={"ANTHROPIC_API_KEY": "ak", "OPENAI_API_KEY": "ok"})
        providers = providers_from_config(cfg)
        assert [type(p) for p in providers] == [AnthropicProvider, OpenAIProvider]
        assert providers[0].model == "claude-sonnet-4-20250514"
        assert providers[1].model == "gpt-4o"
        assert has_api_key(cfg)

    def test_expo_variable_names(self):
        cfg = load_config(env={"EXPO_PUBLIC_OPENAI_API_KEY": "ok"})
        providers = providers_from_config(cfg)
        assert [p.name for p in providers] == ["openai"]

    def test_no_keys(self):
        cfg = load_config(env={})
        assert not has_api_key(cfg)
        with pytest.raises(ExtractionError):
            providers_from_config(cfg)


class _Block:
    def __init__(self, text: str):
        self.type = "text"
        self.text = text


class _FakeAnthropicMessages:
    def __init__(self, reply: str):
        self.reply = reply
        self.kwargs: dict = {}

    def create(self, **kwargs):
        self.kwargs = kwargs
        return type("Resp", (), {"content": [_Block(self.reply)]})()


def test_anthropic_provider_request_shape():
    messages = _FakeAnthropicMessages(GOOD_REPLY)
    client = type("Client", (), {"messages": messages})()
    provider = AnthropicProvider(api_key="k", _client=client)

    text = provider.complete("QUJD", build_prompt())

    assert text == GOOD_REPLY
    content = messages.kwargs["messages"][0]["content"]
    assert content[0]["source"] == {"type": "base64", "media_type": "image/jpeg", "data": "QUJD"}
    assert content[1]["type"] == "text"
    assert messages.kwargs["max_tokens"] == 4096


# ═══════════════════════════════════════════════════════════════════════════════
# QUIZ SET MAPPING
# ═══════════════════════════════════════════════════════════════════════════════

class TestBuildQuizSet:
    def test_assigns_fresh_ids_and_drops_blank(self):
        response = ExtractionResponse(
            questions=[
                ExtractedQuestion("  First  ", True, "e1"),
                ExtractedQuestion("   ", False),
                ExtractedQuestion("Second", False),
            ],
            provider="fake",
        )
        qs = build_quiz_set(response, title="Chapter 1", source_image_uri="file:///x.jpg")

        assert qs.title == "Chapter 1"
        assert qs.source_image_uri == "file:///x.jpg"
        assert [q.text for q in qs.questions] == ["First", "Second"]
        assert [q.answer for q in qs.questions] == [True, False]
        assert qs.questions[0].explanation == "e1"
        ids = {qs.id} | {q.id for q in qs.questions}
        assert len(ids) == 3

    def test_all_blank_rejected(self):
        with pytest.raises(ValueError):
            build_quiz_set(ExtractionResponse(questions=[ExtractedQuestion(" ", True)]), title="t")
