"""Vision-model extraction adapter: image -> draft OX questions.

Providers are tried in order; the first one that yields at least one usable
question wins. The engine never retries a provider on its own.
"""
from __future__ import annotations

import base64
import json
import logging
import re
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Protocol, Sequence

import anthropic
import openai
from PIL import Image, ImageOps, UnidentifiedImageError

from .config import EngineConfig
from .errors import ExtractionError
from .types import ExtractedQuestion, ExtractionResponse, Question, QuizSet
from .utils import generate_id, now_ms

logger = logging.getLogger(__name__)

MEDIA_TYPE = "image/jpeg"

PROMPT_TEMPLATE = """Extract the text from this image and turn its content into OX (true/false) quiz questions.

Respond with JSON only, in exactly this format (no other text):
{{
  "questions": [
    {{
      "question": "a statement that can be answered with O or X",
      "answer": true or false (true = O, false = X),
      "explanation": "a short explanation of the correct answer"
    }}
  ]
}}

Rules:
1. Turn the key information in the image into OX questions
2. Each question must be clearly decidable as true or false
3. Produce at least 3 questions
4. Write the questions in {language}
5. Mix the answers so that some questions are true (O) and some are false (X)"""

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def build_prompt(language: str = "Korean") -> str:
    return PROMPT_TEMPLATE.format(language=language)


# ----------------------------------------------------------------------
# image preparation
# ----------------------------------------------------------------------
def prepare_image(image: bytes | str | Path, *, max_side: int = 1568, quality: int = 85) -> bytes:
    """Normalize an input photo to a bounded-size RGB JPEG."""
    try:
        if isinstance(image, (str, Path)):
            with Image.open(image) as src:
                img = ImageOps.exif_transpose(src).convert("RGB")
        else:
            with Image.open(BytesIO(image)) as src:
                img = ImageOps.exif_transpose(src).convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise ExtractionError(f"cannot read image: {e}") from e

    img.thumbnail((max_side, max_side))
    buf = BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


# ----------------------------------------------------------------------
# response parsing
# ----------------------------------------------------------------------
def _to_extracted(item: Any) -> ExtractedQuestion | None:
    if not isinstance(item, dict):
        return None
    text = item.get("question")
    answer = item.get("answer")
    if not isinstance(text, str) or not isinstance(answer, bool):
        return None
    explanation = item.get("explanation")
    return ExtractedQuestion(
        question=text,
        answer=answer,
        explanation=explanation if isinstance(explanation, str) else None,
    )


def parse_quiz_response(text: str) -> list[ExtractedQuestion]:
    """Parse the first {...} span of a model reply.

    Malformed items are dropped; a reply with no JSON or no usable items is an
    ExtractionError.
    """
    match = _JSON_OBJECT_RE.search(text or "")
    if not match:
        raise ExtractionError("no JSON object found in model response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"failed to parse model response: {e}") from e

    items = data.get("questions") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise ExtractionError("model response has no questions list")

    questions = [q for q in (_to_extracted(it) for it in items) if q is not None]
    if not questions:
        raise ExtractionError("model response contained no usable questions")
    return questions


# ----------------------------------------------------------------------
# providers
# ----------------------------------------------------------------------
class VisionProvider(Protocol):
    name: str

    def complete(self, image_b64: str, prompt: str) -> str:
        """Return the raw reply text for one image + prompt."""
        ...


@dataclass
class AnthropicProvider:
    api_key: str
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 4096
    timeout: float = 60.0
    name: str = "anthropic"
    _client: Any | None = None

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = anthropic.Anthropic(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def complete(self, image_b64: str, prompt: str) -> str:
        try:
            response = self._get_client().messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {"type": "base64", "media_type": MEDIA_TYPE, "data": image_b64},
                            },
                            {"type": "text", "text": prompt},
                        ],
                    }
                ],
            )
        except anthropic.APIError as e:
            raise ExtractionError(f"Anthropic API error: {e}") from e
        return "".join(getattr(block, "text", "") for block in response.content)


@dataclass
class OpenAIProvider:
    api_key: str
    model: str = "gpt-4o"
    max_tokens: int = 4096
    timeout: float = 60.0
    name: str = "openai"
    _client: Any | None = None

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = openai.OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def complete(self, image_b64: str, prompt: str) -> str:
        try:
            response = self._get_client().chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "image_url", "image_url": {"url": f"data:{MEDIA_TYPE};base64,{image_b64}"}},
                            {"type": "text", "text": prompt},
                        ],
                    }
                ],
            )
        except openai.OpenAIError as e:
            raise ExtractionError(f"OpenAI API error: {e}") from e
        if not response.choices:
            raise ExtractionError("OpenAI returned no choices")
        return response.choices[0].message.content or ""


def has_api_key(cfg: EngineConfig) -> bool:
    return bool(cfg.extraction.get("anthropic_api_key") or cfg.extraction.get("openai_api_key"))


def providers_from_config(cfg: EngineConfig) -> list[VisionProvider]:
    """Providers for every configured key, Anthropic first."""
    ex = cfg.extraction
    timeout = float(ex.get("timeout_seconds") or 60)
    max_tokens = int(ex.get("max_tokens") or 4096)

    providers: list[VisionProvider] = []
    if ex.get("anthropic_api_key"):
        providers.append(
            AnthropicProvider(
                api_key=ex["anthropic_api_key"],
                model=ex["anthropic_model"],
                max_tokens=max_tokens,
                timeout=timeout,
            )
        )
    if ex.get("openai_api_key"):
        providers.append(
            OpenAIProvider(
                api_key=ex["openai_api_key"],
                model=ex["openai_model"],
                max_tokens=max_tokens,
                timeout=timeout,
            )
        )
    if not providers:
        raise ExtractionError("no API key configured (set ANTHROPIC_API_KEY or OPENAI_API_KEY)")
    return providers


# ----------------------------------------------------------------------
# entry points
# ----------------------------------------------------------------------
def extract_quiz_from_image(
    image: bytes | str | Path,
    providers: Sequence[VisionProvider],
    *,
    language: str = "Korean",
    max_side: int = 1568,
    quality: int = 85,
) -> ExtractionResponse:
    if not providers:
        raise ExtractionError("no vision providers available")

    image_b64 = base64.b64encode(prepare_image(image, max_side=max_side, quality=quality)).decode("ascii")
    prompt = build_prompt(language)

    last_error: ExtractionError | None = None
    for provider in providers:
        try:
            questions = parse_quiz_response(provider.complete(image_b64, prompt))
        except ExtractionError as e:
            logger.warning("provider %s failed: %s", provider.name, e)
            last_error = e
            continue
        logger.info("provider %s returned %d questions", provider.name, len(questions))
        return ExtractionResponse(questions=questions, provider=provider.name)

    raise ExtractionError(f"all providers failed; last error: {last_error}") from last_error


def build_quiz_set(
    response: ExtractionResponse,
    title: str,
    source_image_uri: str | None = None,
) -> QuizSet:
    """Turn extracted drafts into a new QuizSet with fresh ids and timestamps.

    Blank questions are dropped; a set needs at least one question.
    """
    created = now_ms()
    questions = [
        Question(
            id=generate_id(),
            text=q.question.strip(),
            answer=q.answer,
            explanation=q.explanation,
            created_at=created,
        )
        for q in response.questions
        if q.question.strip()
    ]
    if not questions:
        raise ValueError("quiz set needs at least one non-empty question")
    return QuizSet(
        id=generate_id(),
        title=title,
        created_at=created,
        questions=questions,
        source_image_uri=source_image_uri,
    )


def extract_with_config(image: bytes | str | Path, cfg: EngineConfig) -> ExtractionResponse:
    ex = cfg.extraction
    return extract_quiz_from_image(
        image,
        providers_from_config(cfg),
        language=str(ex.get("question_language") or "Korean"),
        max_side=int(ex.get("max_image_side") or 1568),
        quality=int(ex.get("jpeg_quality") or 85),
    )
