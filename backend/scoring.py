"""Interest scoring and place descriptions through an OpenAI-compatible chat endpoint."""

import json
import logging
import math
import re

import httpx

import config
from errors import NetworkError, ParseError
from models import AttractionScore
from providers import request_json

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

PROMPTS = {
    "de": {
        "system": (
            "Du bist ein Reise-Experte. Bewerte Sehenswürdigkeiten basierend auf Benutzerinteressen. "
            "Antworte NUR mit einem JSON-Array ohne Markdown-Formatierung."
        ),
        "user": (
            "Benutzerinteressen: {interests}\n\nSehenswürdigkeiten: {names}\n\n"
            "Bewerte jede Sehenswürdigkeit mit einem Score von 0-10, wie gut sie zu den Interessen passt. "
            'Antworte im JSON-Format: [{{"name": "Name", "score": 8, "reason": "kurze Begründung"}}]'
        ),
    },
    "en": {
        "system": (
            "You are a travel expert. Rate attractions based on user interests. "
            "Respond ONLY with a JSON array without markdown formatting."
        ),
        "user": (
            "User interests: {interests}\n\nAttractions: {names}\n\n"
            "Rate each attraction with a score from 0-10 based on how well it matches the interests. "
            'Respond in JSON format: [{{"name": "Name", "score": 8, "reason": "brief explanation"}}]'
        ),
    },
}

DESCRIPTION_PROMPTS = {
    "de": {
        "system": (
            "Du bist ein hilfreicher Reiseführer-Assistent. Gib detaillierte, interessante und nützliche "
            "Informationen über Orte und Sehenswürdigkeiten auf Deutsch."
        ),
        "user": (
            "Erzähle mir über {location}. Gib Informationen über Geschichte, Sehenswürdigkeiten, "
            "kulturelle Bedeutung und praktische Reisetipps. {context}"
        ),
        "context": (
            "Der Nutzer interessiert sich besonders für: {labels}. "
            "Fokussiere deine Beschreibung auf diese Aspekte."
        ),
    },
    "en": {
        "system": (
            "You are a helpful travel guide assistant. Provide detailed, interesting, and useful "
            "information about places and attractions in English."
        ),
        "user": (
            "Tell me about {location}. Provide information about history, attractions, "
            "cultural significance, and practical travel tips. {context}"
        ),
        "context": (
            "The user is particularly interested in: {labels}. "
            "Focus your description on these aspects."
        ),
    },
}


def interest_context(interests: list[str], language: str = config.LANGUAGE) -> str:
    """Prompt sentence naming the user's interests, empty when there are none."""
    if not interests:
        return ""
    labels = config.INTEREST_LABELS.get(language, config.INTEREST_LABELS["de"])
    prompts = DESCRIPTION_PROMPTS.get(language, DESCRIPTION_PROMPTS["de"])
    return prompts["context"].format(labels=", ".join(labels.get(i, i) for i in interests))


def strip_code_fence(content: str) -> str:
    """Return the body of the first markdown code fence, or the content as is."""
    if "```" in content:
        match = FENCE_RE.search(content)
        if match:
            return match.group(1).strip()
    return content.strip()


def parse_scores(content: str) -> list[AttractionScore]:
    """Decode the scoring reply into AttractionScore entries.

    Entries that are not name/score objects are skipped. Raises ParseError
    when the reply is not a JSON array.
    """
    try:
        payload = json.loads(strip_code_fence(content))
    except json.JSONDecodeError as exc:
        raise ParseError(f"Scoring reply is not JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise ParseError(f"Scoring reply is {type(payload).__name__}, expected a list")

    scores = []
    for item in payload:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            continue
        score = item.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)) or not math.isfinite(score):
            continue
        reason = item.get("reason")
        scores.append(AttractionScore(
            name=item["name"],
            score=float(score),
            reason=reason if isinstance(reason, str) else "",
        ))
    return scores


class ScoringClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str = config.OPENAI_API_KEY,
        model: str = config.OPENAI_MODEL,
        url: str = config.OPENAI_URL,
        language: str = config.LANGUAGE,
        timeout: float = config.SCORING_TIMEOUT_S,
    ):
        self.http = http
        self.api_key = api_key or ""
        self.model = model
        self.url = url
        self.language = language
        self.timeout = timeout

    @property
    def has_valid_key(self) -> bool:
        return self.api_key.startswith("sk")

    def build_messages(self, names: list[str], interests: list[str]) -> list[dict]:
        prompts = PROMPTS.get(self.language, PROMPTS["de"])
        return [
            {"role": "system", "content": prompts["system"]},
            {"role": "user", "content": prompts["user"].format(
                interests=", ".join(interests),
                names=", ".join(names),
            )},
        ]

    def build_description_messages(self, location: str, context: str = "") -> list[dict]:
        prompts = DESCRIPTION_PROMPTS.get(self.language, DESCRIPTION_PROMPTS["de"])
        return [
            {"role": "system", "content": prompts["system"]},
            {"role": "user", "content": prompts["user"].format(location=location, context=context).strip()},
        ]

    async def _complete(self, messages: list[dict], max_tokens: int, temperature: float) -> str:
        body = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        data = await request_json(
            self.http, "POST", self.url,
            json=body, headers=headers, timeout=self.timeout,
        )
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ParseError("Chat reply has no message content") from exc
        if not isinstance(content, str):
            raise ParseError("Chat message content is not text")
        return content

    async def score(self, names: list[str], interests: list[str]) -> list[AttractionScore]:
        content = await self._complete(
            self.build_messages(names, interests),
            config.SCORING_MAX_TOKENS,
            config.SCORING_TEMPERATURE,
        )
        scores = parse_scores(content)
        logger.info("Scored %d/%d attractions for interests %s", len(scores), len(names), interests)
        return scores

    async def describe(self, location: str, context: str = "") -> str:
        """Free-text travel guide description of a place.

        Raises NetworkError on transport/status failures and ParseError for an
        empty or missing reply.
        """
        content = await self._complete(
            self.build_description_messages(location, context),
            config.DESCRIPTION_MAX_TOKENS,
            config.DESCRIPTION_TEMPERATURE,
        )
        content = content.strip()
        if not content:
            raise ParseError(f"Empty description for {location!r}")
        logger.info("Described %r (%d chars)", location, len(content))
        return content


def scoring_message_key(exc: NetworkError) -> str:
    if exc.status_code in (401, 403):
        return "errors.api.openaiAuthError"
    if exc.status_code == 429:
        return "errors.api.openaiRateLimit"
    return "errors.api.openaiUnavailable"
