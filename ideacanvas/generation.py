"""Clients for the content-generation service.

The service takes ``{mode, topicContext, parentLabel?, extraContext?, count?}``
and answers ``{labels: [...]}`` for the ``initial``/``related`` modes,
``{elaboration: "..."}`` for ``elaborate`` or
``{links: [{title, url, snippet}, ...]}`` for ``links``. Anything else is
treated as a failed request by the caller, never as partial data.
"""

import hashlib
import logging
from urllib.parse import quote_plus
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError, field_validator

logger = logging.getLogger(__name__)

BATCH_SIZE = 3
LINK_COUNT = 5
DEFAULT_TIMEOUT = 30.0


class GenerationMode(str, Enum):
    INITIAL = "initial"
    RELATED = "related"
    ELABORATE = "elaborate"
    LINKS = "links"


class GenerationError(Exception):
    """The service answered with something we cannot use."""


@dataclass(frozen=True)
class GenerationRequest:
    """One call to the generation service."""
    mode: GenerationMode
    topic_context: str
    parent_label: Optional[str] = None
    extra_context: Optional[str] = None
    count: Optional[int] = None  # links only

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "mode": self.mode.value,
            "topicContext": self.topic_context,
        }
        if self.parent_label:
            payload["parentLabel"] = self.parent_label
        if self.extra_context:
            payload["extraContext"] = self.extra_context
        if self.count:
            payload["count"] = self.count
        return payload


class LinkSuggestion(BaseModel):
    """One external resource proposed by the service."""
    title: str
    url: str
    snippet: str

    @field_validator("title", "url", "snippet")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()

    @field_validator("title")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("title is empty")
        return value

    @field_validator("url")
    @classmethod
    def _web_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("url must be http(s)")
        return value


class _WireBody(BaseModel):
    """Shape of the JSON body before mode-specific checks."""
    labels: Optional[List[Any]] = None
    elaboration: Optional[str] = None
    links: Optional[List[Any]] = None


class GenerationResponse(BaseModel):
    """Validated service answer."""
    labels: Optional[List[str]] = None
    elaboration: Optional[str] = None
    links: Optional[List[LinkSuggestion]] = None


def clean_labels(raw: List[Any], limit: int = BATCH_SIZE) -> List[str]:
    """Keep non-empty strings, stripped, at most ``limit`` of them."""
    labels = []
    for value in raw:
        if isinstance(value, str) and value.strip():
            labels.append(value.strip())
    return labels[:limit]


def clean_links(raw: List[Any], limit: int = LINK_COUNT) -> List[LinkSuggestion]:
    """Keep the entries that validate as links, at most ``limit`` of them."""
    links = []
    for value in raw:
        try:
            links.append(LinkSuggestion.model_validate(value))
        except ValidationError as exc:
            logger.debug("Skipping invalid link %r: %s", value, exc.errors()[0]["msg"])
    return links[:limit]


def parse_response(request: GenerationRequest, body: Any) -> GenerationResponse:
    """Validate a decoded JSON body against what ``request.mode`` expects."""
    if not isinstance(body, dict):
        raise GenerationError(f"expected a JSON object, got {type(body).__name__}")
    try:
        wire = _WireBody.model_validate(body)
    except ValidationError as exc:
        raise GenerationError(f"malformed response: {exc}") from exc

    if request.mode == GenerationMode.ELABORATE:
        if not wire.elaboration or not wire.elaboration.strip():
            raise GenerationError("response has no elaboration text")
        return GenerationResponse(elaboration=wire.elaboration.strip())

    if request.mode == GenerationMode.LINKS:
        if wire.links is None:
            raise GenerationError("response has no links list")
        links = clean_links(wire.links, request.count or LINK_COUNT)
        if not links:
            raise GenerationError("response has no valid links")
        return GenerationResponse(links=links)

    if wire.labels is None:
        raise GenerationError("response has no labels list")
    labels = clean_labels(wire.labels)
    if not labels:
        raise GenerationError("response labels are empty")
    return GenerationResponse(labels=labels)


class HttpGenerator:
    """Generation port backed by an HTTP endpoint."""

    def __init__(self, url: str, timeout: float = DEFAULT_TIMEOUT,
                 client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        logger.debug("Generation request mode=%s", request.mode.value)
        response = await self.client.post(self.url, json=request.to_payload())
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as exc:
            raise GenerationError("response is not valid JSON") from exc
        return parse_response(request, body)

    async def aclose(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


class OfflineGenerator:
    """Deterministic placeholder output, for use without a service."""

    _ANGLES = (
        "What if {} failed?",
        "Who benefits from {}?",
        "The hidden cost of {}",
        "{} in ten years",
        "The opposite of {}",
        "Smallest version of {}",
    )

    _LINK_SOURCES = (
        ("Wikipedia articles on {}", "https://en.wikipedia.org/w/index.php?search={}",
         "Encyclopedia entries and their references, a quick map of the field."),
        ("Scholarly papers about {}", "https://scholar.google.com/scholar?q={}",
         "Peer-reviewed research with citation counts to judge what is established."),
        ("arXiv preprints on {}", "https://arxiv.org/search/?query={}&searchtype=all",
         "Recent preprints, often ahead of journal publication."),
        ("Books about {}", "https://openlibrary.org/search?q={}",
         "Long-form treatments for going deeper than articles allow."),
        ("Practitioner discussions of {}", "https://hn.algolia.com/?q={}",
         "Threads where people who built things share what worked."),
    )

    def __init__(self):
        self.calls = 0

    def _pick(self, subject: str, salt: str) -> List[str]:
        digest = hashlib.sha1(f"{subject}|{salt}|{self.calls}".encode("utf-8")).digest()
        start = digest[0] % len(self._ANGLES)
        short = subject if len(subject) <= 40 else subject[:37] + "..."
        return [self._ANGLES[(start + i) % len(self._ANGLES)].format(short)
                for i in range(BATCH_SIZE)]

    def _links(self, request: GenerationRequest) -> List[LinkSuggestion]:
        subject = request.topic_context
        if request.parent_label:
            subject = f"{subject} {request.parent_label}"
        query = quote_plus(subject)
        count = request.count or LINK_COUNT
        return [LinkSuggestion(title=title.format(subject), url=url.format(query), snippet=snippet)
                for title, url, snippet in self._LINK_SOURCES[:count]]

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.calls += 1
        if request.mode == GenerationMode.LINKS:
            return GenerationResponse(links=self._links(request))
        subject = request.parent_label or request.topic_context
        if request.mode == GenerationMode.ELABORATE:
            text = f"{subject}: consider who it serves and what it replaces."
            if request.extra_context:
                text += f" Keep in mind: {request.extra_context}."
            return GenerationResponse(elaboration=text)
        return GenerationResponse(labels=self._pick(subject, request.extra_context or ""))
