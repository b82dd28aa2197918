"""Mock AI integrations served to wallets with active access."""

from __future__ import annotations

import random
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from neurapay.core.errors import ServiceNotAvailableError
from neurapay.db.time import utcnow


@dataclass(frozen=True)
class AIIntegration:
    """A model the relay can answer as."""

    service_id: int
    name: str
    model: str


@dataclass(frozen=True)
class RelayReply:
    response: str
    timestamp: datetime
    service: str


DEFAULT_INTEGRATIONS: dict[int, AIIntegration] = {
    0: AIIntegration(service_id=0, name="GPT-4", model="gpt-4"),
    1: AIIntegration(service_id=1, name="Gemini", model="gemini-pro"),
    2: AIIntegration(service_id=2, name="Claude", model="claude-3"),
}

RESPONSE_TEMPLATES: tuple[str, ...] = (
    'As {service}, I understand you\'re asking about: "{prompt}". '
    "This is a demonstration response showing the x402 payment protocol in action.",
    '{service} here! Your question "{prompt}" is interesting. '
    "This response proves you have active access to the AI service.",
    'Great question! Through {service}, I can tell you that "{prompt}" is a valid query. '
    "Your payment has been verified and you have active access.",
    '{service} response: I\'ve received your prompt "{prompt}". '
    "This demonstrates blockchain-gated AI access working perfectly!",
)

# Payloads for the direct on-chain gated route.
SERVICE_PAYLOADS: dict[int, dict[str, Any]] = {
    0: {
        "model": "gpt-4",
        "content": "This is a mock GPT-4 response. In production, this would call the actual OpenAI API.",
        "tokens": 150,
    },
    1: {
        "model": "dall-e-3",
        "imageUrl": "https://placeholder.com/generated-image.png",
        "prompt": "Sample generated image",
    },
    2: {
        "model": "claude-3",
        "content": "Mock Claude AI response with advanced reasoning capabilities.",
        "tokens": 200,
    },
}
DEFAULT_PAYLOAD: dict[str, Any] = {"message": "AI response generated successfully"}


class AIRelayService:
    """Produces canned responses in place of real model calls."""

    def __init__(
        self,
        integrations: Mapping[int, AIIntegration] | None = None,
        *,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.integrations = dict(integrations if integrations is not None else DEFAULT_INTEGRATIONS)
        self._rng = rng or random.Random()
        self._clock = clock

    def integration_for(self, service_id: int) -> AIIntegration:
        try:
            return self.integrations[service_id]
        except KeyError as exc:
            raise ServiceNotAvailableError(f"no integration for service {service_id}") from exc

    def respond(self, service_id: int, prompt: str) -> RelayReply:
        integration = self.integration_for(service_id)
        template = self._rng.choice(RESPONSE_TEMPLATES)
        return RelayReply(
            response=template.format(service=integration.name, prompt=prompt),
            timestamp=self._clock(),
            service=integration.name,
        )

    def service_payload(self, service_id: int) -> dict[str, Any]:
        return dict(SERVICE_PAYLOADS.get(service_id, DEFAULT_PAYLOAD))
