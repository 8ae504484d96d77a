from __future__ import annotations  # Re-export llm_gateway public API

from .llm_gateway import (
    HttpClient,
    HttpResponse,
    LlmGatewayError,
    TextGenerator,
    call,
    chat,
    generate_with_deadline,
    route_generator,
)

__all__ = [
    "HttpClient",
    "HttpResponse",
    "LlmGatewayError",
    "TextGenerator",
    "call",
    "chat",
    "generate_with_deadline",
    "route_generator",
]
