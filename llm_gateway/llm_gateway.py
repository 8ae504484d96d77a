from __future__ import annotations  # Chat-completions gateway with schema-validated output

import json
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Protocol, Sequence, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from config.routes import LlmRoute


logger = logging.getLogger(__name__)


_MODEL_LOCKS: Dict[str, threading.Lock] = {}
_MODEL_LOCKS_GUARD = threading.Lock()


class HttpClient(Protocol):  # Minimal HTTP client protocol
    def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> "HttpResponse": ...


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...

    @property
    def text(self) -> str: ...


class LlmGatewayError(RuntimeError):  # Transport, status or output failure
    pass


T = TypeVar("T", bound=BaseModel)


class TextGenerator(Protocol):
    """Structured text generation: prompt + output schema in, parsed model out.

    Implementations raise on failure; callers own the fallback.
    """

    def __call__(self, prompt: str, schema: Type[T], *, temperature: float, timeout_ms: int) -> T: ...


def _lock_for(cfg: LlmRoute) -> threading.Lock:
    key = cfg.name or f"{cfg.base_url}{cfg.endpoint}"
    with _MODEL_LOCKS_GUARD:
        lock = _MODEL_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _MODEL_LOCKS[key] = lock
    return lock


def call(
    task: str,
    schema: Type[T],
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> T:  # Single user-message convenience wrapper
    return chat(
        [{"role": "user", "content": task}],
        schema,
        cfg=cfg,
        client=client,
        options=options,
    )


def chat(
    messages: Sequence[Dict[str, str]],
    schema: Type[T],
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> T:
    def _execute() -> T:
        base_messages: list[Dict[str, str]] = []
        if cfg.enforce_json:
            schema_json = json.dumps(schema.model_json_schema(), indent=2)
            base_messages.append(
                {"role": "system", "content": "Reply with a single JSON object matching this schema:\n" + schema_json}
            )
        base_messages.extend(_normalize_messages(messages))
        attempts = cfg.max_retries + 1
        last_error: Optional[Exception] = None
        last_error_text: Optional[str] = None
        preview = _preview(base_messages[-1:])
        if len(preview) > 120:
            preview = preview[:117] + "..."
        url = f"{cfg.base_url}{cfg.endpoint}"
        for attempt in range(attempts):
            attempt_messages = list(base_messages)
            if attempt > 0:
                attempt_messages.append({"role": "system", "content": _retry_hint(last_error_text)})
            payload: Dict[str, Any] = {"model": cfg.model, "messages": attempt_messages}
            if options:
                payload.update(options)
            if cfg.response_format:
                payload["response_format"] = {"type": cfg.response_format}
            logger.info(
                "LLM request route=%s model=%s attempt=%d/%d preview=%s",
                cfg.name,
                cfg.model,
                attempt + 1,
                attempts,
                preview,
            )
            try:
                response, close_cb = _post(url, payload, _headers(cfg), cfg.timeout_s, client)
            except Exception as exc:  # noqa: BLE001
                logger.error("LLM transport failure route=%s: %s", cfg.name, exc)
                raise LlmGatewayError("LLM transport failed") from exc
            try:
                if response.status_code >= 400:
                    logger.error("LLM error status route=%s status=%s", cfg.name, response.status_code)
                    raise LlmGatewayError(f"LLM returned status {response.status_code}")
                try:
                    data = response.json()
                except ValueError as exc:
                    raise LlmGatewayError("LLM payload was not JSON") from exc
                content = _extract_content(data)
                try:
                    return _validate(schema, content)
                except ValidationError as exc:
                    logger.warning("LLM output validation failed route=%s: %s", cfg.name, exc)
                    last_error = exc
                    last_error_text = str(exc)
            finally:
                _close_safely(close_cb)
        raise LlmGatewayError("LLM output validation failed") from last_error

    if cfg.sequential:
        with _lock_for(cfg):
            return _execute()
    return _execute()


def route_generator(route: LlmRoute, *, client: Optional[HttpClient] = None) -> TextGenerator:
    """Bind ``route`` to the ``TextGenerator`` contract.

    The per-call ``timeout_ms`` replaces the route timeout and retries are
    disabled, so a slow or failing model surfaces as a single error.
    """

    def _generate(prompt: str, schema: Type[T], *, temperature: float, timeout_ms: int) -> T:
        bounded = route.model_copy(update={"timeout_s": max(0.1, timeout_ms / 1000.0), "max_retries": 0})
        return call(prompt, schema, cfg=bounded, client=client, options={"temperature": temperature})

    return _generate


def _headers(cfg: LlmRoute) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if cfg.api_key_env:
        api_key = os.getenv(cfg.api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
    headers.update(cfg.extra_headers)
    return headers


def _post(
    url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout: float,
    client: Optional[HttpClient],
) -> Tuple[HttpResponse, Optional[Callable[[], None]]]:
    if client is not None:
        return client.post(url, json=payload, headers=headers, timeout=timeout), None
    http_client = httpx.Client(timeout=timeout)
    try:
        response = http_client.post(url, json=payload, headers=headers)
    except Exception:
        http_client.close()
        raise
    return response, http_client.close


def _close_safely(close_cb: Optional[Callable[[], None]]) -> None:
    if close_cb is not None:
        close_cb()


def _normalize_messages(messages: Sequence[Dict[str, str]]) -> list[Dict[str, str]]:
    normalized: list[Dict[str, str]] = []
    for item in messages:
        if not isinstance(item, dict):
            raise TypeError("Each chat message must be a dict with role/content")
        role = str(item.get("role", "")).strip()
        if not role:
            raise ValueError("Chat message missing role")
        normalized.append({"role": role, "content": str(item.get("content", ""))})
    return normalized


def _preview(messages: Sequence[Dict[str, str]]) -> str:
    for message in messages:
        text = message.get("content", "").strip()
        if text:
            return text.splitlines()[0]
    return ""


def _extract_content(data: Any) -> str:
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        if isinstance(data.get("content"), str):
            return data["content"]
    raise LlmGatewayError("LLM response missing content")


def _validate(schema: Type[T], content: str) -> T:
    return schema.model_validate_json(_strip_code_fences(content))


def _strip_code_fences(content: str) -> str:
    text = content.strip()
    if not text.startswith("```"):
        return text
    lines = text.splitlines()[1:]
    while lines and not lines[-1].strip():
        lines.pop()
    if lines and lines[-1].strip() == "```":
        lines.pop()
    return "\n".join(lines).strip()


def _retry_hint(error_text: Optional[str]) -> str:
    hint = "The previous reply failed validation."
    if error_text:
        first = error_text.splitlines()[0].strip()
        if len(first) > 200:
            first = first[:197] + "..."
        hint += f" Reason: {first}."
    return hint + " Return a single JSON object that matches the schema."


_DEADLINE_POOL = ThreadPoolExecutor(max_workers=4, thread_name_prefix="llm-deadline")


def generate_with_deadline(
    generate: TextGenerator,
    prompt: str,
    schema: Type[T],
    *,
    temperature: float,
    timeout_ms: int,
) -> T:
    """Run ``generate`` on a worker thread and stop waiting after ``timeout_ms``.

    Raises ``concurrent.futures.TimeoutError`` on deadline; the worker is left
    to finish in the background and its result is discarded.
    """
    future = _DEADLINE_POOL.submit(generate, prompt, schema, temperature=temperature, timeout_ms=timeout_ms)
    return future.result(timeout=timeout_ms / 1000.0)
