from __future__ import annotations

import logging
import os
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_AIML_API_BASE = os.getenv("AIML_API_BASE_URL", "https://api.aimlapi.com/v1").rstrip("/")
_OPENAI_API_BASE = os.getenv("OPENAI_API_BASE_URL", "https://api.openai.com/v1").rstrip("/")
_ANTHROPIC_API_BASE = os.getenv("ANTHROPIC_API_BASE_URL", "https://api.anthropic.com/v1").rstrip("/")

CHAT_SYSTEM_PROMPT = (
    "You are a professional healthcare assistant chatbot. Your role is to provide general health "
    "information and education, help users understand symptoms and when to seek medical care, offer "
    "wellness tips and preventive care advice, and suggest when professional medical consultation is needed. "
    "Always emphasize that you cannot replace professional medical diagnosis or treatment. "
    "For serious symptoms or emergencies, always recommend seeking immediate medical attention. "
    "Be empathetic, clear, and supportive, and keep responses concise but informative."
)

SUGGEST_SYSTEM_PROMPT = (
    "You are an expert at predicting what a user would say next in a conversation with a healthcare assistant. "
    "Based on the assistant's last message, generate a short, natural-sounding, and relevant question or reply "
    "that a human user would likely type. Keep the reply concise (usually one sentence). "
    "Do not act as an assistant; you are generating a reply for the user. Do not wrap the reply in quotes."
)


class CompletionError(Exception):
    pass


def _provider_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return f"{response.status_code}: {error['message']}"
        if isinstance(error, str) and error:
            return f"{response.status_code}: {error}"
    return f"{response.status_code}: provider request failed"


def _coerce_completion_text(response_json: dict[str, Any]) -> str:
    choices = response_json.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [item.get("text") for item in content if isinstance(item, dict) and isinstance(item.get("text"), str)]
        return "\n".join(parts)
    return ""


def _coerce_anthropic_text(response_json: dict[str, Any]) -> str:
    content = response_json.get("content")
    if not isinstance(content, list):
        return ""
    parts: list[str] = []
    for item in content:
        if not isinstance(item, dict) or item.get("type") != "text":
            continue
        text_value = item.get("text")
        if isinstance(text_value, str) and text_value.strip():
            parts.append(text_value.strip())
    return "\n".join(parts).strip()


def chat_provider_candidates() -> list[dict[str, Any]]:
    provider_preference = (os.getenv("ASSISTANT_CHAT_PROVIDER") or "auto").strip().lower()
    candidates: list[dict[str, Any]] = []

    aiml_api_key = (os.getenv("AIML_API_KEY") or "").strip()
    if aiml_api_key:
        candidates.append(
            {
                "provider": "aimlapi",
                "base_url": _AIML_API_BASE,
                "api_key": aiml_api_key,
                "model": (os.getenv("AIML_MODEL") or "gpt-4o").strip(),
                "suggest_model": (os.getenv("AIML_SUGGEST_MODEL") or "gpt-4o-mini").strip(),
            }
        )

    openai_api_key = (os.getenv("OPENAI_API_KEY") or "").strip()
    if openai_api_key:
        candidates.append(
            {
                "provider": "openai",
                "base_url": _OPENAI_API_BASE,
                "api_key": openai_api_key,
                "model": (os.getenv("OPENAI_MODEL") or "gpt-4o").strip(),
                "suggest_model": (os.getenv("OPENAI_SUGGEST_MODEL") or "gpt-4o-mini").strip(),
            }
        )

    anthropic_api_key = (os.getenv("ANTHROPIC_API_KEY") or "").strip()
    if anthropic_api_key:
        model = (os.getenv("ANTHROPIC_MODEL") or "claude-3-5-sonnet-latest").strip()
        candidates.append(
            {
                "provider": "anthropic",
                "base_url": _ANTHROPIC_API_BASE,
                "api_key": anthropic_api_key,
                "model": model,
                "suggest_model": (os.getenv("ANTHROPIC_SUGGEST_MODEL") or model).strip(),
            }
        )

    if provider_preference in {"", "auto"}:
        return candidates

    aliases = {
        "aiml": "aimlapi",
        "aimlapi": "aimlapi",
        "openai": "openai",
        "claude": "anthropic",
        "anthropic": "anthropic",
    }
    canonical = aliases.get(provider_preference)
    if not canonical:
        return candidates
    preferred = [candidate for candidate in candidates if candidate["provider"] == canonical]
    others = [candidate for candidate in candidates if candidate["provider"] != canonical]
    return preferred + others


class CompletionClient:
    """Hosted language model access; every failure surfaces as CompletionError."""

    def __init__(
        self,
        *,
        providers: list[dict[str, Any]] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.providers = providers if providers is not None else chat_provider_candidates()
        self.timeout = float(os.getenv("ASSISTANT_CHAT_TIMEOUT_SECONDS", "25"))
        self._transport = transport

    async def complete(self, prompt: str, context: str = "") -> str:
        system_prompt = CHAT_SYSTEM_PROMPT
        if context.strip():
            system_prompt = f"{CHAT_SYSTEM_PROMPT}\n\nConversation context:\n{context.strip()[:4000]}"
        return await self._first_reply(
            system_prompt=system_prompt,
            user_message=prompt.strip()[:2000],
            max_tokens=500,
            temperature=0.7,
            model_key="model",
        )

    async def suggest_reply(self, prior_bot_message: str) -> str:
        text = await self._first_reply(
            system_prompt=SUGGEST_SYSTEM_PROMPT,
            user_message=f'The assistant said: "{prior_bot_message.strip()[:1200]}"',
            max_tokens=50,
            temperature=0.5,
            model_key="suggest_model",
        )
        return text.strip().strip('"').strip()

    async def _first_reply(
        self,
        *,
        system_prompt: str,
        user_message: str,
        max_tokens: int,
        temperature: float,
        model_key: str,
    ) -> str:
        if not self.providers:
            raise CompletionError("No language model provider is configured.")

        failures: list[str] = []
        for provider in self.providers:
            provider_name = str(provider.get("provider") or "unknown")
            model = str(provider.get(model_key) or provider.get("model"))
            try:
                if provider_name == "anthropic":
                    text = await self._anthropic_chat(provider, model, system_prompt, user_message, max_tokens, temperature)
                else:
                    text = await self._openai_compatible_chat(
                        provider, model, system_prompt, user_message, max_tokens, temperature
                    )
            except (httpx.HTTPError, CompletionError, ValueError) as exc:
                logger.warning("completion provider %s failed: %s", provider_name, exc)
                failures.append(f"{provider_name}: {exc}")
                continue
            if text:
                logger.info("completion provider used (%s)", provider_name)
                return text
            logger.warning("completion provider %s returned an empty response", provider_name)
            failures.append(f"{provider_name}: empty response")
        raise CompletionError("; ".join(failures) or "No completion available.")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(self.timeout, connect=8.0), transport=self._transport)

    async def _openai_compatible_chat(
        self,
        provider: dict[str, Any],
        model: str,
        system_prompt: str,
        user_message: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        headers = {
            "Authorization": f"Bearer {provider['api_key']}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        async with self._client() as client:
            response = await client.post(f"{provider['base_url']}/chat/completions", headers=headers, json=payload)
        if response.status_code >= 400:
            raise CompletionError(_provider_error_message(response))
        return _coerce_completion_text(response.json()).strip()

    async def _anthropic_chat(
        self,
        provider: dict[str, Any],
        model: str,
        system_prompt: str,
        user_message: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        payload = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_message}],
        }
        headers = {
            "x-api-key": str(provider["api_key"]),
            "anthropic-version": os.getenv("ANTHROPIC_API_VERSION", "2023-06-01"),
            "Content-Type": "application/json",
        }
        async with self._client() as client:
            response = await client.post(f"{provider['base_url']}/messages", headers=headers, json=payload)
        if response.status_code >= 400:
            raise CompletionError(_provider_error_message(response))
        return _coerce_anthropic_text(response.json())
