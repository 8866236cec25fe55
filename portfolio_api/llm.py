"""Ollama chat client."""

import logging
from datetime import datetime, timezone

import httpx

from .models import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)

SOURCES = ["PostgreSQL Database"]

SYSTEM_PROMPT = """You are the assistant on Bruno Lucena's portfolio website.
Answer questions about Bruno's skills, experience, projects and how to contact him.
Rules:
- Use only the portfolio information provided in the message.
- Skip greetings and pleasantries; answer directly.
- Answer in at most two sentences.
- If the information is not in the portfolio data, say you don't know."""


class LLMError(Exception):
    pass


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_user_prompt(request: ChatRequest, context: str) -> str:
    prompt = f"## Portfolio data\n{context}\n"
    if request.context:
        prompt += f"\n## Additional context\n{request.context}\n"
    prompt += f"\n## Question\n{request.message}"
    return prompt


class LLMService:
    def __init__(self, base_url: str, model: str, timeout: float = 60.0, client: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self):
        await self.client.aclose()

    async def process_chat(self, request: ChatRequest, context: str) -> ChatResponse:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(request, context)},
            ],
            "stream": False,
        }

        try:
            response = await self.client.post(f"{self.base_url}/api/chat", json=payload)
        except httpx.TimeoutException as e:
            raise LLMError("LLM request timed out") from e
        except httpx.HTTPError as e:
            raise LLMError(f"LLM request failed: {e}") from e

        if response.status_code != 200:
            logger.error("[LLM] upstream returned %d: %s", response.status_code, response.text[:500])
            raise LLMError(f"LLM returned status {response.status_code}")

        try:
            data = response.json()
            text = data["message"]["content"]
        except (ValueError, KeyError, TypeError) as e:
            raise LLMError("LLM returned a malformed response") from e

        if not isinstance(text, str) or not text.strip():
            raise LLMError("LLM returned an empty response")

        return ChatResponse(
            response=text.strip(),
            sources=list(SOURCES),
            model=self.model,
            timestamp=utc_timestamp(),
        )

    async def health_check(self) -> dict:
        """Query the model list. Raises LLMError when the server is unreachable."""
        try:
            response = await self.client.get(f"{self.base_url}/api/tags", timeout=10.0)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise LLMError(f"Ollama unreachable: {e}") from e
        except ValueError as e:
            raise LLMError("Ollama returned a malformed model list") from e
        if not isinstance(data, dict):
            raise LLMError("Ollama returned a malformed model list")

        models = [m.get("name", "") for m in data.get("models") or [] if isinstance(m, dict)]
        return {
            "models": models,
            "model_available": self.model in models,
        }

    async def probe(self):
        """Startup check; only logs."""
        try:
            result = await self.health_check()
        except LLMError as e:
            logger.warning("[LLM] startup probe failed: %s", e)
            return
        if result["model_available"]:
            logger.info("[LLM] model %s available at %s", self.model, self.base_url)
        else:
            logger.warning("[LLM] model %s not found, available: %s", self.model, ", ".join(result["models"]) or "none")
