"""
ClientForge
LLM Gateway.

Provider-agnostic LLM router with:
    - Multi-provider support (Anthropic Claude, OpenAI, Gemini, local stub)
    - Provider chain from the ai_providers table (lower priority first)
    - Auto-retry with exponential backoff per provider, then fallback
    - Token tracking on the provider row + platform_usage_logs entries
    - Audio transcription through the first provider that supports it

Usage:
    from app.ai.gateway import LLMGateway
    gw = LLMGateway()
    result = gw.chat(
        [{"role": "system", "content": "..."}, {"role": "user", "content": "..."}],
        purpose="scope",
    )
    result["content"]
"""

import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from flask import current_app

from app.core.exceptions import LLMUnavailableError
from app.models import db
from app.models.platform import AIProvider, PlatformUsageLog

logger = logging.getLogger(__name__)


# ── Provider Abstract Base ────────────────────────────────────────────────────

class LLMProvider(ABC):
    """Abstract interface for LLM providers."""

    def __init__(self, api_key: str | None = None, base_url: str | None = None):
        self.api_key = api_key or ""
        self.base_url = base_url or None
        self._client = None

    @abstractmethod
    def chat(self, messages: list, model: str, **kwargs) -> dict:
        """
        Send a chat completion request.

        Args:
            messages: List of {"role": "...", "content": "..."} dicts.
            model: Model identifier string.
            **kwargs: temperature, max_tokens, purpose.

        Returns:
            dict with keys: content, prompt_tokens, completion_tokens, model
        """
        ...

    def transcribe(self, audio: bytes, filename: str, mime_type: str | None = None) -> str:
        raise NotImplementedError(f"{type(self).__name__} does not transcribe audio")


# ── Anthropic Provider ────────────────────────────────────────────────────────

class AnthropicProvider(LLMProvider):
    """Claude API (Anthropic) provider."""

    def _get_client(self):
        if self._client is None:
            try:
                import anthropic
            except ImportError:
                raise RuntimeError("anthropic package not installed. Run: pip install anthropic")
            self._client = anthropic.Anthropic(api_key=self.api_key, base_url=self.base_url)
        return self._client

    def chat(self, messages: list, model: str = "claude-3-5-haiku-20241022", **kwargs) -> dict:
        client = self._get_client()

        system_msg = ""
        chat_messages = []
        for m in messages:
            if m["role"] == "system":
                system_msg = f"{system_msg}\n\n{m['content']}" if system_msg else m["content"]
            else:
                chat_messages.append({"role": m["role"], "content": m["content"]})

        params = {
            "model": model,
            "messages": chat_messages,
            "max_tokens": kwargs.get("max_tokens", 4096),
            "temperature": kwargs.get("temperature", 0.7),
        }
        if system_msg:
            params["system"] = system_msg

        response = client.messages.create(**params)

        return {
            "content": response.content[0].text,
            "prompt_tokens": response.usage.input_tokens,
            "completion_tokens": response.usage.output_tokens,
            "model": model,
        }


# ── OpenAI Provider ───────────────────────────────────────────────────────────

class OpenAIProvider(LLMProvider):
    """OpenAI (or OpenAI-compatible via base_url) chat + Whisper provider."""

    TRANSCRIBE_MODEL = "whisper-1"

    def _get_client(self):
        if self._client is None:
            try:
                import openai
            except ImportError:
                raise RuntimeError("openai package not installed. Run: pip install openai")
            self._client = openai.OpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    def chat(self, messages: list, model: str = "gpt-4o-mini", **kwargs) -> dict:
        client = self._get_client()
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            max_tokens=kwargs.get("max_tokens", 4096),
            temperature=kwargs.get("temperature", 0.7),
        )
        choice = response.choices[0]
        return {
            "content": choice.message.content or "",
            "prompt_tokens": response.usage.prompt_tokens,
            "completion_tokens": response.usage.completion_tokens,
            "model": model,
        }

    def transcribe(self, audio: bytes, filename: str, mime_type: str | None = None) -> str:
        client = self._get_client()
        response = client.audio.transcriptions.create(
            model=self.TRANSCRIBE_MODEL,
            file=(filename, audio, mime_type or "application/octet-stream"),
        )
        return response.text or ""


# ── Google Gemini Provider ───────────────────────────────────────────────────

class GeminiProvider(LLMProvider):
    """
    Google Gemini API provider (AI Studio).

    Environment:
        GEMINI_API_KEY — obtain at https://aistudio.google.com/apikey
    """

    def _get_client(self):
        if self._client is None:
            try:
                from google import genai
            except ImportError:
                raise RuntimeError(
                    "google-genai package not installed. Run: pip install google-genai"
                )
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def chat(self, messages: list, model: str = "gemini-2.5-flash", **kwargs) -> dict:
        client = self._get_client()
        from google.genai import types

        system_parts = []
        contents = []
        for m in messages:
            if m["role"] == "system":
                system_parts.append(m["content"])
            else:
                # Gemini uses "user" and "model" roles
                role = "model" if m["role"] == "assistant" else "user"
                contents.append(types.Content(role=role, parts=[types.Part(text=m["content"])]))

        config = types.GenerateContentConfig(
            temperature=kwargs.get("temperature", 0.7),
            max_output_tokens=kwargs.get("max_tokens", 4096),
        )
        if system_parts:
            config.system_instruction = "\n\n".join(system_parts)

        response = client.models.generate_content(model=model, contents=contents, config=config)

        prompt_tokens = getattr(response.usage_metadata, "prompt_token_count", 0) or 0
        completion_tokens = getattr(response.usage_metadata, "candidates_token_count", 0) or 0

        return {
            "content": response.text or "",
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "model": model,
        }


# ── Local Stub Provider (for dev/test without API keys) ──────────────────────

class LocalStubProvider(LLMProvider):
    """
    Local stub that returns deterministic responses keyed on ``purpose``.
    No API key required. Every JSON purpose returns a payload the matching
    generator in app.ai.generators can parse.
    """

    TRANSCRIPTION_PLACEHOLDER = "[Transcription unavailable: no speech-to-text provider configured]"

    def chat(self, messages: list, model: str = "local-stub", **kwargs) -> dict:
        user_msg = ""
        for m in reversed(messages):
            if m["role"] == "user":
                user_msg = m["content"]
                break

        content = self._generate_stub_response(kwargs.get("purpose", ""), user_msg)

        return {
            "content": content,
            "prompt_tokens": len(user_msg.split()) * 2,  # rough estimate
            "completion_tokens": len(content.split()) * 2,
            "model": "local-stub",
        }

    def transcribe(self, audio: bytes, filename: str, mime_type: str | None = None) -> str:
        return self.TRANSCRIPTION_PLACEHOLDER

    @staticmethod
    def _generate_stub_response(purpose: str, user_msg: str) -> str:
        if purpose == "briefing_chat":
            return json.dumps({
                "message": "Thanks! Who is the target audience for this project?",
                "extracted_data": {},
                "is_complete": False,
                "current_field": "target_audience",
            })

        if purpose == "style_extraction":
            return json.dumps({
                "colors": ["#1E293B", "#F8FAFC", "#3B82F6"],
                "typography": "Geometric sans-serif headings, humanist body text",
                "style": "Clean, minimal, generous whitespace",
                "mood": "Professional",
            })

        if purpose == "scope":
            return json.dumps({
                "objective": "Deliver a production-ready web platform that meets the briefing goals.",
                "deliverables": ["Responsive web application", "Admin dashboard", "Technical documentation"],
                "out_of_scope": ["Native mobile apps", "Content production"],
                "assumptions": ["Client provides brand assets", "Hosting account available"],
                "dependencies": ["Payment gateway credentials"],
                "risks": ["Late content delivery", "Third-party API changes"],
            })

        if purpose == "roadmap":
            return json.dumps({
                "phases": [
                    {"name": "Planning", "duration": "1 week", "deliverables": ["Scope sign-off"]},
                    {"name": "Design", "duration": "2 weeks", "deliverables": ["Wireframes", "UI kit"]},
                    {"name": "Development", "duration": "4 weeks", "deliverables": ["MVP"]},
                    {"name": "Testing", "duration": "1 week", "deliverables": ["Test report"]},
                    {"name": "Deploy", "duration": "1 week", "deliverables": ["Go-live"]},
                ],
                "milestones": [
                    {"name": "Design approved", "week": 3, "description": "UI signed off by client"},
                    {"name": "Go-live", "week": 9, "description": "Production release"},
                ],
            })

        if purpose == "ai_command":
            return json.dumps({
                "prompt_text": "Build the project described below following the scope and roadmap.",
                "json_command": {
                    "task": "build_project",
                    "steps": ["scaffold", "implement features", "write tests", "deploy"],
                },
            })

        if purpose == "diagram":
            return json.dumps({
                "name": "System Diagram",
                "description": "High-level view of the main components.",
                "nodes": [
                    {"id": "client", "label": "Web Client"},
                    {"id": "api", "label": "REST API"},
                    {"id": "db", "label": "Database"},
                ],
                "edges": [
                    {"from": "client", "to": "api", "label": "HTTPS"},
                    {"from": "api", "to": "db", "label": "SQL"},
                ],
            })

        if purpose == "wbs":
            return json.dumps({
                "phases": [
                    {
                        "id": "phase-1", "name": "Discovery", "estimated_hours": 16,
                        "items": [
                            {"id": "1.1", "title": "Stakeholder interviews", "estimated_hours": 8},
                            {"id": "1.2", "title": "Requirements review", "estimated_hours": 8},
                        ],
                    },
                    {
                        "id": "phase-2", "name": "Build", "estimated_hours": 48,
                        "items": [
                            {"id": "2.1", "title": "Backend API", "estimated_hours": 24},
                            {"id": "2.2", "title": "Frontend screens", "estimated_hours": 24},
                        ],
                    },
                    {
                        "id": "phase-3", "name": "Release", "estimated_hours": 16,
                        "items": [
                            {"id": "3.1", "title": "QA pass", "estimated_hours": 8},
                            {"id": "3.2", "title": "Production deploy", "estimated_hours": 8},
                        ],
                    },
                ],
                "total_estimated_hours": 80,
                "critical_path": ["1.2", "2.1", "3.2"],
            })

        if purpose == "stage_tasks":
            return json.dumps({
                "tasks": [
                    {"title": "Define stage goals", "description": "Agree on expected outcomes.", "weight": 1},
                    {"title": "Execute core work", "description": "Main body of the stage.", "weight": 3},
                    {"title": "Review with client", "description": "Walk the client through results.", "weight": 1},
                ],
            })

        if purpose.startswith("agent_"):
            return json.dumps({
                "result": {"summary": f"{purpose[6:].title()} analysis completed."},
                "confidence": 80,
                "recommendations": ["Confirm priorities with the client"],
                "warnings": ["Estimates assume a single development team"],
            })

        if purpose == "proposal":
            return json.dumps({
                "executive_summary": "A focused engagement to design, build and launch the platform.",
                "methodology": "Agile delivery in short iterations with client reviews.",
                "phases": [
                    {"name": "Discovery", "estimated_hours": 24, "deliverables": ["Scope document"]},
                    {"name": "Build", "estimated_hours": 120, "deliverables": ["Working product"]},
                    {"name": "Launch", "estimated_hours": 16, "deliverables": ["Go-live"]},
                ],
            })

        if purpose == "project_structure":
            return json.dumps({
                "file_tree": ["src/index.js", "README.md", "package.json"],
                "files": {"src/index.js": "console.log('hello');\n"},
                "package_json": {"name": "generated-project", "version": "0.1.0"},
                "config_files": {".gitignore": "node_modules/\n"},
                "readme": "# Generated Project\n",
            })

        # technical_document, document_* and anything free-form
        title = purpose.replace("_", " ").title() or "Response"
        return f"# {title}\n\nGenerated locally for development.\n\n{user_msg[:200]}"


# ── LLM Gateway (Main Interface) ─────────────────────────────────────────────

PROVIDER_CLASSES = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
    "local": LocalStubProvider,
}

# Env vars read when no ai_providers row names one
DEFAULT_KEY_ENV = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


class LLMGateway:
    """
    Central gateway for all LLM calls.

    The provider chain is rebuilt per call from active ai_providers rows so
    admin changes (reorder, deactivate) apply immediately. Rows whose API key
    env var is unset are skipped. With no usable rows the chain is the
    LLM_DEFAULT_PROVIDER / LLM_DEFAULT_MODEL pair from config, and the local
    stub if that provider has no key either.
    """

    def __init__(self, max_retries: int = 2, backoff_base: float = 1.0):
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    # ── Chain construction ────────────────────────────────────────────────

    def _build_chain(self) -> list[dict]:
        chain = []
        rows = (
            AIProvider.query.filter_by(is_active=True)
            .order_by(AIProvider.priority.asc(), AIProvider.id.asc())
            .all()
        )
        for row in rows:
            cls = PROVIDER_CLASSES.get(row.provider)
            if cls is None:
                logger.warning("Unknown provider type '%s' on ai_provider %s", row.provider, row.id)
                continue
            api_key = os.getenv(row.api_key_env_var) if row.api_key_env_var else None
            if row.provider != "local" and not api_key:
                logger.warning("Skipping ai_provider %s (%s): API key env var not set", row.id, row.name)
                continue
            base_url = os.getenv(row.base_url_env_var) if row.base_url_env_var else None
            chain.append({
                "row": row,
                "name": row.provider,
                "model": row.model,
                "provider": cls(api_key=api_key, base_url=base_url),
                "max_tokens": row.max_tokens,
                "temperature": (row.temperature or 0) / 100,
            })

        if chain:
            return chain

        name = current_app.config.get("LLM_DEFAULT_PROVIDER", "local")
        model = current_app.config.get("LLM_DEFAULT_MODEL", "local-stub")
        api_key = os.getenv(DEFAULT_KEY_ENV.get(name, ""), "")
        if name not in PROVIDER_CLASSES or (name != "local" and not api_key):
            logger.warning(
                "Provider '%s' not available (no API key?). Falling back to local stub.", name,
            )
            name, model, api_key = "local", "local-stub", ""
        return [{
            "row": None,
            "name": name,
            "model": model,
            "provider": PROVIDER_CLASSES[name](api_key=api_key),
            "max_tokens": 4096,
            "temperature": 0.7,
        }]

    def _wait(self, attempt: int):
        backoff = min(2 ** (attempt - 1), 4) * self.backoff_base
        if backoff > 0:
            threading.Event().wait(backoff)

    # ── Chat ──────────────────────────────────────────────────────────────

    def chat(self, messages: list, purpose: str = "", *, user_id: int | None = None, **kwargs) -> dict:
        """
        Send a chat completion through the provider chain.

        Returns:
            dict: {content, prompt_tokens, completion_tokens, model, provider, latency_ms}

        Raises:
            LLMUnavailableError: every provider failed every retry.
        """
        last_error = None
        for link in self._build_chain():
            params = {
                "max_tokens": link["max_tokens"],
                "temperature": link["temperature"],
                "purpose": purpose,
                **kwargs,
            }
            for attempt in range(1, self.max_retries + 1):
                start = time.time()
                try:
                    result = link["provider"].chat(messages, link["model"], **params)
                except Exception as e:
                    last_error = e
                    logger.warning(
                        "LLM call %s via %s attempt %d/%d failed: %s",
                        purpose, link["name"], attempt, self.max_retries, e,
                    )
                    if attempt < self.max_retries:
                        self._wait(attempt)
                    continue

                latency_ms = int((time.time() - start) * 1000)
                result["provider"] = link["name"]
                result["latency_ms"] = latency_ms
                self._record_usage(link, result, purpose, user_id, latency_ms)
                return result

            logger.info("Provider %s exhausted for %s; trying next", link["name"], purpose)

        self._log_failure(purpose, user_id, last_error)
        raise LLMUnavailableError(purpose, last_error)

    # ── Transcription ─────────────────────────────────────────────────────

    def transcribe(self, audio: bytes, filename: str, mime_type: str | None = None,
                   *, user_id: int | None = None) -> str:
        """Speech-to-text via the first provider in the chain that supports it."""
        chain = self._build_chain()
        # The stub placeholder is the last resort, never ahead of a real provider
        if not any(link["name"] == "local" for link in chain):
            chain.append({"row": None, "name": "local", "model": "local-stub",
                          "provider": LocalStubProvider(), "max_tokens": 0, "temperature": 0})
        for link in chain:
            try:
                text = link["provider"].transcribe(audio, filename, mime_type)
            except NotImplementedError:
                continue
            except Exception as e:
                logger.warning("Transcription via %s failed: %s", link["name"], e)
                continue
            self._record_usage(
                link, {"prompt_tokens": 0, "completion_tokens": 0, "model": link["model"]},
                "transcription", user_id, 0,
            )
            return text
        return LocalStubProvider.TRANSCRIPTION_PLACEHOLDER

    # ── Internal Logging ──────────────────────────────────────────────────

    @staticmethod
    def _record_usage(link, result, purpose, user_id, latency_ms):
        """Flush usage rows without committing; the calling service commits."""
        tokens = (result.get("prompt_tokens") or 0) + (result.get("completion_tokens") or 0)
        try:
            row = link["row"]
            if row is not None:
                row.total_tokens_used = (row.total_tokens_used or 0) + tokens
                row.last_used_at = datetime.now(timezone.utc)
            db.session.add(PlatformUsageLog(
                user_id=user_id,
                action="ai_call",
                resource=purpose or None,
                meta={
                    "provider": link["name"],
                    "model": result.get("model"),
                    "prompt_tokens": result.get("prompt_tokens") or 0,
                    "completion_tokens": result.get("completion_tokens") or 0,
                    "total_tokens": tokens,
                    "latency_ms": latency_ms,
                    "success": True,
                },
            ))
            db.session.flush()
        except Exception as e:
            logger.error("Failed to log AI usage: %s", e)

    @staticmethod
    def _log_failure(purpose, user_id, error):
        try:
            db.session.add(PlatformUsageLog(
                user_id=user_id,
                action="ai_call",
                resource=purpose or None,
                meta={"success": False, "error": str(error)[:500] if error else None},
            ))
            db.session.flush()
        except Exception as e:
            logger.error("Failed to log AI failure: %s", e)
