from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

import replicate
import yaml

from libs.core.exceptions import GeneratorUnavailableError
from libs.core.models import ChatMessage, ContentSuggestion, Resource
from libs.core.settings import DEFAULT_PROMPTS_PATH, Settings, get_settings
from libs.rag.context import parse_numbered_notes, resource_brief, resource_context
from .llm_client import LLMClient

METADATA_TEXT_LIMIT = 4000
MAX_SUGGESTED_TAGS = 8
EMPTY_REPLY = "I'm sorry, I couldn't generate a response."


class LLMClientError(Exception):
    """Raised when interaction with LLM fails."""


def _optional_text(value: Any) -> str | None:
    return str(value) if value else None


class ReplicateLLMClient(LLMClient):
    """LLM client powered by Replicate API."""

    def __init__(
        self,
        settings: Settings | None = None,
        prompts_path: str | Path | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(__name__)

        # Fall back to defaults if a partial Settings stand-in is used in tests
        self._token: str = getattr(self.settings, "replicate_api_token", "") or ""
        self.chat_model: str = getattr(self.settings, "chat_model", "openai/gpt-4o-mini")
        self.notes_model: str = getattr(self.settings, "notes_model", self.chat_model)
        self.metadata_model: str = getattr(self.settings, "metadata_model", self.chat_model)
        self._log_payloads: bool = bool(getattr(self.settings, "llm_log_payloads", False))
        self._max_completion_tokens: int = int(
            getattr(self.settings, "llm_max_completion_tokens", 1024)
        )
        self._client = replicate.Client(api_token=self._token) if self._token else None

        self.prompts_path = Path(
            prompts_path
            if prompts_path is not None
            else getattr(self.settings, "prompts_path", DEFAULT_PROMPTS_PATH)
        )
        try:
            with self.prompts_path.open("r", encoding="utf-8") as fh:
                self.prompts: Dict[str, Dict[str, str]] = yaml.safe_load(fh) or {}
            self.logger.debug("Prompts loaded from: %s", str(self.prompts_path))
        except FileNotFoundError as exc:
            raise LLMClientError(
                f"Prompts file not found: {self.prompts_path}"
            ) from exc
        except yaml.YAMLError as exc:
            raise LLMClientError("Failed to parse prompts file") from exc

    def is_configured(self) -> bool:
        return self._client is not None

    def _prompt(self, section: str, key: str) -> str:
        try:
            return self.prompts[section][key]
        except KeyError as exc:
            raise LLMClientError(
                f"Prompt '{section}.{key}' not found in {self.prompts_path}"
            ) from exc

    def _clean_json_text(self, text: str) -> str:
        """Strip Markdown code fences and surrounding chatter around a JSON object."""
        s = text.strip()
        if s.startswith("```"):
            lines = s.splitlines()
            closing = next(
                (i for i, line in enumerate(lines[1:], start=1) if line.strip().startswith("```")),
                None,
            )
            if closing is not None:
                s = "\n".join(lines[1:closing]).strip()
        start, end = s.find("{"), s.rfind("}")
        if start != -1 and end > start:
            return s[start : end + 1]
        return s

    def _parse_json(self, text: str) -> Any:
        s = text.strip()
        if not s:
            raise LLMClientError("Empty response from Replicate when JSON was expected")
        try:
            return json.loads(s)
        except ValueError:
            cleaned = self._clean_json_text(s)
            try:
                return json.loads(cleaned)
            except ValueError as exc:
                preview = (cleaned[:200] + "…") if len(cleaned) > 200 else cleaned
                raise LLMClientError(
                    f"Failed to parse JSON from Replicate output. Preview: {preview}"
                ) from exc

    @staticmethod
    def _output_text(out: Any) -> str:
        if out is None:
            return ""
        if isinstance(out, str):
            return out
        if isinstance(out, dict):
            text = out.get("text")
            return text if isinstance(text, str) else json.dumps(out, ensure_ascii=False)
        # Language models on Replicate stream an iterator of string chunks
        return "".join(str(chunk) for chunk in out)

    def _call(
        self, model: str, messages: List[Dict[str, str]], temperature: float
    ) -> str:
        if self._client is None:
            raise GeneratorUnavailableError("REPLICATE_API_TOKEN is not set")

        input_payload: Dict[str, Any] = {
            "messages": messages,
            "temperature": temperature,
            "max_completion_tokens": self._max_completion_tokens,
        }
        level = logging.INFO if self._log_payloads else logging.DEBUG
        self.logger.log(
            level,
            "Replicate request | model=%s | input=%s",
            model,
            json.dumps(input_payload, ensure_ascii=False, default=str),
        )
        try:
            out = self._client.run(model, input=input_payload)
            text = self._output_text(out)
        except Exception as exc:
            self.logger.exception("Replicate request failed: %s", exc)
            raise LLMClientError(f"Replicate request failed: {exc}") from exc
        self.logger.log(level, "Replicate response | model=%s | text=%s", model, text)
        return text

    # ------------------------------------------------------------------
    def answer_with_resources(
        self,
        query: str,
        history: Sequence[ChatMessage],
        resources: Sequence[Resource],
    ) -> str:
        user_prompt = self._prompt("answer", "user").format(
            query=query, context=resource_context(resources)
        )
        messages = [{"role": "system", "content": self._prompt("answer", "system")}]
        messages.extend({"role": m.role, "content": m.content} for m in history)
        messages.append({"role": "user", "content": user_prompt})
        reply = self._call(self.chat_model, messages, temperature=0.3)
        return reply.strip() or EMPTY_REPLY

    def write_resource_notes(self, query: str, resources: Sequence[Resource]) -> List[str]:
        if not resources:
            return []
        if not self.is_configured():
            return ["" for _ in resources]
        user_prompt = self._prompt("notes", "user").format(
            query=query, brief=resource_brief(resources)
        )
        text = self._call(
            self.notes_model,
            [
                {"role": "system", "content": self._prompt("notes", "system")},
                {"role": "user", "content": user_prompt},
            ],
            temperature=0.4,
        )
        return parse_numbered_notes(text, len(resources))

    def suggest_metadata(self, title: str, text: str) -> ContentSuggestion:
        if not self.is_configured() or not text.strip():
            return ContentSuggestion()
        user_prompt = self._prompt("metadata", "user").format(
            title=title, text=text[:METADATA_TEXT_LIMIT]
        )
        content = self._call(
            self.metadata_model,
            [
                {"role": "system", "content": self._prompt("metadata", "system")},
                {"role": "user", "content": user_prompt},
            ],
            temperature=0.2,
        )
        try:
            data = self._parse_json(content)
        except LLMClientError:
            self.logger.warning("Metadata suggestion was not valid JSON; ignoring it")
            return ContentSuggestion()
        if not isinstance(data, dict):
            return ContentSuggestion()
        tags = data.get("tags")
        return ContentSuggestion(
            tags=[str(t) for t in tags if t][:MAX_SUGGESTED_TAGS] if isinstance(tags, list) else [],
            age_range=_optional_text(data.get("ageRange")),
            type=_optional_text(data.get("type")),
            summary=_optional_text(data.get("summary")),
        )
