from __future__ import annotations

import logging
from typing import Any

from .base import Translator
from parley.contracts import TranslationRequest, TranslationResult
from parley.nlp.prompts import translation_system_prompt

logger = logging.getLogger(__name__)


class OpenAIChatTranslator(Translator):
    """Chat-completions translator; the system prompt pins the output language."""

    def __init__(self, client: Any, model: str = "gpt-4o-mini", temperature: float = 0.0) -> None:
        self.client = client
        self.model = model
        self.temperature = temperature

    @property
    def name(self) -> str:
        return "openai"

    def translate(self, req: TranslationRequest) -> TranslationResult:
        text = (req.text or "").strip()
        if not text:
            return TranslationResult(source_text=req.text, translated_text="", provider=self.name)

        system = translation_system_prompt(
            req.target_lang,
            source=req.source_lang,
            selection_context=req.selection_context,
        )
        chat = self.client.chat.completions.create(
            model=self.model,
            temperature=self.temperature,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": text},
            ],
        )
        choices = getattr(chat, "choices", None) or []
        content = ""
        if choices:
            message = getattr(choices[0], "message", None)
            content = (getattr(message, "content", None) or "").strip()
        # Models sometimes answer with literal quotes for "empty string".
        if content in ('""', "''"):
            content = ""
        logger.info(
            "translate_done",
            extra={"target": req.target_lang, "source": req.source_lang, "chars_out": len(content)},
        )
        return TranslationResult(source_text=req.text, translated_text=content, provider=self.name)
