from __future__ import annotations
import os
from typing import Any, Optional
from .base import Translator
from .argos import ArgosTranslator
from .openai_chat import OpenAIChatTranslator
from .stub import StubTranslator

def get_translator(
    provider: str | None = None,
    *,
    client: Optional[Any] = None,
    model: str = "gpt-4o-mini",
) -> Translator:
    provider = (provider or os.getenv("PARLEY_TRANSLATOR", "openai")).lower().strip()

    if provider == "openai":
        if client is None:
            raise ValueError("openai translator needs an OpenAI client")
        return OpenAIChatTranslator(client, model=model)
    if provider == "argos":
        return ArgosTranslator()
    if provider == "stub":
        return StubTranslator()

    raise ValueError(f"Unknown translator provider: {provider}")
