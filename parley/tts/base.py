from __future__ import annotations
from abc import ABC, abstractmethod
from parley.contracts import SpeechRequest

class SpeechSynthesizer(ABC):
    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def synthesize(self, req: SpeechRequest) -> bytes: ...
