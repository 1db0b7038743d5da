from __future__ import annotations
import os
from .base import SessionFactory
from .argos import ArgosSessionFactory
from .stub import StubSessionFactory

def get_session_factory(provider: str | None = None) -> SessionFactory:
    provider = (provider or os.getenv("SPEAKINGAR_TRANSLATOR", "argos")).lower().strip()

    if provider == "argos":
        return ArgosSessionFactory()
    if provider == "stub":
        return StubSessionFactory()

    raise ValueError(f"Unknown translator provider: {provider}")
