from __future__ import annotations
from typing import Any

from .base import SessionFactory, TranslationSession
from speakingar.contracts import LanguagePair, TranslationRequest, TranslationResult


class ArgosSession(TranslationSession):
    def __init__(self, pair: LanguagePair, translation: Any) -> None:
        self._pair = pair
        self._translation = translation

    @property
    def pair(self) -> LanguagePair:
        return self._pair

    def translate(self, req: TranslationRequest) -> TranslationResult:
        out = self._translation.translate(req.text)
        return TranslationResult(source_text=req.text, translated_text=str(out), provider="argos")


class ArgosSessionFactory(SessionFactory):
    def __init__(self, auto_install: bool = True):
        self.auto_install = auto_install

    @property
    def name(self) -> str:
        return "argos"

    def _ensure_package(self, pair: LanguagePair) -> None:
        import argostranslate.package
        import argostranslate.translate

        installed = argostranslate.translate.get_installed_languages()
        have_from = any(l.code == pair.source for l in installed)
        have_to = any(l.code == pair.target for l in installed)
        if have_from and have_to:
            return

        if not self.auto_install:
            raise RuntimeError(f"Argos model {pair.source}->{pair.target} not installed and auto_install=False")

        argostranslate.package.update_package_index()
        available = argostranslate.package.get_available_packages()

        pkg = None
        for p in available:
            if p.from_code == pair.source and p.to_code == pair.target:
                pkg = p
                break
        if pkg is None:
            raise RuntimeError(f"No Argos package found for {pair.source}->{pair.target}")

        path = pkg.download()
        argostranslate.package.install_from_path(path)

    def create(self, pair: LanguagePair) -> ArgosSession:
        self._ensure_package(pair)
        import argostranslate.translate

        translation = argostranslate.translate.get_translation_from_codes(pair.source, pair.target)
        if translation is None:
            raise RuntimeError(f"Argos has no translation for {pair.source}->{pair.target}")
        return ArgosSession(pair, translation)
