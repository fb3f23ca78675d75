"""Target languages for generated documentation."""

from __future__ import annotations

from enum import Enum


class TargetLanguage(str, Enum):
    """Language the model is asked to write in."""
    CHINESE = "zh"
    ENGLISH = "en"
    JAPANESE = "ja"
    KOREAN = "ko"
    GERMAN = "de"
    FRENCH = "fr"
    RUSSIAN = "ru"

    @classmethod
    def parse(cls, value: str) -> "TargetLanguage":
        """Accept a language code or an English language name."""
        name = value.strip().lower()
        for lang in cls:
            if name in (lang.value, lang.name.lower()):
                return lang
        raise ValueError(f"Unknown target language: {value}")

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    def prompt_instruction(self) -> str:
        """Directive appended to every agent's system prompt."""
        return _INSTRUCTIONS[self]


_DISPLAY_NAMES: dict[TargetLanguage, str] = {
    TargetLanguage.CHINESE: "中文",
    TargetLanguage.ENGLISH: "English",
    TargetLanguage.JAPANESE: "日本語",
    TargetLanguage.KOREAN: "한국어",
    TargetLanguage.GERMAN: "Deutsch",
    TargetLanguage.FRENCH: "Français",
    TargetLanguage.RUSSIAN: "Русский",
}

_INSTRUCTIONS: dict[TargetLanguage, str] = {
    TargetLanguage.CHINESE: "请使用中文编写文档，确保语言表达准确、专业、易于理解。",
    TargetLanguage.ENGLISH: (
        "Please write the documentation in English, ensuring accurate, "
        "professional, and easy-to-understand language."
    ),
    TargetLanguage.JAPANESE: (
        "日本語でドキュメントを作成してください。正確で専門的で理解しやすい言語表現を心がけてください。"
    ),
    TargetLanguage.KOREAN: (
        "한국어로 문서를 작성해 주세요. 정확하고 전문적이며 이해하기 쉬운 언어 표현을 사용해 주세요."
    ),
    TargetLanguage.GERMAN: (
        "Bitte verfassen Sie die Dokumentation auf Deutsch, in präziser, "
        "professioneller und leicht verständlicher Sprache."
    ),
    TargetLanguage.FRENCH: (
        "Veuillez rédiger la documentation en français, dans un langage "
        "précis, professionnel et facile à comprendre."
    ),
    TargetLanguage.RUSSIAN: (
        "Пожалуйста, напишите документацию на русском языке, точно, "
        "профессионально и понятно."
    ),
}
