"""Character-based token estimation.

Providers that do not report usage, and the prompt compressor, need a
token count without a tokenizer. CJK text runs at roughly 1.5 characters
per token, everything else at about 4.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .types import TokenUsage


@dataclass(frozen=True)
class TokenCalculationRules:
    english_char_per_token: float = 4.0
    chinese_char_per_token: float = 1.5
    base_token_overhead: int = 50


def _is_cjk(ch: str) -> bool:
    code = ord(ch)
    return (
        0x4E00 <= code <= 0x9FFF      # CJK unified ideographs
        or 0x3400 <= code <= 0x4DBF   # extension A
        or 0x3040 <= code <= 0x30FF   # hiragana / katakana
        or 0xAC00 <= code <= 0xD7AF   # hangul syllables
    )


class TokenEstimator:
    """Estimate token counts from text length."""

    def __init__(self, rules: TokenCalculationRules | None = None) -> None:
        self.rules = rules or TokenCalculationRules()

    def estimate_tokens(self, text: str) -> int:
        if not text:
            return 0
        cjk = sum(1 for ch in text if _is_cjk(ch))
        other = len(text) - cjk
        tokens = math.ceil(cjk / self.rules.chinese_char_per_token)
        tokens += math.ceil(other / self.rules.english_char_per_token)
        return tokens + self.rules.base_token_overhead


_ESTIMATOR = TokenEstimator()


def estimate_tokens(text: str) -> int:
    return _ESTIMATOR.estimate_tokens(text)


def estimate_token_usage(input_text: str, output_text: str) -> TokenUsage:
    return TokenUsage(
        input_tokens=_ESTIMATOR.estimate_tokens(input_text),
        output_tokens=_ESTIMATOR.estimate_tokens(output_text),
    )
