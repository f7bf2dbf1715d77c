"""Heuristic token counting for chat log records."""
import math
import re
from typing import Optional

# Hiragana, katakana and CJK unified ideographs
WIDE_SCRIPT_PATTERN = re.compile(r"[\u3040-\u309f\u30a0-\u30ff\u4e00-\u9faf]")


def estimate_tokens(text: Optional[str]) -> int:
    """
    Estimate how many tokens a language model will charge for `text`.

    Wide-script characters count as two tokens each; everything else is
    counted at four characters per token.

    Args:
        text: Text to measure (None and "" count as zero)

    Returns:
        Estimated token count, rounded up
    """
    if not text:
        return 0
    wide_chars = len(WIDE_SCRIPT_PATTERN.findall(text))
    other_chars = len(text) - wide_chars
    return math.ceil(wide_chars * 2 + other_chars / 4)
