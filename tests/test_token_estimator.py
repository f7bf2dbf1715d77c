"""Unit tests for the token estimator."""
import math

import pytest
from services.token_estimator import estimate_tokens


class TestEstimateTokens:
    """Test suite for estimate_tokens."""

    @pytest.mark.parametrize("text", [None, ""])
    def test_empty_input_is_zero(self, text):
        assert estimate_tokens(text) == 0

    @pytest.mark.parametrize("length", [1, 3, 4, 5, 8, 17, 400])
    def test_ascii_is_a_quarter_token_per_char_rounded_up(self, length):
        text = "a" * length
        assert estimate_tokens(text) == math.ceil(length / 4)

    def test_ascii_sentence(self):
        # 31 characters
        assert estimate_tokens("What is the capital of France?!") == 8

    def test_japanese_counts_two_per_char(self):
        # 5 hiragana + 2 katakana + 2 kanji
        assert estimate_tokens("こんにちはカナ日本") == 18

    def test_mixed_text(self):
        # 2 kanji (4 tokens) + 6 ascii chars (1.5 tokens) -> ceil(5.5)
        assert estimate_tokens("日本 hello") == 6

    def test_characters_outside_wide_ranges_are_ascii_weighted(self):
        # Hangul is outside the wide-script ranges
        assert estimate_tokens("한국어") == 1
