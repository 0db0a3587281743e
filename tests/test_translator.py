"""
tests/test_translator.py
=========================
TRANSLATE Stage Tests — Gujarati Translator

Test categories:
    1. OFFLINE UNIT TESTS
       - Chunk splitting (sentence breaks, hard cuts, overlap)
       - Mask placeholder protection and restoration
       - max_tokens sizing

    2. MOCK INTEGRATION TESTS — OpenAI mocked
       - Single-call translation preserves mask tokens
       - Long text is translated chunk by chunk, overlap kept
       - A failing chunk keeps its original text
       - Whole-call failure returns None

All tests are offline — no LLM or API calls.
"""

import math
import os
import sys
import unittest
from unittest.mock import MagicMock, patch

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.nlp.pii_redactor import EMAIL_MASK, PHONE_MASK, extract_mask_tokens
from src.nlp.translator import (
    CHUNK_SIZE,
    OVERLAP_SIZE,
    _TRANSLATION_PROMPT,
    _max_tokens_for,
    protect_masks,
    restore_masks,
    split_into_chunks,
    translate_to_gujarati,
)


# ===================================================================
# Helpers
# ===================================================================


def _chat_response(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


def _user_text(kwargs) -> str:
    """The text the translator sent, without the instruction prefix."""
    return kwargs["messages"][1]["content"][len(_TRANSLATION_PROMPT):]


def _client(transform):
    """Mock OpenAI client whose 'translation' applies ``transform``."""
    client = MagicMock()
    client.chat.completions.create.side_effect = (
        lambda **kwargs: _chat_response(transform(_user_text(kwargs)))
    )
    return client


def _is_ordered_subsequence(needles: list[str], haystack: list[str]) -> bool:
    remaining = iter(haystack)
    return all(any(item == needle for item in remaining) for needle in needles)


def _long_text() -> str:
    # 126,000 characters, a sentence break every 21, no whitespace at
    # chunk edges
    return "Abc def ghi jkl mnop." * 6000


# ===================================================================
# 1. CHUNKING
# ===================================================================


class TestSplitIntoChunks(unittest.TestCase):

    def test_short_text_single_chunk(self):
        self.assertEqual(split_into_chunks("Hello.", 10, 2), ["Hello."])

    def test_hard_cut_without_sentence_breaks(self):
        self.assertEqual(
            split_into_chunks("abcdefghij", 4, 1),
            ["abcd", "defg", "ghij"],
        )

    def test_prefers_sentence_break_past_midpoint(self):
        chunks = split_into_chunks("Hello there. Bye now friend", 16, 2)
        self.assertEqual(chunks, ["Hello there.", "e. Bye now frien", "end"])

    def test_break_before_midpoint_ignored(self):
        """A terminator in the first half of the window does not shorten the chunk."""
        chunks = split_into_chunks("Hi. abcdefghijklmnop", 10, 2)
        self.assertEqual(chunks[0], "Hi. abcdef")

    def test_newline_is_a_break(self):
        chunks = split_into_chunks("abcdefg\nhijklmnop", 10, 2)
        self.assertEqual(chunks[0], "abcdefg\n")

    def test_chunks_overlap_and_cover_text(self):
        text = _long_text()
        chunks = split_into_chunks(text)

        self.assertGreater(len(chunks), 2)
        for chunk in chunks:
            self.assertLessEqual(len(chunk), CHUNK_SIZE)
        for prev, nxt in zip(chunks, chunks[1:]):
            self.assertTrue(nxt.startswith(prev[-OVERLAP_SIZE:]))
        self.assertTrue(text.startswith(chunks[0]))
        self.assertTrue(text.endswith(chunks[-1]))

    def test_terminates_when_last_chunk_reaches_end(self):
        chunks = split_into_chunks("x" * 25, 10, 2)
        self.assertEqual(chunks[-1], "x" * 9)
        self.assertEqual(len(chunks), 3)

    def test_invalid_overlap_rejected(self):
        with self.assertRaises(ValueError):
            split_into_chunks("abc", 10, 5)


# ===================================================================
# 2. MASK PROTECTION
# ===================================================================


class TestMaskProtection(unittest.TestCase):

    def test_protect_replaces_every_mask(self):
        protected, store = protect_masks("Call ********** or *****@*****.")
        self.assertEqual(protected, "Call __MASK_0000__ or __MASK_0001__.")
        self.assertEqual(store, {"__MASK_0000__": "**********", "__MASK_0001__": "*****@*****"})

    def test_restore_round_trip(self):
        text = "My name is *****. ID ************."
        protected, store = protect_masks(text)
        self.assertEqual(restore_masks(protected, store), text)

    def test_dropped_placeholder_logged(self):
        _, store = protect_masks("Name *****")
        with self.assertLogs("legalintake.nlp.translator", level="WARNING"):
            restore_masks("Naam", store)


class TestMaxTokens(unittest.TestCase):

    def test_floor(self):
        self.assertEqual(_max_tokens_for("a" * 100), 2000)

    def test_scales_with_length(self):
        self.assertEqual(_max_tokens_for("a" * 40_000), 10_500)

    def test_ceiling(self):
        self.assertEqual(_max_tokens_for("a" * 100_000), 16_000)


# ===================================================================
# 3. TRANSLATION (OpenAI mocked)
# ===================================================================


class TestTranslateToGujarati(unittest.TestCase):

    def test_blank_input_returned_without_call(self):
        client = MagicMock()
        self.assertEqual(translate_to_gujarati("  ", client=client), "  ")
        client.chat.completions.create.assert_not_called()

    def test_mask_tokens_survive_translation(self):
        client = _client(str.upper)
        result = translate_to_gujarati("call ********** about *****@***** now", client=client)
        self.assertEqual(result, "CALL ********** ABOUT *****@***** NOW")

    def test_model_never_sees_asterisks(self):
        client = _client(lambda text: text)
        translate_to_gujarati("name is *****", client=client)
        sent = _user_text(client.chat.completions.create.call_args.kwargs)
        self.assertNotIn("*", sent)

    def test_request_parameters(self):
        client = _client(lambda text: text)
        translate_to_gujarati("Hello.", client=client)
        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["temperature"], 0.3)
        self.assertEqual(kwargs["max_tokens"], 2000)

    def test_long_text_translated_per_chunk(self):
        text = _long_text()
        chunks = split_into_chunks(text)
        client = _client(lambda t: t)

        result = translate_to_gujarati(text, client=client)

        self.assertEqual(client.chat.completions.create.call_count, len(chunks))
        # Overlap is concatenated as-is
        self.assertEqual(result, "".join(chunks))
        self.assertGreater(len(result), len(text))

    def test_long_text_keeps_mask_tokens_in_order(self):
        # No sentence breaks, so chunks are cut hard at CHUNK_SIZE. The
        # first phone mask sits across the first cut.
        straddle_at = CHUNK_SIZE - 5
        text = (
            "x" * 20_000 + PHONE_MASK
            + "x" * (straddle_at - 20_000 - len(PHONE_MASK)) + PHONE_MASK
            + "x" * 30_000 + EMAIL_MASK
            + "x" * 30_000 + PHONE_MASK + "x" * 100
        )
        self.assertEqual(text.index(PHONE_MASK, 20_001), straddle_at)

        client = _client(str.upper)
        result = translate_to_gujarati(text, client=client)

        expected_calls = math.ceil((len(text) - OVERLAP_SIZE) / (CHUNK_SIZE - OVERLAP_SIZE))
        self.assertEqual(client.chat.completions.create.call_count, expected_calls)
        self.assertTrue(
            _is_ordered_subsequence(extract_mask_tokens(text), extract_mask_tokens(result))
        )

    def test_failing_chunk_keeps_original_text(self):
        text = _long_text()
        chunks = split_into_chunks(text)
        calls = {"n": 0}

        def _create(**kwargs):
            calls["n"] += 1
            if calls["n"] == 2:
                raise ValueError("bad request")
            return _chat_response(_user_text(kwargs).upper())

        client = MagicMock()
        client.chat.completions.create.side_effect = _create

        result = translate_to_gujarati(text, client=client)

        expected = "".join(
            chunk if i == 1 else chunk.upper() for i, chunk in enumerate(chunks)
        )
        self.assertEqual(result, expected)

    def test_empty_model_answer_keeps_original(self):
        client = MagicMock()
        client.chat.completions.create.return_value = _chat_response("")
        self.assertEqual(translate_to_gujarati("Hello.", client=client), "Hello.")

    @patch("src.nlp.translator.get_openai_client")
    def test_missing_client_returns_none(self, mock_get_client):
        mock_get_client.side_effect = RuntimeError("OPENAI_API_KEY environment variable is not set.")
        self.assertIsNone(translate_to_gujarati("Hello."))


if __name__ == "__main__":
    unittest.main()
