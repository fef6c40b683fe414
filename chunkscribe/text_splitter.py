"""
Token-bounded text splitting.

Text is cut on paragraph boundaries first, then on sentence boundaries for
paragraphs that do not fit, and finally word by word for single sentences that
still exceed the budget. Every returned part is stripped and non-empty.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from .tokens import TokenCounter

logger = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"
SENTENCE_TERMINATOR = "."


def _append_part(parts: List[str], part: str) -> None:
    trimmed = part.strip()
    if trimmed:
        parts.append(trimmed)


def _join(current: str, separator: str, piece: str) -> str:
    if not current:
        return piece
    return current + separator + piece


def _append_sentence(part: str, sentence: str) -> str:
    if not sentence.endswith(SENTENCE_TERMINATOR):
        sentence += SENTENCE_TERMINATOR
    return part + sentence


def split_paragraphs(text: str) -> List[str]:
    return text.split(PARAGRAPH_SEPARATOR)


def split_sentences(paragraph: str) -> List[str]:
    return paragraph.removesuffix(SENTENCE_TERMINATOR).split(SENTENCE_TERMINATOR)


class HierarchicalTextSplitter:
    """Split text into ordered parts that each fit a token budget.

    The only part allowed to exceed the budget is a single word whose own
    token count is already larger than the budget; it is emitted alone.
    """

    def __init__(self, token_counter: Optional[Callable[[str], int]] = None):
        self.count_tokens = token_counter or TokenCounter()

    def split(self, text: str, max_tokens: int) -> List[str]:
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be positive, got {max_tokens}")

        parts: List[str] = []
        current_part = ""

        for raw_paragraph in split_paragraphs(text or ""):
            paragraph = raw_paragraph.strip()
            if not paragraph:
                continue

            if self.count_tokens(paragraph) <= max_tokens:
                candidate = _join(current_part, PARAGRAPH_SEPARATOR, paragraph)
                if self.count_tokens(candidate) <= max_tokens:
                    current_part = candidate
                else:
                    _append_part(parts, current_part)
                    current_part = paragraph
                continue

            separator = PARAGRAPH_SEPARATOR
            for raw_sentence in split_sentences(paragraph):
                sentence = raw_sentence.strip().removesuffix(SENTENCE_TERMINATOR)
                if not sentence.strip():
                    continue

                # Budget is checked against the sentence as emitted, period included.
                if self.count_tokens(_append_sentence("", sentence)) > max_tokens:
                    _append_part(parts, current_part)
                    current_part = ""
                    self._split_long_sentence(parts, sentence, max_tokens)
                    separator = " "
                    continue

                candidate = _append_sentence(_join(current_part, separator, ""), sentence)
                if self.count_tokens(candidate) <= max_tokens:
                    current_part = candidate
                else:
                    _append_part(parts, current_part)
                    current_part = _append_sentence("", sentence)
                separator = " "

        _append_part(parts, current_part)
        logger.debug("Split %s chars into %s parts (max_tokens=%s)", len(text or ""), len(parts), max_tokens)
        return parts

    def _split_long_sentence(self, parts: List[str], sentence: str, max_tokens: int) -> None:
        # One token is reserved for the closing period.
        word_budget = max_tokens - 1
        words = sentence.split()
        current_sentence = ""

        for index, word in enumerate(words):
            if index == len(words) - 1 and not word.endswith(SENTENCE_TERMINATOR):
                word += SENTENCE_TERMINATOR
            candidate = current_sentence + " " + word
            if self.count_tokens(candidate) <= word_budget:
                current_sentence = candidate
            else:
                _append_part(parts, current_sentence)
                current_sentence = word

        _append_part(parts, current_sentence)


_default_splitter: Optional[HierarchicalTextSplitter] = None


def split_text(text: str, max_tokens: int) -> List[str]:
    """Split ``text`` with the shared default splitter (GPT-2 token counts)."""
    global _default_splitter
    if _default_splitter is None:
        _default_splitter = HierarchicalTextSplitter()
    return _default_splitter.split(text, max_tokens)
