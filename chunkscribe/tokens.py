"""
Token counting shared by every text-splitting decision.

Budgets handed to the splitter are expressed in the same subword scheme used
here, so a part that fits its budget also fits the completion call.
"""
from __future__ import annotations

from functools import lru_cache

import tiktoken

DEFAULT_ENCODING = "gpt2"


@lru_cache(maxsize=8)
def _get_encoding(encoding_name: str) -> "tiktoken.Encoding":
    return tiktoken.get_encoding(encoding_name)


class TokenCounter:
    """Maps text to its token count under a fixed BPE encoding."""

    def __init__(self, encoding_name: str = DEFAULT_ENCODING):
        self.encoding_name = encoding_name

    def count(self, text: str) -> int:
        if not text:
            return 0
        # Special-token markers in user text are counted as plain text.
        return len(_get_encoding(self.encoding_name).encode(text, disallowed_special=()))

    def __call__(self, text: str) -> int:
        return self.count(text)


_default_counter = TokenCounter()


def count_tokens(text: str) -> int:
    return _default_counter.count(text)
