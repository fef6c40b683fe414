import unittest
from pathlib import Path
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from chunkscribe.text_splitter import HierarchicalTextSplitter, split_text
from chunkscribe.tokens import count_tokens


def word_count(text: str) -> int:
    return len(text.split())


def _words(text: str) -> list[str]:
    return [word.strip(".") for word in text.split() if word.strip(".")]


class TestSplitWithGpt2Tokens(unittest.TestCase):
    def test_paragraphs_and_sentences(self) -> None:
        text = (
            "Short.\n\nThis is a simple paragraph.\n\nAnother paragraph with a longer sentence. "
            "This one has more tokens than the previous one. And. A few. Very. Short. Sentences."
        )

        parts = split_text(text, 12)

        self.assertEqual(
            parts,
            [
                "Short.\n\nThis is a simple paragraph.",
                "Another paragraph with a longer sentence.",
                "This one has more tokens than the previous one. And.",
                "A few. Very. Short. Sentences.",
            ],
        )
        for part in parts:
            self.assertLessEqual(count_tokens(part), 12)
        self.assertEqual(_words(" ".join(parts)), _words(text))

    def test_long_sentences_fall_back_to_words(self) -> None:
        text = (
            "This is a simple paragraph.\n\nAnother paragraph with a longer sentence. "
            "This one has more tokens than the previous one."
        )

        parts = split_text(text, 3)

        self.assertEqual(
            parts,
            [
                "This is",
                "a simple",
                "paragraph.",
                "Another paragraph",
                "with a",
                "longer",
                "sentence.",
                "This one",
                "has more",
                "tokens",
                "than the",
                "previous",
                "one.",
            ],
        )
        for part in parts:
            self.assertLessEqual(count_tokens(part), 3)


class TestSplitWithWordCounter(unittest.TestCase):
    def setUp(self) -> None:
        self.splitter = HierarchicalTextSplitter(token_counter=word_count)

    def test_empty_and_blank_text_give_no_parts(self) -> None:
        self.assertEqual(self.splitter.split("", 5), [])
        self.assertEqual(self.splitter.split("  \n\n \n\n\t", 5), [])

    def test_small_text_is_a_single_stripped_part(self) -> None:
        self.assertEqual(self.splitter.split("  one two.\n\nthree.  ", 10), ["one two.\n\nthree."])

    def test_text_before_long_sentence_is_kept(self) -> None:
        parts = self.splitter.split("One two. Three four five six seven eight.", 4)

        self.assertEqual(parts, ["One two.", "Three four five", "six seven eight."])

    def test_oversized_word_is_emitted_alone(self) -> None:
        def counter(text: str) -> int:
            return sum(3 if word.startswith("supercalifragilistic") else 1 for word in text.split())

        splitter = HierarchicalTextSplitter(token_counter=counter)

        self.assertEqual(splitter.split("a supercalifragilistic b", 2), ["a", "supercalifragilistic", "b."])

    def test_parts_respect_budget_and_keep_word_order(self) -> None:
        text = (
            "The quick brown fox jumps over the lazy dog. It was not amused.\n\n"
            "A second paragraph follows here. It has three sentences. The last one is rather long "
            "and keeps going for a while without any punctuation at all until it ends.\n\n"
            "Tiny."
        )
        for budget in (2, 3, 5, 8, 13, 40):
            with self.subTest(budget=budget):
                parts = self.splitter.split(text, budget)
                self.assertTrue(parts)
                for part in parts:
                    self.assertTrue(part.strip())
                    self.assertEqual(part, part.strip())
                    self.assertLessEqual(word_count(part), budget)
                self.assertEqual(_words(" ".join(parts)), _words(text))

    def test_budget_counts_the_closing_period(self) -> None:
        def counter(text: str) -> int:
            return len(text.split()) + text.count(".")

        splitter = HierarchicalTextSplitter(token_counter=counter)
        parts = splitter.split("a b c d e. f g", 5)

        self.assertEqual(parts, ["a b c d", "e.", "f g."])
        for part in parts:
            self.assertLessEqual(counter(part), 5)

    def test_paragraph_boundary_is_kept_when_sentences_merge(self) -> None:
        parts = self.splitter.split("a b.\n\nc d e. f g h i", 4)

        self.assertEqual(parts, ["a b.", "c d e.", "f g h i."])

    def test_first_sentence_of_long_paragraph_joins_with_separator(self) -> None:
        parts = self.splitter.split("a b.\n\nc. d e f g h", 4)

        self.assertEqual(parts, ["a b.\n\nc.", "d e f", "g h."])
        self.assertEqual(" ".join(parts).split(), "a b. c. d e f g h.".split())

    def test_budget_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            self.splitter.split("anything", 0)


if __name__ == "__main__":
    unittest.main()
