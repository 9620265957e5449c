"""Unit tests for text normalization helpers."""

from newsgate.utils.text import (
    compact,
    count_sentence_units,
    jaccard,
    normalize_title,
    normalize_url,
    significant_tokens,
    split_paragraphs,
    split_sentences,
    tokenize,
)


class TestTokenize:
    """Tests for tokenize and token helpers."""

    def test_lowercases_and_strips_punctuation(self):
        """Tokens are lowercase without punctuation."""
        assert tokenize("EU finalizes AI-Act, today!") == ["eu", "finalizes", "ai", "act", "today"]

    def test_drops_single_character_tokens(self):
        """Tokens shorter than two characters are dropped."""
        assert tokenize("a b cd e") == ["cd"]

    def test_keeps_hangul(self):
        """Korean words survive tokenization."""
        assert tokenize("인공지능 규제, 발표") == ["인공지능", "규제", "발표"]

    def test_significant_tokens_drop_stopwords_and_duplicates(self):
        """Stopwords are removed and order is preserved."""
        assert significant_tokens("The AI news on AI regulation") == ["ai", "regulation"]

    def test_significant_tokens_drop_auxiliaries(self):
        """Auxiliary and linking words carry no topic."""
        text = "They have said it will not rise after the vote, but prices had been falling"
        assert significant_tokens(text) == ["said", "rise", "vote", "prices", "falling"]

    def test_normalize_title(self):
        """Titles normalize to space-joined tokens."""
        assert normalize_title("  EU Finalizes:  AI Act! ") == "eu finalizes ai act"


class TestJaccard:
    """Tests for jaccard."""

    def test_identical_strings(self):
        """Identical token sets score 1."""
        assert jaccard("ai act timeline", "timeline act ai") == 1.0

    def test_disjoint_strings(self):
        """Disjoint token sets score 0."""
        assert jaccard("ai act", "chip exports") == 0.0

    def test_empty_side(self):
        """An empty side scores 0 rather than dividing by zero."""
        assert jaccard("", "ai act") == 0.0

    def test_accepts_sets(self):
        """Pre-tokenized sets are used as is."""
        assert jaccard({"ai", "act"}, {"ai"}) == 0.5


class TestNormalizeUrl:
    """Tests for normalize_url."""

    def test_strips_www_query_fragment_and_trailing_slash(self):
        """Tracking parameters and cosmetic differences are removed."""
        assert (
            normalize_url("HTTP://WWW.Reuters.com/tech/story/?utm_source=x#top")
            == "https://reuters.com/tech/story"
        )

    def test_equivalent_urls_share_identity(self):
        """Two spellings of one article normalize identically."""
        a = normalize_url("https://www.reuters.com/tech/eu-ai-act-timeline?utm_source=feed")
        b = normalize_url("http://reuters.com/tech/eu-ai-act-timeline/")
        assert a == b

    def test_scheme_less_input(self):
        """Bare hosts are treated as https."""
        assert normalize_url("reuters.com/tech") == "https://reuters.com/tech"

    def test_empty_and_non_http(self):
        """Empty and non-http input normalize to an empty string."""
        assert normalize_url("") == ""
        assert normalize_url("ftp://files.example.com/report") == ""


class TestSentencesAndParagraphs:
    """Tests for sentence and paragraph splitting."""

    def test_split_on_terminal_punctuation_and_newlines(self):
        """Western and CJK terminals plus newlines split sentences."""
        text = "First one. Second one? Third!\n네 번째。다섯 번째…"
        assert len(split_sentences(text)) == 5

    def test_count_sentence_units_ignores_empty_pieces(self):
        """Pieces without word tokens do not count."""
        assert count_sentence_units("One sentence here... ! ? Another one.") == 2

    def test_split_paragraphs_on_blank_lines(self):
        """Blank lines separate paragraphs."""
        assert split_paragraphs("First para.\n\nSecond para.\n\nThird.") == [
            "First para.",
            "Second para.",
            "Third.",
        ]

    def test_split_paragraphs_falls_back_to_lines(self):
        """Single newlines separate paragraphs when there are no blank lines."""
        assert split_paragraphs("One\nTwo") == ["One", "Two"]

    def test_compact_removes_whitespace_and_casefolds(self):
        """compact is whitespace-free and case-folded."""
        assert compact("EU  Finalizes\nAI") == "eufinalizesai"
