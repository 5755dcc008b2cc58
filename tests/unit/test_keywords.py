"""Unit tests for keyword extraction."""

from campus_assistant.keywords import KeywordExtractor, cjk_ngrams, clean_text


class TestCleanText:
    """Tests for text normalisation."""

    def test_lowercases_and_strips_punctuation(self):
        assert clean_text("Hello, World!") == "hello  world "

    def test_keeps_cjk(self):
        assert clean_text("高数？笔记。") == "高数 笔记 "


def test_cjk_ngrams():
    assert cjk_ngrams("高等数学") == ["高等", "等数", "数学", "高等数", "等数学"]
    assert cjk_ngrams("高") == []


class TestKeywordExtractor:
    """Tests for KeywordExtractor."""

    def setup_method(self):
        self.extractor = KeywordExtractor()

    def test_empty_text(self):
        assert self.extractor.extract("") == []

    def test_important_terms_found(self):
        keywords = self.extractor.extract("高等数学复习笔记")
        for term in ("高等数学", "数学", "复习", "笔记"):
            assert term in keywords

    def test_cjk_bigrams_and_trigrams(self):
        keywords = self.extractor.extract("食堂探店")
        assert {"食堂", "堂探", "探店", "食堂探", "堂探店"} <= set(keywords)

    def test_latin_tokens(self):
        keywords = self.extractor.extract("Learn React and a b Node.js 2024")
        assert "learn" in keywords
        assert "react" in keywords
        assert "node" in keywords
        assert "js" in keywords
        assert "a" not in keywords
        assert "2024" not in keywords

    def test_mixed_script(self):
        keywords = self.extractor.extract("如何学习React？")
        assert "react" in keywords
        assert "学习" in keywords
        assert "如何" in keywords

    def test_deduplicated(self):
        keywords = self.extractor.extract("笔记 笔记 笔记")
        assert len(keywords) == len(set(keywords))
        assert keywords.count("笔记") == 1

    def test_idempotent(self):
        text = "请你为我检索一下所有可能的高等数学学习笔记"
        assert self.extractor.extract(text) == self.extractor.extract(text)

    def test_order_independent_set(self):
        first = set(self.extractor.extract("高数 笔记 react"))
        second = set(self.extractor.extract("react 笔记 高数"))
        assert first == second
