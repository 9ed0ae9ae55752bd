"""Tests for RelevanceScorer and QueryInterpreter."""

from __future__ import annotations

import pytest
from fakes import make_book

from bookwise.application.search import QueryInterpreter, RelevanceScorer, ScoringWeights, interpret_query
from bookwise.domain.entities import SourceId

# ============================================================================
# Query interpretation
# ============================================================================


class TestQueryInterpreter:
    def test_title_by_author(self):
        result = interpret_query("pride and prejudice by jane austen")

        assert result.title == "pride and prejudice"
        assert result.author == "jane austen"
        assert result.search_query == "pride and prejudice author:jane austen"

    def test_field_syntax(self):
        result = interpret_query('author:tolkien title:"the hobbit"')

        assert result.author == "tolkien"
        assert result.title == "the hobbit"

    def test_quoted_title(self):
        result = interpret_query('"the hobbit" fantasy')

        assert result.title == "the hobbit"
        assert result.genre == "fantasy"

    def test_longest_genre_wins(self):
        assert interpret_query("classic science fiction stories").genre == "science fiction"

    def test_theme(self):
        assert interpret_query("novels about time travel").theme == "time travel"

    def test_significant_terms_drop_stop_words(self):
        result = interpret_query("The Lord of the Rings")

        assert result.significant_terms == ("lord", "rings")
        assert result.terms == ("the", "lord", "of", "the", "rings")

    def test_whitespace_collapsed(self):
        assert QueryInterpreter().interpret("  war   and  peace ").original_query == "war and peace"

    def test_plain_query_falls_back_to_itself(self):
        result = interpret_query("xy")

        assert result.author is None
        assert result.title is None
        assert result.search_query == "xy"


# ============================================================================
# Scoring
# ============================================================================


class TestRelevanceScorer:
    @pytest.fixture
    def scorer(self):
        return RelevanceScorer()

    def test_deterministic(self, scorer, pride_commercial):
        first = scorer.score(pride_commercial, "pride and prejudice")
        second = scorer.score(pride_commercial, "pride and prejudice")

        assert first == second

    def test_exact_title_beats_partial(self, scorer):
        exact = make_book(SourceId.COMMERCIAL, "1", "Emma", ("Jane Austen",))
        partial = make_book(SourceId.COMMERCIAL, "2", "Emma and the Vampires", ("Wayne Josephson",))

        assert scorer.score(exact, "emma").relevance > scorer.score(partial, "emma").relevance

    def test_title_points(self, scorer):
        book = make_book(SourceId.COMMERCIAL, "1", "Pride and Prejudice", ("Nobody",))
        w = scorer.weights

        result = scorer.score(book, "pride and prejudice")

        expected = w.title_all_terms + w.title_exact + w.title_prefix + w.source_bonus[SourceId.COMMERCIAL]
        assert result.relevance == pytest.approx(expected)

    def test_author_query_matches_author(self, scorer):
        austen = make_book(SourceId.COMMERCIAL, "1", "Emma", ("Austen, Jane",))
        other = make_book(SourceId.COMMERCIAL, "2", "Emma", ("Someone Else",))

        assert scorer.score(austen, "jane austen").relevance > scorer.score(other, "jane austen").relevance

    def test_explicit_author_exact_match(self, scorer):
        book = make_book(SourceId.COMMERCIAL, "1", "Emma", ("Jane Austen",))
        w = scorer.weights

        with_author = scorer.score(book, "emma by jane austen").relevance
        without = scorer.score(book, "emma").relevance

        assert with_author - without == pytest.approx(w.author_match + w.author_exact)

    def test_source_bonus_order(self, scorer):
        books = [make_book(source, "1", "Emma", ("Jane Austen",)) for source in SourceId]
        scores = {b.source: scorer.score(b, "emma").relevance for b in books}

        assert scores[SourceId.FULLTEXT] > scores[SourceId.OPEN_CATALOG] > scores[SourceId.COMMERCIAL]

    def test_description_terms(self, scorer):
        plain = make_book(SourceId.COMMERCIAL, "1", "Untitled", ())
        described = make_book(SourceId.COMMERCIAL, "2", "Untitled", (), description="A story of whales and obsession")

        delta = scorer.score(described, "whales obsession").relevance - scorer.score(plain, "whales obsession").relevance

        assert delta == pytest.approx(scorer.weights.description_terms + scorer.weights.has_description)

    def test_completeness(self, scorer, pride_fulltext, pride_commercial):
        assert scorer.completeness(pride_commercial) > scorer.completeness(pride_fulltext)
        assert scorer.completeness(make_book()) == 0

    def test_metadata_focused_preset(self, pride_fulltext, pride_commercial):
        scorer = RelevanceScorer(ScoringWeights.metadata_focused())

        rich = scorer.score(pride_commercial, "pride and prejudice").relevance
        sparse = scorer.score(pride_fulltext, "pride and prejudice").relevance

        assert rich > sparse
