"""
Tests for MMR diversity selection.
"""

from __future__ import annotations

import pytest
from conftest import make_candidate, make_chunk, unit

from textbook_rag.errors import ConfigurationError, DimensionMismatchError
from textbook_rag.rag import diversity_score, mmr_select

QUERY_VECTOR = unit([1.0, 0.0, 0.0])


@pytest.fixture
def candidates():
    return [
        make_candidate(make_chunk("a", "Working capital definition."), 0.9, [1.0, 0.0, 0.0]),
        make_candidate(make_chunk("b", "Working capital definition, again."), 0.85, [1.0, 0.0, 0.0]),
        make_candidate(make_chunk("c", "Liquidity ratios."), 0.6, [0.0, 1.0, 0.0]),
        make_candidate(make_chunk("d", "Cash conversion cycle."), 0.5, [0.0, 0.7, 0.7]),
    ]


def test_selects_min_k_unique_candidates(candidates):
    for k in (1, 2, 3, 4, 10):
        selected = mmr_select(candidates, QUERY_VECTOR, lambda_=0.5, k=k)
        ids = [c.chunk_id for c in selected]
        assert len(ids) == min(k, len(candidates))
        assert len(set(ids)) == len(ids)


def test_first_pick_is_most_relevant(candidates):
    selected = mmr_select(list(reversed(candidates)), QUERY_VECTOR, lambda_=0.3, k=2)
    assert selected[0].chunk_id == "a"


def test_duplicate_is_passed_over_for_diverse_candidate(candidates):
    selected = mmr_select(candidates, QUERY_VECTOR, lambda_=0.5, k=2)
    assert [c.chunk_id for c in selected] == ["a", "c"]


def test_lambda_one_is_pure_relevance(candidates):
    selected = mmr_select(candidates, QUERY_VECTOR, lambda_=1.0, k=3)
    assert [c.chunk_id for c in selected] == ["a", "b", "c"]


def test_identical_duplicates_within_k_are_returned_unchanged():
    first = make_candidate(make_chunk("x1", "Same text."), 0.8, [0.0, 1.0, 0.0])
    second = make_candidate(make_chunk("x2", "Same text."), 0.8, [0.0, 1.0, 0.0])
    selected = mmr_select([first, second], QUERY_VECTOR, lambda_=0.5, k=2)
    assert [c.chunk_id for c in selected] == ["x1", "x2"]
    assert diversity_score(second, [first]) == pytest.approx(0.0, abs=1e-6)
    assert diversity_score(second, []) == 1.0


def test_invalid_parameters_rejected(candidates):
    with pytest.raises(ConfigurationError):
        mmr_select(candidates, QUERY_VECTOR, lambda_=1.5, k=2)
    with pytest.raises(ConfigurationError):
        mmr_select(candidates, QUERY_VECTOR, lambda_=0.5, k=0)


def test_dimension_mismatch_with_query_vector(candidates):
    with pytest.raises(DimensionMismatchError):
        mmr_select(candidates, unit([1.0, 0.0]), lambda_=0.5, k=2)


def test_empty_input():
    assert mmr_select([], QUERY_VECTOR) == []
