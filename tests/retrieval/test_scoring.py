import pytest

from eventgraph.runtime.retrieval.constraints import ConstraintEvaluation
from eventgraph.runtime.retrieval.models import EventNode, ScoredNode
from eventgraph.runtime.retrieval.scoring import (
    FRESHNESS_KEY,
    ScoringWeights,
    compute_composite_score,
    embedding_score_for,
    normalized_constraint_score,
    rescore,
    score_node,
)


def test_default_weights():
    weights = ScoringWeights()
    assert (weights.embedding, weights.constraint, weights.recency) == (0.4, 0.5, 0.1)


def test_normalized_constraint_score_is_weighted_mean():
    scores = {"TemporalProximity": 1.0, "LocationSimilarity": 0.0}
    weights = {"TemporalProximity": 3.0, "LocationSimilarity": 1.0}
    assert normalized_constraint_score(scores, weights) == pytest.approx(0.75)


def test_normalized_constraint_score_empty_or_zero_weight():
    assert normalized_constraint_score({}, {}) == 0.0
    assert normalized_constraint_score({"a": 1.0}, {"a": 0.0}) == 0.0


def test_composite_combines_all_three_terms():
    scores = {"TemporalProximity": 1.0, FRESHNESS_KEY: 0.5}
    weights = {"TemporalProximity": 1.0, FRESHNESS_KEY: 1.0}
    composite = compute_composite_score(1.0, scores, weights, ScoringWeights())
    # 0.4 * 1.0 + 0.5 * 0.75 + 0.1 * 0.5
    assert composite == pytest.approx(0.825)


def test_composite_without_constraints_is_embedding_term_only():
    assert compute_composite_score(0.5, {}, {}, ScoringWeights()) == pytest.approx(0.2)


def test_embedding_score_absent_embedding_is_zero():
    node = EventNode(id="e1", name="no vector")
    assert embedding_score_for(node, [1.0, 0.0]) == 0.0
    assert embedding_score_for(EventNode(id="e2", name="v", embedding=[1.0, 0.0]), None) == 0.0
    assert embedding_score_for(EventNode(id="e3", name="v", embedding=[1.0, 0.0]), [2.0, 0.0]) == pytest.approx(1.0)


def test_score_node_and_rescore():
    evaluation = ConstraintEvaluation(passed=True, scores={"TemporalProximity": 0.5}, weights={"TemporalProximity": 1.0})
    node = EventNode(id="e1", name="x")
    scored = score_node(node, evaluation, embedding_score=0.8, scoring=ScoringWeights(), matched_topic="coffee")
    assert isinstance(scored, ScoredNode)
    assert scored.composite_score == pytest.approx(0.4 * 0.8 + 0.5 * 0.5)
    assert scored.matched_topic == "coffee"

    embedding_only = rescore(scored, ScoringWeights(embedding=1.0, constraint=0.0, recency=0.0))
    assert embedding_only.composite_score == pytest.approx(0.8)
    assert scored.composite_score == pytest.approx(0.57)
