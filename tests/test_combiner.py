"""Tests for the verdict policy."""

import pytest

from phishlens.core.combiner import (
    POLICIES,
    classify_score,
    confidence_for,
    dedupe_threats,
    oracle_scale,
)
from phishlens.core.oracle import FALLBACK_SIGNAL
from phishlens.core.rules import ProvenanceOverrides, ScoreResult

from conftest import make_signal

EVIDENCE = ProvenanceOverrides(has_evidence=True)
NO_EVIDENCE = ProvenanceOverrides()
SAFE_SOURCE = ProvenanceOverrides(safe_provenance=True)


def rules(score, *threats):
    return ScoreResult(score=score, threats=tuple(threats))


class TestThresholds:
    def test_boundaries(self):
        assert classify_score(50) == "phishing"
        assert classify_score(49.99) == "suspicious"
        assert classify_score(25) == "suspicious"
        assert classify_score(24.99) == "safe"

    def test_exact_boundaries_through_policy(self):
        url = POLICIES["url"]
        assert url.combine(rules(50), FALLBACK_SIGNAL, EVIDENCE).verdict == "phishing"
        assert url.combine(rules(25), FALLBACK_SIGNAL, EVIDENCE).verdict == "suspicious"

    def test_oracle_scale(self):
        assert oracle_scale(make_signal(True, 80)) == 90
        assert oracle_scale(make_signal(False, 80)) == 10


class TestConfidence:
    @pytest.mark.parametrize("verdict,combined,expected", [
        ("safe", 0, 95),
        ("safe", 20, 80),
        ("unknown", 30, 45),
        ("suspicious", 25, 60),
        ("suspicious", 37.5, 78),
        ("phishing", 50, 60),
        ("phishing", 85, 84),
        ("phishing", 100, 95),
    ])
    def test_piecewise_shape(self, verdict, combined, expected):
        assert confidence_for(verdict, combined) == expected

    def test_unknown_verdict_rejected(self):
        with pytest.raises(ValueError):
            confidence_for("maybe", 10)


class TestIndicators:
    def test_dedupe_keeps_first_order_and_caps(self):
        threats = ["a", "b", "a", "c", "B"] + [f"t{i}" for i in range(10)]
        result = dedupe_threats(threats, limit=8)
        assert result[:4] == ("a", "b", "c", "B")
        assert len(result) == 8

    def test_oracle_threats_follow_rule_threats(self):
        signal = make_signal(True, 90, reasoning="Fake login page", extra=["rule one", "extra"])
        decision = POLICIES["url"].combine(rules(60, "rule one", "rule two"), signal, EVIDENCE)
        assert decision.indicators == ("rule one", "rule two", "extra", "Fake login page")

    def test_reasoning_omitted_when_safe(self):
        signal = make_signal(False, 90, reasoning="Looks legitimate")
        decision = POLICIES["url"].combine(rules(0), signal, EVIDENCE)
        assert decision.verdict == "safe"
        assert "Looks legitimate" not in decision.indicators


class TestCombine:
    def test_hybrid_weighting(self):
        decision = POLICIES["url"].combine(rules(40), make_signal(True, 80), EVIDENCE)
        assert decision.method == "hybrid-ai"
        assert decision.oracle_score == 90
        assert decision.combined_score == pytest.approx(70)
        assert decision.verdict == "phishing"

    def test_fallback_uses_rule_score(self):
        decision = POLICIES["url"].combine(rules(30), FALLBACK_SIGNAL, EVIDENCE)
        assert decision.method == "rule-based"
        assert decision.oracle_score is None
        assert decision.combined_score == 30
        assert decision.verdict == "suspicious"

    def test_override_forces_phishing(self):
        overrides = ProvenanceOverrides(forced_floor=85, override_reasons=("spoof",), has_evidence=True)
        decision = POLICIES["url"].combine(rules(10, "spoof"), make_signal(False, 100), overrides)
        assert decision.verdict == "phishing"
        assert decision.combined_score == 85
        assert decision.overrides == ("spoof",)

    def test_unknown_beats_oracle_opinion(self):
        decision = POLICIES["email"].combine(rules(0), make_signal(True, 100), NO_EVIDENCE)
        assert decision.verdict == "unknown"
        assert decision.confidence == 45

    def test_safe_provenance_reports_floor(self):
        decision = POLICIES["email"].combine(rules(12, "Official sender"), make_signal(False, 95), SAFE_SOURCE)
        assert decision.verdict == "safe"
        assert decision.confidence == 12
        assert decision.combined_score == 12

    def test_oracle_can_dispute_safe_provenance(self):
        decision = POLICIES["url"].combine(rules(5), make_signal(True, 90), SAFE_SOURCE)
        assert decision.combined_score == pytest.approx(59)
        assert decision.verdict == "phishing"

    def test_logo_has_no_suspicious_verdict(self):
        decision = POLICIES["logo"].combine(rules(30), FALLBACK_SIGNAL, EVIDENCE)
        assert decision.verdict == "unknown"
        assert decision.confidence == 45

    def test_low_scoring_logo_is_unknown(self):
        decision = POLICIES["logo"].combine(rules(20, "Suspicious TLD"), FALLBACK_SIGNAL, EVIDENCE)
        assert decision.verdict == "unknown"
        assert decision.confidence == 45

    def test_logo_oracle_agreement_is_not_enough_for_safe(self):
        decision = POLICIES["logo"].combine(rules(20), make_signal(False, 90), EVIDENCE)
        assert decision.combined_score == pytest.approx(11)
        assert decision.verdict == "unknown"

    def test_logo_from_official_host_is_safe(self):
        decision = POLICIES["logo"].combine(rules(8, "Official host"), FALLBACK_SIGNAL, SAFE_SOURCE)
        assert decision.verdict == "safe"
        assert decision.confidence == 8

    def test_low_scoring_url_stays_safe(self):
        decision = POLICIES["url"].combine(rules(20), FALLBACK_SIGNAL, EVIDENCE)
        assert decision.verdict == "safe"
