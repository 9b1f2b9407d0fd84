"""
Verdict policy: fuses the rule-based score with the oracle's opinion.

Precedence, highest first:

1. a hard override forces ``phishing`` and lifts the combined score to its floor;
2. nothing evidential fired and the source is not known-safe: ``unknown``;
3. known-safe provenance the oracle does not dispute: ``safe`` at the floor score;
4. numeric thresholds on the combined score.

Logos never report a threshold ``suspicious`` or ``safe``: both read ``unknown``
unless the image comes from a known-safe source.

Confidence is a single piecewise function of the verdict and combined score
(``confidence_for``); safe-provenance decisions report the floor value instead.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from phishlens.core.oracle import OracleSignal
from phishlens.core.rules import ProvenanceOverrides, ScoreResult, clamp

PHISHING_THRESHOLD = 50
SUSPICIOUS_THRESHOLD = 25
UNKNOWN_CONFIDENCE = 45
MAX_THREAT_INDICATORS = 8


@dataclass(frozen=True)
class Decision:
    verdict: str
    confidence: int
    indicators: Tuple[str, ...]
    combined_score: float
    rule_score: float
    oracle_score: Optional[float]
    method: str
    overrides: Tuple[str, ...] = ()


def oracle_scale(signal: OracleSignal) -> float:
    """Map the oracle's (verdict, confidence) onto the 0..100 risk scale."""
    if signal.is_positive:
        return 50 + signal.confidence / 2
    return 50 - signal.confidence / 2


def classify_score(combined: float) -> str:
    if combined >= PHISHING_THRESHOLD:
        return "phishing"
    if combined >= SUSPICIOUS_THRESHOLD:
        return "suspicious"
    return "safe"


def confidence_for(verdict: str, combined: float) -> int:
    if verdict == "safe":
        value = min(95, 100 - combined)
    elif verdict == "unknown":
        value = UNKNOWN_CONFIDENCE
    elif verdict == "suspicious":
        value = 60 + 35 * (combined - SUSPICIOUS_THRESHOLD) / (PHISHING_THRESHOLD - SUSPICIOUS_THRESHOLD)
    elif verdict == "phishing":
        value = 60 + 35 * (combined - PHISHING_THRESHOLD) / (100 - PHISHING_THRESHOLD)
    else:
        raise ValueError(f"Unknown verdict: {verdict}")
    return int(clamp(round(value)))


def dedupe_threats(threats: Iterable[str], limit: int = MAX_THREAT_INDICATORS) -> Tuple[str, ...]:
    """Exact-match dedup keeping first occurrence, then cap at ``limit``."""
    seen = []
    for threat in threats:
        if threat and threat not in seen:
            seen.append(threat)
    return tuple(seen[:limit])


@dataclass(frozen=True)
class VerdictPolicy:
    artifact_type: str
    rule_weight: float = 0.4
    oracle_weight: float = 0.6
    # Logo analysis reports safe / phishing / unknown only
    allow_suspicious: bool = True
    # False: only known-safe provenance may yield ``safe``, a low score alone reads ``unknown``
    threshold_safe: bool = True
    max_indicators: int = MAX_THREAT_INDICATORS

    def combine(
        self,
        rule_result: ScoreResult,
        signal: OracleSignal,
        overrides: ProvenanceOverrides,
    ) -> Decision:
        if signal.available:
            oracle_score = oracle_scale(signal)
            combined = rule_result.score * self.rule_weight + oracle_score * self.oracle_weight
            method = "hybrid-ai"
        else:
            oracle_score = None
            combined = rule_result.score
            method = "rule-based"

        combined = round(combined, 2)
        oracle_flagged = signal.available and signal.is_positive
        provenance_safe = False

        if overrides.forced_floor is not None:
            verdict = "phishing"
            combined = max(combined, overrides.forced_floor)
        elif not overrides.has_evidence and not overrides.safe_provenance:
            verdict = "unknown"
        elif overrides.safe_provenance and not oracle_flagged:
            verdict = "safe"
            combined = rule_result.score
            provenance_safe = True
        else:
            verdict = classify_score(combined)

        if verdict == "suspicious" and not self.allow_suspicious:
            verdict = "unknown"
        if verdict == "safe" and not provenance_safe and not self.threshold_safe:
            verdict = "unknown"

        if provenance_safe:
            confidence = int(round(rule_result.score))
        else:
            confidence = confidence_for(verdict, combined)

        threats = list(rule_result.threats)
        if signal.available:
            threats.extend(signal.extra_threats)
            if verdict != "safe" and signal.reasoning:
                threats.append(signal.reasoning)

        return Decision(
            verdict=verdict,
            confidence=confidence,
            indicators=dedupe_threats(threats, self.max_indicators),
            combined_score=combined,
            rule_score=rule_result.score,
            oracle_score=oracle_score,
            method=method,
            overrides=overrides.override_reasons,
        )


POLICIES = {
    "url": VerdictPolicy("url"),
    "email": VerdictPolicy("email"),
    "logo": VerdictPolicy("logo", allow_suspicious=False, threshold_safe=False),
}
