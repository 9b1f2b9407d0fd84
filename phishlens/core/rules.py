"""
Generic weighted-rule evaluator.

Each artifact type describes its heuristics as a ``RuleTable``: additive rules
(one explanatory message per contribution), bright-line overrides evaluated after
the weighted sum, and a known-safe floor that replaces the score when nothing
else fired.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Tuple, Union

Predicate = Callable[[Any], bool]
Points = Union[float, Callable[[Any], float]]
Message = Union[str, Callable[[Any], str]]


@dataclass(frozen=True)
class Rule:
    name: str
    predicate: Predicate
    points: Points
    message: Message
    # Non-evidential rules adjust the score without counting as evidence
    evidential: bool = True

    def points_for(self, features) -> float:
        return self.points(features) if callable(self.points) else self.points

    def message_for(self, features) -> str:
        return self.message(features) if callable(self.message) else self.message


@dataclass(frozen=True)
class Override:
    name: str
    predicate: Predicate
    floor: float
    message: Message

    def message_for(self, features) -> str:
        return self.message(features) if callable(self.message) else self.message


@dataclass(frozen=True)
class RuleTable:
    artifact_type: str
    rules: Tuple[Rule, ...]
    overrides: Tuple[Override, ...] = ()
    safe_predicate: Optional[Predicate] = None
    safe_floor: float = 0
    safe_message: Message = "Recognized safe domain"


@dataclass(frozen=True)
class ScoreResult:
    score: float
    threats: Tuple[str, ...]


@dataclass(frozen=True)
class ProvenanceOverrides:
    forced_floor: Optional[float] = None
    override_reasons: Tuple[str, ...] = ()
    safe_provenance: bool = False
    has_evidence: bool = False


@dataclass(frozen=True)
class RuleEvaluation:
    result: ScoreResult
    overrides: ProvenanceOverrides
    fired: Tuple[str, ...] = field(default=())


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def evaluate(table: RuleTable, features) -> RuleEvaluation:
    """Run ``table`` against ``features``; deterministic and total."""
    total = 0.0
    threats = []
    fired = []
    has_evidence = False

    for rule in table.rules:
        if not rule.predicate(features):
            continue
        total += rule.points_for(features)
        threats.append(rule.message_for(features))
        fired.append(rule.name)
        has_evidence = has_evidence or rule.evidential

    score = round(clamp(total), 2)

    forced_floor = None
    reasons = []
    for override in table.overrides:
        if not override.predicate(features):
            continue
        message = override.message_for(features)
        threats.append(message)
        reasons.append(message)
        fired.append(override.name)
        forced_floor = override.floor if forced_floor is None else max(forced_floor, override.floor)
        has_evidence = True

    safe_provenance = False
    if not has_evidence and table.safe_predicate is not None and table.safe_predicate(features):
        # Residual uncertainty: a recognised host is never scored exactly zero
        score = table.safe_floor
        message = table.safe_message(features) if callable(table.safe_message) else table.safe_message
        threats.append(message)
        safe_provenance = True

    return RuleEvaluation(
        result=ScoreResult(score=score, threats=tuple(threats)),
        overrides=ProvenanceOverrides(
            forced_floor=forced_floor,
            override_reasons=tuple(reasons),
            safe_provenance=safe_provenance,
            has_evidence=has_evidence,
        ),
        fired=tuple(fired),
    )
