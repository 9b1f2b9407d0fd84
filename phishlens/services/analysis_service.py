import logging
import secrets
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from phishlens.core.artifacts import InvalidArtifactError, artifact_from_payload
from phishlens.core.combiner import POLICIES, Decision
from phishlens.core.dictionaries import PhishingDictionaries, load_dictionaries
from phishlens.core.features import FeatureExtractor
from phishlens.core.oracle import FALLBACK_SIGNAL, OracleClient, OracleSignal
from phishlens.core.risk_scorer import RiskScorer

logger = logging.getLogger(__name__)


def integrity_tag() -> str:
    """Random per-result audit token (``0x`` + 64 hex chars); not a commitment."""
    return "0x" + secrets.token_hex(32)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class VerdictResult:
    artifact: Any
    features: Any
    decision: Decision
    signal: OracleSignal
    integrity_tag: str
    timestamp: str
    processing_time: float = 0.0

    @property
    def verdict(self) -> str:
        return self.decision.verdict

    @property
    def confidence(self) -> int:
        return self.decision.confidence

    @property
    def detected_brand(self) -> Optional[str]:
        return getattr(self.features, 'detected_brand', None)

    def to_response(self) -> Dict:
        """JSON envelope returned by the HTTP API."""
        decision = self.decision
        response = dict(self.artifact.echo())
        response.update({
            "result": decision.verdict,
            "confidence": decision.confidence,
            "threatIndicators": list(decision.indicators),
            "analysisDetails": {
                "features": self.features.to_dict(),
                "ruleBasedScore": decision.rule_score,
                "oracleSignal": self.signal.to_dict(),
                "oracleScore": decision.oracle_score,
                "combinedScore": decision.combined_score,
                "method": decision.method,
                "overrides": list(decision.overrides),
            },
            "integrityTag": self.integrity_tag,
            "timestamp": self.timestamp,
        })
        if self.artifact.artifact_type == "logo":
            response["detectedBrand"] = self.detected_brand
        return response


class AnalysisService:
    def __init__(
        self,
        settings,
        dictionaries: Optional[PhishingDictionaries] = None,
        oracle: Optional[OracleClient] = None,
    ):
        """
        Stateless analysis pipeline shared by every request.

        Args:
            settings: application settings
            dictionaries: keyword/brand tables (loaded from DICTIONARY_PATH when omitted)
            oracle: oracle client (built from settings when omitted)
        """
        self.settings = settings
        self.dictionaries = dictionaries or load_dictionaries(settings.DICTIONARY_PATH)
        self.extractor = FeatureExtractor(self.dictionaries)
        self.risk_scorer = RiskScorer()
        self.oracle = oracle if oracle is not None else OracleClient.from_settings(settings)
        self.policies = {
            kind: replace(policy, max_indicators=settings.MAX_THREAT_INDICATORS)
            for kind, policy in POLICIES.items()
        }

        # Separate pools: batch items wait on oracle futures
        self.oracle_executor = ThreadPoolExecutor(
            max_workers=settings.BATCH_MAX_WORKERS, thread_name_prefix="phishlens-oracle"
        )
        self.batch_executor = ThreadPoolExecutor(
            max_workers=settings.BATCH_MAX_WORKERS, thread_name_prefix="phishlens-batch"
        )

    @property
    def oracle_configured(self) -> bool:
        return bool(getattr(self.oracle, 'is_configured', False))

    def analyze(self, artifact) -> VerdictResult:
        """Complete analysis pipeline for one validated artifact"""
        start_time = time.time()
        kind = artifact.artifact_type

        features = self.extractor.extract(artifact)

        # Oracle runs while the rules are evaluated
        future = None
        if self.oracle_configured:
            future = self.oracle_executor.submit(self.oracle.consult, artifact, features)

        evaluation = self.risk_scorer.evaluate(features)
        signal = self._await_signal(future) if future is not None else FALLBACK_SIGNAL

        decision = self.policies[kind].combine(evaluation.result, signal, evaluation.overrides)
        processing_time = time.time() - start_time

        logger.info(
            f"✓ {kind} analysis complete in {processing_time:.2f}s - "
            f"Verdict: {decision.verdict} ({decision.method}, score {decision.combined_score})"
        )

        return VerdictResult(
            artifact=artifact,
            features=features,
            decision=decision,
            signal=signal,
            integrity_tag=integrity_tag(),
            timestamp=utc_timestamp(),
            processing_time=processing_time,
        )

    def _await_signal(self, future) -> OracleSignal:
        deadline = self.settings.ORACLE_TIMEOUT_SECONDS + self.settings.ORACLE_TIMEOUT_GRACE_SECONDS
        try:
            return future.result(timeout=deadline)
        except FutureTimeout:
            future.cancel()
            logger.warning(f"⚠️ Oracle gave no answer within {deadline}s, using rule-based verdict")
            return FALLBACK_SIGNAL
        except Exception as e:
            logger.warning(f"⚠️ Oracle call failed: {e}, using rule-based verdict")
            return FALLBACK_SIGNAL

    def analyze_batch(self, items: List[Dict]) -> List[Dict]:
        """
        Analyze tagged batch items concurrently.

        Each entry in the returned list is either a response envelope or
        ``{"error": ...}``; one bad item never fails the others.
        """
        if not items:
            raise InvalidArtifactError("Batch must contain at least one item")
        if len(items) > self.settings.BATCH_MAX_ITEMS:
            raise InvalidArtifactError(f"Batch is limited to {self.settings.BATCH_MAX_ITEMS} items")

        futures = [self.batch_executor.submit(self._analyze_item, item) for item in items]
        results = [future.result() for future in futures]

        failed = sum(1 for r in results if "error" in r)
        logger.info(f"📦 Batch of {len(items)} analyzed ({failed} failed)")
        return results

    def _analyze_item(self, item: Dict) -> Dict:
        try:
            artifact = artifact_from_payload(item)
        except InvalidArtifactError as e:
            return {"error": str(e)}

        try:
            return self.analyze(artifact).to_response()
        except Exception:
            logger.exception(f"❌ Batch item analysis failed ({artifact.artifact_type})")
            return {"error": "Analysis failed"}

    def shutdown(self):
        self.batch_executor.shutdown(wait=False, cancel_futures=True)
        self.oracle_executor.shutdown(wait=False, cancel_futures=True)
        close = getattr(self.oracle, 'close', None)
        if close is not None:
            close()
