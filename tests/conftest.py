"""Shared fixtures."""

import time

import pytest

from phishlens.config import Settings
from phishlens.core.dictionaries import PhishingDictionaries
from phishlens.core.features import FeatureExtractor
from phishlens.core.oracle import OracleSignal
from phishlens.core.risk_scorer import RiskScorer
from phishlens.services.analysis_service import AnalysisService


class FakeOracle:
    """Stands in for OracleClient; answers with a canned signal."""

    def __init__(self, signal=None, error=None, delay=0.0, configured=True):
        self.signal = signal
        self.error = error
        self.delay = delay
        self.is_configured = configured
        self.calls = []
        self.closed = False

    def consult(self, artifact, features):
        self.calls.append((artifact, features))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.signal

    def close(self):
        self.closed = True


def make_signal(is_positive, confidence, reasoning="Model reasoning", extra=()):
    return OracleSignal(
        is_positive=is_positive,
        confidence=confidence,
        reasoning=reasoning,
        extra_threats=tuple(extra),
    )


@pytest.fixture
def dictionaries():
    return PhishingDictionaries()


@pytest.fixture
def extractor(dictionaries):
    return FeatureExtractor(dictionaries)


@pytest.fixture
def scorer():
    return RiskScorer()


@pytest.fixture
def settings():
    return Settings(
        ORACLE_API_KEY="test-key",
        ORACLE_TIMEOUT_SECONDS=0.2,
        ORACLE_TIMEOUT_GRACE_SECONDS=0.1,
        MAX_THREAT_INDICATORS=8,
        BATCH_MAX_ITEMS=5,
        BATCH_MAX_WORKERS=4,
        DICTIONARY_PATH=None,
    )


@pytest.fixture
def make_service(settings, dictionaries):
    """Build services around a given oracle and shut them all down afterwards."""
    services = []

    def _make(oracle=None):
        service = AnalysisService(
            settings,
            dictionaries=dictionaries,
            oracle=oracle if oracle is not None else FakeOracle(configured=False),
        )
        services.append(service)
        return service

    yield _make
    for service in services:
        service.shutdown()
