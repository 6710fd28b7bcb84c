"""
Biometric scorer client.

The face-match algorithm lives outside this service. The engine only sends the
captured sample and receives a score in [0, 100]. Any failure is reported as
ScorerError and treated by the caller as a failed verification.
"""
import logging
from typing import Optional, Protocol

import requests

from app.core.config import Settings

logger = logging.getLogger(__name__)


class ScorerError(Exception):
    pass


class BiometricScorer(Protocol):
    def score(self, employee_id: int, sample: str) -> float:
        ...


class HttpBiometricScorer:
    """POSTs {"employee_id", "sample"} and expects {"score": <0..100>}"""

    def __init__(self, url: str, timeout_seconds: float = 5.0, session: Optional[requests.Session] = None) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def score(self, employee_id: int, sample: str) -> float:
        try:
            response = self.session.post(
                self.url,
                json={"employee_id": employee_id, "sample": sample},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise ScorerError(f"Biometric scorer request failed: {e}") from e
        except ValueError as e:
            raise ScorerError("Biometric scorer returned invalid JSON") from e

        try:
            return float(payload["score"])
        except (KeyError, TypeError, ValueError) as e:
            raise ScorerError(f"Biometric scorer response has no usable score: {payload!r}") from e


class UnconfiguredScorer:
    def score(self, employee_id: int, sample: str) -> float:
        raise ScorerError("No biometric scorer configured (BIOMETRIC_SCORER_URL)")


def build_scorer(config: Settings) -> BiometricScorer:
    if config.BIOMETRIC_SCORER_URL:
        return HttpBiometricScorer(config.BIOMETRIC_SCORER_URL, config.BIOMETRIC_SCORER_TIMEOUT_SECONDS)
    logger.warning("BIOMETRIC_SCORER_URL is not set; every verification response will fail")
    return UnconfiguredScorer()
