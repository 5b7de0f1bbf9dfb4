"""Supplier risk analysis capability.

The enrichment worker depends only on ``AnalysisCapability``. Two
implementations ship here: a deterministic mock used by default and in
tests, and an HTTP client for a remote AI service.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

import httpx

from vendor_risk.config import Settings
from vendor_risk.models import RiskLevel

MOCK_MODEL_VERSION = "mock-analyzer-v1"


class AnalysisError(Exception):
    """Raised when the analysis capability cannot produce a result."""


@dataclass(frozen=True)
class AnalysisRequest:
    supplier_id: str
    name: str
    domain: str
    category: str
    notes: str | None
    organization_id: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "supplierId": self.supplier_id,
            "supplierName": self.name,
            "supplierDomain": self.domain,
            "supplierCategory": self.category,
            "supplierNotes": self.notes,
            "organizationId": self.organization_id,
        }


@dataclass(frozen=True)
class AnalysisResult:
    score: float
    analysis: dict[str, Any]


class AnalysisCapability(Protocol):
    def analyze(self, request: AnalysisRequest) -> AnalysisResult: ...


class MockAnalyzer:
    """Deterministic scoring from category and notes.

    Latency and failures can be simulated to exercise the job pipeline;
    both are off unless configured.
    """

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_delay: float = 0.0,
        max_delay: float = 0.0,
        rng: random.Random | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.failure_rate = failure_rate
        self.min_delay = min_delay
        self.max_delay = max(max_delay, min_delay)
        self.rng = rng or random.Random()
        self.sleep = sleep

    def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        if self.max_delay > 0:
            self.sleep(self.rng.uniform(self.min_delay, self.max_delay))
        if self.failure_rate and self.rng.random() < self.failure_rate:
            raise AnalysisError("Mock AI service unavailable")

        score = self.base_score(request)
        analysis = {
            "summary": (
                f"Mock AI analysis for {request.name} ({request.domain}) in category "
                f'"{request.category}". Overall risk score: {score}/100.'
            ),
            "riskFactors": self.risk_factors(request),
            "recommendations": self.recommendations(request, score),
            "confidence": 0.82,
            "analyzedAt": datetime.now(timezone.utc).isoformat(),
            "modelVersion": MOCK_MODEL_VERSION,
        }
        return AnalysisResult(score=score, analysis=analysis)

    @staticmethod
    def base_score(request: AnalysisRequest) -> int:
        score = 50
        category = request.category.lower()
        if "infrastructure" in category:
            score += 10
        if "consulting" in category:
            score -= 5
        if "legacy" in category:
            score += 20

        notes_length = len(request.notes or "")
        if notes_length > 300:
            score += 5
        if notes_length < 20:
            # not enough information
            score += 5
        return max(0, min(100, score))

    @staticmethod
    def risk_factors(request: AnalysisRequest) -> list[dict[str, str]]:
        notes = (request.notes or "").lower()
        factors = []
        if "legacy" in notes or "end-of-life" in notes:
            factors.append({
                "factor": "Legacy technology",
                "riskLevel": RiskLevel.HIGH.value,
                "description": (
                    "Supplier references legacy or end-of-life technology, which can "
                    "increase security and support risks."
                ),
            })
        if "third-party" in notes:
            factors.append({
                "factor": "Third-party dependencies",
                "riskLevel": RiskLevel.MEDIUM.value,
                "description": (
                    "Reliance on third-party components may increase the surface for "
                    "supply-chain vulnerabilities."
                ),
            })
        if not factors:
            factors.append({
                "factor": "No obvious high-risk indicators in notes",
                "riskLevel": RiskLevel.LOW.value,
                "description": "Based on the limited information available, no major risk factors were detected.",
            })
        return factors

    @staticmethod
    def recommendations(request: AnalysisRequest, score: int) -> list[str]:
        if score >= 70:
            recs = ["Perform a detailed security assessment and request recent penetration test reports."]
        elif score >= 40:
            recs = ["Monitor the supplier annually and review their security questionnaires."]
        else:
            recs = ["Maintain a lightweight monitoring schedule; reassess only if their scope expands."]
        if len(request.notes or "") < 50:
            recs.append("Collect more detailed information about data flows, hosting regions, and sub-processors.")
        return recs


class HttpAnalysisClient:
    """HTTP client for a remote supplier analysis service."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """POST the supplier to ``/analyze`` and validate the response shape."""
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.base_url}/analyze",
                    json=request.to_payload(),
                    headers=self._headers(),
                )
        except httpx.HTTPError as exc:
            raise AnalysisError(f"Analysis service unreachable: {exc}") from exc

        if response.status_code != 200:
            raise AnalysisError(f"Analysis failed: {response.status_code} {response.text}")

        try:
            data = response.json()
            score = float(data["score"])
            analysis = data["analysis"]
        except (ValueError, KeyError, TypeError) as exc:
            raise AnalysisError(f"Malformed analysis response: {exc}") from exc

        if not 0 <= score <= 100 or not isinstance(analysis, dict):
            raise AnalysisError("Analysis response out of range")
        return AnalysisResult(score=score, analysis=analysis)


def build_analyzer(settings: Settings) -> AnalysisCapability:
    """Analyzer selected by ``settings.ai_backend``."""
    if settings.ai_backend == "http":
        return HttpAnalysisClient(
            settings.ai_service_url,
            api_key=settings.ai_api_key,
            timeout=settings.ai_timeout_seconds,
        )
    return MockAnalyzer(failure_rate=settings.ai_mock_failure_rate, min_delay=0.4, max_delay=1.5)
