import requests as rq
from pydantic import ValidationError

from .config import ANALYSIS_API, ANALYSIS_TIMEOUT, SANDBOX_TOKEN
from .exception import AnalysisError
from .meta import AnalysisResult
from .utils import logger


def analyze(code: str, language: str) -> AnalysisResult:
    """
    Ask the advisory service for a complexity and quality review of the code.
    The review never influences the verdict.
    """
    if not ANALYSIS_API:
        raise AnalysisError("analysis service is not configured")
    logger().debug(f"request code analysis [language: {language}]")
    try:
        resp = rq.post(
            f"{ANALYSIS_API}/analyze",
            json={
                "code": code,
                "language": language,
                "token": SANDBOX_TOKEN,
            },
            timeout=ANALYSIS_TIMEOUT,
        )
    except rq.RequestException as exc:
        raise AnalysisError(f"analysis request failed: {exc}") from exc
    if not resp.ok:
        logger().warning(
            f"analysis service error [status={resp.status_code}]: {resp.text}")
        raise AnalysisError(f"analysis service returned {resp.status_code}")
    try:
        body = resp.json()
        return AnalysisResult.model_validate(body.get("data", body))
    except (ValueError, AttributeError, ValidationError) as exc:
        raise AnalysisError(f"invalid analysis response: {exc}") from exc
