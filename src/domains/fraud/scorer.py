"""Risk scoring: remote LLM assessment with a deterministic local fallback."""

import json
import random
import re
from datetime import UTC

import httpx
import structlog

from .config import FraudConfig, default_config
from .errors import TransientScoringFailure
from .models import PaymentMethod, ScoreResult, Transaction

logger = structlog.get_logger()

SYSTEM_PROMPT = (
    "You are a fraud detection expert. Analyze transactions for fraud risk and return "
    "ONLY a JSON object with riskScore (0-100), isFlagged (boolean), and reasons "
    "(array of strings)."
)

REASON_HIGH_AMOUNT = "High transaction amount"
REASON_VERY_HIGH_AMOUNT = "Very high transaction amount"
REASON_NEW_CUSTOMER = "New customer"
REASON_LATE_NIGHT = "Unusual transaction time (late night)"
REASON_CRYPTO = "High-risk payment method (crypto)"
REASON_UNUSUAL_PATTERN = "Unusual purchase pattern"
REASON_NORMAL = "Normal transaction pattern"

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def build_prompt(event: Transaction) -> str:
    history = "New Customer" if event.customer.is_new else "Returning Customer"
    return (
        "Transaction Analysis Request:\n\n"
        "Transaction Details:\n"
        f"- Amount: {event.amount} {event.currency}\n"
        f"- Customer Location: {event.customer.location}\n"
        f"- Merchant: {event.merchant}\n"
        f"- Time: {event.timestamp.isoformat()}\n"
        f"- Payment Method: {event.payment_method.value}\n"
        f"- Customer History: {history}\n\n"
        "Analyze for unusual amounts, geographic inconsistencies, unusual hours, "
        "merchant risk and payment method risk.\n"
        "Return JSON with riskScore (0-100), isFlagged (true if risk > 70), and reasons array."
    )


def parse_assessment(content: str, high_threshold: int) -> ScoreResult:
    """Turn the model's reply into a ScoreResult or raise TransientScoringFailure."""
    if not isinstance(content, str):
        raise TransientScoringFailure("Scorer response content is not text")
    match = _JSON_OBJECT.search(content)
    if match is None:
        raise TransientScoringFailure("No JSON object in scorer response")
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise TransientScoringFailure("Scorer response is not valid JSON") from exc

    raw_score = payload.get("riskScore") if isinstance(payload, dict) else None
    if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)):
        raise TransientScoringFailure(f"Invalid riskScore: {raw_score!r}")
    if not 0 <= raw_score <= 100:
        raise TransientScoringFailure(f"riskScore out of range: {raw_score}")

    reasons = payload.get("reasons") or []
    if not isinstance(reasons, list):
        reasons = [str(reasons)]

    score = round(raw_score)
    return ScoreResult(
        risk_score=score,
        is_flagged=score > high_threshold,
        reasons=[str(r) for r in reasons] or [REASON_NORMAL],
        source="remote",
    )


class FallbackScorer:
    """Local heuristic used when the remote scorer is absent or failing.

    All randomness comes from ``rng``: one draw for the base score, then one
    draw deciding the cosmetic "unusual purchase pattern" reason.
    """

    def __init__(self, config: FraudConfig | None = None, rng: random.Random | None = None):
        self._config = config or default_config
        self._rng = rng or random.Random()

    def score(self, event: Transaction) -> ScoreResult:
        weights = self._config.fallback
        reasons: list[str] = []
        total = self._rng.random() * weights.base_max

        amount = float(event.amount)
        if amount > weights.high_amount_min:
            total += weights.high_amount_delta
            reasons.append(REASON_HIGH_AMOUNT)
        if amount > weights.very_high_amount_min:
            total += weights.very_high_amount_delta
            reasons.append(REASON_VERY_HIGH_AMOUNT)

        if event.customer.is_new:
            total += weights.new_customer_delta
            reasons.append(REASON_NEW_CUSTOMER)

        start_hour, end_hour = weights.late_night_hours
        timestamp = event.timestamp
        hour = timestamp.astimezone(UTC).hour if timestamp.tzinfo else timestamp.hour
        if start_hour <= hour <= end_hour:
            total += weights.late_night_delta
            reasons.append(REASON_LATE_NIGHT)

        if event.payment_method == PaymentMethod.CRYPTO:
            total += weights.crypto_delta
            reasons.append(REASON_CRYPTO)

        # Cosmetic only: never moves the score
        if self._rng.random() < weights.cosmetic_reason_probability:
            reasons.append(REASON_UNUSUAL_PATTERN)

        risk_score = min(max(round(total), 0), 100)
        return ScoreResult(
            risk_score=risk_score,
            is_flagged=risk_score > self._config.thresholds.high,
            reasons=reasons or [REASON_NORMAL],
            source="fallback",
        )


class RiskScorer:
    """Scores transactions, preferring the remote backend when configured.

    ``score`` never raises for scoring problems: transport errors, timeouts,
    bad HTTP status and malformed replies all fall through to the local
    heuristic.
    """

    def __init__(
        self,
        config: FraudConfig | None = None,
        api_url: str | None = None,
        api_key: str | None = None,
        model: str = "gpt-3.5-turbo",
        timeout_seconds: float = 3.0,
        client: httpx.AsyncClient | None = None,
        fallback: FallbackScorer | None = None,
    ) -> None:
        self._config = config or default_config
        self._api_url = api_url
        self._api_key = api_key
        self._model = model
        self._timeout = timeout_seconds
        self._client = client
        self._fallback = fallback or FallbackScorer(config=self._config)

    @property
    def mode(self) -> str:
        return "remote" if self._api_key and self._api_url else "fallback"

    async def score(self, event: Transaction) -> ScoreResult:
        if self.mode == "remote":
            try:
                return await self._score_remote(event)
            except TransientScoringFailure as exc:
                logger.warning(
                    "remote_scoring_fallback",
                    transaction_id=event.transaction_id,
                    error=str(exc),
                )
        return self._fallback.score(event)

    async def _score_remote(self, event: Transaction) -> ScoreResult:
        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(event)},
            ],
            "temperature": 0.3,
            "max_tokens": 150,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            if self._client is not None:
                response = await self._client.post(
                    self._api_url, json=body, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._api_url, json=body, headers=headers)
            response.raise_for_status()
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except httpx.TimeoutException as exc:
            raise TransientScoringFailure("Remote scorer timed out") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransientScoringFailure(f"Remote scorer request failed: {exc}") from exc
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise TransientScoringFailure("Remote scorer returned an unexpected payload") from exc

        result = parse_assessment(content, self._config.thresholds.high)
        logger.debug(
            "remote_scoring_completed",
            transaction_id=event.transaction_id,
            risk_score=result.risk_score,
        )
        return result

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
