"""Model router: picks a generation backend from query complexity and retrieval quality."""

import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Any, Protocol

from replyloop.core.complexity import ComplexityEstimator
from replyloop.core.llm_connector import LLMConnector
from replyloop.lib.config import RoutingConfig
from replyloop.lib.errors import ProviderError

logger = logging.getLogger(__name__)

TIER_PREMIUM = "premium"
TIER_ADVANCED = "advanced"
TIER_STANDARD = "standard"
TIER_ECONOMY = "economy"
TIER_FIXED = "fixed"


class HasSimilarity(Protocol):
    similarity: float


@dataclass
class RoutingDecision:
    """Decision from the model router."""

    provider_id: str
    tier: str
    complexity: float
    candidate_count: int
    avg_relevance: float
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def decide_tier(complexity: float, count: int, avg_relevance: float) -> tuple[str, str]:
    """Routing table, evaluated top to bottom, first match wins.

    1. complexity > 0.8, or more than 3 candidates that are mostly weak -> premium
    2. complexity > 0.5, or more than 5 candidates -> advanced
    3. complexity > 0.3, or some highly relevant candidates -> standard
    4. otherwise -> economy

    Returns:
        (tier, reasoning)
    """
    if complexity > 0.8 or (count > 3 and avg_relevance < 0.5):
        return TIER_PREMIUM, (
            f"complexity={complexity:.2f} or {count} weak candidates (avg={avg_relevance:.2f})"
        )
    if complexity > 0.5 or count > 5:
        return TIER_ADVANCED, f"complexity={complexity:.2f} or {count} candidates"
    if complexity > 0.3 or (count > 0 and avg_relevance > 0.7):
        return TIER_STANDARD, (
            f"complexity={complexity:.2f} or strong candidates (avg={avg_relevance:.2f})"
        )
    return TIER_ECONOMY, f"simple query (complexity={complexity:.2f}, {count} candidates)"


class GenerationRouter:
    """Maps a request to a provider id and its connector. Holds no per-request state."""

    def __init__(
        self,
        connectors: dict[str, LLMConnector],
        config: RoutingConfig,
        estimator: ComplexityEstimator | None = None,
    ):
        """Initialize router.

        Args:
            connectors: Generation connectors keyed by provider id
            config: Routing section (auto_select, default_provider, tiers)
            estimator: Complexity estimator (default instance if omitted)
        """
        self.connectors = connectors
        self.config = config
        self.estimator = estimator or ComplexityEstimator()

        self.tiers = {
            TIER_PREMIUM: config.tiers.premium,
            TIER_ADVANCED: config.tiers.advanced,
            TIER_STANDARD: config.tiers.standard,
            TIER_ECONOMY: config.tiers.economy,
        }

    def select(self, query: str, candidates: Sequence[HasSimilarity]) -> RoutingDecision:
        complexity = self.estimator.score(query)
        count = len(candidates)
        avg_relevance = sum(c.similarity for c in candidates) / count if count else 0.0

        if not self.config.auto_select:
            return RoutingDecision(
                provider_id=self.config.default_provider,
                tier=TIER_FIXED,
                complexity=complexity,
                candidate_count=count,
                avg_relevance=avg_relevance,
                reasoning="auto selection disabled",
            )

        tier, reasoning = decide_tier(complexity, count, avg_relevance)
        decision = RoutingDecision(
            provider_id=self.tiers[tier],
            tier=tier,
            complexity=complexity,
            candidate_count=count,
            avg_relevance=avg_relevance,
            reasoning=reasoning,
        )
        logger.info(f"Routed to {decision.provider_id} ({tier}): {reasoning}")
        return decision

    def connector_for(self, decision: RoutingDecision) -> LLMConnector:
        """Connector for a decision; unconfigured tiers fall back to the default provider.

        Raises:
            ProviderError: If neither the chosen nor the default provider is configured
        """
        connector = self.connectors.get(decision.provider_id)
        if connector is not None:
            return connector

        fallback = self.connectors.get(self.config.default_provider)
        if fallback is None:
            raise ProviderError(decision.provider_id, "provider is not configured")

        logger.warning(
            f"Provider {decision.provider_id} not configured, "
            f"falling back to {self.config.default_provider}"
        )
        decision.reasoning += f"; fell back to {self.config.default_provider}"
        decision.provider_id = self.config.default_provider
        return fallback
