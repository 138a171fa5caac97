"""Health check endpoint handler."""

import logging

from replyloop.api.models.health import ComponentStatus, HealthStatus
from replyloop.core.services import Services

logger = logging.getLogger(__name__)


async def check_health(services: Services) -> HealthStatus:
    """Probe storage and every configured generation provider.

    Storage failure makes the service unhealthy; unreachable providers only
    degrade it since routing can fall back to the default provider.
    """
    components: dict[str, ComponentStatus] = {}
    knowledge_items = embeddings = 0

    try:
        knowledge_items = len(services.knowledge_store.list_ids())
        embeddings = services.vector_store.count()
        components["storage"] = ComponentStatus(
            name="storage", status="healthy", message=services.config.storage.sqlite_path
        )
    except Exception as e:
        logger.error(f"Storage health check failed: {e}")
        components["storage"] = ComponentStatus(name="storage", status="unhealthy", message=str(e))

    for provider_id, connector in services.connectors.items():
        try:
            healthy = await connector.check_health()
        except Exception as e:
            logger.warning(f"Health check for {provider_id} raised: {e}")
            healthy = False
        components[provider_id] = ComponentStatus(
            name=connector.model_name,
            status="healthy" if healthy else "unhealthy",
        )

    components["embeddings"] = ComponentStatus(
        name=services.embeddings_provider.model,
        status="unknown",
        message=f"provider={services.embeddings_provider.name}",
    )

    if components["storage"].status == "unhealthy":
        overall = "unhealthy"
    elif any(c.status == "unhealthy" for c in components.values()):
        overall = "degraded"
    else:
        overall = "healthy"

    logger.info(f"Health check: {overall}")
    return HealthStatus(
        status=overall,
        components=components,
        knowledge_items=knowledge_items,
        embeddings=embeddings,
    )
