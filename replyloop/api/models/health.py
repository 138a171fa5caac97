"""Health check models."""

from typing import Literal

from pydantic import BaseModel


class ComponentStatus(BaseModel):
    name: str
    status: Literal["healthy", "unhealthy", "unknown"]
    message: str = ""


class HealthStatus(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    components: dict[str, ComponentStatus]
    knowledge_items: int = 0
    embeddings: int = 0
    version: str = "0.1.0"
