"""Exception hierarchy for the reply engine and knowledge loop."""


class ReplyLoopError(Exception):
    """Base class for all engine errors."""


class ProviderError(ReplyLoopError):
    """An embedding or generation backend was unreachable or rejected the request."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class NotFoundError(ReplyLoopError):
    """A referenced knowledge item, message or embedding does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class MalformedModelOutput(ReplyLoopError):
    """Structured model output failed to parse against its schema."""

    def __init__(self, detail: str, raw: str = ""):
        self.detail = detail
        # Keep only an excerpt, model output can be long
        self.raw = raw[:500]
        super().__init__(f"Malformed model output: {detail}")


class ValidationError(ReplyLoopError):
    """A required request field is missing or invalid."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")
