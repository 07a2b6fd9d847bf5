"""Scheduler domain errors."""


class AgentValidationError(ValueError):
    """Agent input failed validation."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []


class AgentNotFoundError(LookupError):
    """No agent with this id belongs to the caller."""

    def __init__(self, agent_id: str):
        super().__init__(f"Agent not found: {agent_id}")
        self.agent_id = agent_id
