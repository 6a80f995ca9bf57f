"""Error types raised by the design agent."""


class DesignAgentError(Exception):
    """Base class for all design agent errors."""


class ToolError(DesignAgentError):
    """A tool could not apply its effect (unknown screen, missing find string, bad theme).

    The message is shown to the model as the tool result; the loop keeps going.
    """


class AgentError(DesignAgentError):
    """Raised when an inference call fails. Aborts the whole request."""

    def __init__(self, reason: str, step: int | None = None) -> None:
        prefix = f"Model request failed at step {step}" if step is not None else "Model request failed"
        super().__init__(f"{prefix}: {reason}")
        self.step = step


class ConfigError(DesignAgentError):
    """Raised when the model provider cannot be configured."""


class DeadlineExceeded(DesignAgentError):
    """A bounded await ran past the request's wall-clock budget."""
