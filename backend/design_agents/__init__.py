"""Sleek design agent: streaming tool-call loop over a canvas of screens."""

from design_agents.cancellation import CancellationToken
from design_agents.errors import AgentError, ConfigError, DeadlineExceeded, DesignAgentError, ToolError
from design_agents.events import AgentEvent, EventCallback
from design_agents.executor import MAX_STEPS, AgentRequest, AgentResult, run_agent
from design_agents.handlers import ToolRegistry
from design_agents.images import ImageResolver
from design_agents.providers import create_model

__all__ = [
    "MAX_STEPS",
    "AgentError",
    "AgentEvent",
    "AgentRequest",
    "AgentResult",
    "CancellationToken",
    "ConfigError",
    "DeadlineExceeded",
    "DesignAgentError",
    "EventCallback",
    "ImageResolver",
    "ToolError",
    "ToolRegistry",
    "create_model",
    "run_agent",
]
