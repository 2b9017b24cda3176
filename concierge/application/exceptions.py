from __future__ import annotations

from typing import Any


class ConfigurationError(RuntimeError):
    """Raised when required configuration (e.g. the model credential) is missing."""
    pass


class LLMUpstreamError(RuntimeError):
    """Raised when LLM provider fails (timeouts, network errors, service unavailable)."""
    pass


class LLMContractError(RuntimeError):
    """Raised when LLM adapter violates contract (bad format or missing data)."""
    pass


class InvalidTemporalSettings(ValueError):
    """Raised when a timezone or locale cannot produce a trustworthy 'now'."""
    pass


class UnknownToolError(LookupError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class InvalidToolInput(ValueError):
    """Raised when tool-call arguments fail validation. Recoverable: reported back to the model."""

    def __init__(self, tool_name: str, fields: list[str], errors: list[dict[str, Any]] | None = None) -> None:
        self.tool_name = tool_name
        self.fields = list(fields)
        self.errors = list(errors or [])
        joined = ", ".join(self.fields) or "arguments"
        super().__init__(f"Invalid input for {tool_name}: {joined}")

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "invalid_tool_input",
            "message": str(self),
            "fields": self.fields,
            "errors": self.errors,
        }


class TurnInProgressError(RuntimeError):
    """Raised when a new turn is submitted while another one is streaming for the same session."""
    pass
