from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Sequence

from concierge.application.dto.stream_events import ModelEvent
from concierge.domain.entities.transcript import ConversationMessage


class LLMPort(ABC):
    @abstractmethod
    def stream_step(
        self,
        system_prompt: str,
        messages: Sequence[ConversationMessage],
        tools: Sequence[dict[str, Any]],
        temperature: float,
    ) -> AsyncIterator[ModelEvent]:
        """
        Stream one model completion.

        Requirements:
        - Yield TextDelta for text tokens as they arrive
        - For every tool call: ToolCallStart once, any number of ToolCallArgsDelta,
          then exactly one ToolCallReady with the complete raw argument text
        - Finish with exactly one StepFinish carrying token usage
        - Tool invocations in `messages` that already hold a result must be sent
          back to the provider as tool results

        Args:
            system_prompt: Instructions for this request (includes temporal context)
            messages: Transcript so far, oldest first
            tools: OpenAI-style function schemas from the tool registry
            temperature: Sampling temperature

        Raises:
            LLMUpstreamError: networking/provider failures
            LLMContractError: malformed provider output
        """
        raise NotImplementedError
