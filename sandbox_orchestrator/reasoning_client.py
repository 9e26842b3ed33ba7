"""Client for the external reasoning service (OpenAI Responses API)."""

from typing import Any, Dict, List, Optional

import openai
from loguru import logger
from openai import AsyncOpenAI

from .exceptions import ExternalServiceError
from .settings import OPENAI_API_BASE, OPENAI_API_KEY, REASONING_MODEL, REASONING_TIMEOUT


class ReasoningClient:
    """Stateful, turn-based conversation with the reasoning service.

    Both calls return the raw response as a plain dict (``{"id": ..., "output": [...]}``);
    interpreting the output items is left to the agent loop.
    """

    def __init__(
        self,
        api_key: Optional[str] = OPENAI_API_KEY,
        model: str = REASONING_MODEL,
        *,
        base_url: Optional[str] = OPENAI_API_BASE,
        timeout: Optional[float] = REASONING_TIMEOUT,
    ):
        self.model = model
        self.client: Optional[AsyncOpenAI] = None
        if api_key:
            self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=2)

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def create(self, instructions: str, task: str, tools: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Open a conversation with the system instructions and the task."""
        return await self._create(
            input=[
                {"role": "system", "content": instructions},
                {"role": "user", "content": task},
            ],
            tools=tools,
        )

    async def continue_with_tool_outputs(
        self,
        previous_response_id: str,
        outputs: List[Dict[str, str]],
        tools: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Send tool results (``[{"call_id": ..., "output": ...}]``) back into the same conversation."""
        return await self._create(
            input=[
                {"type": "function_call_output", "call_id": item["call_id"], "output": item["output"]}
                for item in outputs
            ],
            tools=tools,
            previous_response_id=previous_response_id,
        )

    async def _create(self, **params: Any) -> Dict[str, Any]:
        if self.client is None:
            raise ExternalServiceError("OPENAI_API_KEY is not configured for the sandbox orchestrator")
        try:
            response = await self.client.responses.create(model=self.model, **params)
        except openai.OpenAIError as exc:
            raise ExternalServiceError(f"Reasoning service call failed: {exc}") from exc
        payload = response.model_dump() if hasattr(response, "model_dump") else dict(response)
        logger.debug(f"[REASONING RESPONSE] id={payload.get('id')} items={len(payload.get('output') or [])}")
        return payload
