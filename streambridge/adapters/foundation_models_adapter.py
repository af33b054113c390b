"""
streambridge - Foundation Models Adapter

Adapter for model deployments that expose an OpenAI-compatible
chat completions endpoint directly.
"""

from typing import Any, Dict, Optional

from .base import AdapterConfig, AdapterResponse, DeltaChunk
from .http import HttpBackendAdapter
from ..core.models import ApiFlavor, ChatRequest, Usage


class FoundationModelsAdapter(HttpBackendAdapter):
    """
    Foundation-models flavor (direct model access).

    Supports:
    - Chat completions
    - Tool/Function calling
    - Streaming with usage in the last chunk
    """

    flavor = ApiFlavor.FOUNDATION_MODELS
    provider_name = "aicore"
    DEFAULT_API_VERSION = "2024-10-21"

    def _endpoint(self, config: AdapterConfig) -> str:
        return f"{self._deployment_url(config)}/chat/completions"

    def _build_payload(
        self,
        config: AdapterConfig,
        request: ChatRequest,
        stream: bool
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"messages": request.messages}
        payload.update(self._model_params(request))

        if request.tools:
            payload["tools"] = request.tools
        if request.tool_choice is not None:
            payload["tool_choice"] = request.tool_choice
        if request.response_format:
            payload["response_format"] = request.response_format

        if stream:
            payload["stream"] = True
            payload["stream_options"] = {"include_usage": True}

        return payload

    def _parse_response(self, data: Dict[str, Any]) -> AdapterResponse:
        choices = data.get("choices") or [{}]
        choice = choices[0]
        message = choice.get("message") or {}

        return AdapterResponse(
            content=message.get("content"),
            tool_calls=self._tool_calls_from_message(message),
            raw_finish_reason=choice.get("finish_reason"),
            usage=Usage.from_token_usage(data.get("usage")),
            raw_envelope=data,
            request_id=data.get("id"),
        )

    def _parse_chunk(self, payload: Dict[str, Any]) -> Optional[DeltaChunk]:
        return DeltaChunk.from_openai(payload)
