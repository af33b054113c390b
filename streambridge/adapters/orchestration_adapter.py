"""
streambridge - Orchestration Adapter

Adapter for the orchestration service of an AI Core deployment.

Requests wrap the chat messages in a templating module config; responses
and stream chunks carry an OpenAI-style result under "final_result".
"""

from typing import Any, Dict, Optional

from .base import AdapterConfig, AdapterResponse, DeltaChunk
from .http import HttpBackendAdapter
from ..core.models import ApiFlavor, ChatRequest, Usage


class OrchestrationAdapter(HttpBackendAdapter):
    """
    Orchestration flavor.

    Supports:
    - Chat completions through the templating module
    - Tool calling and response formats
    - Streaming
    """

    flavor = ApiFlavor.ORCHESTRATION
    provider_name = "aicore"

    def _endpoint(self, config: AdapterConfig) -> str:
        return f"{self._deployment_url(config)}/v2/completion"

    def _build_payload(
        self,
        config: AdapterConfig,
        request: ChatRequest,
        stream: bool
    ) -> Dict[str, Any]:
        prompt: Dict[str, Any] = {"template": request.messages}
        if request.tools:
            prompt["tools"] = request.tools
        if request.response_format:
            prompt["response_format"] = request.response_format

        params = self._model_params(request)
        if request.tool_choice is not None:
            params["tool_choice"] = request.tool_choice

        orchestration_config: Dict[str, Any] = {
            "modules": {
                "prompt_templating": {
                    "prompt": prompt,
                    "model": {"name": config.model_id, "params": params},
                },
            },
        }
        if stream:
            orchestration_config["stream"] = {"enabled": True}

        return {"config": orchestration_config}

    def _parse_response(self, data: Dict[str, Any]) -> AdapterResponse:
        result = data.get("final_result") or {}
        choices = result.get("choices") or [{}]
        choice = choices[0]
        message = choice.get("message") or {}

        return AdapterResponse(
            content=message.get("content"),
            tool_calls=self._tool_calls_from_message(message),
            raw_finish_reason=choice.get("finish_reason"),
            usage=Usage.from_token_usage(result.get("usage")),
            raw_envelope=data,
            request_id=data.get("request_id"),
        )

    def _parse_chunk(self, payload: Dict[str, Any]) -> Optional[DeltaChunk]:
        # Module-only chunks (e.g. templating results) carry no final_result
        return DeltaChunk.from_openai(payload.get("final_result") or {}, raw=payload)
