"""
Gemini client wrapper: one outbound model call with one credential.

Validates the structured input against the template before anything is sent,
runs the tool-call loop, validates the output, and translates provider
failures into QuotaExhaustedError, EmptyOutputError or TransportError.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Sequence, Union

import httpx
from google import genai
from google.genai import errors, types
from pydantic import BaseModel, ValidationError

from cybermozhi.core.config import Settings
from cybermozhi.core.exceptions import EmptyOutputError, InvalidInputError, QuotaExhaustedError, TransportError
from cybermozhi.llm.invoker import ToolBinding
from cybermozhi.llm.templates import PromptTemplate, get_template
from cybermozhi.utils.logging import mask_key

logger = logging.getLogger("ModelGateway")

QUOTA_MARKERS = ("quota", "resource exhausted", "resource has been exhausted", "rate limit", "too many requests")


def is_quota_error(exc: Exception) -> bool:
    """Provider signal that this credential, not the request, is the problem."""
    if getattr(exc, "code", None) == 429:
        return True
    status = str(getattr(exc, "status", "") or "").upper()
    if status == "RESOURCE_EXHAUSTED":
        return True
    text = f"{getattr(exc, 'message', '') or ''} {exc}".lower()
    return any(marker in text for marker in QUOTA_MARKERS)


@dataclass(frozen=True)
class PreparedCall:
    template: PromptTemplate
    payload: BaseModel
    prompt: str


class ModelGateway:
    def __init__(self, settings: Settings, client_factory: Callable[..., Any] = genai.Client) -> None:
        self.settings = settings
        self._client_factory = client_factory
        self._clients: Dict[str, Any] = {}

    def prepare(self, template_id: str, data: Union[BaseModel, Dict[str, Any]]) -> PreparedCall:
        """Validate the input locally. Raises InvalidInputError; nothing reaches the provider."""
        template = get_template(template_id)
        try:
            if isinstance(data, template.input_model):
                payload = data
            elif isinstance(data, BaseModel):
                payload = template.input_model.model_validate(data.model_dump())
            else:
                payload = template.input_model.model_validate(data)
        except ValidationError as e:
            raise InvalidInputError(template_id, e.errors()) from e
        return PreparedCall(template=template, payload=payload, prompt=template.render(payload))

    async def call(self, api_key: str, prepared: PreparedCall, tools: Sequence[ToolBinding] = ()) -> BaseModel:
        template = prepared.template
        client = self._client_for(api_key)
        config = self._build_config(template, tools)
        tool_map = {tool.name: tool for tool in tools}
        contents: list = [types.Content(role="user", parts=[types.Part.from_text(text=prepared.prompt)])]

        logger.info(f"Invoking template '{template.id}' v{template.version} with key {mask_key(api_key)}")
        for _ in range(self.settings.llm_max_tool_rounds + 1):
            response = await self._generate(client, api_key, template, contents, config)
            function_calls = getattr(response, "function_calls", None) or []
            if not function_calls:
                return self._parse_output(template, response)
            if not tool_map:
                raise EmptyOutputError(f"Model requested tools for '{template.id}' but none are bound.")

            contents.append(response.candidates[0].content)
            parts = [await self._run_tool(function_call, tool_map) for function_call in function_calls]
            contents.append(types.Content(role="tool", parts=parts))

        raise EmptyOutputError(
            f"Model kept calling tools for '{template.id}' after {self.settings.llm_max_tool_rounds} round(s)."
        )

    def _client_for(self, api_key: str) -> Any:
        client = self._clients.get(api_key)
        if client is None:
            client = self._client_factory(api_key=api_key)
            self._clients[api_key] = client
        return client

    def _build_config(self, template: PromptTemplate, tools: Sequence[ToolBinding]) -> types.GenerateContentConfig:
        temperature = template.temperature if template.temperature is not None else self.settings.llm_temperature
        config_kwargs: Dict[str, Any] = {
            "system_instruction": template.system_instruction,
            "max_output_tokens": self.settings.llm_max_output_tokens,
            "temperature": temperature,
            "thinking_config": types.ThinkingConfig(thinking_budget=0),
            "safety_settings": [
                types.SafetySetting(category=category, threshold=threshold)
                for category, threshold in template.safety_settings
            ],
        }
        if template.json_output:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_schema"] = template.output_model
        if tools:
            config_kwargs["tools"] = [
                types.Tool(
                    function_declarations=[
                        types.FunctionDeclaration(
                            name=tool.name,
                            description=tool.description,
                            parameters=types.Schema.model_validate(tool.parameters),
                        )
                        for tool in tools
                    ]
                )
            ]
            config_kwargs["automatic_function_calling"] = types.AutomaticFunctionCallingConfig(disable=True)
        return types.GenerateContentConfig(**config_kwargs)

    async def _generate(self, client: Any, api_key: str, template: PromptTemplate, contents: list, config: Any) -> Any:
        try:
            return await client.aio.models.generate_content(
                model=template.model or self.settings.gemini_model,
                contents=contents,
                config=config,
            )
        except errors.APIError as e:
            if is_quota_error(e):
                raise QuotaExhaustedError(mask_key(api_key), e.message or str(e)) from e
            logger.error(f"Gemini API error for '{template.id}' with key {mask_key(api_key)}: {e.code} {e.status} {e.message}")
            raise TransportError(f"{e.code} {e.status or ''}: {e.message or e}".strip(), status_code=e.code) from e
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.error(f"Network error calling Gemini for '{template.id}': {e!r}")
            raise TransportError(f"Network error contacting the model provider: {e!r}") from e

    def _parse_output(self, template: PromptTemplate, response: Any) -> BaseModel:
        prompt_feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(prompt_feedback, "block_reason", None) if prompt_feedback else None
        if block_reason:
            raise EmptyOutputError(f"Prompt blocked by the provider ({block_reason}).")

        text = getattr(response, "text", None)
        if not text or not text.strip():
            raise EmptyOutputError(
                f"The model returned an empty response for '{template.id}'. This may be due to the safety policy."
            )

        try:
            if template.json_output:
                return template.output_model.model_validate_json(_strip_code_fence(text))
            return template.output_model.model_validate({template.text_field: text.strip()})
        except ValidationError as e:
            logger.warning(f"Output of '{template.id}' did not match {template.output_model.__name__}: {e}")
            raise EmptyOutputError(f"The model's output for '{template.id}' did not match the expected shape.") from e

    async def _run_tool(self, function_call: Any, tool_map: Dict[str, ToolBinding]) -> types.Part:
        name = function_call.name
        tool = tool_map.get(name)
        if tool is None:
            logger.warning(f"Model called unknown tool '{name}'")
            return types.Part.from_function_response(name=name, response={"error": f"Unknown tool '{name}'."})

        try:
            arguments = tool.input_model.model_validate(dict(function_call.args or {}))
        except ValidationError as e:
            logger.warning(f"Rejected arguments for tool '{name}': {e}")
            return types.Part.from_function_response(
                name=name, response={"error": f"Invalid arguments: {_describe_errors(e)}"}
            )

        logger.info(f"Running tool '{name}'")
        result = await tool.handler(arguments)
        output = result if isinstance(result, tool.output_model) else tool.output_model.model_validate(result)
        return types.Part.from_function_response(name=name, response=output.model_dump(by_alias=True))


def _strip_code_fence(text: str) -> str:
    match = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
    return (match.group(1) if match else text).strip()


def _describe_errors(error: ValidationError) -> str:
    return "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors())

