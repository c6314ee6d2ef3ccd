"""
ApiCallStep — call an inline URL and copy values from its JSON response.

Config::

    url                      URL template ({{path}} values are percent-encoded)
    method                   HTTP method, default POST
    headers                  static request headers
    requestBody              body template; {{extractedData}} / {{orders}}
                             splice whole sub-documents as JSON
    escapeSingleQuotesInBody double single quotes in injected values (OData)
    responseDataMappings     [{responsePath, updatePath}, ...]
    responseDataPath/updateJsonPath  legacy single mapping
"""

from __future__ import annotations

import json

from app.core.constants import StepType
from app.core.logging import get_logger
from app.workflow.errors import ConfigurationError, TransportError
from app.workflow.mappings import apply_response_mappings, collect_response_mappings
from app.workflow.step import StepExecutor, StepOutcome
from app.workflow.templates import RenderMode

logger = get_logger(__name__)


class ApiCallStep(StepExecutor):
    step_type = StepType.API_CALL
    description = "Call an HTTP API and map values from the response"
    mutates_context = True

    async def execute(self, step, ctx, env) -> StepOutcome:
        config = self._config(step)
        escape_quotes = bool(config.get("escapeSingleQuotesInBody"))

        url = ctx.render(config.get("url"), RenderMode.URL, escape_quotes=escape_quotes)
        if not url:
            raise ConfigurationError("API call URL is required", step_id=step.id)

        method = (config.get("method") or "POST").upper()
        body = ctx.render(config.get("requestBody"), RenderMode.JSON, escape_quotes=escape_quotes)
        headers = {str(k): str(v) for k, v in (config.get("headers") or {}).items()}

        content = None
        if method != "GET" and body.strip():
            content = body.encode("utf-8")

        logger.info("Making API call", step_id=step.id, method=method, url=url, has_body=content is not None)
        response = await self._send(env, method, url, headers=headers, content=content)

        if not response.is_success:
            raise TransportError(
                f"API call failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                response_body=response.text,
                output_data={
                    "url": url,
                    "method": method,
                    "responseStatus": response.status_code,
                    "error": response.text,
                },
            )

        text = response.text
        if not text.strip():
            raise TransportError("API returned empty response body", status_code=response.status_code)
        try:
            response_data = json.loads(text)
        except ValueError as exc:
            raise TransportError(
                f"API response is not valid JSON: {exc}",
                status_code=response.status_code,
                response_body=text,
            ) from exc

        mappings = collect_response_mappings(config)
        applied = apply_response_mappings(response_data, ctx.data, mappings)
        logger.info("API call succeeded", step_id=step.id, status_code=response.status_code, mapped=len(applied))

        return StepOutcome(output=response_data, response_data=response_data)
