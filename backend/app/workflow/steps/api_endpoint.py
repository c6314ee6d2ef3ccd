"""
ApiEndpointStep — call a path of a configured API (main or secondary).

The base URL and bearer token come from the configuration store; the step
supplies ``apiPath`` (with ``{var}`` / ``${var}`` path variables), the
``httpMethod`` (default GET) and ``queryParameterConfig``::

    {"$filter": {"enabled": true, "value": "Name eq '{{vendor}}'"}}

OData system parameters (``$filter``, ``$select`` ...) keep their names
literal and only have spaces and ``#`` escaped; values injected into a
``$filter`` are made OData-safe.  Other parameters are fully encoded.

For methods other than GET the body is ``requestBodyTemplate`` rendered
against the context, with ``requestBodyFieldMappings`` applied on top::

    [{"fieldName": "header.vendor", "type": "variable", "value": "vendorId",
      "dataType": "integer"}]

Responses are parsed leniently: an empty body or non-JSON text is kept as a
small wrapper object instead of failing the step.
"""

from __future__ import annotations

import json
from typing import Any

from app.core.constants import StepType
from app.core.logging import get_logger, mask_secret
from app.workflow.auth import resolve_credentials
from app.workflow.errors import TransportError
from app.workflow.mappings import (
    apply_body_mappings,
    apply_response_mappings,
    collect_response_mappings,
    mapping_update_path,
)
from app.workflow.step import StepExecutor, StepOutcome
from app.workflow.templates import (
    RenderMode,
    encode_uri_component,
    render,
    render_path_variables,
    render_query_value,
    to_json,
)

logger = get_logger(__name__)

ODATA_FILTER_PARAM = "$filter"
ODATA_PARAMS = frozenset({
    "$filter", "$select", "$orderby", "$expand", "$top", "$skip", "$count", "$search",
})


def encode_odata_value(value: str) -> str:
    return value.replace(" ", "%20").replace("#", "%23")


def build_query_string(query_config: dict, data: dict) -> str:
    """Encode the enabled query parameters with their variables substituted."""
    regular: list[str] = []
    odata: list[str] = []
    for name, param in (query_config or {}).items():
        if not isinstance(param, dict) or not param.get("enabled") or not param.get("value"):
            continue
        value = render_query_value(
            str(param["value"]),
            data,
            odata_filter=name.lower() == ODATA_FILTER_PARAM,
        )
        if name.lower() in ODATA_PARAMS:
            odata.append(f"{name}={encode_odata_value(value)}")
        else:
            regular.append(f"{encode_uri_component(name)}={encode_uri_component(value)}")
    return "&".join(regular + odata)


def build_request_body(config: dict, data: dict) -> tuple[str, list[dict[str, Any]]]:
    """Rendered body text plus the body mappings that were applied."""
    template = config.get("requestBodyTemplate") or ""
    mappings = config.get("requestBodyFieldMappings") or []
    body = render(template, data, RenderMode.JSON) if template else ""
    if not mappings or not body.strip():
        return body, []

    try:
        document = json.loads(body)
    except ValueError as exc:
        logger.error("Request body template is not valid JSON, field mappings not applied", error=str(exc))
        return body, []

    applied = apply_body_mappings(document, mappings, data)
    return to_json(document), applied


def parse_response_body(text: str) -> Any:
    if not text.strip():
        return {"success": True, "emptyResponse": True}
    try:
        return json.loads(text)
    except ValueError as exc:
        logger.warning("API endpoint response is not JSON, keeping raw text", error=str(exc))
        return {"rawResponse": text}


class ApiEndpointStep(StepExecutor):
    step_type = StepType.API_ENDPOINT
    description = "Call a configured API endpoint and map values from the response"
    mutates_context = True

    async def execute(self, step, ctx, env) -> StepOutcome:
        config = self._config(step)
        creds = await resolve_credentials(config, env.config_store, env.http)

        api_path = render_path_variables(config.get("apiPath") or "", ctx.data)
        method = (config.get("httpMethod") or "GET").upper()
        query_string = build_query_string(config.get("queryParameterConfig") or {}, ctx.data)
        url = f"{creds.base_url}{api_path}{'?' + query_string if query_string else ''}"

        body, body_mappings = build_request_body(config, ctx.data)
        send_body = method != "GET" and bool(body.strip())

        if not creds.auth_token:
            logger.warning("No auth token found, API call may fail", step_id=step.id, source=creds.source)

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {creds.auth_token}",
        }
        request_attempted = {
            "url": url,
            "method": method,
            "baseUrl": creds.base_url,
            "apiPath": api_path,
            "queryString": query_string,
            "headers": {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {mask_secret(creds.auth_token)}" if creds.auth_token else "MISSING",
            },
            "body": body if send_body else None,
        }

        logger.info("Calling API endpoint", step_id=step.id, method=method, url=url, has_body=send_body)
        response = await self._send(
            env,
            method,
            url,
            headers=headers,
            content=body.encode("utf-8") if send_body else None,
        )

        if not response.is_success:
            raise TransportError(
                f"API endpoint call failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                response_body=response.text,
                output_data={
                    "requestAttempted": request_attempted,
                    "responseStatus": response.status_code,
                    "error": response.text,
                },
            )

        response_data = parse_response_body(response.text)

        mappings = collect_response_mappings(config, legacy_response_key="responsePath")
        applied = apply_response_mappings(response_data, ctx.data, mappings, skip_missing=True)

        output = {
            "url": url,
            "method": method,
            "responseStatus": response.status_code,
            "requestBodyMappings": body_mappings,
            "extractedValues": [
                {"path": a["responsePath"], "updatePath": a["updatePath"], "value": a["value"]}
                for a in applied
            ],
            "updatedPaths": [mapping_update_path(m) for m in mappings],
        }
        return StepOutcome(output=output, response_data=response_data)
