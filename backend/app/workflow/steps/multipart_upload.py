"""
MultipartFormUploadStep — POST the PDF plus form fields as multipart/form-data.

Config::

    apiSourceType     main | secondary | auth_config | inline (default main)
    secondaryApiId    secondary API to use
    authConfigId      login exchange (overrides the stored token for main/secondary)
    url               full URL template; else base URL + apiPath
    authType          bearer (default) | basic
    additionalHeaders extra headers (Content-Type is always ours)
    filenameTemplate  upload filename; ``.pdf`` is appended when missing
    formParts         [{name, type: text|file, value, contentType, fieldMappings}]
    responseDataMappings  [{responsePath, updatePath}]

The body is assembled by hand so the boundary, part order and part headers
are exactly what the receiving API expects.
"""

from __future__ import annotations

import json
import secrets
import string
from dataclasses import dataclass
from typing import Any

from app.core.constants import DEFAULT_UPLOAD_FILENAME, StepType
from app.core.logging import get_logger
from app.workflow.auth import resolve_credentials
from app.workflow.errors import ConfigurationError, StepExecutionError, TransportError
from app.workflow.mappings import apply_response_mappings, resolve_field_mapping
from app.workflow.pdf_pages import decode_pdf_base64
from app.workflow.paths import get_value_by_path
from app.workflow.step import StepExecutor, StepOutcome
from app.workflow.templates import PLACEHOLDER_RE, RenderMode, stringify_value, to_json

logger = get_logger(__name__)

_BOUNDARY_ALPHABET = string.ascii_lowercase + string.digits
FILE_PLACEHOLDER = "[FILE DATA]"


@dataclass
class FormPart:
    name: str
    type: str                       # "text" | "file"
    value: str = ""
    content_type: str | None = None

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "value": self.value if self.type == "text" else FILE_PLACEHOLDER,
            "contentType": self.content_type,
        }


def generate_boundary() -> str:
    return "----WebKitFormBoundary" + "".join(secrets.choice(_BOUNDARY_ALPHABET) for _ in range(16))


def build_multipart_body(parts: list[FormPart], boundary: str, file_data: bytes | None, filename: str) -> bytes:
    chunks: list[bytes] = []
    for part in parts:
        chunks.append(f"--{boundary}\r\n".encode())
        if part.type == "file":
            chunks.append(
                f'Content-Disposition: form-data; name="{part.name}"; filename="{filename}"\r\n'.encode()
            )
            chunks.append(b"Content-Type: application/pdf\r\n\r\n")
            if file_data:
                chunks.append(file_data)
            chunks.append(b"\r\n")
        else:
            chunks.append(f'Content-Disposition: form-data; name="{part.name}"\r\n'.encode())
            if part.content_type:
                chunks.append(f"Content-Type: {part.content_type}\r\n".encode())
            chunks.append(b"\r\n")
            chunks.append(part.value.encode("utf-8"))
            chunks.append(b"\r\n")
    chunks.append(f"--{boundary}--\r\n".encode())
    return b"".join(chunks)


def _escape_text(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _set_json_field(document: dict, field_name: str, value: Any) -> None:
    """Replace a (possibly dotted) property; unreachable paths land on the root."""
    if "." in field_name:
        *parents, last = field_name.split(".")
        current: Any = document
        for key in parents:
            if isinstance(current, list) and key.isdigit():
                index = int(key)
                current = current[index] if index < len(current) else None
            elif isinstance(current, dict):
                current = current.get(key)
            else:
                current = None
            if current is None:
                break
        if isinstance(current, dict):
            current[last] = value
            return
        if isinstance(current, list) and last.isdigit() and int(last) < len(current):
            current[int(last)] = value
            return
        logger.warning("Could not resolve nested field path, setting on root", field_name=field_name)
    document[field_name] = value


def render_text_part(part: dict[str, Any], data: dict[str, Any]) -> str:
    """
    Produce the value of a text part.

    With ``fieldMappings`` a JSON template has its properties replaced
    (dotted names walk nested objects); a non-JSON template has
    ``{{fieldName}}`` replaced.  Without mappings, ``{{path}}`` placeholders
    are substituted from the context.
    """
    template = part.get("value") or ""
    mappings = part.get("fieldMappings") or []

    if not mappings:
        def replace(match) -> str:
            value = get_value_by_path(data, match.group(1))
            if value is None:
                return match.group(0)
            if isinstance(value, (dict, list)):
                return to_json(value)
            return _escape_text(stringify_value(value))

        return PLACEHOLDER_RE.sub(replace, template)

    try:
        document = json.loads(template)
    except ValueError:
        document = None
    if not isinstance(document, dict):
        document = None

    text = template
    for mapping in mappings:
        field_name = mapping.get("fieldName")
        if not field_name:
            continue
        value = resolve_field_mapping(mapping, data)
        if value is None:
            continue
        if document is not None:
            _set_json_field(document, field_name, value)
        else:
            replacement = _escape_text(value) if isinstance(value, str) else stringify_value(value)
            text = text.replace(f"{{{{{field_name}}}}}", replacement)

    return to_json(document) if document is not None else text


class MultipartFormUploadStep(StepExecutor):
    step_type = StepType.MULTIPART_FORM_UPLOAD
    description = "Upload the PDF and form fields as multipart/form-data"
    mutates_context = True

    async def execute(self, step, ctx, env) -> StepOutcome:
        config = self._config(step)
        creds = await resolve_credentials(config, env.config_store, env.http)

        url_template = config.get("url") or ""
        if not url_template and creds.base_url:
            url_template = creds.base_url + (config.get("apiPath") or "")
        url = ctx.render(url_template, RenderMode.URL)
        if not url:
            raise ConfigurationError("Multipart form upload URL is required", step_id=step.id)

        parts = []
        for raw_part in config.get("formParts") or []:
            if raw_part.get("type") == "file":
                parts.append(FormPart(name=raw_part.get("name", ""), type="file"))
            else:
                parts.append(FormPart(
                    name=raw_part.get("name", ""),
                    type="text",
                    value=render_text_part(raw_part, ctx.data),
                    content_type=raw_part.get("contentType"),
                ))

        filename = self._filename(config, ctx)
        file_data = None
        if ctx.data.get("pdfBase64"):
            try:
                file_data = decode_pdf_base64(ctx.data["pdfBase64"])
            except ValueError as exc:
                raise StepExecutionError(f"PDF content is not valid base64: {exc}", step_id=step.id) from exc
        else:
            logger.warning("No PDF data available in context", step_id=step.id)

        boundary = generate_boundary()
        body = build_multipart_body(parts, boundary, file_data, filename)

        headers = {"Content-Type": f"multipart/form-data; boundary={boundary}"}
        if creds.auth_token:
            scheme = "Basic" if config.get("authType") == "basic" else "Bearer"
            headers["Authorization"] = f"{scheme} {creds.auth_token}"
        for key, value in (config.get("additionalHeaders") or {}).items():
            if key.lower() != "content-type":
                headers[key] = str(value)

        request_summary = {
            "url": url,
            "filename": filename,
            "formParts": [p.describe() for p in parts],
            "fileSize": len(file_data) if file_data else 0,
            "headers": list(headers.keys()),
        }

        logger.info("Sending multipart form", step_id=step.id, url=url, parts=len(parts), size=len(body))
        response = await self._send(env, "POST", url, headers=headers, content=body)

        if not response.is_success:
            raise TransportError(
                f"Multipart form upload failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                response_body=response.text,
                output_data={
                    "request": request_summary,
                    "response": {"status": response.status_code, "error": response.text},
                },
            )

        response_data: Any = {"success": True}
        if response.text.strip():
            try:
                response_data = json.loads(response.text)
            except ValueError:
                response_data = {"success": True, "rawResponse": response.text}

        apply_response_mappings(
            response_data,
            ctx.data,
            config.get("responseDataMappings") or [],
            skip_missing=True,
        )

        return StepOutcome(output={
            "request": request_summary,
            "response": {"status": response.status_code, "data": response_data},
        })

    @staticmethod
    def _filename(config, ctx) -> str:
        data = ctx.data
        filename = data.get("pdfFilename") or data.get("originalPdfFilename") or DEFAULT_UPLOAD_FILENAME
        if config.get("filenameTemplate"):
            filename = ctx.render(config["filenameTemplate"])
        if not filename.lower().endswith(".pdf"):
            filename = f"{filename}.pdf"
        return filename
