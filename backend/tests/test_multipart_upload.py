import base64
import json

import httpx
import pytest

from app.workflow.config_store import ApiCredentials
from app.workflow.errors import ConfigurationError, TransportError
from app.workflow.steps.multipart_upload import (
    FormPart,
    MultipartFormUploadStep,
    build_multipart_body,
    generate_boundary,
    render_text_part,
)

from conftest import json_response, make_pdf_base64, make_step


def test_boundary_shape():
    boundary = generate_boundary()
    assert boundary.startswith("----WebKitFormBoundary")
    assert len(boundary) == len("----WebKitFormBoundary") + 16


def test_body_layout():
    parts = [FormPart(name="meta", type="text", value='{"a":1}', content_type="application/json"),
             FormPart(name="file", type="file")]
    body = build_multipart_body(parts, "B", b"%PDF", "doc.pdf")
    assert body == (
        b'--B\r\nContent-Disposition: form-data; name="meta"\r\nContent-Type: application/json\r\n\r\n{"a":1}\r\n'
        b'--B\r\nContent-Disposition: form-data; name="file"; filename="doc.pdf"\r\n'
        b"Content-Type: application/pdf\r\n\r\n%PDF\r\n--B--\r\n"
    )


def test_text_part_placeholders():
    data = {"name": 'Say "hi"', "items": [1, 2]}
    assert render_text_part({"value": "{{name}}|{{items}}|{{nope}}"}, data) == 'Say \\"hi\\"|[1,2]|{{nope}}'


def test_text_part_json_field_mappings():
    part = {
        "value": '{"invoice": {"number": ""}, "amount": 0}',
        "fieldMappings": [
            {"fieldName": "invoice.number", "type": "variable", "value": "{{inv}}"},
            {"fieldName": "amount", "type": "variable", "value": "{{total}}", "dataType": "number"},
            {"fieldName": "missing.path", "type": "hardcoded", "value": "x"},
        ],
    }
    rendered = json.loads(render_text_part(part, {"inv": "INV-3", "total": "99.5"}))
    assert rendered == {"invoice": {"number": "INV-3"}, "amount": 99.5, "missing.path": "x"}


def test_text_part_plain_field_mappings():
    part = {"value": "Ref {{ref}}", "fieldMappings": [{"fieldName": "ref", "type": "hardcoded", "value": "R1"}]}
    assert render_text_part(part, {}) == "Ref R1"


async def test_upload_sends_file_and_maps_response(ctx, make_env, store):
    store.main = ApiCredentials(base_url="https://dms.test", auth_token="tok")
    pdf = make_pdf_base64()
    ctx.data.update({"pdfBase64": pdf, "pdfFilename": "scan", "docType": "invoice"})
    env, transport = make_env(lambda request: json_response({"document": {"id": "D-5", "state": "ready"}}))
    step = make_step("multipart_form_upload", {
        "apiPath": "/upload",
        "additionalHeaders": {"X-Tenant": "t1", "Content-Type": "text/plain"},
        "formParts": [
            {"name": "type", "type": "text", "value": "{{docType}}"},
            {"name": "file", "type": "file"},
        ],
        "responseDataMappings": [
            {"responsePath": "document.id", "updatePath": "documentId"},
            {"responsePath": "document.state", "updatePath": "status"},
            {"responsePath": "document.absent", "updatePath": "docType"},
        ],
    })

    outcome = await MultipartFormUploadStep().execute(step, ctx, env)

    request = transport.requests[0]
    content_type = request.headers["Content-Type"]
    assert content_type.startswith("multipart/form-data; boundary=----WebKitFormBoundary")
    assert request.headers["Authorization"] == "Bearer tok"
    assert request.headers["X-Tenant"] == "t1"
    assert b'filename="scan.pdf"' in request.content
    assert base64.b64decode(pdf) in request.content
    assert ctx.data["documentId"] == "D-5"
    assert ctx.data["status"] == "ready"
    assert ctx.data["docType"] == "invoice"
    assert outcome.output["request"]["formParts"][1]["value"] == "[FILE DATA]"
    assert outcome.output["response"]["status"] == 200


async def test_upload_basic_auth_and_non_json_response(ctx, make_env):
    env, transport = make_env(lambda request: httpx.Response(201, text="accepted"))
    step = make_step("multipart_form_upload", {
        "apiSourceType": "inline",
        "url": "https://dms.test/in",
        "authToken": "dXNlcjpwYXNz",
        "authType": "basic",
        "filenameTemplate": "{{name}}",
    })
    ctx.data["name"] = "report"

    outcome = await MultipartFormUploadStep().execute(step, ctx, env)

    assert transport.requests[0].headers["Authorization"] == "Basic dXNlcjpwYXNz"
    assert outcome.output["request"]["filename"] == "report.pdf"
    assert outcome.output["response"]["data"] == {"success": True, "rawResponse": "accepted"}


async def test_upload_failure_carries_response(ctx, make_env):
    env, _ = make_env(lambda request: httpx.Response(500, text="boom"))
    step = make_step("multipart_form_upload", {"apiSourceType": "inline", "url": "https://dms.test/in"})
    with pytest.raises(TransportError) as exc_info:
        await MultipartFormUploadStep().execute(step, ctx, env)
    assert exc_info.value.output_data["response"] == {"status": 500, "error": "boom"}


async def test_upload_without_url_is_configuration_error(ctx, make_env):
    env, _ = make_env()
    with pytest.raises(ConfigurationError):
        await MultipartFormUploadStep().execute(make_step("multipart_form_upload", {"apiSourceType": "inline"}), ctx, env)


def test_hardcoded_mapping_replaces_json_property():
    part = {
        "value": '{"status":"pending"}',
        "fieldMappings": [{"fieldName": "status", "type": "hardcoded", "value": "ready"}],
    }
    assert json.loads(render_text_part(part, {})) == {"status": "ready"}
