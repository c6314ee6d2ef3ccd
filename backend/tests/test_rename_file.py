from app.workflow.steps.rename_file import RenameFileStep, select_primary, strip_extension

from conftest import make_step


def test_strip_extension_and_primary_selection():
    assert strip_extension("invoice.PDF") == "invoice"
    assert strip_extension("archive.tar") == "archive.tar"
    renamed = {"pdf": "a.pdf", "json": "a.json"}
    assert select_primary("a", renamed, "JSON") == "a.json"
    assert select_primary("a", renamed, "CSV") == "a.pdf"
    assert select_primary("a", {}, "JSON") == "a"


async def test_renders_template_with_timestamp_and_variants(ctx, make_env):
    env, _ = make_env()
    ctx.data.update({"invoiceNumber": "INV-9", "formatType": "JSON"})
    step = make_step("rename_file", {
        "filenameTemplate": "Remit_{{invoiceNumber}}.pdf",
        "appendTimestamp": True,
        "timestampFormat": "YYYY-MM-DD",
        "renamePdf": True,
        "renameJson": True,
    })

    outcome = await RenameFileStep().execute(step, ctx, env)

    assert ctx.data["renamedPdfFilename"] == "Remit_INV-9_2024-03-15.pdf"
    assert ctx.data["renamedJsonFilename"] == "Remit_INV-9_2024-03-15.json"
    assert ctx.data["renamedFilename"] == "Remit_INV-9_2024-03-15.json"
    assert ctx.actual_filename == "Remit_INV-9_2024-03-15.json"
    assert outcome.output["baseFilename"] == "Remit_INV-9_2024-03-15"


async def test_default_template_and_api_response_fallback(ctx, make_env):
    env, _ = make_env()
    ctx.data["pdfFilename"] = "scan.pdf"
    step = make_step("rename_file", {"renamePdf": True})

    await RenameFileStep().execute(step, ctx, env)
    assert ctx.data["renamedFilename"] == "Remit_scan.pdf"

    ctx.last_api_response = {"ref": "R-1"}
    ctx.data["extractionTypeFilename"] = "{{ref}}"
    await RenameFileStep().execute(step, ctx, env)
    assert ctx.data["renamedFilename"] == "R-1.pdf"


async def test_no_variants_uses_base_name(ctx, make_env):
    env, _ = make_env()
    step = make_step("rename_file", {"template": "plain"})
    await RenameFileStep().execute(step, ctx, env)
    assert ctx.data["renamedFilename"] == "plain"


async def test_compact_date_timestamp_suffix(ctx, make_env):
    env, _ = make_env()
    ctx.data["invoiceNumber"] = "INV-9"
    step = make_step("rename_file", {
        "filenameTemplate": "Remit_{{invoiceNumber}}",
        "appendTimestamp": True,
        "timestampFormat": "YYYYMMDD",
        "renamePdf": True,
    })

    await RenameFileStep().execute(step, ctx, env)

    assert ctx.data["renamedPdfFilename"] == "Remit_INV-9_20240315.pdf"
    assert ctx.data["renamedFilename"] == "Remit_INV-9_20240315.pdf"
