"""
RenameFileStep — compute the output filename(s) of the document.

Template fallback chain: step ``filenameTemplate`` → page-group template →
extraction-type template → step ``template`` → ``Remit_{{pdfFilename}}``.
Placeholders that miss in the context are looked up in the last API
response.  Any known extension is stripped, an optional timestamp is
appended, and one variant is produced per enabled ``rename<Type>`` flag.
The primary filename (matching the document's ``formatType`` when that
variant is enabled) becomes ``renamedFilename`` / ``actualFilename``.
"""

from __future__ import annotations

import re

from app.core.constants import DEFAULT_RENAME_TEMPLATE, TIMESTAMP_STRFTIME, FormatType, StepType, TimestampFormat
from app.core.logging import get_logger
from app.workflow.step import StepExecutor, StepOutcome

logger = get_logger(__name__)

_EXTENSION_RE = re.compile(r"\.(pdf|csv|json|xml)$", re.IGNORECASE)

# (extension, config flag, context key) in fallback order
VARIANTS = (
    ("pdf", "renamePdf", "renamedPdfFilename"),
    ("csv", "renameCsv", "renamedCsvFilename"),
    ("json", "renameJson", "renamedJsonFilename"),
    ("xml", "renameXml", "renamedXmlFilename"),
)


def strip_extension(filename: str) -> str:
    return _EXTENSION_RE.sub("", filename)


def format_timestamp(now, timestamp_format: str | None) -> str:
    pattern = TIMESTAMP_STRFTIME.get(timestamp_format or "", TIMESTAMP_STRFTIME[TimestampFormat.YYYYMMDD])
    return now.strftime(pattern)


def select_primary(base: str, renamed: dict[str, str], format_type: str) -> str:
    """Variant matching the format type, else pdf → csv → json → xml, else the base."""
    declared = str(format_type or "").lower()
    if declared in {f.value.lower() for f in FormatType} and declared in renamed:
        return renamed[declared]
    for extension, _, _ in VARIANTS:
        if extension in renamed:
            return renamed[extension]
    return base


class RenameFileStep(StepExecutor):
    step_type = StepType.RENAME_FILE
    description = "Generate renamed filenames from a template"

    async def execute(self, step, ctx, env) -> StepOutcome:
        config = self._config(step)
        template = (
            config.get("filenameTemplate")
            or ctx.data.get("pageGroupFilenameTemplate")
            or ctx.data.get("extractionTypeFilename")
            or config.get("template")
            or DEFAULT_RENAME_TEMPLATE
        )

        fallback = ctx.last_api_response if isinstance(ctx.last_api_response, (dict, list)) else None
        rendered = ctx.render(template, fallback=fallback)
        base = strip_extension(rendered)

        if config.get("appendTimestamp") is True:
            base = f"{base}_{format_timestamp(env.clock(), config.get('timestampFormat'))}"

        renamed: dict[str, str] = {}
        for extension, flag, key in VARIANTS:
            if config.get(flag) is True:
                renamed[extension] = f"{base}.{extension}"
                ctx.data[key] = renamed[extension]

        primary = select_primary(base, renamed, ctx.format_type)
        ctx.data["renamedFilename"] = primary
        ctx.data["actualFilename"] = primary

        logger.info("Filename generated", step_id=step.id, template=template, primary=primary, variants=sorted(renamed))
        return StepOutcome(output={"renamedFilenames": renamed, "primaryFilename": primary, "baseFilename": base})
