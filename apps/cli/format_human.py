"""Human-readable summaries for CLI output."""

from __future__ import annotations

from collections import Counter

from contractgen.orchestrator.models import BulkRunReport, GenerationOutcome

_MAX_LISTED = 5


def render_generation_summary(outcome: GenerationOutcome) -> str:
    """Render one-screen summary of a single generation."""

    lines: list[str] = []
    lines.append("contract_summary:")
    lines.append(
        f"provider={outcome.provider_id} template={outcome.template_id} "
        f"status={outcome.status.value}"
    )
    lines.append(f"file={outcome.file_name or 'none'}")

    status_counter: Counter[str] = Counter(entry.status for entry in outcome.entries)
    if status_counter:
        status_text = ", ".join(
            f"{status}={status_counter[status]}" for status in sorted(status_counter)
        )
        lines.append(f"placeholders: {status_text}")
    else:
        lines.append("placeholders: none")

    if outcome.warnings:
        lines.append(f"warnings: {len(outcome.warnings)}")
        for warning in outcome.warnings[:_MAX_LISTED]:
            lines.append(f"- {warning}")
        if len(outcome.warnings) > _MAX_LISTED:
            lines.append(f"- ... {len(outcome.warnings) - _MAX_LISTED} more")
    else:
        lines.append("warnings: none")

    if outcome.error:
        lines.append(f"error: {outcome.error}")
    if outcome.snapshot_reference:
        lines.append(f"archived: {outcome.snapshot_reference}")
    return "\n".join(lines)


def render_bulk_summary(report: BulkRunReport) -> str:
    """Render one-screen summary of a bulk run."""

    lines: list[str] = []
    lines.append("bulk_summary:")
    lines.append(f"run_id={report.run_id} status={report.status.value} total={report.total}")
    lines.append(
        f"success={report.success_count} partial={report.partial_count} "
        f"failed={report.failed_count} cancelled={report.cancelled_count}"
    )
    if report.bundle_name:
        lines.append(f"bundle={report.bundle_name} files={len(report.bundled_files)}")
    else:
        lines.append("bundle=none")

    problems = [outcome for outcome in report.outcomes if outcome.status.value != "SUCCESS"]
    for outcome in problems[:_MAX_LISTED]:
        detail = outcome.error or f"{len(outcome.warnings)} warnings"
        lines.append(
            f"- {outcome.provider_name} ({outcome.provider_id}): {outcome.status.value}, {detail}"
        )
    if len(problems) > _MAX_LISTED:
        lines.append(f"- ... {len(problems) - _MAX_LISTED} more")
    return "\n".join(lines)
