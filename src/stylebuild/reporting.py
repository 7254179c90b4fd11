"""Human-readable build summaries."""

from stylebuild.models import BuildReport, UnitResult, UnitStatus

STATUS_GLYPHS: dict[UnitStatus, str] = {
    UnitStatus.WRITTEN: "✓",
    UnitStatus.UNCHANGED: "=",
    UnitStatus.UP_TO_DATE: "·",
    UnitStatus.FAILED: "✗",
    UnitStatus.CANCELLED: "⊘",
}


def format_size(size_bytes: float) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string like "1.5 KB"
    """
    for unit in ["B", "KB", "MB", "GB"]:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} TB"


def format_unit_line(result: UnitResult) -> str:
    unit = result.unit
    line = f"  {STATUS_GLYPHS[result.status]} {unit.source_id} -> {unit.output_id}"
    if result.status is not UnitStatus.WRITTEN:
        line += f" ({result.status.value})"
    return line


def format_report(report: BuildReport, verbose: bool = False) -> str:
    """Render a build report.

    Args:
        report: Report from ``pipeline.build``
        verbose: List up-to-date and unchanged units too

    Returns:
        Multi-line summary: touched units, warnings, errors, then counts
    """
    lines = []
    for result in report.results:
        quiet = result.status in (UnitStatus.UP_TO_DATE, UnitStatus.UNCHANGED)
        if verbose or not quiet:
            lines.append(format_unit_line(result))

    for warning in report.warnings:
        lines.append(f"  ⚠ {warning}")

    if report.errors:
        lines.append("")
        lines.append(f"Errors ({len(report.errors)}):")
        for error in report.errors:
            lines.append(f"  • {error}")

    total_bytes = sum(len(s.content) for s in report.manifest.sources.values())
    summary = f"{report.compiled} compiled, {report.skipped} skipped, {report.failed} failed"
    if report.cancelled:
        summary += f", {report.cancelled} cancelled"
    summary += (
        f" ({len(report.manifest.sources)} sources, {format_size(total_bytes)},"
        f" {report.elapsed:.2f}s)"
    )
    lines.append(("✅ " if report.ok else "❌ ") + summary)
    return "\n".join(lines)
