"""Before/after previews for registry mutations.

A preview compares two independent snapshots of a registry document together
with the patch operations that turned one into the other. It reports a risk
summary, a line diff and a key-aware structural diff of the documents, and a
component-level change list, rendered for the terminal, as HTML, or as JSON.
Building a preview never modifies its inputs.
"""

from __future__ import annotations

import difflib
import html
import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..logging import get_logger
from ..registry import write_output
from ..terminal import colorize as _colorize
from .patches import PATCH_OPS, is_valid_patch

RISK_LOW = "low"
RISK_MEDIUM = "medium"
RISK_HIGH = "high"
RISK_ORDER = (RISK_LOW, RISK_MEDIUM, RISK_HIGH)

_HIGH_RISK_OPS = ("remove", "move")
_MEDIUM_PATCH_THRESHOLD = 10
_MEDIUM_COMPONENT_THRESHOLD = 5

TERMINAL_DIFF_LIMIT = 20

_COMPARED_FIELDS = (
    ("props", "props_changed", "Props modified"),
    ("variants", "variants_changed", "Variants modified"),
    ("examples", "examples_changed", "Examples modified"),
)

PREVIEW_EXTENSIONS = {"terminal": ".txt", "html": ".html", "json": ".json"}

_LOGGER = get_logger("mutate.preview")


@dataclass
class PreviewSummary:
    """Patch tally, affected components and risk level."""

    total_changes: int
    components_affected: List[str]
    change_types: Dict[str, int]
    risk_level: str


@dataclass
class DiffRun:
    """Consecutive lines sharing one classification."""

    kind: str  # "added", "removed" or "unchanged"
    lines: List[str]


@dataclass
class StructuralChange:
    """A keyed difference between the two documents, addressed by JSON Pointer."""

    path: str
    kind: str  # "added", "removed" or "changed"
    before: Any = None
    after: Any = None


@dataclass
class DiffStats:
    lines_added: int = 0
    lines_removed: int = 0
    lines_unchanged: int = 0
    total_lines: int = 0


@dataclass
class DocumentDiff:
    runs: List[DiffRun]
    structural: List[StructuralChange]
    stats: DiffStats


@dataclass
class ComponentChange:
    """An added, removed or modified component."""

    type: str
    component: str
    description: str
    changes: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.type,
            "component": self.component,
            "description": self.description,
        }
        if self.changes:
            payload["changes"] = self.changes
        return payload


@dataclass
class DiffPreview:
    """Derived report describing the delta between two registry snapshots."""

    timestamp: str
    summary: PreviewSummary
    diff: DocumentDiff
    component_changes: List[ComponentChange]
    patches: List[Dict[str, Any]]
    formats: Dict[str, str] = field(default_factory=dict)

    def to_dict(self, *, include_formats: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "summary": asdict(self.summary),
            "diff": asdict(self.diff),
            "componentChanges": [change.to_dict() for change in self.component_changes],
            "patches": self.patches,
        }
        if include_formats:
            payload["formats"] = dict(self.formats)
        return payload


# ----------------------------------------------------------------------
# Summary


def summarize_patches(
    patches: Sequence[Mapping[str, Any]],
    original: Mapping[str, Any] | None = None,
) -> PreviewSummary:
    """Tally ``patches`` by op and classify how disruptive they are.

    Entries that are not well-formed operations count towards the total only.
    """
    change_types: Dict[str, int] = {op: 0 for op in PATCH_OPS}
    affected: List[str] = []
    for patch in patches:
        if not is_valid_patch(patch):
            continue
        op = patch["op"]
        change_types[op] += 1
        component = _component_from_pointer(patch.get("path"), original)
        if component is not None and component not in affected:
            affected.append(component)

    return PreviewSummary(
        total_changes=len(patches),
        components_affected=affected,
        change_types=change_types,
        risk_level=assess_risk(change_types, len(patches), len(affected)),
    )


def assess_risk(change_types: Mapping[str, int], total: int, components: int) -> str:
    if any(change_types.get(op, 0) > 0 for op in _HIGH_RISK_OPS):
        return RISK_HIGH
    if total > _MEDIUM_PATCH_THRESHOLD or components > _MEDIUM_COMPONENT_THRESHOLD:
        return RISK_MEDIUM
    return RISK_LOW


def _component_from_pointer(pointer: Any, original: Mapping[str, Any] | None) -> Optional[str]:
    """Best-effort component identity for ``/components/<index>/...`` pointers."""
    if not isinstance(pointer, str):
        return None
    parts = pointer.split("/")
    if len(parts) < 3 or parts[1] != "components" or not parts[2]:
        return None
    segment = parts[2]
    components = original.get("components") if original else None
    if isinstance(components, list) and segment.isdigit() and int(segment) < len(components):
        candidate = components[int(segment)]
        if isinstance(candidate, Mapping) and candidate.get("name"):
            return str(candidate["name"])
    return segment


# ----------------------------------------------------------------------
# Document diff


def serialize_document(document: Any) -> str:
    """Stable JSON rendering used for line diffs."""
    return json.dumps(document, indent=2, sort_keys=True, ensure_ascii=False)


def diff_documents(original: Any, mutated: Any) -> DocumentDiff:
    before = serialize_document(original).splitlines()
    after = serialize_document(mutated).splitlines()
    runs = line_diff(before, after)
    return DocumentDiff(
        runs=runs,
        structural=structural_diff(original, mutated),
        stats=diff_stats(runs),
    )


def line_diff(before: Sequence[str], after: Sequence[str]) -> List[DiffRun]:
    matcher = difflib.SequenceMatcher(None, before, after, autojunk=False)
    runs: List[DiffRun] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            runs.append(DiffRun(kind="unchanged", lines=list(before[i1:i2])))
            continue
        if tag in {"delete", "replace"}:
            runs.append(DiffRun(kind="removed", lines=list(before[i1:i2])))
        if tag in {"insert", "replace"}:
            runs.append(DiffRun(kind="added", lines=list(after[j1:j2])))
    return runs


def diff_stats(runs: Iterable[DiffRun]) -> DiffStats:
    stats = DiffStats()
    for run in runs:
        count = len(run.lines)
        stats.total_lines += count
        if run.kind == "added":
            stats.lines_added += count
        elif run.kind == "removed":
            stats.lines_removed += count
        else:
            stats.lines_unchanged += count
    return stats


def structural_diff(before: Any, after: Any, pointer: str = "") -> List[StructuralChange]:
    """Walk both values in parallel and report keyed differences."""
    if isinstance(before, Mapping) and isinstance(after, Mapping):
        changes: List[StructuralChange] = []
        for key in sorted(set(before) | set(after), key=str):
            child = f"{pointer}/{_escape_pointer(str(key))}"
            if key not in after:
                changes.append(StructuralChange(path=child, kind="removed", before=before[key]))
            elif key not in before:
                changes.append(StructuralChange(path=child, kind="added", after=after[key]))
            else:
                changes.extend(structural_diff(before[key], after[key], child))
        return changes

    if isinstance(before, list) and isinstance(after, list):
        changes = []
        for index in range(max(len(before), len(after))):
            child = f"{pointer}/{index}"
            if index >= len(after):
                changes.append(StructuralChange(path=child, kind="removed", before=before[index]))
            elif index >= len(before):
                changes.append(StructuralChange(path=child, kind="added", after=after[index]))
            else:
                changes.extend(structural_diff(before[index], after[index], child))
        return changes

    if type(before) is not type(after) or before != after:
        return [StructuralChange(path=pointer or "/", kind="changed", before=before, after=after)]
    return []


def _escape_pointer(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")


# ----------------------------------------------------------------------
# Component changes


def analyze_component_changes(
    original: Mapping[str, Any], mutated: Mapping[str, Any]
) -> List[ComponentChange]:
    before = _index_components(original)
    after = _index_components(mutated)
    changes: List[ComponentChange] = []

    for name in after:
        if name not in before:
            changes.append(
                ComponentChange(
                    type="component_added",
                    component=name,
                    description=f'New component "{name}" added',
                )
            )

    for name in before:
        if name not in after:
            changes.append(
                ComponentChange(
                    type="component_removed",
                    component=name,
                    description=f'Component "{name}" removed',
                )
            )

    for name, component in before.items():
        if name not in after:
            continue
        details = compare_component(component, after[name])
        if details:
            changes.append(
                ComponentChange(
                    type="component_modified",
                    component=name,
                    description=f'Component "{name}" modified',
                    changes=details,
                )
            )

    return changes


def compare_component(before: Mapping[str, Any], after: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Compare props, variants and examples independently."""
    details: List[Dict[str, Any]] = []
    for key, change_type, description in _COMPARED_FIELDS:
        if _canonical(before.get(key)) == _canonical(after.get(key)):
            continue
        entry: Dict[str, Any] = {"type": change_type, "description": description}
        if key == "props":
            entry.update(_prop_delta(before.get(key), after.get(key)))
        details.append(entry)
    return details


def _index_components(document: Mapping[str, Any]) -> Dict[str, Mapping[str, Any]]:
    indexed: Dict[str, Mapping[str, Any]] = {}
    for component in document.get("components") or []:
        if isinstance(component, Mapping) and component.get("name") is not None:
            indexed[str(component["name"])] = component
    return indexed


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


def _normalize_props(props: Any) -> Dict[str, Any]:
    if isinstance(props, Mapping):
        return {str(name): config for name, config in props.items()}
    normalised: Dict[str, Any] = {}
    if isinstance(props, list):
        for prop in props:
            if isinstance(prop, Mapping) and prop.get("name") is not None:
                normalised[str(prop["name"])] = prop
    return normalised


def _prop_delta(before: Any, after: Any) -> Dict[str, List[str]]:
    old = _normalize_props(before)
    new = _normalize_props(after)
    return {
        "added": [name for name in new if name not in old],
        "removed": [name for name in old if name not in new],
        "modified": [
            name for name in old if name in new and _canonical(old[name]) != _canonical(new[name])
        ],
    }


# ----------------------------------------------------------------------
# Rendering


def render_terminal(preview: DiffPreview, *, colorize: bool = True) -> str:
    summary = preview.summary
    lines: List[str] = [
        "",
        "REGISTRY MUTATION PREVIEW",
        "═" * 50,
        "",
        "SUMMARY:",
        f"   Total Changes: {summary.total_changes}",
        f"   Components Affected: {len(summary.components_affected)}",
        f"   Risk Level: {_risk_label(summary.risk_level, colorize)}",
        "",
        "CHANGE TYPES:",
    ]
    for op, count in summary.change_types.items():
        if count > 0:
            lines.append(f"   {op.upper()}: {count}")
    lines.append("")

    if preview.component_changes:
        lines.append("COMPONENT CHANGES:")
        for change in preview.component_changes:
            bullet = _colorize("●", _CHANGE_COLORS.get(change.type, "white"), enabled=colorize)
            lines.append(f"   {bullet} {change.description}")
            for detail in change.changes:
                lines.append(f"      - {detail['description']}")
        lines.append("")

    stats = preview.diff.stats
    lines.extend(
        [
            "DIFF STATISTICS:",
            f"   Lines Added: {_colorize(f'+{stats.lines_added}', 'green', enabled=colorize)}",
            f"   Lines Removed: {_colorize(f'-{stats.lines_removed}', 'red', enabled=colorize)}",
            f"   Total Lines: {stats.total_lines}",
            "",
            "DIFF PREVIEW:",
            "-" * 50,
        ]
    )
    body = _terminal_diff_lines(preview.diff.runs, colorize)
    lines.extend(body[:TERMINAL_DIFF_LIMIT])
    if len(body) > TERMINAL_DIFF_LIMIT:
        lines.append(f"... ({len(body) - TERMINAL_DIFF_LIMIT} more lines)")
    lines.append("-" * 50)
    return "\n".join(lines)


_CHANGE_COLORS = {
    "component_added": "green",
    "component_removed": "red",
    "component_modified": "yellow",
}

_RISK_COLORS = {RISK_LOW: "green", RISK_MEDIUM: "yellow", RISK_HIGH: "red"}


def _risk_label(level: str, colorize: bool) -> str:
    return _colorize(level.upper(), _RISK_COLORS.get(level, "white"), enabled=colorize)


def _iter_diff_lines(runs: Iterable[DiffRun]) -> Iterable[tuple[str, str]]:
    for run in runs:
        for line in run.lines:
            if line.strip():
                yield run.kind, line


def _terminal_diff_lines(runs: Iterable[DiffRun], colorize: bool) -> List[str]:
    output: List[str] = []
    for kind, line in _iter_diff_lines(runs):
        if kind == "added":
            output.append(_colorize(f"+ {line}", "green", enabled=colorize))
        elif kind == "removed":
            output.append(_colorize(f"- {line}", "red", enabled=colorize))
        else:
            output.append(f"  {line}")
    return output


_HTML_STYLE = """\
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', monospace; margin: 20px; }
.header { border-bottom: 2px solid #ddd; padding-bottom: 10px; margin-bottom: 20px; }
.summary { background: #f5f5f5; padding: 15px; border-radius: 5px; margin-bottom: 20px; }
.diff-line { margin: 2px 0; padding: 2px 5px; font-family: monospace; white-space: pre; }
.added { background: #d4edda; color: #155724; }
.removed { background: #f8d7da; color: #721c24; }
.risk-high { color: #dc3545; font-weight: bold; }
.risk-medium { color: #fd7e14; font-weight: bold; }
.risk-low { color: #28a745; font-weight: bold; }"""


def render_html(preview: DiffPreview) -> str:
    summary = preview.summary
    esc = html.escape
    change_blocks: List[str] = []
    for change in preview.component_changes:
        items = "".join(f"<li>{esc(detail['description'])}</li>" for detail in change.changes)
        nested = f"<ul>{items}</ul>" if items else ""
        change_blocks.append(
            f'<div class="change {esc(change.type)}"><strong>{esc(change.type)}:</strong> '
            f"{esc(change.description)}{nested}</div>"
        )

    diff_lines: List[str] = []
    for kind, line in _iter_diff_lines(preview.diff.runs):
        if kind == "added":
            diff_lines.append(f'<div class="diff-line added">+ {esc(line)}</div>')
        elif kind == "removed":
            diff_lines.append(f'<div class="diff-line removed">- {esc(line)}</div>')
        else:
            diff_lines.append(f'<div class="diff-line">  {esc(line)}</div>')

    risk = esc(summary.risk_level)
    return "\n".join(
        [
            "<!DOCTYPE html>",
            '<html lang="en">',
            "<head>",
            '<meta charset="UTF-8">',
            '<meta name="viewport" content="width=device-width, initial-scale=1.0">',
            "<title>Registry Mutation Preview</title>",
            f"<style>\n{_HTML_STYLE}\n</style>",
            "</head>",
            "<body>",
            '<div class="header">',
            "<h1>Registry Mutation Preview</h1>",
            f"<p>Generated: {esc(preview.timestamp)}</p>",
            "</div>",
            '<div class="summary">',
            "<h2>Summary</h2>",
            f"<p><strong>Total Changes:</strong> {summary.total_changes}</p>",
            f"<p><strong>Components Affected:</strong> {esc(', '.join(summary.components_affected))}</p>",
            f'<p><strong>Risk Level:</strong> <span class="risk-{risk}">{risk.upper()}</span></p>',
            "</div>",
            '<div class="changes">',
            "<h2>Component Changes</h2>",
            *change_blocks,
            "</div>",
            '<div class="diff">',
            "<h2>Diff Preview</h2>",
            "<pre>",
            *diff_lines,
            "</pre>",
            "</div>",
            "</body>",
            "</html>",
        ]
    )


def render_json(preview: DiffPreview) -> str:
    return json.dumps(preview.to_dict(), indent=2, ensure_ascii=False)


# ----------------------------------------------------------------------
# Entry points


class PreviewBuilder:
    """Builds :class:`DiffPreview` reports with every rendering attached."""

    def __init__(self, *, colorize: bool = True) -> None:
        self.colorize = colorize

    def build(
        self,
        original: Mapping[str, Any],
        mutated: Mapping[str, Any],
        patches: Sequence[Mapping[str, Any]] = (),
        *,
        timestamp: str | None = None,
    ) -> DiffPreview:
        preview = DiffPreview(
            timestamp=timestamp or _utc_now(),
            summary=summarize_patches(patches, original),
            diff=diff_documents(original, mutated),
            component_changes=analyze_component_changes(original, mutated),
            patches=[dict(patch) for patch in patches if isinstance(patch, Mapping)],
        )
        preview.formats = {
            "terminal": render_terminal(preview, colorize=self.colorize),
            "html": render_html(preview),
            "json": render_json(preview),
        }
        _LOGGER.debug(
            "Preview built: %d patch(es), %d component change(s), risk %s",
            preview.summary.total_changes,
            len(preview.component_changes),
            preview.summary.risk_level,
        )
        return preview


def build_preview(
    original: Mapping[str, Any],
    mutated: Mapping[str, Any],
    patches: Sequence[Mapping[str, Any]] = (),
    *,
    colorize: bool = True,
) -> DiffPreview:
    return PreviewBuilder(colorize=colorize).build(original, mutated, patches)


def render_preview(preview: DiffPreview, fmt: str = "terminal", *, colorize: bool = True) -> str:
    """Render ``preview`` in ``fmt``; unknown formats use the terminal view."""
    if fmt == "html":
        return render_html(preview)
    if fmt == "json":
        return render_json(preview)
    return render_terminal(preview, colorize=colorize)


def save_preview(preview: DiffPreview, output_path: str | Path, fmt: str = "terminal") -> Path:
    """Write ``preview`` with the extension matching ``fmt``.

    Terminal output is saved without colour codes.
    """
    extension = PREVIEW_EXTENSIONS.get(fmt, PREVIEW_EXTENSIONS["terminal"])
    target = Path(output_path)
    if target.suffix != extension:
        target = target.with_name(target.name + extension)
    written = write_output(target, render_preview(preview, fmt, colorize=False))
    _LOGGER.info("Diff preview saved to %s", written)
    return written


def _utc_now() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


__all__ = [
    "ComponentChange",
    "DiffPreview",
    "DocumentDiff",
    "PreviewBuilder",
    "PreviewSummary",
    "RISK_ORDER",
    "analyze_component_changes",
    "assess_risk",
    "build_preview",
    "diff_documents",
    "render_html",
    "render_json",
    "render_preview",
    "render_terminal",
    "save_preview",
    "structural_diff",
    "summarize_patches",
]
