"""
E2K Structural Diff

Compares two E2K texts record by record and classifies each change as an
add, remove or modify in a material, section, member, load, analysis,
design or general category.

Changes are ordered deterministically: adds and modifies in the order their
records appear in the newer text, then removals in the order they appeared
in the older text.
"""

import difflib
import logging
from typing import Optional, Union

from .e2k_parser import E2KRecord, decode_e2k, parse_e2k
from .models import ChangeKind, E2KChange, E2KDiffResult

logger = logging.getLogger(__name__)

# Readable labels for common keywords
KEYWORD_LABELS = {
    "MATERIAL": "Material",
    "FRAMESECTION": "Frame section",
    "SHELLPROP": "Shell property",
    "STORY": "Story",
    "GRID": "Grid line",
    "POINT": "Point",
    "LINE": "Line object",
    "AREA": "Area object",
    "POINTASSIGN": "Point assignment",
    "LINEASSIGN": "Line assignment",
    "AREAASSIGN": "Area assignment",
    "LOADPATTERN": "Load pattern",
    "LOADCASE": "Load case",
    "COMBO": "Load combination",
    "POINTLOAD": "Point load",
    "LINELOAD": "Line load",
    "AREALOAD": "Area load",
}


def _label(record: E2KRecord) -> str:
    label = KEYWORD_LABELS.get(record.keyword, record.keyword.capitalize())
    if not record.names:
        return label
    text = f'{label} "{record.names[0]}"'
    for extra in record.names[1:]:
        text += f' at "{extra}"'
    return text


def _format_values(values: Optional[list[str]]) -> Optional[str]:
    if values is None:
        return None
    return ", ".join(values)


def _summary(record: E2KRecord) -> str:
    return " ".join(f"{k}={_format_values(v)}" for k, v in record.fields.items())


def _field_changes(old: E2KRecord, new: E2KRecord) -> list[tuple[str, Optional[str], Optional[str]]]:
    """Fields whose normalized values differ, in old-then-new key order."""
    old_norm = old.normalized()
    new_norm = new.normalized()
    keys = list(old.fields)
    keys += [k for k in new.fields if k not in old.fields]
    changed = []
    for key in keys:
        if old_norm.get(key) != new_norm.get(key):
            changed.append(
                (key, _format_values(old.fields.get(key)), _format_values(new.fields.get(key)))
            )
    return changed


def _modify_change(old: E2KRecord, new: E2KRecord, fields: list) -> E2KChange:
    if len(fields) == 1:
        key, old_value, new_value = fields[0]
        description = f"{_label(new)}: {key} changed"
    else:
        description = f"{_label(new)} modified ({', '.join(f[0] for f in fields)})"
        old_value = "; ".join(f"{k}={v if v is not None else '(none)'}" for k, v, _ in fields)
        new_value = "; ".join(f"{k}={v if v is not None else '(none)'}" for k, _, v in fields)
    return E2KChange(
        change_type=ChangeKind.MODIFY,
        category=new.category,
        identity=new.identity,
        description=description,
        line_number=new.line_number,
        old_value=old_value,
        new_value=new_value,
    )


def unified_diff(old_text: str, new_text: str, old_label: str, new_label: str) -> str:
    """Line-oriented unified diff of two texts."""
    return "\n".join(
        difflib.unified_diff(
            old_text.splitlines(),
            new_text.splitlines(),
            fromfile=old_label,
            tofile=new_label,
            lineterm="",
        )
    )


def diff_e2k(
    old: Union[bytes, str],
    new: Union[bytes, str],
    old_label: str = "a.e2k",
    new_label: str = "b.e2k",
) -> E2KDiffResult:
    """
    Structurally compare two E2K exports.

    Args:
        old: Older E2K content (bytes or text)
        new: Newer E2K content (bytes or text)
        old_label: Name of the older side in the raw diff header
        new_label: Name of the newer side in the raw diff header

    Returns:
        E2KDiffResult with classified changes and the raw unified diff

    Raises:
        ParseError: If either input is not valid E2K text

    Example:
        >>> a = '$ FRAME SECTIONS\\n  FRAMESECTION "COL1" SHAPE "W14X90"\\n'
        >>> b = '$ FRAME SECTIONS\\n  FRAMESECTION "COL1" SHAPE "W14X120"\\n'
        >>> result = diff_e2k(a, b)
        >>> result.modified, result.changes[0].new_value
        (1, 'W14X120')
    """
    old_text = decode_e2k(old)
    new_text = decode_e2k(new)
    old_doc = parse_e2k(old_text)
    new_doc = parse_e2k(new_text)

    changes: list[E2KChange] = []
    for key, record in new_doc.records.items():
        previous = old_doc.records.get(key)
        if previous is None:
            changes.append(
                E2KChange(
                    change_type=ChangeKind.ADD,
                    category=record.category,
                    identity=record.identity,
                    description=f"{_label(record)} added",
                    line_number=record.line_number,
                    new_value=_summary(record),
                )
            )
            continue
        fields = _field_changes(previous, record)
        if fields:
            changes.append(_modify_change(previous, record, fields))

    for key, record in old_doc.records.items():
        if key not in new_doc.records:
            changes.append(
                E2KChange(
                    change_type=ChangeKind.REMOVE,
                    category=record.category,
                    identity=record.identity,
                    description=f"{_label(record)} removed",
                    line_number=record.line_number,
                    old_value=_summary(record),
                )
            )

    kinds = [c.change_type for c in changes]
    result = E2KDiffResult(
        added=kinds.count(ChangeKind.ADD),
        removed=kinds.count(ChangeKind.REMOVE),
        modified=kinds.count(ChangeKind.MODIFY),
        changes=changes,
        raw_diff=unified_diff(old_text, new_text, old_label, new_label),
    )
    logger.info(
        "Diffed E2K | added=%d removed=%d modified=%d",
        result.added,
        result.removed,
        result.modified,
    )
    return result
