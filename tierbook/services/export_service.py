import csv
import io
import logging
import re

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from tierbook.core.field_types import FieldType
from tierbook.models.tier import Tier
from tierbook.services import tier_tree
from tierbook.services.aggregation import TreeSnapshot
from tierbook.services.helpers.scoped_queries import get_or_raise

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="FFCCCC", end_color="FFCCCC", fill_type="solid")
HEADER_FONT = Font(bold=True, size=11)
NOTE_FILL = PatternFill(start_color="FFFF00", end_color="FFFF00", fill_type="solid")
NOTE_FONT = Font(bold=True)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

NAME_HEADER = "Tier Name"
PATH_HEADER = "Hierarchy Path"
PATH_SEPARATOR = " > "
PARENT_NOTE = (
    "NOTE: Please do not edit data in this sheet. "
    "Values are calculated from child sheets."
)

# Sheet layout: (header row, data row)
LEAF_ROWS = (1, 2)
PARENT_ROWS = (3, 4)

_MAX_TITLE = 31
_INVALID_TITLE_CHARS = re.compile(r"[\[\]:*?/\\]")
_FORMULA_PREFIXES = ("=", "+", "-", "@")


def sheet_title(position: int, name: str, used: set[str]) -> str:
    """``"<n>. <name>"`` within Excel's 31-char limit, unique case-insensitively."""
    base = _INVALID_TITLE_CHARS.sub("_", f"{position}. {name}")[:_MAX_TITLE]
    title = base
    n = 2
    while title.lower() in used:
        suffix = f" ({n})"
        title = base[: _MAX_TITLE - len(suffix)] + suffix
        n += 1
    used.add(title.lower())
    return title


def _quote_sheet(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def _text_cell(ws, row: int, col: int, value):
    """Write user text as a plain string cell, never as a formula."""
    cell = ws.cell(row=row, column=col, value=value)
    if isinstance(value, str):
        cell.data_type = "s"
    return cell


def _csv_safe(value):
    """Prefix text that a spreadsheet would evaluate as a formula."""
    if isinstance(value, str) and value[:1] in _FORMULA_PREFIXES:
        return "'" + value
    return value


def _columns(snapshot: TreeSnapshot, tier_id: int) -> list[tuple[str, bool, object]]:
    """``(header, numeric, field or None)`` for each value column of a tier's sheet.

    Leaves list their own fields. Parents list their own fields followed by
    every numeric field name found below them, so each child total has a
    column to land in.
    """
    own = [
        (f.field_name, f.field_type == FieldType.NUMBER.value, f)
        for f in snapshot.fields_by_tier.get(tier_id, [])
    ]
    if snapshot.is_leaf(tier_id):
        return own
    seen = {name for name, _, _ in own}
    extra = []
    for tier, _, _ in tier_tree.walk_pre_order(snapshot.tiers, tier_id):
        for f in snapshot.fields_by_tier.get(tier.id, []):
            if f.field_type == FieldType.NUMBER.value and f.field_name not in seen:
                seen.add(f.field_name)
                extra.append((f.field_name, True, None))
    return own + extra


def _style_header(ws, row: int, col_count: int) -> None:
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def generate_tier_workbook(tier_id: int) -> bytes:
    """One sheet per tier of the subtree, in pre-order, with live parent formulas.

    Parent sheets sum the matching data cell of each direct child sheet,
    so edits to leaf sheets recalculate all the way up in a spreadsheet
    application.
    """
    root = get_or_raise(Tier, tier_id)
    snapshot = TreeSnapshot.load(root.project_id, root_id=tier_id)
    walk = list(tier_tree.walk_pre_order(snapshot.tiers, tier_id))

    used: set[str] = set()
    layout = {}
    for position, (tier, path, _) in enumerate(walk, start=1):
        columns = _columns(snapshot, tier.id)
        layout[tier.id] = {
            "title": sheet_title(position, tier.name, used),
            "path": PATH_SEPARATOR.join(path),
            "columns": columns,
            "rows": LEAF_ROWS if snapshot.is_leaf(tier.id) else PARENT_ROWS,
            # first column letter per header name, for formula lookups
            "letters": {},
        }
        for offset, (name, _, _) in enumerate(columns):
            layout[tier.id]["letters"].setdefault(name, get_column_letter(3 + offset))

    wb = Workbook()
    wb.remove(wb.active)
    for tier, _, _ in walk:
        sheet = layout[tier.id]
        ws = wb.create_sheet(title=sheet["title"])
        header_row, data_row = sheet["rows"]
        headers = [NAME_HEADER, PATH_HEADER] + [name for name, _, _ in sheet["columns"]]
        leaf = snapshot.is_leaf(tier.id)

        if not leaf:
            ws.cell(row=1, column=1, value=PARENT_NOTE)
            ws.cell(row=1, column=1).fill = NOTE_FILL
            ws.cell(row=1, column=1).font = NOTE_FONT
            ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=max(len(headers), 2))

        for col, header in enumerate(headers, start=1):
            _text_cell(ws, header_row, col, header)
        _style_header(ws, header_row, len(headers))

        _text_cell(ws, data_row, 1, tier.name).fill = HEADER_FILL
        _text_cell(ws, data_row, 2, sheet["path"]).fill = HEADER_FILL

        children = snapshot.children(tier.id)
        for offset, (name, numeric, field) in enumerate(sheet["columns"]):
            col = 3 + offset
            if leaf:
                value = snapshot.stored(tier.id, field) if field is not None else None
                if not numeric:
                    _text_cell(ws, data_row, col, value)
                    continue
            elif numeric:
                refs = []
                for child in children:
                    child_sheet = layout[child.id]
                    letter = child_sheet["letters"].get(name)
                    if letter is None:
                        continue
                    refs.append(f"{_quote_sheet(child_sheet['title'])}!{letter}{child_sheet['rows'][1]}")
                value = "=" + "+".join(refs) if refs else 0
            else:
                value = None
            ws.cell(row=data_row, column=col, value=value)

        for col, header in enumerate(headers, start=1):
            ws.column_dimensions[get_column_letter(col)].width = max(len(str(header)) + 2, 15)
        ws.column_dimensions["B"].width = max(len(sheet["path"]) + 2, 15)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    logger.info("Workbook generated for tier %s (%d sheets)", tier_id, len(walk))
    return buf.getvalue()


def generate_tier_csv(tier_id: int) -> str:
    """Flat CSV of a subtree: one row per tier with its displayed values.

    Columns are Tier Name, Hierarchy Path, Level, Is Leaf, then every
    field name in first-seen pre-order.
    """
    root = get_or_raise(Tier, tier_id)
    snapshot = TreeSnapshot.load(root.project_id, root_id=tier_id)
    totals = snapshot.aggregates(tier_id)
    walk = list(tier_tree.walk_pre_order(snapshot.tiers, tier_id))

    field_names: list[str] = []
    for tier, _, _ in walk:
        for f in snapshot.fields_by_tier.get(tier.id, []):
            if f.field_name not in field_names:
                field_names.append(f.field_name)

    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow([NAME_HEADER, PATH_HEADER, "Level", "Is Leaf"] + [_csv_safe(n) for n in field_names])
    for tier, path, depth in walk:
        shown = {}
        for item in snapshot.display(tier.id, totals[tier.id])["fields"]:
            shown.setdefault(item["field_name"], item["value"])
        writer.writerow(
            [_csv_safe(tier.name), _csv_safe(PATH_SEPARATOR.join(path)), tier.level, snapshot.is_leaf(tier.id)]
            + ["" if shown.get(n) is None else _csv_safe(shown[n]) for n in field_names]
        )
    return buf.getvalue()


def export_filename(tier_id: int, extension: str) -> str:
    tier = get_or_raise(Tier, tier_id)
    slug = re.sub(r"[^A-Za-z0-9_-]+", "_", tier.name).strip("_") or f"tier_{tier_id}"
    return f"{slug}.{extension}"
