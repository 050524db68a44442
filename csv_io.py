"""
Game list CSV input and enriched CSV export.

Headers are matched case-insensitively in English or Spanish. Columns the
pipeline does not use are carried along in Item.extra.
"""
import csv
import io
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from errors import InputValidationError
from game_models import Item

# Field -> accepted header spellings (lowercase)
HEADER_ALIASES: Dict[str, tuple] = {
    "name": ("name", "nombre"),
    "display_name_override": ("new name", "nuevo nombre"),
    "cover_url": ("cover", "portada"),
    "release_year": ("year", "año"),
    "description": ("description", "descripción"),
}

EXPORT_HEADER = ["Name", "New Name", "Cover", "Year", "Description"]


def _find_column(headers: List[str], aliases: tuple) -> Optional[int]:
    for index, header in enumerate(headers):
        if header.strip().strip('"').lower() in aliases:
            return index
    return None


def parse_games_csv(content: str) -> List[Item]:
    """
    Parse CSV text into Items.

    Raises:
        InputValidationError: Fewer than 2 lines or no name column.
    """
    content = content.lstrip("\ufeff").strip()
    if len(content.splitlines()) < 2:
        raise InputValidationError("CSV must have at least 2 lines (header + data)")

    rows = list(csv.reader(io.StringIO(content)))
    headers = [h.strip() for h in rows[0]]
    columns = {field: _find_column(headers, aliases) for field, aliases in HEADER_ALIASES.items()}
    if columns["name"] is None:
        raise InputValidationError('CSV must contain a column named "Nombre" or "Name"')

    known_indexes = {index for index in columns.values() if index is not None}
    items = []
    for row in rows[1:]:
        values = [v.strip() for v in row]

        def _value(field: str) -> Optional[str]:
            index = columns[field]
            if index is None or index >= len(values):
                return None
            return values[index] or None

        name = _value("name")
        if not name:
            continue
        extra = {
            header: values[index]
            for index, header in enumerate(headers)
            if index not in known_indexes and index < len(values) and header
        }
        items.append(Item(
            name=name,
            display_name_override=_value("display_name_override"),
            cover_url=_value("cover_url"),
            release_year=_value("release_year"),
            description=_value("description"),
            extra=extra,
        ))
    return items


def load_games_csv(path: Path) -> List[Item]:
    path = Path(path)
    if path.suffix.lower() != ".csv":
        raise InputValidationError(f"Please select a CSV file (got '{path.name}')")
    try:
        content = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise InputValidationError(f"Cannot read {path}: {e}") from e
    items = parse_games_csv(content)
    if not items:
        raise InputValidationError(f"No games with a name in {path.name}")
    return items


def export_rows(items: Iterable[Item]) -> List[List[str]]:
    """Header plus one row per item, fixed column order, empty string for absent fields."""
    rows = [list(EXPORT_HEADER)]
    for item in items:
        rows.append([
            item.name,
            item.display_name_override or "",
            item.cover_url or "",
            item.release_year or "",
            item.description or "",
        ])
    return rows


def write_export_csv(items: Iterable[Item], path: Path) -> int:
    """Write the export file (UTF-8 with BOM). Returns the number of game rows."""
    rows = export_rows(items)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8-sig", newline="") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_ALL)
        writer.writerows(rows)
    return len(rows) - 1
