"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  ANWAR CRM - Workbook (tabular store)                                        ║
║                                                                              ║
║  Named sheets with a fixed header row, persisted in MongoDB:                 ║
║    sheets:      {name, headers, row_count, created_at, updated_at}           ║
║    sheet_rows:  {sheet, row, values, created_at, updated_at}                 ║
║                                                                              ║
║  Row 1 is the header row, data rows start at 2.                              ║
║  Row numbers are allocated atomically ($inc on row_count).                   ║
║  Rows are never deleted, only status-flagged.                                ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import List, Optional, Dict, Any, Iterable
from pymongo import ReturnDocument

from anwar_crm.config import db, now_iso

logger = logging.getLogger("workbook")


class SheetNotFoundError(Exception):
    """Raised when a sheet does not exist in the workbook"""
    pass


class RecordNotFoundError(Exception):
    """Raised when a record ID cannot be found in its sheet"""
    pass


class SheetRow:
    """One data row plus its headers, addressable by header name"""

    def __init__(self, sheet: str, row: int, headers: List[str], values: List[Any]):
        self.sheet = sheet
        self.row = row
        self.headers = headers
        self.values = pad_values(values, len(headers))

    def get(self, header: str, default: Any = "") -> Any:
        if header not in self.headers:
            return default
        value = self.values[self.headers.index(header)]
        return default if value is None else value

    @property
    def record(self) -> Dict[str, Any]:
        return row_to_record(self.headers, self.values)

    def to_dict(self) -> Dict[str, Any]:
        return {"sheet": self.sheet, "row": self.row, "record": self.record}


# ════════════════════════════════════════════════════════════════════════════
# HELPERS
# ════════════════════════════════════════════════════════════════════════════

def _clean(value: Any) -> Any:
    return "" if value is None else value


def pad_values(values: Iterable[Any], width: int) -> List[Any]:
    """Pad a row to at least the header width with empty cells"""
    padded = [_clean(v) for v in (values or [])]
    if len(padded) < width:
        padded.extend([""] * (width - len(padded)))
    return padded


def row_to_record(headers: List[str], values: List[Any]) -> Dict[str, Any]:
    """Map headers to cell values"""
    padded = pad_values(values, len(headers))
    return {header: padded[i] for i, header in enumerate(headers)}


def cell_matches(cell: Any, value: Any) -> bool:
    return str(_clean(cell)).strip() == str(_clean(value)).strip()


# ════════════════════════════════════════════════════════════════════════════
# SHEETS
# ════════════════════════════════════════════════════════════════════════════

async def get_sheet(name: str) -> Optional[Dict]:
    return await db.sheets.find_one({"name": name}, {"_id": 0})


async def sheet_exists(name: str) -> bool:
    return await db.sheets.count_documents({"name": name}) > 0


async def list_sheets() -> List[Dict]:
    return await db.sheets.find({}, {"_id": 0}).sort("name", 1).to_list(None)


async def ensure_sheet(name: str, headers: List[str]) -> Dict:
    """Create the sheet if missing. Existing sheets are returned untouched."""
    existing = await get_sheet(name)
    if existing:
        return existing

    now = now_iso()
    doc = {
        "name": name,
        "headers": list(headers),
        "row_count": 0,
        "created_at": now,
        "updated_at": now,
    }
    await db.sheets.insert_one(doc)
    logger.info(f"[WORKBOOK] Created sheet '{name}' with {len(headers)} columns")
    doc.pop("_id", None)
    return doc


async def get_headers(name: str) -> List[str]:
    sheet = await get_sheet(name)
    if not sheet:
        raise SheetNotFoundError(f"Sheet '{name}' not found")
    return list(sheet.get("headers", []))


async def set_headers(name: str, headers: List[str]):
    result = await db.sheets.update_one(
        {"name": name},
        {"$set": {"headers": list(headers), "updated_at": now_iso()}}
    )
    if result.matched_count == 0:
        raise SheetNotFoundError(f"Sheet '{name}' not found")


async def copy_sheet(source: str, target: str) -> Dict:
    """Copy headers and every row to a new sheet (used for backups)"""
    sheet = await get_sheet(source)
    if not sheet:
        raise SheetNotFoundError(f"Sheet '{source}' not found")
    if await sheet_exists(target):
        raise ValueError(f"Sheet '{target}' already exists")

    now = now_iso()
    await db.sheets.insert_one({
        "name": target,
        "headers": list(sheet["headers"]),
        "row_count": sheet.get("row_count", 0),
        "created_at": now,
        "updated_at": now,
    })

    rows = await db.sheet_rows.find({"sheet": source}, {"_id": 0}).to_list(None)
    if rows:
        await db.sheet_rows.insert_many([
            {**row, "sheet": target, "updated_at": now} for row in rows
        ])

    logger.info(f"[WORKBOOK] Copied '{source}' -> '{target}' ({len(rows)} rows)")
    return {"source": source, "target": target, "rows": len(rows)}


async def rename_sheet(source: str, target: str):
    if not await sheet_exists(source):
        raise SheetNotFoundError(f"Sheet '{source}' not found")
    if await sheet_exists(target):
        raise ValueError(f"Sheet '{target}' already exists")

    await db.sheets.update_one({"name": source}, {"$set": {"name": target, "updated_at": now_iso()}})
    await db.sheet_rows.update_many({"sheet": source}, {"$set": {"sheet": target}})
    logger.info(f"[WORKBOOK] Renamed '{source}' -> '{target}'")


async def delete_sheet(name: str):
    await db.sheets.delete_one({"name": name})
    await db.sheet_rows.delete_many({"sheet": name})
    logger.info(f"[WORKBOOK] Deleted sheet '{name}'")


# ════════════════════════════════════════════════════════════════════════════
# ROWS
# ════════════════════════════════════════════════════════════════════════════

async def append_row(name: str, values: List[Any]) -> int:
    """Append a data row and return its 1-based row number"""
    meta = await db.sheets.find_one_and_update(
        {"name": name},
        {"$inc": {"row_count": 1}, "$set": {"updated_at": now_iso()}},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )
    if not meta:
        raise SheetNotFoundError(f"Sheet '{name}' not found")

    headers = meta.get("headers", [])
    if len(values) > len(headers):
        logger.warning(
            f"[WORKBOOK] Row for '{name}' has {len(values)} values for {len(headers)} headers"
        )

    row = meta["row_count"] + 1
    now = now_iso()
    await db.sheet_rows.insert_one({
        "sheet": name,
        "row": row,
        "values": pad_values(values, len(headers)),
        "created_at": now,
        "updated_at": now,
    })
    return row


async def get_rows(name: str) -> List[SheetRow]:
    headers = await get_headers(name)
    docs = await db.sheet_rows.find({"sheet": name}, {"_id": 0}).sort("row", 1).to_list(None)
    return [SheetRow(name, d["row"], headers, d.get("values", [])) for d in docs]


async def get_row(name: str, row: int) -> Optional[SheetRow]:
    headers = await get_headers(name)
    doc = await db.sheet_rows.find_one({"sheet": name, "row": row}, {"_id": 0})
    if not doc:
        return None
    return SheetRow(name, row, headers, doc.get("values", []))


async def find_row(name: str, header: str, value: Any) -> Optional[SheetRow]:
    """First row whose cell under `header` equals `value` (linear scan)"""
    if value in (None, ""):
        return None
    for row in await get_rows(name):
        if cell_matches(row.get(header), value):
            return row
    return None


async def find_rows(name: str, **criteria) -> List[SheetRow]:
    """Rows whose cells equal every header=value given (case-insensitive)"""
    rows = await get_rows(name)
    if not criteria:
        return rows
    matched = []
    for row in rows:
        if all(str(row.get(h)).strip().lower() == str(v).strip().lower()
               for h, v in criteria.items()):
            matched.append(row)
    return matched


async def update_cell(name: str, row: int, column: int, value: Any) -> Any:
    """Set one cell (1-based column). Returns the previous value."""
    headers = await get_headers(name)
    if column < 1 or column > len(headers):
        raise ValueError(f"Column {column} out of range for sheet '{name}'")

    doc = await db.sheet_rows.find_one({"sheet": name, "row": row}, {"_id": 0})
    if not doc:
        raise RecordNotFoundError(f"Row {row} not found in sheet '{name}'")

    values = pad_values(doc.get("values", []), len(headers))
    previous = values[column - 1]
    values[column - 1] = _clean(value)

    await db.sheet_rows.update_one(
        {"sheet": name, "row": row},
        {"$set": {"values": values, "updated_at": now_iso()}}
    )
    return previous


async def update_cells(name: str, row: int, updates: Dict[str, Any]) -> SheetRow:
    """Set several cells of one row by header name"""
    headers = await get_headers(name)
    doc = await db.sheet_rows.find_one({"sheet": name, "row": row}, {"_id": 0})
    if not doc:
        raise RecordNotFoundError(f"Row {row} not found in sheet '{name}'")

    values = pad_values(doc.get("values", []), len(headers))
    for header, value in updates.items():
        if header not in headers:
            raise ValueError(f"Column '{header}' not found in sheet '{name}'")
        values[headers.index(header)] = _clean(value)

    await db.sheet_rows.update_one(
        {"sheet": name, "row": row},
        {"$set": {"values": values, "updated_at": now_iso()}}
    )
    return SheetRow(name, row, headers, values)


# ════════════════════════════════════════════════════════════════════════════
# STRUCTURE (columns)
# ════════════════════════════════════════════════════════════════════════════

async def insert_columns(name: str, index: int, new_headers: List[str]) -> List[str]:
    """
    Insert columns before 0-based `index`. Every row gets empty cells at the
    same position so untouched columns keep their alignment.
    """
    headers = await get_headers(name)
    index = max(0, min(index, len(headers)))
    width = len(headers)

    updated_headers = headers[:index] + list(new_headers) + headers[index:]
    await set_headers(name, updated_headers)

    docs = await db.sheet_rows.find({"sheet": name}, {"_id": 0, "row": 1, "values": 1}).to_list(None)
    for doc in docs:
        values = pad_values(doc.get("values", []), width)
        values = values[:index] + [""] * len(new_headers) + values[index:]
        await db.sheet_rows.update_one(
            {"sheet": name, "row": doc["row"]},
            {"$set": {"values": values, "updated_at": now_iso()}}
        )

    logger.info(f"[WORKBOOK] Inserted {len(new_headers)} columns into '{name}' at {index + 1}")
    return updated_headers


async def delete_columns(name: str, headers_to_remove: List[str]) -> List[str]:
    """Delete the named columns (reverse index order). Returns the removed headers."""
    headers = await get_headers(name)
    width = len(headers)
    indexes = sorted(
        (headers.index(h) for h in headers_to_remove if h in headers),
        reverse=True,
    )
    if not indexes:
        return []

    removed = [headers[i] for i in sorted(indexes)]
    updated_headers = list(headers)
    for i in indexes:
        del updated_headers[i]
    await set_headers(name, updated_headers)

    docs = await db.sheet_rows.find({"sheet": name}, {"_id": 0, "row": 1, "values": 1}).to_list(None)
    for doc in docs:
        values = pad_values(doc.get("values", []), width)
        for i in indexes:
            del values[i]
        await db.sheet_rows.update_one(
            {"sheet": name, "row": doc["row"]},
            {"$set": {"values": values, "updated_at": now_iso()}}
        )

    logger.info(f"[WORKBOOK] Removed columns {removed} from '{name}'")
    return removed


async def verify_and_heal_sheet(name: str, expected_headers: List[str]) -> Dict[str, Any]:
    """
    Make a sheet usable by its handlers:
    - missing sheet      -> created with expected headers
    - empty header row   -> expected headers written
    - missing headers    -> appended at the end (existing order untouched)
    """
    report = {"sheet": name, "created": False, "headers_written": False, "headers_added": []}

    sheet = await get_sheet(name)
    if not sheet:
        await ensure_sheet(name, expected_headers)
        report["created"] = True
        return report

    headers = list(sheet.get("headers") or [])
    if not headers:
        await set_headers(name, expected_headers)
        report["headers_written"] = True
        return report

    missing = [h for h in expected_headers if h not in headers]
    if missing:
        await set_headers(name, headers + missing)
        report["headers_added"] = missing
        logger.warning(f"[WORKBOOK] Healed '{name}': appended {missing}")

    return report
