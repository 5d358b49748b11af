"""
CSV Parser

Parses uploaded CSV text into header-keyed rows.

Handles:
- Quoted values with embedded commas and newlines
- Escaped quotes ("" inside a quoted field)
- CRLF, LF and bare CR line endings
- A leading UTF-8 byte order mark (Excel exports)

Field values are trimmed, empty cells become None and rows with nothing
in them are dropped.
"""

from networth.models.imports import CSVRow


BOM = "\ufeff"


def parse_csv_rows(content: str) -> list[list[str]]:
    """Split CSV text into rows of trimmed field strings."""
    if content.startswith(BOM):
        content = content[len(BOM):]

    rows: list[list[str]] = []
    row: list[str] = []
    field: list[str] = []
    in_quotes = False

    def end_row() -> None:
        nonlocal row
        row.append("".join(field).strip())
        if any(value for value in row):
            rows.append(row)
        row = []
        field.clear()

    i = 0
    length = len(content)
    while i < length:
        char = content[i]

        if in_quotes:
            if char == '"':
                if i + 1 < length and content[i + 1] == '"':
                    field.append('"')
                    i += 2
                    continue
                in_quotes = False
            else:
                field.append(char)
            i += 1
            continue

        if char == '"':
            in_quotes = True
        elif char == ",":
            row.append("".join(field).strip())
            field.clear()
        elif char == "\r" and i + 1 < length and content[i + 1] == "\n":
            end_row()
            i += 1
        elif char in "\r\n":
            end_row()
        else:
            field.append(char)
        i += 1

    if field or row:
        end_row()

    return rows


def parse_csv(content: str) -> list[CSVRow]:
    """
    Parse CSV text into dicts keyed by the (trimmed) header row.

    Returns [] for empty or whitespace-only input, or a header with no data.
    """
    if not content or not content.strip():
        return []

    rows = parse_csv_rows(content)
    if not rows:
        return []

    headers = [header.strip() for header in rows[0]]
    parsed = []
    for values in rows[1:]:
        record: CSVRow = {}
        for index, header in enumerate(headers):
            value = values[index] if index < len(values) else ""
            record[header] = value if value != "" else None
        parsed.append(record)
    return parsed
