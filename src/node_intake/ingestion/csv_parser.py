"""CSV parser for node upload files.

The format is deliberately simple: one record per line, ``,`` separated,
``"`` toggles quoting so commas inside quotes are kept. Doubled quotes are
not an escape; every ``"`` only flips the quoting state.
"""

from __future__ import annotations

from node_intake.errors import ParseError

REQUIRED_HEADERS: tuple[str, ...] = (
    "node_name",
    "website",
    "entity_name",
    "node_category",
    "direction",
    "notes",
    "connect_targets",
    "protocols_supported",
    "data_types_supported",
)


def parse_csv_line(line: str) -> list[str]:
    """Split one CSV line into trimmed fields, honouring double quotes.

    Args:
        line: A single line without its newline.

    Returns:
        The list of field values; quote characters are dropped.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    fields.append("".join(current).strip())
    return fields


def parse_headers(line: str) -> list[str]:
    """Header cells are split naively, trimmed and stripped of quotes."""
    return [cell.strip().replace('"', "") for cell in line.split(",")]


def parse_csv_content(csv_content: str) -> list[dict[str, str]]:
    """Parse raw CSV text into header-keyed rows.

    Rows whose field count differs from the header count are skipped
    without being reported.

    Args:
        csv_content: The uploaded file as text.

    Returns:
        Parsed rows in file order.

    Raises:
        ParseError: If there is no data row or a required header is missing.
    """
    lines = csv_content.strip().split("\n")
    if len(lines) < 2:
        raise ParseError("CSV must contain header row and at least one data row")

    headers = parse_headers(lines[0])
    missing = [h for h in REQUIRED_HEADERS if h not in headers]
    if missing:
        raise ParseError(f"Missing required headers: {', '.join(missing)}")

    rows: list[dict[str, str]] = []
    for line in lines[1:]:
        values = parse_csv_line(line)
        if len(values) != len(headers):
            continue
        rows.append(dict(zip(headers, values)))

    return rows
