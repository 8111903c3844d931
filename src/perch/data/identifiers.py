"""Identifier sanitizing for table, column, alias, and ORDER BY names.

Driver parameter binding covers values only; names are spliced into the
SQL text. Every name therefore passes an allow-list here: each dotted
segment must match ``[A-Za-z0-9_]+``. Anything else raises
``InvalidIdentifier``. This is the only injection defense for names.

Trust boundary: column-list entries containing parentheses (aggregates,
function calls such as ``COUNT(*)``) pass through unchanged. Callers must
never build those from user input.
"""

import re

from perch.data.errors import InvalidIdentifier

_SEGMENT = re.compile(r"^[A-Za-z0-9_]+$")
_WHITESPACE = re.compile(r"\s+")
_AS = re.compile(r"\s+AS\s+", re.IGNORECASE)
_TABLE_STAR = re.compile(r"^([A-Za-z0-9_]+)\.\*$")

QUOTE = '"'

JOIN_TYPES: frozenset[str] = frozenset({"INNER", "LEFT", "RIGHT", "LEFT OUTER", "RIGHT OUTER"})
ORDER_DIRECTIONS: frozenset[str] = frozenset({"ASC", "DESC"})


def _quote(segment: str) -> str:
    return f"{QUOTE}{segment}{QUOTE}"


def quote_identifier(raw: str) -> str:
    """Validate and quote a possibly dotted, possibly aliased name.

    Examples::

        quote_identifier("users")        -> '"users"'
        quote_identifier("u.name")       -> '"u"."name"'
        quote_identifier("users u")      -> '"users" u'
        quote_identifier("users; DROP")  -> InvalidIdentifier
    """
    name = raw.strip()
    parts = _WHITESPACE.split(name, maxsplit=1)
    identifier = parts[0]
    alias = parts[1] if len(parts) > 1 else None

    segments = identifier.split(".")
    for seg in segments:
        if not _SEGMENT.match(seg):
            msg = f"Invalid identifier segment: {seg!r}"
            raise InvalidIdentifier(msg)
    quoted = ".".join(_quote(seg) for seg in segments)

    if alias is not None:
        if not _SEGMENT.match(alias):
            msg = f"Invalid alias: {alias!r}"
            raise InvalidIdentifier(msg)
        return f"{quoted} {alias}"
    return quoted


def quote_column_list(spec: str) -> str:
    """Sanitize a comma-separated SELECT column list.

    ``*`` passes through. ``t.*`` quotes the table. ``a AS b`` quotes both
    sides. Entries with parentheses pass through unsanitized.
    """
    spec = spec.strip()
    if spec == "*":
        return "*"

    out: list[str] = []
    for raw in spec.split(","):
        entry = raw.strip()
        if m := _TABLE_STAR.match(entry):
            out.append(f"{_quote(m.group(1))}.*")
            continue
        if "(" in entry or ")" in entry:
            out.append(entry)
            continue
        sides = _AS.split(entry)
        if len(sides) == 2:
            out.append(f"{quote_identifier(sides[0])} AS {quote_identifier(sides[1])}")
            continue
        out.append(quote_identifier(entry))
    return ", ".join(out)


def quote_order_list(spec: str) -> str:
    """Sanitize an ORDER BY list such as ``"created DESC, id"``.

    The column is quoted; a direction other than ASC/DESC is dropped
    without error.
    """
    safe: list[str] = []
    for clause in spec.split(","):
        clause = clause.strip()
        if not clause:
            continue
        tokens = _WHITESPACE.split(clause)
        column = quote_identifier(tokens[0])
        if len(tokens) > 1 and tokens[1].upper() in ORDER_DIRECTIONS:
            safe.append(f"{column} {tokens[1].upper()}")
        else:
            safe.append(column)
    return ", ".join(safe)


def normalize_join_type(raw: str | None) -> str:
    """Uppercase and whitelist a join type; unknown types become INNER."""
    if not raw:
        return "INNER"
    join_type = " ".join(raw.split()).upper()
    return join_type if join_type in JOIN_TYPES else "INNER"
