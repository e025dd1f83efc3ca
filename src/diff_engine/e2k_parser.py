"""
E2K Text Parser

Parses the ETABS E2K text export into keyed records.

An E2K file is a sequence of sections introduced by ``$ <HEADER>`` lines.
Each data line starts with a keyword followed by quoted names and
``KEY value`` pairs, e.g.::

    $ FRAME SECTIONS
      FRAMESECTION  "COL1"  MATERIAL "A992Fy50"  SHAPE "W14X90"

    $ LINE ASSIGNS
      LINEASSIGN  "C1"  "STORY2"  SECTION "COL1"

Records are keyed by (category, keyword, names). Lines sharing a key are
merged into one record in file order.
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Union

from src.core.errors import ParseError
from .models import E2KCategory


TOKEN_PATTERN = re.compile(r'"([^"]*)"|(\S+)')
FIELD_KEY_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")

END_OF_MODEL = "END OF MODEL FILE"

# Section header prefix -> category. Checked in order; first match wins.
SECTION_CATEGORIES: list[tuple[str, E2KCategory]] = [
    ("MATERIAL", E2KCategory.MATERIAL),
    ("FRAME SECTION", E2KCategory.SECTION),
    ("AUTO SELECT", E2KCategory.SECTION),
    ("SLAB PROPERT", E2KCategory.SECTION),
    ("DECK PROPERT", E2KCategory.SECTION),
    ("WALL PROPERT", E2KCategory.SECTION),
    ("SHELL PROPERT", E2KCategory.SECTION),
    ("REBAR", E2KCategory.SECTION),
    ("CONCRETE SECTION", E2KCategory.SECTION),
    ("LINK PROPERT", E2KCategory.SECTION),
    ("POINT COORDINATES", E2KCategory.MEMBER),
    ("LINE CONNECTIVITIES", E2KCategory.MEMBER),
    ("AREA CONNECTIVITIES", E2KCategory.MEMBER),
    ("POINT ASSIGNS", E2KCategory.MEMBER),
    ("LINE ASSIGNS", E2KCategory.MEMBER),
    ("AREA ASSIGNS", E2KCategory.MEMBER),
    ("STORIES", E2KCategory.GENERAL),
    ("GRIDS", E2KCategory.GENERAL),
    ("LOAD", E2KCategory.LOAD),
    ("ANALYSIS", E2KCategory.ANALYSIS),
    ("MASS SOURCE", E2KCategory.ANALYSIS),
    ("FUNCTIONS", E2KCategory.ANALYSIS),
]

# Keywords that identify an object by more than one name (object, story[, case]).
IDENTITY_ARITY = {
    "POINTASSIGN": 2,
    "LINEASSIGN": 2,
    "AREAASSIGN": 2,
    "POINTLOAD": 2,
    "LINELOAD": 2,
    "AREALOAD": 2,
}

# Keywords whose quoted tokens are values rather than names.
SETTING_KEYWORDS = {"ACTIVEDOF", "UNITS", "TITLE1", "TITLE2", "MERGETOL"}

# Positional values following the names, before KEY/value pairs start.
POSITIONAL_FIELDS = {
    "POINT": ("X", "Y", "DZ"),
    "LINE": ("TYPE", "I", "J", "STORIES"),
}


@dataclass(frozen=True)
class Token:
    value: str
    quoted: bool


@dataclass
class E2KRecord:
    """All data of one keyed object, merged across lines."""

    category: E2KCategory
    section: str
    keyword: str
    names: tuple[str, ...]
    line_number: int
    fields: dict[str, list[str]] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str, tuple[str, ...]]:
        return (self.category.value, self.keyword, self.names)

    @property
    def identity(self) -> str:
        if not self.names:
            return self.keyword
        return self.keyword + " " + " ".join(f'"{n}"' for n in self.names)

    def add_field(self, key: str, value: str) -> None:
        self.fields.setdefault(key, []).append(value)

    def first(self, key: str) -> Optional[str]:
        values = self.fields.get(key)
        return values[0] if values else None

    def normalized(self) -> dict[str, tuple[str, ...]]:
        """Field values normalized for comparison (numbers compared by value)."""
        return {k: tuple(normalize_value(v) for v in values) for k, values in self.fields.items()}


@dataclass
class E2KDocument:
    """Parsed E2K text."""

    records: dict[tuple, E2KRecord] = field(default_factory=dict)
    lines: list[str] = field(default_factory=list)

    def by_keyword(self, keyword: str) -> list[E2KRecord]:
        return [r for r in self.records.values() if r.keyword == keyword]

    def find(self, keyword: str, *names: str) -> Optional[E2KRecord]:
        for record in self.records.values():
            if record.keyword == keyword and record.names == tuple(names):
                return record
        return None


def normalize_value(value: str) -> str:
    """Canonical form of a field value: numbers by value, text unchanged."""
    try:
        number = float(value)
    except ValueError:
        return value
    if number == 0:
        number = 0.0
    return format(number, ".10g")


def decode_e2k(data: Union[bytes, str]) -> str:
    """
    Decode E2K snapshot bytes to text.

    Raises:
        ParseError: If the data is binary rather than E2K text
    """
    if isinstance(data, str):
        return data
    if b"\x00" in data:
        raise ParseError("Content is binary, not E2K text")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def section_category(header: str) -> E2KCategory:
    """Map a section header to its record category."""
    for prefix, category in SECTION_CATEGORIES:
        if header.startswith(prefix):
            return category
    if "LOAD" in header:
        return E2KCategory.LOAD
    if "DESIGN" in header or "PREFERENCES" in header or "OVERWRITES" in header:
        return E2KCategory.DESIGN
    if "ANALYSIS" in header:
        return E2KCategory.ANALYSIS
    return E2KCategory.GENERAL


def tokenize(line: str, line_number: int, category: Optional[E2KCategory] = None) -> list[Token]:
    """
    Split a data line into tokens, honoring double quotes.

    Raises:
        ParseError: If a quoted string is not terminated
    """
    if line.count('"') % 2:
        raise ParseError(
            "Unterminated quoted string",
            category=category.value if category else None,
            line_number=line_number,
        )
    tokens = []
    for match in TOKEN_PATTERN.finditer(line):
        if match.group(1) is not None:
            tokens.append(Token(match.group(1), True))
        else:
            tokens.append(Token(match.group(2), False))
    return tokens


def _split_names(keyword: str, rest: list[Token]) -> tuple[tuple[str, ...], list[Token]]:
    if keyword in SETTING_KEYWORDS:
        return (), rest
    arity = IDENTITY_ARITY.get(keyword, 1)
    names = []
    while rest and len(names) < arity and rest[0].quoted:
        names.append(rest[0].value)
        rest = rest[1:]
    return tuple(names), rest


def _area_fields(record: E2KRecord, rest: list[Token], line_number: int) -> list[Token]:
    """AREA "F1" FLOOR 4 "1" "2" "3" "4" 0 0 0 0 [KEY value ...]"""
    if len(rest) < 2:
        raise ParseError("AREA requires a type and point count", "member", line_number)
    record.add_field("TYPE", rest[0].value)
    try:
        count = int(rest[1].value)
    except ValueError as e:
        raise ParseError(
            f"AREA point count is not an integer: {rest[1].value}", "member", line_number
        ) from e
    record.add_field("NUMPOINTS", str(count))
    body = rest[2:]
    if len(body) < count:
        raise ParseError(f"AREA declares {count} points but lists fewer", "member", line_number)
    for token in body[:count]:
        record.add_field("POINTS", token.value)
    body = body[count:]
    offsets = 0
    while body and offsets < count and not body[0].quoted and not FIELD_KEY_PATTERN.match(body[0].value):
        record.add_field("OFFSETS", body[0].value)
        body = body[1:]
        offsets += 1
    return body


def _positional_fields(record: E2KRecord, rest: list[Token]) -> list[Token]:
    for name in POSITIONAL_FIELDS[record.keyword]:
        if not rest:
            break
        head = rest[0]
        if not head.quoted and FIELD_KEY_PATTERN.match(head.value) and name in ("DZ", "STORIES"):
            break
        record.add_field(name, head.value)
        rest = rest[1:]
    return rest


def _pair_fields(record: E2KRecord, rest: list[Token]) -> None:
    position = 0
    i = 0
    while i < len(rest):
        token = rest[i]
        if not token.quoted and FIELD_KEY_PATTERN.match(token.value):
            if i + 1 < len(rest):
                record.add_field(token.value.upper(), rest[i + 1].value)
                i += 2
            else:
                record.add_field(token.value.upper(), "")
                i += 1
        else:
            record.add_field(f"#{position}", token.value)
            position += 1
            i += 1


def parse_e2k(text: str) -> E2KDocument:
    """
    Parse E2K text into keyed records.

    Args:
        text: Full E2K text

    Returns:
        E2KDocument with records in first-appearance order

    Raises:
        ParseError: If a line cannot be interpreted

    Example:
        >>> doc = parse_e2k('$ MATERIAL PROPERTIES\\n  MATERIAL "STEEL" FY 50\\n')
        >>> doc.find("MATERIAL", "STEEL").first("FY")
        '50'
    """
    document = E2KDocument(lines=text.splitlines())
    header: Optional[str] = None
    category = E2KCategory.GENERAL

    for line_number, raw in enumerate(document.lines, start=1):
        line = raw.strip()
        if not line:
            continue
        if line.startswith("$"):
            header = line[1:].strip().upper()
            if header.startswith(END_OF_MODEL):
                break
            category = section_category(header)
            continue
        if header is None:
            raise ParseError(
                "Data line appears before any section header",
                line_number=line_number,
            )

        tokens = tokenize(line, line_number, category)
        if tokens[0].quoted:
            raise ParseError(
                f"Expected a keyword, found \"{tokens[0].value}\"",
                category=category.value,
                line_number=line_number,
            )
        keyword = tokens[0].value.upper()
        names, rest = _split_names(keyword, tokens[1:])

        key = (category.value, keyword, names)
        record = document.records.get(key)
        if record is None:
            record = E2KRecord(
                category=category,
                section=header,
                keyword=keyword,
                names=names,
                line_number=line_number,
            )
            document.records[key] = record

        if keyword == "AREA":
            rest = _area_fields(record, rest, line_number)
        elif keyword in POSITIONAL_FIELDS:
            rest = _positional_fields(record, rest)
        _pair_fields(record, rest)

    return document
