"""Helpers that write bulk data cards in each field format."""

from nas_parser import FieldFormat


def small_card(keyword, *fields):
    """Small field card; 8 data fields per line, '+' continuation"""
    if not fields:
        return f"{keyword}\n"
    chunks = [fields[i:i + 8] for i in range(0, len(fields), 8)]
    lines = []
    for n, chunk in enumerate(chunks):
        prefix = f"{keyword:<8}" if n == 0 else f"{'+':<8}"
        body = "".join(f"{str(f):<8}" for f in chunk)
        if n < len(chunks) - 1:
            lines.append(prefix + body + "+")
        else:
            lines.append((prefix + body).rstrip())
    return "\n".join(lines) + "\n"


def large_card(keyword, *fields):
    """Large field card; 4 data fields of 16 columns per line, '*' continuation lines"""
    head = f"{keyword + '*':<8}"
    if not fields:
        return head.rstrip() + "\n"
    chunks = [fields[i:i + 4] for i in range(0, len(fields), 4)]
    lines = []
    for n, chunk in enumerate(chunks):
        prefix = head if n == 0 else f"{'*':<8}"
        body = "".join(f"{str(f):<16}" for f in chunk)
        if n < len(chunks) - 1:
            lines.append(prefix + body + "+")
        else:
            lines.append((prefix + body).rstrip())
    return "\n".join(lines) + "\n"


def free_card(keyword, *fields):
    return ",".join([keyword] + [str(f) for f in fields]) + "\n"


CARD_WRITERS = {
    FieldFormat.SMALL: small_card,
    FieldFormat.LARGE: large_card,
    FieldFormat.FREE: free_card,
}

HEADER = "ID mixed,deck\nSOL 101\n$ solver options\nCEND\n"

# Sparse, unordered GRID IDs of a unit cube plus a pyramid apex
GRIDS = [
    (10, ("0.0", "0.0", "0.0")),
    (3, ("1.0", "0.0", "0.0")),
    (250, ("1.0", "1.0", "0.0")),
    (7, ("0.0", "1.0", "0.0")),
    (99, ("0.0", "0.0", "1.0")),
    (1000, ("1.0", "0.0", "1.0")),
    (42, ("1.0", "1.0", "1.0")),
    (5, ("0.0", "1.0", "1.0")),
    (600, ("5.-1", "5.-1", "2.0+0")),
]

ELEMENTS = [
    ("CHEXA", 1, 1, 10, 3, 250, 7, 99, 1000, 42, 5),
    ("CPYRAM", 2, 2, 99, 1000, 42, 5, 600),
    ("CTETRA", 3, 1, 10, 3, 7, 99),
    ("CTRIA3", 4, 10, 10, 3, 250),
    ("CQUAD4", 5, 11, 99, 1000, 42, 5),
    ("CTRIA3", 6, 10, 10, 250, 7),
]

EXPECTED_POINTS = [
    (0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0),
    (0.0, 0.0, 1.0), (1.0, 0.0, 1.0), (1.0, 1.0, 1.0), (0.0, 1.0, 1.0),
    (0.5, 0.5, 2.0),
]
EXPECTED_POINT_IDS = [10, 3, 250, 7, 99, 1000, 42, 5, 600]
EXPECTED_CELLS = [
    ("hexahedron", (0, 1, 2, 3, 4, 5, 6, 7)),
    ("pyramid", (4, 5, 6, 7, 8)),
    ("tetra", (0, 1, 3, 4)),
]
EXPECTED_ZONES = [("fluid", 1, [0, 2]), ("cellZone_0", 2, [1])]
EXPECTED_PATCHES = [
    ("inlet", 10, [(0, 1, 2), (0, 2, 3)]),
    ("patch_0", 11, [(4, 5, 6, 7)]),
]


def build_mixed_deck(field_format=FieldFormat.SMALL):
    """Deck with every supported card; names come from '$ HK' comments"""
    card = CARD_WRITERS[field_format]
    parts = [
        HEADER,
        "BEGIN BULK\n",
        "$ HK fluid\n",
        card("PSOLID", 1, 1),
        card("PSOLID", 2, 1),
        "$ HK inlet\n",
        card("PSHELL", 10, 1),
        card("PSHELL", 11, 1),
        "$ Grid points\n",
    ]
    for gid, xyz in GRIDS:
        parts.append(card("GRID", gid, "", *xyz))
    parts.append("$ Elements\n")
    for keyword, *fields in ELEMENTS:
        parts.append(card(keyword, *fields))
    parts.append(card("ENDDATA") if field_format is FieldFormat.LARGE else "ENDDATA\n")
    return "".join(parts)
