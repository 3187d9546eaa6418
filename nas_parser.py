#!/usr/bin/env python3
"""
NASTRAN Bulk Data Parser
========================

A parser for NASTRAN bulk data decks (.nas, .dat, .bdf) that assembles the
volume mesh described by the deck: points, cells, named boundary patches and
named cell zones.

This script provides:
1. Card tokenizing for the small, large and free field formats
2. Continuation line stitching
3. NASTRAN real number decoding (implicit exponents such as 1.5+3)
4. Sparse GRID ID to dense point index remapping
5. Patch and cell zone assembly, named from the comment above each property

Supported cards: GRID, CTETRA, CPYRAM, CHEXA, CTRIA3, CQUAD4, PSOLID, PSHELL
and ENDDATA. Anything else in the bulk data section is rejected.

Usage:
    python3 nas_parser.py <dat_file>
    python3 nas_parser.py mesh.dat --format free
    python3 nas_parser.py mesh.dat --defaultNames
    python3 nas_parser.py mesh.dat --export-stats stats.json
    python3 nas_parser.py mesh.dat --strict --show-issues

Options:
    --format         Field format: small (default), large or free
    --defaultNames   Ignore names from comments, always use patch_<k>/cellZone_<k>
    --strict         Fail on duplicate GRID IDs instead of warning
    --show-issues    Display parsing warnings
    --export-stats   Export statistics to JSON file
    --verbose        Show detailed progress
"""

import sys
import json
import logging
import argparse
import warnings
from enum import Enum
from pathlib import Path
from dataclasses import dataclass
from functools import partial
from collections import defaultdict
from typing import Dict, List, Tuple, Optional, TextIO

import numpy as np


logger = logging.getLogger(__name__)

# Keyword column width in the fixed formats, and the width of the placeholder
# column at the start of a continuation line.
KEYWORD_WIDTH = 8
# Free format fields are unbounded; this only caps runaway reads.
FREE_FIELD_LIMIT = 128
CONTINUATION_CHARS = ('+', '*')
# Remap table slot for a GRID ID that was never defined.
ABSENT = -1


class ParseError(Exception):
    """Base exception for parsing errors"""

    def __init__(self, message: str, line_num: Optional[int] = None):
        self.line_num = line_num
        super().__init__(f"Line {line_num}: {message}" if line_num else message)


class CorruptedFileError(ParseError):
    """Exception for corrupted or unreadable files"""
    pass


class TruncatedFileError(CorruptedFileError):
    """Exception for a deck that ends before ENDDATA"""
    pass


class MissingRequiredSectionError(ParseError):
    """Exception for missing required sections"""
    pass


class UnsupportedCardError(ParseError):
    """Exception for a bulk data card outside the supported set"""

    def __init__(self, keyword: str, line_num: Optional[int] = None):
        self.keyword = keyword
        super().__init__(f'Cannot process keyword: "{keyword}"', line_num)


class FieldDecodeError(ParseError):
    """Exception for a field that is not a valid integer or real"""

    def __init__(self, field: str, expected: str, line_num: Optional[int] = None):
        self.field = field
        super().__init__(f"Invalid {expected} field: '{field}'", line_num)


class DataInconsistencyError(ParseError):
    """Exception for data inconsistencies"""
    pass


class DuplicatePropertyError(DataInconsistencyError):
    """Exception for a property ID defined by more than one PSOLID/PSHELL card"""

    def __init__(self, property_id: int, line_num: Optional[int] = None):
        self.property_id = property_id
        super().__init__(f"Property ID {property_id} is defined more than once", line_num)


class DuplicateGridError(DataInconsistencyError):
    """Exception for a GRID ID defined twice (strict mode only)"""

    def __init__(self, point_id: int, line_num: Optional[int] = None):
        self.point_id = point_id
        super().__init__(f"GRID {point_id} is defined more than once", line_num)


class UndefinedGridError(DataInconsistencyError):
    """Exception for an element referencing a GRID ID that was never defined"""

    def __init__(self, point_id: int, line_num: Optional[int] = None):
        self.point_id = point_id
        super().__init__(f"Reference to undefined GRID {point_id}", line_num)


class ParseWarning(UserWarning):
    """Warning for non-critical parsing issues"""
    pass


class ParseState(Enum):
    """Position of the parser within the deck"""
    SEEK_BULK = "seek_bulk"
    IN_BULK = "in_bulk"
    DONE = "done"


class FieldFormat(Enum):
    """Bulk data field layout; the value is the data field width (0 = free)"""
    FREE = 0
    SMALL = 8
    LARGE = 16

    @classmethod
    def from_name(cls, name: str) -> 'FieldFormat':
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown format: {name}") from None

    @property
    def is_fixed(self) -> bool:
        return self is not FieldFormat.FREE


class CardKeyword(Enum):
    """Bulk data cards understood by the parser"""
    GRID = "GRID"
    CTETRA = "CTETRA"
    CPYRAM = "CPYRAM"
    CHEXA = "CHEXA"
    CTRIA3 = "CTRIA3"
    CQUAD4 = "CQUAD4"
    PSOLID = "PSOLID"
    PSHELL = "PSHELL"
    ENDDATA = "ENDDATA"


class CellTopology(Enum):
    """Element shapes with their vertex counts"""
    TETRA = ("tetra", 4)
    PYRAMID = ("pyramid", 5)
    HEXAHEDRON = ("hexahedron", 8)
    TRIANGLE = ("triangle", 3)
    QUAD = ("quad", 4)

    def __init__(self, label: str, n_points: int):
        self.label = label
        self.n_points = n_points


class PropertyKind(Enum):
    """Which card defined a property ID"""
    SOLID = "solid"
    SHELL = "shell"


@dataclass
class CellShape:
    """Volume element: topology plus dense point indices"""
    topology: CellTopology
    vertices: Tuple[int, ...]


@dataclass
class PropertyEntry:
    """Property definition from a PSOLID or PSHELL card"""
    property_id: int
    kind: PropertyKind
    name: str = ""


@dataclass
class Patch:
    """Named group of boundary faces sharing a property ID"""
    name: str
    property_id: int
    faces: List[Tuple[int, ...]]


@dataclass
class CellZone:
    """Named group of cells (indices into NASMesh.cells) sharing a property ID"""
    name: str
    property_id: int
    cells: List[int]


@dataclass
class NASMesh:
    """Assembled mesh handed to the mesh sink"""
    points: np.ndarray
    point_ids: np.ndarray
    cells: List[CellShape]
    patches: List[Patch]
    zones: List[CellZone]

    @property
    def n_faces(self) -> int:
        return sum(len(patch.faces) for patch in self.patches)

    def cell_type_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = defaultdict(int)
        for shape in self.cells:
            counts[shape.topology.label] += 1
        return dict(counts)

    def summary(self) -> Dict[str, object]:
        """Counts and names, suitable for reports and JSON export"""
        return {
            'points': len(self.points),
            'cells': len(self.cells),
            'cell_types': self.cell_type_counts(),
            'boundary_faces': self.n_faces,
            'patches': [
                {'name': p.name, 'property_id': p.property_id, 'faces': len(p.faces)}
                for p in self.patches
            ],
            'zones': [
                {'name': z.name, 'property_id': z.property_id, 'cells': len(z.cells)}
                for z in self.zones
            ],
        }


def decode_int(data: str, line_num: Optional[int] = None) -> int:
    """Parse an integer field"""
    try:
        return int(data)
    except ValueError:
        raise FieldDecodeError(data, "integer", line_num) from None


def decode_float(data: str, line_num: Optional[int] = None) -> float:
    """Parse a real field

    NASTRAN lets the exponent marker be dropped, so ``1.5+3`` means
    ``1.5e+3`` and ``-2.5-1`` means ``-2.5e-1``. The first sign after the
    leading character gets an ``e`` spliced in front of it unless one is
    already there. A ``D`` exponent is read as ``E``.

    Args:
        data: Field text with whitespace already removed
        line_num: Source line, used for error reporting

    Returns:
        The decoded value

    Raises:
        FieldDecodeError: If the text is not a real number
    """
    text = data.replace('D', 'E').replace('d', 'e')
    for i in range(1, len(text)):
        if text[i] in '+-':
            if text[i - 1] not in 'eE':
                text = text[:i] + 'e' + text[i:]
            break
    try:
        return float(text)
    except ValueError:
        raise FieldDecodeError(data, "real", line_num) from None


class CardLexer:
    """Splits a bulk data stream into card keywords and fields

    The stream is read one character at a time, with one character of peek
    and one character of pushback. Continuation lines are stitched
    transparently: a field that lands on a continuation marker is re-read
    from the next physical line, so callers see one logical card.

    The lexer also remembers the last word of the most recent comment line,
    which lets a property card pick up a name from the line above it.
    """

    def __init__(self, stream: TextIO, field_format: FieldFormat = FieldFormat.SMALL):
        self.stream = stream
        self.field_format = field_format
        self.line_number = 1      # 1-based line of the next unread character
        self.keyword_line = 0     # line of the last keyword
        self.field_line = 0       # line of the last field
        self._line = ""
        self._pos = 0
        self._pushed_back = False
        # Set while unread text of the current card remains on the line.
        self._line_open = False
        self._comment: Optional[Tuple[str, int]] = None

    def _fill(self) -> bool:
        if self._pos < len(self._line):
            return True
        self._line = self.stream.readline()
        self._pos = 0
        return bool(self._line)

    def _get(self) -> str:
        if not self._fill():
            return ""
        c = self._line[self._pos]
        self._pos += 1
        self._pushed_back = False
        if c == '\n':
            self.line_number += 1
        return c

    def _peek(self) -> str:
        if not self._fill():
            return ""
        return self._line[self._pos]

    def _putback(self, c: str) -> None:
        if self._pushed_back or self._pos == 0 or self._line[self._pos - 1] != c:
            raise RuntimeError("Only the last character read can be pushed back")
        self._pos -= 1
        self._pushed_back = True
        if c == '\n':
            self.line_number -= 1

    def _read_line(self) -> str:
        """Consume the rest of the current physical line, newline included"""
        chars = []
        while True:
            c = self._get()
            if not c:
                break
            chars.append(c)
            if c == '\n':
                break
        return "".join(chars).replace('\r', '')

    def _skip_placeholder(self) -> None:
        """Discard the leading column of a continuation line"""
        if self.field_format is FieldFormat.FREE:
            while self._peek() not in ('', '\n'):
                if self._get() == ',':
                    break
        else:
            for _ in range(KEYWORD_WIDTH):
                if self._peek() in ('', '\n'):
                    break
                self._get()

    def _skip_comments(self) -> None:
        while True:
            c = self._peek()
            if c == '$':
                line_num = self.line_number
                words = self._read_line()[1:].split()
                self._comment = (words[-1] if words else "", line_num)
            elif c in ('\n', '\r'):
                self._read_line()
            else:
                break

    def at_end(self) -> bool:
        return self._peek() == ""

    def skip_to_bulk(self) -> bool:
        """Consume the deck header up to and including the BEGIN BULK line"""
        while not self.at_end():
            line = self._read_line().strip()
            if line.startswith('$'):
                continue
            if line.upper().startswith("BEGIN BULK"):
                self._line_open = False
                return True
        return False

    def next_field(self, width: Optional[int] = None) -> str:
        """Read the next field of the current card

        Args:
            width: Column width; defaults to the data field width of the format

        Returns:
            Field text with whitespace removed; empty for a blank field or
            once the card's last line is used up
        """
        if width is None:
            width = self.field_format.value
        if width == 0:
            width = FREE_FIELD_LIMIT
        free = self.field_format is FieldFormat.FREE

        continuing = True
        while continuing:
            continuing = False
            self.field_line = self.line_number
            if not free and not self._line_open:
                return ""

            chars = []
            used = 0
            terminator = ""
            while used < width:
                c = self._get()
                if not c or c == '\n' or (free and c == ','):
                    terminator = c
                    break
                if c == '\r':
                    continue
                used += 1
                if not c.isspace():
                    chars.append(c)
            data = "".join(chars)
            marker = data[:1] in CONTINUATION_CHARS

            # A fixed-format marker can fill its column, with only padding
            # left before the newline.
            if marker and not free and used >= width and not self._line[self._pos:].strip():
                while self._peek() not in ('', '\n'):
                    self._get()
                if self._peek() == '\n':
                    terminator = self._get()

            if terminator == '\n' and marker and self._peek() in CONTINUATION_CHARS:
                self._skip_placeholder()
                self._line_open = True
                continuing = True
                continue

            if terminator == '\n':
                if free:
                    self._putback('\n')
                else:
                    self._line_open = False
            elif not terminator and used < width:
                self._line_open = False
        return data

    def skip_card(self) -> None:
        """Discard whatever is left of the current card, continuation lines included"""
        if not self._line_open:
            return
        line = self._read_line()
        while self._ends_with_marker(line) and self._peek() in CONTINUATION_CHARS:
            line = self._read_line()
        self._line_open = False

    @staticmethod
    def _ends_with_marker(line: str) -> bool:
        """True if the last non-blank field of a line is a continuation marker"""
        fields = line.replace(',', ' ').split()
        return bool(fields) and fields[-1].startswith(CONTINUATION_CHARS)

    def next_keyword(self) -> Optional[str]:
        """Advance to the next card and return its keyword

        Returns:
            The upper-cased keyword with any large-field ``*`` removed, or
            None at the end of the stream. A line whose first field is blank
            but which carries other text yields an empty keyword.
        """
        width = KEYWORD_WIDTH if self.field_format.is_fixed else FREE_FIELD_LIMIT
        while True:
            self.skip_card()
            self._skip_comments()
            if self.at_end():
                return None
            self.keyword_line = self.line_number
            self._line_open = True
            keyword = self.next_field(width)
            if keyword:
                break
            rest = self._read_line() if self._line_open else ""
            self._line_open = False
            if rest.strip():
                return ""

        if keyword.endswith('*'):
            keyword = keyword[:-1]
        return keyword.upper()

    def take_comment(self, line_num: int) -> Optional[str]:
        """Hand out the cached comment word if it was read on line_num

        The cache is cleared either way, so a comment names at most one card.
        """
        comment, self._comment = self._comment, None
        if comment is not None and comment[1] == line_num:
            return comment[0]
        return None


class GeometryBuilder:
    """Accumulates points, cells and boundary faces during the read pass

    GRID IDs are sparse; ``_remap`` maps them to dense point indices and
    grows by doubling. Cells and faces are grouped by property ID, in the
    order the groups were first referenced.

    The table is dense and sized by the largest GRID ID, at 8 bytes per
    slot: a single GRID 99999999 (the largest small field ID) costs about
    800 MB however few points the deck holds.
    """

    def __init__(self, initial_capacity: int = 1024):
        self.points: List[Tuple[float, float, float]] = []
        self.point_ids: List[int] = []
        self.cells: List[CellShape] = []
        self.cell_groups: Dict[int, List[int]] = {}
        self.face_groups: Dict[int, List[Tuple[int, ...]]] = {}
        self._remap = np.full(max(initial_capacity, 1), ABSENT, dtype=np.int64)

    @property
    def capacity(self) -> int:
        return len(self._remap)

    def _reserve(self, point_id: int) -> None:
        size = len(self._remap)
        if point_id < size:
            return
        grown = np.full(max(point_id + 1, 2 * size), ABSENT, dtype=np.int64)
        grown[:size] = self._remap
        self._remap = grown

    def is_defined(self, point_id: int) -> bool:
        return 0 <= point_id < len(self._remap) and bool(self._remap[point_id] != ABSENT)

    def add_point(self, point_id: int, coords: Tuple[float, float, float]) -> int:
        """Append a point and bind its GRID ID; a redefined ID is rebound"""
        if point_id < 0:
            raise ValueError(f"GRID ID must not be negative: {point_id}")
        self._reserve(point_id)
        index = len(self.points)
        self.points.append(coords)
        self.point_ids.append(point_id)
        self._remap[point_id] = index
        return index

    def resolve(self, point_id: int, line_num: Optional[int] = None) -> int:
        """Dense index of a GRID ID"""
        if not self.is_defined(point_id):
            raise UndefinedGridError(point_id, line_num)
        return int(self._remap[point_id])

    def ensure_cell_group(self, property_id: int) -> List[int]:
        return self.cell_groups.setdefault(property_id, [])

    def ensure_face_group(self, property_id: int) -> List[Tuple[int, ...]]:
        return self.face_groups.setdefault(property_id, [])

    def add_cell(self, property_id: int, shape: CellShape) -> int:
        self.cells.append(shape)
        index = len(self.cells) - 1
        self.ensure_cell_group(property_id).append(index)
        return index

    def add_face(self, property_id: int, vertices: Tuple[int, ...]) -> None:
        self.ensure_face_group(property_id).append(vertices)


class PropertyTable:
    """Property ID namespace shared by PSOLID and PSHELL

    Each ID may be defined once, by either card. Defining it again raises
    DuplicatePropertyError, whichever kind came first.
    """

    def __init__(self):
        self._entries: Dict[int, PropertyEntry] = {}

    def define(self, property_id: int, kind: PropertyKind, name: str = "",
               line_num: Optional[int] = None) -> PropertyEntry:
        if property_id in self._entries:
            raise DuplicatePropertyError(property_id, line_num)
        entry = PropertyEntry(property_id=property_id, kind=kind, name=name)
        self._entries[property_id] = entry
        return entry

    def name_of(self, property_id: int) -> str:
        entry = self._entries.get(property_id)
        return entry.name if entry else ""

    def __contains__(self, property_id: int) -> bool:
        return property_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries.values())


class MeshAssembler:
    """Turns accumulated groups into the ordered patch and zone lists

    Patches are emitted only for face groups that hold faces. Zones are
    emitted for every cell group, including a group registered by a PSOLID
    card that no element ever used. Unnamed patches and zones get
    ``patch_<k>`` and ``cellZone_<k>``, each with its own counter.
    """

    def __init__(self, geometry: GeometryBuilder, properties: PropertyTable):
        self.geometry = geometry
        self.properties = properties

    def build_patches(self) -> List[Patch]:
        patches = []
        unnamed = 0
        for property_id, faces in self.geometry.face_groups.items():
            if not faces:
                continue
            name = self.properties.name_of(property_id)
            if not name:
                name = f"patch_{unnamed}"
                unnamed += 1
            patches.append(Patch(name=name, property_id=property_id, faces=list(faces)))
        return patches

    def build_zones(self) -> List[CellZone]:
        zones = []
        unnamed = 0
        for property_id, cells in self.geometry.cell_groups.items():
            name = self.properties.name_of(property_id)
            if not name:
                name = f"cellZone_{unnamed}"
                unnamed += 1
            zones.append(CellZone(name=name, property_id=property_id, cells=list(cells)))
        return zones

    def assemble(self) -> NASMesh:
        points = np.array(self.geometry.points, dtype=np.float64).reshape(-1, 3)
        point_ids = np.array(self.geometry.point_ids, dtype=np.int64)
        return NASMesh(
            points=points,
            point_ids=point_ids,
            cells=list(self.geometry.cells),
            patches=self.build_patches(),
            zones=self.build_zones(),
        )


class NASParser:
    """Main parser for NASTRAN bulk data decks

    Reads the deck in one forward pass: the header is skipped up to
    ``BEGIN BULK``, then every card is dispatched on its keyword until
    ``ENDDATA``. Element cards are grouped by property ID and PSOLID/PSHELL
    cards name those groups from the comment line directly above them::

        $ HK inlet
        PSHELL  2       1

    Usage:
        >>> parser = NASParser('mesh.dat', field_format=FieldFormat.FREE)
        >>> mesh = parser.parse()
        >>> [patch.name for patch in mesh.patches]
        ['inlet']
        >>> parser.print_concise_report()

    Any problem with the deck is fatal and raises a ParseError subclass.
    Duplicate GRID IDs are the one exception: the later definition wins and
    a ParseWarning is issued, unless ``strict_mode`` is set.
    """

    def __init__(self, filepath: Optional[str] = None,
                 field_format: FieldFormat = FieldFormat.SMALL,
                 default_names: bool = False, strict_mode: bool = False):
        self.filepath = Path(filepath) if filepath is not None else None
        self.field_format = field_format
        self.default_names = default_names
        self.strict_mode = strict_mode
        self.state = ParseState.SEEK_BULK
        self.card_counts: Dict[str, int] = {}
        self.parse_warnings: List[str] = []
        self.mesh: Optional[NASMesh] = None
        self.properties = PropertyTable()
        self._handlers = {
            CardKeyword.GRID: self._read_grid,
            CardKeyword.CTETRA: partial(self._read_cell, CellTopology.TETRA),
            CardKeyword.CPYRAM: partial(self._read_cell, CellTopology.PYRAMID),
            CardKeyword.CHEXA: partial(self._read_cell, CellTopology.HEXAHEDRON),
            CardKeyword.CTRIA3: partial(self._read_face, CellTopology.TRIANGLE),
            CardKeyword.CQUAD4: partial(self._read_face, CellTopology.QUAD),
            CardKeyword.PSOLID: partial(self._read_property, PropertyKind.SOLID),
            CardKeyword.PSHELL: partial(self._read_property, PropertyKind.SHELL),
            CardKeyword.ENDDATA: self._finish,
        }

    def _add_warning(self, message: str, line_num: Optional[int] = None) -> None:
        """Add a warning to the warnings list"""
        warning_msg = f"Line {line_num}: {message}" if line_num else message
        self.parse_warnings.append(warning_msg)
        warnings.warn(warning_msg, ParseWarning)

    def _reset(self, stream: TextIO) -> None:
        self.lexer = CardLexer(stream, self.field_format)
        self.geometry = GeometryBuilder()
        self.properties = PropertyTable()
        self.state = ParseState.SEEK_BULK
        self.card_counts = defaultdict(int)
        self.parse_warnings = []
        self.mesh = None

    def parse(self) -> NASMesh:
        """Open the deck file and parse it"""
        if self.filepath is None:
            raise ValueError("No input file given")
        logger.info("Reading %s (%s format)", self.filepath, self.field_format.name.lower())
        try:
            with open(self.filepath, 'r', encoding='utf-8') as f:
                return self.parse_stream(f)
        except UnicodeDecodeError as e:
            raise CorruptedFileError(f"File has invalid encoding: {e}") from e
        except FileNotFoundError:
            raise
        except OSError as e:
            raise CorruptedFileError(f"File reading failed: {e}") from e

    def parse_stream(self, stream: TextIO) -> NASMesh:
        """Parse a deck from an open text stream and assemble the mesh"""
        self._reset(stream)
        if not self.lexer.skip_to_bulk():
            raise MissingRequiredSectionError('Cannot find "BEGIN BULK" entry')
        self.state = ParseState.IN_BULK
        logger.info("Start reading bulk data at line %d", self.lexer.line_number)

        while self.state is ParseState.IN_BULK:
            keyword = self.lexer.next_keyword()
            if keyword is None:
                raise TruncatedFileError("Unexpected end of file before ENDDATA",
                                         self.lexer.line_number)
            card = self._lookup(keyword)
            self.card_counts[card.value] += 1
            self._handlers[card]()

        logger.info("Finished reading file: %d points, %d cells",
                    len(self.geometry.points), len(self.geometry.cells))
        self.mesh = MeshAssembler(self.geometry, self.properties).assemble()
        self.card_counts = dict(self.card_counts)
        return self.mesh

    def _lookup(self, keyword: str) -> CardKeyword:
        try:
            return CardKeyword(keyword)
        except ValueError:
            raise UnsupportedCardError(keyword, self.lexer.keyword_line) from None

    def _read_int(self) -> int:
        data = self.lexer.next_field()
        return decode_int(data, self.lexer.field_line)

    def _read_float(self) -> float:
        data = self.lexer.next_field()
        return decode_float(data, self.lexer.field_line)

    def _read_vertex(self) -> int:
        point_id = self._read_int()
        return self.geometry.resolve(point_id, self.lexer.field_line)

    # GRID    ID      CP      X1      X2      X3      (CD PS SEID ignored)
    def _read_grid(self) -> None:
        line_num = self.lexer.keyword_line
        point_id = self._read_int()
        self.lexer.next_field()  # CP
        coords = (self._read_float(), self._read_float(), self._read_float())

        if point_id <= 0:
            raise DataInconsistencyError(f"Invalid GRID ID: {point_id}", line_num)
        if self.geometry.is_defined(point_id):
            if self.strict_mode:
                raise DuplicateGridError(point_id, line_num)
            self._add_warning(f"GRID {point_id} redefined, later coordinates are used", line_num)
        self.geometry.add_point(point_id, coords)

    # CTETRA  EID     PID     G1 ...  Gn
    def _read_cell(self, topology: CellTopology) -> None:
        self.lexer.next_field()  # EID
        property_id = self._read_int()
        vertices = tuple(self._read_vertex() for _ in range(topology.n_points))
        self.geometry.add_cell(property_id, CellShape(topology=topology, vertices=vertices))

    def _read_face(self, topology: CellTopology) -> None:
        self.lexer.next_field()  # EID
        property_id = self._read_int()
        vertices = tuple(self._read_vertex() for _ in range(topology.n_points))
        self.geometry.add_face(property_id, vertices)

    def _read_property(self, kind: PropertyKind) -> None:
        line_num = self.lexer.keyword_line
        property_id = self._read_int()
        comment = self.lexer.take_comment(line_num - 1)
        name = comment if comment and not self.default_names else ""

        self.properties.define(property_id, kind, name, line_num)
        if kind is PropertyKind.SOLID:
            self.geometry.ensure_cell_group(property_id)
        else:
            self.geometry.ensure_face_group(property_id)
        logger.debug("Property %d (%s) named %r", property_id, kind.value, name)

    def _finish(self) -> None:
        self.state = ParseState.DONE

    def get_parse_summary(self) -> Dict[str, object]:
        """Get summary of parsing results"""
        return {
            'status': self.state.value,
            'format': self.field_format.name.lower(),
            'warnings_count': len(self.parse_warnings),
            'warnings': self.parse_warnings,
            'card_counts': dict(self.card_counts),
            'properties': [
                {'property_id': p.property_id, 'kind': p.kind.value, 'name': p.name}
                for p in self.properties
            ],
            'file_parsed': self.mesh is not None,
        }

    def print_parse_issues(self) -> None:
        """Print parsing warnings"""
        if not self.parse_warnings:
            return

        print("\n" + "="*60)
        print("PARSING ISSUES")
        print("="*60)
        print(f"\nWARNINGS ({len(self.parse_warnings)}):")
        for i, warning in enumerate(self.parse_warnings, 1):
            print(f"  {i:2d}. {warning}")
        print("\n" + "="*60 + "\n")

    def print_concise_report(self) -> None:
        """Print counts and the names of all patches and zones"""
        if self.mesh is None:
            raise ValueError("No data parsed yet")
        mesh = self.mesh
        title = self.filepath.name if self.filepath else "<stream>"

        print("\n" + "="*75)
        print("NASTRAN MESH REPORT: " + title)
        print("="*75)

        print(f"\nMESH PROPERTIES:")
        print(f"  • Format:         {self.field_format.name.lower():>12}")
        print(f"  • Points:         {len(mesh.points):>12,}")
        print(f"  • Cells:          {len(mesh.cells):>12,}")
        for label, count in sorted(mesh.cell_type_counts().items()):
            print(f"      {label:12s}{count:>14,}")
        print(f"  • Boundary faces: {mesh.n_faces:>12,}")

        print(f"\nCELL ZONES ({len(mesh.zones)}):")
        for zone in mesh.zones:
            print(f"  • {zone.name:24s} (PID {zone.property_id:>8}): {len(zone.cells):10,} cells")

        print(f"\nPATCHES ({len(mesh.patches)}):")
        for patch in mesh.patches:
            print(f"  • {patch.name:24s} (PID {patch.property_id:>8}): {len(patch.faces):10,} faces")

        if self.parse_warnings:
            print(f"\n⚠ {len(self.parse_warnings)} warnings (use --show-issues)")
        print("\n" + "="*75 + "\n")

    def export_stats(self, filepath: str) -> None:
        """Export statistics to JSON file"""
        if self.mesh is None:
            raise ValueError("No data parsed yet")
        export_data = {
            'file': str(self.filepath) if self.filepath else None,
            'parse': self.get_parse_summary(),
            'mesh': self.mesh.summary(),
        }

        with open(filepath, 'w') as f:
            json.dump(export_data, f, indent=2)

        print(f"Statistics exported to {filepath}")


def setup_logging(verbose: bool = False) -> None:
    """Configure console logging for the command line tools"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S',
    )


def add_parser_arguments(ap: argparse.ArgumentParser) -> None:
    """Options shared by the command line tools"""
    ap.add_argument('--format', choices=['small', 'large', 'free'], default='small',
                    help='Input field format (default: small)')
    ap.add_argument('--defaultNames', dest='default_names', action='store_true',
                    help='Ignore names from comments; use patch_<k> and cellZone_<k>')
    ap.add_argument('--strict', action='store_true',
                    help='Fail on duplicate GRID IDs instead of warning')
    ap.add_argument('--show-issues', action='store_true', help='Display parsing warnings')
    ap.add_argument('--export-stats', metavar='FILE', default=None,
                    help='Export statistics to JSON file')
    ap.add_argument('--verbose', action='store_true', help='Show detailed progress')


def parser_from_args(args: argparse.Namespace) -> NASParser:
    return NASParser(
        args.input,
        field_format=FieldFormat.from_name(args.format),
        default_names=args.default_names,
        strict_mode=args.strict,
    )


def report_failure(error: BaseException, parser: Optional[NASParser] = None,
                   show_issues: bool = False) -> int:
    """Print a message for a failed parse and return the process exit code"""
    if isinstance(error, FileNotFoundError):
        print(f"❌ Error: File not found: {error.filename}")
        code = 1
    elif isinstance(error, MissingRequiredSectionError):
        print(f"\n❌ Invalid file format: {error}")
        code = 4
    elif isinstance(error, CorruptedFileError):
        print(f"\n❌ Corrupted file: {error}")
        code = 3
    elif isinstance(error, ParseError):
        print(f"\n❌ Parse error: {error}")
        code = 2
    else:
        print(f"\n💥 Unexpected error: {error}")
        code = 5
    if show_issues and parser is not None:
        parser.print_parse_issues()
    return code


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with robust error handling"""
    ap = argparse.ArgumentParser(description="Inspect a NASTRAN bulk data deck")
    ap.add_argument('input', help='Path to input bulk data deck')
    add_parser_arguments(ap)
    args = ap.parse_args(argv)
    setup_logging(args.verbose)

    parser = parser_from_args(args)
    try:
        parser.parse()
    except KeyboardInterrupt:
        print(f"\n⏹️  Analysis interrupted by user")
        return 130
    except Exception as e:
        if args.verbose:
            import traceback
            traceback.print_exc()
        return report_failure(e, parser, args.show_issues)

    if args.show_issues:
        parser.print_parse_issues()
    parser.print_concise_report()

    if args.export_stats:
        try:
            parser.export_stats(args.export_stats)
        except OSError as e:
            print(f"Warning: Could not export statistics: {e}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
