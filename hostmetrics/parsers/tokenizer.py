"""
Shared line and field tokenizer for command output parsers.

Every parser in this package normalizes its input with ``normalize_output``
and reads columns through a ``FieldSpec`` schema, so CRLF endings, blank
lines and stray whitespace never reach domain code.

Tools that print more than one layout get a small registry of
``OutputFormat`` adapters. The first adapter whose ``detect`` predicate
accepts the normalized lines parses them.
"""

import functools
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from hostmetrics.errors import ParseError, ErrorCode

_TREE_GLYPHS = re.compile(r'^[\s├└│─`|-]+')

# Whole-disk names that end in a digit. Partitions of these use a "p<N>" suffix.
_DIGIT_DISKS = re.compile(
    r'^(nvme\d+n\d+|mmcblk\d+|md\d+|nbd\d+|loop\d+|dm-\d+|sr\d+|zram\d+|ram\d+)(p\d+)?$'
)
_P_PARTITION = re.compile(r'^(.*\d)p\d+$')

_MARKER = re.compile(r'^===\s*(\S.*?)\s*===$')

REQUIRED = object()


def normalize_output(text: Optional[str]) -> List[str]:
    """
    Split command output into stripped, non-empty lines.

    Args:
        text: Raw stdout. None is treated as empty output.

    Returns:
        List of lines with CRLF/CR endings and surrounding whitespace removed.
    """
    if not text:
        return []
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    return [line.strip() for line in text.split('\n') if line.strip()]


def split_sections(text: Optional[str], marker: str) -> List[str]:
    """Split combined output on ``marker``. Missing sections come back as ''."""
    if not text:
        return []
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    return [part.strip('\n') for part in text.split(marker)]


def split_marked(text: Optional[str]) -> Dict[str, List[str]]:
    """
    Group lines under ``=== NAME ===`` marker lines.

    Lines before the first marker are dropped.

    Example:
        >>> split_marked("=== COUNT ===\\n12\\n=== TOP ===\\na\\nb")
        {'COUNT': ['12'], 'TOP': ['a', 'b']}
    """
    sections = {}
    current = None
    for line in normalize_output(text):
        match = _MARKER.match(line)
        if match:
            current = match.group(1)
            sections[current] = []
        elif current is not None:
            sections[current].append(line)
    return sections


def split_blocks(lines: Sequence[str], header_pattern) -> List[List[str]]:
    """
    Group lines into blocks that each start at a header line.

    Args:
        lines: Normalized lines.
        header_pattern: Compiled regex or pattern string matched at line start.

    Returns:
        One list per block, header first. Lines before the first header are dropped.
    """
    if isinstance(header_pattern, str):
        header_pattern = re.compile(header_pattern)
    blocks = []
    for line in lines:
        if header_pattern.match(line):
            blocks.append([line])
        elif blocks:
            blocks[-1].append(line)
    return blocks


def to_int(value: str) -> int:
    """Convert a counter token, accepting thousands separators and a trailing '%'."""
    return int(value.replace(',', '').rstrip('%'))


def to_float(value: str) -> float:
    return float(value.replace(',', '').rstrip('%'))


@dataclass(frozen=True)
class FieldSpec:
    """
    One column of a whitespace-delimited table.

    Attributes:
        name: Key in the parsed row.
        index: Column index in the token list.
        convert: Converter applied to the token.
        default: Value used when the column is missing or does not convert.
            ``REQUIRED`` makes the row invalid instead.
        rest: Join this column and every following one with single spaces.
    """
    name: str
    index: int
    convert: Callable[[str], Any] = str
    default: Any = REQUIRED
    rest: bool = False


def parse_row(tokens: Sequence[str], schema: Sequence[FieldSpec]) -> Dict[str, Any]:
    """
    Apply a field schema to one tokenized line.

    Raises:
        ParseError: If a required column is missing or does not convert.
    """
    row = {}
    for spec in schema:
        if spec.index < len(tokens):
            raw = ' '.join(tokens[spec.index:]) if spec.rest else tokens[spec.index]
            try:
                row[spec.name] = spec.convert(raw)
                continue
            except (ValueError, TypeError):
                if spec.default is REQUIRED:
                    raise ParseError(f"Invalid value for {spec.name}", line=' '.join(tokens))
        elif spec.default is REQUIRED:
            raise ParseError(f"Missing column {spec.name}", line=' '.join(tokens),
                             code=ErrorCode.PARSE_HEADER_MISSING)
        row[spec.name] = spec.default
    return row


def parse_rows(lines: Sequence[str], schema: Sequence[FieldSpec]) -> List[Dict[str, Any]]:
    """Apply ``schema`` to each line, skipping lines that do not fit it."""
    rows = []
    for line in lines:
        try:
            rows.append(parse_row(line.split(), schema))
        except ParseError:
            continue
    return rows


def strip_tree_glyphs(name: str) -> str:
    """Remove lsblk tree drawing characters from a device name."""
    return _TREE_GLYPHS.sub('', name)


def base_device_name(name: str) -> str:
    """
    Reduce a device or partition name to the name of its whole disk.

    Examples:
        >>> base_device_name('/dev/sda1')
        'sda'
        >>> base_device_name('nvme0n1p2')
        'nvme0n1'
        >>> base_device_name('└─mmcblk0p1')
        'mmcblk0'
    """
    name = strip_tree_glyphs(name.strip())
    name = name.rsplit('/', 1)[-1]
    match = _DIGIT_DISKS.match(name)
    if match:
        return match.group(1)
    match = _P_PARTITION.match(name)
    if match:
        return match.group(1)
    return name.rstrip('0123456789') or name


@dataclass(frozen=True)
class OutputFormat:
    """
    A parser for one layout of a tool's output.

    Attributes:
        name: Short label used in debug logs.
        detect: Predicate over the normalized lines.
        parse: Parser over the normalized lines.
    """
    name: str
    detect: Callable[[List[str]], bool]
    parse: Callable[[List[str]], Any]


def select_format(lines: List[str], formats: Sequence[OutputFormat]) -> Optional[OutputFormat]:
    for fmt in formats:
        if fmt.detect(lines):
            return fmt
    return None


def parse_with_formats(lines: List[str], formats: Sequence[OutputFormat], default: Any) -> Any:
    """Parse ``lines`` with the first matching adapter, or return ``default``."""
    fmt = select_format(lines, formats)
    if fmt is None:
        return default
    return fmt.parse(lines)


def parser_boundary(default_factory: Callable[[], Any]):
    """
    Decorator that keeps a parser from raising on malformed input.

    Any parse failure inside the wrapped function yields ``default_factory()``.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except (ParseError, ValueError, IndexError, KeyError, TypeError, AttributeError):
                return default_factory()
        return wrapper
    return decorator
