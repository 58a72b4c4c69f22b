"""
OCR text cleaning.

Raw screen text is full of UI chrome: tab bars, menu bars, buttons, URLs,
breadcrumbs, file paths and clocks. Cleaning runs in two passes:

1. Every line is checked against a table of noise predicates and dropped
   if any of them fires.
2. Surviving lines are glued into blocks. A short line ends the current
   block, and only blocks with enough words are kept.

Single lines cannot tell a short sentence fragment from a UI label; a
paragraph of eight or more words can.
"""

import re
from typing import Callable, Iterable, List, Tuple


MIN_LINE_CHARS = 5
BLOCK_BREAK_CHARS = 8
MIN_BLOCK_WORDS = 8

MENU_WORDS = frozenset({
    "file", "edit", "view", "window", "help", "format", "insert", "tools",
})
URL_DOMAIN_MARKERS = (".com/", ".io/", ".org/")
BULLET_GLYPHS = ("•", "·", "›", "→")
PATH_MARKERS = (
    "Users/", "Desktop/", "Documents/",
    "Users\\", "Desktop\\", "Documents\\",
)

_DRIVE_PATH = re.compile(r"^[A-Za-z]:\\")


def is_too_short(line: str) -> bool:
    return len(line) < MIN_LINE_CHARS


def is_url(line: str) -> bool:
    if "://" in line or line.startswith("www."):
        return True
    if any(marker in line for marker in URL_DOMAIN_MARKERS):
        return " " not in line and "/" in line
    return False


def is_tab_bar(line: str) -> bool:
    """Browser tab strips: several short segments separated by pipes."""
    pipes = line.count("|")
    if pipes < 2 or len(line) >= 300:
        return False
    return len(line) / (pipes + 1) < 25


def is_mostly_symbols(line: str) -> bool:
    if not line:
        return False
    alpha = sum(1 for c in line if c.isalpha())
    return alpha / len(line) < 0.35


def is_menu_bar(line: str) -> bool:
    lower = line.lower()
    if lower in MENU_WORDS:
        return True
    words = set(lower.split())
    return {"file", "edit", "view"} <= words


def is_ui_label(line: str) -> bool:
    """Single tokens such as buttons and labels."""
    return " " not in line and len(line) < 20


def is_breadcrumb(line: str) -> bool:
    return sum(line.count(glyph) for glyph in BULLET_GLYPHS) >= 3


def is_file_path(line: str) -> bool:
    if line.startswith("/") and " " not in line:
        return True
    if _DRIVE_PATH.match(line):
        return True
    if any(marker in line for marker in PATH_MARKERS):
        return " " not in line or len(line) < 40
    return False


def is_timestamp(line: str) -> bool:
    if len(line) >= 20:
        return False
    digits = sum(1 for c in line if c in "0123456789")
    return digits > len(line) // 2 and ":" in line


LINE_FILTERS: Tuple[Callable[[str], bool], ...] = (
    is_too_short,
    is_url,
    is_tab_bar,
    is_mostly_symbols,
    is_menu_bar,
    is_ui_label,
    is_breadcrumb,
    is_file_path,
    is_timestamp,
)


def is_noise_line(line: str) -> bool:
    """True if any line filter rejects the (already trimmed) line."""
    return any(check(line) for check in LINE_FILTERS)


def filter_lines(raw: str) -> List[str]:
    """First pass: trimmed lines that survive every filter, in order."""
    kept = []
    for line in raw.splitlines():
        trimmed = line.strip()
        if is_noise_line(trimmed):
            continue
        kept.append(trimmed)
    return kept


def assemble_blocks(lines: Iterable[str]) -> List[str]:
    """Second pass: merge consecutive lines into paragraphs."""
    blocks: List[str] = []
    current: List[str] = []

    def flush():
        block = " ".join(current).strip()
        if len(block.split()) >= MIN_BLOCK_WORDS:
            blocks.append(block)
        current.clear()

    for line in lines:
        if len(line) < BLOCK_BREAK_CHARS:
            if current:
                flush()
            continue
        current.append(line)

    if current:
        flush()
    return blocks


def clean_ocr_text(raw: str) -> str:
    """Turn raw OCR output into newline-separated content blocks."""
    if not raw:
        return ""
    return "\n".join(assemble_blocks(filter_lines(raw)))


def word_count(text: str) -> int:
    return len(text.split())
