"""Find and remove lines that restate a document's title.

A line is a candidate if it is a markdown header anywhere in the document,
or a plain line near the top. Candidates are compared to the title with a
normalized Levenshtein similarity. Removal is line-grained and never leaves
the document empty.
"""

import re
from collections.abc import Iterable, Mapping

from retitler.models.duplicates import Sensitivity, TitleMatch

DEFAULT_THRESHOLDS: dict[Sensitivity, float] = {
    Sensitivity.STRICT: 0.95,
    Sensitivity.NORMAL: 0.85,
    Sensitivity.LOOSE: 0.7,
}

EXACT_MATCH_THRESHOLD = 0.98

# Plain lines only count as title restatements among the first few non-blank lines
PLAIN_TEXT_WINDOW = 3

MAX_LEADING_BLANK_LINES = 0

_HEADER_RE = re.compile(r"^ {0,3}(#{1,6})[ \t]+(.*?)(?:[ \t]+#+)?[ \t]*$")
_FENCE_RE = re.compile(r"^ {0,3}(```|~~~)")
_TABLE_RE = re.compile(r"^\s*\|")
_FRONTMATTER_DELIMITER = "---"
_PUNCTUATION_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_for_comparison(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    text = _PUNCTUATION_RE.sub(" ", text.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum single-character edits turning a into b."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + (char_a != char_b),  # substitution
                )
            )
        previous = current
    return previous[-1]


def calculate_similarity(a: str, b: str) -> float:
    """Similarity in [0, 1] between two strings after normalization.

    Identical normalized strings score 1.0; an empty side scores 0.0.
    """
    left = normalize_for_comparison(a)
    right = normalize_for_comparison(b)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    return 1.0 - levenshtein_distance(left, right) / max(len(left), len(right))


def resolve_threshold(
    sensitivity: Sensitivity | str,
    thresholds: Mapping[Sensitivity | str, float] | None = None,
) -> float:
    """Threshold for a sensitivity tier, using overrides when given."""
    sensitivity = Sensitivity(sensitivity)
    if thresholds:
        for key in (sensitivity, sensitivity.value):
            if key in thresholds:
                return thresholds[key]
    return DEFAULT_THRESHOLDS[sensitivity]


def _split_lines(content: str) -> list[tuple[int, str]]:
    """Lines with their start offsets; a trailing \\r is not part of the line."""
    lines = []
    offset = 0
    for raw in content.split("\n"):
        lines.append((offset, raw.removesuffix("\r")))
        offset += len(raw) + 1
    return lines


def _frontmatter_end(lines: list[tuple[int, str]]) -> int:
    """Index of the first line after a leading YAML frontmatter block, or 0."""
    if not lines or lines[0][1].strip() != _FRONTMATTER_DELIMITER:
        return 0
    for index in range(1, len(lines)):
        if lines[index][1].strip() == _FRONTMATTER_DELIMITER:
            return index + 1
    return 0


def detect_title_duplicates(
    title: str,
    content: str,
    sensitivity: Sensitivity | str = Sensitivity.NORMAL,
    thresholds: Mapping[Sensitivity | str, float] | None = None,
    plain_text_window: int = PLAIN_TEXT_WINDOW,
) -> list[TitleMatch]:
    """Find lines that restate the title.

    Args:
        title: The generated title.
        content: Full document text.
        sensitivity: Threshold tier.
        thresholds: Optional per-tier threshold overrides.
        plain_text_window: How many leading non-blank lines are checked as plain text.

    Returns:
        Matches in document order.
    """
    threshold = resolve_threshold(sensitivity, thresholds)
    lines = _split_lines(content)
    matches: list[TitleMatch] = []
    in_fence = False
    plain_seen = 0

    for index in range(_frontmatter_end(lines), len(lines)):
        start, line = lines[index]

        if _FENCE_RE.match(line):
            in_fence = not in_fence
            plain_seen += 1
            continue
        if in_fence or not line.strip():
            continue

        header = _HEADER_RE.match(line)
        if header:
            candidate, level = header.group(2), len(header.group(1))
        elif plain_seen < plain_text_window and not _TABLE_RE.match(line):
            candidate, level = line, 0
        else:
            candidate, level = None, 0
        plain_seen += 1

        if candidate is None:
            continue

        score = calculate_similarity(title, candidate)
        if score >= threshold:
            matches.append(
                TitleMatch(
                    start=start,
                    end=start + len(line),
                    line=line,
                    similarity=score,
                    line_number=index + 1,
                    is_header=level > 0,
                    header_level=level,
                )
            )

    return matches


def is_exact_match(match: TitleMatch, threshold: float = EXACT_MATCH_THRESHOLD) -> bool:
    """True if a match is close enough to count as a verbatim restatement."""
    return match.similarity >= threshold


def select_matches(
    matches: Iterable[TitleMatch],
    exact_only: bool,
    exact_threshold: float = EXACT_MATCH_THRESHOLD,
) -> list[TitleMatch]:
    """Apply a removal policy: near-exact duplicates only, or every match."""
    if not exact_only:
        return list(matches)
    return [m for m in matches if is_exact_match(m, exact_threshold)]


def remove_matches(
    content: str,
    matches: Iterable[TitleMatch],
    max_leading_blank_lines: int = MAX_LEADING_BLANK_LINES,
) -> str:
    """Delete matched lines from the document.

    Whole lines are removed, bottom-up. A blank line left doubled at a
    removal site is dropped, and blank lines at the start of the document
    are capped at max_leading_blank_lines. If the result would be empty the
    original content is returned unchanged.
    """
    line_numbers = sorted({m.line_number for m in matches}, reverse=True)
    if not line_numbers:
        return content

    lines = content.split("\n")
    for number in line_numbers:
        index = number - 1
        if not 0 <= index < len(lines):
            continue
        del lines[index]
        if (
            0 < index < len(lines)
            and not lines[index - 1].strip()
            and not lines[index].strip()
        ):
            del lines[index]

    leading = 0
    while leading < len(lines) and not lines[leading].strip():
        leading += 1
    if leading > max_leading_blank_lines:
        del lines[: leading - max_leading_blank_lines]

    result = "\n".join(lines)
    if not result.strip():
        return content
    return result
