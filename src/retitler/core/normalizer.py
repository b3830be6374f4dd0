"""Extract a single clean title from free-form model output.

Models preface answers with reasoning, wrap them in <think> blocks, quote
them, label them ("Title: ...") or spread them over several lines.
normalize_response() undoes all of that deterministically. It never raises;
an empty string means nothing usable was found.
"""

import re

# Nested wrapping thinking blocks are unwrapped at most this many times
MAX_THINK_DEPTH = 2

THINK_TAGS = ("think", "thinking")

_WRAPPED_THINK_RE = re.compile(r"^<(think|thinking)>(.*)</\1>$", re.DOTALL | re.IGNORECASE)
_EMBEDDED_THINK_RE = re.compile(r"<(think|thinking)>.*?</\1>", re.DOTALL | re.IGNORECASE)
_THINK_TAG_RE = re.compile(r"</?(?:think|thinking)>", re.IGNORECASE)
# Reasoning with the opening tag omitted: "...reasoning...</think>\nTitle"
_UNOPENED_THINK_RE = re.compile(r"^.*?</(?:think|thinking)>", re.DOTALL | re.IGNORECASE)

FILLER_PATTERNS = (
    r"let me",
    r"i need to",
    r"i think",
    r"i'll",
    r"i will",
    r"i would",
    r"i'd suggest",
    r"okay\b",
    r"ok,",
    r"sure\b",
    r"based on",
    r"here's",
    r"here is",
    r"the user",
    r"looking at",
    r"a good title",
    r"this (?:note|text|content|document) (?:is|talks|discusses|describes|covers|explains)",
    r"(?:generated |suggested |the |a )?title\s*:",
)
_FILLER_RE = re.compile(r"^(?:" + "|".join(FILLER_PATTERNS) + r")", re.IGNORECASE)

_LABEL_RE = re.compile(
    r"^(?:here's the title|here is the title|generated title|suggested title"
    r"|the title|a title|title)\s*:\s*",
    re.IGNORECASE,
)

# Lower-case residue of a filler sentence cut mid-way, e.g. "s related to ...".
# Capitalized "About ..." is an ordinary title.
_FRAGMENT_RE = re.compile(r"^(?:s |related to\b|mentions\b|specifically\b|about |regarding\b)")

_ASIDE_RE = re.compile(r"\([^)]*\)|\[[^\]]*\]")
_HEADING_MARK_RE = re.compile(r"^#{1,6}\s+")
_EDGE_DASHES_RE = re.compile(r"^[-\s]+|[-\s]+$")
_WHITESPACE_RE = re.compile(r"\s+")

# Opening -> closing wrappers stripped in pairs
WRAPPERS = {
    '"': '"',
    "'": "'",
    "`": "`",
    "*": "*",
    "“": "”",
    "‘": "’",
    "«": "»",
}

_QUOTED_RES = (
    re.compile(r'"([^"\n]{5,})"'),
    re.compile("“([^”\n]{5,})”"),
    re.compile(r"(?<!\w)'([^'\n]{5,})'(?!\w)"),
)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?\n]")

MIN_TITLE_LENGTH = 3
MIN_RECOVERED_LENGTH = 5
MAX_SENTENCE_LENGTH = 80
FALLBACK_WORD_COUNT = 8


def normalize_response(raw: str) -> str:
    """Produce the most plausible single-line title from a raw completion.

    Args:
        raw: The completion text exactly as returned by the backend.

    Returns:
        The extracted title, or an empty string if nothing usable was found.
    """
    if not raw or not raw.strip():
        return ""

    text = _strip_thinking(raw.strip())
    candidate = _polish(_strip_label(_select_line(text)))

    if _needs_recovery(candidate):
        recovered = _recover(raw)
        if recovered:
            candidate = recovered
        candidate = _FRAGMENT_RE.sub("", candidate)

    return _EDGE_DASHES_RE.sub("", candidate).strip()


def is_filler(line: str) -> bool:
    """True if a line is conversational filler rather than a title."""
    return bool(_FILLER_RE.match(line.strip()))


def _strip_thinking(text: str, depth: int = 0) -> str:
    """Unwrap a response-wide thinking block or drop embedded ones."""
    match = _WRAPPED_THINK_RE.match(text)
    if match and depth < MAX_THINK_DEPTH and _is_balanced(match.group(2), match.group(1)):
        return _strip_thinking(match.group(2).strip(), depth + 1)

    stripped = _EMBEDDED_THINK_RE.sub(" ", text).strip()
    if _THINK_TAG_RE.search(stripped):
        remainder = _UNOPENED_THINK_RE.sub("", stripped, count=1).strip()
        if remainder:
            stripped = remainder
    stripped = _THINK_TAG_RE.sub("\n", stripped).strip()

    if not stripped:
        # Nothing outside the thinking blocks; keep their content instead
        return _THINK_TAG_RE.sub("\n", text).strip()
    return stripped


def _is_balanced(inner: str, tag: str) -> bool:
    """True if open/close tags inside inner never close more than they open."""
    depth = 0
    for found in re.finditer(rf"<(/?){tag}>", inner, re.IGNORECASE):
        depth += -1 if found.group(1) else 1
        if depth < 0:
            return False
    return depth == 0


def _select_line(text: str) -> str:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return ""
    for line in lines:
        if not is_filler(line):
            return line
    return lines[0]


def _strip_label(line: str) -> str:
    return _LABEL_RE.sub("", line, count=1)


def _strip_wrappers(text: str) -> str:
    text = text.strip()
    while len(text) >= 2 and WRAPPERS.get(text[0]) == text[-1]:
        text = text[1:-1].strip()
    return text


def _polish(text: str) -> str:
    """Drop asides, markdown heading marks, wrapping quotes and edge dashes."""
    text = _ASIDE_RE.sub("", text)
    text = _HEADING_MARK_RE.sub("", text.strip())
    text = _strip_wrappers(text)
    text = _WHITESPACE_RE.sub(" ", text)
    return _EDGE_DASHES_RE.sub("", text).strip()


def _needs_recovery(candidate: str) -> bool:
    return (
        len(candidate) < MIN_TITLE_LENGTH
        or bool(_FRAGMENT_RE.match(candidate))
        or is_filler(candidate)
    )


def _recover(raw: str) -> str:
    """Search the raw response for something title-like.

    Tries, in order: the first quoted span, the first short non-filler
    sentence, then the first few meaningful words.
    """
    text = _THINK_TAG_RE.sub("\n", raw)

    for pattern in _QUOTED_RES:
        match = pattern.search(text)
        if match:
            quoted = _polish(match.group(1))
            if len(quoted) >= MIN_RECOVERED_LENGTH:
                return quoted

    for sentence in _SENTENCE_SPLIT_RE.split(text):
        sentence = _polish(_strip_label(sentence.strip()))
        if (
            MIN_RECOVERED_LENGTH <= len(sentence) <= MAX_SENTENCE_LENGTH
            and not is_filler(sentence)
            and not _FRAGMENT_RE.match(sentence)
        ):
            return sentence

    words = [word for word in text.split() if len(word) > 2]
    return " ".join(words[:FALLBACK_WORD_COUNT])
