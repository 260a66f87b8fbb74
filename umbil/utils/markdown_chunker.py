"""Markdown-aware chunking used when building the knowledge base.

The chunker works in three passes over one document:

1. **Sectioning** - split at ``#``..``######`` header lines while keeping a
   stack of the enclosing headers, so every section knows its ancestry.
2. **Element packing** - parse each section into headings, paragraphs, lists
   and fenced code blocks, then pack whole elements greedily into chunks of
   at most ``max_chunk_size`` characters.  Elements that are too large on
   their own are split at sentence boundaries.
3. **Overlap** - prefix every chunk after the first with the tail of the
   previous chunk so retrieval keeps some context across chunk boundaries.

The chunker never raises for odd input: unbalanced fences, stray list
markers and so on are treated as best-effort text.  A single sentence that
is longer than ``max_chunk_size`` cannot be split and is emitted as one
oversized chunk.

Usage::

    from umbil.utils.markdown_chunker import MarkdownChunker

    chunks = MarkdownChunker(max_chunk_size=800).chunk_markdown(text)
"""

from __future__ import annotations

from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from enum import Enum
import logging
import re
from typing import Any, Literal

__all__ = [
    "Chunk",
    "ChunkMetadata",
    "ChunkType",
    "Element",
    "Header",
    "LineKind",
    "MarkdownChunker",
    "Section",
    "chunk_markdown_content",
    "classify_line",
    "detect_chunk_type",
    "parse_elements",
    "split_sections",
]

logger = logging.getLogger(__name__)

ChunkType = Literal["heading", "paragraph", "list", "code", "mixed"]
ElementType = Literal["heading", "paragraph", "list", "code"]

# --------------------------------------------------------------------- #
# Line patterns                                                         #
# --------------------------------------------------------------------- #
CODE_FENCE = "```"
ELEMENT_SEPARATOR = "\n\n"

_HEADER_RE = re.compile(r"^(?P<hashes>#{1,6})[ \t]+(?P<title>\S.*?)\s*$")
_LIST_MARKER_RE = re.compile(r"^[ \t]*(?:[-*+]|\d+\.)[ \t]")
_HEADER_MARKER_MULTILINE_RE = re.compile(r"^#{1,6}[ \t]", re.MULTILINE)
_LIST_MARKER_MULTILINE_RE = re.compile(r"^[ \t]*(?:[-*+]|\d+\.)[ \t]", re.MULTILINE)
# One sentence = text up to a run of terminators plus trailing whitespace.
# A trailing fragment without a terminator is kept as its own unit.
_SENTENCE_RE = re.compile(r"[^.!?]*[.!?]+\s*|[^.!?]+$")


class LineKind(str, Enum):
    BLANK = "blank"
    FENCE = "fence"
    HEADING = "heading"
    LIST_ITEM = "list_item"
    CONTINUATION = "continuation"
    TEXT = "text"


def classify_line(line: str, in_list: bool = False) -> LineKind:
    """Classify one raw line.

    ``in_list`` switches on list-continuation detection: inside a list, any
    non-blank line indented by two or more spaces belongs to the list, even
    if it looks like a code fence.
    """
    stripped = line.strip()
    if not stripped:
        return LineKind.BLANK
    if _LIST_MARKER_RE.match(line):
        return LineKind.LIST_ITEM
    if in_list and line.startswith("  "):
        return LineKind.CONTINUATION
    if stripped.startswith(CODE_FENCE):
        return LineKind.FENCE
    if _HEADER_RE.match(line):
        return LineKind.HEADING
    return LineKind.TEXT


# --------------------------------------------------------------------- #
# Data model                                                            #
# --------------------------------------------------------------------- #
@dataclass(frozen=True)
class Header:
    level: int
    text: str


@dataclass(frozen=True)
class Section:
    """Content under one header, tagged with the headers enclosing it."""

    headers: list[str]
    content: str


@dataclass(frozen=True)
class Element:
    type: ElementType
    content: str


@dataclass(frozen=True)
class ChunkMetadata:
    headers: list[str] = field(default_factory=list)
    type: ChunkType = "paragraph"


@dataclass(frozen=True)
class Chunk:
    """Output unit handed to the embedding and persistence steps."""

    content: str
    metadata: ChunkMetadata

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# --------------------------------------------------------------------- #
# Stage 1 - sectioning                                                  #
# --------------------------------------------------------------------- #
def split_sections(content: str) -> list[Section]:
    """Split *content* at header lines.

    A section's ``headers`` are the texts of the headers strictly enclosing
    it; the section's own header line is the first line of its content.
    Header-looking lines inside fenced code blocks do not start sections.
    A fence that is never closed does not hide the headers after it.
    """
    lines = content.split("\n")
    fences = [i for i, line in enumerate(lines) if line.strip().startswith(CODE_FENCE)]
    if len(fences) % 2:
        fences.pop()
    fence_lines = set(fences)

    sections: list[Section] = []
    stack: list[Header] = []
    ancestry: list[str] = []
    buffer: list[str] = []
    in_fence = False

    def flush() -> None:
        text = "\n".join(buffer).strip()
        if text:
            sections.append(Section(headers=list(ancestry), content=text))

    for i, line in enumerate(lines):
        if i in fence_lines:
            in_fence = not in_fence
        match = None if in_fence else _HEADER_RE.match(line)
        if match is None:
            buffer.append(line)
            continue

        flush()
        level = len(match.group("hashes"))
        while stack and stack[-1].level >= level:
            stack.pop()
        ancestry = [header.text for header in stack]
        stack.append(Header(level=level, text=match.group("title")))
        buffer = [line]

    flush()
    return sections


# --------------------------------------------------------------------- #
# Stage 2 - element parsing                                             #
# --------------------------------------------------------------------- #
def parse_elements(content: str) -> list[Element]:
    """Group the lines of a section into headings, paragraphs, lists and code."""
    lines = content.split("\n")
    elements: list[Element] = []
    i = 0

    while i < len(lines):
        kind = classify_line(lines[i])
        if kind is LineKind.BLANK:
            i += 1
            continue

        start = i
        i += 1
        element_type: ElementType
        if kind is LineKind.FENCE:
            while i < len(lines) and not lines[i].strip().startswith(CODE_FENCE):
                i += 1
            # consume the closing fence; an unterminated block runs to the end
            i = min(i + 1, len(lines))
            element_type = "code"
        elif kind is LineKind.LIST_ITEM:
            while i < len(lines) and classify_line(lines[i], in_list=True) in (
                LineKind.LIST_ITEM,
                LineKind.CONTINUATION,
            ):
                i += 1
            element_type = "list"
        elif kind is LineKind.HEADING:
            element_type = "heading"
        else:
            while i < len(lines) and classify_line(lines[i]) is LineKind.TEXT:
                i += 1
            element_type = "paragraph"

        elements.append(Element(type=element_type, content="\n".join(lines[start:i])))

    return elements


def detect_chunk_type(content: str) -> ChunkType:
    """Infer the chunk type from the markers present in *content*."""
    has_code = CODE_FENCE in content
    has_list = bool(_LIST_MARKER_MULTILINE_RE.search(content))
    has_heading = bool(_HEADER_MARKER_MULTILINE_RE.search(content))

    if sum((has_code, has_list, has_heading)) > 1:
        return "mixed"
    if has_code:
        return "code"
    if has_list:
        return "list"
    if has_heading:
        return "heading"
    return "paragraph"


# --------------------------------------------------------------------- #
# Public API                                                            #
# --------------------------------------------------------------------- #
@dataclass(frozen=True)
class MarkdownChunker:
    """Split markdown into bounded, structure-aware chunks.

    Attributes:
        max_chunk_size: Upper bound on chunk length in characters (before
            overlap is added).
        min_chunk_size: A section's trailing remainder shorter than this is
            dropped, unless it is the only text the document yields.
        overlap_size: Characters of the previous chunk prefixed onto each
            later chunk. ``0`` disables overlap.
    """

    max_chunk_size: int = 1000
    min_chunk_size: int = 100
    overlap_size: int = 100

    def __post_init__(self) -> None:
        if self.max_chunk_size < 1:
            raise ValueError("max_chunk_size must be at least 1")
        if self.min_chunk_size < 0 or self.overlap_size < 0:
            raise ValueError("min_chunk_size and overlap_size must be non-negative")
        if self.min_chunk_size > self.max_chunk_size:
            raise ValueError("min_chunk_size cannot exceed max_chunk_size")

    def chunk_markdown(self, content: str) -> list[Chunk]:
        """Return the ordered chunks for one markdown document."""
        sections = split_sections(content)
        chunks: list[Chunk] = []
        short_tails: list[Chunk] = []
        for section in sections:
            section_chunks, short_tail = self._chunk_section(section)
            chunks.extend(section_chunks)
            if short_tail is not None:
                short_tails.append(short_tail)

        # A document that is one short block is kept rather than lost
        if not chunks and len(short_tails) == 1:
            chunks = short_tails

        logger.debug(
            "Chunked markdown into %d sections and %d chunks",
            len(sections),
            len(chunks),
        )
        return self._add_overlap(chunks)

    # -------- Stage 2 ----------------------------------------------------
    def _chunk_section(self, section: Section) -> tuple[list[Chunk], Chunk | None]:
        """Pack one section, returning its chunks and any dropped short tail."""
        chunks: list[Chunk] = []
        buffer: list[str] = []
        size = 0

        for element in parse_elements(section.content):
            element_size = len(element.content)

            if element_size > self.max_chunk_size:
                if buffer:
                    chunks.append(self._create_chunk(buffer, section.headers))
                    buffer, size = [], 0
                for piece in self._split_large_element(element.content):
                    chunks.append(self._create_chunk([piece], section.headers))
                continue

            joined_size = element_size
            if buffer:
                joined_size += size + len(ELEMENT_SEPARATOR)
            if buffer and joined_size > self.max_chunk_size:
                chunks.append(self._create_chunk(buffer, section.headers))
                buffer, size = [element.content], element_size
            else:
                buffer.append(element.content)
                size = joined_size

        short_tail: Chunk | None = None
        if buffer:
            tail = self._create_chunk(buffer, section.headers)
            if size >= self.min_chunk_size:
                chunks.append(tail)
            else:
                logger.debug(
                    "Dropping %d-char trailing remainder under %s",
                    size,
                    section.headers,
                )
                short_tail = tail

        return chunks, short_tail

    def _split_large_element(self, content: str) -> list[str]:
        """Split an oversized element at sentence boundaries."""
        sentences = _SENTENCE_RE.findall(content) or [content]
        pieces: list[str] = []
        current = ""

        for sentence in sentences:
            if current.strip() and len(current) + len(sentence) > self.max_chunk_size:
                pieces.append(current.strip())
                current = sentence
            else:
                current += sentence

        if current.strip():
            pieces.append(current.strip())

        for piece in pieces:
            if len(piece) > self.max_chunk_size:
                logger.warning(
                    "Emitting %d-char chunk above max_chunk_size=%d: no sentence break",
                    len(piece),
                    self.max_chunk_size,
                )
        return pieces

    @staticmethod
    def _create_chunk(parts: list[str], headers: list[str]) -> Chunk:
        content = ELEMENT_SEPARATOR.join(parts).strip()
        return Chunk(
            content=content,
            metadata=ChunkMetadata(
                headers=list(headers), type=detect_chunk_type(content)
            ),
        )

    # -------- Stage 3 ----------------------------------------------------
    def _add_overlap(self, chunks: list[Chunk]) -> list[Chunk]:
        if self.overlap_size == 0 or len(chunks) < 2:
            return chunks

        # Read tails from the untouched input list so overlaps never compound.
        overlapped = [chunks[0]]
        for previous, current in zip(chunks, chunks[1:]):
            tail = previous.content[-self.overlap_size :]
            overlapped.append(
                replace(current, content=f"{tail}{ELEMENT_SEPARATOR}{current.content}")
            )
        return overlapped


def chunk_markdown_content(content: str, **options: int) -> list[Chunk]:
    """One-off helper: build a chunker from *options* and chunk *content*."""
    return MarkdownChunker(**options).chunk_markdown(content)
