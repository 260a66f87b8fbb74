"""Load a Markdown file → List[dict] of structure-aware chunks.

Timestamp priority rules
------------------------
1. `created:` front-matter (e.g. “Jun 11, 2024 at 9:40 AM”)
2. Date encoded in the **filename**  (yyyy-mm-dd.*) - time fixed to 12:00
3. File-system mtime.
If front-matter *and* filename disagree on the **date**, we keep
the filename date (12 PM) to avoid silent conflicts.

Every other front-matter key is copied onto each chunk.
"""

from __future__ import annotations

from datetime import date
from datetime import datetime
from pathlib import Path
import re
from typing import Any
import uuid

import frontmatter

from umbil.utils.markdown_chunker import MarkdownChunker

__all__ = ["parse_markdown_file"]

# --------------------------------------------------------------------- #
# Helpers                                                               #
# --------------------------------------------------------------------- #
_FILENAME_DATE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")
_CREATED_FORMATS = ("%b %d, %Y at %I:%M %p", "%b %d, %Y")


def _frontmatter_datetime(value: Any) -> datetime | None:
    """Parse the `created:` value; returns tz-naive."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        pass
    for fmt in _CREATED_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def _filename_datetime(path: Path) -> datetime | None:
    """Extract yyyy-mm-dd from the filename; attach 12:00."""
    m = _FILENAME_DATE_RE.match(path.stem)
    if not m:
        return None
    try:
        return datetime.fromisoformat(f"{m.group(1)}T12:00:00")
    except ValueError:
        return None


def _json_safe(value: Any) -> Any:
    # Front-matter YAML may yield dates, which the Supabase client cannot encode
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    return value


# --------------------------------------------------------------------- #
# Public API                                                            #
# --------------------------------------------------------------------- #
def parse_markdown_file(
    path: str | Path, chunker: MarkdownChunker | None = None
) -> list[dict[str, Any]]:
    """Return *chunked* representation of one Markdown file."""
    path = Path(path)
    post = frontmatter.load(path)
    extra = {k: _json_safe(v) for k, v in post.metadata.items() if k != "created"}

    fm_dt = _frontmatter_datetime(post.metadata.get("created"))
    fn_dt = _filename_datetime(path)
    mtime_dt = datetime.fromtimestamp(path.stat().st_mtime)

    # Resolve conflicts
    if fn_dt and fm_dt and fn_dt.date() != fm_dt.date():
        chosen_ts = fn_dt  # filename wins on date, 12 PM time
    else:
        chosen_ts = fm_dt or fn_dt or mtime_dt

    chunks = (chunker or MarkdownChunker()).chunk_markdown(post.content)
    return [
        {
            **extra,
            "id": str(uuid.uuid4()),
            "content": chunk.content,
            "headers": chunk.metadata.headers,
            "chunk_type": chunk.metadata.type,
            "created_at": chosen_ts.isoformat(),
            "source": str(path),
        }
        for chunk in chunks
    ]
