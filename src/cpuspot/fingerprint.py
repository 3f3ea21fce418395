"""Content hashes for call stack suffixes."""

import hashlib
from collections.abc import Iterator, Sequence

from cpuspot.models import Snapshot

FRAME_SEPARATOR = "\n"

Fingerprint = bytes  # 16-byte MD5 digest


def render_stack(frames: Sequence[str]) -> str:
    """Render frames (outermost first) as a single string."""
    return FRAME_SEPARATOR.join(frames)


def fingerprint(text: str) -> Fingerprint:
    """Hash a rendered stack. Equal text always gives an equal digest."""
    return hashlib.md5(text.encode("utf-8"), usedforsecurity=False).digest()


def stack_fingerprints(snapshot: Snapshot) -> Iterator[tuple[Fingerprint, str]]:
    """
    Yield one (fingerprint, text) pair per suffix of the snapshot's stack.

    The innermost frame alone comes first, then the two innermost frames,
    and so on up to the full stack. Every suffix is rendered outermost first.
    """
    stack = snapshot.stack
    for k in range(1, len(stack) + 1):
        text = render_stack(stack[-k:])
        yield fingerprint(text), text
