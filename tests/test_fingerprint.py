"""Tests for stack suffix fingerprints."""

from cpuspot.fingerprint import FRAME_SEPARATOR, fingerprint, render_stack, stack_fingerprints
from cpuspot.models import Snapshot


def snapshot_with(stack, thread_id=1):
    return Snapshot(thread_id=thread_id, timestamp=0.0, kernel_time=0, user_time=0, stack=stack)


class TestFingerprint:
    """Tests for fingerprint and render_stack."""

    def test_fingerprint_is_128_bits(self):
        """Test fingerprints are 16-byte digests."""
        assert len(fingerprint("main")) == 16

    def test_fingerprint_is_deterministic(self):
        """Test equal text hashes to equal fingerprints."""
        assert fingerprint("a\nb") == fingerprint("a\nb")
        assert fingerprint("a\nb") != fingerprint("b\na")

    def test_render_stack_joins_outermost_first(self):
        """Test frames are joined in order with the separator."""
        assert FRAME_SEPARATOR == "\n"
        assert render_stack(["A", "B", "C"]) == "A\nB\nC"
        assert render_stack([]) == ""


class TestStackFingerprints:
    """Tests for stack_fingerprints."""

    def test_one_fingerprint_per_frame(self):
        """Test a stack of n frames yields n fingerprints."""
        for n in range(6):
            stack = [f"f{i}" for i in range(n)]
            assert len(list(stack_fingerprints(snapshot_with(stack)))) == n

    def test_innermost_suffix_first(self):
        """Test suffixes are produced from the leaf outward."""
        texts = [text for _, text in stack_fingerprints(snapshot_with(["A", "B", "C"]))]

        assert texts == ["C", "B\nC", "A\nB\nC"]

    def test_pairs_hash_their_own_text(self):
        """Test each fingerprint is the hash of the text it is paired with."""
        for key, text in stack_fingerprints(snapshot_with(["A", "B", "C"])):
            assert key == fingerprint(text)

    def test_shared_suffix_has_identical_fingerprint(self):
        """Test unrelated snapshots sharing a tail share its fingerprints."""
        first = list(stack_fingerprints(snapshot_with(["main", "serve", "parse"], 1)))
        second = list(stack_fingerprints(snapshot_with(["worker", "parse"], 2)))

        # Same leaf frame in two different threads
        assert first[0] == second[0]
        assert first[1] != second[1]

    def test_empty_stack_yields_nothing(self):
        """Test an empty stack has no fingerprints."""
        assert list(stack_fingerprints(snapshot_with(()))) == []
