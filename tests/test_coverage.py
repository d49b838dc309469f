from conftest import RecordingWriter, make_primer

from mpd.coverage import CoverageTracker, amplicon_spans
from mpd.regions import Region


def test_region_inside_padded_amplicon_is_covered(targets) -> None:
    tracker = CoverageTracker(targets, pad_size=60)
    # amplicon chr1:1000-1200 spans EX1 at chr1:1050-1150
    assert tracker.uncovered([make_primer()]) == [targets[1]]


def test_pad_extends_amplicon_reach() -> None:
    region = [Region("chr1", 1200, 1250, "edge")]
    primer = make_primer(start=1000, size=200)
    assert CoverageTracker(region, pad_size=0).uncovered([primer]) == region
    assert CoverageTracker(region, pad_size=60).uncovered([primer]) == []


def test_padded_span_never_goes_negative() -> None:
    assert amplicon_spans([make_primer(start=10, size=100)], 60) == [("chr1", 0, 170)]


def test_uncovered_is_recomputed_against_original_targets(targets) -> None:
    tracker = CoverageTracker(targets, pad_size=60)
    only_chr2 = make_primer(chrom="chr2", start=4950, size=200)
    assert tracker.uncovered([only_chr2]) == [targets[0]]
    # a later call with the full ledger starts again from the original targets
    assert tracker.uncovered([only_chr2, make_primer()]) == []


def test_uncovered_is_subset_of_original() -> None:
    original = [Region("chr1", 0, 1000, "BIG")]
    tracker = CoverageTracker(original, pad_size=10)
    for piece in tracker.uncovered([make_primer(start=400, size=200)]):
        assert piece.chrom == "chr1"
        assert 0 <= piece.start < piece.end <= 1000
        assert piece.name == "BIG"


def test_update_writes_snapshot_keyed_by_iteration(targets) -> None:
    writer = RecordingWriter()
    tracker = CoverageTracker(targets, pad_size=60, writer=writer)
    primers = [make_primer()]
    assert tracker.update(primers, 3) == [targets[1]]
    assert writer.writes == [(primers, "3")]
