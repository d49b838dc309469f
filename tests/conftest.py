import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from mpd.primers import PrimerCandidate  # noqa: E402
from mpd.regions import Region  # noqa: E402


def make_primer(pool=0, chrom="chr1", start=1000, size=200, fwd="ACGTACGTACGTACGTAC", rev="TTGCATTGCATTGCATTG"):
    return PrimerCandidate(
        pool=pool, chrom=chrom,
        fwd_seq=fwd, fwd_start=start, fwd_stop=start + len(fwd), fwd_tm=60.1, fwd_gc=0.5,
        rev_seq=rev, rev_start=start + size - len(rev), rev_stop=start + size, rev_tm=59.8, rev_gc=0.45,
        product_size=size,
    )


class FakeInvoker:
    """Stands in for the design engine: replays scripted results, one per call."""

    def __init__(self, results=()):
        self.results = list(results)
        self.calls = []

    def __call__(self, targets, params):
        self.calls.append((list(targets), params.snapshot()))
        if not self.results:
            return None
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class RecordingWriter:
    def __init__(self):
        self.writes = []

    def write(self, primers, ext):
        self.writes.append((list(primers), ext))
        return bool(primers)


@pytest.fixture
def targets():
    return [Region("chr1", 1050, 1150, "EX1"), Region("chr2", 5000, 5100, "EX2")]
