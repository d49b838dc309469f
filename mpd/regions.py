from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Region:
    """Half-open genomic interval [start, end) with an optional label."""
    chrom: str
    start: int
    end: int
    name: Optional[str] = None

    def __post_init__(self):
        if self.start < 0 or self.end <= self.start:
            raise ValueError(f"Invalid region {self.chrom}:{self.start}-{self.end}")

    def overlaps(self, chrom, start, end):
        return self.chrom == chrom and self.start < end and start < self.end

    def as_bed_line(self):
        fields = [self.chrom, str(self.start), str(self.end)]
        if self.name:
            fields.append(self.name)
        return "\t".join(fields)


# --- BED I/O ---

def read_bed(bed_file):
    """
    Reads a BED file into a sorted list of disjoint Regions.
    Overlapping or touching entries on the same chromosome are merged; the
    first label seen is kept.
    """
    entries = []
    with open(bed_file) as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip() or line.startswith(('#', 'track', 'browser')):
                continue
            parts = line.rstrip('\n').split('\t')
            if len(parts) < 3:
                raise ValueError(f"{bed_file}:{line_no}: expected at least 3 columns, got '{line.strip()}'")
            try:
                start, end = int(parts[1]), int(parts[2])
            except ValueError:
                raise ValueError(f"{bed_file}:{line_no}: non-integer coordinates in '{line.strip()}'")
            name = parts[3] if len(parts) > 3 and parts[3] else None
            entries.append(Region(parts[0], start, end, name))
    return merge_regions(entries)


def write_bed(bed_file, regions):
    with open(bed_file, 'w') as f:
        for region in regions:
            f.write(region.as_bed_line() + "\n")


def merge_regions(regions):
    merged = []
    for region in sorted(regions, key=lambda r: (r.chrom, r.start, r.end)):
        if merged and merged[-1].chrom == region.chrom and region.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Region(last.chrom, last.start, max(last.end, region.end), last.name or region.name)
        else:
            merged.append(region)
    return merged


# --- Interval arithmetic ---

def _spans_by_chrom(spans):
    by_chrom = {}
    for chrom, start, end in spans:
        by_chrom.setdefault(chrom, []).append((start, end))
    for chrom in by_chrom:
        by_chrom[chrom].sort()
    return by_chrom


def subtract_spans(regions, spans):
    """
    Returns the parts of `regions` not touched by any (chrom, start, end) span.
    Every returned Region lies inside exactly one input region and keeps its label.
    """
    by_chrom = _spans_by_chrom(spans)
    remaining = []
    for region in regions:
        cursor = region.start
        for start, end in by_chrom.get(region.chrom, []):
            if end <= cursor or start >= region.end:
                continue
            if start > cursor:
                remaining.append(Region(region.chrom, cursor, start, region.name))
            cursor = max(cursor, end)
            if cursor >= region.end:
                break
        if cursor < region.end:
            remaining.append(Region(region.chrom, cursor, region.end, region.name))
    return remaining


def intersect_spans(regions, spans):
    """Returns the parts of `regions` covered by at least one span."""
    uncovered = subtract_spans(regions, spans)
    return subtract_spans(regions, [(r.chrom, r.start, r.end) for r in uncovered])
