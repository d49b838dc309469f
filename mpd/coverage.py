from .regions import subtract_spans


def amplicon_spans(primers, pad_size):
    """Amplicon extents widened by the design pad on both sides."""
    return [(chrom, max(0, start - pad_size), end + pad_size) for chrom, start, end in
            (p.amplicon for p in primers)]


class CoverageTracker:
    """
    Recomputes the uncovered part of the original targets from the full set of
    kept primers. Always a total recompute against the original targets, never
    a diff against the previous uncovered set.
    """

    def __init__(self, original, pad_size, writer=None, debug=False):
        self.original = list(original)
        self.pad_size = pad_size
        self.writer = writer
        self.debug = debug

    def uncovered(self, primers):
        return subtract_spans(self.original, amplicon_spans(primers, self.pad_size))

    def update(self, primers, iteration):
        uncovered = self.uncovered(primers)
        if self.debug:
            print(f"Coverage after iteration {iteration}: {len(uncovered)} uncovered region(s) remain.")
        if self.writer is not None:
            # intermediate snapshot keyed by iteration number
            self.writer.write(primers, str(iteration))
        return uncovered
