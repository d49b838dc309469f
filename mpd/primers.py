from collections import Counter
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class PrimerCandidate:
    """
    One designed primer pair. `pool` is only meaningful inside the batch that
    produced the candidate until the ledger rewrites it to a global id.
    Coordinates are 0-based, half-open.
    """
    pool: int
    chrom: str
    fwd_seq: str
    fwd_start: int
    fwd_stop: int
    fwd_tm: float
    fwd_gc: float
    rev_seq: str
    rev_start: int
    rev_stop: int
    rev_tm: float
    rev_gc: float
    product_size: int

    @property
    def amplicon(self):
        return (self.chrom, self.fwd_start, self.rev_stop)

    @property
    def pair_key(self):
        return (self.fwd_seq, self.rev_seq)

    def with_pool(self, pool):
        return replace(self, pool=pool)


def pool_counts(primers):
    """Number of primer pairs per pool id."""
    return Counter(p.pool for p in primers)


def group_pools(primers):
    """Groups primers into {pool_id: [PrimerCandidate, ...]} keeping input order within a pool."""
    pools = {}
    for p in primers:
        pools.setdefault(p.pool, []).append(p)
    return {pool: pools[pool] for pool in sorted(pools)}


def filter_pools_below_threshold(primers, threshold):
    """Drops every pool with fewer than `threshold` pairs. Returns None if nothing survives."""
    counts = pool_counts(primers)
    kept = [p for p in primers if counts[p.pool] >= threshold]
    return kept or None


def duplicate_primers(primers):
    """Indices of pairs whose forward and reverse sequences already appeared earlier in the list."""
    seen = set()
    dups = []
    for i, p in enumerate(primers):
        if p.pair_key in seen:
            dups.append(i)
        else:
            seen.add(p.pair_key)
    return dups


def remove_primers(primers, indices):
    drop = set(indices)
    return [p for i, p in enumerate(primers) if i not in drop]


def summarize(primers):
    if not primers:
        return ">> No Primers <<"
    counts = pool_counts(primers)
    lines = [f"{len(primers)} primer pairs in {len(counts)} pools"]
    for pool, count in sorted(counts.items()):
        lines.append(f"   pool {pool}: {count} pairs")
    return "\n".join(lines)
