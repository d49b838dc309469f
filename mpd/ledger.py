from dataclasses import dataclass, field
from typing import List

from .primers import PrimerCandidate, group_pools


def accept_pools(primers, threshold):
    """
    Partitions a batch into whole pools and keeps those with at least
    `threshold` pairs (inclusive). Rejected pools are dropped entirely.
    """
    return [pool for pool in group_pools(primers).values() if len(pool) >= threshold]


@dataclass
class KeptPrimerLedger:
    """Accepted primers for the whole run, relabeled with globally sequential pool ids."""
    primers: List[PrimerCandidate] = field(default_factory=list)
    pool_count: int = 0

    def commit(self, pools):
        """
        Appends each accepted pool under the next global pool id.
        Returns False when there was nothing to keep.
        """
        if not pools:
            print("no pooled primers")
            return False

        for pool in pools:
            for p in pool:
                self.primers.append(p.with_pool(self.pool_count))
            self.pool_count += 1
        return True

    def is_empty(self):
        return not self.primers

    def pool_ids(self):
        return sorted({p.pool for p in self.primers})
