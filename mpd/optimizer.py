from dataclasses import dataclass, field
from pprint import pformat
from typing import List, Optional

from tqdm import tqdm

from .ledger import KeptPrimerLedger, accept_pools
from .primers import summarize
from .regions import Region

SUB_ROUNDS = 4


@dataclass
class RunState:
    """
    Run-wide bookkeeping passed explicitly through every cycle.
    `uncovered` stays None until the first batch is accepted.
    """
    original: List[Region]
    uncovered: Optional[List[Region]] = None
    ledger: KeptPrimerLedger = field(default_factory=KeptPrimerLedger)
    iteration: int = 0
    cycles: int = 0


def current_target(state):
    """
    Regions to design against: the latest uncovered set once one exists, else
    the original targets. An empty uncovered set is still used, so a fully
    covered panel is not redesigned from scratch in later rounds.
    """
    if state.uncovered is not None:
        return state.uncovered
    return state.original


class CoverageOptimizer:
    """
    Drives the fixed relaxation schedule: IterMax iterations of four
    design/accept cycles, each followed by one relaxation step (none after the
    fourth), then one salvage cycle that accepts pools of any size.
    """

    def __init__(self, params, tracker, invoker=None, writer=None, iter_max=10,
                 incr_amp_size=10, incr_tm=0.5, act=False, debug=False, out_ext='final'):
        if act and invoker is None:
            raise ValueError("A primer design invoker is required when the run is enabled.")
        if incr_amp_size <= 0 or incr_tm <= 0:
            raise ValueError(
                f"Relaxation increments must be positive (IncrAmpSize={incr_amp_size}, IncrTm={incr_tm})."
            )
        self.params = params
        self.tracker = tracker
        self.invoker = invoker
        self.writer = writer
        self.iter_max = iter_max
        self.incr_amp_size = incr_amp_size
        self.incr_tm = incr_tm
        self.act = act
        self.debug = debug
        self.out_ext = out_ext

    def new_state(self):
        return RunState(original=list(self.tracker.original))

    def relaxations(self):
        """Relaxation applied after sub-rounds 1-4, in order."""
        return [
            lambda: self.params.widen_amplicon(self.incr_amp_size),
            lambda: self.params.widen_tm(self.incr_tm),
            self.params.double_tm_step,
            None,
        ]

    def run_all(self, state=None):
        if state is None:
            state = self.new_state()
        self.find_best_coverage(state)
        if self.writer is not None:
            self.writer.write(state.ledger.primers, self.out_ext)
        return state

    def find_best_coverage(self, state):
        total = SUB_ROUNDS * max(self.iter_max - state.iteration, 0) + 1
        with tqdm(total=total, desc="Design/accept cycles") as progress:
            while state.iteration < self.iter_max:
                for sub_round, relax in enumerate(self.relaxations(), start=1):
                    # relaxation is unconditional, whatever the cycle produced
                    self.design_accept_cycle(state, self.params.pool_min, sub_round)
                    progress.update(1)
                    if relax is not None:
                        relax()
                state.iteration += 1

            # salvage: keep pools of any non-zero size
            self.design_accept_cycle(state, 1, 'salvage')
            progress.update(1)
        return state

    def design_accept_cycle(self, state, threshold, sub_round):
        """
        One design -> accept -> commit -> recompute pass. Returns True when a
        batch was kept. Empty results are reported and leave all state untouched.
        """
        state.cycles += 1
        if not self.act:
            return False

        targets = current_target(state)
        if state.uncovered is not None:
            print("PCR Params: using uncovered bed data")
        else:
            print("PCR Params: using original bed data")
        if not targets:
            print("All target regions are covered; nothing to design.")
            return False

        if self.debug:
            print("=== PCR Parameters ===")
            print(pformat({**self.params.snapshot(), 'iteration': state.iteration,
                           'sub_round': sub_round, 'threshold': threshold}))
            print("======================")

        try:
            return self._design_and_keep(state, targets, threshold)
        except Exception as e:
            raise RuntimeError(
                f"Primer design failed at iteration {state.iteration}, sub-round {sub_round} "
                f"(pool threshold {threshold}) with parameters {self.params.snapshot()}: {e}"
            ) from e

    def _design_and_keep(self, state, targets, threshold):
        primers = self.invoker(targets, self.params)
        if primers is None:
            print("No primers for this round.")
            return False
        if self.debug:
            print("design_accept_cycle() - after pool filter")
            print(summarize(primers))

        if not state.ledger.commit(accept_pools(primers, threshold)):
            return False

        state.uncovered = self.tracker.update(state.ledger.primers, state.iteration)
        if self.debug:
            print("design_accept_cycle() - kept primers")
            print(summarize(state.ledger.primers))
        return True
