from dataclasses import asdict, dataclass

# paired (min, max) attributes that must stay ordered after every relaxation
PAIRED_BOUNDS = [
    ('primer_size_min', 'primer_size_max'),
    ('amp_size_min', 'amp_size_max'),
    ('gc_min', 'gc_max'),
    ('tm_min', 'tm_max'),
    ('pool_min', 'pool_max'),
]


@dataclass
class ParameterState:
    """Design constraints handed to the primer-design engine. Only ever loosened."""
    primer_size_min: int = 17
    primer_size_max: int = 27
    amp_size_min: int = 180
    amp_size_max: int = 230
    gc_min: float = 0.3
    gc_max: float = 0.7
    tm_min: float = 57.0
    tm_max: float = 62.0
    tm_step: float = 0.5
    pool_min: int = 1
    pool_max: int = 10
    pad_size: int = 60

    def __post_init__(self):
        self.check()

    @classmethod
    def from_config(cls, config):
        return cls(
            primer_size_min=config['PrimerSizeMin'],
            primer_size_max=config['PrimerSizeMax'],
            amp_size_min=config['AmpSizeMin'],
            amp_size_max=config['AmpSizeMax'],
            gc_min=config['GcMin'],
            gc_max=config['GcMax'],
            tm_min=config['TmMin'],
            tm_max=config['TmMax'],
            tm_step=config['TmStep'],
            pool_min=config['PoolMin'],
            pool_max=config['PoolMax'],
            pad_size=config['PadSize'],
        )

    def check(self):
        for low, high in PAIRED_BOUNDS:
            if getattr(self, low) > getattr(self, high):
                raise RuntimeError(
                    f"Parameter invariant violated: {low}={getattr(self, low)} > {high}={getattr(self, high)}"
                )
        if self.tm_step <= 0:
            raise RuntimeError(f"Parameter invariant violated: tm_step={self.tm_step} must be positive")

    def snapshot(self):
        return asdict(self)

    # --- Relaxation steps (see CoverageOptimizer.relaxations) ---

    def widen_amplicon(self, incr):
        self.amp_size_max += incr
        self.amp_size_min -= incr
        self.check()

    def widen_tm(self, incr):
        self.tm_max += incr
        self.tm_min -= incr
        self.check()

    def double_tm_step(self):
        self.tm_step += self.tm_step
        self.check()
