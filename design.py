import argparse
import subprocess
import sys

import yaml

from mpd.config import load_config
from mpd.coverage import CoverageTracker
from mpd.invoker import PrimerDesignInvoker
from mpd.optimizer import CoverageOptimizer
from mpd.params import ParameterState
from mpd.regions import read_bed
from mpd.writer import OutputWriter

# command-line flag -> config key
CLI_OVERRIDES = {
    'bed_file': 'BedFile',
    'ispcr_binary': 'isPcrBinary',
    'two_bit_file': 'TwoBitFile',
    'mpd_binary': 'MpdBinary',
    'mpd_idx': 'MpdIdx',
    'dbsnp_idx': 'dbSnpIdx',
    'out_ext': 'OutExt',
    'out_dir': 'OutDir',
    'iter_max': 'IterMax',
    'pool_min': 'PoolMin',
    'pool_max': 'PoolMax',
    'act': 'Act',
    'debug': 'Debug',
    'skip_ispcr': 'RunIsPcr',
    'no_randomize': 'Randomize',
    'engine_timeout': 'EngineTimeout',
}

# store_true flags that switch a default-on setting off
NEGATED_FLAGS = {'skip_ispcr', 'no_randomize'}


# --- Pipeline assembly ---

def build_optimizer(config, invoker=None):
    """Wires the optimizer and its collaborators from a loaded configuration."""
    bed = read_bed(config['BedFile'])
    params = ParameterState.from_config(config)

    writer = OutputWriter(
        config['OutDir'], bed, config['PadSize'],
        project_name=config['ProjectName'],
        fwd_adapter=config['FwdAdapter'],
        rev_adapter=config['RevAdapter'],
        prn_offset=config['PrnOffset'],
        randomize=config['Randomize'],
        debug=config['Debug'],
    )
    tracker = CoverageTracker(bed, config['PadSize'], writer=writer, debug=config['Debug'])

    # the external binaries are only needed when the run actually invokes them
    if invoker is None and config['Act']:
        invoker = PrimerDesignInvoker(
            config['MpdBinary'], config['MpdIdx'], config['dbSnpIdx'],
            config['isPcrBinary'], config['TwoBitFile'],
            run_ispcr=config['RunIsPcr'],
            timeout=config['EngineTimeout'],
            debug=config['Debug'],
        )

    return CoverageOptimizer(
        params, tracker,
        invoker=invoker,
        writer=writer,
        iter_max=config['IterMax'],
        incr_amp_size=config['IncrAmpSize'],
        incr_tm=config['IncrTm'],
        act=config['Act'],
        debug=config['Debug'],
        out_ext=config['OutExt'],
    )


def config_from_args(args):
    overrides = {}
    for attr, key in CLI_OVERRIDES.items():
        value = getattr(args, attr)
        if attr in NEGATED_FLAGS:
            value = False if value else None
        elif value is False:
            # unset store_true flags leave the config value alone
            value = None
        overrides[key] = value
    return load_config(args.config, overrides)


def run_design_mode(args):
    """Runs the full relaxation schedule and writes the final primer design."""
    try:
        config = config_from_args(args)
        optimizer = build_optimizer(config)
        if not config['Act']:
            print("Dry run: primer design is disabled (pass --act to invoke the engine).")
        state = optimizer.run_all()
    except (OSError, yaml.YAMLError, subprocess.CalledProcessError, subprocess.TimeoutExpired,
            RuntimeError, ValueError) as e:
        print(f"\nAn error occurred: {e}")
        return 1

    print(f"\nFinished {state.cycles} design cycles: kept {len(state.ledger.primers)} primer pairs "
          f"in {state.ledger.pool_count} pools.")
    return 0


# --- Main Execution Block ---

def build_parser():
    parser = argparse.ArgumentParser(
        description="Design multiplex PCR primer pools covering a set of target regions.")

    parser.add_argument('--config', help="YAML file with run settings (CamelCase keys).")

    files = parser.add_argument_group('Resources')
    files.add_argument('--bed-file', help="BED file with target regions.")
    files.add_argument('--mpd-binary', help="Path to the primer design engine.")
    files.add_argument('--mpd-idx', help="Design engine index for the reference genome.")
    files.add_argument('--dbsnp-idx', help="Index of common variant sites to avoid.")
    files.add_argument('--ispcr-binary', help="Path to the isPcr binary.")
    files.add_argument('--two-bit-file', help="Reference genome in 2bit format for isPcr.")

    output = parser.add_argument_group('Output')
    output.add_argument('--out-dir', help="Directory for output files.")
    output.add_argument('--out-ext', help="Prefix for the final output files.")
    output.add_argument('--no-randomize', action='store_true',
                        help="Print pools in design order instead of shuffling them.")

    run = parser.add_argument_group('Run control')
    run.add_argument('--act', action='store_true',
                     help="Invoke the design engine (default: dry run of the schedule only).")
    run.add_argument('--debug', action='store_true', help="Verbose progress reporting.")
    run.add_argument('--skip-ispcr', action='store_true', help="Do not validate primers with isPcr.")
    run.add_argument('--iter-max', type=int, help="Number of relaxation iterations (default: 10).")
    run.add_argument('--pool-min', type=int, help="Minimum primers per accepted pool (default: 1).")
    run.add_argument('--pool-max', type=int, help="Maximum primers per pool (default: 10).")
    run.add_argument('--engine-timeout', type=float,
                     help="Seconds before an external engine call is abandoned (default: none).")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    return run_design_mode(args)


if __name__ == "__main__":
    sys.exit(main())
