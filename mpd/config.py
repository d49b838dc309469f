import yaml

# --- Resource locations (no defaults) ---
REQUIRED_KEYS = ['BedFile', 'isPcrBinary', 'TwoBitFile', 'MpdBinary', 'MpdIdx', 'dbSnpIdx', 'OutExt', 'OutDir']

# --- Design / optimization defaults ---
DEFAULTS = {
    # run switches
    'Debug': False,
    'RunIsPcr': True,
    'Act': False,
    'EngineTimeout': None,

    # parameter optimization
    'IncrAmpSize': 10,
    'IncrTm': 0.5,
    'IterMax': 10,

    # pcr parameters
    'PrimerSizeMin': 17,
    'PrimerSizeMax': 27,
    'AmpSizeMin': 180,
    'AmpSizeMax': 230,
    'GcMin': 0.3,
    'GcMax': 0.7,
    'TmMin': 57,
    'TmMax': 62,
    'TmStep': 0.5,
    'PoolMin': 1,
    'PoolMax': 10,
    'PadSize': 60,

    # printing
    'ProjectName': 'MPD',
    'FwdAdapter': 'ACACTGACGACATGGTTCTACA',
    'RevAdapter': 'TACGGTAGCAGAGACTTGGTCT',
    'PrnOffset': 0,
    'Randomize': True,
}

KNOWN_KEYS = set(REQUIRED_KEYS) | set(DEFAULTS)


def load_config(config_file=None, overrides=None):
    """
    Builds the run configuration: defaults, then the YAML config file, then
    any non-None command-line overrides.
    """
    config = dict(DEFAULTS)

    if config_file:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file '{config_file}' must contain a mapping of settings.")
        unknown = sorted(set(data) - KNOWN_KEYS)
        if unknown:
            raise ValueError(f"Unknown settings in '{config_file}': {', '.join(unknown)}")
        config.update(data)

    for key, value in (overrides or {}).items():
        if value is not None:
            config[key] = value

    missing = [key for key in REQUIRED_KEYS if not config.get(key)]
    if missing:
        raise ValueError(f"Missing required settings: {', '.join(missing)}")
    return config
