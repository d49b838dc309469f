import csv
import os
import re
import shutil
import subprocess
import tempfile

from Bio import SeqIO

from .primers import PrimerCandidate, filter_pools_below_threshold
from .regions import write_bed

# engine output column -> (PrimerCandidate attribute, converter)
ENGINE_COLUMNS = {
    'Pool': ('pool', int),
    'Chrom': ('chrom', str),
    'Forward_primer': ('fwd_seq', str),
    'Forward_start': ('fwd_start', int),
    'Forward_stop': ('fwd_stop', int),
    'Forward_Tm': ('fwd_tm', float),
    'Forward_GC': ('fwd_gc', float),
    'Reverse_primer': ('rev_seq', str),
    'Reverse_start': ('rev_start', int),
    'Reverse_stop': ('rev_stop', int),
    'Reverse_Tm': ('rev_tm', float),
    'Reverse_GC': ('rev_gc', float),
    'Product_size': ('product_size', int),
}

# isPcr -out=fa header id, e.g. chr1:1000+1200
ISPCR_LOCATION_RE = re.compile(r"^(?P<chrom>[^:\s]+):(?P<start>\d+)(?P<strand>[+-])(?P<end>\d+)$")

# ParameterState attribute -> engine flag
ENGINE_FLAGS = [
    ('primer_size_min', '--primerSizeMin'),
    ('primer_size_max', '--primerSizeMax'),
    ('amp_size_min', '--ampSizeMin'),
    ('amp_size_max', '--ampSizeMax'),
    ('gc_min', '--gcMin'),
    ('gc_max', '--gcMax'),
    ('tm_min', '--tmMin'),
    ('tm_max', '--tmMax'),
    ('tm_step', '--tmStep'),
    ('pool_min', '--poolMin'),
    ('pool_max', '--poolMax'),
    ('pad_size', '--padSize'),
]


def read_engine_output(out_file):
    """
    Parses the design engine's tab-separated primer table.
    A missing or header-only file means the engine found nothing; anything
    else that does not fit the table layout is treated as malformed.
    """
    if not os.path.exists(out_file):
        return []

    primers = []
    with open(out_file, newline='') as f:
        reader = csv.DictReader(f, delimiter='\t')
        if reader.fieldnames is None:
            return []
        missing = [col for col in ENGINE_COLUMNS if col not in reader.fieldnames]
        if missing:
            raise ValueError(f"Malformed engine output '{out_file}': missing columns {', '.join(missing)}")

        for line_no, row in enumerate(reader, start=2):
            if any(row[col] in (None, '') for col in ENGINE_COLUMNS):
                raise ValueError(f"Malformed engine output '{out_file}' line {line_no}: missing values")
            try:
                fields = {attr: convert(row[col].strip()) for col, (attr, convert) in ENGINE_COLUMNS.items()}
            except ValueError as e:
                raise ValueError(f"Malformed engine output '{out_file}' line {line_no}: {e}")
            primers.append(PrimerCandidate(**fields))
    return primers


def format_ispcr_query(name, primer):
    return f"{name}\t{primer.fwd_seq}\t{primer.rev_seq}"


def read_ispcr_output(fa_file):
    """Parses isPcr FASTA output into {query name: [(chrom, start, end), ...]}."""
    hits = {}
    if not os.path.exists(fa_file):
        return hits
    for record in SeqIO.parse(fa_file, "fasta"):
        match = ISPCR_LOCATION_RE.match(record.id)
        parts = record.description.split()
        if not match or len(parts) < 2:
            raise ValueError(f"Malformed isPcr output '{fa_file}': unexpected header '{record.description}'")
        hits.setdefault(parts[1], []).append(
            (match.group('chrom'), int(match.group('start')), int(match.group('end')))
        )
    return hits


class PrimerDesignInvoker:
    """
    Runs one design-engine call followed by the amplification validator.
    Returns a list of PrimerCandidates (grouped by batch-local pool id), or
    None when the current constraints admit no usable primers.
    """

    def __init__(self, mpd_binary, mpd_idx, dbsnp_idx, ispcr_binary, two_bit_file,
                 run_ispcr=True, timeout=None, debug=False):
        if not shutil.which(mpd_binary):
            raise FileNotFoundError(f"Design engine '{mpd_binary}' not found or not executable.")
        if run_ispcr:
            if not shutil.which(ispcr_binary):
                raise FileNotFoundError(f"isPcr binary '{ispcr_binary}' not found or not executable.")
            if not os.path.exists(two_bit_file):
                raise FileNotFoundError(f"2bit reference '{two_bit_file}' not found.")

        self.mpd_binary = mpd_binary
        self.mpd_idx = mpd_idx
        self.dbsnp_idx = dbsnp_idx
        self.ispcr_binary = ispcr_binary
        self.two_bit_file = two_bit_file
        self.run_ispcr = run_ispcr
        self.timeout = timeout
        self.debug = debug

    def __call__(self, targets, params):
        with tempfile.TemporaryDirectory(prefix="mpd_") as workdir:
            primers = self.run_engine(targets, params, workdir)
            if not primers:
                return None
            if self.run_ispcr:
                primers = self.run_validator(primers, workdir)
                if not primers:
                    return None
        return filter_pools_below_threshold(primers, params.pool_min)

    def _run(self, command, label):
        if self.debug:
            print(f"Running {label}: {' '.join(command)}")
        try:
            subprocess.run(command, check=True, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.CalledProcessError as e:
            print(f"--- {label.upper()} FAILED ---")
            print(f"Error: {e.stderr}")
            raise

    def run_engine(self, targets, params, workdir):
        bed_file = os.path.join(workdir, "targets.bed")
        out_prefix = os.path.join(workdir, "mpd")
        write_bed(bed_file, targets)

        command = [self.mpd_binary, '--bed', bed_file, '--idx', str(self.mpd_idx),
                   '--dbsnp', str(self.dbsnp_idx), '--out', out_prefix]
        for attr, flag in ENGINE_FLAGS:
            command.extend([flag, str(getattr(params, attr))])

        self._run(command, "mpd")
        return read_engine_output(f"{out_prefix}.txt")

    def run_validator(self, primers, workdir):
        """Keeps pairs whose only isPcr product lies over their own amplicon."""
        query_file = os.path.join(workdir, "isPcr.query.txt")
        out_file = os.path.join(workdir, "isPcr.out.fa")
        with open(query_file, 'w') as f:
            for i, p in enumerate(primers):
                f.write(format_ispcr_query(i, p) + "\n")

        self._run([self.ispcr_binary, str(self.two_bit_file), query_file, out_file, '-out=fa'], "isPcr")
        hits = read_ispcr_output(out_file)

        kept = []
        for i, p in enumerate(primers):
            products = hits.get(str(i), [])
            if len(products) != 1:
                continue
            chrom, start, end = products[0]
            # isPcr reports 1-based starts
            if chrom == p.chrom and start - 1 < p.rev_stop and p.fwd_start < end:
                kept.append(p)
        if self.debug:
            print(f"isPcr kept {len(kept)} of {len(primers)} primer pairs.")
        return kept
