import csv
import os
import random

import primer3

from .coverage import amplicon_spans
from .invoker import format_ispcr_query
from .primers import duplicate_primers, remove_primers
from .regions import intersect_spans, subtract_spans, write_bed

ORDER_HEADERS = ['pool', 'primer_name', 'tailed_sequence', 'primer_sequence', 'primer_tm', 'tailed_tm', 'project']
PRIMER_HEADERS = [
    'primer_name', 'pool', 'chrom',
    'fwd_primer_seq', 'fwd_start', 'fwd_stop', 'fwd_tm', 'fwd_gc',
    'rev_primer_seq', 'rev_start', 'rev_stop', 'rev_tm', 'rev_gc',
    'amplicon_size',
]


class OutputWriter:
    """Writes the order sheet, covered/uncovered BED files, primer listing and isPcr listing."""

    def __init__(self, out_dir, bed, pad_size, project_name='MPD',
                 fwd_adapter='', rev_adapter='', prn_offset=0, randomize=True, debug=False):
        self.out_dir = out_dir
        self.bed = list(bed)
        self.pad_size = pad_size
        self.project_name = project_name
        self.fwd_adapter = fwd_adapter
        self.rev_adapter = rev_adapter
        self.prn_offset = prn_offset
        self.randomize = randomize
        self.debug = debug

    def _path(self, ext, suffix):
        return os.path.join(self.out_dir, f"{ext}.{suffix}")

    def write(self, primers, ext):
        if not primers:
            print("No Primers written. This might be a dry run.")
            return False

        if self.debug:
            print(f"Writing primer design '{ext}'.")

        os.makedirs(self.out_dir, exist_ok=True)
        primers = remove_primers(primers, duplicate_primers(primers))

        # names go first; every other file refers to them
        names = self.primer_names(primers)
        self.write_order_file(self._path(ext, "forOrder.csv"), primers, names)

        spans = amplicon_spans(primers, self.pad_size)
        write_bed(self._path(ext, "covered.bed"), intersect_spans(self.bed, spans))
        write_bed(self._path(ext, "uncovered.bed"), subtract_spans(self.bed, spans))

        self.write_primer_file(self._path(ext, "primer.txt"), primers, names)
        self.write_ispcr_file(self._path(ext, "isPcr.txt"), primers, names)
        print(f"Results for {len(primers)} primer pairs saved to '{self.out_dir}' with prefix '{ext}'")
        return True

    def primer_names(self, primers):
        """Names each pair after the target region its amplicon overlaps, numbered per region."""
        names = []
        seen = {}
        for p in primers:
            chrom, start, end = p.amplicon
            label = next((r.name for r in self.bed if r.name and r.overlaps(chrom, start, end)), None)
            if label is None:
                label = f"{chrom}:{start}-{end}"
            seen[label] = seen.get(label, 0) + 1
            names.append(f"{label}_{seen[label]}")
        return names

    def printed_pools(self, primers):
        """Maps ledger pool ids to printed pool numbers, shifted by the offset and optionally shuffled."""
        pool_ids = sorted({p.pool for p in primers})
        printed = [self.prn_offset + i for i in range(len(pool_ids))]
        if self.randomize:
            random.shuffle(printed)
        return dict(zip(pool_ids, printed))

    def write_order_file(self, order_file, primers, names):
        pools = self.printed_pools(primers)
        rows = []
        for p, name in zip(primers, names):
            for direction, seq, tm, adapter in (('F', p.fwd_seq, p.fwd_tm, self.fwd_adapter),
                                                ('R', p.rev_seq, p.rev_tm, self.rev_adapter)):
                tailed = adapter + seq
                rows.append({
                    'pool': pools[p.pool],
                    'primer_name': f"{name}_{direction}",
                    'tailed_sequence': tailed,
                    'primer_sequence': seq,
                    'primer_tm': f"{tm:.2f}",
                    'tailed_tm': f"{primer3.calc_tm(tailed):.2f}",
                    'project': self.project_name,
                })
        rows.sort(key=lambda row: row['pool'])
        with open(order_file, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=ORDER_HEADERS)
            writer.writeheader()
            writer.writerows(rows)

    def write_primer_file(self, primer_file, primers, names):
        with open(primer_file, 'w', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=PRIMER_HEADERS, delimiter='\t')
            writer.writeheader()
            for p, name in zip(primers, names):
                writer.writerow({
                    'primer_name': name, 'pool': p.pool, 'chrom': p.chrom,
                    'fwd_primer_seq': p.fwd_seq, 'fwd_start': p.fwd_start, 'fwd_stop': p.fwd_stop,
                    'fwd_tm': f"{p.fwd_tm:.2f}", 'fwd_gc': f"{p.fwd_gc:.2f}",
                    'rev_primer_seq': p.rev_seq, 'rev_start': p.rev_start, 'rev_stop': p.rev_stop,
                    'rev_tm': f"{p.rev_tm:.2f}", 'rev_gc': f"{p.rev_gc:.2f}",
                    'amplicon_size': p.product_size,
                })

    def write_ispcr_file(self, ispcr_file, primers, names):
        with open(ispcr_file, 'w') as f:
            for p, name in zip(primers, names):
                f.write(format_ispcr_query(name, p) + "\n")
