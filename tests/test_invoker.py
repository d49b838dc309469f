import subprocess

import pytest

from mpd import invoker as invoker_mod
from mpd.invoker import ENGINE_COLUMNS, PrimerDesignInvoker, read_engine_output, read_ispcr_output
from mpd.params import ParameterState
from mpd.regions import Region

HEADER = "\t".join(ENGINE_COLUMNS)
TARGETS = [Region("chr1", 1050, 1150, "EX1")]


def _row(pool, start, fwd="ACGTACGTACGTACGTAC", rev="TTGCATTGCATTGCATTG", chrom="chr1"):
    return "\t".join(str(v) for v in [
        pool, chrom, fwd, start, start + 18, 60.1, 0.5, rev, start + 182, start + 200, 59.8, 0.45, 200,
    ])


def _fake_run(engine_table, ispcr_fasta=None, calls=None):
    def run(command, check, capture_output, text, timeout):
        if calls is not None:
            calls.append(command)
        if command[0] == "mpd":
            prefix = command[command.index("--out") + 1]
            if engine_table is not None:
                with open(f"{prefix}.txt", "w") as f:
                    f.write(engine_table)
        else:
            with open(command[3], "w") as f:
                f.write(ispcr_fasta or "")
        return subprocess.CompletedProcess(command, 0, "", "")
    return run


@pytest.fixture
def make_invoker(tmp_path, monkeypatch):
    monkeypatch.setattr(invoker_mod.shutil, "which", lambda name: name)
    two_bit = tmp_path / "ref.2bit"
    two_bit.write_text("")

    def build(**kwargs):
        return PrimerDesignInvoker("mpd", "ref.idx", "snp.idx", "isPcr", str(two_bit), **kwargs)
    return build


def test_read_engine_output_parses_rows(tmp_path) -> None:
    out = tmp_path / "mpd.txt"
    out.write_text("\n".join([HEADER, _row(0, 1000), _row(1, 4000)]) + "\n")
    primers = read_engine_output(str(out))
    assert [p.pool for p in primers] == [0, 1]
    assert primers[0].amplicon == ("chr1", 1000, 1200)
    assert primers[1].fwd_tm == pytest.approx(60.1)


def test_missing_or_header_only_output_is_no_result(tmp_path) -> None:
    assert read_engine_output(str(tmp_path / "absent.txt")) == []
    out = tmp_path / "mpd.txt"
    out.write_text(HEADER + "\n")
    assert read_engine_output(str(out)) == []


def test_missing_columns_are_malformed(tmp_path) -> None:
    out = tmp_path / "mpd.txt"
    out.write_text("Pool\tChrom\n0\tchr1\n")
    with pytest.raises(ValueError, match="missing columns"):
        read_engine_output(str(out))


def test_unparsable_value_is_malformed(tmp_path) -> None:
    out = tmp_path / "mpd.txt"
    out.write_text("\n".join([HEADER, _row("zero", 1000)]) + "\n")
    with pytest.raises(ValueError, match="line 2"):
        read_engine_output(str(out))


def test_short_row_is_malformed(tmp_path) -> None:
    out = tmp_path / "mpd.txt"
    out.write_text(HEADER + "\n0\tchr1\tACGT\n")
    with pytest.raises(ValueError, match="missing values"):
        read_engine_output(str(out))


def test_read_ispcr_output_groups_hits_by_name(tmp_path) -> None:
    fa = tmp_path / "out.fa"
    fa.write_text(
        ">chr1:1001+1200 0 200bp ACGTACGTACGTACGTAC TTGCATTGCATTGCATTG\nACGT\n"
        ">chr1:1001+1200 1 200bp ACGT TTGC\nACGT\n"
        ">chr5:9001-9200 1 200bp ACGT TTGC\nACGT\n"
    )
    hits = read_ispcr_output(str(fa))
    assert hits == {"0": [("chr1", 1001, 1200)], "1": [("chr1", 1001, 1200), ("chr5", 9001, 9200)]}


def test_unexpected_ispcr_header_is_malformed(tmp_path) -> None:
    fa = tmp_path / "out.fa"
    fa.write_text(">garbage\nACGT\n")
    with pytest.raises(ValueError, match="isPcr"):
        read_ispcr_output(str(fa))


def test_invoker_passes_parameters_to_engine(make_invoker, monkeypatch) -> None:
    calls = []
    table = "\n".join([HEADER, _row(0, 1000)]) + "\n"
    monkeypatch.setattr(invoker_mod.subprocess, "run", _fake_run(table, calls=calls))

    primers = make_invoker(run_ispcr=False)(TARGETS, ParameterState(tm_step=1.0))

    assert len(primers) == 1
    command = calls[0]
    assert command[command.index("--tmStep") + 1] == "1.0"
    assert command[command.index("--ampSizeMax") + 1] == "230"
    assert command[command.index("--dbsnp") + 1] == "snp.idx"


def test_invoker_returns_none_when_engine_finds_nothing(make_invoker, monkeypatch) -> None:
    monkeypatch.setattr(invoker_mod.subprocess, "run", _fake_run(None))
    assert make_invoker()(TARGETS, ParameterState()) is None


def test_validator_keeps_only_unique_on_target_products(make_invoker, monkeypatch) -> None:
    table = "\n".join([HEADER, _row(0, 1000), _row(0, 2000), _row(0, 3000), _row(0, 4000)]) + "\n"
    fasta = (
        ">chr1:1001+1200 0 200bp A T\nACGT\n"
        ">chr1:2001+2200 1 200bp A T\nACGT\n"
        ">chr1:8001+8200 1 200bp A T\nACGT\n"
        ">chr3:3001+3200 2 200bp A T\nACGT\n"
    )
    calls = []
    monkeypatch.setattr(invoker_mod.subprocess, "run", _fake_run(table, fasta, calls))

    primers = make_invoker()(TARGETS, ParameterState())

    # pair 1 has two products, pair 2 lands off-chromosome, pair 3 amplifies nothing
    assert [p.fwd_start for p in primers] == [1000]
    assert calls[1][0] == "isPcr"
    assert calls[1][-1] == "-out=fa"


def test_invoker_drops_pools_below_pool_min(make_invoker, monkeypatch) -> None:
    table = "\n".join([HEADER, _row(0, 1000), _row(0, 2000), _row(1, 3000)]) + "\n"
    monkeypatch.setattr(invoker_mod.subprocess, "run", _fake_run(table))

    primers = make_invoker(run_ispcr=False)(TARGETS, ParameterState(pool_min=2))
    assert {p.pool for p in primers} == {0}

    assert make_invoker(run_ispcr=False)(TARGETS, ParameterState(pool_min=3)) is None


def test_engine_failure_propagates(make_invoker, monkeypatch, capsys) -> None:
    def fail(command, **kwargs):
        raise subprocess.CalledProcessError(2, command, "", "bad index")
    monkeypatch.setattr(invoker_mod.subprocess, "run", fail)

    with pytest.raises(subprocess.CalledProcessError):
        make_invoker()(TARGETS, ParameterState())
    assert "bad index" in capsys.readouterr().out


def test_missing_binaries_are_reported(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(invoker_mod.shutil, "which", lambda name: None)
    with pytest.raises(FileNotFoundError, match="Design engine"):
        PrimerDesignInvoker("mpd", "idx", "snp", "isPcr", str(tmp_path / "ref.2bit"))


def test_validator_drops_single_product_away_from_amplicon(make_invoker, monkeypatch) -> None:
    table = "\n".join([HEADER, _row(0, 1000)]) + "\n"
    fasta = ">chr1:8001+8200 0 200bp A T\nACGT\n"
    monkeypatch.setattr(invoker_mod.subprocess, "run", _fake_run(table, fasta))

    assert make_invoker()(TARGETS, ParameterState()) is None


def test_validator_converts_one_based_product_start(make_invoker, monkeypatch) -> None:
    # amplicon is [1000, 1200); a product starting at 1-based 1200 begins past its end
    table = "\n".join([HEADER, _row(0, 1000), _row(0, 3000)]) + "\n"
    fasta = ">chr1:1201+1400 0 200bp A T\nACGT\n>chr1:3200+3400 1 200bp A T\nACGT\n"
    monkeypatch.setattr(invoker_mod.subprocess, "run", _fake_run(table, fasta))

    primers = make_invoker()(TARGETS, ParameterState())
    assert [p.fwd_start for p in primers] == [3000]
