import subprocess
import pytest
from pathlib import Path
from haplotig_sorter.aligners import commands, local, whole_genome
from haplotig_sorter.aligners.local import BlastnAligner
from haplotig_sorter.aligners.whole_genome import NucmerAligner
from haplotig_sorter.core.errors import ExternalToolFailure
from haplotig_sorter.core.evaluation import evaluate_pairs
from haplotig_sorter.core.models import ResolvedPair


class FixedCoverageAligner:
    """Stands in for nucmer; fails for any pair whose haplotig name starts with 'bad'."""

    def __init__(self, coverage):
        self.coverage_value = coverage
        self.calls = []

    def coverage(self, primary_fasta, haplotig_fasta, prefix):
        self.calls.append(Path(prefix).name)
        if Path(haplotig_fasta).stem.startswith('bad'):
            raise ExternalToolFailure('nucmer', 'exit status 1: segmentation fault')
        return self.coverage_value


class PerHaplotigAligner:
    """Returns the coverage registered for the haplotig FASTA it is given."""

    def __init__(self, coverage_by_fasta):
        self.coverage_by_fasta = coverage_by_fasta
        self.prefixes = []

    def coverage(self, primary_fasta, haplotig_fasta, prefix):
        self.prefixes.append(Path(prefix))
        return self.coverage_by_fasta[Path(haplotig_fasta).name]


def test_evaluate_pairs_scopes_failures_to_the_pair(tmp_path):
    pairs = [ResolvedPair('P', 'H1'), ResolvedPair('P', 'bad_H2'), ResolvedPair('P', 'H3')]
    pair_fastas = {
        ('P', 'H1'): (tmp_path / 'P.fasta', tmp_path / 'H1.fasta'),
        ('P', 'bad_H2'): (tmp_path / 'P.fasta', tmp_path / 'bad_H2.fasta'),
    }
    aligner = FixedCoverageAligner(92.5)
    records = evaluate_pairs(pairs, aligner, pair_fastas, tmp_path, threads=1)

    assert records[('P', 'H1')].coverage == 92.5
    assert records[('P', 'bad_H2')].coverage is None
    assert 'nucmer' in records[('P', 'bad_H2')].error
    # No FASTA for H3, so the aligner is never called for it
    assert records[('P', 'H3')].coverage is None
    assert aligner.calls == ['pair_00000', 'pair_00001']


def test_evaluate_pairs_keeps_pairs_with_separator_in_ids_apart(tmp_path):
    # Joined with '__' both pairs would read 'a__b__c'
    pairs = [ResolvedPair('a__b', 'c'), ResolvedPair('a', 'b__c')]
    pair_fastas = {
        ('a__b', 'c'): (tmp_path / 'a__b.fasta', tmp_path / 'c.fasta'),
        ('a', 'b__c'): (tmp_path / 'a.fasta', tmp_path / 'b__c.fasta'),
    }
    aligner = PerHaplotigAligner({'c.fasta': 95.0, 'b__c.fasta': 12.0})
    records = evaluate_pairs(pairs, aligner, pair_fastas, tmp_path, threads=1)

    assert len(records) == 2
    assert records[('a__b', 'c')].coverage == 95.0
    assert records[('a', 'b__c')].coverage == 12.0
    assert len(set(aligner.prefixes)) == 2


def test_require_binary_missing(monkeypatch):
    monkeypatch.setattr(commands.shutil, 'which', lambda name: None)
    with pytest.raises(ExternalToolFailure) as exc:
        commands.require_binary('blastn')
    assert exc.value.tool == 'blastn'


def test_run_command_non_zero_exit(monkeypatch):
    def fake_run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 1, stdout='', stderr='warning\nERROR: bad input\n')

    monkeypatch.setattr(commands.subprocess, 'run', fake_run)
    with pytest.raises(ExternalToolFailure, match='bad input'):
        commands.run_command(['nucmer', '-p', 'x', 'a.fa', 'b.fa'])


def test_blastn_aligner_missing_binary(monkeypatch, tmp_path):
    monkeypatch.setattr(commands.shutil, 'which', lambda name: None)
    with pytest.raises(ExternalToolFailure):
        BlastnAligner().run(tmp_path / 'genes.fa', tmp_path / 'contigs.fa', tmp_path, 90)


def test_blastn_aligner_empty_output(monkeypatch, tmp_path):
    def fake_run_command(cmd, timeout=None):
        if cmd[0] == 'blastn':
            Path(cmd[cmd.index('-out') + 1]).write_text('')
        return subprocess.CompletedProcess(cmd, 0, stdout='', stderr='')

    monkeypatch.setattr(local, 'require_binary', lambda name: name)
    monkeypatch.setattr(local, 'run_command', fake_run_command)
    with pytest.raises(ExternalToolFailure) as exc:
        BlastnAligner().run(tmp_path / 'genes.fa', tmp_path / 'contigs.fa', tmp_path / 'blast', 90)
    assert exc.value.tool == 'blastn'


def test_blastn_aligner_passes_evalue_and_returns_table(monkeypatch, tmp_path):
    seen = {}

    def fake_run_command(cmd, timeout=None):
        if cmd[0] == 'blastn':
            seen['evalue'] = cmd[cmd.index('-evalue') + 1]
            seen['timeout'] = timeout
            Path(cmd[cmd.index('-out') + 1]).write_text("g1\tc1\t99.0\t100\t100\t180\n")
        return subprocess.CompletedProcess(cmd, 0, stdout='', stderr='')

    monkeypatch.setattr(local, 'require_binary', lambda name: name)
    monkeypatch.setattr(local, 'run_command', fake_run_command)
    output = BlastnAligner(evalue=1e-5, timeout=60).run(
        tmp_path / 'genes.fa', tmp_path / 'contigs.fa', tmp_path / 'blast', 90
    )
    assert output.read_text().startswith('g1\tc1')
    assert seen == {'evalue': '1e-05', 'timeout': 60}


def test_nucmer_aligner_coverage(monkeypatch, tmp_path):
    coords_text = "1\t6000\t1\t6000\t6000\t6000\t99.10\t20000\t8000\tP\tH\n"
    commands_seen = []

    def fake_run_command(cmd, timeout=None):
        commands_seen.append(cmd[0])
        if cmd[0] == 'nucmer':
            prefix = cmd[cmd.index('-p') + 1]
            Path(f"{prefix}.delta").write_text("delta\n")
            return subprocess.CompletedProcess(cmd, 0, stdout='', stderr='')
        return subprocess.CompletedProcess(cmd, 0, stdout=coords_text, stderr='')

    monkeypatch.setattr(whole_genome, 'require_binary', lambda name: name)
    monkeypatch.setattr(whole_genome, 'run_command', fake_run_command)

    coverage = NucmerAligner().coverage(tmp_path / 'P.fa', tmp_path / 'H.fa', tmp_path / 'pairs' / 'P__H')
    assert coverage == pytest.approx(75.0)
    assert commands_seen == ['nucmer', 'show-coords']
    assert (tmp_path / 'pairs' / 'P__H.coords').exists()


def test_nucmer_aligner_missing_delta(monkeypatch, tmp_path):
    monkeypatch.setattr(whole_genome, 'require_binary', lambda name: name)
    monkeypatch.setattr(
        whole_genome, 'run_command',
        lambda cmd, timeout=None: subprocess.CompletedProcess(cmd, 0, stdout='', stderr='')
    )
    with pytest.raises(ExternalToolFailure):
        NucmerAligner().coverage(tmp_path / 'P.fa', tmp_path / 'H.fa', tmp_path / 'P__H')
