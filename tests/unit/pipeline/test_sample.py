import os

import pytest

from wespipe.distributed.barrier import FAILED, SUCCEEDED
from wespipe.distributed.ledger import FailureLedger
from wespipe.pipeline import run_info, sample as sample_mod
from wespipe.pipeline.sample import PerSamplePipeline, STAGE_NAMES

PER_SAMPLE_COMMANDS = ['bwa mem', 'samtools view', 'FixMateInformation', 'SortSam',
                       'MarkDuplicates', 'samtools index', 'samtools flagstat',
                       'samtools coverage', 'samtools depth', 'samtools depth',
                       'samtools view', 'samtools index', 'BaseRecalibrator', 'ApplyBQSR',
                       'HaplotypeCaller']


@pytest.fixture
def ledger(tmp_path):
    return FailureLedger(str(tmp_path / 'failed_samples.tsv'))


@pytest.fixture
def sample(input_dir, fastqs):
    fastqs(input_dir, ['A'])
    _, samples = run_info.resolve_samples(input_dir)
    return samples[0]


def _stage_fails(name):
    return lambda tool, args: os.path.basename(tool) == 'java' and name in args


class TestSuccessfulSample(object):

    def test_runs_commands_in_stage_order(self, config, ledger, sample, stub_executor):
        status = PerSamplePipeline(config, ledger, stub_executor).run(sample)
        assert status == SUCCEEDED
        assert stub_executor.names() == PER_SAMPLE_COMMANDS
        assert sample.stage == STAGE_NAMES[-1]
        assert ledger.all() == []

    def test_produces_archived_alignment_and_gvcf(self, config, ledger, sample, stub_executor):
        PerSamplePipeline(config, ledger, stub_executor).run(sample)
        out_dir = config['directories']['output']
        assert sample.cram == os.path.join(out_dir, 'cram', 'A.dedup.cram')
        assert sample.gvcf == os.path.join(out_dir, 'gvcf', 'A.g.vcf.gz')
        assert os.path.exists(sample.cram + '.crai')
        assert os.path.exists(sample.gvcf)
        assert os.path.exists(os.path.join(out_dir, 'qc', 'A', 'A.dup_metrics.txt'))

    def test_removes_workspace_on_success(self, config, ledger, sample, stub_executor):
        PerSamplePipeline(config, ledger, stub_executor).run(sample)
        assert not os.path.exists(sample_mod.sample_work_dir('A', config))

    def test_keeps_workspace_without_cleanup(self, config, ledger, sample, stub_executor):
        config['cleanup']['delete_temp_on_success'] = False
        PerSamplePipeline(config, ledger, stub_executor).run(sample)
        assert os.path.isdir(sample_mod.sample_work_dir('A', config))

    def test_writes_sample_log(self, config, ledger, sample, stub_executor):
        PerSamplePipeline(config, ledger, stub_executor).run(sample)
        log_file = os.path.join(config['directories']['output'], 'logs', 'A', 'A.log')
        with open(log_file) as in_handle:
            assert 'Processing sample A' in in_handle.read()

    def test_records_success_marker(self, config, ledger, sample, stub_executor):
        PerSamplePipeline(config, ledger, stub_executor).run(sample)
        assert ledger.succeeded('A')


class TestEagerDeletion(object):

    def test_intermediates_removed_after_last_reader(self, config, ledger, sample, executor_factory):
        base = os.path.join(sample_mod.sample_work_dir('A', config), 'A')
        seen = {}

        def snapshot(name, args):
            seen.setdefault(name, dict((ext, os.path.exists(base + ext))
                                       for ext in ['.raw.bam', '.fixmate.bam', '.sorted.bam',
                                                   '.dedup.bam', '.recal.table']))
        executor = executor_factory(on_call=snapshot)
        PerSamplePipeline(config, ledger, executor).run(sample)
        assert seen['SortSam']['.raw.bam'] is False
        assert seen['SortSam']['.fixmate.bam'] is True
        assert seen['MarkDuplicates']['.fixmate.bam'] is False
        assert seen['BaseRecalibrator']['.sorted.bam'] is False
        # the deduplicated BAM feeds QC, CRAM conversion and both recalibration steps
        assert seen['ApplyBQSR']['.dedup.bam'] is True
        assert seen['HaplotypeCaller']['.dedup.bam'] is False
        assert seen['HaplotypeCaller']['.recal.table'] is False

    def test_last_consumers(self, config, ledger, stub_executor, sample):
        pipeline = PerSamplePipeline(config, ledger, stub_executor)
        artifacts = pipeline.artifacts(sample)
        temp_keys = pipeline.temp_artifacts(artifacts, sample_mod.sample_work_dir('A', config))
        assert 'gvcf' not in temp_keys and 'cram' not in temp_keys and 'fastq1' not in temp_keys
        last = pipeline.last_consumers(temp_keys)
        assert last['FixMates'] == ['raw_bam']
        assert sorted(last['RecalibrateApply']) == ['dedup_bai', 'dedup_bam', 'recal_table']
        assert last['CallVariants'] == ['recal_bam']


class TestFailedSample(object):

    def test_stops_at_failing_stage(self, config, ledger, sample, executor_factory):
        executor = executor_factory(fail_when=_stage_fails('MarkDuplicates'))
        status = PerSamplePipeline(config, ledger, executor).run(sample)
        assert status == FAILED
        assert sample.failure[0] == 'MarkDuplicates'
        assert 'exited with code 1' in sample.failure[1]
        assert executor.names()[-1] == 'MarkDuplicates'
        assert [(r.sample, r.stage) for r in ledger.all()] == [('A', 'MarkDuplicates')]
        assert not os.path.exists(sample_mod.final_gvcf('A', config))

    def test_missing_mate_fails_alignment(self, config, ledger, input_dir, fastqs, stub_executor):
        fastqs(input_dir, ['B'], '_1.fastq.gz', None)
        _, samples = run_info.resolve_samples(input_dir)
        status = PerSamplePipeline(config, ledger, stub_executor).run(samples[0])
        assert status == FAILED
        assert ledger.get('B').stage == 'Align'
        assert 'missing or empty input' in ledger.get('B').reason
        assert stub_executor.calls == []

    def test_empty_output_fails_stage(self, config, ledger, sample, executor_factory):
        executor = executor_factory(empty_outputs=['SortSam'])
        status = PerSamplePipeline(config, ledger, executor).run(sample)
        assert status == FAILED
        assert ledger.get('A').stage == 'Sort'
        assert 'missing or empty output' in ledger.get('A').reason

    def test_failed_sample_is_not_reprocessed(self, config, ledger, sample, stub_executor):
        ledger.record('A', 'Align', 'earlier failure')
        status = PerSamplePipeline(config, ledger, stub_executor).run(sample)
        assert status == FAILED
        assert sample.failure == ('Align', 'earlier failure')
        assert stub_executor.calls == []
        assert len(ledger.all()) == 1

    def test_qc_failure_is_not_fatal(self, config, ledger, sample, executor_factory):
        executor = executor_factory(
            fail_when=lambda tool, args: os.path.basename(tool) == 'samtools' and args[0] in
            ['flagstat', 'depth'])
        status = PerSamplePipeline(config, ledger, executor).run(sample)
        assert status == SUCCEEDED
        assert ledger.all() == []
        qc_dir = os.path.join(config['directories']['output'], 'qc', 'A')
        assert os.path.exists(os.path.join(qc_dir, 'A.coverage.txt'))
        assert not os.path.exists(os.path.join(qc_dir, 'A.flagstat.txt'))


class TestCommandLines(object):

    def test_alignment_read_group(self, config, ledger, sample, stub_executor):
        PerSamplePipeline(config, ledger, stub_executor).run(sample)
        _, args, stdout_file = stub_executor.calls_for('bwa mem')[0]
        assert args[:7] == ['mem', '-Y', '-K', '50000000', '-t', '4', '-R']
        assert args[7] == r'@RG\tID:A\tSM:A\tPL:ILLUMINA\tLB:A_lib'
        assert stdout_file.endswith('A.raw.sam')

    def test_picard_defaults(self, config, ledger, sample, stub_executor):
        PerSamplePipeline(config, ledger, stub_executor).run(sample)
        _, args, _ = stub_executor.calls_for('SortSam')[0]
        assert args[0] == '-Xmx6g'
        for opt in ['SORT_ORDER=coordinate', 'CREATE_INDEX=true', 'MAX_RECORDS_IN_RAM=2000000',
                    'VALIDATION_STRINGENCY=SILENT']:
            assert opt in args

    def test_recalibration_and_calling(self, config, ledger, sample, stub_executor):
        PerSamplePipeline(config, ledger, stub_executor).run(sample)
        _, bqsr, _ = stub_executor.calls_for('BaseRecalibrator')[0]
        assert bqsr.count('--known-sites') == 2
        assert '--preserve-qscores-less-than' in bqsr
        _, apply_args, _ = stub_executor.calls_for('ApplyBQSR')[0]
        assert apply_args.count('--static-quantized-quals') == 3
        _, hc, _ = stub_executor.calls_for('HaplotypeCaller')[0]
        assert hc[hc.index('-ERC') + 1] == 'GVCF'
        assert hc[hc.index('--sample-name') + 1] == 'A'
        assert 'InbreedingCoeff' in hc
