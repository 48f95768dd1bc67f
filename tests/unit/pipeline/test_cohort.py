import os

import pytest

from wespipe.distributed.barrier import FAILED, SUCCEEDED
from wespipe.pipeline import cohort
from wespipe.pipeline.errors import BarrierUnsatisfiableError, CohortStageError
from wespipe.pipeline.sample import final_gvcf

COHORT_COMMANDS = ['CombineGVCFs', 'GenotypeGVCFs', 'VariantRecalibrator', 'VariantRecalibrator',
                   'ApplyVQSR', 'ApplyVQSR', 'CountVariants']


@pytest.fixture
def gvcfs(config):
    out = []
    for name in ['A', 'B', 'C']:
        fname = final_gvcf(name, config)
        if not os.path.exists(os.path.dirname(fname)):
            os.makedirs(os.path.dirname(fname))
        with open(fname, 'w') as out_handle:
            out_handle.write('##fileformat=VCFv4.2\n')
        out.append(fname)
    return out


def _arg(args, flag):
    return args[args.index(flag) + 1]


class TestInputSet(object):

    def test_only_succeeded_samples_contribute(self, config, gvcfs):
        outcomes = {'C': SUCCEEDED, 'A': SUCCEEDED, 'B': FAILED}
        assert cohort.cohort_input_set(outcomes, config) == [gvcfs[0], gvcfs[2]]

    def test_succeeded_without_gvcf_is_excluded(self, config, gvcfs):
        os.remove(gvcfs[0])
        assert cohort.cohort_input_set({'A': SUCCEEDED, 'B': SUCCEEDED}, config) == [gvcfs[1]]

    def test_all_failed_raises(self, config, gvcfs):
        with pytest.raises(BarrierUnsatisfiableError):
            cohort.cohort_input_set({'A': FAILED, 'B': FAILED}, config)

    def test_no_samples_raises(self, config):
        with pytest.raises(BarrierUnsatisfiableError):
            cohort.cohort_input_set({}, config)


class TestCohortPipeline(object):

    def test_steps_run_in_order(self, config, gvcfs, stub_executor):
        final = cohort.CohortPipeline(config, stub_executor).run(gvcfs)
        assert stub_executor.names() == COHORT_COMMANDS
        assert final == os.path.join(config['directories']['output'], 'vcf',
                                     'cohort_test.final_filtered.vcf.gz')
        assert os.path.exists(final)
        assert os.path.exists(os.path.join(config['directories']['output'], 'vcf',
                                           'cohort_test.final_filtered.variant_count.txt'))

    def test_combines_every_gvcf(self, config, gvcfs, stub_executor):
        cohort.CohortPipeline(config, stub_executor).run(gvcfs)
        _, args, _ = stub_executor.calls_for('CombineGVCFs')[0]
        assert [args[i + 1] for i, a in enumerate(args) if a == '-V'] == gvcfs

    def test_indel_filter_reads_snp_filtered_calls(self, config, gvcfs, stub_executor):
        cohort.CohortPipeline(config, stub_executor).run(gvcfs)
        snp_apply, indel_apply = [c[1] for c in stub_executor.calls_for('ApplyVQSR')]
        assert _arg(snp_apply, '--mode') == 'SNP'
        assert _arg(snp_apply, '--truth-sensitivity-filter-level') == '99.80'
        assert _arg(indel_apply, '--mode') == 'INDEL'
        assert _arg(indel_apply, '--truth-sensitivity-filter-level') == '99.0'
        assert _arg(indel_apply, '-V') == _arg(snp_apply, '-O')
        assert _arg(indel_apply, '-O').endswith('cohort_test.final_filtered.vcf.gz')

    def test_recalibration_models(self, config, gvcfs, stub_executor):
        cohort.CohortPipeline(config, stub_executor).run(gvcfs)
        snp, indel = [c[1] for c in stub_executor.calls_for('VariantRecalibrator')]
        assert '--dont-run-rscript' in snp
        assert '--dont-run-rscript' not in indel
        assert _arg(indel, '--max-gaussians') == '4'
        assert _arg(snp, '--resource:hapmap,known=false,training=true,truth=true,prior=15.0') == \
            config['vqsr_resources']['hapmap']
        assert [indel[i + 1] for i, a in enumerate(indel) if a == '-tranche'] == \
            ['100.0', '99.0', '95.0', '92.0', '90.0']

    def test_cleans_cohort_workspace_and_links_reference(self, config, gvcfs, stub_executor):
        pipeline = cohort.CohortPipeline(config, stub_executor)
        pipeline.run(gvcfs)
        assert not os.path.exists(pipeline.work_dir)
        assert os.path.exists(os.path.join(config['directories']['output'], 'cram', 'genome.fa'))

    def test_failed_step_raises(self, config, gvcfs, executor_factory):
        executor = executor_factory(fail_when=lambda tool, args: 'GenotypeGVCFs' in args)
        with pytest.raises(CohortStageError) as excinfo:
            cohort.CohortPipeline(config, executor).run(gvcfs)
        assert 'GenotypeGVCFs' in str(excinfo.value)
        assert 'VariantRecalibrator' not in executor.names()

    def test_empty_recalibration_output_raises(self, config, gvcfs, executor_factory):
        executor = executor_factory(empty_outputs=['VariantRecalibrator'])
        with pytest.raises(CohortStageError) as excinfo:
            cohort.CohortPipeline(config, executor).run(gvcfs)
        assert 'VariantRecalibratorSNP' in str(excinfo.value)

    def test_variant_count_failure_is_not_fatal(self, config, gvcfs, executor_factory):
        executor = executor_factory(fail_when=lambda tool, args: 'CountVariants' in args)
        final = cohort.CohortPipeline(config, executor).run(gvcfs)
        assert os.path.exists(final)
