import os

import mock
import pytest

from wespipe.distributed import transaction
from wespipe.distributed.transaction import file_transaction


def _write(fname, text='content\n'):
    with open(fname, 'w') as out_handle:
        out_handle.write(text)


class TestFileTransaction(object):

    def test_moves_file_into_place(self, tmp_path):
        out_file = str(tmp_path / 'out' / 'run_manifest.yaml')
        with file_transaction(out_file) as tx_out_file:
            assert tx_out_file != out_file
            assert os.path.basename(tx_out_file) == 'run_manifest.yaml'
            _write(tx_out_file)
            assert not os.path.exists(out_file)
        with open(out_file) as in_handle:
            assert in_handle.read() == 'content\n'
        assert os.listdir(os.path.dirname(out_file)) == ['run_manifest.yaml']

    def test_multiple_files_yield_tuple(self, tmp_path):
        files = [str(tmp_path / 'a.txt'), str(tmp_path / 'b.txt')]
        with file_transaction(*files) as tx_files:
            assert isinstance(tx_files, tuple)
            for fname in tx_files:
                _write(fname)
        assert all(os.path.exists(f) for f in files)

    def test_failure_leaves_original_untouched(self, tmp_path):
        out_file = str(tmp_path / 'run_context.yaml')
        _write(out_file, 'original\n')
        with pytest.raises(ValueError):
            with file_transaction(out_file) as tx_out_file:
                _write(tx_out_file, 'partial')
                raise ValueError('interrupted')
        with open(out_file) as in_handle:
            assert in_handle.read() == 'original\n'
        assert os.listdir(str(tmp_path)) == ['run_context.yaml']

    def test_unwritten_output_is_not_created(self, tmp_path):
        out_file = str(tmp_path / 'never.txt')
        with file_transaction(out_file):
            pass
        assert not os.path.exists(out_file)

    def test_size_mismatch_is_detected(self, tmp_path):
        out_file = str(tmp_path / 'out.txt')
        sizes = iter([10, 5])
        with mock.patch.object(transaction.utils, 'get_size', side_effect=lambda f: next(sizes)):
            with pytest.raises(AssertionError):
                with file_transaction(out_file) as tx_out_file:
                    _write(tx_out_file)
