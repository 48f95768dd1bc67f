"""Handle file based transactions so readers never see partially written files.

Outputs are written to a temporary location next to the final file and moved
into place when the block finishes without error. The run manifest and the
run context are read by independently scheduled array units, so they are
always written this way.
"""
import contextlib
import os
import shutil
import tempfile

from wespipe import utils


@contextlib.contextmanager
def file_transaction(*files):
    """Wrap file generation in a transaction, moving to output if finishes.
    """
    orig_names = [f for f in files if f]
    tmp_dirs = [tempfile.mkdtemp(prefix=".tx", dir=utils.safe_makedir(os.path.dirname(os.path.abspath(f))))
                for f in orig_names]
    safe_names = [os.path.join(d, os.path.basename(f)) for d, f in zip(tmp_dirs, orig_names)]
    try:
        if len(safe_names) == 1:
            yield safe_names[0]
        else:
            yield tuple(safe_names)
        for safe, orig in zip(safe_names, orig_names):
            if os.path.exists(safe):
                _move_tmp_file(safe, orig)
    finally:
        for d in tmp_dirs:
            utils.remove_safe(d)


def _move_tmp_file(safe, orig):
    want_size = utils.get_size(safe)
    if os.path.isdir(safe):
        utils.remove_safe(orig)
        shutil.move(safe, orig)
    else:
        # same directory, so this is a rename and atomic on POSIX filesystems
        os.replace(safe, orig)
    transfer_size = utils.get_size(orig)
    assert want_size == transfer_size, (
        "distributed.transaction.file_transaction: File move error: "
        "temporary file ({}) size {} bytes does not equal size of final "
        "file ({}) size {} bytes".format(safe, want_size, orig, transfer_size))
