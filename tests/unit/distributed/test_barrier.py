import itertools
import threading

import pytest

from wespipe.distributed.barrier import (FAILED, RELEASED, SUCCEEDED, WAITING,
                                         FinalizationBarrier)


@pytest.mark.parametrize('order', list(itertools.permutations(['A', 'B', 'C'])))
def test_releases_once_in_any_completion_order(order):
    released = []
    barrier = FinalizationBarrier(3, on_release=released.append)
    statuses = {'A': SUCCEEDED, 'B': FAILED, 'C': SUCCEEDED}
    for i, unit in enumerate(order):
        assert barrier.state == WAITING
        assert barrier.complete(unit, statuses[unit]) == (i == len(order) - 1)
    assert barrier.state == RELEASED
    assert released == [statuses]
    assert barrier.succeeded() == ['A', 'C']
    assert barrier.failed() == ['B']


def test_failures_count_towards_release():
    barrier = FinalizationBarrier(2)
    barrier.complete('A', FAILED)
    barrier.complete('B', FAILED)
    assert barrier.released
    assert barrier.succeeded() == []


def test_duplicate_completion_is_ignored():
    barrier = FinalizationBarrier(2)
    assert not barrier.complete('A', SUCCEEDED)
    assert not barrier.complete('A', FAILED)
    assert barrier.completed == 1
    assert barrier.outcomes() == {'A': SUCCEEDED}
    assert not barrier.released


def test_zero_expected_releases_immediately():
    released = []
    barrier = FinalizationBarrier(0, on_release=released.append)
    assert barrier.released
    assert released == [{}]
    assert barrier.wait(timeout=0)


def test_non_terminal_status_rejected():
    barrier = FinalizationBarrier(1)
    with pytest.raises(ValueError):
        barrier.complete('A', 'Running')


def test_completion_after_release_rejected():
    barrier = FinalizationBarrier(1)
    barrier.complete('A', SUCCEEDED)
    with pytest.raises(ValueError):
        barrier.complete('B', SUCCEEDED)


def test_negative_expected_rejected():
    with pytest.raises(ValueError):
        FinalizationBarrier(-1)


def test_wait_returns_when_workers_finish():
    barrier = FinalizationBarrier(4)
    assert not barrier.wait(timeout=0.01)
    threads = [threading.Thread(target=barrier.complete, args=('S%d' % i, SUCCEEDED))
               for i in range(4)]
    for t in threads:
        t.start()
    assert barrier.wait(timeout=10)
    for t in threads:
        t.join()
    assert barrier.completed == 4
