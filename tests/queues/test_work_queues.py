import pytest

from replicator._core.reactor.queueing import EOS, WorkQueue


async def test_keys_are_deduplicated():
    queue = WorkQueue(name='test')
    queue.add('a')
    queue.add('b')
    queue.add('a')
    assert len(queue) == 2
    assert await queue.get() == 'a'
    assert await queue.get() == 'b'
    assert len(queue) == 0


async def test_key_in_processing_is_postponed():
    queue = WorkQueue(name='test')
    queue.add('a')
    assert await queue.get() == 'a'

    queue.add('a')
    assert len(queue) == 1
    assert queue._backlog.empty()

    queue.done('a')
    assert await queue.get() == 'a'


async def test_done_key_is_not_requeued():
    queue = WorkQueue(name='test')
    queue.add('a')
    await queue.get()
    queue.done('a')
    assert len(queue) == 0
    assert queue._backlog.empty()


@pytest.mark.parametrize('failures, expected', [
    (1, 0.005),
    (2, 0.010),
    (3, 0.020),
    (30, 1000.0),
])
async def test_retry_delays_grow_exponentially(failures, expected):
    queue = WorkQueue(name='test', base_delay=0.005, max_delay=1000.0)
    delays = [queue.retry('a') for _ in range(failures)]
    queue.shutdown()
    assert delays[-1] == pytest.approx(expected)
    assert queue.failures('a') == failures


async def test_forgetting_resets_delays():
    queue = WorkQueue(name='test', base_delay=1, max_delay=100)
    queue.retry('a')
    queue.retry('a')
    queue.forget('a')
    assert queue.failures('a') == 0
    assert queue.retry('a') == 1
    queue.shutdown()


@pytest.mark.looptime
async def test_delayed_addition(looptime):
    queue = WorkQueue(name='test')
    queue.add_after('a', 12.3)
    assert len(queue) == 0
    assert await queue.get() == 'a'
    assert looptime == 12.3


@pytest.mark.looptime
async def test_rescheduling_replaces_the_timer(looptime):
    queue = WorkQueue(name='test')
    queue.add_after('a', 5)
    queue.add_after('a', 7)
    assert await queue.get() == 'a'
    assert looptime == 7
    assert queue._backlog.empty()


async def test_shutdown_stops_the_consumers():
    queue = WorkQueue(name='test')
    queue.add_after('a', 100)
    queue.shutdown()
    queue.add('b')
    assert queue.closed
    assert await queue.get() is EOS.token
    assert await queue.get() is EOS.token  # for every consumer.
    assert len(queue) == 0

