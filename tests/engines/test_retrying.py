import copy
from unittest.mock import AsyncMock

import pytest

from replicator._cogs.clients.errors import APIConflictError, APINotFoundError
from replicator._core.actions.retrying import Outcome, read_mutate_write


def mutate(body):
    body.setdefault('metadata', {})['labels'] = {'a': 'b'}


async def test_nothing_written_when_converged(logger):
    body = {'metadata': {'labels': {'a': 'b'}}}
    read = AsyncMock(return_value=copy.deepcopy(body))
    write = AsyncMock()
    outcome = await read_mutate_write(read=read, mutate=mutate, write=write,
                                      backoffs=[], logger=logger)
    assert outcome == Outcome.NONE
    assert not write.called


async def test_written_when_changed(logger):
    read = AsyncMock(return_value={'metadata': {}})
    write = AsyncMock()
    outcome = await read_mutate_write(read=read, mutate=mutate, write=write,
                                      backoffs=[], logger=logger)
    assert outcome == Outcome.UPDATED
    assert write.call_args[0][0] == {'metadata': {'labels': {'a': 'b'}}}


async def test_absent_and_not_creatable(logger):
    read = AsyncMock(return_value=None)
    write = AsyncMock()
    outcome = await read_mutate_write(read=read, mutate=mutate, write=write,
                                      backoffs=[], logger=logger)
    assert outcome == Outcome.ABSENT
    assert not write.called


async def test_absent_and_creatable(logger):
    read = AsyncMock(return_value=None)
    write = AsyncMock()
    create = AsyncMock()
    outcome = await read_mutate_write(read=read, mutate=mutate, write=write,
                                      create=create, blank=lambda: {'kind': 'Secret'},
                                      backoffs=[], logger=logger)
    assert outcome == Outcome.CREATED
    assert not write.called
    assert create.call_args[0][0] == {'kind': 'Secret', 'metadata': {'labels': {'a': 'b'}}}


async def test_gone_while_written_and_not_creatable(logger):
    read = AsyncMock(return_value={'metadata': {}})
    write = AsyncMock(side_effect=APINotFoundError(None, status=404))
    outcome = await read_mutate_write(read=read, mutate=mutate, write=write,
                                      backoffs=[0], logger=logger)
    assert outcome == Outcome.ABSENT
    assert write.call_count == 1


async def test_conflicts_are_retried(logger):
    read = AsyncMock(return_value={'metadata': {}})
    write = AsyncMock(side_effect=[APIConflictError(None, status=409), None])
    outcome = await read_mutate_write(read=read, mutate=mutate, write=write,
                                      backoffs=[0, 0], logger=logger)
    assert outcome == Outcome.UPDATED
    assert read.call_count == 2
    assert write.call_count == 2


async def test_conflicts_are_escalated_when_exhausted(logger):
    read = AsyncMock(return_value={'metadata': {}})
    write = AsyncMock(side_effect=APIConflictError(None, status=409))
    with pytest.raises(APIConflictError):
        await read_mutate_write(read=read, mutate=mutate, write=write,
                                backoffs=[0, 0], logger=logger)
    assert write.call_count == 3


async def test_concurrent_creation_is_updated(logger):
    read = AsyncMock(side_effect=[None, {'metadata': {'labels': {'x': 'y'}}}])
    create = AsyncMock(side_effect=APIConflictError(None, status=409))
    write = AsyncMock()
    outcome = await read_mutate_write(read=read, mutate=mutate, write=write,
                                      create=create, blank=dict,
                                      backoffs=[0], logger=logger)
    assert outcome == Outcome.UPDATED
    assert write.call_args[0][0] == {'metadata': {'labels': {'a': 'b'}}}


@pytest.mark.looptime
async def test_backoffs_are_slept(looptime, logger):
    read = AsyncMock(return_value={'metadata': {}})
    write = AsyncMock(side_effect=APIConflictError(None, status=409))
    with pytest.raises(APIConflictError):
        await read_mutate_write(read=read, mutate=mutate, write=write,
                                backoffs=[0.1, 0.2], logger=logger)
    assert looptime == pytest.approx(0.3)
