import logging
import os

import click.testing
import pytest

from replicator._cogs.configs import loading
from replicator._core.reactor import running
from replicator.cli import CLIControls, main


@pytest.fixture(autouse=True)
def preserved_logging():
    """ The commands re-configure the logging globally; restore it after the test. """
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    noisy = {name: (logging.getLogger(name).propagate, list(logging.getLogger(name).handlers))
             for name in ['asyncio', 'aiohttp']}
    try:
        yield
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)
        for name, (propagate, noisy_handlers) in noisy.items():
            logging.getLogger(name).propagate = propagate
            logging.getLogger(name).handlers[:] = noisy_handlers


@pytest.fixture(autouse=True)
def no_default_config(mocker):
    """ Never pick the real config file of the host, if it happens to be there. """
    exists = os.path.exists
    mocker.patch.object(os.path, 'exists',
                        side_effect=lambda path: path != loading.DEFAULT_CONFIG_PATH and exists(path))


@pytest.fixture()
def run_mock(mocker):
    return mocker.patch.object(running, 'run')


@pytest.fixture()
def invoke(settings):
    runner = click.testing.CliRunner()

    def invoke_fn(args, env=None):
        return runner.invoke(main, args, env=env, obj=CLIControls(settings=settings))

    return invoke_fn
