import asyncio
import dataclasses
import functools
import logging
import os
from collections.abc import Callable, Collection
from typing import Any

import click

from replicator._cogs.clients import stores
from replicator._cogs.configs import configuration, loading
from replicator._cogs.helpers import versions
from replicator._core.actions import loggers
from replicator._core.intents import adapters
from replicator._core.reactor import running


@dataclasses.dataclass()
class CLIControls:
    """ The controls of the runs, which are impossible to pass via CLI (e.g. in tests). """
    ready_flag: asyncio.Event | None = None
    stop_flag: asyncio.Event | None = None
    settings: configuration.OperatorSettings | None = None
    store: stores.ObjectStore | None = None


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        if isinstance(value, loggers.LogFormat):
            return value
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: bool | None = False,
                log_refkey: str | None = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


@click.version_option(prog_name='replicator', package_name=versions.DISTRIBUTION_NAME)
@click.group(name='replicator', context_settings=dict(
    auto_envvar_prefix='REPLICATOR',
))
def main() -> None:
    pass


@main.command()
@logging_options
@click.option('-k', '--kind', 'kinds', multiple=True)
@click.option('-c', '--config', 'config_path', type=click.Path(dir_okay=False))
@click.option('--operator-namespace', type=str, envvar='OPERATOR_NAMESPACE')
@click.option('--prefix', type=str)
@click.option('--worker-limit', type=click.IntRange(min=1))
@click.option('-L', '--liveness', 'liveness_endpoint', type=str)
@click.make_pass_decorator(CLIControls, ensure=True)
def run(
        __controls: CLIControls,
        kinds: Collection[str],
        config_path: str | None,
        operator_namespace: str | None,
        prefix: str | None,
        worker_limit: int | None,
        liveness_endpoint: str | None,
) -> None:
    """ Start the replicator and replicate the marked objects across namespaces. """

    # The default config file is optional; an explicitly requested one is mandatory.
    if config_path is None and os.path.exists(loading.DEFAULT_CONFIG_PATH):
        config_path = loading.DEFAULT_CONFIG_PATH
    try:
        file_config = loading.load_config(config_path) if config_path else loading.FileConfig()
    except loading.ConfigError as e:
        raise click.BadParameter(str(e), param_hint='--config') from e

    if file_config.log_level is not None:
        logging.getLogger().setLevel(file_config.log_level)

    # The explicit kinds on the command line override the config's resources.
    try:
        if kinds:
            selected = adapters.get_adapters(kinds)
        else:
            selected = adapters.get_adapters(
                [resource.kind for resource in file_config.resources],
                api_versions={resource.kind: resource.api_version
                              for resource in file_config.resources})
    except adapters.UnknownKindError as e:
        raise click.UsageError(str(e)) from e

    settings = __controls.settings if __controls.settings is not None else configuration.OperatorSettings()
    if operator_namespace is not None:
        settings.replication.operator_namespace = operator_namespace
    if prefix is not None:
        settings.replication.prefix = prefix
    if worker_limit is not None:
        settings.queueing.worker_limit = worker_limit

    return running.run(
        adapters=selected,
        settings=settings,
        liveness_endpoint=liveness_endpoint,
        stop_flag=__controls.stop_flag,
        ready_flag=__controls.ready_flag,
        store=__controls.store,
    )
