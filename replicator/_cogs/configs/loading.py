"""
The optional configuration file of the replicator.

The file is a YAML document with the replicated resources and the logging
level. Environment variables can be referenced as ``$VAR`` or ``${VAR}``
anywhere in the file; they are expanded before the YAML is parsed.
An absent variable is an error, not an empty string::

    resources:
      - apiVersion: v1
        kind: Secret
      - apiVersion: networking.k8s.io/v1
        kind: NetworkPolicy
    logging:
      level: ${LOG_LEVEL}
"""
import dataclasses
import logging
import os
import re
from collections.abc import Collection, Mapping
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = '/etc/replicator/config.yaml'

ENV_REFERENCE = re.compile(r'\$(?:\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}|(?P<plain>[A-Za-z_][A-Za-z0-9_]*))')

LOG_LEVELS: Mapping[str, int] = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


class ConfigError(Exception):
    """ Raised when the config file is unreadable or inconsistent. """


@dataclasses.dataclass(frozen=True)
class ResourceConfig:
    api_version: str
    kind: str


@dataclasses.dataclass(frozen=True)
class FileConfig:
    resources: Collection[ResourceConfig] = ()
    log_level: int | None = None


def expand_env(text: str, environ: Mapping[str, str] | None = None) -> str:
    environ = os.environ if environ is None else environ
    missing: list[str] = []

    def replace(match: re.Match[str]) -> str:
        name = match.group('braced') or match.group('plain')
        if name not in environ:
            missing.append(name)
            return ''
        return environ[name]

    expanded = ENV_REFERENCE.sub(replace, text)
    if missing:
        raise ConfigError(f"Missing environment variable(s): {', '.join(missing)}")
    return expanded


def parse_config(text: str, environ: Mapping[str, str] | None = None) -> FileConfig:
    try:
        raw: Any = yaml.safe_load(expand_env(text, environ=environ)) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"The config is not a valid YAML: {e}") from e
    if not isinstance(raw, Mapping):
        raise ConfigError(f"The config must be a mapping, got {type(raw).__name__}.")

    resources: list[ResourceConfig] = []
    for item in raw.get('resources') or []:
        if not isinstance(item, Mapping) or not item.get('apiVersion') or not item.get('kind'):
            raise ConfigError(f"Resources must have both apiVersion and kind: {item!r}")
        resources.append(ResourceConfig(api_version=str(item['apiVersion']), kind=str(item['kind'])))

    level_name = (raw.get('logging') or {}).get('level')
    log_level: int | None = None
    if level_name:
        try:
            log_level = LOG_LEVELS[str(level_name).lower()]
        except KeyError:
            raise ConfigError(f"Unsupported logging level: {level_name!r}") from None

    return FileConfig(resources=tuple(resources), log_level=log_level)


def load_config(path: str, environ: Mapping[str, str] | None = None) -> FileConfig:
    try:
        with open(path, encoding='utf-8') as f:
            text = f.read()
    except OSError as e:
        raise ConfigError(f"Cannot read the config file {path!r}: {e}") from e
    config = parse_config(text, environ=environ)
    logger.debug(f"Loaded the config from {path!r}: {config!r}")
    return config
