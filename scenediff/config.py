# scenediff/config.py
import copy
import logging
import os

import yaml

from scenediff.errors import InvalidConfig

logger = logging.getLogger(__name__)

ENV_LOG_LEVEL = "SCENEDIFF_LOG_LEVEL"

DEFAULTS = {
    "logging": {
        "mode": "console",
        "level": "INFO",
    },
    "extract": {
        "step": 1.0,
        "strict": False,
        "out_dir": "out",
        "html": True,
    },
}


def _merge(a, b):
    "merges dict b into dict a"

    a = copy.deepcopy(a)
    b = copy.deepcopy(b)

    if not isinstance(b, dict):
        return b

    for key in b:
        if key in a and isinstance(a[key], dict) and isinstance(b[key], dict):
            a[key] = _merge(a[key], b[key])
        elif b[key] is not None:
            a[key] = b[key]
    return a


def merge(*configs):
    new = {}
    for c in configs:
        new = _merge(new, c)
    return new


def read_yaml(path):
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise InvalidConfig(f"cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise InvalidConfig(f"invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfig(f"config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def load(path=None, overrides=None, environ=None):
    """Defaults, then the YAML file, then ``overrides``, then the environment."""
    environ = os.environ if environ is None else environ
    config = copy.deepcopy(DEFAULTS)
    if path is not None:
        config = merge(config, read_yaml(path))
    if overrides:
        config = merge(config, overrides)
    level = environ.get(ENV_LOG_LEVEL)
    if level:
        config["logging"]["level"] = level.upper()
    _check(config)
    return config


def _check(config):
    extract = config["extract"]
    try:
        extract["step"] = float(extract["step"])
    except (TypeError, ValueError) as e:
        raise InvalidConfig(f"extract.step must be a number, got {extract['step']!r}") from e
    if extract["step"] <= 0:
        raise InvalidConfig(f"extract.step must be positive, got {extract['step']}")
    mode = config["logging"]["mode"]
    if mode not in ("json", "prettyprint", "console"):
        raise InvalidConfig(f"unknown logging.mode {mode!r}")
