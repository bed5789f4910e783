# scenediff/logging.py
import logging

from pythonjsonlogger.json import JsonFormatter

DEFAULT_LOGGING_MODE = "console"
DEFAULT_LOGGING_LEVEL = "INFO"
DEFAULT_PRIMARY_FIELDS = ["asctime", "levelname", "name", "message"]
DEFAULT_DEFAULTS = {"app": "scenediff"}
DEFAULT_IGNORED_FIELDS = [
    "args",
    "msg",
    "msecs",
    "relativeCreated",
    "process",
]
CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_HANDLER_ATTR = "_scenediff_handler"


def setup(config, source_name):
    logger = logging.getLogger()
    logger.name = source_name

    # re-running setup replaces our handler instead of stacking another
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_ATTR, False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    setattr(handler, _HANDLER_ATTR, True)

    logging_config = config.get("logging", {})
    mode = logging_config.get("mode", DEFAULT_LOGGING_MODE)
    level = logging_config.get("level", DEFAULT_LOGGING_LEVEL)

    handler.setFormatter(make_formatter(mode, logging_config))

    logger.addHandler(handler)
    logger.setLevel(level)

    logger.debug("Logging Initialized")


def make_formatter(mode, logging_config=None):
    logging_config = logging_config or {}
    if mode == "console":
        return logging.Formatter(CONSOLE_FORMAT)

    fields = logging_config.get("primary_fields", DEFAULT_PRIMARY_FIELDS)
    fmt = " ".join(f"%({name})s" for name in fields)
    defaults = logging_config.get("defaults", DEFAULT_DEFAULTS)
    reserved_attrs = logging_config.get("reserved_attrs", DEFAULT_IGNORED_FIELDS)
    return JsonFormatter(
        fmt=fmt,
        defaults=defaults,
        reserved_attrs=reserved_attrs,
        json_indent=2 if mode == "prettyprint" else None,
    )
