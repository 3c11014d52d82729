"""
Per-user defaults for the goroutine dump analyzer
"""
import os

import yaml

DEFAULT_CONFIG_FILE = "~/.stackdump.yaml"

DEFAULTS = {
    "min_count": 0,
    "print_errors": False,
    "sort": "key",
    "offset_base": 16,
    "entry_point_sentinel": "main.main()",
    "jobs": 1,
}

ENV_OVERRIDES = {
    "STACKDUMP_MIN_COUNT": "min_count",
    "STACKDUMP_JOBS": "jobs",
}


class ConfigError(ValueError):
    pass


def config_file():
    return os.path.expanduser(os.getenv("STACKDUMP_CONFIG", DEFAULT_CONFIG_FILE))


def _is_int(value):
    # bool is a subclass of int
    return isinstance(value, int) and not isinstance(value, bool)


def _check(key, value):
    if key == "entry_point_sentinel":
        valid = value is None or isinstance(value, str)
    elif key == "print_errors":
        valid = isinstance(value, bool)
    elif key == "sort":
        valid = value in ("key", "count")
    elif key == "offset_base":
        valid = _is_int(value) and value in (0, 16)
    elif key == "jobs":
        valid = _is_int(value) and value >= 1
    else:
        valid = _is_int(value) and value >= 0

    if not valid:
        raise ConfigError("Invalid value for '%s': %r" % (key, value))
    return value


def load_config(file=None):
    """
    Settings from the built-in defaults, then the YAML file, then the environment.
    A missing file is only an error when it was asked for explicitly.
    """
    config = dict(DEFAULTS)

    explicit = file is not None
    if file is None:
        file = config_file()

    if os.path.exists(file):
        with open(file, "rb") as sjh:
            contents = sjh.read().decode('utf-8')
        try:
            values = yaml.safe_load(contents) or {}
        except yaml.YAMLError as e:
            raise ConfigError("Cannot parse '%s': %s" % (file, e))

        if not isinstance(values, dict):
            raise ConfigError("'%s' must contain a mapping" % file)

        for key, value in values.items():
            if key not in DEFAULTS:
                raise ConfigError("Unknown setting '%s' in '%s'" % (key, file))
            config[key] = _check(key, value)
    elif explicit:
        raise ConfigError("Config file '%s' does not exist" % file)

    for env, key in ENV_OVERRIDES.items():
        value = os.getenv(env)
        if value is None:
            continue
        try:
            number = int(value)
        except ValueError:
            raise ConfigError("%s must be an integer, not %r" % (env, value))
        config[key] = _check(key, number)

    return config
