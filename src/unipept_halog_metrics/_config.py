import pathlib

import pydantic
import yaml

UNIPEPT_HALOG_METRICS_BASE_FOLDER_PATH = pathlib.Path.home() / ".unipept_halog_metrics"
UNIPEPT_HALOG_METRICS_BASE_FOLDER_PATH.mkdir(exist_ok=True)

_CONFIGURATION_FILE_PATH = UNIPEPT_HALOG_METRICS_BASE_FOLDER_PATH / "config.yaml"

DEFAULT_HAPROXY_LOG_FILE_PATH = pathlib.Path("/var/log/haproxy.log")
DEFAULT_GRAPHITE_HOST = "127.0.0.1"
DEFAULT_GRAPHITE_PORT = 2003
DEFAULT_WINDOW_IN_SECONDS = 60
DEFAULT_METRIC_PREFIX = "halog_live.unipeptapi"

# An endpoint is only stored if it contains at least one of these substrings
DEFAULT_ACCEPTED_ENDPOINTS = ("/mpa", "/private_api", "/api")
DEFAULT_HOST_PREFIXES = ("https://api.unipept.ugent.be", "http://api.unipept.ugent.be")


class _Configuration(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid")

    accepted_endpoints: list[str] = pydantic.Field(default_factory=lambda: list(DEFAULT_ACCEPTED_ENDPOINTS))
    host_prefixes: list[str] = pydantic.Field(default_factory=lambda: list(DEFAULT_HOST_PREFIXES))
    metric_prefix: str = pydantic.Field(default=DEFAULT_METRIC_PREFIX, min_length=1)


def load_configuration(configuration_file_path: str | pathlib.Path | None = None) -> dict:
    """
    Load the collector and exporter settings, overridden by a YAML file if one exists.

    Parameters
    ----------
    configuration_file_path : str or pathlib.Path, optional
        The YAML file to read overrides from.
        Defaults to `config.yaml` in the base folder; a missing file means no overrides.

    Raises
    ------
    ValueError
        If the file is not valid YAML, or contains unknown keys or values of the wrong type.
    """
    configuration_file_path = pathlib.Path(configuration_file_path or _CONFIGURATION_FILE_PATH)
    if not configuration_file_path.exists():
        return _Configuration().model_dump()

    try:
        with open(file=configuration_file_path) as stream:
            overrides = yaml.load(stream=stream, Loader=yaml.SafeLoader) or dict()

        configuration = _Configuration.model_validate(overrides)
    except (yaml.YAMLError, pydantic.ValidationError) as exception:
        message = f"Invalid configuration file '{configuration_file_path}'!\n\n{exception}"
        raise ValueError(message) from exception

    return configuration.model_dump()
