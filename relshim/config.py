import logging
import os
import typing as t
from dataclasses import dataclass
from dataclasses import fields
from dataclasses import replace

import yaml
from platformdirs import PlatformDirs

from relshim.errors import ConfigError
from relshim.errors import ExceptionCount

logger = logging.getLogger(__name__)

dirs = PlatformDirs("relshim", False)
CACHE_DIR = dirs.user_cache_dir

CONFIG_FILENAME = "shim-config.yml"

# Defaults
SERVER_URL = "https://github.com/"
PATTERN = "{repo_name}-{os}-{arch}{ext}"


@dataclass(frozen=True)
class Config:
    """Options for a single run of the shim.

    Each source produces a partial `Config`, where `None` means unset. Sources
    are combined with :func:`merge` and completed with :meth:`with_defaults`.
    """

    action_repository: t.Optional[str] = None
    """The repository to run a release of, e.g. `owner/name`."""

    action_ref: t.Optional[str] = None
    """The version to run: `latest`, a semver tag, a branch or a commit."""

    cache_directory: t.Optional[str] = None
    """Where downloaded binaries are stored.

    Defaults to a `relshim` folder in the user cache directory.
    """

    github_token: t.Optional[str] = None
    """Token used for downloads and attestation checks."""

    pattern: t.Optional[str] = None
    """Name of the release asset to download.

    Formatted with `repository`, `repo_name`, `tag`, `os`, `arch` and `ext`.
    """

    validate_attestations: t.Optional[bool] = None
    """Verify downloaded binaries with `gh attestation verify`. Requires the
    GitHub CLI to be available.
    """

    evict_on_attestation_failure: t.Optional[bool] = None
    """Delete a downloaded binary that fails attestation instead of keeping it
    in the cache.
    """

    server_url: t.Optional[str] = None
    """Base URL repositories are hosted under."""

    def with_defaults(self) -> "Config":
        """Fill in default values and check required options."""
        missing = [
            name
            for name in ("action_repository", "action_ref")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigError("Missing required option(s): " + ", ".join(missing))

        return replace(
            self,
            cache_directory=self.cache_directory or CACHE_DIR,
            pattern=self.pattern or PATTERN,
            validate_attestations=(
                True
                if self.validate_attestations is None
                else self.validate_attestations
            ),
            evict_on_attestation_failure=bool(self.evict_on_attestation_failure),
            server_url=(self.server_url or SERVER_URL).rstrip("/") + "/",
        )


ENV_VARS = {
    "cache_directory": "RELSHIM_CACHE_DIR",
    "github_token": "GH_TOKEN",
    "action_ref": "GITHUB_ACTION_REF",
    "action_repository": "GITHUB_ACTION_REPOSITORY",
    "validate_attestations": "RELSHIM_VALIDATE_ATTESTATIONS",
    "evict_on_attestation_failure": "RELSHIM_EVICT_ON_ATTESTATION_FAILURE",
    "server_url": "GITHUB_SERVER_URL",
}

ACTION_INPUTS = {
    "github_token": "github_token",
    "action_ref": "action_ref",
    "action_repository": "action_repo",
    "pattern": "pattern",
    "validate_attestations": "validate_attestations",
}

YAML_KEYS = {
    "action_ref": "action_ref",
    "action_repository": "action_repo",
    "pattern": "pattern",
    "evict_on_attestation_failure": "evict_on_attestation_failure",
}

_BOOL_FIELDS = {"validate_attestations", "evict_on_attestation_failure"}

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def parse_bool(value: str, name: str) -> bool:
    if value.strip().lower() in _TRUE:
        return True
    if value.strip().lower() in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean value for '{name}': '{value}'.")


def _from_strings(values: t.Mapping[str, str]) -> Config:
    data: t.Dict[str, t.Any] = {}
    for name, value in values.items():
        if not value:
            continue
        data[name] = parse_bool(value, name) if name in _BOOL_FIELDS else value
    return Config(**data)


def from_env(environ: t.Mapping[str, str]) -> Config:
    return _from_strings({name: environ.get(var, "") for name, var in ENV_VARS.items()})


def get_input(environ: t.Mapping[str, str], name: str) -> str:
    """Read an action input, passed as an `INPUT_<NAME>` environment variable."""
    return environ.get("INPUT_" + name.replace(" ", "_").upper(), "").strip()


def from_action_inputs(environ: t.Mapping[str, str]) -> Config:
    return _from_strings(
        {name: get_input(environ, key) for name, key in ACTION_INPUTS.items()}
    )


def load_yaml(document: t.Any) -> Config:
    data: t.Optional[t.Dict[str, t.Any]] = yaml.safe_load(document)
    if not data:
        return Config()
    if not isinstance(data, dict):
        logger.error("Expected an object at the top level of the config file.")
        raise ExceptionCount(1)

    keys = {key: name for name, key in YAML_KEYS.items()}
    values: t.Dict[str, t.Any] = {}
    errors = 0
    for k, v in data.items():
        if k not in keys:
            logger.warning(f"Ignoring unknown key: '{k}'.")
            continue
        name = keys[k]
        expected = bool if name in _BOOL_FIELDS else str
        if v is not None and not isinstance(v, expected):
            logger.error(f"Invalid value for key '{k}': '{v}'.")
            errors += 1
            continue
        values[name] = v
    if errors:
        raise ExceptionCount(errors)

    return Config(**values)


def find_config_file(action_path: str) -> t.Optional[str]:
    for path in (
        os.path.join(action_path, CONFIG_FILENAME),
        os.path.join(action_path, "shim", CONFIG_FILENAME),
    ):
        if os.path.isfile(path):
            return path
    return None


def from_yaml_file(action_path: t.Optional[str]) -> Config:
    path = find_config_file(action_path or os.getcwd())
    if not path:
        logger.debug("No shim config file found.")
        return Config()

    try:
        with open(path) as file:
            config = load_yaml(file)
    except ExceptionCount as e:
        raise ConfigError(
            f"{e.count} error(s) were encountered while loading config '{path}'."
        )
    except yaml.error.YAMLError as e:
        raise ConfigError(f"Failed to parse shim config '{path}':\n{e}")
    logger.debug(f"Shim config loaded from '{path}'.")
    return config


def merge(*configs: Config) -> Config:
    """Combine partial configs, later values taking precedence over earlier ones."""
    data: t.Dict[str, t.Any] = {}
    for config in configs:
        for f in fields(config):
            value = getattr(config, f.name)
            if value is not None and value != "":
                data[f.name] = value
    return Config(**data)


def load_config(
    overrides: Config = Config(),
    environ: t.Optional[t.Mapping[str, str]] = None,
) -> Config:
    """Load the config from the environment, action inputs and shim config file.

    Precedence (lowest to highest): environment variables, action inputs, the
    config file, then `overrides`.
    """
    environ = os.environ if environ is None else environ
    return merge(
        from_env(environ),
        from_action_inputs(environ),
        from_yaml_file(environ.get("GITHUB_ACTION_PATH", None)),
        overrides,
    ).with_defaults()
