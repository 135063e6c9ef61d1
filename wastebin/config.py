"""
Wastebin: Application Configuration
=====================================

What:  Typed settings loaded from defaults, a JSON config file, environment
       variables and command-line arguments.
How:   Pydantic Settings validates types and ranges. `load_settings()` layers
       the sources with this precedence (last wins):

           built-in defaults < config file < WASTEBIN_* env vars < CLI arguments

       The command line is parsed first because it may name the config file;
       its values are then applied on top of everything else.

Config file:
    JSON object keyed by field name, e.g.
        {"database_path": "/srv/wastebin.sqlite", "max_size": 16384}
    Path: --config, else WASTEBIN_CONFIG, else ~/.wastebin.json. A missing
    default file is ignored; a missing file that was asked for explicitly is
    a ConfigurationError.
"""

import argparse
import json
import os
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from wastebin.exceptions import ConfigurationError

DEFAULT_CONFIG_FILE = "~/.wastebin.json"


class Mode(BaseModel):
    """A syntax-highlighting mode: `sysname` is stored, `name` is displayed."""

    sysname: str = Field(min_length=1, max_length=31)
    name: str


DEFAULT_MODES: List[Mode] = [
    Mode(sysname="objectivec", name="Objective-C"),
    Mode(sysname="django", name="Django"),
    Mode(sysname="go", name="Go"),
    Mode(sysname="haskell", name="Haskell"),
    Mode(sysname="java", name="Java"),
    Mode(sysname="json", name="JSON"),
    Mode(sysname="markdown", name="Markdown"),
    Mode(sysname="_plain_", name="Plain"),
    Mode(sysname="perl", name="Perl"),
    Mode(sysname="php", name="PHP"),
    Mode(sysname="python", name="Python"),
    Mode(sysname="ruby", name="Ruby"),
    Mode(sysname="sql", name="SQL"),
    Mode(sysname="swift", name="Swift"),
    Mode(sysname="xml", name="XML"),
]


class Settings(BaseSettings):
    """
    Application settings.

    Every field can be set in the config file, as WASTEBIN_<FIELD> in the
    environment, or on the command line. `admin_password` has no default;
    `validate_required()` refuses to start without it.
    """

    # ── Storage ───────────────────────────────────────────────────────────
    # SQLite database file; "~" is expanded
    database_path: str = Field(default="~/Databases/wastebin.sqlite")

    # Upper bound on a single store operation, in seconds
    store_timeout: float = Field(default=10.0, gt=0, le=300)

    # ── Server ────────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)

    # Base URL for CSS/JS assets, passed to every template as resource_dir
    resource_path: str = Field(default="http://localhost:8081/")

    # Directory holding the Jinja2 templates; None uses the bundled ones
    template_path: Optional[str] = Field(default=None)

    # ── Pastes ────────────────────────────────────────────────────────────
    # Maximum paste body size in characters
    max_size: int = Field(default=8192, ge=1)

    modes: List[Mode] = Field(default_factory=lambda: list(DEFAULT_MODES), min_length=1)

    # ── Administration ────────────────────────────────────────────────────
    admin_password: Optional[str] = Field(default=None)

    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    model_config = SettingsConfigDict(
        env_prefix="WASTEBIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # init kwargs carry the command line, so they sit on top
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @property
    def database_file(self) -> Path:
        return Path(self.database_path).expanduser()

    @property
    def database_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.database_file}"

    @property
    def mode_names(self) -> List[str]:
        return [mode.sysname for mode in self.modes]

    def validate_required(self) -> None:
        """
        Fail fast on settings the server cannot run without.

        Raises:
            ConfigurationError: no usable database path, or no admin password
        """
        if not self.database_path:
            raise ConfigurationError(
                "Can't determine database file path",
                exit_code=ConfigurationError.NO_DATABASE,
            )
        parent = self.database_file.parent
        if not parent.is_dir():
            raise ConfigurationError(
                f"Database directory '{parent}' does not exist",
                exit_code=ConfigurationError.NO_DATABASE,
            )
        if not self.admin_password:
            raise ConfigurationError(
                "Define an administration password (admin_password)",
                exit_code=ConfigurationError.NO_PASSWORD,
            )


def build_parser() -> argparse.ArgumentParser:
    """Command-line options; unset options stay out of the namespace."""
    parser = argparse.ArgumentParser(
        prog="wastebin",
        description="Wastebin paste server",
        argument_default=argparse.SUPPRESS,
    )
    parser.add_argument("--config", help="JSON config file (default: %s)" % DEFAULT_CONFIG_FILE)
    parser.add_argument("--database-path", dest="database_path")
    parser.add_argument("--host")
    parser.add_argument("--port", type=int)
    parser.add_argument("--resource-path", dest="resource_path")
    parser.add_argument("--template-path", dest="template_path")
    parser.add_argument("--max-size", dest="max_size", type=int)
    parser.add_argument("--password", "--admin-password", dest="admin_password")
    parser.add_argument("--log-level", dest="log_level")
    parser.add_argument("--store-timeout", dest="store_timeout", type=float)
    return parser


def _settings_with_file(config_file: Path) -> Type[Settings]:
    class FileSettings(Settings):
        model_config = SettingsConfigDict(json_file=config_file)

    return FileSettings


def load_settings(argv: Optional[Sequence[str]] = None) -> Settings:
    """
    Build Settings from all sources.

    Args:
        argv: Command-line arguments (sys.argv[1:] when None)

    Raises:
        ConfigurationError: an explicitly named config file does not exist or
                            is not JSON, or a value fails validation
    """
    cli_values = vars(build_parser().parse_args(argv))
    explicit = cli_values.pop("config", None) or os.environ.get("WASTEBIN_CONFIG")
    config_file = Path(explicit or DEFAULT_CONFIG_FILE).expanduser()

    if explicit and not config_file.is_file():
        raise ConfigurationError(
            f"Config file '{config_file}' does not exist",
            exit_code=ConfigurationError.BAD_CONFIG_FILE,
        )

    try:
        return _settings_with_file(config_file)(**cli_values)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Config file '{config_file}' is not valid JSON: {e}",
            exit_code=ConfigurationError.BAD_CONFIG_FILE,
        ) from e
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid setting: {e}",
            exit_code=ConfigurationError.INVALID_SETTING,
        ) from e
