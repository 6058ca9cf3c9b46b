import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_OWNER = "yztangent"
DEFAULT_PROJECT_NUMBER = "2"


class ConfigError(RuntimeError):
    """Raised when a required setting is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    github_token: str
    owner: str
    project_number: int


def load_settings(env_file=None):
    """Loads settings from the .env file and the environment."""
    load_dotenv(dotenv_path=env_file, override=True)

    token = os.getenv('GITHUB_TOKEN')
    if not token:
        raise ConfigError("GITHUB_TOKEN environment variable not set")

    owner = os.getenv('PLANNER_OWNER') or DEFAULT_OWNER
    raw_number = os.getenv('PLANNER_PROJECT_NUMBER') or DEFAULT_PROJECT_NUMBER
    try:
        project_number = int(raw_number)
    except ValueError as e:
        raise ConfigError(f"Invalid project number: {raw_number!r}") from e
    if project_number <= 0:
        raise ConfigError(f"Invalid project number: {raw_number!r}")

    return Settings(github_token=token, owner=owner, project_number=project_number)
