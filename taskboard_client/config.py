from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path


class ConfigurationError(ValueError):
    pass


_VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class AppSettings:
    base_url: str
    timeout_seconds: int
    retry_attempts: int
    stale_seconds: int
    state_dir: str
    log_level: str

    @staticmethod
    def from_env() -> "AppSettings":
        _load_dotenv_if_present()

        base_url = os.getenv("TASKBOARD_BASE_URL", "http://localhost:8080").strip().rstrip("/")

        timeout_seconds = _int_from_env("TASKBOARD_TIMEOUT_SECONDS", "30")
        retry_attempts = _int_from_env("TASKBOARD_RETRY_ATTEMPTS", "1")
        stale_seconds = _int_from_env("TASKBOARD_STALE_SECONDS", "300")

        default_state_dir = os.path.join(
            os.getenv("LOCALAPPDATA", os.path.join(os.path.expanduser("~"), ".local", "state")),
            "TaskboardClient",
        )
        state_dir = os.getenv("TASKBOARD_STATE_DIR", default_state_dir).strip()
        log_level = os.getenv("TASKBOARD_LOG_LEVEL", "INFO").strip().upper()

        settings = AppSettings(
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            retry_attempts=retry_attempts,
            stale_seconds=stale_seconds,
            state_dir=state_dir,
            log_level=log_level,
        )
        settings.validate()
        return settings

    @property
    def numeric_log_level(self) -> int:
        return logging.getLevelName(self.log_level)

    def validate(self) -> None:
        problems = []
        if not self.base_url.startswith(("http://", "https://")):
            problems.append("TASKBOARD_BASE_URL must start with http:// or https://")

        if self.timeout_seconds <= 0:
            problems.append("TASKBOARD_TIMEOUT_SECONDS must be greater than 0")

        if self.retry_attempts < 0:
            problems.append("TASKBOARD_RETRY_ATTEMPTS must be 0 or greater")

        if self.stale_seconds < 0:
            problems.append("TASKBOARD_STALE_SECONDS must be 0 or greater")

        if not self.state_dir:
            problems.append("TASKBOARD_STATE_DIR must not be empty")

        if self.log_level not in _VALID_LOG_LEVELS:
            problems.append(
                "TASKBOARD_LOG_LEVEL must be one of: " + ", ".join(sorted(_VALID_LOG_LEVELS))
            )

        if problems:
            raise ConfigurationError("Invalid settings: " + "; ".join(problems))


def _int_from_env(name: str, default: str) -> int:
    raw_value = os.getenv(name, default).strip()
    try:
        return int(raw_value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw_value!r}") from exc


def _load_dotenv_if_present(file_name: str = ".env") -> None:
    explicit = os.getenv("TASKBOARD_ENV_FILE", "").strip()
    paths = [Path(explicit).expanduser()] if explicit else []
    paths.append(Path.cwd() / file_name)

    seen: set[Path] = set()
    for path in paths:
        resolved = path.resolve()
        if resolved in seen or not resolved.is_file():
            continue
        seen.add(resolved)
        for key, value in _read_env_file(resolved):
            os.environ.setdefault(key, value)


def _read_env_file(path: Path) -> list[tuple[str, str]]:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []

    pairs = []
    for line in lines:
        line = line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = (part.strip() for part in line.split("=", 1))
        if key:
            pairs.append((key, value.strip("\"'")))
    return pairs
