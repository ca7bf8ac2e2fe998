"""Configuration loading from environment variables."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_PLAYERS = ["player1", "player2", "player3", "player4", "player5"]

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class Config:
    root: Path = field(default_factory=lambda: Path.cwd())
    players: list[str] = field(default_factory=lambda: list(DEFAULT_PLAYERS))
    monitor_interval: float = 15.0
    progress_interval: float = 10.0
    reports_dir: str = "docs/reports"
    director_target: str = "director:0.0"
    captain_target: str = "captain:0.0"
    player_target: str = "players:0.{index}"
    log_level: str = "info"
    lint_command: str = "ruff check ."
    typecheck_command: str = "mypy src"

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        if root := os.environ.get("SHOGUN_ROOT"):
            config.root = Path(root)

        if players := os.environ.get("SHOGUN_PLAYERS"):
            config.players = [p.strip() for p in players.split(",") if p.strip()]

        if interval := os.environ.get("SHOGUN_MONITOR_INTERVAL"):
            config.monitor_interval = float(interval)

        if interval := os.environ.get("SHOGUN_PROGRESS_INTERVAL"):
            config.progress_interval = float(interval)

        if reports := os.environ.get("SHOGUN_REPORTS_DIR"):
            config.reports_dir = reports

        if target := os.environ.get("SHOGUN_DIRECTOR_TARGET"):
            config.director_target = target

        if target := os.environ.get("SHOGUN_CAPTAIN_TARGET"):
            config.captain_target = target

        if target := os.environ.get("SHOGUN_PLAYER_TARGET"):
            config.player_target = target

        if level := os.environ.get("LOG_LEVEL"):
            config.log_level = level.lower()

        # An empty value disables the check.
        if (command := os.environ.get("SHOGUN_LINT_COMMAND")) is not None:
            config.lint_command = command

        if (command := os.environ.get("SHOGUN_TYPECHECK_COMMAND")) is not None:
            config.typecheck_command = command

        return config

    # ── Well-known paths ──────────────────────────────────────────────────────

    @property
    def queue_dir(self) -> Path:
        return self.root / "queue"

    @property
    def command_file(self) -> Path:
        return self.queue_dir / "director_to_captain.yaml"

    @property
    def id_sequence_file(self) -> Path:
        return self.queue_dir / ".sequence.json"

    @property
    def player_task_dir(self) -> Path:
        return self.queue_dir / "captain_to_players"

    @property
    def status_file(self) -> Path:
        return self.queue_dir / "captain_status.yaml"

    @property
    def dashboard_file(self) -> Path:
        return self.root / "docs" / "dashboard.md"

    @property
    def reports_path(self) -> Path:
        return self.root / self.reports_dir

    @property
    def metrics_file(self) -> Path:
        return self.root / "metrics" / "data.json"

    @property
    def player_states_file(self) -> Path:
        return self.root / "metrics" / "player-states.json"

    @property
    def generated_reports_dir(self) -> Path:
        return self.root / "reports"

    def task_file(self, player_id: str) -> Path:
        return self.player_task_dir / f"{player_id}.yaml"

    def display_path(self, path: Path) -> str:
        """``path`` relative to the root when possible, for messages."""
        try:
            return str(Path(path).relative_to(self.root))
        except ValueError:
            return str(path)

    def player_pane(self, player_id: str) -> str:
        """Resolve the tmux target of a player from its roster position."""
        try:
            index = self.players.index(player_id)
        except ValueError:
            index = _trailing_number(player_id)
        return self.player_target.format(index=index)


def _trailing_number(player_id: str) -> int:
    digits = ""
    for ch in reversed(player_id):
        if not ch.isdigit():
            break
        digits = ch + digits
    return int(digits) - 1 if digits else 0


def get_config() -> Config:
    return Config.from_env()


def configure_logging(level: str | None = None) -> None:
    """Install the root log handler. ``level`` is one of debug/info/warn/error."""
    name = (level or os.environ.get("LOG_LEVEL") or "info").lower()
    logging.basicConfig(
        level=_LOG_LEVELS.get(name, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        force=True,
    )
