# Board info widget — configuration
# Override settings via board-info.yaml, environment variables, or CLI args.

import os
import yaml
from pathlib import Path
from dataclasses import dataclass, fields
from typing import Optional

CONFIG_PATH = Path(__file__).parent / "board-info.yaml"


@dataclass
class Config:
    """Runtime configuration for the board info widget service."""

    # Platform API
    api_url: str = "https://api.monday.com/v2"
    api_version: str = "2024-10"
    api_token_env: str = "MONDAY_API_TOKEN"
    api_token: str = ""              # Resolved from api_token_env if empty
    request_timeout: float = 10.0

    # Relation discovery
    boards_limit: int = 500

    # Layout storage
    db_path: str = "~/.local/share/board-info/widget.db"

    # HTTP surface (empty = mutations unauthenticated, local use only)
    api_secret: str = ""

    log_level: str = "INFO"

    def resolve(self):
        """Expand ~ and pull secrets from the environment."""
        env_db = os.environ.get("BOARD_INFO_DB")
        if env_db:
            self.db_path = env_db
        self.db_path = str(Path(self.db_path).expanduser())

        if not self.api_token and self.api_token_env:
            self.api_token = os.environ.get(self.api_token_env, "")

        if not self.api_secret:
            self.api_secret = os.environ.get("BOARD_INFO_API_SECRET", "")

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        known = {f.name for f in fields(cls)}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if k in known})
            except (OSError, yaml.YAMLError, TypeError, AttributeError):
                cfg = cls()
        else:
            cfg = cls()
        cfg.resolve()
        return cfg
