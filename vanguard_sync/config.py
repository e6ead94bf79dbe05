# vanguard_sync/config.py
"""
Run configuration, built once at startup.

Values come from (highest first) explicit overrides such as CLI flags,
environment variables (a .env file is loaded if present), then defaults.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

DEFAULT_DATA_PATH = Path("~/Downloads/ofxdownload.csv")
DEFAULT_CREDENTIALS = Path("~/.config/vanguard/credentials.json")

# field name -> environment variable
ENV_VARS = {
    "sheet_id": "VANGUARD_ID",
    "data_path": "VANGUARD_DATA_PATH",
    "debug": "VANGUARD_DEBUG",
    "delete_after": "VANGUARD_DELETE",
    "credentials_file": "GOOGLE_APPLICATION_CREDENTIALS",
    "requests_per_minute": "VANGUARD_RPM",
    "fail_fast": "VANGUARD_FAIL_FAST",
    "num_retries": "VANGUARD_RETRIES",
}


class SyncConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    sheet_id: str = Field(..., min_length=1)
    data_path: Path = DEFAULT_DATA_PATH
    debug: int = Field(1, ge=0)
    delete_after: bool = True
    credentials_file: Path = DEFAULT_CREDENTIALS
    requests_per_minute: int = Field(60, gt=0)
    fail_fast: bool = False
    num_retries: int = Field(0, ge=0)

    @property
    def data_file(self) -> Path:
        return self.data_path.expanduser()


def load_config(env_file: Optional[str] = None, **overrides: Any) -> SyncConfig:
    """
    Build the configuration. Overrides set to None are treated as not given.

    Raises:
        ConfigError: the sheet ID is missing or a value doesn't validate
    """
    load_dotenv(env_file)

    values: Dict[str, Any] = {}
    for field, var in ENV_VARS.items():
        env_value = os.getenv(var)
        if env_value not in (None, ""):
            values[field] = env_value
    values.update({k: v for k, v in overrides.items() if v is not None})

    if not values.get("sheet_id"):
        raise ConfigError(f"--id=<sheetID> is required (or set {ENV_VARS['sheet_id']})")

    try:
        return SyncConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigError(str(e)) from e
