"""Central configuration helper for the coach RAG bridge."""

import logging
import os
from typing import Any


class HelperConfig:
    """Reads all settings from environment variables.

    Keys are case-insensitive and an empty value counts as unset. A setting
    without a default is mandatory.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _read(self, key: str, default: Any) -> tuple[str, str | None]:
        key = key.upper()
        raw = (os.getenv(key) or "").strip() or None
        if raw is None and default is None:
            raise ValueError(f"Environment variable '{key}' is not set.")
        return key, raw

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string setting.

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        _, raw = self._read(key, default)
        return raw if raw is not None else default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric setting. Values containing a dot are floats, all others ints.

        Raises:
            ValueError: If the variable is unset without default, or not a number.
        """
        key, raw = self._read(key, default)
        if raw is None:
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key}' is not a valid number: '{raw}'.")

    def get_list_val(self, key: str, default: list[str] | None = None) -> list[str]:
        """Read a list setting written as "[elem1,elem2,...]".

        Elements are stripped and empty elements dropped, so "[]" is an empty list.

        Raises:
            ValueError: If the variable is unset without default, or not wrapped in brackets.
        """
        key, raw = self._read(key, default)
        if raw is None:
            return default
        if not (raw.startswith("[") and raw.endswith("]")):
            raise ValueError(f"Environment variable '{key}' must be in the format '[elem1,elem2,...]'. Got: '{raw}'")
        return [elem.strip() for elem in raw[1:-1].split(",") if elem.strip()]

    def get_logger(self) -> logging.Logger:
        return self._logger
