"""Central configuration helper for the delta tracker."""

import logging
import os


class HelperConfig:
    """Central configuration helper. Reads all settings from environment variables
    and hands out the application logger, so no component relies on process-wide flags."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (str | None): Fallback value if the variable is not set.

        Returns:
            str: The resolved value.

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        key = key.upper()
        val = os.getenv(key) or None  # empty string → None
        if val is None and default is None:
            raise ValueError(f"Environment variable '{key}' is not set.")
        return val.strip() if val is not None else default

    def get_number_val(self, key: str, default: float | int | None = None, minimum: float | int | None = None) -> float | int:
        """Read a numeric environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (float | int | None): Fallback value if the variable is not set.
            minimum (float | int | None): Smallest accepted value. Values below it fall back to the default.

        Returns:
            float | int: The resolved numeric value.

        Raises:
            ValueError: If the variable is not set and no default is provided.
            ValueError: If the value cannot be parsed as a number.
        """
        key = key.upper()
        raw = os.getenv(key) or None
        if raw is None:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return default
        try:
            val = int(raw) if "." not in raw else float(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key}' is not a valid number: '{raw}'.")
        if minimum is not None and val < minimum:
            if default is None:
                raise ValueError(f"Environment variable '{key}' must be at least {minimum}. Got: {val}.")
            self._logger.warning("Environment variable '%s'=%s is below the minimum of %s, using %s.", key, val, minimum, default)
            return default
        return val

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a boolean environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (bool | None): Fallback value if the variable is not set.

        Returns:
            bool: The resolved boolean value.

        Raises:
            ValueError: If the variable is not set and no default is provided.
        """
        key = key.upper()
        raw = os.getenv(key) or None
        if raw is None:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return default
        return raw.strip().lower() in ("true", "1", "yes")

    def get_choice_val(self, key: str, choices: list[str], default: str | None = None) -> str:
        """Read a string environment variable restricted to a set of values.

        Comparison is case-insensitive, the returned value is the matching entry of choices.

        Args:
            key (str): Environment variable name (case-insensitive).
            choices (list[str]): The accepted values.
            default (str | None): Fallback value if the variable is not set.

        Returns:
            str: The matching choice.

        Raises:
            ValueError: If the variable is not set and no default is provided, or if the value is not one of choices.
        """
        val = self.get_string_val(key, default=default)
        for choice in choices:
            if choice.lower() == val.lower():
                return choice
        raise ValueError(f"Environment variable '{key.upper()}' must be one of {choices}. Got: '{val}'.")

    def get_logger(self) -> logging.Logger:
        """Return the application logger.

        Returns:
            logging.Logger: The configured logger instance.
        """
        return self._logger
