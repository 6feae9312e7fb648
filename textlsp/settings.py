"""Client configuration for the text language server."""

import logging
from typing import Any, Callable, Dict, List, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from textlsp.errors import InvalidSettings

DEFAULT_MAX_PROBLEMS = 100

SettingsListener = Callable[["Settings"], None]


class ExampleSettings(BaseModel):
    """The ``languageServerExample`` section of the client configuration.

    Keys other than ``maxNumberOfProblems`` are kept as extras and handed to
    the checkers untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    max_number_of_problems: int = Field(
        default=DEFAULT_MAX_PROBLEMS, alias="maxNumberOfProblems", ge=0
    )

    @field_validator("max_number_of_problems", mode="before")
    @classmethod
    def _unset_means_default(cls, value: Any) -> Any:
        # null is "unset"; 0 stays an explicit cap
        return DEFAULT_MAX_PROBLEMS if value is None else value

    @property
    def checker_options(self) -> Dict[str, Any]:
        """Get the checker-specific keys of this section."""
        return dict(self.model_extra or {})


class Settings(BaseModel):
    """Process-wide settings pushed by the client."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    language_server_example: ExampleSettings = Field(
        default_factory=ExampleSettings, alias="languageServerExample"
    )

    @property
    def max_problems(self) -> int:
        return self.language_server_example.max_number_of_problems

    @classmethod
    def from_payload(cls, payload: Any) -> "Settings":
        """Build settings from a ``workspace/didChangeConfiguration`` payload.

        Args:
            payload: The ``settings`` member of the notification. None or a
                non-mapping value yields the defaults.

        Returns:
            Validated settings.

        Raises:
            InvalidSettings: If a recognized option has an invalid value.
        """
        if not isinstance(payload, Mapping):
            return cls()

        data = dict(payload)
        # An explicit null section falls back to the defaults
        if data.get("languageServerExample") is None:
            data.pop("languageServerExample", None)

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidSettings(str(e)) from e


class SettingsState:
    """Holds the latest settings, replaced wholesale on every change."""

    def __init__(self):
        """Initialize the state with default settings."""
        self.logger = logging.getLogger("textlsp.settings")
        self._settings = Settings()
        self.generation = 0
        self._listeners: List[SettingsListener] = []

    def add_listener(self, listener: SettingsListener) -> None:
        self._listeners.append(listener)

    def current(self) -> Settings:
        """Get the most recently set settings, or the defaults."""
        return self._settings

    def replace(self, settings: Union[Settings, Mapping[str, Any], None]) -> Settings:
        """Swap in new settings and notify listeners.

        Args:
            settings: A ``Settings`` instance or a raw configuration payload.

        Returns:
            The settings now in effect.

        Raises:
            InvalidSettings: If the payload does not validate. The previous
                settings stay in effect.
        """
        if not isinstance(settings, Settings):
            settings = Settings.from_payload(settings)

        self._settings = settings
        self.generation += 1
        self.logger.info(
            f"Settings replaced (generation {self.generation}, "
            f"maxNumberOfProblems={settings.max_problems})"
        )

        for listener in self._listeners:
            listener(settings)
        return settings
