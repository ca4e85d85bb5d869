"""
Extension Registry

Named validators and named configuration profiles for hosts that run many
kinds of tasks. The registry is an ordinary object handed to the
controller; there is no process-wide table, so tests stay hermetic and
separate hosts never see each other's extensions.

Usage:
    registry = ExtensionRegistry()
    registry.register_validator("numeric", check_numeric_answer)
    registry.register_profile("math", {"max_iterations": 5, "criticality": "high"})

    controller = IterativeController.from_profile("math", registry)
    outcome = controller.run(attempt, "numeric")
"""

from __future__ import annotations

from typing import Any, Callable

import structlog

from recourse.config import ControllerConfig
from recourse.exceptions import ConfigurationError, ValidatorRequiredError

logger = structlog.get_logger(__name__)


Validator = Callable[[Any], Any]


class ExtensionRegistry:
    """Registry of named validators and controller profiles."""

    def __init__(self):
        self._validators: dict[str, Validator] = {}
        self._profiles: dict[str, ControllerConfig] = {}

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    def register_validator(self, name: str, validator: Validator, replace: bool = False) -> None:
        """
        Register a validator under a name.

        Raises:
            ConfigurationError: If the name is taken and ``replace`` is False,
                or the validator is not callable.
        """
        if not callable(validator):
            raise ConfigurationError(f"Validator {name!r} is not callable")
        if name in self._validators and not replace:
            raise ConfigurationError(f"Validator {name!r} is already registered")

        self._validators[name] = validator
        logger.debug("validator_registered", name=name)

    def get_validator(self, name: str) -> Validator:
        """
        Look up a validator.

        Raises:
            ValidatorRequiredError: If no validator has that name.
        """
        try:
            return self._validators[name]
        except KeyError:
            raise ValidatorRequiredError(f"No validator registered as {name!r}") from None

    def has_validator(self, name: str) -> bool:
        return name in self._validators

    def unregister_validator(self, name: str) -> bool:
        return self._validators.pop(name, None) is not None

    def list_validators(self) -> list[str]:
        return sorted(self._validators)

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    def register_profile(
        self,
        name: str,
        config: ControllerConfig | dict[str, Any],
        replace: bool = False,
    ) -> ControllerConfig:
        """Register a controller configuration under a task-type name."""
        if name in self._profiles and not replace:
            raise ConfigurationError(f"Profile {name!r} is already registered")

        if isinstance(config, dict):
            config = ControllerConfig.from_dict(config)

        self._profiles[name] = config
        logger.debug("profile_registered", name=name)
        return config

    def get_profile(self, name: str) -> ControllerConfig:
        try:
            return self._profiles[name]
        except KeyError:
            raise ConfigurationError(f"No profile registered as {name!r}") from None

    def list_profiles(self) -> list[str]:
        return sorted(self._profiles)
