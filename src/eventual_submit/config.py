"""Configuration module for the submission protocol.

This module provides the SubmissionConfig class shared by the ledger (outcome
weights, delayed-completion window, retry-after hint) and the controller
(retry budget, backoff base, poll interval).

Example:
    Basic usage with defaults:

        >>> config = SubmissionConfig()
        >>> config.max_retries
        3

    Custom configuration:

        >>> config = SubmissionConfig(
        ...     success_weight=1.0,
        ...     transient_weight=0.0,
        ...     delayed_weight=0.0,
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['SUBMISSION_MAX_RETRIES'] = '5'
        >>> config = SubmissionConfig.from_env()
        >>> config.max_retries
        5
"""

import os
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class SubmissionConfig(BaseModel):
    """Configuration for the submission controller and idempotency ledger.

    Attributes:
        success_weight: Relative weight of the immediate-success outcome.
        transient_weight: Relative weight of the transient-failure outcome.
        delayed_weight: Relative weight of the delayed-success outcome.
        min_delay_ms: Lower bound (inclusive) of a delayed completion, in ms.
        max_delay_ms: Upper bound (exclusive) of a delayed completion, in ms.
        retry_after_seconds: Retry hint attached to transient failures.
        max_retries: Retries allowed after the first attempt before giving up.
        base_delay_seconds: Backoff base; retry n waits base * 2^(n-1).
        poll_interval_seconds: Re-poll interval while a record is pending.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    success_weight: float = Field(
        default=0.5,
        description="Relative weight of the immediate-success outcome",
    )
    transient_weight: float = Field(
        default=0.25,
        description="Relative weight of the transient-failure outcome",
    )
    delayed_weight: float = Field(
        default=0.25,
        description="Relative weight of the delayed-success outcome",
    )
    min_delay_ms: int = Field(
        default=5000,
        description="Inclusive lower bound of a delayed completion in milliseconds",
    )
    max_delay_ms: int = Field(
        default=10000,
        description="Exclusive upper bound of a delayed completion in milliseconds",
    )
    retry_after_seconds: int = Field(
        default=1,
        description="Retry-after hint returned with transient failures",
    )
    max_retries: int = Field(
        default=3,
        description="Retries allowed after the first attempt (0-10)",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        description="Exponential backoff base delay in seconds",
    )
    poll_interval_seconds: float = Field(
        default=2.0,
        description="Interval between status polls for a pending record",
    )

    model_config = {"frozen": True}

    @field_validator("success_weight", "transient_weight", "delayed_weight")
    @classmethod
    def validate_weight(cls, v: float) -> float:
        """Validate an outcome weight is non-negative.

        Raises:
            ValueError: If the weight is negative.
        """
        if v < 0:
            raise ValueError(f"outcome weights must be >= 0, got {v}")
        return v

    @field_validator("min_delay_ms", "max_delay_ms")
    @classmethod
    def validate_delay_ms(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"delay bounds must be >= 0, got {v}")
        return v

    @field_validator("retry_after_seconds")
    @classmethod
    def validate_retry_after_seconds(cls, v: int) -> int:
        if not (0 <= v <= 3600):
            raise ValueError(f"retry_after_seconds must be between 0 and 3600, got {v}")
        return v

    @field_validator("max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        """Validate the retry budget is within an acceptable range.

        Raises:
            ValueError: If max_retries is not between 0 and 10.
        """
        if not (0 <= v <= 10):
            raise ValueError(f"max_retries must be between 0 and 10, got {v}")
        return v

    @field_validator("base_delay_seconds", "poll_interval_seconds")
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"intervals must be > 0 seconds, got {v}")
        return v

    @model_validator(mode="after")
    def validate_outcomes(self) -> "SubmissionConfig":
        """Validate cross-field constraints.

        Raises:
            ValueError: If every weight is zero or the delay window is empty.
        """
        if self.success_weight + self.transient_weight + self.delayed_weight <= 0:
            raise ValueError("at least one outcome weight must be > 0")
        if self.min_delay_ms >= self.max_delay_ms:
            raise ValueError(
                f"min_delay_ms must be < max_delay_ms, got {self.min_delay_ms} >= {self.max_delay_ms}"
            )
        return self

    def backoff_delay(self, retry_number: int) -> float:
        """Return the wait before retry ``retry_number`` (1-based).

        Example:
            >>> config = SubmissionConfig()
            >>> [config.backoff_delay(n) for n in (1, 2, 3)]
            [1.0, 2.0, 4.0]
        """
        return self.base_delay_seconds * (2 ** (retry_number - 1))

    @classmethod
    def from_env(cls, prefix: str = "SUBMISSION_") -> "SubmissionConfig":
        """Create configuration from environment variables.

        Variable names are the uppercase field names with the prefix, e.g.
        ``SUBMISSION_MAX_RETRIES``. Missing variables keep their defaults.

        Args:
            prefix: Prefix for environment variable names.

        Returns:
            SubmissionConfig populated from the environment.
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "success_weight": float,
            "transient_weight": float,
            "delayed_weight": float,
            "min_delay_ms": int,
            "max_delay_ms": int,
            "retry_after_seconds": int,
            "max_retries": int,
            "base_delay_seconds": float,
            "poll_interval_seconds": float,
        }

        for field_name, field_type in field_types.items():
            env_value = os.environ.get(f"{prefix}{field_name.upper()}")
            if env_value is not None:
                config_dict[field_name] = field_type(env_value)

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "SubmissionConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)
