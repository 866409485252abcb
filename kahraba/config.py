"""Marketplace configuration.

Values mirror the production app: 15% platform commission, a 60 second offer
countdown and a 50 JOD credit limit before a worker is blocked from new jobs.
"""

import logging
import os
from dataclasses import dataclass, fields
from decimal import Decimal

from kahraba.types import to_money

logger = logging.getLogger(__name__)

ENV_PREFIX = "KAHRABA_"


@dataclass
class MarketplaceConfig:
    """Tunable parameters for the job, ledger and dispatch services."""

    commission_rate: float = 0.15
    offer_timeout_seconds: int = 60
    credit_limit: float = 50.0
    currency: str = "JOD"
    max_transition_attempts: int = 3

    def __post_init__(self):
        if not 0 <= self.commission_rate < 1:
            raise ValueError(f"commission_rate must be in [0, 1), got {self.commission_rate}")
        if self.offer_timeout_seconds <= 0:
            raise ValueError("offer_timeout_seconds must be positive")
        if self.credit_limit < 0:
            raise ValueError("credit_limit cannot be negative")
        if self.max_transition_attempts < 1:
            raise ValueError("max_transition_attempts must be at least 1")
        if not self.currency:
            raise ValueError("currency cannot be empty")

    @property
    def commission_rate_decimal(self) -> Decimal:
        return to_money(self.commission_rate)

    @property
    def credit_limit_decimal(self) -> Decimal:
        return to_money(self.credit_limit)

    @classmethod
    def from_env(cls, environ=None) -> "MarketplaceConfig":
        """Build a config from KAHRABA_* environment variables.

        Unset variables keep their defaults.
        """
        environ = os.environ if environ is None else environ
        kwargs = {}
        for f in fields(cls):
            raw = environ.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None or raw == "":
                continue
            try:
                if f.type in (int, "int"):
                    kwargs[f.name] = int(raw)
                elif f.type in (float, "float"):
                    kwargs[f.name] = float(raw)
                else:
                    kwargs[f.name] = raw
            except ValueError as e:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}") from e
        config = cls(**kwargs)
        if kwargs:
            logger.debug(f"Loaded marketplace config overrides: {sorted(kwargs)}")
        return config
