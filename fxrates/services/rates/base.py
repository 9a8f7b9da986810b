from __future__ import annotations

"""Rate provider abstraction.

A provider answers one question: the latest rate table quoted from a given
base currency, together with the date those rates settled.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict


@dataclass(frozen=True)
class ProviderSnapshot:
    base: str
    date: date
    rates: Dict[str, Decimal] = field(default_factory=dict)


class RateProvider(ABC):
    name: str = "abstract"

    @abstractmethod
    def fetch_latest(self, base: str) -> ProviderSnapshot:
        """Return target-code -> rate for 1 unit of base.

        Raises ProviderError when the upstream is unreachable or its payload
        cannot be parsed.
        """
        raise NotImplementedError
