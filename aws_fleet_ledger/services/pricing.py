"""
Hourly pricing of running instances.
"""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from .models import RunningUnit
from ..core.exceptions import PricingError


logger = logging.getLogger(__name__)

RESERVED_TERM = 'yrTerm1Standard.noUpfront'


class PricingProvider(ABC):
    """Returns the hourly price of a running unit. Never raises; a lookup miss is 0."""

    @abstractmethod
    def price_for(self, unit: RunningUnit) -> float:
        pass


def _to_price(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _operating_system(unit: RunningUnit) -> str:
    return 'mswin' if unit.platform == 'Windows' else 'linux'


class InstancesInfoPricingProvider(PricingProvider):
    """Prices instances from the ec2instances.info ``instances.json`` dump.

    The file is not downloaded automatically; fetch
    https://raw.githubusercontent.com/powdahound/ec2instances.info/master/www/instances.json
    and point ``pricing_file`` at it. Matched units use the one year, no upfront
    standard reserved rate, everything else the on-demand rate.
    """

    def __init__(self, pricing_file: Path):
        """
        Raises:
            PricingError: If the pricing file is missing or not valid JSON
        """
        pricing_file = Path(pricing_file).expanduser()
        try:
            with open(pricing_file, 'r') as f:
                instances = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PricingError(f"Failed to load pricing data from {pricing_file}: {e}", details=str(e))

        self.pricing: Dict[str, Dict[str, Any]] = {
            entry['instance_type']: entry.get('pricing') or {}
            for entry in instances
            if 'instance_type' in entry
        }
        logger.info(f"Loaded pricing for {len(self.pricing)} instance types from {pricing_file}")

    def price_for(self, unit: RunningUnit) -> float:
        region = unit.location.region
        os_pricing = self.pricing.get(unit.instance_type, {}).get(region, {}).get(_operating_system(unit))
        if not isinstance(os_pricing, dict):
            return 0.0
        if unit.matched:
            reserved = os_pricing.get('reserved') or {}
            return _to_price(reserved.get(RESERVED_TERM))
        return _to_price(os_pricing.get('ondemand'))


class StaticPricingProvider(PricingProvider):
    """Dictionary backed rates keyed by (instance type, region, os)."""

    def __init__(
        self,
        on_demand: Optional[Dict[Tuple[str, str, str], float]] = None,
        reserved: Optional[Dict[Tuple[str, str, str], float]] = None
    ):
        self.on_demand = on_demand or {}
        self.reserved = reserved or {}

    def price_for(self, unit: RunningUnit) -> float:
        key = (unit.instance_type, unit.location.region, _operating_system(unit))
        table = self.reserved if unit.matched else self.on_demand
        return table.get(key, 0.0)


def apply_pricing(units: Iterable[RunningUnit], provider: PricingProvider) -> None:
    """Set the hourly price of every unit.

    Spot instances take the price of their spot request; the others are priced
    by ``provider`` at the reserved or on-demand rate depending on whether they
    were matched.
    """
    for unit in units:
        if unit.spot_request is not None:
            unit.price = unit.spot_request.price
        else:
            unit.price = provider.price_for(unit)
