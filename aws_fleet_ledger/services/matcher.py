"""
Allocation of reserved capacity to running instances.
"""
import logging
from typing import List, Optional

from .models import ReservedCapacity, RunningUnit


logger = logging.getLogger(__name__)


class ReservationMatcher:
    """Greedy first-fit matcher of running units to reservations.

    Running units are visited in the order given, and each takes the first
    active reservation (in the order given) that is compatible by zone, type
    and product and still has enough compute units left for it. An earlier
    unit can therefore use up capacity a later unit would have fitted better;
    the allocation is deterministic for a given input order but not optimal.
    """

    def match(self, reservations: List[ReservedCapacity], units: List[RunningUnit]) -> List[RunningUnit]:
        """Mark matched units and consume reservation compute units in place.

        Args:
            reservations: Reservations in priority order
            units: Running units in priority order

        Returns:
            The same list of units, for convenience
        """
        matched = 0
        for unit in units:
            if not unit.is_running:
                continue
            if self.match_to_reservation(unit, reservations) is not None:
                matched += 1

        logger.info(f"Matched {matched} of {sum(1 for u in units if u.is_running)} running instances to reservations")
        return units

    def match_to_reservation(
        self,
        unit: RunningUnit,
        reservations: List[ReservedCapacity]
    ) -> Optional[ReservedCapacity]:
        """Allocate ``unit`` to the first fitting reservation.

        Returns:
            The reservation that was consumed, or None if the unit stays unmatched
        """
        for reservation in reservations:
            if not reservation.is_active or reservation.compute_units <= 0:
                continue
            if unit.matches(reservation) and reservation.compute_units >= unit.compute_units:
                reservation.consume(unit)
                unit.matched = True
                return reservation
        return None
