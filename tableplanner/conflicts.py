"""Overlap checks between a candidate window and a table's existing bookings."""

from typing import Iterable, List, Optional, Tuple

from .domain import MaintenanceWindow, ReservationView, TimeWindow


def find_conflict(
    window: TimeWindow,
    table_id: int,
    reservations: Iterable[ReservationView],
    exclude_reservation_id: Optional[int] = None,
) -> Optional[ReservationView]:
    """Return the first active reservation on ``table_id`` overlapping ``window``"""
    for reservation in reservations:
        if exclude_reservation_id is not None and reservation.id == exclude_reservation_id:
            continue
        if not reservation.is_active or not reservation.occupies(table_id):
            continue
        if reservation.window.date != window.date:
            continue
        if window.overlaps(reservation.window):
            return reservation
    return None


def has_conflict(
    window: TimeWindow,
    table_id: int,
    reservations: Iterable[ReservationView],
    exclude_reservation_id: Optional[int] = None,
) -> bool:
    return find_conflict(window, table_id, reservations, exclude_reservation_id) is not None


def under_maintenance(window: TimeWindow, table_id: int, maintenance: Iterable[MaintenanceWindow]) -> bool:
    return any(m.table_id == table_id and m.blocks(window) for m in maintenance)


def overlapping_pairs(reservations: Iterable[ReservationView]) -> List[Tuple[ReservationView, ReservationView]]:
    """Every pair of active reservations sharing a table and an overlapping window.

    Empty whenever the store is consistent.
    """
    active = [r for r in reservations if r.is_active]
    pairs = []
    for i, first in enumerate(active):
        for second in active[i + 1:]:
            if set(first.table_ids) & set(second.table_ids) and first.window.overlaps(second.window):
                pairs.append((first, second))
    return pairs
