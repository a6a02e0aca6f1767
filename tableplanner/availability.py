"""
Availability calculator.

Given a request and a snapshot of the table catalog, the day's
reservations and maintenance records, work out which tables are free for
the requested window, grouped by area. The result is a snapshot: callers
committing a booking must re-check conflicts inside the commit boundary.
"""

import logging
from typing import Dict, Iterable, List, Sequence

from .conflicts import has_conflict, under_maintenance
from .domain import (
    AreaAvailability,
    AreaView,
    AvailabilityResult,
    AvailabilityStats,
    MaintenanceWindow,
    ReservationView,
    TableView,
    TimeWindow,
)
from .errors import NotFound
from .schemas import AssignmentRequest

logger = logging.getLogger(__name__)


def request_window(request: AssignmentRequest) -> TimeWindow:
    return TimeWindow.from_request(request.date, request.start_time, request.duration)


def tables_in_scope(request: AssignmentRequest, tables: Iterable[TableView]) -> List[TableView]:
    scoped = [t for t in tables if t.active]
    if request.area_id is not None:
        scoped = [t for t in scoped if t.area_id == request.area_id]
    # Smallest first, like the catalog listing
    return sorted(scoped, key=lambda t: (t.capacity, t.id))


def is_table_free(
    table: TableView,
    window: TimeWindow,
    reservations: Sequence[ReservationView],
    maintenance: Sequence[MaintenanceWindow] = (),
) -> bool:
    if not table.active:
        return False
    if under_maintenance(window, table.id, maintenance):
        return False
    return not has_conflict(window, table.id, reservations)


def check_availability(
    request: AssignmentRequest,
    tables: Sequence[TableView],
    areas: Sequence[AreaView],
    reservations: Sequence[ReservationView],
    maintenance: Sequence[MaintenanceWindow] = (),
) -> AvailabilityResult:
    """Compute the free tables for ``request``; pure over its inputs"""
    window = request_window(request)

    if not areas:
        return _empty_result(request, window)

    area_by_id: Dict[int, AreaView] = {a.id: a for a in areas}
    if request.area_id is not None and request.area_id not in area_by_id:
        raise NotFound(f"Area {request.area_id} not found")

    scoped = tables_in_scope(request, tables)
    free = [t for t in scoped if is_table_free(t, window, reservations, maintenance)]

    grouped: Dict[int, List[TableView]] = {}
    for table in free:
        grouped.setdefault(table.area_id, []).append(table)

    area_availability = []
    for area in areas:
        if area.id in grouped:
            area_availability.append(AreaAvailability(area=area, tables=grouped.pop(area.id)))
    # Tables pointing at areas missing from the catalog snapshot
    for area_id, area_tables in sorted(grouped.items()):
        name = area_tables[0].area_name
        area_availability.append(AreaAvailability(area=AreaView(id=area_id, name=name), tables=area_tables))

    stats = AvailabilityStats(
        total_available=len(free),
        total_tables=len(scoped),
        total_capacity=sum(t.capacity for t in free),
        areas_available=len(area_availability),
        fitting_available=sum(1 for t in free if t.fits(request.party_size)),
    )
    logger.debug(
        "Availability %s %s party=%d: %d/%d tables free",
        request.date, request.time, request.party_size, stats.total_available, stats.total_tables,
    )
    return AvailabilityResult(
        window=window,
        party_size=request.party_size,
        area_availability=area_availability,
        available_tables=free,
        stats=stats,
    )


def _empty_result(request: AssignmentRequest, window: TimeWindow) -> AvailabilityResult:
    return AvailabilityResult(
        window=window,
        party_size=request.party_size,
        area_availability=[],
        available_tables=[],
        stats=AvailabilityStats(
            total_available=0, total_tables=0, total_capacity=0, areas_available=0, fitting_available=0
        ),
    )
