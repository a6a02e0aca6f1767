"""
Table scorer.

Hard constraints (capacity range, required accessibility) exclude a table
outright. Soft preferences are each scored 0-100 and combined as a
weighted average over the dimensions the caller actually asked for, so a
request without preferences is ranked on capacity fit alone.
"""

from typing import Dict, Iterable, List, Optional

from .domain import AssignmentResult, ScoredTable, TableView
from .schemas import AssignmentRequest

CAPACITY_FIT = "capacity_fit"
AREA_MATCH = "area_match"
SHAPE_MATCH = "shape_match"
LOCATION_MATCH = "location_match"
ACCESSIBILITY = "accessibility"

DIMENSIONS = (CAPACITY_FIT, AREA_MATCH, SHAPE_MATCH, LOCATION_MATCH, ACCESSIBILITY)
DEFAULT_WEIGHTS = {name: 1.0 for name in DIMENSIONS}

NO_FREE_TABLES = "no_free_tables"
NO_ELIGIBLE_TABLE = "no_eligible_table"


def is_eligible(table: TableView, request: AssignmentRequest) -> bool:
    if not table.fits(request.party_size):
        return False
    if request.accessible and not table.accessible:
        return False
    return True


def capacity_fit(table: TableView, party_size: int) -> float:
    return 100 * (1 - (table.capacity - party_size) / table.capacity)


def sub_scores(table: TableView, request: AssignmentRequest) -> Dict[str, float]:
    """Every dimension's 0-100 score, applicable or not"""
    location = (request.location or "").lower()
    if request.accessible:
        accessibility = 100.0 if table.accessible else 0.0
    else:
        accessibility = 50.0
    return {
        CAPACITY_FIT: capacity_fit(table, request.party_size),
        AREA_MATCH: 100.0 if table.area_id == request.preferred_area_id else 0.0,
        SHAPE_MATCH: 100.0 if request.shape is not None and table.shape == request.shape.value else 0.0,
        LOCATION_MATCH: 100.0 if location and location in table.area_name.lower() else 0.0,
        ACCESSIBILITY: accessibility,
    }


def applicable_dimensions(request: AssignmentRequest) -> List[str]:
    dims = [CAPACITY_FIT]
    if request.preferred_area_id is not None:
        dims.append(AREA_MATCH)
    if request.shape is not None:
        dims.append(SHAPE_MATCH)
    if request.location:
        dims.append(LOCATION_MATCH)
    if request.accessible:
        dims.append(ACCESSIBILITY)
    return dims


def score_table(
    table: TableView, request: AssignmentRequest, weights: Optional[Dict[str, float]] = None
) -> ScoredTable:
    weights = weights or DEFAULT_WEIGHTS
    scores = sub_scores(table, request)
    dims = applicable_dimensions(request)
    total_weight = sum(weights.get(d, 1.0) for d in dims)
    if total_weight <= 0:
        total = 0.0
    else:
        total = sum(scores[d] * weights.get(d, 1.0) for d in dims) / total_weight
    breakdown = {name: round(value, 2) for name, value in scores.items()}
    return ScoredTable(table=table, score=round(total, 2), breakdown=breakdown)


def rank_tables(
    request: AssignmentRequest,
    free_tables: Iterable[TableView],
    weights: Optional[Dict[str, float]] = None,
) -> List[ScoredTable]:
    """Eligible tables, best first: score desc, capacity asc, id asc"""
    scored = [score_table(t, request, weights) for t in free_tables if is_eligible(t, request)]
    return sorted(scored, key=lambda s: s.sort_key)


def select_table(
    request: AssignmentRequest,
    free_tables: Iterable[TableView],
    max_alternatives: int = 5,
    weights: Optional[Dict[str, float]] = None,
) -> AssignmentResult:
    free_tables = list(free_tables)
    ranked = rank_tables(request, free_tables, weights)
    if not ranked:
        reason = NO_FREE_TABLES if not free_tables else NO_ELIGIBLE_TABLE
        return AssignmentResult(assigned=False, reason=reason)

    best = ranked[0]
    return AssignmentResult(
        assigned=True,
        table=best.table,
        score=best.score,
        breakdown=best.breakdown,
        alternatives=ranked[1:1 + max_alternatives],
    )
