"""Multi-table seating for parties no single free table can hold."""

import logging
from typing import Iterable, List, Optional

from .domain import Combination, TableView
from .timeutil import Deadline

logger = logging.getLogger(__name__)


def propose_combinations(
    party_size: int,
    free_tables: Iterable[TableView],
    max_combinations: int = 3,
    deadline: Optional[Deadline] = None,
) -> List[Combination]:
    """Greedy combinations of free tables whose summed capacity covers the party.

    Each table, largest first, seeds a combination that is extended with the
    following tables in the same order until the party fits. A seed large
    enough on its own is only kept when its seating range admits the party.
    Combinations with the same table set are kept once; the result is
    ordered by wasted capacity, then by table count, and capped at
    ``max_combinations``.
    """
    deadline = deadline or Deadline()
    tables = sorted(free_tables, key=lambda t: (-t.capacity, t.id))

    found = {}
    for i, seed in enumerate(tables):
        deadline.check("table combination search")
        combination = [seed]
        capacity = seed.capacity
        if capacity >= party_size:
            if not seed.fits(party_size):
                continue
        else:
            for table in tables[i + 1:]:
                combination.append(table)
                capacity += table.capacity
                if capacity >= party_size:
                    break
        if capacity < party_size:
            # Remaining tables cannot cover the party from this seed
            continue
        key = frozenset(t.id for t in combination)
        if key not in found:
            found[key] = Combination(tables=list(combination), party_size=party_size)

    ranked = sorted(
        found.values(),
        key=lambda c: (c.wasted_capacity, len(c.tables), sorted(c.table_ids)),
    )
    logger.debug("Found %d table combinations for party of %d", len(ranked), party_size)
    return ranked[:max_combinations]
