import random
from typing import Sequence

from notesearch.domain.graph import Neighbor


def select_weighted(neighbors: Sequence[Neighbor], rng: random.Random | None = None) -> str:
    """Pick a neighbor with probability proportional to its weight.

    Cumulative-weight roulette selection: draw a point uniformly in [0, total weight) and
    subtract weights in order until it reaches zero. The last neighbor is returned if
    rounding leaves the point above zero, and a uniform pick is made if no weight is positive.

    Raises:
        ValueError: If neighbors is empty
    """
    if not neighbors:
        raise ValueError("Cannot select from an empty neighbor list")

    rng = rng or random.Random()
    total_weight = sum(neighbor.weight for neighbor in neighbors)
    if total_weight <= 0:
        return neighbors[rng.randrange(len(neighbors))].id

    point = rng.random() * total_weight
    for neighbor in neighbors:
        point -= neighbor.weight
        if point <= 0:
            return neighbor.id
    return neighbors[-1].id
