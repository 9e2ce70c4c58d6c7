"""
Fairness-first ranking of meeting candidates.

Each candidate gets one travel-time sample per user. Candidates are ordered
by fairness (max - min of the samples, ascending) and ties are broken by
total travel time (ascending). A candidate that any user cannot reach
sorts after every fully reachable one.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from .models import UNREACHABLE, Candidate, Coordinate, CostSample, RankedCandidate

logger = logging.getLogger(__name__)

# (origin, destination) -> seconds | UNREACHABLE
TravelTimeEstimator = Callable[[Coordinate, Coordinate], Awaitable[CostSample]]


def build_ranked_candidate(candidate: Candidate, samples: Sequence[CostSample]) -> RankedCandidate:
    normalized = []
    for sample in samples:
        if sample is UNREACHABLE or sample is None:
            normalized.append(UNREACHABLE)
        elif sample < 0:
            raise ValueError(f"Travel time cannot be negative: {sample}")
        else:
            normalized.append(float(sample))
    return RankedCandidate(candidate=candidate, samples=tuple(normalized))


def order_ranked(ranked: Sequence[RankedCandidate]) -> List[RankedCandidate]:
    """Sort by fairness then total cost; stable for exact ties"""
    return sorted(ranked, key=lambda r: r.sort_key())


async def _sample(
    estimate: TravelTimeEstimator,
    origin: Coordinate,
    destination: Coordinate,
    semaphore: asyncio.Semaphore,
    call_timeout: Optional[float],
) -> CostSample:
    async with semaphore:
        try:
            if call_timeout:
                return await asyncio.wait_for(estimate(origin, destination), timeout=call_timeout)
            return await estimate(origin, destination)
        except asyncio.TimeoutError:
            logger.warning("Travel time query timed out %s -> %s", origin.as_tuple(), destination.as_tuple())
        except Exception as e:
            logger.warning("Travel time query failed %s -> %s: %s", origin.as_tuple(), destination.as_tuple(), e)
    return UNREACHABLE


async def collect_samples(
    user_coords: Sequence[Coordinate],
    candidates: Sequence[Candidate],
    estimate: TravelTimeEstimator,
    max_concurrency: int = 8,
    call_timeout: Optional[float] = None,
) -> List[List[CostSample]]:
    """Travel times for every (candidate, user) pair.

    Returns one row per candidate; ``rows[c][u]`` is the time from
    ``user_coords[u]`` to ``candidates[c]``. All queries run concurrently,
    at most ``max_concurrency`` at a time.
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    tasks = [
        _sample(estimate, origin, candidate.location, semaphore, call_timeout)
        for candidate in candidates
        for origin in user_coords
    ]
    flat = await asyncio.gather(*tasks)
    width = len(user_coords)
    return [list(flat[i * width:(i + 1) * width]) for i in range(len(candidates))]


async def rank_candidates(
    user_coords: Sequence[Coordinate],
    candidates: Sequence[Candidate],
    estimate: TravelTimeEstimator,
    max_concurrency: int = 8,
    call_timeout: Optional[float] = None,
) -> List[RankedCandidate]:
    """Rank candidates for a group; the first element is the winner"""
    if not user_coords:
        raise ValueError("At least one user coordinate is required to rank candidates")
    rows = await collect_samples(user_coords, candidates, estimate, max_concurrency, call_timeout)
    ranked = [build_ranked_candidate(c, samples) for c, samples in zip(candidates, rows)]
    ordered = order_ranked(ranked)
    if ordered:
        best = ordered[0]
        logger.info(
            "Ranked %d candidates for %d users; best=%r fairness=%s total=%s",
            len(ordered), len(user_coords), best.candidate.name, best.fairness, best.total_cost,
        )
    return ordered
