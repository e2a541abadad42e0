import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Generator, List, Sequence, Set, Tuple, TypeVar

from tollroute.logging_setup import LOGGER_NAME
from tollroute.models import FacilityCandidate, MatchConfig, SampledPoint

logger = logging.getLogger(LOGGER_NAME)

T = TypeVar("T")

# (longitude, latitude, radius_meters) -> candidates ordered by distance
FindNearby = Callable[[float, float, float], Sequence[FacilityCandidate]]

CandidatePair = Tuple[SampledPoint, FacilityCandidate]


def chunk_generator(items: Sequence[T], chunk_size: int) -> Generator[List[T], None, None]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be greater than 0")
    for start in range(0, len(items), chunk_size):
        yield list(items[start : start + chunk_size])


def _collect(future: Future, sample: SampledPoint, config: MatchConfig, done: Set[Future]) -> List[FacilityCandidate]:
    if future not in done:
        future.cancel()
        logger.warning(
            "proximity_query_timeout",
            extra={
                "sample_index": sample.index,
                "longitude": sample.point.longitude,
                "latitude": sample.point.latitude,
                "timeout_seconds": config.fetch_timeout_seconds,
            },
        )
        return []
    try:
        return list(future.result())
    except Exception as exc:
        logger.warning(
            "proximity_query_failed",
            extra={
                "sample_index": sample.index,
                "longitude": sample.point.longitude,
                "latitude": sample.point.latitude,
                "error": str(exc),
            },
        )
    return []


def fetch_candidates(
    samples: Sequence[SampledPoint],
    find_nearby: FindNearby,
    config: MatchConfig,
    sleep: Callable[[float], None] = time.sleep,
) -> List[CandidatePair]:
    """Query the facility store around every sample point.

    Queries run on a pool capped at ``fetch_concurrency_limit`` workers, one
    batch of ``fetch_batch_size`` points at a time, with a pause between
    batches. Each batch gets ``fetch_timeout_seconds`` in total; queries still
    running at the deadline are abandoned. Failed or timed-out queries yield no
    candidates. Pairs come back in sample order whatever order the queries
    finish in.
    """
    per_sample: List[List[FacilityCandidate]] = [[] for _ in samples]
    executor = ThreadPoolExecutor(max_workers=config.fetch_concurrency_limit, thread_name_prefix="proximity-worker")
    try:
        offset = 0
        batches = list(chunk_generator(samples, config.fetch_batch_size))
        for batch_index, batch in enumerate(batches):
            futures = [
                executor.submit(find_nearby, sample.point.longitude, sample.point.latitude, config.search_radius_meters)
                for sample in batch
            ]
            done, _ = wait(futures, timeout=config.fetch_timeout_seconds)
            for position, (sample, future) in enumerate(zip(batch, futures)):
                per_sample[offset + position] = _collect(future, sample, config, done)
            offset += len(batch)

            if batch_index < len(batches) - 1 and config.fetch_batch_pause_seconds > 0:
                sleep(config.fetch_batch_pause_seconds)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    pairs: List[CandidatePair] = []
    for sample, candidates in zip(samples, per_sample):
        pairs.extend((sample, candidate) for candidate in candidates)
    return pairs
