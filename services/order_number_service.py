"""
Order number allocation.

Order numbers are shared by the future and realized partitions and
must be unique across both. There is no database counter; allocation
reads the current maximum and then walks a fallback ladder:

    1. candidate = max(max existing, floor - 1) + 1
    2. point-check both partitions, increment on conflict (retry_attempts)
    3. linear gap scan (gap_scan candidates)
    4. random candidates seeded from the current time (random_attempts)
    5. AllocationExhaustedError

Batch allocation skips the checks and returns a contiguous block.
"""

from typing import Callable, Optional
import random
import time
import structlog

from config import settings
from exceptions import AllocationExhaustedError, ValidationError
from services.order_repository import OrderRepository, get_order_repository

logger = structlog.get_logger(__name__)

MAX_ORDER_NUMBER = 999999


class OrderNumberService:
    """
    Sequence allocator.

    clock and rng are injectable so the random tier is reproducible.
    """

    def __init__(
        self,
        repository: Optional[OrderRepository] = None,
        clock: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.repository = repository or get_order_repository()
        self.floor = settings.order_number_floor
        self.retry_attempts = settings.order_number_retry_attempts
        self.gap_scan = settings.order_number_gap_scan
        self.random_attempts = settings.order_number_random_attempts
        self._clock = clock or time.time
        self._rng = rng

    def allocate(self, count: int = 1) -> list[int]:
        """
        Allocate order numbers.

        Args:
            count: How many numbers. count > 1 is for bulk jobs with no
                concurrent writers and returns base..base+count-1.

        Returns:
            Strictly increasing numbers, all >= floor

        Raises:
            AllocationExhaustedError: If a single allocation finds no free number
        """
        if count < 1:
            raise ValidationError(
                "count must be at least 1",
                code="INVALID_ALLOCATION_COUNT",
                details={"count": count}
            )

        base = self.next_base()

        if count > 1:
            numbers = list(range(base, base + count))
            logger.info("order_numbers_allocated", count=count, first=numbers[0], last=numbers[-1])
            return numbers

        number = self._allocate_single(base)
        logger.info("order_number_allocated", order_number=number)
        return [number]

    def allocate_one(self) -> int:
        return self.allocate(1)[0]

    def next_base(self) -> int:
        """First candidate: one above the larger of the stored max and floor - 1."""
        current_max = self.repository.max_order_number()
        return max(current_max or 0, self.floor - 1) + 1

    # ===================
    # FALLBACK LADDER
    # ===================

    def _allocate_single(self, candidate: int) -> int:
        attempts = 0

        for _ in range(self.retry_attempts):
            attempts += 1
            if not self.repository.order_number_exists(candidate):
                return candidate
            logger.warning("order_number_collision", candidate=candidate, attempt=attempts)
            candidate += 1

        logger.warning("order_number_gap_scan", start=candidate, width=self.gap_scan)
        for _ in range(self.gap_scan):
            attempts += 1
            if not self.repository.order_number_exists(candidate):
                return candidate
            candidate += 1

        rng = self._rng or random.Random(int(self._clock() * 1000))
        for _ in range(self.random_attempts):
            attempts += 1
            candidate = rng.randint(self.floor, MAX_ORDER_NUMBER)
            if not self.repository.order_number_exists(candidate):
                logger.warning("order_number_random_fallback", order_number=candidate)
                return candidate

        logger.error("order_number_allocation_exhausted", last_candidate=candidate, attempts=attempts)
        raise AllocationExhaustedError(candidate, attempts)


# Singleton instance
_order_number_service: Optional[OrderNumberService] = None


def get_order_number_service() -> OrderNumberService:
    """Get or create OrderNumberService instance."""
    global _order_number_service
    if _order_number_service is None:
        _order_number_service = OrderNumberService()
    return _order_number_service
