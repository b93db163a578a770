"""Record id normalization, validation and draft id generation."""

import random
import re
import time
from collections.abc import Awaitable, Callable

from orderledger.observability.logging import get_logger
from orderledger.versioning.enums import VersionStatus
from orderledger.versioning.errors import ValidationFailureError

logger = get_logger(__name__)

RecordExists = Callable[[str], Awaitable[bool]]


class RecordIdPolicy:
    """Decides which record id a create call writes under.

    FINAL saves must name a well-formed id. DRAFT saves may omit it or
    send garbage, in which case an unused id is generated.
    """

    def __init__(
        self,
        pattern: str = r"^ORD-[0-9]{5}$",
        prefix: str = "ORD",
        width: int = 5,
        max_attempts: int = 20,
    ) -> None:
        self._pattern = re.compile(pattern)
        self._prefix = prefix
        self._width = width
        self._max_attempts = max_attempts

    @classmethod
    def from_config(cls, config) -> "RecordIdPolicy":
        """Build a policy from a VersioningConfig."""
        return cls(
            pattern=config.record_id_pattern,
            prefix=config.record_id_prefix,
            width=config.record_id_digits,
            max_attempts=config.record_id_generation_attempts,
        )

    @staticmethod
    def normalize(raw: str | None) -> str:
        if raw is None:
            return ""
        return raw.strip().upper()

    def is_valid(self, record_id: str) -> bool:
        return bool(record_id) and self._pattern.fullmatch(record_id) is not None

    async def resolve(
        self,
        raw: str | None,
        status: VersionStatus,
        exists: RecordExists,
    ) -> str:
        """Resolve the record id for a new version.

        Args:
            raw: Record id as supplied by the caller
            status: Status of the version being written
            exists: Coroutine telling whether a record id is already in use

        Returns:
            The normalized or generated record id

        Raises:
            ValidationFailureError: If a FINAL save names an invalid id.
        """
        record_id = self.normalize(raw)
        if self.is_valid(record_id):
            return record_id

        if status == VersionStatus.FINAL:
            raise ValidationFailureError.for_field(
                "record_id",
                f"Record id must match {self._pattern.pattern}",
            )

        generated = await self._generate(exists)
        logger.debug("draft_record_id_generated", raw=raw, record_id=generated)
        return generated

    async def _generate(self, exists: RecordExists) -> str:
        upper = 10**self._width
        for _ in range(self._max_attempts):
            candidate = self._format(random.randrange(upper))
            if not await exists(candidate):
                return candidate

        # Random space exhausted or unlucky; derive from the clock instead
        fallback = self._format(int(time.time() * 1000) % upper)
        logger.warning(
            "draft_record_id_fallback",
            attempts=self._max_attempts,
            record_id=fallback,
        )
        return fallback

    def _format(self, number: int) -> str:
        return f"{self._prefix}-{number:0{self._width}d}"
