"""
Optimistic-concurrency update guard.

Every versioned entity is updated through OptimisticUpdateGuard.update():
the caller states the version it read, the mutation runs on a private copy,
and the write is a single compare-and-swap at the storage boundary. A stale
version is rejected with VersionConflictError; nothing is merged and
nothing is retried automatically.

The repository passed in must provide:
    get(entity_id) -> entity or None
    compare_and_swap(entity, expected_version) -> Updated | Conflict

not_found_error is a NotFoundError subclass whose first argument is the
entity id, e.g. ProtocolAssignmentNotFoundError.
"""
import copy
import logging
from typing import Any, Callable, Type

from outcome_svc.core.exceptions import NotFoundError, VersionConflictError
from outcome_svc.models.protocol import Conflict

logger = logging.getLogger(__name__)


class OptimisticUpdateGuard:

    def __init__(self, repository: Any, not_found_error: Type[NotFoundError]):
        self._repository = repository
        self._not_found_error = not_found_error

    def update(self, entity_id: int, expected_version: int, mutation_fn: Callable[[Any], Any]) -> Any:
        """
        Apply mutation_fn to the entity if its stored version is expected_version.

        Args:
            entity_id: Entity to update.
            expected_version: Version the caller last read.
            mutation_fn: Receives a copy of the entity and returns the modified copy.

        Returns:
            The stored entity at version expected_version + 1.

        Raises:
            NotFoundError (the configured subclass): No such entity.
            VersionConflictError: Stored version differs, before or at write time.
        """
        current = self._repository.get(entity_id)
        if current is None:
            raise self._not_found_error(entity_id)

        if current.version != expected_version:
            self._log_conflict(entity_id, expected_version, current.version)
            raise VersionConflictError(
                entity_id=entity_id,
                expected_version=expected_version,
                actual_version=current.version,
            )

        mutated = mutation_fn(copy.deepcopy(current))

        result = self._repository.compare_and_swap(mutated, expected_version)
        if isinstance(result, Conflict):
            self._log_conflict(entity_id, expected_version, result.actual_version)
            raise VersionConflictError(
                entity_id=entity_id,
                expected_version=expected_version,
                actual_version=result.actual_version,
            )

        logger.info(
            "Versioned update applied",
            extra={"entity_id": entity_id, "version": result.entity.version}
        )
        return result.entity

    def _log_conflict(self, entity_id: int, expected_version: int, actual_version: Any) -> None:
        logger.warning(
            "Rejected stale update",
            extra={
                "entity_id": entity_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            }
        )
