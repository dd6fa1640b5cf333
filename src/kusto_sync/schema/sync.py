"""Compare and synchronize schemas between two repositories (async).

``SchemaSyncService`` drives two sequential state machines:

1. **Compare**: validate source, validate target, load source, load target,
   compare, complete.  Any load failure aborts the comparison.
2. **Synchronize**: apply a selection of differences to the target.  Modified
   and source-only objects are saved, target-only objects are deleted, save
   before delete.  Partial failures produce a failed ``SyncResult`` rather
   than an exception; nothing is rolled back.

Cancellation is asyncio task cancellation: ``asyncio.CancelledError``
raised inside a repository call propagates unchanged.

Usage:
    from kusto_sync.schema.sync import SchemaSyncService

    service = SchemaSyncService(config.settings)
    comparison = await service.compare_sources(source_info, target_info, progress=print)

    selected = comparison.differences.all_differences
    result = await service.sync_sources(source_info, target_info, selected)
    if not result.success:
        for error in result.errors:
            print(error)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from kusto_sync.config.models import SchemaSourceInfo, SyncSettings
from kusto_sync.exceptions import SchemaLoadError, SchemaSyncError, SchemaValidationError
from kusto_sync.factory import create_repository, validate_settings, validate_source_info
from kusto_sync.repositories.base import SchemaRepository
from kusto_sync.schema.comparator import compare_schemas
from kusto_sync.schema.models import (
    ComparisonResult,
    Difference,
    SchemaDifference,
    SchemaDifferenceResult,
    SyncProgress,
    SyncProgressStage,
    SyncResult,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SyncProgress], None]
RepositoryFactory = Callable[[SchemaSourceInfo, SyncSettings], SchemaRepository]


class SchemaSyncService:
    """Orchestrates loading, comparing and applying schema differences.

    Args:
        settings: Settings handed to repositories built by
            ``compare_sources()``/``sync_sources()``.
        repository_factory: Builds a repository from a descriptor.  Defaults
            to ``kusto_sync.factory.create_repository``.

    Attributes:
        stage: The stage most recently entered.
    """

    def __init__(
        self,
        settings: SyncSettings | None = None,
        repository_factory: RepositoryFactory | None = None,
    ) -> None:
        self.settings = settings or SyncSettings()
        self._repository_factory = repository_factory or create_repository
        self.stage = SyncProgressStage.UNKNOWN

    def _report(
        self,
        progress: ProgressCallback | None,
        message: str,
        percent: int | None,
        stage: SyncProgressStage,
    ) -> None:
        self.stage = stage
        logger.debug(f"{stage.value}: {message}")
        if progress is None:
            return
        try:
            progress(SyncProgress(message=message, percent=percent, stage=stage))
        except Exception:
            logger.exception("Progress callback failed")

    # ========================================================================
    # Compare
    # ========================================================================

    async def _load_and_compare(
        self,
        source: SchemaRepository,
        target: SchemaRepository,
        progress: ProgressCallback | None,
    ) -> ComparisonResult:
        if source is None or target is None:
            raise ValueError("Both source and target repositories are required")

        try:
            self._report(progress, "Loading source schema...", 10, SyncProgressStage.LOADING_SOURCE_SCHEMA)
            source_schema = await source.load_schema()

            self._report(progress, "Loading target schema...", 50, SyncProgressStage.LOADING_TARGET_SCHEMA)
            target_schema = await target.load_schema()

            self._report(progress, "Comparing schemas...", 75, SyncProgressStage.COMPARING_SCHEMAS)
            differences = compare_schemas(source_schema, target_schema)

            self._report(progress, "Comparison complete", 100, SyncProgressStage.COMPLETE)
        except SchemaLoadError:
            raise
        except Exception as e:
            raise SchemaLoadError("Failed to load and compare schemas") from e

        return ComparisonResult(
            differences=differences,
            source_schema=source_schema,
            target_schema=target_schema,
        )

    async def compare(
        self,
        source: SchemaRepository,
        target: SchemaRepository,
        progress: ProgressCallback | None = None,
    ) -> SchemaDifferenceResult:
        """Load both schemas, source first, and classify their differences.

        Args:
            source: Repository whose objects win.
            target: Repository being compared against.
            progress: Called at every stage transition.

        Returns:
            Table and function differences.

        Raises:
            ValueError: If either repository is ``None``.
            SchemaLoadError: If either schema could not be loaded.  Errors
                that are not already load errors are wrapped.
        """
        comparison = await self._load_and_compare(source, target, progress)
        return comparison.differences

    # ========================================================================
    # Synchronize
    # ========================================================================

    async def synchronize(
        self,
        source: SchemaRepository,
        target: SchemaRepository,
        differences: Iterable[SchemaDifference],
        progress: ProgressCallback | None = None,
    ) -> SyncResult:
        """Apply selected differences to ``target``.

        Args:
            source: Repository the differences were computed from.
            target: Repository to modify.
            differences: Selection from a previous ``compare()``.
            progress: Called as the selection is processed.

        Returns:
            ``SyncResult.successful(len(differences))`` when every save and
            delete succeeded, otherwise ``SyncResult.failed(errors)``.

        Raises:
            ValueError: If any argument is ``None``.
            SchemaSyncError: On failures outside the save and delete calls.
        """
        if source is None or target is None:
            raise ValueError("Both source and target repositories are required")
        if differences is None:
            raise ValueError("differences is required")

        selected = list(differences)
        if not selected:
            return SyncResult.successful(0)

        try:
            return await self._apply(target, selected, progress)
        except SchemaSyncError:
            raise
        except Exception as e:
            raise SchemaSyncError("Failed to synchronize schemas") from e

    async def _apply(
        self,
        target: SchemaRepository,
        selected: list[SchemaDifference],
        progress: ProgressCallback | None,
    ) -> SyncResult:
        stage = SyncProgressStage.SYNCHRONIZING_SCHEMAS
        self._report(progress, "Starting synchronization...", 0, stage)

        to_save = []
        to_delete = []
        errors: list[str] = []

        for processed, difference in enumerate(selected, start=1):
            if difference.difference in (Difference.MODIFIED, Difference.ONLY_IN_SOURCE):
                to_save.append(difference.schema_object)
            elif difference.difference == Difference.ONLY_IN_TARGET:
                to_delete.append(difference.schema_object)
            else:
                errors.append(f"Unknown difference type for {difference.name}")

            percent = int(processed / len(selected) * 40)
            self._report(progress, f"Processing {difference.name}...", percent, stage)

        if to_save:
            self._report(progress, f"Saving {len(to_save)} schema(s) to target...", 50, stage)
            try:
                await target.save_schema(to_save)
            except Exception as e:
                logger.warning(f"Save failed: {e}")
                errors.append(f"Failed to save schemas: {e}")

        if to_delete:
            self._report(progress, f"Deleting {len(to_delete)} schema(s) from target...", 75, stage)
            try:
                await target.delete_schema(to_delete)
            except Exception as e:
                logger.warning(f"Delete failed: {e}")
                errors.append(f"Failed to delete schemas: {e}")

        self._report(progress, "Synchronization complete", 100, SyncProgressStage.COMPLETE)

        if errors:
            return SyncResult.failed(errors)
        return SyncResult.successful(len(selected))

    # ========================================================================
    # Descriptor-based entry points
    # ========================================================================

    def _validate(
        self,
        source_info: SchemaSourceInfo,
        target_info: SchemaSourceInfo,
        progress: ProgressCallback | None,
    ) -> None:
        if source_info is None or target_info is None:
            raise ValueError("Both source and target are required")

        self._report(progress, "Validating source...", 0, SyncProgressStage.VALIDATING_SOURCE)
        result = validate_source_info(source_info)
        if not result.is_valid:
            raise SchemaValidationError(f"Invalid source: {result.error_message}")

        self._report(progress, "Validating target...", 5, SyncProgressStage.VALIDATING_TARGET)
        result = validate_source_info(target_info)
        if not result.is_valid:
            raise SchemaValidationError(f"Invalid target: {result.error_message}")

        result = validate_settings(source_info, target_info, self.settings)
        if not result.is_valid:
            raise SchemaValidationError(result.error_message or "Invalid settings")

    async def compare_sources(
        self,
        source_info: SchemaSourceInfo,
        target_info: SchemaSourceInfo,
        progress: ProgressCallback | None = None,
    ) -> ComparisonResult:
        """Validate two descriptors, build their repositories and compare them.

        Repositories are closed before returning.

        Raises:
            SchemaValidationError: If a descriptor or the settings are invalid.
            SchemaLoadError: If a schema could not be loaded.
        """
        self._validate(source_info, target_info, progress)

        source = self._repository_factory(source_info, self.settings)
        try:
            target = self._repository_factory(target_info, self.settings)
            try:
                return await self._load_and_compare(source, target, progress)
            finally:
                await target.close()
        finally:
            await source.close()

    async def sync_sources(
        self,
        source_info: SchemaSourceInfo,
        target_info: SchemaSourceInfo,
        differences: Iterable[SchemaDifference],
        progress: ProgressCallback | None = None,
    ) -> SyncResult:
        """Validate two descriptors and apply ``differences`` to the target."""
        self._validate(source_info, target_info, progress)

        source = self._repository_factory(source_info, self.settings)
        try:
            target = self._repository_factory(target_info, self.settings)
            try:
                return await self.synchronize(source, target, differences, progress)
            finally:
                await target.close()
        finally:
            await source.close()
