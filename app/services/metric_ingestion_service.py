"""
app/services/metric_ingestion_service.py

Service layer for metric upload orchestration.

One call is one UploadJob: the document is parsed and validated row by row,
valid records are written in small sequential batches with a pause between
batches, and the job counters are updated after every batch. No transaction
spans batches, so a failed batch leaves earlier batches committed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import replace
from functools import lru_cache
from typing import Any, TypeVar

from app.config import get_metric_ingestion_settings
from app.domain.metric_ingestion import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    IngestionSummary,
    RowValidationError,
)
from app.domain.metric_record import DEFAULT_METRIC_DEFAULTS, MetricDefaults, MetricRecord
from app.mappers.header_mapper import HeaderMapper, MappingResolution
from app.normalizers.key_normalizer import KeyNormalizer
from app.parsers.delimited_parser import DelimitedRowParser, HeaderValidationError, ParsedRows
from app.repositories.metric_store import MetricStoreClient, UpsertResult
from app.repositories.upload_job_repository import UploadJobRepository
from app.services.runtime import get_key_normalizer, get_metric_store_client, get_upload_job_repository
from app.validators.mapping_validator import HeaderMappingError, MappingErrorDetail
from app.validators.metric_validator import MetricRowValidator
from db.repositories.errors import MetricStoreError, SchemaUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CSVHeaderValidationError(ValueError):
    """
    Raised when the upload cannot be read or its header row is unusable.
    """

    def __init__(self, message: str, *, job_id: uuid.UUID | None = None) -> None:
        super().__init__(message)
        self.job_id = job_id

    def to_dict(self) -> dict[str, object]:
        return {
            "message": str(self),
            "job_id": str(self.job_id) if self.job_id else None,
        }


class CSVSchemaMappingError(CSVHeaderValidationError):
    """
    Raised when header mapping resolution fails with structured details.
    """

    def __init__(
        self,
        *,
        message: str,
        errors: list[MappingErrorDetail],
        job_id: uuid.UUID | None = None,
    ) -> None:
        super().__init__(message, job_id=job_id)
        self.errors = tuple(errors)

    def to_dict(self) -> dict[str, object]:
        return {
            "message": str(self),
            "job_id": str(self.job_id) if self.job_id else None,
            "errors": [error.to_dict() for error in self.errors],
        }


class MetricRecordValidationError(ValueError):
    """
    Raised when a single directly-written metric fails row validation.
    """

    def __init__(self, errors: Sequence[RowValidationError]) -> None:
        super().__init__("Metric record failed validation.")
        self.errors = tuple(errors)

    def to_dict(self) -> dict[str, object]:
        return {
            "message": str(self),
            "errors": [error.to_dict() for error in self.errors],
        }


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class MetricIngestionService:
    """
    Coordinates parsing, mapping, validation and batched persistence.
    """

    def __init__(
        self,
        *,
        store: MetricStoreClient,
        jobs: UploadJobRepository,
        normalizer: KeyNormalizer,
        batch_size: int = 10,
        batch_delay_seconds: float = 0.1,
        max_reported_errors: int = 50,
        log_validation_errors: bool = True,
        delimiter: str = ",",
        defaults: MetricDefaults = DEFAULT_METRIC_DEFAULTS,
        mapper: HeaderMapper | None = None,
        validator: MetricRowValidator | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._normalizer = normalizer
        self._jobs = jobs
        self._batch_size = max(1, batch_size)
        self._batch_delay_seconds = max(0.0, batch_delay_seconds)
        self._max_reported_errors = max(1, max_reported_errors)
        self._log_validation_errors = log_validation_errors
        self._parser = DelimitedRowParser(delimiter=delimiter)
        self._mapper = mapper or HeaderMapper()
        self._validator = validator or MetricRowValidator(normalizer=normalizer, defaults=defaults)
        self._sleep = sleep

    async def ingest_csv(
        self,
        content: bytes | str,
        *,
        filename: str,
        uploaded_by: str | None = None,
        manual_mapping: Mapping[str, str] | None = None,
    ) -> IngestionSummary:
        """
        Ingest one delimited document.

        Raises ``CSVHeaderValidationError`` (job marked FAILED) when the
        document cannot be decoded or its header lacks a required column.
        Row-level problems never raise; they are counted and reported.
        """

        raw = content.encode("utf-8") if isinstance(content, str) else content
        job_id = await self._create_job(filename=filename, file_size=len(raw), uploaded_by=uploaded_by)

        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            await self._fail_job(job_id, {"message": "File must be UTF-8 encoded."})
            raise CSVHeaderValidationError("File must be UTF-8 encoded.", job_id=job_id) from exc

        try:
            required_columns = self._mapper.required_column_groups(manual_mapping)
            parsed = self._parser.parse(text, required_columns=required_columns)
            mapping = self._mapper.resolve_mapping(parsed.headers, manual_overrides=manual_mapping)
        except HeaderValidationError as exc:
            await self._fail_job(job_id, exc.to_dict())
            raise CSVHeaderValidationError(exc.message, job_id=job_id) from exc
        except HeaderMappingError as exc:
            await self._fail_job(job_id, exc.to_dict())
            raise CSVSchemaMappingError(message=exc.message, errors=list(exc.errors), job_id=job_id) from exc

        total_rows = parsed.count()
        await self._track(lambda: self._jobs.mark_processing(job_id=job_id, total_rows=total_rows), job_id)

        entries, row_errors = self._validate_rows(parsed, mapping)
        failed_rows = len({error.row_number for error in row_errors})
        return await self._write_and_finish(
            job_id=job_id,
            entries=entries,
            total_rows=total_rows,
            failed_rows=failed_rows,
            errors=row_errors,
        )

    async def ingest_records(
        self,
        records: Sequence[MetricRecord],
        *,
        filename: str = "inventory",
        uploaded_by: str | None = None,
    ) -> IngestionSummary:
        """
        Run the batching and job lifecycle for records built in code.

        Section and metric keys are canonicalized first, so historical keys
        land on their current names.
        """

        job_id = await self._create_job(filename=filename, file_size=None, uploaded_by=uploaded_by)
        total_rows = len(records)
        await self._track(lambda: self._jobs.mark_processing(job_id=job_id, total_rows=total_rows), job_id)

        entries: list[tuple[int, MetricRecord]] = []
        errors: list[RowValidationError] = []
        for row_number, raw_record in enumerate(records, start=1):
            record = replace(
                raw_record,
                section_key=self._normalizer.to_section_key(raw_record.section_key),
                metric_key=self._normalizer.resolve_metric_alias(raw_record.metric_key),
            )
            record_errors = self._validator.validate_record(record, row_number=row_number)
            if record_errors:
                self._log_errors(record_errors)
                errors.extend(record_errors)
                continue
            entries.append((row_number, record))

        return await self._write_and_finish(
            job_id=job_id,
            entries=entries,
            total_rows=total_rows,
            failed_rows=len({error.row_number for error in errors}),
            errors=errors,
        )

    async def upsert_row(self, mapped_row: Mapping[str, str | None]) -> UpsertResult:
        """
        Validate and write one canonical row outside of any upload job.
        """

        record, errors = self._validator.validate_mapped_row(mapped_row=mapped_row, row_number=0)
        if record is None:
            self._log_errors(errors)
            raise MetricRecordValidationError(errors)
        return await self._store.upsert_one(record)

    # ------------------------------------------------------------------
    # Ingestion internals
    # ------------------------------------------------------------------

    def _validate_rows(
        self,
        parsed: ParsedRows,
        mapping: MappingResolution,
    ) -> tuple[list[tuple[int, MetricRecord]], list[RowValidationError]]:
        entries: list[tuple[int, MetricRecord]] = []
        errors: list[RowValidationError] = []

        for row in parsed:
            mapped_row = self._mapper.map_row(raw_row=row.values, mapping=mapping)
            if self._validator.is_completely_empty_row(mapped_row):
                errors.append(
                    RowValidationError(
                        row_number=row.line_number,
                        message="Completely empty rows are not allowed.",
                    )
                )
                continue

            record, row_errors = self._validator.validate_mapped_row(
                mapped_row=mapped_row,
                row_number=row.line_number,
            )
            if row_errors or record is None:
                errors.extend(
                    row_errors
                    or [
                        RowValidationError(
                            row_number=row.line_number,
                            message="Row could not be converted to a metric record.",
                        )
                    ]
                )
                continue
            entries.append((row.line_number, record))

        errors.extend(
            RowValidationError(row_number=error.line_number, message=error.message)
            for error in parsed.errors
        )
        errors.sort(key=lambda error: error.row_number)
        self._log_errors(errors)
        return entries, errors

    async def _write_and_finish(
        self,
        *,
        job_id: uuid.UUID | None,
        entries: list[tuple[int, MetricRecord]],
        total_rows: int,
        failed_rows: int,
        errors: list[RowValidationError],
    ) -> IngestionSummary:
        processed_rows = 0
        if failed_rows:
            await self._track(
                lambda: self._jobs.update_progress(job_id=job_id, processed_rows=0, failed_rows=failed_rows),
                job_id,
            )

        for index in range(0, len(entries), self._batch_size):
            if index and self._batch_delay_seconds:
                await self._sleep(self._batch_delay_seconds)

            batch = entries[index : index + self._batch_size]
            first_row, last_row = batch[0][0], batch[-1][0]
            try:
                await self._store.upsert_many([record for _, record in batch])
                processed_rows += len(batch)
            except MetricStoreError as exc:
                failed_rows += len(batch)
                logger.error(
                    "Metric batch failed job_id=%s rows=%s-%s error=%s",
                    job_id,
                    first_row,
                    last_row,
                    exc,
                )
                errors.append(
                    RowValidationError(
                        row_number=first_row,
                        message=f"Batch for rows {first_row}-{last_row} failed: {exc}",
                    )
                )

            processed_now, failed_now = processed_rows, failed_rows
            await self._track(
                lambda: self._jobs.update_progress(
                    job_id=job_id,
                    processed_rows=processed_now,
                    failed_rows=failed_now,
                ),
                job_id,
            )

        status = STATUS_FAILED if processed_rows == 0 and failed_rows > 0 else STATUS_COMPLETED
        reported = errors[: self._max_reported_errors]
        error_details = {
            "errors": [error.to_dict() for error in reported],
            "total_errors": len(errors),
        }
        if status == STATUS_FAILED:
            await self._fail_job(job_id, error_details, processed_rows=processed_rows, failed_rows=failed_rows)
        else:
            await self._track(
                lambda: self._jobs.mark_completed(
                    job_id=job_id,
                    processed_rows=processed_rows,
                    failed_rows=failed_rows,
                    error_details=error_details if errors else None,
                ),
                job_id,
            )

        logger.info(
            "Metric ingestion finished job_id=%s status=%s total=%s processed=%s failed=%s",
            job_id,
            status,
            total_rows,
            processed_rows,
            failed_rows,
        )
        return IngestionSummary(
            job_id=job_id,
            status=status,
            total_rows=total_rows,
            rows_processed=processed_rows,
            rows_failed=failed_rows,
            validation_errors=reported,
        )

    async def _create_job(
        self,
        *,
        filename: str,
        file_size: int | None,
        uploaded_by: str | None,
    ) -> uuid.UUID | None:
        try:
            job = await self._jobs.create_job(filename=filename, file_size=file_size, uploaded_by=uploaded_by)
        except SchemaUnavailableError:
            logger.warning("Upload job table unavailable; ingesting filename=%s without job tracking", filename)
            return None
        return job.id

    async def _fail_job(
        self,
        job_id: uuid.UUID | None,
        error_details: dict[str, Any],
        *,
        processed_rows: int = 0,
        failed_rows: int = 0,
    ) -> None:
        await self._track(
            lambda: self._jobs.mark_failed(
                job_id=job_id,
                error_details=error_details,
                processed_rows=processed_rows,
                failed_rows=failed_rows,
            ),
            job_id,
        )

    async def _track(self, update: Callable[[], Awaitable[T]], job_id: uuid.UUID | None) -> T | None:
        """
        Apply a job update. Untracked runs skip it; a failed update is logged.
        """

        if job_id is None:
            return None
        try:
            return await update()
        except MetricStoreError:
            logger.exception("Upload job update failed job_id=%s", job_id)
            return None

    def _log_errors(self, errors: Sequence[RowValidationError]) -> None:
        if not self._log_validation_errors:
            return
        for error in errors:
            logger.warning(
                "Metric validation error row=%s column=%s message=%s value=%r",
                error.row_number,
                error.column,
                error.message,
                error.value,
            )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_metric_ingestion_service() -> MetricIngestionService:
    """
    Build and cache the ingestion service with env-driven settings.
    """

    settings = get_metric_ingestion_settings()
    return MetricIngestionService(
        store=get_metric_store_client(),
        jobs=get_upload_job_repository(),
        normalizer=get_key_normalizer(),
        batch_size=settings.batch_size,
        batch_delay_seconds=settings.batch_delay_seconds,
        max_reported_errors=settings.max_reported_errors,
        log_validation_errors=settings.log_validation_errors,
        delimiter=settings.delimiter,
    )
