"""Tests for the service facade's success and failure responses."""

from __future__ import annotations

import pytest

from contact_distribution.core.models import BatchMetadata, IngestResult
from contact_distribution.service import DistributionService


class TestIngestResponses:
    @pytest.mark.asyncio
    async def test_success(self, db, settings, stored_workers, make_rows):
        service = DistributionService(db, settings)
        response = await service.ingest(make_rows(7), metadata=BatchMetadata(batch_id="b-1"))

        assert response.success is True
        assert response.message == "File uploaded and distributed successfully"
        assert isinstance(response.data, IngestResult)
        assert response.data.batch_id == "b-1"
        assert response.error is None

    @pytest.mark.asyncio
    async def test_bad_phone_in_first_data_row(self, db, settings, stored_workers):
        service = DistributionService(db, settings)
        rows = [
            {"First Name": "Ada", "Phone": "abc", "Notes": ""},
            {"First Name": "Bob", "Phone": "555-0100", "Notes": ""},
        ]
        response = await service.ingest(rows)

        assert response.success is False
        assert response.error.kind == "row_validation_error"
        assert "Row 2: Invalid phone number format" in response.message
        assert response.error.details["rejections"] == [
            {"row_number": 2, "reason": "Invalid phone number format"}
        ]

    @pytest.mark.asyncio
    async def test_missing_column(self, db, settings, stored_workers):
        service = DistributionService(db, settings)
        response = await service.ingest([{"Name": "Ada", "Phone": "1"}])

        assert response.error.kind == "schema_error"
        assert response.error.details["missing_columns"] == ["First Name"]

    @pytest.mark.asyncio
    async def test_empty_input(self, db, settings, stored_workers):
        response = await DistributionService(db, settings).ingest([{"First Name": "", "Phone": ""}])
        assert response.error.kind == "empty_input"
        assert response.message == "No valid data rows found in the file"

    @pytest.mark.asyncio
    async def test_no_workers(self, db, settings, make_rows):
        response = await DistributionService(db, settings).ingest(make_rows(2))
        assert response.error.kind == "no_active_workers"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self, db, settings, stored_workers, make_rows, monkeypatch):
        async def broken():
            raise RuntimeError("connection reset")

        service = DistributionService(db, settings)
        monkeypatch.setattr(service.distributor, "active_workers", broken)
        response = await service.ingest(make_rows(2))

        assert response.success is False
        assert response.error.kind == "internal_error"
        assert response.error.message == "connection reset"
        assert response.message == "Failed to ingest"


class TestIngestFile:
    @pytest.mark.asyncio
    async def test_csv_file(self, db, settings, stored_workers, tmp_path):
        path = tmp_path / "leads.csv"
        path.write_text("First Name,Phone,Notes\nAda,555 0100,\nBob,555 0101,vip\n\nCy,555 0102,\n")

        response = await DistributionService(db, settings).ingest_file(path)

        assert response.success is True
        assert response.data.total_items == 3
        lists = await db.list_sub_lists_by_batch(response.data.batch_id)
        assert {sl.original_file_name for sl in lists} == {"leads.csv"}

    @pytest.mark.asyncio
    async def test_row_numbers_count_blank_lines(self, db, settings, stored_workers, tmp_path):
        path = tmp_path / "leads.csv"
        path.write_text("First Name,Phone\nAda,1\n\n,2\n")

        response = await DistributionService(db, settings).ingest_file(path)
        assert response.error.details["rejections"] == [
            {"row_number": 4, "reason": "First name is required"}
        ]

    @pytest.mark.asyncio
    async def test_header_only_file_missing_column(self, db, settings, stored_workers, tmp_path):
        path = tmp_path / "leads.csv"
        path.write_text("First Name,Notes\n")

        response = await DistributionService(db, settings).ingest_file(path)
        assert response.error.kind == "schema_error"

    @pytest.mark.asyncio
    async def test_corrupt_xlsx_is_decode_error(self, db, settings, tmp_path):
        path = tmp_path / "leads.xlsx"
        path.write_bytes(b"not a workbook")

        response = await DistributionService(db, settings).ingest_file(path)
        assert response.error.kind == "file_decode_error"

    @pytest.mark.asyncio
    async def test_unsupported_file(self, db, settings, tmp_path):
        path = tmp_path / "leads.txt"
        path.write_text("hello")

        response = await DistributionService(db, settings).ingest_file(path)
        assert response.error.kind == "unsupported_file_type"


class TestItemAndListResponses:
    @pytest.mark.asyncio
    async def test_update_and_delete(self, db, settings, stored_workers, make_rows):
        service = DistributionService(db, settings)
        ingest = await service.ingest(make_rows(3))
        summary = ingest.data.distributions[0]
        sub_list = await db.get_sub_list(summary.sub_list_id)

        updated = await service.update_item_status(summary.sub_list_id, sub_list.items[0].id, "completed")
        assert updated.success is True
        assert updated.message == "Item status updated successfully"
        assert updated.data.completion_percentage == 100

        deleted = await service.delete_sub_list(summary.sub_list_id)
        assert deleted.message == "List deleted successfully"

        again = await service.delete_sub_list(summary.sub_list_id)
        assert again.error.kind == "sub_list_not_found"

    @pytest.mark.asyncio
    async def test_invalid_status(self, db, settings, stored_workers, make_rows):
        service = DistributionService(db, settings)
        ingest = await service.ingest(make_rows(1))
        response = await service.update_item_status(
            ingest.data.distributions[0].sub_list_id, "whatever", "archived"
        )
        assert response.error.kind == "invalid_status"

    @pytest.mark.asyncio
    async def test_item_not_found(self, db, settings, stored_workers, make_rows):
        service = DistributionService(db, settings)
        ingest = await service.ingest(make_rows(1))
        response = await service.update_item_status(
            ingest.data.distributions[0].sub_list_id, "missing", "contacted"
        )
        assert response.error.kind == "item_not_found"


class TestReportingResponses:
    @pytest.mark.asyncio
    async def test_stats(self, db, settings, stored_workers, make_rows):
        service = DistributionService(db, settings)
        ingest = await service.ingest(make_rows(6))

        batch = await service.get_batch_stats(ingest.data.batch_id)
        assert batch.success is True
        assert batch.data.total_items == 6

        worker = await service.get_worker_stats("w0")
        assert worker.data.total_items == 2

        overall = await service.get_global_stats()
        assert overall.data.total_lists == 3

        batches = await service.list_batches()
        assert batches.data.total == 1

        lists = await service.list_batch_sub_lists(ingest.data.batch_id)
        assert len(lists.data) == 3

        mine = await service.list_worker_sub_lists("w1")
        assert mine.data.total == 1

        detail = await service.get_sub_list(ingest.data.distributions[0].sub_list_id)
        assert len(detail.data.sub_list.items) == 2

    @pytest.mark.asyncio
    async def test_not_found_kinds(self, db, settings):
        service = DistributionService(db, settings)
        assert (await service.get_batch_stats("nope")).error.kind == "batch_not_found"
        assert (await service.get_sub_list("nope")).error.kind == "sub_list_not_found"
        assert (await service.list_batches("bogus")).error.kind == "invalid_status"
