#!/usr/bin/env python3
"""
Integration tests for the sales ingestor.

Runs the full record/render pipeline against a real CSV workbook and folder
store, with an in-memory message source and a fake PDF converter.
"""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from sales_ledger.core.errors import ConfigurationError
from sales_ledger.psa.datastore import CsvWorkbook
from sales_ledger.psa.images import RemoteImageFetcher
from sales_ledger.psa.ingestor import RunMode, SalesIngestor
from sales_ledger.psa.ledger import RenderLedger
from sales_ledger.psa.models import SALES_SHEET_HEADER
from sales_ledger.psa.parser import PsaSaleParser
from sales_ledger.psa.renderer import SaleEmailRenderer
from tests.fixtures.psa_samples import (
    FULL_SALE_BODY,
    MISSING_PROCEEDS_BODY,
    SECOND_SALE_BODY,
    DroppingMessageSource,
    FailingMessageSource,
    FakeMessageSource,
    make_message,
)


def sale_messages():
    """Three sale emails, newest first, one missing its proceeds."""
    return [
        make_message("msg-001", body=FULL_SALE_BODY, date=datetime(2024, 3, 6, 9, 15)),
        make_message("msg-002", body=SECOND_SALE_BODY, date=datetime(2024, 3, 5, 8, 0)),
        make_message("msg-003", body=MISSING_PROCEEDS_BODY, date=datetime(2024, 3, 4, 18, 30)),
    ]


def make_renderer(converter):
    session = MagicMock()
    session.get.side_effect = AssertionError("no network in tests")
    return SaleEmailRenderer(fetcher=RemoteImageFetcher(session=session), converter=converter)


def pdf_files(test_config):
    folder = test_config.drive_dir.joinpath(*test_config.sales.folder_path.split("/"))
    return sorted(p.name for p in folder.glob("*.pdf")) if folder.exists() else []


def sheet_rows(workbook, test_config):
    return workbook.get_sheet(test_config.sales.sheet_name).get_values()[1:]


def ledger_ids(workbook, test_config):
    return sorted(RenderLedger.load(workbook, test_config.sales.ledger_sheet_name).ids)


@pytest.mark.integration
class TestFullRun:
    """Record and render a fresh mailbox."""

    def test_first_run_records_and_renders_everything(self, test_config, workbook, folders, converter):
        source = FakeMessageSource(sale_messages())
        ingestor = SalesIngestor(test_config, source, workbook, folders, renderer=make_renderer(converter))

        summary = ingestor.run(RunMode.ALL)

        assert summary.scanned == 3
        assert summary.recorded == 3
        assert summary.partial == 1
        assert summary.rendered == 3
        assert summary.record_failures == 0
        assert summary.render_failures == 0

        rows = sheet_rows(workbook, test_config)
        assert [row[-1] for row in rows] == ["msg-001", "msg-002", "msg-003"]
        assert rows[1][4] == "10.56"
        assert rows[2][4:6] == ["", ""]

        assert pdf_files(test_config) == [
            "2024-03-04 - PSA Sale Cert 0099887766.pdf",
            "2024-03-05 - PSA Sale Cert 4455667788.pdf",
            "2024-03-06 - PSA Sale Cert 12345678.pdf",
        ]
        assert ledger_ids(workbook, test_config) == ["msg-001", "msg-002", "msg-003"]
        assert workbook.notifications[-1] == summary.summary_text()

    def test_second_run_is_a_no_op(self, test_config, workbook, folders, converter):
        renderer = make_renderer(converter)
        SalesIngestor(test_config, FakeMessageSource(sale_messages()), workbook, folders, renderer=renderer).run()
        rows_before = sheet_rows(workbook, test_config)

        summary = SalesIngestor(
            test_config, FakeMessageSource(sale_messages()), workbook, folders, renderer=renderer
        ).run()

        assert summary.scanned == 3
        assert summary.skipped == 3
        assert summary.recorded == 0
        assert summary.rendered == 0
        assert sheet_rows(workbook, test_config) == rows_before
        assert len(pdf_files(test_config)) == 3
        assert ledger_ids(workbook, test_config) == ["msg-001", "msg-002", "msg-003"]

    def test_pagination(self, test_config, workbook, folders, converter):
        source = FakeMessageSource(sale_messages())
        summary = SalesIngestor(test_config, source, workbook, folders, renderer=make_renderer(converter)).run()

        assert source.requests == [(0, 2), (2, 2)]
        assert summary.pages == 2

    def test_empty_mailbox(self, test_config, workbook, folders, converter):
        source = FakeMessageSource([])
        summary = SalesIngestor(test_config, source, workbook, folders, renderer=make_renderer(converter)).run()

        assert summary.scanned == 0
        assert source.requests == [(0, 2)]
        assert ledger_ids(workbook, test_config) == []


@pytest.mark.integration
class TestModes:
    """Record-only and render-only runs."""

    def test_record_only_never_touches_folder_or_ledger(self, test_config, workbook, folders, converter):
        summary = SalesIngestor(
            test_config, FakeMessageSource(sale_messages()), workbook, folders, renderer=make_renderer(converter)
        ).run(RunMode.RECORD)

        assert summary.recorded == 3
        assert summary.rendered == 0
        assert pdf_files(test_config) == []
        assert workbook.get_sheet(test_config.sales.ledger_sheet_name) is None

    def test_render_only_does_not_need_sales_sheet(self, test_config, folders, converter):
        empty_workbook = CsvWorkbook(test_config.workbook_dir)
        summary = SalesIngestor(
            test_config, FakeMessageSource(sale_messages()), empty_workbook, folders, renderer=make_renderer(converter)
        ).run(RunMode.RENDER)

        assert summary.rendered == 3
        assert summary.recorded == 0
        assert empty_workbook.get_sheet(test_config.sales.sheet_name) is None
        assert len(pdf_files(test_config)) == 3

    def test_render_then_record_fills_the_other_ledger(self, test_config, workbook, folders, converter):
        renderer = make_renderer(converter)
        SalesIngestor(test_config, FakeMessageSource(sale_messages()), workbook, folders, renderer=renderer).run(
            RunMode.RENDER
        )

        summary = SalesIngestor(
            test_config, FakeMessageSource(sale_messages()), workbook, folders, renderer=renderer
        ).run(RunMode.ALL)

        assert summary.recorded == 3
        assert summary.rendered == 0
        assert len(pdf_files(test_config)) == 3


@pytest.mark.integration
class TestFailureIsolation:
    """A failure in one action never blocks the other or later messages."""

    def test_render_failure_keeps_record_and_retries_next_run(self, test_config, workbook, folders, converter):
        def flaky_converter(document_html):
            if "4455667788" in document_html:
                raise OSError("converter crashed")
            return converter(document_html)

        summary = SalesIngestor(
            test_config,
            FakeMessageSource(sale_messages()),
            workbook,
            folders,
            renderer=make_renderer(flaky_converter),
        ).run()

        assert summary.recorded == 3
        assert summary.rendered == 2
        assert summary.render_failures == 1
        assert any("msg-002" in error for error in summary.errors)
        assert ledger_ids(workbook, test_config) == ["msg-001", "msg-003"]

        retry = SalesIngestor(
            test_config, FakeMessageSource(sale_messages()), workbook, folders, renderer=make_renderer(converter)
        ).run()

        assert retry.recorded == 0
        assert retry.rendered == 1
        assert ledger_ids(workbook, test_config) == ["msg-001", "msg-002", "msg-003"]

    def test_record_failure_still_renders(self, test_config, workbook, folders, converter):
        class FailingParser(PsaSaleParser):
            def parse(self, message):
                if message.message_id == "msg-002":
                    raise RuntimeError("unexpected parser fault")
                return super().parse(message)

        summary = SalesIngestor(
            test_config,
            FakeMessageSource(sale_messages()),
            workbook,
            folders,
            renderer=make_renderer(converter),
            parser=FailingParser(),
        ).run()

        assert summary.recorded == 2
        assert summary.record_failures == 1
        assert summary.rendered == 3
        assert [row[-1] for row in sheet_rows(workbook, test_config)] == ["msg-001", "msg-003"]

    def test_unparseable_message_is_counted_not_recorded(self, test_config, workbook, folders, converter):
        parser = MagicMock()
        parser.parse.return_value = None

        summary = SalesIngestor(
            test_config,
            FakeMessageSource(sale_messages()[:1]),
            workbook,
            folders,
            renderer=make_renderer(converter),
            parser=parser,
        ).run(RunMode.RECORD)

        assert summary.recorded == 0
        assert summary.record_failures == 1
        assert sheet_rows(workbook, test_config) == []


    def test_source_failure_keeps_rendered_ids(self, test_config, workbook, folders, converter):
        renderer = make_renderer(converter)
        source = FailingMessageSource(sale_messages())

        with pytest.raises(OSError, match="connection reset"):
            SalesIngestor(test_config, source, workbook, folders, renderer=renderer).run()

        assert source.requests == [(0, 2), (2, 2)]
        assert ledger_ids(workbook, test_config) == ["msg-001", "msg-002"]
        files_before = pdf_files(test_config)
        assert len(files_before) == 2

        summary = SalesIngestor(
            test_config, FakeMessageSource(sale_messages()), workbook, folders, renderer=renderer
        ).run()

        assert summary.rendered == 1
        assert summary.recorded == 1
        assert len(pdf_files(test_config)) == 3
        assert not any("(2)" in name for name in pdf_files(test_config))
        assert set(files_before) < set(pdf_files(test_config))

    def test_unreadable_message_does_not_stop_paging(self, test_config, workbook, folders, converter):
        source = DroppingMessageSource(sale_messages(), unreadable_ids={"msg-002"})

        summary = SalesIngestor(test_config, source, workbook, folders, renderer=make_renderer(converter)).run()

        assert source.requests == [(0, 2), (2, 2)]
        assert summary.scanned == 2
        assert summary.unreadable == 1
        assert [row[-1] for row in sheet_rows(workbook, test_config)] == ["msg-001", "msg-003"]
        assert ledger_ids(workbook, test_config) == ["msg-001", "msg-003"]

@pytest.mark.integration
class TestCaps:
    """Per-action caps bound the work done by one run."""

    def test_cap_limits_each_action(self, test_config, workbook, folders, converter):
        config = test_config.with_overrides(max_per_run=2)

        summary = SalesIngestor(
            config, FakeMessageSource(sale_messages()), workbook, folders, renderer=make_renderer(converter)
        ).run()

        assert summary.recorded == 2
        assert summary.rendered == 2
        assert summary.scanned == 2

        second = SalesIngestor(
            config, FakeMessageSource(sale_messages()), workbook, folders, renderer=make_renderer(converter)
        ).run()

        assert second.recorded == 1
        assert second.rendered == 1
        assert [row[-1] for row in sheet_rows(workbook, test_config)] == ["msg-001", "msg-002", "msg-003"]

    def test_cap_reached_stops_paging(self, test_config, workbook, folders, converter):
        config = test_config.with_overrides(max_per_run=1)
        source = FakeMessageSource(sale_messages())

        SalesIngestor(config, source, workbook, folders, renderer=make_renderer(converter)).run()

        assert source.requests == [(0, 2)]


@pytest.mark.integration
class TestConfigurationFaults:
    """Configuration faults abort before any message is processed."""

    def test_missing_sales_sheet(self, test_config, folders, converter):
        source = FakeMessageSource(sale_messages())
        ingestor = SalesIngestor(
            test_config, source, CsvWorkbook(test_config.workbook_dir), folders, renderer=make_renderer(converter)
        )

        with pytest.raises(ConfigurationError, match='Missing sheet named "PSA Sales"'):
            ingestor.run()
        assert source.requests == []

    def test_missing_label(self, test_config, workbook, folders, converter):
        source = FakeMessageSource(sale_messages(), labels=("Other",))
        ingestor = SalesIngestor(test_config, source, workbook, folders, renderer=make_renderer(converter))

        with pytest.raises(ConfigurationError, match='Label "PSA Sales" not found'):
            ingestor.run()
        assert source.requests == []
        assert sheet_rows(workbook, test_config) == []

    def test_sheet_header_is_untouched(self, test_config, workbook, folders, converter):
        SalesIngestor(
            test_config, FakeMessageSource(sale_messages()), workbook, folders, renderer=make_renderer(converter)
        ).run()
        assert workbook.get_sheet(test_config.sales.sheet_name).get_values()[0] == SALES_SHEET_HEADER
