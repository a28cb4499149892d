"""NotificationDispatcher tests — recipient strategies and message content."""

import pytest

from checkrun_workflow.errors import TransportError
from checkrun_workflow.models.report import ReportArtifact, ReportContent, ResultLine
from checkrun_workflow.notify.dispatcher import RecipientPolicy, RecipientStrategy

from fakes import build_workflow


def _artifact():
    content = ReportContent(
        title="Test Report for Alice",
        tester_name="Alice",
        test_run_id="run-a",
        report_date="2026-10-19",
        narrative="...",
        results=[
            ResultLine(test_number=1, title="Login", approved=True),
            ResultLine(test_number=2, title="Checkout", approved=False, remark="x"),
        ],
    )
    return ReportArtifact(
        filename="Alice_test_report.zip",
        media_type="application/zip",
        data=b"PK\x03\x04",
        content=content,
    )


async def _alert(dispatcher, db, **overrides):
    kwargs = dict(
        test_run_id="run-a",
        tester_name="Alice",
        instruction_title="Checkout",
        test_number=2,
        remark="layout broken",
    )
    kwargs.update(overrides)
    return await dispatcher.send_rejection_alert(db, **kwargs)


class TestRecipientResolution:
    @pytest.mark.asyncio
    async def test_settings_strategy_reads_settings_row(self, wf, mock_db, transport):
        assert await _alert(wf.dispatcher, mock_db) == "qa-lead@example.com"
        assert await wf.dispatcher.send_report(
            mock_db, tester_name="Alice", artifact=_artifact(),
        ) == "reports@example.com"

    @pytest.mark.asyncio
    async def test_fixed_strategy_ignores_settings(self, store, mock_db, transport):
        policy = RecipientPolicy(
            rejection_strategy=RecipientStrategy.FIXED,
            rejection_address="oncall@example.com",
        )
        wf = build_workflow(store, transport, policy=policy)
        assert await _alert(wf.dispatcher, mock_db) == "oncall@example.com"
        # Report trigger still uses its own (settings) strategy
        assert await wf.dispatcher.send_report(
            mock_db, tester_name="Alice", artifact=_artifact(),
        ) == "reports@example.com"

    @pytest.mark.asyncio
    async def test_fixed_strategy_without_address(self, store, mock_db, transport):
        policy = RecipientPolicy(report_strategy=RecipientStrategy.FIXED)
        wf = build_workflow(store, transport, policy=policy)
        with pytest.raises(TransportError, match="strategy=fixed"):
            await wf.dispatcher.send_report(
                mock_db, tester_name="Alice", artifact=_artifact(),
            )
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_settings_never_saved(self, wf, mock_db, store, transport):
        store.settings = None
        with pytest.raises(TransportError, match="rejection_email"):
            await _alert(wf.dispatcher, mock_db)

    @pytest.mark.asyncio
    async def test_settings_read_failure(self, wf, mock_db):
        wf.repos.settings.fail_on("get")
        with pytest.raises(TransportError, match="Could not read"):
            await _alert(wf.dispatcher, mock_db)


class TestMessages:
    @pytest.mark.asyncio
    async def test_rejection_alert_body(self, wf, mock_db, transport):
        await _alert(wf.dispatcher, mock_db, remark="<script>alert(1)</script>")
        message = transport.sent[0]
        assert message.subject == "Test Rejected for Alice"
        assert "Test number: 2" in message.text
        assert "<script>alert(1)</script>" in message.text
        assert "&lt;script&gt;" in message.html, "HTML body must be escaped"
        assert message.attachments == ()

    @pytest.mark.asyncio
    async def test_report_attaches_artifact(self, wf, mock_db, transport):
        artifact = _artifact()
        await wf.dispatcher.send_report(mock_db, tester_name="Alice", artifact=artifact)
        message = transport.sent[0]
        assert message.subject == "Test Report: Alice"
        assert "1 passed, 1 failed" in message.text
        (attachment,) = message.attachments
        assert attachment.filename == "Alice_test_report.zip"
        assert attachment.media_type == "application/zip"
        assert attachment.data == artifact.data
