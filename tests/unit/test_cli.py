"""Tests for the jobworker CLI."""

import argparse
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from jobworker import cli
from jobworker.jobs.errors import ClaimError
from jobworker.jobs.models import RunSummary


class TestParser:
    def test_run_once_batch_size(self):
        args = cli.build_parser().parse_args(["run-once", "-b", "50"])
        assert args.command == "run-once"
        assert args.batch_size == 50

    def test_reconcile_limit(self):
        args = cli.build_parser().parse_args(["reconcile-webhooks", "--limit", "10"])
        assert args.limit == 10

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_every_command_dispatchable(self):
        parser = cli.build_parser()
        for command in cli.COMMANDS:
            assert parser.parse_args([command]).command == command


class TestCommands:
    @pytest.mark.asyncio
    async def test_run_once_prints_summary(self, settings, capsys):
        with patch.object(cli, "WorkerRunner") as MockRunner:
            MockRunner.return_value.run_once = AsyncMock(
                return_value=RunSummary(run_id=None, processed=1, succeeded=1)
            )
            code = await cli.cmd_run_once(argparse.Namespace(batch_size=3), MagicMock(), settings)

        assert code == 0
        MockRunner.return_value.run_once.assert_awaited_once_with(3)
        assert '"processed": 1' in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_run_once_claim_failure_exit_code(self, settings):
        with patch.object(cli, "WorkerRunner") as MockRunner:
            MockRunner.return_value.run_once = AsyncMock(side_effect=ClaimError("down"))
            code = await cli.cmd_run_once(argparse.Namespace(batch_size=None), MagicMock(), settings)

        assert code == 1

    @pytest.mark.asyncio
    async def test_dispatch_closes_pool(self):
        pool = MagicMock()
        pool.close = AsyncMock()
        command = AsyncMock(return_value=0)

        with patch.object(cli, "create_db_pool", AsyncMock(return_value=pool)), patch.dict(
            cli.COMMANDS, {"schedule": command}
        ):
            code = await cli._dispatch(argparse.Namespace(command="schedule"))

        assert code == 0
        pool.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_dispatch_db_failure(self):
        with patch.object(cli, "create_db_pool", AsyncMock(side_effect=OSError("refused"))):
            code = await cli._dispatch(argparse.Namespace(command="schedule"))
        assert code == 1
