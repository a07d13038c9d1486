"""
Unit tests for the operational CLI.

Commands run against an in-memory store through cli.run().
"""

import logging

import json_log_formatter
import pytest

from dbaas.bottomless.config import ObservabilityConfig
from dbaas.bottomless.tools import cli
from dbaas.bottomless.tools.cli import build_parser, main, run, setup_logging
from tests.conftest import make_page, utc


def parse(*argv):
    return build_parser().parse_args(list(argv))


@pytest.fixture
def generations(seed_generation):
    return {
        "jan": seed_generation("mydb", utc(2023, 1, 1), {0: make_page(1), 1: make_page(2)}),
        "jun": seed_generation("mydb", utc(2023, 6, 1), {0: make_page(3)}),
    }


class TestLs:
    """Tests for the ls command."""

    @pytest.mark.asyncio
    async def test_lists_newest_first(self, store, generations, capsys):
        status = await run(parse("-d", "mydb", "ls"), store)

        lines = capsys.readouterr().out.splitlines()
        assert status == 0
        assert lines == [str(generations["jun"]), str(generations["jan"])]

    @pytest.mark.asyncio
    async def test_autodetects_database(self, store, generations, capsys):
        status = await run(parse("ls", "-l", "1"), store)

        assert status == 0
        assert capsys.readouterr().out.splitlines() == [str(generations["jun"])]

    @pytest.mark.asyncio
    async def test_autodetect_failure(self, store, capsys):
        status = await run(parse("ls"), store)

        assert status == 0
        assert "Could not autodetect the database" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_date_filter(self, store, generations, capsys):
        await run(parse("-d", "mydb", "ls", "--older-than", "2023-03-01"), store)

        assert capsys.readouterr().out.splitlines() == [str(generations["jan"])]

    @pytest.mark.asyncio
    async def test_no_generations(self, store, generations, capsys):
        await run(parse("-d", "otherdb", "ls"), store)

        assert "No generations found" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_verbose(self, store, generations, capsys):
        await run(parse("-d", "mydb", "ls", "-v"), store)

        out = capsys.readouterr().out
        assert "created at (UTC):     2023-06-01 12:00:00" in out
        assert "consistent WAL frame: 0" in out
        assert "no main database snapshot file found" in out

    @pytest.mark.asyncio
    async def test_single_generation(self, store, generations, capsys):
        await run(parse("-d", "mydb", "ls", "-g", str(generations["jan"])), store)

        out = capsys.readouterr().out
        assert f"Generation {generations['jan']} for mydb" in out
        assert "change counter:       None" in out


class TestRestore:
    """Tests for the restore command."""

    @pytest.mark.asyncio
    async def test_restore_latest(self, store, generations, tmp_path, capsys):
        target = tmp_path / "restored.db"

        status = await run(parse("-d", "mydb", "restore", "-o", str(target)), store)

        assert status == 0
        assert target.read_bytes() == make_page(3)
        out = capsys.readouterr().out
        assert "Restore completed successfully" in out
        assert f"Generation: {generations['jun']}" in out

    @pytest.mark.asyncio
    async def test_restore_generation(self, store, generations, tmp_path):
        target = tmp_path / "restored.db"

        await run(
            parse("-d", "mydb", "restore", "-g", str(generations["jan"]), "-o", str(target)),
            store,
        )

        assert target.read_bytes() == make_page(1) + make_page(2)

    @pytest.mark.asyncio
    async def test_restore_failure(self, store, tmp_path, capsys):
        status = await run(parse("-d", "mydb", "restore", "-o", str(tmp_path / "x")), store)

        assert status == 1
        assert "Restore failed" in capsys.readouterr().out


class TestRm:
    """Tests for the rm command."""

    @pytest.mark.asyncio
    async def test_rm_generation(self, store, generations, capsys):
        await run(parse("-d", "mydb", "rm", "-g", str(generations["jan"])), store)

        assert "Removed 2 objects" in capsys.readouterr().out
        assert store.get_object_count(f"mydb-{generations['jan']}/") == 0

    @pytest.mark.asyncio
    async def test_rm_missing_generation(self, store, generations, clock, capsys):
        await run(parse("-d", "mydb", "rm", "-g", str(clock.mint())), store)

        assert "No objects found" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_rm_older_than(self, store, generations, capsys):
        await run(parse("-d", "mydb", "rm", "--older-than", "2023-03-01"), store)

        assert "Removed 1 generations" in capsys.readouterr().out
        assert store.get_object_count() == 1

    @pytest.mark.asyncio
    async def test_rm_without_parameters(self, store, generations, capsys):
        status = await run(parse("-d", "mydb", "rm"), store)

        assert status == 0
        assert "cannot be run without parameters" in capsys.readouterr().out
        assert store.get_object_count() == 3


class TestParser:
    """Tests for argument parsing."""

    def test_invalid_date(self):
        with pytest.raises(SystemExit):
            parse("ls", "--older-than", "yesterday")

    def test_generation_conflicts_with_filters(self):
        with pytest.raises(SystemExit):
            main(["ls", "-g", "6f9c2c66-1f3a-11ee-9c4e-0242ac120002", "-l", "3"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse("-d", "mydb")


class TestLogging:
    """Tests for logging setup."""

    @pytest.fixture
    def root_logger(self, monkeypatch):
        root = logging.getLogger()
        monkeypatch.setattr(root, "handlers", list(root.handlers))
        monkeypatch.setattr(root, "level", root.level)
        for name in ("LOG_LEVEL", "LOG_FORMAT", "LIBSQL_BOTTOMLESS_PAGE_SIZE"):
            monkeypatch.delenv(name, raising=False)
        return root

    def test_json_format(self, root_logger):
        setup_logging(ObservabilityConfig(log_level="WARNING", log_format="json"))

        assert root_logger.level == logging.WARNING
        assert isinstance(root_logger.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_verbose_flag_does_not_change_log_level(self, root_logger, monkeypatch):
        async def fake_main(args, config):
            assert args.verbose
            return 0

        monkeypatch.setattr(cli, "_main", fake_main)

        with pytest.raises(SystemExit) as exc_info:
            main(["-d", "mydb", "ls", "-v"])

        assert exc_info.value.code == 0
        assert root_logger.level == logging.INFO
