"""Tests for esdev.cli — argument parsing and the ``serve`` command."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from esdev.app import DevServer
from esdev.cli import main


class TestCLIHelp:
    def test_help_exits_zero(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])
        assert exc_info.value.code == 0

    def test_serve_help_exits_zero(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["serve", "--help"])
        assert exc_info.value.code == 0

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "serve" in capsys.readouterr().out

    def test_bad_log_level(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["serve", "--log-level", "loud"])
        assert exc_info.value.code == 2


class TestServe:
    @patch("esdev.server.dev.run_dev_server")
    def test_defaults(self, mock_server: MagicMock, tmp_path: Path) -> None:
        main(["serve", "--root-dir", str(tmp_path)])
        mock_server.assert_called_once()
        args, kwargs = mock_server.call_args
        server = args[0]
        assert isinstance(server, DevServer)
        assert args[1] == "127.0.0.1"
        assert args[2] == 8000
        assert kwargs["log_level"] == "info"
        assert server.config.root == tmp_path
        assert server.config.watch is False
        assert server.resolver is None

    @patch("esdev.server.dev.run_dev_server")
    def test_flags(self, mock_server: MagicMock, tmp_path: Path) -> None:
        main(
            [
                "serve",
                "--root-dir",
                str(tmp_path),
                "--app-index",
                "index.html",
                "--node-resolve",
                "--watch",
                "--cors",
                "--host",
                "0.0.0.0",
                "--port",
                "3000",
                "--log-level",
                "debug",
            ]
        )
        args, kwargs = mock_server.call_args
        config = args[0].config
        assert args[1:] == ("0.0.0.0", 3000)
        assert kwargs["log_level"] == "debug"
        assert config.app_index == "index.html"
        assert config.node_resolve and config.watch and config.cors
        assert args[0].resolver is not None

    @patch("esdev.server.dev.run_dev_server")
    def test_missing_root_exits_1(
        self,
        mock_server: MagicMock,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["serve", "--root-dir", str(tmp_path / "missing")])
        assert exc_info.value.code == 1
        assert "Error:" in capsys.readouterr().err
        mock_server.assert_not_called()

    @patch("esdev.server.dev.run_dev_server")
    def test_app_index_outside_root_exits_1(self, mock_server: MagicMock, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["serve", "--root-dir", str(tmp_path), "--app-index", "../x.html"])
        assert exc_info.value.code == 1
        mock_server.assert_not_called()
