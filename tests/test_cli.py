"""Tests for longscribe CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import FakeEngine, FakeExtractor, failure, final, scripted
from typer.testing import CliRunner

from longscribe import __version__
from longscribe.cli import app
from longscribe.config import CONFIG_FILENAME
from longscribe.exceptions import DependencyError

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run each command where no longscribe.yaml can be discovered."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def install_fakes(monkeypatch: pytest.MonkeyPatch, engine: FakeEngine, duration: float = 5.0):
    monkeypatch.setattr("longscribe.transcribe.engine.create_engine", lambda config: engine)
    monkeypatch.setattr(
        "longscribe.extract.audio.FFmpegExtractor", lambda: FakeExtractor(duration=duration)
    )


class TestVersion:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestInitCommand:
    def test_init_writes_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["init", "--path", str(tmp_path)])
        assert result.exit_code == 0
        content = (tmp_path / CONFIG_FILENAME).read_text()
        assert "max_chunk_duration: 55.0" in content

    def test_init_fails_if_config_exists(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("language: en\n")
        result = runner.invoke(app, ["init", "--path", str(tmp_path)])
        assert result.exit_code == 1
        assert "already exists" in " ".join(result.output.split())


class TestPlanCommand:
    def test_plan_for_duration(self) -> None:
        result = runner.invoke(app, ["plan", "--duration", "130"])
        assert result.exit_code == 0
        assert "3 window(s)" in result.output
        assert "01:46.00" in result.output

    def test_plan_uses_discovered_config(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text(
            "policy:\n  max_chunk_duration: 30.0\n  chunk_overlap: 0.0\n"
        )
        result = runner.invoke(app, ["plan", "--duration", "90"])
        assert result.exit_code == 0
        assert "3 window(s)" in result.output

    def test_plan_requires_input(self) -> None:
        result = runner.invoke(app, ["plan"])
        assert result.exit_code == 1
        assert "Provide a file or --duration" in result.output

    def test_plan_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["plan", str(tmp_path / "missing.wav")])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_plan_rejects_zero_duration(self) -> None:
        result = runner.invoke(app, ["plan", "--duration", "0"])
        assert result.exit_code == 1

    def test_missing_config_file(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["plan", "--duration", "10", "--config", str(tmp_path / "nope.yaml")]
        )
        assert result.exit_code == 1
        assert "No config file found" in result.output


class TestTranscribeCommand:
    def test_missing_source(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["transcribe", str(tmp_path / "missing.wav")])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_unknown_format(self, source_file: Path) -> None:
        result = runner.invoke(app, ["transcribe", str(source_file), "--format", "srt"])
        assert result.exit_code == 1
        assert "Unknown format" in result.output

    def test_writes_json_transcript(
        self, source_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        engine = FakeEngine(scripted([(0.0, final([("hello", 0.1, 0.5), ("world", 0.6, 1.0)]))]))
        install_fakes(monkeypatch, engine)

        result = runner.invoke(app, ["transcribe", str(source_file), "-l", "en"])

        assert result.exit_code == 0, result.output
        output = source_file.with_name("interview.transcript.json")
        doc = json.loads(output.read_text())
        assert doc["text"] == "hello world"
        assert doc["language"] == "en"
        assert doc["duration_seconds"] == 5.0
        assert "2 words" in result.output

    def test_writes_text_transcript(
        self, source_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        engine = FakeEngine(scripted([(0.0, final([("hallo", 0.1, 0.5)]))]))
        install_fakes(monkeypatch, engine)
        output = tmp_path / "out" / "talk.txt"

        result = runner.invoke(
            app,
            ["transcribe", str(source_file), "-l", "de", "--format", "txt", "-o", str(output)],
        )

        assert result.exit_code == 0, result.output
        assert output.read_text() == "hallo\n"
        assert engine.calls[0].language == "de"

    def test_auto_detect(self, source_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def script(call):
            if not call.options.partial_results:
                confidence = {"fr": 0.9}.get(call.language, 0.1)
                return [(0.0, final([("bonjour", 0.0, 0.4, confidence)]))]
            return [(0.0, final([("bonjour", 0.0, 0.4)]))]

        engine = FakeEngine(script)
        install_fakes(monkeypatch, engine)

        result = runner.invoke(app, ["transcribe", str(source_file), "-a", "-p", "fr"])

        assert result.exit_code == 0, result.output
        doc = json.loads(source_file.with_name("interview.transcript.json").read_text())
        assert doc["language"] == "fr"
        assert doc["detected_language"] == "fr"
        assert "(detected)" in result.output

    def test_cancelled_exits_130(
        self, source_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        engine = FakeEngine(scripted([(0.0, failure("stopped", cancelled=True))]))
        install_fakes(monkeypatch, engine)

        result = runner.invoke(app, ["transcribe", str(source_file), "-l", "en"])

        assert result.exit_code == 130
        assert "cancelled" in result.output

    def test_recognition_failure_exits_1(
        self, source_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        engine = FakeEngine(scripted([(0.0, failure("decoder crashed"))]))
        install_fakes(monkeypatch, engine)

        result = runner.invoke(app, ["transcribe", str(source_file), "-l", "en"])

        assert result.exit_code == 1
        assert "decoder crashed" in result.output

    def test_unsupported_language_exits_1(
        self, source_file: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        install_fakes(monkeypatch, FakeEngine())

        result = runner.invoke(app, ["transcribe", str(source_file), "-l", "xx"])

        assert result.exit_code == 1
        assert "not supported" in result.output


class TestLanguagesCommand:
    def test_lists_support(self, monkeypatch: pytest.MonkeyPatch) -> None:
        engine = FakeEngine(languages=["en", "de"])
        monkeypatch.setattr("longscribe.transcribe.engine.create_engine", lambda config: engine)

        result = runner.invoke(app, ["languages"])

        assert result.exit_code == 0
        assert "English" in result.output
        assert "German" in result.output


class TestDoctorCommand:
    def test_all_checks_pass(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            "longscribe.validation.check_ffmpeg",
            lambda: {"ffmpeg_version": "6.1", "ffprobe_version": "6.1"},
        )
        monkeypatch.setattr(
            "longscribe.validation.check_engine_backend",
            lambda backend: {"backend": backend, "module": "faster_whisper"},
        )

        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 0
        assert "All checks passed" in result.output

    def test_missing_ffmpeg_fails(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def missing():
            raise DependencyError("ffmpeg", "ffmpeg not found in PATH", "apt install ffmpeg")

        monkeypatch.setattr("longscribe.validation.check_ffmpeg", missing)
        monkeypatch.setattr(
            "longscribe.validation.check_engine_backend",
            lambda backend: {"backend": backend, "module": "faster_whisper"},
        )

        result = runner.invoke(app, ["doctor"])

        assert result.exit_code == 1
        assert "Some checks failed" in result.output
