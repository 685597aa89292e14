import io
import json
import subprocess
from unittest import mock

import pytest
import responses

from atm import cli
from atm.network import DEFAULT_REPO_URL, PATH_TO_MANIFEST, TopicManifest

MANIFEST_URL = DEFAULT_REPO_URL + "/" + PATH_TO_MANIFEST


def _topic(name, date, enabled=False, description=None):
    return TopicManifest(
        name=name,
        date=date,
        arch={"all"},
        packages=["pkg-" + name],
        description=description,
        enabled=enabled,
    )


def test_format_timestamp_epoch():
    assert cli.format_timestamp(0) == "1970-01-01"


def test_format_timestamp_next_day():
    assert cli.format_timestamp(86400) == "1970-01-02"


def test_format_timestamp_out_of_range():
    with pytest.raises(ValueError):
        cli.format_timestamp(10**20)


def test_sha256_hex_empty():
    assert cli.sha256_hex(b"") == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )


def test_sha256_hex_shape_and_distinct():
    first = cli.sha256_hex(b"topic-a")
    second = cli.sha256_hex(b"topic-b")
    assert len(first) == 64
    assert set(first) <= set("0123456789abcdef")
    assert first != second
    assert cli.sha256_hex(b"topic-a") == first


def test_needs_root_rejects_normal_user():
    with mock.patch("os.geteuid", return_value=1000):
        with pytest.raises(PermissionError):
            cli.needs_root()


def test_needs_root_accepts_root():
    with mock.patch("os.geteuid", return_value=0):
        assert cli.needs_root() is None


def test_format_manifests_layout():
    out = io.StringIO()
    topics = [
        _topic("short", 0, enabled=True, description="first"),
        _topic("a-much-longer-name", 86400, description="second"),
    ]
    cli.format_manifests(topics, out)
    lines = out.getvalue().splitlines()
    assert len(lines) == 3
    assert lines[0].startswith("  " + cli.HEADER_NAME)
    assert lines[1].startswith("* short")
    assert lines[2].startswith("  a-much-longer-name")
    date_columns = {line.index(d) for line, d in
                    zip(lines[1:], ["1970-01-01", "1970-01-02"])}
    assert date_columns == {lines[0].index(cli.HEADER_DATE)}
    assert lines[1].endswith("first")
    assert lines[2].endswith("second")


def test_format_manifests_bad_date_shows_question_mark():
    out = io.StringIO()
    cli.format_manifests([_topic("x", 10**20)], out)
    row = out.getvalue().splitlines()[1]
    assert "?" in row.split()


def test_build_parser_refresh_options():
    args = cli.build_parser().parse_args(
        ["refresh", "-f", "topics.json", "-c", "abc", "-m", "https://mirror.example.com/"]
    )
    assert args.command == "refresh"
    assert args.filename == "topics.json"
    assert args.checksum == "abc"
    assert args.mirror == "https://mirror.example.com/"


def test_build_parser_add_names():
    args = cli.build_parser().parse_args(["add", "one", "two"])
    assert args.command == "add"
    assert args.names == ["one", "two"]


def test_build_parser_remove_without_names():
    args = cli.build_parser().parse_args(["remove"])
    assert args.names == []


def test_privileged_write_headless(monkeypatch):
    monkeypatch.delenv("DISPLAY", raising=False)
    with mock.patch("os.geteuid", return_value=1000):
        with pytest.raises(RuntimeError, match="graphical"):
            cli.privileged_write_source_list([_topic("t", 0)], "https://m.example.com/")


def test_privileged_write_passes_checksum(monkeypatch):
    monkeypatch.setenv("DISPLAY", ":0")
    seen = {}

    def fake_run(command, **kwargs):
        path = command[command.index("-f") + 1]
        with open(path, "rb") as f:
            seen["payload"] = f.read()
        seen["command"] = command
        return subprocess.CompletedProcess(command, 0, stdout=None, stderr=b"")

    topics = [_topic("alpha", 5, enabled=True, description="d")]
    with mock.patch("os.geteuid", return_value=1000), mock.patch(
        "atm.cli.subprocess.run", side_effect=fake_run
    ):
        cli.privileged_write_source_list(topics, "https://m.example.com/")

    command = seen["command"]
    assert command[0] == "pkexec"
    assert command[command.index("-c") + 1] == cli.sha256_hex(seen["payload"])
    assert command[command.index("-m") + 1] == "https://m.example.com/"
    decoded = [TopicManifest.from_dict(d) for d in json.loads(seen["payload"])]
    assert decoded == topics


def test_privileged_write_authentication_failure(monkeypatch):
    monkeypatch.setenv("DISPLAY", ":0")
    failed = subprocess.CompletedProcess([], 126, stdout=None, stderr=b"dismissed")
    with mock.patch("os.geteuid", return_value=1000), mock.patch(
        "atm.cli.subprocess.run", return_value=failed
    ):
        with pytest.raises(RuntimeError, match="dismissed"):
            cli.privileged_write_source_list([], "https://m.example.com/")


def test_privileged_write_helper_missing(monkeypatch):
    monkeypatch.setenv("DISPLAY", ":0")
    with mock.patch("os.geteuid", return_value=1000), mock.patch(
        "atm.cli.subprocess.run", side_effect=FileNotFoundError("pkexec")
    ):
        with pytest.raises(RuntimeError, match=cli.MSG_SUDO_FAILURE):
            cli.privileged_write_source_list([], "https://m.example.com/")


def test_refresh_topics_requires_root():
    with mock.patch("os.geteuid", return_value=1000):
        with pytest.raises(PermissionError):
            cli.refresh_topics(None, None, None)


def test_refresh_topics_hash_mismatch(tmp_path):
    topic_file = tmp_path / "topics.json"
    topic_file.write_bytes(b"[]")
    with mock.patch("os.geteuid", return_value=0):
        with pytest.raises(ValueError, match="Hash mismatch"):
            cli.refresh_topics(str(topic_file), "0" * 64, "https://m.example.com/")


def test_add_topics_requires_root():
    with mock.patch("os.geteuid", return_value=1000):
        with pytest.raises(PermissionError):
            cli.add_topics(["x"])


def test_remove_topics_requires_root():
    with mock.patch("os.geteuid", return_value=1000):
        with pytest.raises(PermissionError):
            cli.remove_topics(["x"])


def test_main_without_command_returns_failure(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().err


def test_main_reports_error_and_fails(capsys):
    with mock.patch("os.geteuid", return_value=1000):
        assert cli.main(["remove", "x"]) == 1
    assert cli.MSG_NEEDS_ROOT in capsys.readouterr().err


def test_list_topics_shows_manifest(capsys):
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        rsps.add(
            responses.GET,
            MANIFEST_URL,
            json=[
                {"name": "newer-topic", "date": 86400, "arch": ["all"], "packages": []},
                {"name": "older-topic", "date": 0, "arch": ["all"], "packages": []},
            ],
        )
        with mock.patch("platform.machine", return_value="x86_64"):
            cli.list_topics()
    err = capsys.readouterr().err
    assert cli.MSG_TOPIC_TABLE_HINT in err
    assert err.index("older-topic") < err.index("newer-topic")


def test_list_topics_fallback(capsys):
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        rsps.add(responses.GET, MANIFEST_URL, status=500)
        cli.list_topics()
    err = capsys.readouterr().err
    assert cli.MSG_FETCH_ERROR_FALLBACK in err
    assert cli.MSG_TOPIC_TABLE_HINT not in err