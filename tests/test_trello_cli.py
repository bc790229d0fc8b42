import json
import logging

import pytest
import requests

import trello_cli
from conftest import make_response
from rate_limiter import create_trello_rate_limiter
from trello_api_client import TrelloAPIClient


@pytest.fixture
def client(trello_config, fake_clock):
    limiter = create_trello_rate_limiter(trello_config.rate_limit_windows, clock=fake_clock)
    return TrelloAPIClient(trello_config, rate_limiter=limiter)


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("TRELLO_API_KEY", "key")
    monkeypatch.setenv("TRELLO_TOKEN", "token")
    monkeypatch.setenv("TRELLO_BOARD_ID", "board123")


def test_dump_board_writes_lists_with_cards(client, mocker, tmp_path):
    cards = {"l1": [{"id": "c1"}], "l2": [{"id": "c2"}, {"id": "c3"}]}
    mocker.patch.object(client, "get_lists", return_value=[{"id": "l1"}, {"id": "l2"}])
    mocker.patch.object(client, "get_cards_by_list", side_effect=lambda list_id: cards[list_id])
    output = tmp_path / "board.json"

    snapshot = trello_cli.dump_board(client, str(output), max_workers=2)

    assert snapshot == {
        "board_id": "board123",
        "lists": [
            {"id": "l1", "cards": [{"id": "c1"}]},
            {"id": "l2", "cards": [{"id": "c2"}, {"id": "c3"}]},
        ],
    }
    assert json.loads(output.read_text(encoding="utf-8")) == snapshot


def test_dump_board_empty_board(client, mocker, tmp_path):
    mocker.patch.object(client, "get_lists", return_value=[])
    output = tmp_path / "board.json"

    snapshot = trello_cli.dump_board(client, str(output))

    assert snapshot["lists"] == []


@pytest.mark.parametrize("argv, method, args, kwargs", [
    (["lists"], "get_lists", (), {}),
    (["cards", "l1"], "get_cards_by_list", ("l1",), {}),
    (["activity", "--limit", "3"], "get_recent_activity", (), {"limit": 3}),
    (["archive-card", "c1"], "archive_card", ("c1",), {}),
    (["add-list", "Backlog"], "add_list", ("Backlog",), {}),
    (["add-card", "l1", "Title", "--labels", "a", "b"], "add_card", ("l1", "Title"),
     {"description": None, "due_date": None, "labels": ["a", "b"]}),
])
def test_run_command_dispatch(mocker, argv, method, args, kwargs):
    client = mocker.MagicMock(spec=TrelloAPIClient)
    parsed = trello_cli.build_parser().parse_args(argv)

    trello_cli.run_command(client, parsed)

    getattr(client, method).assert_called_once_with(*args, **kwargs)


def test_main_prints_json(env, mocker, capsys):
    mocker.patch("requests.Session.request", return_value=make_response(200, [{"id": "l1"}]))

    assert trello_cli.main(["lists"]) == 0

    assert json.loads(capsys.readouterr().out) == [{"id": "l1"}]


def test_main_reports_api_errors(env, mocker, capsys):
    mocker.patch("requests.Session.request", return_value=make_response(404, "not found"))

    assert trello_cli.main(["cards", "bad-id"]) == 1

    assert "bad-id" in capsys.readouterr().err


def test_main_reports_missing_configuration(monkeypatch, capsys):
    monkeypatch.delenv("TRELLO_API_KEY", raising=False)

    assert trello_cli.main(["lists"]) == 1

    assert "TRELLO_API_KEY" in capsys.readouterr().err


def test_suppress_404_filter(monkeypatch):
    monkeypatch.setattr(trello_cli, "log_level", logging.INFO)
    log_filter = trello_cli.Suppress404Filter()

    def record(name, message):
        return logging.LogRecord(name, logging.ERROR, __file__, 1, message, None, None)

    assert not log_filter.filter(record("trello_api_client", "Error from x: HTTP error: 404 - nope"))
    assert log_filter.filter(record("trello_api_client", "Error from x: HTTP error: 500 - boom"))
    assert log_filter.filter(record("request_executor", "HTTP error: 404"))


@pytest.mark.parametrize("error", [
    requests.exceptions.ConnectionError("connection reset by peer"),
    requests.exceptions.Timeout("read timed out"),
])
def test_main_reports_transport_errors(env, mocker, capsys, error):
    mocker.patch("requests.Session.request", side_effect=error)

    assert trello_cli.main(["lists"]) == 1

    assert str(error) in capsys.readouterr().err
