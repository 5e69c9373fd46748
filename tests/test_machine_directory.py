"""
Tests for the API client and the Machine Directory cache.

Covers:
1. Authenticated requests (cookie, ensure-before-request, errors)
2. Token rotation hook
3. Fleet listing + snapshot file
4. Current-state fetch
5. Explicit startup token

Run: python -m pytest tests/test_machine_directory.py -v
"""

import json

import pytest
import requests

from conftest import NOW
from unicum.credential_manager import CredentialManager
from unicum.errors import CacheError, UpstreamError
from unicum.machine_directory import MachineDirectory, MACHINES_CACHE_FILE
from unicum.unicum_client import UnicumClient


def machine(machine_id, name, online=True):
    return {
        "id": machine_id,
        "guid": f"guid-{machine_id}",
        "serial": f"SN{machine_id}",
        "comment": name,
        "device": {"status": {"removed": False, "online": online}},
    }


LISTING = {
    "user": {"login": "operator", "token": "rotated-1"},
    "company": "ACME Vending",
    "machines": [machine(1, "Lobby-1"), machine(2, "Canteen", online=False)],
}


@pytest.fixture
def manager(config, session):
    manager = CredentialManager(config, session=session, clock=lambda: NOW)
    manager.accept_rotated_token("initial")
    return manager


@pytest.fixture
def client(config, manager, session):
    return UnicumClient(config, manager, session=session)


@pytest.fixture
def directory(client, cache_dir):
    return MachineDirectory(client, cache_dir)


# ============================================================
# 1. Authenticated Requests
# ============================================================

class TestClientRequests:

    def test_get_machines_sends_cookie(self, client, session, make_response):
        session.request.return_value = make_response(200, json_body=LISTING)

        client.get_machines()

        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "GET"
        assert kwargs["url"] == "https://telemetry.example.com/nvmc/api/getmachines.json"
        assert kwargs["headers"]["Cookie"] == "nvmc_login=initial"

    def test_base_url_without_trailing_slash(self, config, manager, session, make_response):
        config["unicum"]["base_url"] = "https://telemetry.example.com/nvmc/api"
        client = UnicumClient(config, manager, session=session)
        session.request.return_value = make_response(200, json_body=LISTING)

        client.get_machines()

        assert session.request.call_args.kwargs["url"].endswith("/nvmc/api/getmachines.json")

    def test_logs_in_when_no_valid_token(self, config, session, make_response):
        manager = CredentialManager(config, session=session, clock=lambda: NOW)
        client = UnicumClient(config, manager, session=session)
        session.post.return_value = make_response(200, cookies={"nvmc_login": "login-token"})
        session.request.return_value = make_response(200, json_body=LISTING)

        client.get_machines()

        assert session.post.call_count == 1
        assert session.request.call_args.kwargs["headers"]["Cookie"] == "nvmc_login=login-token"

    def test_error_status_raises(self, client, session, make_response):
        session.request.return_value = make_response(502, text="bad gateway")

        with pytest.raises(UpstreamError) as exc_info:
            client.get_machines()

        assert exc_info.value.status_code == 502

    def test_network_error_raises(self, client, session):
        session.request.side_effect = requests.exceptions.Timeout()

        with pytest.raises(UpstreamError):
            client.get_machines()

    def test_non_json_body_raises(self, client, session, make_response):
        session.request.return_value = make_response(200, text="<html>")

        with pytest.raises(UpstreamError):
            client.get_machines()

    @pytest.mark.parametrize("body", [None, [], ["machines"], "ok", 42])
    def test_json_body_that_is_not_an_object_raises(self, client, manager, session, make_response, body):
        response = make_response(200, json_body={})
        response.json.return_value = body
        session.request.return_value = response

        with pytest.raises(UpstreamError) as exc_info:
            client.get_machines()

        assert exc_info.value.status_code == 200
        assert manager.token == "initial"


# ============================================================
# 2. Rotation Hook
# ============================================================

class TestRotationHook:

    def test_rotated_token_adopted_and_persisted(self, client, manager, session, make_response):
        session.request.return_value = make_response(200, json_body=LISTING)

        client.get_machines()

        assert manager.token == "rotated-1"
        assert manager.token_store.load().token == "rotated-1"

    def test_failed_call_does_not_rotate(self, client, manager, session, make_response):
        session.request.return_value = make_response(500, json_body={"user": {"token": "nope"}})

        with pytest.raises(UpstreamError):
            client.get_machines()

        assert manager.token == "initial"

    def test_response_without_token_keeps_current(self, client, manager, session, make_response):
        session.request.return_value = make_response(200, json_body={"machines": []})

        client.get_machines()

        assert manager.token == "initial"

    def test_extra_hooks_receive_body(self, client, session, make_response):
        seen = []
        client.response_hooks.append(seen.append)
        session.request.return_value = make_response(200, json_body=LISTING)

        client.get_machines()

        assert seen == [LISTING]


# ============================================================
# 3. Machine Directory
# ============================================================

class TestMachineDirectory:

    def test_list_machines_returns_models(self, directory, session, make_response):
        session.request.return_value = make_response(200, json_body=LISTING)

        machines = directory.list_machines()

        assert [m.id for m in machines] == [1, 2]
        assert machines[0].guid == "guid-1"
        assert machines[0].comment == "Lobby-1"
        assert machines[0].online is True
        assert machines[1].online is False

    def test_list_machines_writes_snapshot(self, directory, session, cache_dir, make_response):
        session.request.return_value = make_response(200, json_body=LISTING)

        directory.list_machines()

        with open(cache_dir / MACHINES_CACHE_FILE) as f:
            assert json.load(f) == LISTING

    def test_every_call_is_live(self, directory, session, make_response):
        session.request.return_value = make_response(200, json_body=LISTING)

        directory.list_machines()
        directory.list_machines()

        assert session.request.call_count == 2

    def test_failed_listing_leaves_snapshot(self, directory, session, make_response):
        session.request.return_value = make_response(200, json_body=LISTING)
        directory.list_machines()
        session.request.return_value = make_response(500)

        with pytest.raises(UpstreamError):
            directory.list_machines()

        assert directory.load_snapshot() == LISTING

    @pytest.mark.parametrize("machines", [
        [{"id": 1, "comment": "no guid"}],
        [{"guid": "guid-1", "comment": "no id"}],
        [{"id": "one", "guid": "guid-1"}],
        ["guid-1"],
        {"1": {"id": 1, "guid": "guid-1"}},
    ])
    def test_malformed_machine_entry_raises(self, directory, session, make_response, machines):
        session.request.return_value = make_response(200, json_body=LISTING)
        directory.list_machines()
        session.request.return_value = make_response(200, json_body={"machines": machines})

        with pytest.raises(UpstreamError):
            directory.list_machines()

        assert directory.load_snapshot() == LISTING

    def test_load_snapshot_missing(self, directory):
        assert directory.load_snapshot() is None

    def test_load_snapshot_corrupt(self, directory, cache_dir):
        cache_dir.mkdir(parents=True, exist_ok=True)
        (cache_dir / MACHINES_CACHE_FILE).write_text("[[[")

        with pytest.raises(CacheError):
            directory.load_snapshot()

    def test_machine_name(self, directory, session, make_response):
        session.request.return_value = make_response(200, json_body=LISTING)
        directory.list_machines()

        assert directory.machine_name(2) == "Canteen"
        assert directory.machine_name("1") == "Lobby-1"
        assert directory.machine_name(99) is None


# ============================================================
# 4. Current State
# ============================================================

class TestCurrentState:

    def test_posts_machine_guid(self, client, session, make_response):
        session.request.return_value = make_response(200, json_body={
            "user": {"token": "rotated-2"},
            "bills": 12345,
            "products": [{"selection": "0A", "name": "Water", "vends": 4}],
        })

        state = client.get_current_state("guid-1")

        kwargs = session.request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"].endswith("/curstate.json")
        assert kwargs["json"] == {"machineguid": "guid-1"}
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert state.machine_guid == "guid-1"
        assert state.bills == 12345
        assert state.products[0].name == "Water"
        assert client.credentials.token == "rotated-2"

    @pytest.mark.parametrize("body", [
        {"products": [{"name": "no selection", "vends": 1}]},
        {"products": [{"selection": "0A", "vends": "many"}]},
        {"products": ["0A"]},
        {"bills": {"total": 5}},
    ])
    def test_malformed_state_raises(self, client, session, make_response, body):
        session.request.return_value = make_response(200, json_body=body)

        with pytest.raises(UpstreamError) as exc_info:
            client.get_current_state("guid-1")

        assert exc_info.value.url.endswith("/curstate.json")


# ============================================================
# 5. Explicit startup token
# ============================================================

class TestExplicitStartupToken:

    def test_first_call_after_init_token_logs_in(self, config, session, make_response):
        """A token passed to init() is never sent; the first API call logs in first."""
        manager = CredentialManager(config, session=session, clock=lambda: NOW).init("given")
        client = UnicumClient(config, manager, session=session)
        session.post.return_value = make_response(200, cookies={"nvmc_login": "login-token"})
        session.request.return_value = make_response(200, json_body={"machines": []})

        client.get_machines()

        assert session.post.call_count == 1
        assert session.request.call_args.kwargs["headers"]["Cookie"] == "nvmc_login=login-token"
