"""
backend/tests/test_session_storage.py

Purpose:
    Session blob store contract (decode/encode failures never raise) and the
    two-key draft store.
"""

from __future__ import annotations

import logging

from netprophet.services.session_storage_service import DraftStore, SessionKeys, SessionStorage


def test_session_keys_match_client_names():
    keys = SessionKeys.for_prefix()
    assert keys.predictions == "netprophet_predictions"
    assert keys.outrights_predictions == "netprophet_outrights_predictions"
    assert keys.slip_collapsed == "netprophet_slip_collapsed"
    assert keys.form_predictions == "netprophet_form_predictions"
    assert keys.wallet == "netprophet_wallet"
    assert keys.draft_key("17") == "netprophet_form_predictions_17"


def test_get_returns_default_for_missing_and_corrupt_values(caplog):
    backend = {"netprophet_wallet": "{not json"}
    storage = SessionStorage(backend)

    assert storage.get("missing", {"a": 1}) == {"a": 1}
    with caplog.at_level(logging.WARNING, logger="netprophet.session_storage"):
        assert storage.get("netprophet_wallet", "fallback") == "fallback"
    assert "netprophet_wallet" in caplog.text


def test_set_swallows_unserializable_values(caplog):
    storage = SessionStorage()
    with caplog.at_level(logging.WARNING, logger="netprophet.session_storage"):
        storage.set("bad", {"value": object()})
    assert "bad" not in storage
    assert "Failed to save" in caplog.text


def test_round_trip_and_clear():
    backend: dict[str, str] = {}
    storage = SessionStorage(backend)
    storage.set("a", [1, 2])
    storage.set("b", True)
    assert backend["a"] == "[1, 2]"
    assert storage.get("b") is True

    storage.clear(("a",))
    assert storage.keys() == ["b"]
    storage.clear()
    assert storage.keys() == []


def test_draft_store_writes_and_reads_both_keys():
    storage = SessionStorage()
    keys = SessionKeys.for_prefix()
    drafts = DraftStore(storage, keys)

    drafts.save("7", {"winner": "Alcaraz"})
    assert storage.get(keys.draft_key("7")) == {"winner": "Alcaraz"}
    assert storage.get(keys.form_predictions) == {"7": {"winner": "Alcaraz"}}

    # consolidated map is the fallback when the individual key is gone
    storage.remove(keys.draft_key("7"))
    assert drafts.load("7") == {"winner": "Alcaraz"}

    drafts.clear("7")
    assert drafts.load("7") is None
    assert not drafts.has_any()


def test_clear_all_keeps_outrights_drafts():
    storage = SessionStorage()
    keys = SessionKeys.for_prefix()
    drafts = DraftStore(storage, keys)
    drafts.save("1", {"winner": "A"})
    drafts.save("2", {"winner": "B"})
    storage.set(f"{keys.form_predictions}_outrights_wimbledon", {"tournamentWinner": "A"})

    drafts.clear_all()

    assert not drafts.has_any()
    assert storage.keys() == [f"{keys.form_predictions}_outrights_wimbledon"]
