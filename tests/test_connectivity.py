"""Tests for the connectivity gate."""

from unittest.mock import MagicMock

import requests

from job_board.sync.connectivity import HttpCheckGate, StaticGate


def gate_with(status=None, error=None):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = MagicMock(status_code=status)
    return HttpCheckGate("https://check.test/generate_204", timeout=1.0, session=session)


class TestHttpCheckGate:
    def test_204_is_reachable(self):
        assert gate_with(status=204).is_reachable()

    def test_captive_portal_is_not_reachable(self):
        assert not gate_with(status=200).is_reachable()
        assert not gate_with(status=302).is_reachable()

    def test_network_error_is_not_reachable(self):
        assert not gate_with(error=requests.ConnectionError("no route")).is_reachable()

    def test_evaluated_on_every_call(self):
        gate = gate_with(status=204)
        gate.is_reachable()
        gate.is_reachable()
        assert gate.session.get.call_count == 2


class TestStaticGate:
    def test_flip(self):
        gate = StaticGate(online=False)
        assert not gate.is_reachable()
        gate.online = True
        assert gate.is_reachable()
        assert gate.checks == 2
