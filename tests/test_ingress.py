"""Tests for the update ingress."""

from unittest.mock import MagicMock

import pytest

from byteside.exceptions import InvalidStateError
from byteside.models import CANONICAL_STATES
from byteside.server.ingress import IngressResult, UpdateIngress, legal_state_set
from byteside.state import StateStore


class TestLegalStateSet:
    """Test legal_state_set."""

    def test_canonical_only(self):
        """With no extras the canonical states come back in order."""
        assert legal_state_set() == list(CANONICAL_STATES)

    def test_extras_sorted_after_canonical(self):
        """Custom labels follow the canonical ones, sorted and deduplicated."""
        result = legal_state_set(["zapping", "idle", "dancing", "zapping"])

        assert result == [*CANONICAL_STATES, "dancing", "zapping"]


class TestUpdateIngress:
    """Test UpdateIngress validation and writes."""

    def test_submit_accepts_canonical_state(self):
        """A legal label is written and the previous state reported."""
        store = StateStore()
        ingress = UpdateIngress(store)

        result = ingress.submit("thinking")

        assert result == IngressResult(ok=True, state="thinking", previous="idle")
        assert store.get_state().state == "thinking"

    def test_submit_rejects_unknown_state(self):
        """An illegal label leaves the store untouched."""
        store = StateStore()
        listener = MagicMock()
        store.subscribe(listener)
        before = store.get_state()
        ingress = UpdateIngress(store)

        result = ingress.submit("bogus")

        assert result.ok is False
        assert result.valid_states == list(CANONICAL_STATES)
        assert result.error.startswith("Invalid state. Must be one of: idle, thinking")
        assert store.get_state() == before
        listener.assert_not_called()

    @pytest.mark.parametrize("candidate", [None, 42, "", ["idle"], {"state": "idle"}, "IDLE"])
    def test_submit_rejects_non_labels(self, candidate):
        """Missing, non-string and wrongly cased values are rejected."""
        result = UpdateIngress(StateStore()).submit(candidate)
        assert result.ok is False

    def test_apply_raises_on_invalid(self):
        """apply raises InvalidStateError carrying the legal set."""
        ingress = UpdateIngress(StateStore())

        with pytest.raises(InvalidStateError) as exc_info:
            ingress.apply("bogus")

        assert exc_info.value.valid_states == list(CANONICAL_STATES)

    def test_custom_states_accepted(self):
        """Labels declared by the avatar manifest are legal too."""
        store = StateStore()
        ingress = UpdateIngress(store, ["dancing"])

        result = ingress.submit("dancing")

        assert result.ok is True
        assert "dancing" in ingress.legal_states
        assert store.get_state().state == "dancing"

    def test_same_state_resubmitted(self):
        """Re-submitting the current state succeeds with previous == state."""
        ingress = UpdateIngress(StateStore())

        result = ingress.submit("idle")

        assert result.ok is True
        assert result.previous == "idle"

    def test_is_valid(self):
        ingress = UpdateIngress(StateStore())
        assert ingress.is_valid("bash")
        assert not ingress.is_valid("Bash")
        assert not ingress.is_valid(None)


class TestIngressResult:
    """Test the wire shape of results."""

    def test_accepted_to_dict(self):
        assert IngressResult.accepted("writing", "idle").to_dict() == {
            "ok": True,
            "state": "writing",
            "previous": "idle",
        }

    def test_rejected_to_dict(self):
        error = InvalidStateError("x", ["idle", "bash"])
        assert IngressResult.rejected(error).to_dict() == {
            "ok": False,
            "error": "Invalid state. Must be one of: idle, bash",
            "validStates": ["idle", "bash"],
        }
