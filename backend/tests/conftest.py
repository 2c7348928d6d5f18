import os
import sys
from pathlib import Path

import pytest

backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

os.environ.setdefault("API_TOKEN", "test-api-token")
os.environ.setdefault("POLICY_MAP", "texthash:/nonexistent/tls_policy")
os.environ.setdefault("INFO_URL", "https://example.org/enforced-tls")

from policy_engine.decision import DecisionEngine, FilterOptions  # noqa: E402
from policy_engine.rules import PolicyEngine  # noqa: E402
from policy_store import PolicyStore  # noqa: E402
from session.exceptions import MutationRefusedError  # noqa: E402

INFO_URL = "https://example.org/enforced-tls"


class RecordingSink:
    """MutationSink that records every change and can refuse some kinds."""

    def __init__(self, refuse=()):
        self.refuse = set(refuse)
        self.calls = []

    def _apply(self, mutation, target, *args):
        if mutation in self.refuse:
            raise MutationRefusedError(mutation, target, "refused by test")
        self.calls.append((mutation, target) + args)

    def add_header(self, name, value):
        self._apply("add_header", name, value)

    def change_header(self, name, index, value):
        self._apply("change_header", name, index, value)

    def delete_recipient(self, token):
        self._apply("delete_recipient", token)

    def add_recipient(self, token):
        self._apply("add_recipient", token)

    def of(self, mutation):
        return [call[1:] for call in self.calls if call[0] == mutation]


@pytest.fixture
def policy_entries():
    return {
        "good.com": "secure",
        "verified.org": "verify",
        "logged.net": "secure-log",
        "certs.io": "verify-cert",
        "maybe.com": "may",
        "none.com": "none",
        "encrypt.com": "encrypt",
        "plain.com": "may",
    }


@pytest.fixture
def policy_store(policy_entries):
    store = PolicyStore()
    store.install(policy_entries, source="test")
    return store


@pytest.fixture
def policy_engine(policy_store):
    return PolicyEngine(policy_store)


@pytest.fixture
def make_engine(policy_engine):
    def _make(strict=True, unified=False, track_x_tls_header=True):
        return DecisionEngine(
            policy_engine,
            FilterOptions(
                strict=strict,
                unified=unified,
                track_x_tls_header=track_x_tls_header,
                info_url=INFO_URL,
            ),
        )
    return _make


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def refusing_sink():
    return RecordingSink
