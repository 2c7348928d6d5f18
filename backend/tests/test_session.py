import pytest
from email_service.address import AddressKind
from session.exceptions import SessionStateError
from session.session import ConnectionInfo, Session, SessionState


@pytest.fixture
def session():
    session = Session()
    session.connect("client.example", 40000, "192.0.2.10")
    return session


class TestStateMachine:

    def test_new_session_is_idle(self):
        assert Session().state is SessionState.IDLE

    def test_session_with_connection_starts_connected(self):
        session = Session(connection=ConnectionInfo("h", 25, "192.0.2.1"))
        assert session.state is SessionState.CONNECTED

    def test_full_transaction_walks_every_state(self, session):
        assert session.state is SessionState.CONNECTED
        session.set_sender("<sender@example.org>")
        assert session.state is SessionState.SENDER_SET
        session.add_recipient("<s:alice@good.com>")
        assert session.state is SessionState.COLLECTING_RECIPIENTS
        session.add_header("To", "s:alice@good.com")
        assert session.state is SessionState.COLLECTING_HEADERS
        session.mark_decided(object())
        assert session.state is SessionState.DECIDED
        session.close()
        assert session.closed is True

    def test_recipient_before_sender_rejected(self, session):
        with pytest.raises(SessionStateError, match="recipient"):
            session.add_recipient("<alice@good.com>")

    def test_header_before_recipient_rejected(self, session):
        session.set_sender("<sender@example.org>")
        with pytest.raises(SessionStateError, match="header"):
            session.add_header("To", "alice@good.com")

    def test_recipient_after_headers_rejected(self, session):
        session.set_sender("<sender@example.org>")
        session.add_recipient("<alice@good.com>")
        session.add_header("To", "alice@good.com")
        with pytest.raises(SessionStateError):
            session.add_recipient("<bob@good.com>")

    def test_second_decision_rejected(self, session):
        session.set_sender("<sender@example.org>")
        session.add_recipient("<alice@good.com>")
        session.mark_decided(object())
        with pytest.raises(SessionStateError, match="end_of_data"):
            session.mark_decided(object())

    def test_connect_twice_rejected(self, session):
        with pytest.raises(SessionStateError):
            session.connect("other", 1, "192.0.2.2")


class TestAccumulation:

    def test_connection_metadata(self, session):
        assert session.hostname == "client.example"
        assert session.port == 40000
        assert session.source_ip == "192.0.2.10"

    def test_sender_joins_all_arguments(self, session):
        session.set_sender("<sender@example.org>", "SIZE=1024", "BODY=8BITMIME")
        assert session.sender == "<sender@example.org> SIZE=1024 BODY=8BITMIME"

    def test_recipients_keep_arrival_order_and_duplicates(self, session):
        session.set_sender("<sender@example.org>")
        for rcpt in ["<b@x.com>", "<a@x.com>", "<b@x.com>"]:
            session.add_recipient(rcpt)
        assert [r.raw for r in session.recipients] == ["<b@x.com>", "<a@x.com>", "<b@x.com>"]

    def test_malformed_recipient_is_still_recorded(self, session):
        session.set_sender("<sender@example.org>")
        address = session.add_recipient("<postmaster>")
        assert address.kind is AddressKind.MALFORMED
        assert session.recipients == [address]

    def test_headers_keep_order(self, session):
        session.set_sender("<sender@example.org>")
        session.add_recipient("<a@x.com>")
        session.add_header("Received", "one")
        session.add_header("Received", "two")
        session.add_header("To", "a@x.com")
        assert [tuple(h) for h in session.headers] == [
            ("Received", "one"),
            ("Received", "two"),
            ("To", "a@x.com"),
        ]

    def test_last_x_tls_header_wins(self, session):
        session.set_sender("<sender@example.org>")
        session.add_recipient("<a@x.com>")
        session.add_header("X-TLS", "first")
        session.add_header("x-tls", "second")
        assert session.existing_x_tls == "second"

    def test_x_tls_ignored_when_tracking_disabled(self):
        session = Session(track_x_tls_header=False)
        session.connect("h", 25, "192.0.2.1")
        session.set_sender("<sender@example.org>")
        session.add_recipient("<a@x.com>")
        session.add_header("X-TLS", "present")
        assert session.existing_x_tls is None
