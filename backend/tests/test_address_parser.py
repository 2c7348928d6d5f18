import logging

import pytest
from email_service.address import AddressKind, extract_enforced_token, parse_recipient


class TestEnforcedAddresses:

    @pytest.mark.parametrize("raw", [
        "<s:alice@good.com>",
        "s:alice@good.com",
        '"s:alice"@good.com',
        '<"s:alice"@good.com>',
    ])
    def test_marker_detected_with_or_without_brackets_and_quotes(self, raw):
        address = parse_recipient(raw)
        assert address.kind is AddressKind.ENFORCED
        assert address.enforced is True
        assert address.local_part == "alice"
        assert address.domain == "good.com"

    def test_raw_is_kept_verbatim(self):
        raw = '<"s:alice"@good.com>'
        assert parse_recipient(raw).raw == raw

    def test_local_part_with_dots_and_plus(self):
        address = parse_recipient("<s:first.last+tag@mail.good-domain.com>")
        assert address.local_part == "first.last+tag"
        assert address.domain == "mail.good-domain.com"

    def test_esmtp_parameters_after_address_are_ignored(self):
        address = parse_recipient("<s:alice@good.com> NOTIFY=NEVER")
        assert address.enforced is True
        assert address.domain == "good.com"

    def test_plain_and_bracketed_forms(self):
        address = parse_recipient("<s:alice@good.com>")
        assert address.plain == "alice@good.com"
        assert address.bracketed == "<alice@good.com>"


class TestNormalAddresses:

    @pytest.mark.parametrize("raw,local,domain", [
        ("<carl@plain.com>", "carl", "plain.com"),
        ("carl@plain.com", "carl", "plain.com"),
        ("<x:carl@plain.com>", "x:carl", "plain.com"),
    ])
    def test_loose_pattern(self, raw, local, domain):
        address = parse_recipient(raw)
        assert address.kind is AddressKind.NORMAL
        assert address.enforced is False
        assert address.local_part == local
        assert address.domain == domain

    def test_domain_stops_at_invalid_character(self):
        address = parse_recipient("<carl@plain.com_extra>")
        assert address.domain == "plain.com"


class TestMalformedAddresses:

    @pytest.mark.parametrize("raw", ["<postmaster>", "", "no-at-sign"])
    def test_unparsable_address_is_malformed(self, raw):
        address = parse_recipient(raw)
        assert address.kind is AddressKind.MALFORMED
        assert address.malformed is True
        assert address.local_part == ""
        assert address.domain == ""
        assert address.raw == raw

    def test_malformed_address_is_logged_as_error(self, caplog):
        with caplog.at_level(logging.ERROR, logger="email_service.address"):
            parse_recipient("<postmaster>")
        assert any("postmaster" in record.getMessage() for record in caplog.records)


class TestEnforcedTokenExtraction:

    @pytest.mark.parametrize("raw,token", [
        ("<s:alice@good.com>", "<s:alice@good.com>"),
        ('"s:alice"@good.com', '"s:alice"@good.com'),
        ("<s:alice@good.com> NOTIFY=NEVER", "<s:alice@good.com>"),
    ])
    def test_token_keeps_original_form(self, raw, token):
        assert extract_enforced_token(raw) == token

    def test_falls_back_to_raw_text(self):
        assert extract_enforced_token("<carl@plain.com>") == "<carl@plain.com>"
