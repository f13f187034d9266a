"""
SnapMenu Backend — Share-Link Builder Unit Tests
==================================================

What:  Tests for ShareLinkBuilder (menu ⇄ share address) and entry-state
       resolution.

What we test:
    ✅ build/extract round-trip, with and without existing query parameters
    ✅ Advisory QR capacity signal (flag only, never truncation)
    ✅ Missing vs empty vs invalid tokens
    ✅ Token length cap for untrusted input
    ✅ End-to-end owner → customer scenario
"""

import time

import pytest
from lzstring import LZString

from snapmenu.config import settings
from snapmenu.exceptions import EncodingError, InvalidMenuLinkError, INVALID_LINK_MESSAGE
from snapmenu.schemas.menu import MenuDocument
from snapmenu.services.menu_codec import MenuCodec
from snapmenu.services.share_link import AppStep, ShareLinkBuilder


@pytest.fixture
def builder():
    return ShareLinkBuilder(
        codec=MenuCodec(),
        param="m",
        advisory_length=2500,
        max_token_length=4_096,
    )


class TestBuild:

    def test_appends_token_as_m_parameter(self, builder, cafe_sol):
        link = builder.build(cafe_sol, "https://menu.example/")
        assert link.url == f"https://menu.example/?m={link.token}"
        assert link.length == len(link.url)

    def test_defaults_to_configured_base(self, builder, cafe_sol):
        link = builder.build(cafe_sol)
        assert link.url.startswith("https://snapmenu.example/?m=")

    def test_extract_returns_built_token(self, builder, cafe_sol):
        link = builder.build(cafe_sol, "https://menu.example/view")
        assert builder.extract(link.url) == link.token

    def test_keeps_other_parameters_and_fragment(self, builder, cafe_sol):
        link = builder.build(cafe_sol, "https://menu.example/?table=7&lang=es#top")
        assert link.url.startswith("https://menu.example/?table=7&lang=es&m=")
        assert link.url.endswith("#top")
        assert builder.extract(link.url) == link.token

    def test_replaces_existing_token(self, builder, cafe_sol):
        link = builder.build(cafe_sol, "https://menu.example/?m=OLDTOKEN&table=7")
        assert "OLDTOKEN" not in link.url
        assert link.url.count("m=") == 1
        assert builder.resolve(link.url) == cafe_sol

    def test_short_menu_within_qr_capacity(self, builder, cafe_sol):
        link = builder.build(cafe_sol, "https://menu.example/")
        assert link.threshold == 2500
        assert link.exceeds_qr_capacity is False

    def test_long_menu_flagged_not_truncated(self, builder, long_menu):
        link = builder.build(long_menu, "https://menu.example/")
        assert link.length > 2500
        assert link.exceeds_qr_capacity is True
        assert builder.codec.decode(link.token) == long_menu

    def test_zero_advisory_length_is_kept(self, cafe_sol):
        builder = ShareLinkBuilder(advisory_length=0)
        link = builder.build(cafe_sol, "https://menu.example/")
        assert link.threshold == 0
        assert link.exceeds_qr_capacity is True

    def test_encoding_failure_raises(self, cafe_sol):
        class BrokenCodec(MenuCodec):
            def encode(self, document):
                return ""

        builder = ShareLinkBuilder(codec=BrokenCodec())
        with pytest.raises(EncodingError):
            builder.build(cafe_sol, "https://menu.example/")


class TestExtract:

    def test_missing_parameter(self, builder):
        assert builder.extract("https://menu.example/?table=7") is None
        assert builder.extract("https://menu.example/") is None

    def test_empty_parameter(self, builder):
        assert builder.extract("https://menu.example/?m=") == ""

    def test_other_parameters_ignored(self, builder):
        assert builder.extract("https://menu.example/?mm=abc&m=N4Ig&x=1") == "N4Ig"

    def test_percent_encoded_token(self, builder, cafe_sol):
        link = builder.build(cafe_sol, "https://menu.example/")
        escaped = link.url.replace("+", "%2B").replace("$", "%24")
        assert builder.extract(escaped) == link.token

    def test_plus_turned_into_space(self, builder):
        assert builder.extract("https://menu.example/?m=ab%20cd") == "ab+cd"


class TestOpenToken:

    def test_oversized_token_rejected_before_decoding(self, cafe_sol):
        builder = ShareLinkBuilder(max_token_length=1024)
        with pytest.raises(InvalidMenuLinkError) as exc_info:
            builder.open_token("A" * 1025)
        assert exc_info.value.message == INVALID_LINK_MESSAGE

    def test_zero_cap_is_kept(self, cafe_sol):
        token = MenuCodec().encode(cafe_sol)
        with pytest.raises(InvalidMenuLinkError):
            ShareLinkBuilder(max_token_length=0).open_token(token)

    def test_default_cap_near_qr_capacity(self):
        assert ShareLinkBuilder().max_token_length == settings.max_token_length
        assert settings.max_token_length <= 4_096

    def test_worst_case_token_under_cap_decodes_quickly(self):
        # A run of one character is the most expansive lz-string input:
        # ~3200 characters of token inflate to 1.5M characters of text
        token = LZString().compressToEncodedURIComponent("a" * 1_500_000)
        assert len(token) <= settings.max_token_length

        started = time.perf_counter()
        assert ShareLinkBuilder().resolve("https://menu.example/?m=" + token) is None
        assert time.perf_counter() - started < 5

    def test_token_one_over_cap_rejected(self):
        builder = ShareLinkBuilder()
        with pytest.raises(InvalidMenuLinkError):
            builder.open_token("A" * (settings.max_token_length + 1))

    def test_invalid_token(self, builder):
        with pytest.raises(InvalidMenuLinkError):
            builder.open_token("not-a-valid-token")

    def test_valid_token(self, builder, cafe_sol):
        link = builder.build(cafe_sol, "https://menu.example/")
        assert builder.open_token(link.token) == cafe_sol


class TestResolveEntry:

    def test_no_token_goes_to_upload(self, builder):
        state = builder.resolve_entry("https://menu.example/")
        assert state.step == AppStep.UPLOAD
        assert state.readonly is False
        assert state.error is None

    def test_empty_token_goes_to_upload_without_error(self, builder):
        state = builder.resolve_entry("https://menu.example/?m=")
        assert state.step == AppStep.UPLOAD
        assert state.error is None

    def test_invalid_token_shows_message(self, builder):
        state = builder.resolve_entry("https://menu.example/?m=not-a-valid-token")
        assert state.step == AppStep.UPLOAD
        assert state.menu is None
        assert state.error == "Invalid or expired menu link."

    def test_valid_token_opens_read_only_preview(self, builder, cafe_sol):
        link = builder.build(cafe_sol, "https://menu.example/")
        state = builder.resolve_entry(link.url)
        assert state.step == AppStep.PREVIEW
        assert state.readonly is True
        assert state.menu == cafe_sol
        assert state.error is None


class TestEndToEnd:

    def test_owner_to_customer(self, builder):
        document = MenuDocument.model_validate({
            "restaurantName": "Cafe Sol",
            "categories": [{
                "name": "Drinks",
                "items": [{"name": "Latte", "description": "", "price": "$4.00", "tags": ["Hot"]}],
            }],
        })
        token = builder.codec.encode(document)
        assert builder.codec.decode(token) == document

        link = builder.build(document, "https://menu.example/")
        extracted = builder.extract(link.url)
        assert extracted == token
        assert builder.codec.decode(extracted) == document
