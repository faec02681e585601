"""
Tests for locale matching.
"""
import pytest

from rkentry.config.locale import is_valid_domain, match_locale
from rkentry.settings import LocaleSettings


@pytest.fixture
def prod_locale() -> LocaleSettings:
    return LocaleSettings(realm="rk", region="us-east-1", az="us-east-1a", domain="prod")


class TestMatchLocale:
    """Test <realm>::<region>::<az>::<domain> matching."""

    @pytest.mark.parametrize(
        "locale,expected",
        [
            ("*::*::*::*", True),
            ("rk::*::*::prod", True),
            ("rk::us-east-1::us-east-1a::prod", True),
            ("::::::", True),
            ("rk::::::prod", True),
            ("rk::*::*::test", False),
            ("other::*::*::*", False),
            ("rk::*::*", False),
            ("a::b::c::d::e", False),
            ("", False),
        ],
    )
    def test_match(self, prod_locale, locale, expected):
        assert match_locale(locale, prod_locale) is expected

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("REALM", "rk")
        monkeypatch.setenv("DOMAIN", "prod")

        assert match_locale("rk::*::*::prod") is True
        assert match_locale("other::*::*::*") is False

    def test_unset_environment_only_matches_wildcards(self):
        assert match_locale("*::*::*::*") is True
        assert match_locale("rk::*::*::*") is False


class TestIsValidDomain:
    """Test domain checks."""

    @pytest.mark.parametrize("domain", ["", "*"])
    def test_wildcards(self, domain):
        assert is_valid_domain(domain) is True

    def test_matching_domain(self, prod_locale):
        assert is_valid_domain("prod", prod_locale) is True
        assert is_valid_domain("test", prod_locale) is False

    def test_domain_from_environment(self, monkeypatch):
        monkeypatch.setenv("DOMAIN", "beta")
        assert is_valid_domain("beta") is True
        assert is_valid_domain("prod") is False
