import pytest

from meeting_scribe.errors import ConfigurationError
from meeting_scribe.llm import CredentialPool, parse_credentials


def test_parse_trims_and_drops_blanks_and_duplicates():
    assert parse_credentials(" a , ,b,a,, c ") == ["a", "b", "c"]
    assert parse_credentials(None) == []


def test_rotate_wraps_around():
    pool = CredentialPool(["a", "b", "c"])

    assert pool.current() == "a"
    assert [pool.rotate() for _ in range(4)] == [1, 2, 0, 1]
    assert pool.current() == "b"
    assert len(pool) == pool.size() == 3


@pytest.mark.parametrize("value", ["", "  ", ",,", None])
def test_empty_pool_is_rejected(value):
    with pytest.raises(ConfigurationError):
        CredentialPool.from_string(value)


def test_from_config_reads_api_key(monkeypatch):
    monkeypatch.setenv("API_KEY", "first,second")

    pool = CredentialPool.from_config()

    assert pool.size() == 2
    assert pool.current() == "first"


def test_from_config_accepts_legacy_name(monkeypatch):
    monkeypatch.setenv("VITE_API_KEY", "legacy")

    assert CredentialPool.from_config().current() == "legacy"


def test_override_wins_over_environment(monkeypatch):
    monkeypatch.setenv("API_KEY", "from-env")

    assert CredentialPool.from_config("from-flag").current() == "from-flag"


def test_repr_hides_credentials():
    pool = CredentialPool(["super-secret-key"])

    assert "super-secret-key" not in repr(pool)
    assert "size=1" in repr(pool)
