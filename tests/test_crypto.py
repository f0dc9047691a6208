import pytest

from s3sign.crypto import KeyCache, hmac_sha256, hmac_sha256_hex, sha256_hexdigest

# RFC 4231, test case 2
RFC4231_KEY = 'Jefe'
RFC4231_DATA = 'what do ya want for nothing?'
RFC4231_MAC = '5bdcc146bf60754e6a042426089575c75a003f089d2739839dec58b964ec3843'


def test_sha256_hexdigest():
    assert sha256_hexdigest('') == 'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
    assert sha256_hexdigest(b'') == sha256_hexdigest('')


def test_hmac_with_string_and_byte_keys():
    assert hmac_sha256_hex(RFC4231_KEY, RFC4231_DATA) == RFC4231_MAC
    assert hmac_sha256_hex(RFC4231_KEY.encode(), RFC4231_DATA.encode()) == RFC4231_MAC
    assert len(hmac_sha256(RFC4231_KEY, RFC4231_DATA)) == 32


def test_cached_key_gives_same_digest_every_time():
    cache = KeyCache()
    first = hmac_sha256_hex(RFC4231_KEY, RFC4231_DATA, cache)
    second = hmac_sha256_hex(RFC4231_KEY, RFC4231_DATA, cache)
    assert first == second == RFC4231_MAC
    assert RFC4231_KEY in cache
    assert len(cache) == 1


def test_byte_keys_are_not_cached():
    cache = KeyCache()
    hmac_sha256(b'raw-key', 'data', cache)
    assert len(cache) == 0


def test_cache_evicts_least_recently_used():
    cache = KeyCache(maxsize=2)
    hmac_sha256('a', 'x', cache)
    hmac_sha256('b', 'x', cache)
    hmac_sha256('a', 'x', cache)
    hmac_sha256('c', 'x', cache)
    assert 'a' in cache
    assert 'b' not in cache
    assert 'c' in cache
    assert len(cache) == 2


def test_cache_rejects_zero_size():
    with pytest.raises(ValueError):
        KeyCache(maxsize=0)
