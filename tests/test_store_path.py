"""Tests for store path computation."""

import pytest

from flakestore.hash import ContentHash, sha256
from flakestore.store_path import (
    STORE_DIR, make_output_path, make_source_store_path, make_store_path,
    make_text_store_path, store_path_name,
)


def _split(path):
    assert path.startswith(STORE_DIR + "/")
    rest = path[len(STORE_DIR) + 1:]
    return rest.split("-", 1)


def test_text_store_path_format():
    """Store path has correct format: /nix/store/<32-char-hash>-<name>."""
    hash_part, name = _split(make_text_store_path("hello.txt", b"hello world"))
    assert len(hash_part) == 32
    assert name == "hello.txt"


def test_text_store_path_deterministic():
    assert make_text_store_path("test", b"content") == make_text_store_path("test", b"content")


def test_text_store_path_content_sensitive():
    assert make_text_store_path("test", b"aaa") != make_text_store_path("test", b"bbb")


def test_text_store_path_name_sensitive():
    assert make_text_store_path("foo", b"content") != make_text_store_path("bar", b"content")


def test_text_store_path_references():
    """References change the path; their order does not."""
    plain = make_text_store_path("x.drv", b"text")
    refs = ["/nix/store/b", "/nix/store/a"]
    with_refs = make_text_store_path("x.drv", b"text", refs)
    assert with_refs != plain
    assert with_refs == make_text_store_path("x.drv", b"text", sorted(refs))


def test_text_is_store_path_of_type_text():
    assert make_text_store_path("t", b"c") == make_store_path("text", sha256(b"c"), "t")


def test_source_store_path():
    h = ContentHash.of(b"some nar data")
    hash_part, name = _split(make_source_store_path(h))
    assert len(hash_part) == 32
    assert name == "source"
    assert make_source_store_path(h, "my-source").endswith("-my-source")


def test_source_store_path_needs_sha256():
    with pytest.raises(ValueError, match="sha256"):
        make_source_store_path(ContentHash.of(b"x", "sha512"))


def test_output_path_names():
    fp = sha256(b"fingerprint")
    assert store_path_name(make_output_path(fp, "iamb-0.0.7")) == "iamb-0.0.7"
    assert store_path_name(make_output_path(fp, "iamb-0.0.7", "dev")) == "iamb-0.0.7-dev"
    assert make_output_path(fp, "iamb") != make_output_path(sha256(b"other"), "iamb")


@pytest.mark.parametrize("path", ["/tmp/x", "/nix/store/short-x", "/nix/store/" + "a" * 32])
def test_store_path_name_rejects(path):
    with pytest.raises(ValueError):
        store_path_name(path)
