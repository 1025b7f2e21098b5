"""Tests for version specifier normalization and alias unpacking."""

import pytest

from lsdeps.versions import normalize_version, unpack_alias


class TestNormalizeVersion:
    @pytest.mark.parametrize("specifier", ["1.2.3", "10.20.30", "2.0.0-beta.1", "3.1.0-rc.12", "0.0.1-alpha.0"])
    def test_exact_versions_are_kept(self, specifier):
        assert normalize_version(specifier) == specifier

    def test_caret_range_uses_minimum(self):
        assert normalize_version("^1.2.3") == "1.2.3"

    def test_tilde_prerelease_range_uses_minimum(self):
        assert normalize_version("~2.0.0-beta.1") == "2.0.0-beta.1"

    def test_next_tag_is_kept(self):
        assert normalize_version("next") == "next"

    @pytest.mark.parametrize("specifier", [
        ">=1.0.0",
        "1.x",
        "*",
        "",
        "^",
        "latest",
        "^1.2",
        "1.2.3-pre.1",
        "1.2.3 || 2.0.0",
        "git+https://github.com/user/repo.git",
        "^>=1.0.0",
    ])
    def test_other_specifiers_fall_back_to_latest(self, specifier):
        assert normalize_version(specifier) == "latest"


class TestUnpackAlias:
    def test_plain_specifier_is_unchanged(self):
        assert unpack_alias("lodash", "^4.17.21") == ("lodash", "^4.17.21")

    def test_alias_is_unpacked(self):
        name, specifier = unpack_alias("my-alias", "npm:real-pkg@^3.0.0")
        assert (name, specifier) == ("real-pkg", "^3.0.0")
        assert normalize_version(specifier) == "3.0.0"

    def test_scoped_alias_keeps_scope(self):
        assert unpack_alias("types", "npm:@types/node@20.1.0") == ("@types/node", "20.1.0")

    def test_alias_without_version_means_latest(self):
        assert unpack_alias("x", "npm:real-pkg") == ("real-pkg", "latest")
        assert unpack_alias("x", "npm:real-pkg@") == ("real-pkg", "latest")

    def test_only_first_separator_splits(self):
        assert unpack_alias("x", "npm:real-pkg@npm:other@1.0.0") == ("real-pkg", "npm:other@1.0.0")
