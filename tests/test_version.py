"""Tests for release version parsing and ordering."""

import itertools
import random

import pytest

from godeb.version import LOWEST, PreRelease, ReleaseVersion, compare, debian_version, parse, sort_key

CANONICAL_ORDER = [
    "1.2",
    "1.2rc5",
    "1.2rc4",
    "1.2rc3",
    "1.2rc2",
    "1.2rc1",
    "1.1.2",
    "1.1.1",
    "1.1",
    "1.1rc3",
    "1.1rc2",
    "1.1rc1",
    "1.1beta2",
    "1.1beta1",
    "1.0.3",
    "1.0.2",
    "1.0.1",
]


class TestParse:
    def test_final_release(self):
        v = parse("1.21.3")
        assert v.segments == (1, 21, 3)
        assert v.pre_release_kind is None
        assert v.is_final

    def test_release_candidate(self):
        v = parse("1.2rc5")
        assert v.segments == (1, 2)
        assert v.pre_release_kind is PreRelease.RC
        assert v.pre_release_number == 5

    def test_beta_and_alpha(self):
        assert parse("1.1beta2").pre_release_kind is PreRelease.BETA
        assert parse("1.1alpha3").pre_release_kind is PreRelease.ALPHA

    def test_tag_without_number_defaults_to_one(self):
        assert parse("1.5beta") == parse("1.5beta1")

    def test_go_prefix_is_accepted(self):
        assert parse("go1.21.0") == parse("1.21.0")

    @pytest.mark.parametrize("text", ["", "tip", "1.x", "1.2gamma1", "weekly.2012-03-04", "1..2"])
    def test_malformed_sorts_lowest(self, text):
        v = parse(text)
        assert v.segments == (0,)
        assert v.pre_release_kind is PreRelease.ALPHA
        assert v.pre_release_number == 0
        assert compare(v, parse("0.0.1alpha1")) < 0

    def test_zero_padding_equality(self):
        assert parse("1.2") == parse("1.2.0")
        assert hash(parse("1.2")) == hash(parse("1.2.0"))
        assert parse("1.2rc1") != parse("1.2")

    def test_immutable(self):
        v = parse("1.2")
        with pytest.raises(AttributeError):
            v.segments = (2,)


class TestCompare:
    def test_final_outranks_prerelease(self):
        assert compare(parse("1.2"), parse("1.2rc5")) == 1
        assert compare(parse("1.2rc5"), parse("1.2")) == -1

    def test_numeric_not_lexical(self):
        assert compare(parse("1.10"), parse("1.9")) == 1
        assert compare(parse("1.21.10"), parse("1.21.9")) == 1

    def test_prerelease_rank(self):
        assert parse("1.1rc1") > parse("1.1beta9")
        assert parse("1.1beta1") > parse("1.1alpha9")

    def test_prerelease_number(self):
        assert parse("1.2rc4") < parse("1.2rc5")

    def test_newer_prefix_beats_final(self):
        assert parse("1.2rc1") > parse("1.1.2")

    def test_antisymmetric(self):
        parsed = [parse(v) for v in CANONICAL_ORDER + ["1.2.0", "bogus"]]
        for a, b in itertools.product(parsed, repeat=2):
            assert compare(a, b) == -compare(b, a)

    def test_transitive(self):
        parsed = [parse(v) for v in CANONICAL_ORDER + ["1.2.0", "1.1.0", "bogus"]]
        for a, b, c in itertools.product(parsed, repeat=3):
            if compare(a, b) <= 0 and compare(b, c) <= 0:
                assert compare(a, c) <= 0

    def test_lowest_constant(self):
        assert parse("nonsense") == LOWEST
        assert isinstance(LOWEST, ReleaseVersion)


class TestOrdering:
    def test_canonical_order_from_any_permutation(self):
        rng = random.Random(1234)
        for _ in range(1000):
            shuffled = CANONICAL_ORDER[:]
            rng.shuffle(shuffled)
            assert sorted(shuffled, key=sort_key, reverse=True) == CANONICAL_ORDER


class TestDebianVersion:
    @pytest.mark.parametrize(
        "upstream, expected",
        [
            ("1.21.0", "1.21.0-godeb1"),
            ("1.2rc1", "1.2~rc1-godeb1"),
            ("1.1beta2", "1.1~beta2-godeb1"),
            ("go1.22rc2", "1.22~rc2-godeb1"),
        ],
    )
    def test_conversion(self, upstream, expected):
        assert debian_version(upstream) == expected
