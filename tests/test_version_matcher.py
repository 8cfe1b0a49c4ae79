import pytest

from catalog_models import VersionInfo
from version_matcher import (
    KIND_CATALOG_ONLY, KIND_COMPATIBLE, KIND_EXACT, KIND_INPUT_ONLY, KIND_NONE, KIND_PRIORITY,
    VersionMatchConfig, VersionMatcher, version_category,
)

V = {
    '全网通5G': VersionInfo('全网通5G', ['全网通5g'], 10),
    '全网通版': VersionInfo('全网通版', ['全网通版'], 9),
    '5G': VersionInfo('5G', ['5g'], 9),
    '5G版': VersionInfo('5G版', ['5g版'], 9),
    '4G': VersionInfo('4G', ['4g'], 8),
    '蓝牙版': VersionInfo('蓝牙版', ['蓝牙版'], 9),
    'eSIM版': VersionInfo('eSIM版', ['esim版'], 9),
    'WiFi版': VersionInfo('WiFi版', ['wifi版'], 9),
    '活力版': VersionInfo('活力版', ['活力版'], 5),
    '青春版': VersionInfo('青春版', ['青春版'], 5),
    '典藏版': VersionInfo('典藏版', ['典藏版'], 5),
    '标准版': VersionInfo('标准版', ['标准版'], 4),
}


@pytest.fixture
def matcher():
    return VersionMatcher()


def test_both_absent(matcher):
    result = matcher.match(None, None)
    assert (result.matched, result.score, result.kind) == (True, 1.0, KIND_NONE)


def test_one_side_absent(matcher):
    result = matcher.match(V['蓝牙版'], None)
    assert (result.matched, result.score, result.kind) == (False, 0.7, KIND_INPUT_ONLY)

    result = matcher.match(None, V['蓝牙版'])
    assert (result.matched, result.score, result.kind) == (False, 0.95, KIND_CATALOG_ONLY)


def test_exact(matcher):
    result = matcher.match(V['活力版'], V['活力版'])
    assert (result.matched, result.score, result.kind) == (True, 1.0, KIND_EXACT)


@pytest.mark.parametrize("a, b", [("蓝牙版", "eSIM版"), ("WiFi版", "eSIM版"), ("WiFi版", "蓝牙版")])
def test_mutually_exclusive_is_symmetric(matcher, a, b):
    forward = matcher.match(V[a], V[b])
    backward = matcher.match(V[b], V[a])
    assert (forward.matched, forward.score, forward.kind) == (False, 0.6, KIND_EXACT)
    assert (backward.matched, backward.score, backward.kind) == (False, 0.6, KIND_EXACT)
    assert "exclusive" in forward.explanation


@pytest.mark.parametrize("a, b", [
    ("全网通5G", "5G"),
    ("5G", "全网通5G"),
    ("全网通5G", "全网通版"),
    ("5G版", "5G"),
    ("4G", "全网通版"),
])
def test_compatible_in_either_direction(matcher, a, b):
    result = matcher.match(V[a], V[b])
    assert (result.matched, result.score, result.kind) == (True, 0.95, KIND_COMPATIBLE)


def test_same_priority_same_category_is_a_near_miss(matcher):
    result = matcher.match(V['活力版'], V['青春版'])
    assert (result.matched, result.score, result.kind) == (False, 0.83, KIND_PRIORITY)


def test_same_priority_different_category_is_a_mismatch(matcher):
    # both priority 5, standard vs premium
    result = matcher.match(V['活力版'], V['典藏版'])
    assert (result.matched, result.score, result.kind) == (False, 0.6, KIND_EXACT)
    assert "mismatch" in result.explanation


def test_unknown_versions_default_to_standard_category(matcher):
    assert version_category('神秘版') == 'standard'
    result = matcher.match(VersionInfo('神秘版', [], 4), V['标准版'])
    assert result.kind == KIND_PRIORITY


def test_thresholds_are_configurable():
    matcher = VersionMatcher(VersionMatchConfig(catalog_only_score=0.5, mismatch_score=0.1))
    assert matcher.get_score(None, V['5G']) == 0.5
    assert matcher.get_score(V['蓝牙版'], V['eSIM版']) == 0.1


def test_projections(matcher):
    assert matcher.get_score(V['全网通5G'], V['5G']) == 0.95
    assert matcher.is_match(V['全网通5G'], V['5G']) is True
    assert matcher.is_match(V['活力版'], V['青春版']) is False
