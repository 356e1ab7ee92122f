"""
Pytest tests for common_github/normalize.py.

Run from the repo root:
    pytest common_github/test_normalize.py -v
"""

import pytest

from common_github.normalize import (
    extract_primary_asset_url,
    extract_tag,
    extract_version,
    normalize_release,
    source_archive_url,
)
from common_types import NormalizationRule, ValueKind, VersionField

NAME_STRIP = NormalizationRule(preferred_field=VersionField.NAME, strip_leading_marker=True)
TAG_KEEP = NormalizationRule(preferred_field=VersionField.TAG, strip_leading_marker=False)
TAG_STRIP = NormalizationRule(preferred_field=VersionField.TAG, strip_leading_marker=True)


# ============================================================================
# Reference scenarios
# ============================================================================

def test_bootstrap_style_payload():
    """name preferred, leading v stripped, first asset URL exposed."""
    payload = {
        "tag_name": "v5.3.3",
        "name": "v5.3.3",
        "assets": [{"browser_download_url": "https://x/dist.zip"}],
    }
    assert extract_version(payload, NAME_STRIP) == "5.3.3"
    assert extract_primary_asset_url(payload) == "https://x/dist.zip"


def test_jquery_style_payload():
    """tag preferred, nothing stripped, no assets."""
    payload = {"tag_name": "3.7.1", "name": None, "assets": []}
    assert extract_version(payload, TAG_KEEP) == "3.7.1"
    assert extract_primary_asset_url(payload) is None


# ============================================================================
# extract_version()
# ============================================================================

def test_preferred_field_wins_when_present():
    payload = {"tag_name": "v1.0.0", "name": "Release 1.0"}
    assert extract_version(payload, TAG_KEEP) == "v1.0.0"
    assert extract_version(payload, NAME_STRIP) == "Release 1.0"


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"tag_name": "v4.1.4", "name": None}, "4.1.4"),
        ({"tag_name": "v4.1.4"}, "4.1.4"),
        ({"tag_name": "v4.1.4", "name": ""}, "4.1.4"),
        ({"tag_name": "v4.1.4", "name": "   "}, "4.1.4"),
        ({"tag_name": "v4.1.4", "name": 414}, "4.1.4"),
    ],
)
def test_falls_back_to_tag_when_preferred_name_unusable(payload, expected):
    assert extract_version(payload, NAME_STRIP) == expected


def test_falls_back_to_name_when_tag_missing():
    payload = {"tag_name": None, "name": "v2.0.0"}
    assert extract_version(payload, TAG_STRIP) == "2.0.0"


def test_whitespace_is_trimmed_before_stripping():
    assert extract_version({"tag_name": "  v2.0.0\n"}, TAG_STRIP) == "2.0.0"
    assert extract_version({"tag_name": "  v2.0.0\n"}, TAG_KEEP) == "v2.0.0"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("v5.3.3", "5.3.3"),
        ("V5.3.3", "5.3.3"),
        ("vv5.3.3", "v5.3.3"),  # exactly one marker removed
        ("3.7.1", "3.7.1"),
        ("version-1", "ersion-1"),  # only the first character is considered
        ("release-v1", "release-v1"),
    ],
)
def test_strip_removes_one_leading_v_case_insensitively(raw, expected):
    assert extract_version({"tag_name": raw}, TAG_STRIP) == expected


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        "v1.0.0",
        {},
        {"tag_name": None, "name": None},
        {"tag_name": 123, "name": ["v1"]},
        {"tag_name": "", "name": "  "},
        {"tag_name": "v"},  # nothing left after stripping
    ],
)
def test_no_usable_version_is_none_not_error(payload):
    assert extract_version(payload, TAG_STRIP) is None


def test_extract_version_is_idempotent():
    payload = {"tag_name": "v5.3.3", "name": "v5.3.3"}
    first = extract_version(payload, NAME_STRIP)
    assert extract_version(payload, NAME_STRIP) == first
    # stripping an already-stripped value changes nothing
    assert extract_version({"tag_name": first}, TAG_STRIP) == first


def test_rule_accepts_plain_string_field_names():
    rule = NormalizationRule(preferred_field="name", strip_leading_marker=True)
    assert extract_version({"tag_name": "v1", "name": "v2"}, rule) == "2"


# ============================================================================
# extract_primary_asset_url()
# ============================================================================

def test_only_first_asset_is_considered():
    payload = {
        "assets": [
            {"name": "source.tar.gz", "browser_download_url": ""},
            {"name": "dist.zip", "browser_download_url": "https://x/dist.zip"},
        ]
    }
    assert extract_primary_asset_url(payload) is None


@pytest.mark.parametrize(
    "payload",
    [
        None,
        {},
        {"assets": None},
        {"assets": {"browser_download_url": "https://x"}},
        {"assets": ["https://x"]},
        {"assets": [{"name": "dist.zip"}]},
        {"assets": [{"browser_download_url": 42}]},
    ],
)
def test_asset_url_absent_for_odd_shapes(payload):
    assert extract_primary_asset_url(payload) is None


# ============================================================================
# extract_tag() / source_archive_url() / normalize_release()
# ============================================================================

def test_source_archive_url_uses_tag():
    payload = {"tag_name": "v5.3.3"}
    assert source_archive_url("twbs/bootstrap", payload) == "https://github.com/twbs/bootstrap/archive/v5.3.3.zip"


def test_source_archive_url_quotes_tag():
    payload = {"tag_name": "release/1.0 beta"}
    url = source_archive_url("a/b", payload, web_base="https://example.test/")
    assert url == "https://example.test/a/b/archive/release%2F1.0%20beta.zip"


def test_source_archive_url_absent_without_tag():
    assert source_archive_url("a/b", {"name": "v1"}) is None
    assert extract_tag({"tag_name": "   "}) is None


def test_normalize_release_returns_every_kind():
    payload = {
        "tag_name": "v5.3.3",
        "name": "Bootstrap 5.3.3",
        "assets": [{"browser_download_url": "https://x/dist.zip"}],
    }
    values = normalize_release("twbs/bootstrap", payload, TAG_STRIP)
    assert values == {
        ValueKind.VERSION: "5.3.3",
        ValueKind.TAG: "v5.3.3",
        ValueKind.ASSET_URL: "https://x/dist.zip",
        ValueKind.SOURCE_ARCHIVE_URL: "https://github.com/twbs/bootstrap/archive/v5.3.3.zip",
    }


@pytest.mark.parametrize("bad", ["body", "", None, 1])
def test_rule_rejects_unknown_field_at_construction(bad):
    with pytest.raises(ValueError):
        NormalizationRule(preferred_field=bad)


def test_rule_coerces_plain_string_to_enum():
    rule = NormalizationRule(preferred_field="tag_name")
    assert rule.preferred_field is VersionField.TAG
    assert rule == NormalizationRule(preferred_field=VersionField.TAG)
