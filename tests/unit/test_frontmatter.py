"""Tests for frontmatter extraction."""

import yaml

from vaultgraph import FrontmatterError, extract_frontmatter


def test_no_frontmatter_is_ok_none():
    result = extract_frontmatter("just some text")

    assert result.is_ok()
    assert result.unwrap() is None


def test_json_content_is_not_frontmatter():
    assert extract_frontmatter('{"name": "test2"}').unwrap() is None


def test_empty_block_is_empty_mapping():
    assert extract_frontmatter("---\n---\n").unwrap() == {}


def test_parses_nested_mapping():
    content = "---\nname: Ironsworn\nironvault:\n  playset:\n    type: registry\n    key: classic\n---\nbody\n"

    assert extract_frontmatter(content).unwrap() == {
        "name": "Ironsworn",
        "ironvault": {"playset": {"type": "registry", "key": "classic"}},
    }


def test_block_at_end_of_file_without_trailing_newline():
    assert extract_frontmatter("---\nkind: campaign\n---").unwrap() == {
        "kind": "campaign"
    }


def test_dashes_inside_values_do_not_terminate():
    content = "---\ntitle: a---b\n---\n"

    assert extract_frontmatter(content).unwrap() == {"title": "a---b"}


def test_unterminated_block_is_err():
    result = extract_frontmatter("---\nname: test\n")

    assert result.is_err()
    assert isinstance(result.unwrap_err(), FrontmatterError)
    assert str(result.unwrap_err()) == "no terminator found."


def test_invalid_yaml_is_err():
    result = extract_frontmatter("---\nname: [unclosed\n---\n")

    assert isinstance(result.unwrap_err(), yaml.YAMLError)


def test_non_mapping_block_is_err():
    result = extract_frontmatter("---\n- a\n- b\n---\n")

    assert isinstance(result.unwrap_err(), FrontmatterError)


def test_leading_byte_order_mark_is_ignored():
    assert extract_frontmatter("\ufeff---\nkind: campaign\n---\nbody").unwrap() == {
        "kind": "campaign"
    }


def test_yaml_anchors_can_build_self_referential_data():
    data = extract_frontmatter("---\nloop: &x [*x]\n---\n").unwrap()

    assert data["loop"][0] is data["loop"]
