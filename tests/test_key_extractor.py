import os

import pytest

from ditakeys.key_extractor import KeyDefinitionExtractor
from ditakeys.utils.paths import WorkspaceFolders


@pytest.fixture
def extractor(workspace):
    return KeyDefinitionExtractor(WorkspaceFolders([workspace]))


@pytest.fixture
def map_path(workspace):
    return str(workspace / "docs" / "root.ditamap")


def extract(extractor, content, map_path, max_matches=10000):
    return extractor.extract(
        extractor.strip_comments_and_cdata(content),
        map_path,
        max_matches
    )


def test_multiple_names_share_one_definition(extractor, map_path, workspace):
    """Every name in keys="..." gets the same target"""
    result = extract(extractor, '<keydef keys="a  b\tc" href="topic.dita"/>', map_path)

    assert [k.key_name for k in result.keys] == ["a", "b", "c"]
    expected = str(workspace / "docs" / "topic.dita")
    assert all(k.target_file == expected for k in result.keys)
    assert all(k.source_map == map_path for k in result.keys)


def test_href_fragment_becomes_element_id(extractor, map_path, workspace):
    result = extract(extractor, '<keydef keys="intro" href="../topics/intro.dita#intro_id"/>', map_path)

    key = result.keys[0]
    assert key.target_file == str(workspace / "topics" / "intro.dita")
    assert key.element_id == "intro_id"


def test_fragment_only_href_has_no_target(extractor, map_path):
    result = extract(extractor, '<keydef keys="local" href="#section"/>', map_path)

    key = result.keys[0]
    assert key.target_file is None
    assert key.element_id == "section"


def test_target_outside_workspace_is_dropped(extractor, map_path):
    """Well-formed hrefs escaping the workspace never become targets"""
    result = extract(extractor, '<keydef keys="escape" href="../../../outside.dita"/>', map_path)

    key = result.keys[0]
    assert key.key_name == "escape"
    assert key.target_file is None


def test_external_urls_are_not_targets(extractor, map_path):
    result = extract(
        extractor,
        '<keydef keys="site" href="https://example.com/docs" scope="external" format="html"/>',
        map_path
    )

    key = result.keys[0]
    assert key.target_file is None
    assert key.scope == "external"


def test_scope_and_processing_role_pass_through(extractor, map_path):
    result = extract(
        extractor,
        '<keydef keys="res" href="res.dita" scope="peer" processing-role="resource-only"/>',
        map_path
    )

    key = result.keys[0]
    assert key.scope == "peer"
    assert key.processing_role == "resource-only"


def test_inline_keyword_content(extractor, map_path):
    content = (
        '<keydef keys="company">\n'
        '  <topicmeta><keywords><keyword>Acme Corp</keyword></keywords></topicmeta>\n'
        '</keydef>'
    )
    key = extract(extractor, content, map_path).keys[0]

    assert key.inline_content == "Acme Corp"
    assert key.target_file is None
    assert key.metadata.keywords == ["Acme Corp"]


def test_inline_content_ignored_when_target_exists(extractor, map_path):
    content = (
        '<keydef keys="product" href="product.dita">'
        '<topicmeta><keywords><keyword>Widget</keyword></keywords></topicmeta>'
        '</keydef>'
    )
    key = extract(extractor, content, map_path).keys[0]

    assert key.target_file is not None
    assert key.inline_content is None


def test_self_closing_keydef_does_not_borrow_next_topicmeta(extractor, map_path):
    content = (
        '<keydef keys="empty"/>\n'
        '<keydef keys="named"><topicmeta><keywords><keyword>Named</keyword></keywords></topicmeta></keydef>'
    )
    keys = {k.key_name: k for k in extract(extractor, content, map_path).keys}

    assert keys["empty"].is_empty
    assert keys["named"].inline_content == "Named"


def test_metadata_from_topicmeta(extractor, map_path):
    content = (
        '<keydef keys="guide" href="guide.dita">'
        '<topicmeta>'
        '<navtitle>User <ph>Guide</ph></navtitle>'
        '<keywords><keyword>guide</keyword><keyword>manual</keyword></keywords>'
        '<shortdesc>How to use the product.</shortdesc>'
        '</topicmeta>'
        '</keydef>'
    )
    metadata = extract(extractor, content, map_path).keys[0].metadata

    assert metadata.navtitle == "User Guide"
    assert metadata.keywords == ["guide", "manual"]
    assert metadata.shortdesc == "How to use the product."


def test_navtitle_attribute_used_without_element(extractor, map_path):
    key = extract(extractor, '<topicref keys="ch1" href="ch1.dita" navtitle="Chapter One"/>', map_path).keys[0]

    assert key.metadata.navtitle == "Chapter One"


def test_malformed_topicmeta_still_yields_key(extractor, map_path):
    content = (
        '<keydef keys="broken"><topicmeta><keywords><keyword>Text &bogus; here</keyword>'
        '<shortdesc><b>unclosed</shortdesc></keywords></topicmeta></keydef>'
    )
    keys = extract(extractor, content, map_path).keys

    assert [k.key_name for k in keys] == ["broken"]


def test_commented_declarations_are_ignored(extractor, map_path):
    content = (
        '<!-- <keydef keys="hidden" href="hidden.dita"/> -->\n'
        '<![CDATA[ <keydef keys="cdata" href="cdata.dita"/> ]]>\n'
        '<keydef keys="visible" href="visible.dita"/>'
    )
    result = extract(extractor, content, map_path)

    assert [k.key_name for k in result.keys] == ["visible"]


def test_stripping_preserves_offsets():
    text = 'a<!-- one\ntwo -->b<![CDATA[x]]>c'
    stripped = KeyDefinitionExtractor.strip_comments_and_cdata(text)

    assert len(stripped) == len(text)
    assert stripped.index("b") == text.index("b")
    assert stripped.index("c") == text.index("c")
    assert stripped.count("\n") == 1


def test_key_match_cap(extractor, map_path):
    content = "\n".join(f'<keydef keys="k{i}" href="t{i}.dita"/>' for i in range(20))
    result = extract(extractor, content, map_path, max_matches=5)

    assert [k.key_name for k in result.keys] == ["k0", "k1", "k2", "k3", "k4"]


def test_submap_references(extractor, map_path, workspace):
    content = (
        '<mapref href="sub/a.ditamap"/>\n'
        '<topicref href="b.bookmap" format="ditamap"/>\n'
        '<chapter href="chapters/c.ditamap"/>\n'
        '<topicref href="topic.dita"/>\n'
        '<mapref href="https://example.com/remote.ditamap"/>\n'
        '<mapref href="../../../outside.ditamap"/>'
    )
    result = extract(extractor, content, map_path)

    docs = workspace / "docs"
    assert result.submaps == [
        str(docs / "sub" / "a.ditamap"),
        str(docs / "b.bookmap"),
        str(docs / "chapters" / "c.ditamap"),
    ]


def test_submap_cap_is_derived_from_link_matches():
    assert KeyDefinitionExtractor.submap_limit(10000) == 1000
    assert KeyDefinitionExtractor.submap_limit(50000) == 5000
    assert KeyDefinitionExtractor.submap_limit(10) == 1000


def test_no_workspace_accepts_any_path(map_path):
    extractor = KeyDefinitionExtractor()
    key = extract(extractor, '<keydef keys="far" href="../../../far.dita"/>', map_path).keys[0]

    assert key.target_file == os.path.normpath(os.path.join(os.path.dirname(map_path), "../../../far.dita"))
