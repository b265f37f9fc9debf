import pytest

from scorer.extractor.sanitizer import (
    SanitizeOptions,
    extract_text,
    sanitize,
    sanitize_advanced,
    text_summary,
)

MARKUP_SAMPLES = [
    "<div>a</div><script>var x = '<b>';</script><style>p { color: red }</style><p>b</p>",
    "<SCRIPT type='text/javascript'>alert(1)</SCRIPT>text",
    '<iframe src="https://v.qq.com/x"><p>fallback</p></iframe><p>x</p>',
    "<scr<script>x</script>ipt>alert(1)</script>ok",
    "<p>a</p><script>alert(1)",
    "<p>a</p></style><p>b</p>",
    "<div>\n\n  <p style=\"margin: 0\">a</p>\n\t</div>  ",
    '<link rel="stylesheet" href="a.css"><p>x</p>',
    "<script>a</script><script>b</script><iframe></iframe><style></style>",
]


def test_removes_script_and_style_blocks():
    markup = "<div>a</div><script>var x = '<b>';</script><style>p{}</style><p>b</p>"
    assert sanitize(markup) == "<div>a</div><p>b</p>"


def test_tag_matching_is_case_insensitive():
    assert sanitize("<SCRIPT type='x'>alert(1)</SCRIPT>text") == "text"


def test_removes_link_and_iframe():
    assert sanitize('<link rel="stylesheet" href="a.css"><p>x</p>') == "<p>x</p>"
    assert sanitize('<iframe src="v"></iframe><p>x</p>') == "<p>x</p>"


def test_removes_inline_style_attributes():
    assert sanitize('<p style="color: red" class="a">x</p>') == '<p class="a">x</p>'
    assert sanitize("<p style='color: red'>x</p>") == "<p>x</p>"


def test_collapses_whitespace():
    assert sanitize("<div>\n\n  <p>a</p>\n\t</div>  ") == "<div> <p>a</p> </div>"


@pytest.mark.parametrize("value", [None, "", 42, ["<script>"]])
def test_non_string_or_empty_input_is_returned_unchanged(value):
    assert sanitize(value) is value


def test_spliced_tags_are_removed():
    result = sanitize("<scr<script>x</script>ipt>alert(1)</script>ok")
    assert "<script" not in result.lower()
    assert "</script" not in result.lower()
    assert result.endswith("ok")


def test_unterminated_block_does_not_leave_tag():
    result = sanitize("<p>a</p><script>alert(1)")
    assert result.startswith("<p>a</p>")
    assert "<script" not in result


def test_tags_sharing_a_prefix_are_kept():
    markup = (
        "<div><scripture-quote>Verse</scripture-quote>"
        "<styled-box>x</styled-box><linkbox>y</linkbox><script>z</script></div>"
    )
    result = sanitize(markup)
    assert "<scripture-quote>Verse</scripture-quote>" in result
    assert "<styled-box>x</styled-box>" in result
    assert "<linkbox>y</linkbox>" in result
    assert "<script>" not in result
    assert "z" not in result


@pytest.mark.parametrize("markup", MARKUP_SAMPLES)
def test_no_script_style_or_iframe_survives(markup):
    result = sanitize(markup).lower()
    for tag in ("<script", "<style", "<iframe", "</script", "</style", "</iframe"):
        assert tag not in result


@pytest.mark.parametrize("markup", MARKUP_SAMPLES)
def test_sanitize_is_idempotent(markup):
    once = sanitize(markup)
    assert sanitize(once) == once


def test_comments_only_removed_by_advanced_variant():
    markup = "<!-- tracking --><p>a</p>"
    assert sanitize(markup) == markup
    assert sanitize_advanced(markup) == "<p>a</p>"


def test_advanced_defaults_match_base_sanitizer():
    markup = "<div>\n\n<script>x</script><p style=\"a\">b</p></div>"
    assert sanitize_advanced(markup) == sanitize(markup)


def test_advanced_steps_can_be_disabled():
    markup = "<script>x</script>  <p>a</p>"
    assert sanitize_advanced(markup, SanitizeOptions(remove_scripts=False)) == "<script>x</script> <p>a</p>"

    options = SanitizeOptions(remove_empty_lines=False, remove_excessive_whitespace=False)
    assert sanitize_advanced(" <p>a</p>\n\n<p>b</p> ", options) == "<p>a</p>\n\n<p>b</p>"


def test_extract_text_strips_tags_and_decodes_entities():
    markup = "<p>Tom &amp; Jerry&nbsp;&lt;3</p><script>x</script>"
    assert extract_text(markup) == "Tom & Jerry <3"


def test_text_summary_truncates_with_ellipsis():
    assert text_summary("<p>" + "a" * 250 + "</p>") == "a" * 200 + "..."
    assert text_summary("<p>short</p>") == "short"
    assert text_summary("<p>abcdef</p>", max_length=3) == "abc..."
