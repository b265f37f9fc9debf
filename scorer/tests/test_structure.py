from scorer.extractor import normalize_article_html
from scorer.extractor.reader import read_content
from scorer.extractor.sanitizer import sanitize
from scorer.extractor.structure import extract_structure, strip_cosmetic_attributes


def test_scenario_page_is_reduced_to_marked_regions(scenario_html, scenario_extracted):
    assert extract_structure(sanitize(scenario_html)) == scenario_extracted
    assert normalize_article_html(scenario_html) == scenario_extracted


def test_regions_are_emitted_in_title_meta_content_order():
    markup = (
        '<html><body>'
        '<div class="rich_media_content"><p>body</p></div>'
        '<div id="meta_content">meta</div>'
        '<h1 class="rich_media_title">title</h1>'
        '</body></html>'
    )
    result = extract_structure(markup)
    assert result.index("data-title") < result.index("data-meta") < result.index("data-content")


def test_only_first_match_of_each_selector_is_kept():
    markup = (
        '<html><body>'
        '<h1 class="rich_media_title">first title</h1>'
        '<h1 class="rich_media_title">second title</h1>'
        '<div class="rich_media_content">content of the article body</div>'
        '</body></html>'
    )
    result = extract_structure(markup)
    assert "first title" in result
    assert "second title" not in result


def test_everything_outside_the_regions_is_dropped():
    markup = (
        '<html><head><title>page</title></head><body>'
        '<div class="nav">navigation</div>'
        '<div class="rich_media_title">title</div>'
        '<div class="footer">footer</div>'
        '</body></html>'
    )
    result = extract_structure(markup)
    assert "navigation" not in result
    assert "footer" not in result
    assert result.startswith("<html><head><title>page</title></head><body>")
    assert result.endswith("</body></html>")


def test_missing_region_is_left_out():
    markup = (
        '<html><body>'
        '<div class="rich_media_title">title</div>'
        '<div class="rich_media_content">content</div>'
        '</body></html>'
    )
    result = extract_structure(markup)
    assert "data-meta" not in result
    assert "data-title" in result
    assert "data-content" in result


def test_cosmetic_attributes_are_stripped_and_markers_survive():
    markup = (
        '<html><body>'
        '<div class="rich_media_title" id="activity-name" role="heading">title</div>'
        '<div id="meta_content" class="rich_media_meta_list">meta</div>'
        '<div class="rich_media_content" id="js_content">'
        '<section class="x" role="presentation"><span leaf="">a</span>'
        '<span nodeleaf="">b</span><img class="" src="a.png"></section>'
        '</div>'
        '</body></html>'
    )
    result = extract_structure(markup)
    for attribute in ("class=", "id=", "role=", "leaf="):
        assert attribute not in result
    for marker in ('data-title=""', 'data-meta=""', 'data-content=""'):
        assert marker in result
    assert 'src="a.png"' in result


def test_attribute_stripping_also_hits_matching_text():
    markup = '<html><body><div class="rich_media_content">use class="x" here</div></body></html>'
    result = extract_structure(markup)
    assert read_content(result).body == "use here"


def test_reader_sees_region_text_regardless_of_attributes():
    markup = (
        '<html><body>'
        '<h2 class="rich_media_title a b" id="t" role="heading">  健康科普：如何预防流感  </h2>'
        '<div class="rich_media_content" data-x="1"><p>第一段。</p><p>第二段。</p></div>'
        '</body></html>'
    )
    content = read_content(extract_structure(markup))
    assert content.title == "健康科普：如何预防流感"
    assert content.body == "第一段。第二段。"


def test_document_without_body_gets_one():
    result = extract_structure('<div class="rich_media_title">Title here</div><p>stray</p>')
    assert result == '<html><body><div data-title="">Title here</div></body></html>'


def test_empty_markup_yields_empty_body():
    assert extract_structure("") == "<html><body></body></html>"


def test_strip_cosmetic_attributes_handles_both_quote_styles():
    markup = "<p class='a' id=\"b\" role = 'c' data-id=\"keep\">x</p>"
    assert strip_cosmetic_attributes(markup) == '<p data-id="keep">x</p>'
