import pytest

from civicmap.attachments.refs import (
    CsvString,
    JsonArrayString,
    PathRef,
    RefList,
    UrlText,
    classify,
    normalize_value,
)
from civicmap.errors import UnsupportedReferenceError


def test_json_array_field():
    assert normalize_value('["a/b.jpg","https://x/y.jpg"]') == ["a/b.jpg", "https://x/y.jpg"]


def test_comma_separated_field():
    assert normalize_value("a/b.jpg, c/d.jpg") == ["a/b.jpg", "c/d.jpg"]
    assert normalize_value("a/b.jpg,, ,c/d.jpg,") == ["a/b.jpg", "c/d.jpg"]


def test_flat_url_list_is_unchanged():
    urls = ["https://cdn.example.com/a.jpg", "http://cdn.example.com/b.png?x=1"]
    assert normalize_value(urls) == urls
    assert normalize_value(normalize_value(urls)) == urls


def test_double_encoded_json_array():
    assert normalize_value('"[\\"u1/a.jpg\\", \\"u1/b.jpg\\"]"') == ["u1/a.jpg", "u1/b.jpg"]


def test_malformed_json_falls_through():
    assert normalize_value("[https://x/a.jpg, https://x/b.jpg") == ["https://x/a.jpg", "https://x/b.jpg"]
    assert normalize_value("[not json") == ["[not json"]


def test_embedded_urls_are_extracted():
    text = "before https://a.example/x.jpg then https://b.example/y.png."
    assert normalize_value(text) == ["https://a.example/x.jpg", "https://b.example/y.png."]


def test_blank_values_normalise_to_nothing():
    assert normalize_value(None) == []
    assert normalize_value("") == []
    assert normalize_value("   ") == []
    assert normalize_value([]) == []
    assert normalize_value(["", None, "  "]) == []
    assert normalize_value("[]") == []


def test_nested_lists_keep_order():
    value = ["u/1.jpg", ['["u/2.jpg"]', "u/3.jpg, u/4.jpg"], "https://x/5.jpg"]
    assert normalize_value(value) == ["u/1.jpg", "u/2.jpg", "u/3.jpg", "u/4.jpg", "https://x/5.jpg"]


def test_classify_variants():
    assert classify("u/a.jpg") == PathRef("u/a.jpg")
    assert classify(" https://x/a.jpg ") == UrlText("https://x/a.jpg")
    assert classify("a, b") == CsvString("a, b")
    assert classify('["a"]') == JsonArrayString('["a"]')
    assert classify(["a"]) == RefList((PathRef("a"),))


def test_unsupported_shapes_raise():
    with pytest.raises(UnsupportedReferenceError):
        normalize_value({"path": "a.jpg"})
    with pytest.raises(TypeError):
        normalize_value(42)
