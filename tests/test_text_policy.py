import pytest

from catalog_models import BrandRecord
from text_policy import (
    compact_model, find_brand_record, normalize_model_key, remove_brand_at_position,
    remove_brand_forms, sort_brands_longest_first, split_model_tokens, strip_catalog_capacity,
    strip_color_glyph_runs, trim_separators,
)


def test_longest_brand_wins():
    brands = sort_brands_longest_first([BrandRecord('小米'), BrandRecord('小米有品')])
    assert [b.name for b in brands] == ['小米有品', '小米']
    assert find_brand_record("小米有品 电动牙刷", brands).name == '小米有品'


def test_find_brand_by_alternate_spelling(brand_records):
    brands = sort_brands_longest_first(brand_records)
    assert find_brand_record("HUAWEI Mate 60", brands).name == '华为'
    assert find_brand_record("三星 S24", brands) is None


def test_query_time_removal_cuts_every_form(brand_records):
    text = remove_brand_forms("华为huawei mate 60", "华为", brand_records)
    assert text.split() == ["mate", "60"]


def test_query_time_removal_cuts_each_form_once(brand_records):
    # matched text, then the canonical name: two cuts, the third copy stays
    text = remove_brand_forms("华为 mate 60 华为 华为", "华为", brand_records)
    assert text.split() == ["mate", "60", "华为"]


def test_index_time_removal_is_positional_and_keeps_case(brand_records):
    assert remove_brand_at_position("华为 Mate 60 Pro", "华为", brand_records) == " Mate 60 Pro"
    assert remove_brand_at_position("HUAWEI Mate 60 Pro", "华为", brand_records) == " Mate 60 Pro"
    assert remove_brand_at_position("Mate 60 Pro", "华为", brand_records) == "Mate 60 Pro"


@pytest.mark.parametrize("text, expected", [
    ("Mate 60 Pro 12GB+512GB", "Mate 60 Pro"),
    ("Mate 60 Pro 256GB雅川青", "Mate 60 Pro 雅川青"),
    ("Y50 8G+256G", "Y50"),
    ("Mate 60 Pro", "Mate 60 Pro"),
])
def test_strip_catalog_capacity(text, expected):
    assert " ".join(strip_catalog_capacity(text).split()) == expected


def test_strip_color_glyph_runs():
    assert strip_color_glyph_runs("Mate 60 雅川青").strip() == "Mate 60"
    assert strip_color_glyph_runs("Mate 60 典藏版") == "Mate 60 典藏版"


def test_trim_separators():
    assert trim_separators(" - Mate 60 _ ") == "Mate 60"


def test_model_forms():
    assert split_model_tokens("mate60pro") == "mate 60 pro"
    assert split_model_tokens("y50") == "y 50"
    assert normalize_model_key("  Mate  60 Pro! ") == "mate 60 pro"
    assert compact_model("Mate 60-Pro") == "mate60pro"
