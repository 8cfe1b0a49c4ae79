"""
Attribute extraction cases: brand, model (both phases), color, capacity,
version, watch size/band and product type.
"""
import pytest

from attribute_extractor import AttributeExtractor, MODEL_RULES
from catalog_models import SOURCE_EXACT, SOURCE_FUZZY, SOURCE_INFERRED


@pytest.fixture
def extractor(brand_records):
    return AttributeExtractor(brand_records)


# ---------------------------------------------------------------------------
# Brand
# ---------------------------------------------------------------------------

brand_cases = [
    ("华为 Mate 60 Pro", "华为", 1.0),
    ("HUAWEI Mate 60 Pro", "华为", 0.95),
    ("huawei mate 60 pro", "华为", 0.95),
    ("xiaomi 14 Ultra", "小米", 0.95),
    ("vivo Y50 5G", "vivo", 1.0),
]


@pytest.mark.parametrize("text, expected, confidence", brand_cases)
def test_extract_brand(extractor, text, expected, confidence):
    result = extractor.extract_brand(text)
    assert result.value == expected
    assert result.confidence == confidence
    assert result.source == SOURCE_EXACT


@pytest.mark.parametrize("text", ["三星 Galaxy S24", "", "   "])
def test_extract_brand_not_found(extractor, text):
    result = extractor.extract_brand(text)
    assert (result.value, result.confidence, result.source) == (None, 0, SOURCE_INFERRED)


def test_extract_brand_without_brand_table():
    result = AttributeExtractor().extract_brand("华为 Mate 60 Pro")
    assert result.value is None
    assert result.source == SOURCE_INFERRED


# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------

model_cases = [
    # (text, brand, expected, confidence)
    ("华为 Mate 60 Pro", "华为", "mate60pro", 1.0),
    ("华为Mate60Pro 12+512 雅川青", "华为", "mate60pro", 1.0),
    ("华为 Mate 60 Pro 12GB+512GB 雅川青", "华为", "mate60pro", 1.0),
    ("OPPO Find X7 Pro", "OPPO", "findx7pro", 1.0),
    ("华为 Watch GT 5", "华为", "watchgt5", 0.85),
    ("vivo Y50 5G", "vivo", "y50", 0.9),
    ("小米 14", "小米", "14", 0.85),
]


@pytest.mark.parametrize("text, brand, expected, confidence", model_cases)
def test_extract_model(extractor, text, brand, expected, confidence):
    result = extractor.extract_model(text, brand)
    assert result.value == expected
    assert result.confidence == confidence
    assert result.source == SOURCE_EXACT


@pytest.mark.parametrize("text, brand", [("华为", "华为"), ("", None), ("小米 8GB", "小米")])
def test_extract_model_not_found(extractor, text, brand):
    assert extractor.extract_model(text, brand).value is None


def test_model_rules_run_normalized_patterns_before_raw_fallback():
    assert [(r.name, r.phase) for r in MODEL_RULES] == [
        ("complex", "normalized"),
        ("word", "normalized"),
        ("simple-raw", "raw"),
        ("simple-normalized", "normalized"),
    ]


def test_letter_prefixed_code_survives_normalization_split(extractor):
    # 'y50' becomes 'y 50' after splitting; the raw phase keeps it whole
    assert extractor.strip_for_model("vivo Y50 5G", "vivo") == "y50"
    assert extractor.extract_model("vivo Y50 5G", "vivo").value == "y50"


def test_bare_year_is_not_a_model(extractor):
    assert extractor.extract_model("小米 2024", "小米").value is None


# ---------------------------------------------------------------------------
# Color
# ---------------------------------------------------------------------------

def test_color_from_vocabulary(extractor):
    extractor.set_color_list(["雅川青", "青"])
    result = extractor.extract_color("华为 Mate 60 Pro 雅川青")
    assert (result.value, result.confidence, result.source) == ("雅川青", 0.95, SOURCE_EXACT)


def test_color_variant_cluster_resolves_to_primary(extractor):
    extractor.set_color_variants({"雅川青": ["青山黛", "雅青"]})
    result = extractor.extract_color("Mate 60 Pro 青山黛")
    assert (result.value, result.confidence) == ("雅川青", 1.0)


color_cases = [
    ("华为 Mate 60 Pro 雅川青", "雅川青", 0.85, SOURCE_FUZZY),
    ("iPhone 15 黑", "黑", 0.7, SOURCE_FUZZY),
]


@pytest.mark.parametrize("text, expected, confidence, source", color_cases)
def test_color_patterns(extractor, text, expected, confidence, source):
    result = extractor.extract_color(text)
    assert (result.value, result.confidence, result.source) == (expected, confidence, source)


@pytest.mark.parametrize("text", ["小米 14 活力版", "华为手表 蓝牙版", ""])
def test_color_not_found(extractor, text):
    # editions are excluded; '蓝牙' is stripped before the '蓝' glyph check
    assert extractor.extract_color(text).value is None


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------

capacity_cases = [
    ("8GB+256GB", "8+256", 1.0, SOURCE_EXACT),
    ("12+512", "12+512", 1.0, SOURCE_EXACT),
    ("16GB+1TB", "16+1T", 1.0, SOURCE_EXACT),
    ("256GB", "256", 0.9, SOURCE_EXACT),
    ("1TB", "1T", 0.9, SOURCE_EXACT),
    ("8GB", "8", 0.7, SOURCE_FUZZY),
    ("8GB 内存", "8", 0.8, SOURCE_FUZZY),
    ("8GB memory", "8", 0.8, SOURCE_FUZZY),
    ("存储 512", "512", 0.8, SOURCE_FUZZY),
    ("storage 1024", "1T", 0.8, SOURCE_FUZZY),
]


@pytest.mark.parametrize("text, expected, confidence, source", capacity_cases)
def test_extract_capacity(extractor, text, expected, confidence, source):
    result = extractor.extract_capacity(text)
    assert (result.value, result.confidence, result.source) == (expected, confidence, source)


@pytest.mark.parametrize("text", ["Mate 60", "512", ""])
def test_extract_capacity_not_found(extractor, text):
    assert extractor.extract_capacity(text).value is None


# ---------------------------------------------------------------------------
# Version
# ---------------------------------------------------------------------------

version_cases = [
    ("华为 Mate 60 Pro 全网通5G", "全网通5G", 1.0, 10),
    ("Watch GT 5 蓝牙版", "蓝牙版", 1.0, 9),
    ("vivo Y50 5G", "5G", 1.0, 9),
    ("小米 14 活力版", "活力版", 0.95, 5),
    ("华为 Mate 60 Pro版", "Pro版", 0.95, 6),
    ("华为 Mate 60 Pro 礼盒", "礼盒版", 0.9, 3),
    ("荣耀 Magic 6 至尊版", "至尊版", 0.9, 6),
]


@pytest.mark.parametrize("text, name, confidence, priority", version_cases)
def test_extract_version(extractor, text, name, confidence, priority):
    result = extractor.extract_version(text)
    assert result.value.name == name
    assert result.value.priority == priority
    assert result.confidence == confidence


@pytest.mark.parametrize("text", ["华为 Mate 60 Pro", "iPhone 15 Pro Max Pro版", ""])
def test_extract_version_not_found(extractor, text):
    assert extractor.extract_version(text).value is None


# ---------------------------------------------------------------------------
# Watch attributes and product type
# ---------------------------------------------------------------------------

def test_watch_size(extractor):
    assert extractor.extract_watch_size("华为 Watch GT 5 46mm 复合编织表带").value == "46mm"
    assert extractor.extract_watch_size("小米手环 1.43寸屏幕").value == "1.43寸"
    assert extractor.extract_watch_size("华为 Watch GT 5 蓝牙版").value is None


def test_watch_band(extractor):
    specific = extractor.extract_watch_band("华为 Watch GT 5 46mm 复合编织表带托帕蓝")
    assert (specific.value, specific.confidence) == ("复合编织表带托帕蓝", 1.0)

    generic = extractor.extract_watch_band("小米手表 黑色表带")
    assert (generic.value, generic.confidence, generic.source) == ("表带", 0.8, SOURCE_FUZZY)

    assert extractor.extract_watch_band("华为 Watch GT 5 蓝牙版").value is None


product_type_cases = [
    ("华为 Watch GT 5", "watch"),
    ("小米手环 9", "band"),
    ("华为 MatePad 11", "tablet"),
    ("华为 MateBook X Pro", "laptop"),
    ("华为 FreeBuds Pro 3", "earbuds"),
    ("华为 Mate 60 Pro", "phone"),
]


@pytest.mark.parametrize("text, expected", product_type_cases)
def test_product_type(extractor, text, expected):
    assert extractor.extract_all(text).product_type == expected


def test_extract_all(extractor):
    info = extractor.extract_all("  华为Mate60Pro   12+512 雅川青 ")
    assert info.preprocessed_input == "华为Mate60Pro 12+512 雅川青"
    assert info.brand.value == "华为"
    assert info.model.value == "mate60pro"
    assert info.capacity.value == "12+512"
    assert info.color.value == "雅川青"
    for result in (info.brand, info.model, info.capacity, info.color):
        assert result.confidence > 0
    assert info.version.value is None
    assert info.product_type == "phone"
