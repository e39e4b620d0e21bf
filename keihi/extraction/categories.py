"""
Category Taxonomy and Keyword Suggester

DESIGN DECISION: We use simple keyword matching rather than ML because:
1. More transparent to the user
2. Deterministic (same text, same answer)
3. The user confirms or overrides anyway

The taxonomy is an ordered tuple, not a dict. Categories are tried in
declared order and keywords within a category in declared order; the
first keyword found in the text decides. There is no scoring.
"""

from typing import Optional

from keihi.models.transaction import (
    FALLBACK_CATEGORY,
    Category,
    CategoryDefinition,
)


CATEGORY_TAXONOMY: tuple[CategoryDefinition, ...] = (
    CategoryDefinition(
        id=Category.OUTSOURCING,
        display_name="外注工賃",
        icon="👨‍💻",
        keywords=(
            "外注", "業務委託", "ランサーズ", "lancers",
            "クラウドワークス", "crowdworks", "ココナラ", "coconala",
        ),
    ),
    CategoryDefinition(
        id=Category.TRAVEL,
        display_name="旅費交通費",
        icon="🚃",
        keywords=(
            "jr", "suica", "pasmo", "icoca", "電車", "鉄道", "新幹線",
            "地下鉄", "メトロ", "バス", "タクシー", "taxi", "uber",
            "全日空", "日本航空", "航空", "ホテル", "旅館", "駐車",
            "パーキング", "高速", "ガソリン", "eneos",
        ),
    ),
    CategoryDefinition(
        id=Category.COMMUNICATION,
        display_name="通信費",
        icon="📱",
        keywords=(
            "docomo", "ドコモ", "softbank", "ソフトバンク", "楽天モバイル",
            "kddi", "通信", "携帯", "電話", "インターネット", "プロバイダ",
            "wi-fi", "wifi", "光回線", "サーバー", "ドメイン", "切手", "郵便",
        ),
    ),
    CategoryDefinition(
        id=Category.SUPPLIES,
        display_name="消耗品費",
        icon="🖊️",
        keywords=(
            "amazon", "アマゾン", "ヨドバシ", "ビックカメラ", "ダイソー",
            "セリア", "文具", "文房具", "コピー用紙", "用紙", "インク",
            "トナー", "ロフト", "ハンズ", "無印", "ケーブル", "消耗品",
        ),
    ),
    CategoryDefinition(
        id=Category.ADVERTISING,
        display_name="広告宣伝費",
        icon="📢",
        keywords=(
            "広告", "宣伝", "google ads", "facebook", "instagram",
            "チラシ", "名刺", "印刷", "プロモーション",
        ),
    ),
    CategoryDefinition(
        id=Category.ENTERTAINMENT,
        display_name="接待交際費",
        icon="🍽️",
        keywords=(
            "居酒屋", "レストラン", "カフェ", "喫茶", "スターバックス",
            "starbucks", "ドトール", "タリーズ", "飲食", "食事", "会食",
            "ランチ", "ディナー", "寿司", "焼肉", "贈答", "手土産",
            "お土産", "ギフト",
        ),
    ),
    CategoryDefinition(
        id=Category.DEPRECIATION,
        display_name="減価償却費",
        icon="💻",
        keywords=(
            "減価償却", "macbook", "imac", "ipad", "パソコン", "ノートpc",
        ),
    ),
    CategoryDefinition(
        id=Category.HOME_OFFICE,
        display_name="家事按分",
        icon="🏠",
        keywords=(
            "家事按分", "家賃", "電気", "電力", "ガス", "水道",
        ),
    ),
    CategoryDefinition(
        id=Category.FEES,
        display_name="支払手数料",
        icon="🏦",
        keywords=(
            "手数料", "振込", "paypal", "stripe", "決済", "銀行",
        ),
    ),
    CategoryDefinition(
        id=Category.MISC,
        display_name="雑費",
        icon="📦",
        keywords=(),
    ),
)

_BY_ID: dict[Category, CategoryDefinition] = {
    definition.id: definition for definition in CATEGORY_TAXONOMY
}


def get_category_definition(category: Category) -> CategoryDefinition:
    """Look up the taxonomy entry for a category id."""
    return _BY_ID[category]


def display_name(category: Category) -> str:
    """Japanese account name shown to the user and in the tax summary."""
    return _BY_ID[category].display_name


def suggest_category(text: Optional[str]) -> Category:
    """
    Suggest a category for a vendor name or memo.

    Returns the first category (in taxonomy order) with a keyword that
    appears in the text, ignoring case. Empty text or no match gives
    the fallback category.
    """
    if not text:
        return FALLBACK_CATEGORY

    haystack = text.lower()
    for definition in CATEGORY_TAXONOMY:
        for keyword in definition.keywords:
            if keyword in haystack:
                return definition.id

    return FALLBACK_CATEGORY
