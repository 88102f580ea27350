from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from tabibito.models import PostType, Region, SpotCategory


@dataclass(frozen=True)
class RegionInfo:
    key: Region
    name: str
    emoji: str


@dataclass(frozen=True)
class PostTypeInfo:
    key: PostType
    name: str
    emoji: str
    description: str


@dataclass(frozen=True)
class SpotCategoryInfo:
    key: SpotCategory
    name: str
    emoji: str
    color: str


HOKKAIDO_REGIONS: tuple[RegionInfo, ...] = (
    RegionInfo(Region.ALL, "全体", "🌍"),
    RegionInfo(Region.DOUNAN, "道南", "🌸"),
    RegionInfo(Region.DOOU, "道央", "🏔️"),
    RegionInfo(Region.DOHOKU, "道北", "❄️"),
    RegionInfo(Region.DOUTOU, "道東", "🦌"),
)

POST_TYPES: tuple[PostTypeInfo, ...] = (
    PostTypeInfo(PostType.STATUS, "移動状況", "🚗", "移動中の状況や現在地情報"),
    PostTypeInfo(PostType.SPOT, "スポット情報", "📍", "おすすめの場所や施設の情報"),
    PostTypeInfo(PostType.INFO, "リアルタイム情報", "⚠️", "道路状況、天候、営業情報など"),
    PostTypeInfo(PostType.HELP, "ヘルプ", "🆘", "困った時の相談や助けを求める"),
    PostTypeInfo(PostType.LOG, "旅行記", "📖", "詳細な体験談や旅の振り返り"),
)

SPOT_CATEGORIES: tuple[SpotCategoryInfo, ...] = (
    SpotCategoryInfo(SpotCategory.ACCOMMODATION, "宿泊", "🏨", "#4A90E2"),
    SpotCategoryInfo(SpotCategory.CAMPING, "キャンプ", "🏕️", "#7ED321"),
    SpotCategoryInfo(SpotCategory.FUEL, "燃料", "⛽", "#F5A623"),
    SpotCategoryInfo(SpotCategory.FOOD, "グルメ", "🍜", "#D0021B"),
    SpotCategoryInfo(SpotCategory.SIGHTSEEING, "観光", "🎌", "#9013FE"),
    SpotCategoryInfo(SpotCategory.ONSEN, "温泉", "♨️", "#FF6B35"),
    SpotCategoryInfo(SpotCategory.SERVICE, "サービス", "🛠️", "#50555C"),
    SpotCategoryInfo(SpotCategory.SHOPPING, "買い物", "🏪", "#BD10E0"),
    SpotCategoryInfo(SpotCategory.COMMUNICATION, "通信", "📱", "#000000"),
)


def _key(value: object) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def get_region_info(region: Region | str) -> RegionInfo:
    key = _key(region)
    return next((item for item in HOKKAIDO_REGIONS if item.key.value == key), HOKKAIDO_REGIONS[0])


def get_post_type_info(post_type: PostType | str) -> PostTypeInfo:
    key = _key(post_type)
    return next((item for item in POST_TYPES if item.key.value == key), POST_TYPES[0])


def get_spot_category_info(category: SpotCategory | str) -> SpotCategoryInfo:
    key = _key(category)
    return next((item for item in SPOT_CATEGORIES if item.key.value == key), SPOT_CATEGORIES[0])
