"""
Language Filter：标准化后的题目 + 语言选择 → wizard 实际要走的题目序列。

规则：
- section 题目永远保留
- 第一个语言偏好题永远保留
- 其余题目：primary 只留不含 alternate 标记的，alternate 只留含标记的
- 最后做一次稳定分区，把 demographics 挪到最前面

纯函数，没有任何隐藏状态，同样的输入永远得到同样的输出。
"""

from typing import Iterable

from .normalizer import is_language_selector_text
from .types import Language, QuestionItem, Variant

ALTERNATE_LANGUAGE_MARKERS = ("¿", "español")

# 前端 / 旧数据里的语言名
LANGUAGE_ALIASES = {
    "primary": Language.PRIMARY,
    "english": Language.PRIMARY,
    "alternate": Language.ALTERNATE,
    "spanish": Language.ALTERNATE,
    "español": Language.ALTERNATE,
}


def parse_language(value) -> Language | None:
    """把请求里的语言字符串转换成 Language，不认识返回 None。"""
    if isinstance(value, Language):
        return value
    return LANGUAGE_ALIASES.get(str(value or "").strip().lower())


def has_alternate_marker(text: str) -> bool:
    lowered = (text or "").lower()
    return any(marker in lowered for marker in ALTERNATE_LANGUAGE_MARKERS)


def filter_items(items: Iterable[QuestionItem], language: Language = Language.PRIMARY) -> list[QuestionItem]:
    kept = []
    selector_seen = False

    for item in items:
        if item.variant == Variant.SECTION:
            kept.append(item)
            continue

        if not selector_seen and is_language_selector_text(item.question_text):
            selector_seen = True
            kept.append(item)
            continue

        alternate = has_alternate_marker(item.question_text)
        if (language == Language.ALTERNATE) == alternate:
            kept.append(item)

    return demographics_first(kept)


def demographics_first(items: list[QuestionItem]) -> list[QuestionItem]:
    """单次遍历的稳定分区，不是多键排序。"""
    front, rest = [], []
    for item in items:
        (front if item.variant == Variant.DEMOGRAPHICS else rest).append(item)
    return front + rest
