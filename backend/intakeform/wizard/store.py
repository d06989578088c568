"""
Response Store：一次填写过程中采集到的所有答案。

结构是 map-of-maps：question_id → sub_key → value，sub_key 是显式的 tuple，
不做字符串拼接，不同 variant 之间不会发生 key 冲突。

key 形状（每个 question id 只能用一种）：
  answer   ()              简单答案（文本、单选、多选列表、日期、签名、附件列表）
  field    (field_name,)   demographics / insurance 子字段，bodyMap 的 markings / description
  cell     (row, col)      matrix 单元格
  control  (index,)        mixedControls 子控件

存进去的值原样取出，不做任何类型转换。
"""

from enum import Enum
from typing import Any

from ..exceptions import ResponseKeyConflict


class KeyKind(str, Enum):
    ANSWER = "answer"
    FIELD = "field"
    CELL = "cell"
    CONTROL = "control"


def is_filled(value: Any) -> bool:
    """None、空白字符串、空列表 / 空 dict 都算没填。"""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


class ResponseStore:

    def __init__(self):
        self._data: dict[str, dict[tuple, Any]] = {}
        self._kinds: dict[str, KeyKind] = {}

    # ── 写入 ───────────────────────────────────────────────────────────────

    def set_answer(self, question_id: str, value: Any) -> None:
        self._put(question_id, KeyKind.ANSWER, (), value)

    def set_field(self, question_id: str, field_name: str, value: Any) -> None:
        self._put(question_id, KeyKind.FIELD, (field_name,), value)

    def set_cell(self, question_id: str, row: int, col: int, value: Any, single_per_row: bool = False) -> None:
        """
        single_per_row=True（matrixSingleAnswer）：同一行之前选过的其他列会被移除，
        一行永远只保留最后一次选择。
        """
        if single_per_row:
            self._check_kind(question_id, KeyKind.CELL)
            bucket = self._data.get(question_id, {})
            for key in [k for k in bucket if k[0] == row and k[1] != col]:
                del bucket[key]
        self._put(question_id, KeyKind.CELL, (row, col), value)

    def set_control(self, question_id: str, index: int, value: Any) -> None:
        self._put(question_id, KeyKind.CONTROL, (index,), value)

    def clear(self, question_id: str) -> None:
        self._data.pop(question_id, None)
        self._kinds.pop(question_id, None)

    # ── 读取 ───────────────────────────────────────────────────────────────

    def get_answer(self, question_id: str, default: Any = None) -> Any:
        return self._get(question_id, KeyKind.ANSWER, (), default)

    def get_field(self, question_id: str, field_name: str, default: Any = None) -> Any:
        return self._get(question_id, KeyKind.FIELD, (field_name,), default)

    def get_cell(self, question_id: str, row: int, col: int, default: Any = None) -> Any:
        return self._get(question_id, KeyKind.CELL, (row, col), default)

    def get_control(self, question_id: str, index: int, default: Any = None) -> Any:
        return self._get(question_id, KeyKind.CONTROL, (index,), default)

    def fields(self, question_id: str) -> dict[str, Any]:
        if self._kinds.get(question_id) != KeyKind.FIELD:
            return {}
        return {key[0]: value for key, value in self._data[question_id].items()}

    def cells(self, question_id: str) -> list[tuple[int, int, Any]]:
        """按 (row, col) 排序返回。"""
        if self._kinds.get(question_id) != KeyKind.CELL:
            return []
        return [(row, col, value) for (row, col), value in sorted(self._data[question_id].items())]

    def controls(self, question_id: str) -> dict[int, Any]:
        if self._kinds.get(question_id) != KeyKind.CONTROL:
            return {}
        return {key[0]: value for key, value in sorted(self._data[question_id].items())}

    def kind(self, question_id: str) -> KeyKind | None:
        return self._kinds.get(question_id)

    def has_any(self, question_id: str) -> bool:
        return any(is_filled(v) for v in self._data.get(question_id, {}).values())

    def question_ids(self) -> list[str]:
        return list(self._data)

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._data.values())

    # ── 内部 ───────────────────────────────────────────────────────────────

    def _check_kind(self, question_id: str, kind: KeyKind) -> None:
        existing = self._kinds.get(question_id)
        if existing is not None and existing != kind:
            raise ResponseKeyConflict(
                message=(
                    f"Question {question_id!r} already holds {existing.value} responses; "
                    f"cannot store a {kind.value} response."
                ),
                detail={'question_id': question_id, 'existing': existing.value, 'attempted': kind.value},
            )

    def _put(self, question_id: str, kind: KeyKind, sub_key: tuple, value: Any) -> None:
        self._check_kind(question_id, kind)
        if value is None:
            bucket = self._data.get(question_id)
            if bucket is not None:
                bucket.pop(sub_key, None)
                if not bucket:
                    self.clear(question_id)
            return
        self._kinds[question_id] = kind
        self._data.setdefault(question_id, {})[sub_key] = value

    def _get(self, question_id: str, kind: KeyKind, sub_key: tuple, default: Any) -> Any:
        if self._kinds.get(question_id) != kind:
            return default
        return self._data[question_id].get(sub_key, default)
