"""
Step Sequencer：过滤后题目序列上的有限状态游标。

状态：Active(index)，0 <= index < N；N == 0 时为 Empty。
- advance()          index → index+1；已在最后一步时原地不动（最后一步的前进动作是 Submit）
- retreat()          index → index-1；永远不做校验
- change_language()  index → 0，并重新计算序列

Next 之前的校验不在这里做，由 Wizard 负责（见 session.py）。
"""

from .language import filter_items
from .types import Language, QuestionItem


class StepSequencer:

    def __init__(self, items: tuple[QuestionItem, ...], language: Language = Language.PRIMARY):
        self._all_items = tuple(items)
        self.language = language
        self.filtered_items = filter_items(self._all_items, language)
        self.current_index = 0

    # ── 状态查询 ───────────────────────────────────────────────────────────

    @property
    def total(self) -> int:
        return len(self.filtered_items)

    @property
    def is_empty(self) -> bool:
        return not self.filtered_items

    @property
    def current(self) -> QuestionItem | None:
        if self.is_empty:
            return None
        return self.filtered_items[self.current_index]

    @property
    def can_go_back(self) -> bool:
        return self.current_index > 0

    @property
    def can_go_forward(self) -> bool:
        return self.current_index < self.total - 1

    @property
    def is_terminal(self) -> bool:
        return not self.is_empty and self.current_index == self.total - 1

    # ── 状态转移 ───────────────────────────────────────────────────────────

    def advance(self) -> bool:
        """前进一步，返回是否真的移动了。"""
        if not self.can_go_forward:
            return False
        self.current_index += 1
        return True

    def retreat(self) -> bool:
        if not self.can_go_back:
            return False
        self.current_index -= 1
        return True

    def change_language(self, language: Language) -> None:
        self.language = language
        self.filtered_items = filter_items(self._all_items, language)
        self.current_index = 0
