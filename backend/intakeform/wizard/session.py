"""
Wizard：一次填写过程。

持有标准化模板、StepSequencer、ResponseStore，以及已创建患者的记录（用于重试时复用）。
所有输入都先按题目的 variant 检查形状，再写进 store；所有转移都同步执行完毕，
出错时状态保持不变。
"""

import logging
from typing import Any

from ..exceptions import BlockError, ValidationError, ValidationViolation
from .language import parse_language
from .normalizer import is_language_selector_text
from .sequencer import StepSequencer
from .store import ResponseStore
from .types import (
    ASSIGNED_DOCTOR_FIELD,
    DESCRIPTION_FIELD,
    MARKINGS_FIELD,
    AttachedFile,
    FormTemplate,
    Language,
    QuestionItem,
    Variant,
)
from .validation import ensure_valid

logger = logging.getLogger(__name__)

ANSWER_VARIANTS = {
    Variant.OPEN_ANSWER,
    Variant.SMART_EDITOR,
    Variant.E_SIGNATURE,
    Variant.DATE,
    Variant.MULTIPLE_CHOICE_SINGLE,
    Variant.MULTIPLE_CHOICE_MULTIPLE,
}
FIELD_VARIANTS = {
    Variant.DEMOGRAPHICS,
    Variant.PRIMARY_INSURANCE,
    Variant.SECONDARY_INSURANCE,
    Variant.BODY_MAP,
}
CELL_VARIANTS = {Variant.MATRIX, Variant.MATRIX_SINGLE_ANSWER}

BYTES_PER_MB = 1024 * 1024


class Wizard:

    def __init__(self, template: FormTemplate, language: Language = Language.PRIMARY):
        self.template = template
        self.sequencer = StepSequencer(template.items, language)
        self.store = ResponseStore()
        # (patient payload fingerprint, patient id)
        self.created_patient: tuple[str, str] | None = None

    # ── 查询 ───────────────────────────────────────────────────────────────

    @property
    def current_item(self) -> QuestionItem | None:
        return self.sequencer.current

    @property
    def language(self) -> Language:
        return self.sequencer.language

    def item(self, question_id: str) -> QuestionItem:
        item = self.template.get_item(question_id)
        if item is None:
            raise ValidationError(
                message=f"Unknown question: {question_id!r}.",
                code='UNKNOWN_QUESTION',
                detail={'question_id': question_id},
            )
        return item

    def language_selector(self) -> QuestionItem | None:
        for item in self.template.items:
            if item.variant != Variant.SECTION and is_language_selector_text(item.question_text):
                return item
        return None

    # ── 输入采集 ───────────────────────────────────────────────────────────

    def capture_answer(self, question_id: str, value: Any) -> None:
        item = self._item_of(question_id, ANSWER_VARIANTS, "answer")

        if item.variant == Variant.MULTIPLE_CHOICE_SINGLE and value is not None:
            self._check_options(item, [value])
        elif item.variant == Variant.MULTIPLE_CHOICE_MULTIPLE and value is not None:
            if not isinstance(value, list):
                raise ValidationError(
                    message="Multiple choice answers must be a list.",
                    code='INVALID_ANSWER',
                    detail={'question_id': question_id},
                )
            self._check_options(item, value)

        self.store.set_answer(question_id, value)

        if is_language_selector_text(item.question_text):
            language = parse_language(value)
            if language is not None and language != self.language:
                self.sequencer.change_language(language)

    def capture_field(self, question_id: str, field_name: str, value: Any) -> None:
        item = self._item_of(question_id, FIELD_VARIANTS, "field")

        if item.variant == Variant.BODY_MAP:
            allowed = {MARKINGS_FIELD, DESCRIPTION_FIELD}
            if field_name == MARKINGS_FIELD:
                self._check_markings(item, value)
        else:
            allowed = {f.field_name for f in item.fields}
            if item.variant == Variant.DEMOGRAPHICS:
                allowed.add(ASSIGNED_DOCTOR_FIELD)

        if field_name not in allowed:
            raise ValidationError(
                message=f"Unknown field {field_name!r} for question {question_id!r}.",
                code='UNKNOWN_FIELD',
                detail={'question_id': question_id, 'field': field_name, 'known_fields': sorted(allowed)},
            )
        self.store.set_field(question_id, field_name, value)

    def capture_cell(self, question_id: str, row: int, column: int, value: Any) -> None:
        item = self._item_of(question_id, CELL_VARIANTS, "cell")
        out_of_range = (
            row < 0 or column < 0
            or (item.rows and row >= len(item.rows))
            or (item.column_headers and column >= len(item.column_headers))
        )
        if out_of_range:
            raise ValidationError(
                message=f"Cell ({row}, {column}) is outside the matrix.",
                code='CELL_OUT_OF_RANGE',
                detail={'question_id': question_id, 'row': row, 'column': column},
            )
        self.store.set_cell(
            question_id, row, column, value,
            single_per_row=item.variant == Variant.MATRIX_SINGLE_ANSWER,
        )

    def capture_control(self, question_id: str, index: int, value: Any) -> None:
        item = self._item_of(question_id, {Variant.MIXED_CONTROLS}, "control")
        if not 0 <= index < len(item.controls):
            raise ValidationError(
                message=f"Control #{index} does not exist.",
                code='CONTROL_OUT_OF_RANGE',
                detail={'question_id': question_id, 'control': index},
            )
        self.store.set_control(question_id, index, value)

    def attach_files(self, question_id: str, files: list[AttachedFile]) -> None:
        """
        替换该题已选的文件。任意一个文件超限或类型不允许时整批拒绝，store 不变。
        """
        item = self._item_of(question_id, {Variant.FILE_ATTACHMENT}, "files")
        max_bytes = item.max_file_size * BYTES_PER_MB

        for attached in files:
            if attached.size > max_bytes:
                logger.info("[Intake][attach] %s rejected: %d bytes > %s MB",
                            attached.name, attached.size, item.max_file_size)
                raise ValidationViolation(
                    f"{attached.name} exceeds the {item.max_file_size:g} MB limit",
                    question_id=question_id,
                    field=attached.name,
                    code='FILE_TOO_LARGE',
                )
            if item.file_types and attached.extension not in item.file_types:
                raise ValidationViolation(
                    f"{attached.name} is not an allowed file type ({', '.join(item.file_types)})",
                    question_id=question_id,
                    field=attached.name,
                    code='FILE_TYPE_NOT_ALLOWED',
                )

        self.store.set_answer(question_id, list(files) or None)

    # ── 状态转移 ───────────────────────────────────────────────────────────

    def next(self) -> bool:
        """校验当前题目后前进；最后一步时不动（应该走 Submit）。"""
        item = self.current_item
        if item is None:
            return False
        ensure_valid(item, self.store)
        return self.sequencer.advance()

    def previous(self) -> bool:
        return self.sequencer.retreat()

    def change_language(self, language: Language) -> None:
        self.sequencer.change_language(language)
        selector = self.language_selector()
        if selector is None or selector.variant != Variant.MULTIPLE_CHOICE_SINGLE:
            return
        option = _selector_option(selector, language)
        # 没有对应选项时不写答案，store 里只保存合法选项
        if option is not None:
            self.store.set_answer(selector.id, option)

    def check_ready_to_submit(self) -> None:
        """只允许在最后一步提交，并对当前题目做最后一次校验。"""
        if not self.sequencer.is_terminal:
            raise BlockError(
                message="The form can only be submitted from the last step.",
                code='NOT_TERMINAL_STEP',
                detail={'current_index': self.sequencer.current_index, 'total': self.sequencer.total},
            )
        ensure_valid(self.current_item, self.store)

    # ── 已创建患者（重试复用） ─────────────────────────────────────────────

    def remembered_patient_id(self, fingerprint: str) -> str | None:
        if self.created_patient and self.created_patient[0] == fingerprint:
            return self.created_patient[1]
        return None

    def remember_patient(self, fingerprint: str, patient_id: str) -> None:
        self.created_patient = (fingerprint, patient_id)

    # ── 内部 ───────────────────────────────────────────────────────────────

    def _item_of(self, question_id: str, variants: set, shape: str) -> QuestionItem:
        item = self.item(question_id)
        if item.variant not in variants:
            raise ValidationError(
                message=f"Question {question_id!r} ({item.variant.value}) does not accept {shape} responses.",
                code='WRONG_RESPONSE_SHAPE',
                detail={'question_id': question_id, 'variant': item.variant.value, 'shape': shape},
            )
        return item

    @staticmethod
    def _check_options(item, values: list) -> None:
        invalid = [v for v in values if v not in item.options]
        if invalid:
            raise ValidationError(
                message=f"Invalid option(s) for question {item.id!r}: {invalid!r}.",
                code='INVALID_OPTION',
                detail={'question_id': item.id, 'options': list(item.options)},
            )

    @staticmethod
    def _check_markings(item, markings: Any) -> None:
        if markings is None:
            return
        if not item.allow_patient_markings:
            raise ValidationError(
                message="This body map does not accept markings.",
                code='MARKINGS_DISABLED',
                detail={'question_id': item.id},
            )
        valid = isinstance(markings, list) and all(
            isinstance(m, dict)
            and isinstance(m.get("x"), (int, float))
            and isinstance(m.get("y"), (int, float))
            for m in markings
        )
        if not valid:
            raise ValidationError(
                message="Body map markings must be a list of {x, y, ...} objects.",
                code='INVALID_MARKINGS',
                detail={'question_id': item.id},
            )


def _selector_option(selector, language: Language) -> str | None:
    """语言偏好题里与所选语言对应的选项，没有对应选项返回 None。"""
    for option in selector.options:
        if parse_language(option) == language:
            return option
    return None
