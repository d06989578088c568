"""
Validation Engine：(当前题目, ResponseStore) → 第一个失败的规则，或 None。

Next 和 Submit 之前调用。只在题目 is_required 且不是 section 时生效。

first-failure-wins：遇到第一个缺失字段就返回，不汇总所有错误。
这是有意的取舍，改成一次性报告全部错误属于行为变更，不是 bug 修复。

新增 variant 只需在 _VALIDATORS 注册一行。
"""

from typing import Callable

from ..exceptions import ValidationViolation
from .store import ResponseStore, is_filled
from .types import (
    ASSIGNED_DOCTOR_FIELD,
    DESCRIPTION_FIELD,
    MARKINGS_FIELD,
    QuestionItem,
    Variant,
)

REQUIRED_MESSAGE = "This question is required"


def validate_item(item: QuestionItem, store: ResponseStore) -> ValidationViolation | None:
    """纯函数，不修改 store。"""
    if not item.is_required or item.variant == Variant.SECTION:
        return None
    validator = _VALIDATORS.get(item.variant)
    if validator is None:
        return None
    return validator(item, store)


def ensure_valid(item: QuestionItem, store: ResponseStore) -> None:
    """validate_item 的抛异常版本，Wizard 的 Next / Submit 用这个。"""
    violation = validate_item(item, store)
    if violation is not None:
        raise violation


# ── 各 variant 的规则 ─────────────────────────────────────────────────────

def _violation(item, message=REQUIRED_MESSAGE, field=None) -> ValidationViolation:
    return ValidationViolation(message, question_id=item.id, field=field)


def _bare_answer(item, store):
    if not is_filled(store.get_answer(item.id)):
        return _violation(item)
    return None


def _required_sub_fields(item, store):
    values = store.fields(item.id)
    required = [f for f in item.fields if f.required]
    for sub_field in required:
        if not is_filled(values.get(sub_field.field_name)):
            return _violation(item, f"{sub_field.field_name} is required", sub_field.field_name)
    return None


def _demographics(item, store):
    violation = _required_sub_fields(item, store)
    if violation is not None:
        return violation
    # 医生选择不看 required 标记，永远必填（创建患者需要）
    if not is_filled(store.get_field(item.id, ASSIGNED_DOCTOR_FIELD)):
        return _violation(item, "Assigned Doctor is required", ASSIGNED_DOCTOR_FIELD)
    return None


def _insurance(item, store):
    violation = _required_sub_fields(item, store)
    if violation is not None:
        return violation
    if not any(f.required for f in item.fields) and not store.has_any(item.id):
        return _violation(item)
    return None


def _body_map(item, store):
    if is_filled(store.get_field(item.id, MARKINGS_FIELD)):
        return None
    if is_filled(store.get_field(item.id, DESCRIPTION_FIELD)):
        return None
    return _violation(item, "Mark at least one area on the body map or describe it", MARKINGS_FIELD)


def _single_choice(item, store):
    if not is_filled(store.get_answer(item.id)):
        return _violation(item, "Please select an option")
    return None


def _multiple_choice(item, store):
    selection = store.get_answer(item.id)
    if not isinstance(selection, (list, tuple)) or not selection:
        return _violation(item, "Please select at least one option")
    return None


def _file_attachment(item, store):
    if not store.get_answer(item.id):
        return _violation(item, "Please attach at least one file")
    return None


def _matrix(item, store):
    if not any(is_filled(value) for _, _, value in store.cells(item.id)):
        return _violation(item)
    return None


def _mixed_controls(item, store):
    values = store.controls(item.id)
    for index, control in enumerate(item.controls):
        if control.required and not is_filled(values.get(index)):
            label = control.label or f"Control {index + 1}"
            return _violation(item, f"{label} is required", str(index))
    if not any(c.required for c in item.controls) and not store.has_any(item.id):
        return _violation(item)
    return None


_VALIDATORS: dict[Variant, Callable[[QuestionItem, ResponseStore], ValidationViolation | None]] = {
    Variant.OPEN_ANSWER:              _bare_answer,
    Variant.SMART_EDITOR:             _bare_answer,
    Variant.E_SIGNATURE:              _bare_answer,
    Variant.DATE:                     _bare_answer,
    Variant.DEMOGRAPHICS:             _demographics,
    Variant.PRIMARY_INSURANCE:        _insurance,
    Variant.SECONDARY_INSURANCE:      _insurance,
    Variant.BODY_MAP:                 _body_map,
    Variant.MULTIPLE_CHOICE_SINGLE:   _single_choice,
    Variant.MULTIPLE_CHOICE_MULTIPLE: _multiple_choice,
    Variant.FILE_ATTACHMENT:          _file_attachment,
    Variant.MATRIX:                   _matrix,
    Variant.MATRIX_SINGLE_ANSWER:     _matrix,
    Variant.MIXED_CONTROLS:           _mixed_controls,
}
