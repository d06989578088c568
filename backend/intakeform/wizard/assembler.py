"""
Submission Assembler：最后一步时把 ResponseStore 投影成提交内容。

  build_records()          每题一个 SubmissionRecord，空记录直接丢弃
  collect_attachments()    附件二进制单独走 multipart，不进 JSON
  build_patient_payload()  从 demographics 子字段合成创建患者的请求体
  build_document()         最终的 JSON 文档

这里只做纯转换，网络调用和错误处理在 services.submit_wizard()。
新增 variant 只需在 _PROJECTORS 注册一行。
"""

import hashlib
import json
import re
from datetime import datetime
from typing import Any, Callable

from .normalizer import is_language_selector_text
from .store import ResponseStore, is_filled
from .types import (
    ASSIGNED_DOCTOR_FIELD,
    DESCRIPTION_FIELD,
    MARKINGS_FIELD,
    AttachedFile,
    DemographicsItem,
    FormTemplate,
    QuestionItem,
    SubmissionRecord,
    Variant,
)

# ── demographics 子字段名 → 患者字段 ─────────────────────────────────────
#
# 模板里的 fieldName 是给人看的标签（"First Name"、"Mobile Phone"），
# 旧模板里也有 camelCase（"firstName"）。统一小写 + 去掉非字母数字后再查表。
PATIENT_FIELD_ALIASES = {
    "firstname":     "firstName",
    "givenname":     "firstName",
    "lastname":      "lastName",
    "familyname":    "lastName",
    "surname":       "lastName",
    "dateofbirth":   "dateOfBirth",
    "dob":           "dateOfBirth",
    "birthdate":     "dateOfBirth",
    "gender":        "gender",
    "email":         "email",
    "emailaddress":  "email",
    "phone":         "phone",
    "mobilephone":   "phone",
    "phonenumber":   "phone",
    "street":        "street",
    "streetaddress": "street",
    "address":       "street",
    "city":          "city",
    "state":         "state",
    "zipcode":       "zipCode",
    "zip":           "zipCode",
    "postalcode":    "zipCode",
}
ADDRESS_KEYS = ("street", "city", "state", "zipCode")
CONTACT_KEYS = ("firstName", "lastName", "dateOfBirth", "gender", "email", "phone")

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def canonical_patient_key(field_name: str) -> str | None:
    return PATIENT_FIELD_ALIASES.get(_NON_ALNUM_RE.sub("", (field_name or "").lower()))


# ── 记录投影 ─────────────────────────────────────────────────────────────

def is_submittable(item: QuestionItem) -> bool:
    """section 和语言偏好题不提交。"""
    return item.variant != Variant.SECTION and not is_language_selector_text(item.question_text)


def build_records(template: FormTemplate, store: ResponseStore, completed_at: datetime) -> list[SubmissionRecord]:
    """
    遍历未过滤的全部题目（不是当前语言的序列），没有实际内容的记录不提交。
    """
    records = []
    for item in template.items:
        if not is_submittable(item):
            continue
        record = _PROJECTORS[item.variant](item, store, completed_at)
        if record is not None:
            records.append(record)
    return records


def _record(item: QuestionItem, **values) -> SubmissionRecord:
    return SubmissionRecord(
        question_id=item.id,
        variant=item.variant,
        question_text=item.question_text,
        **values,
    )


def _project_answer(item, store, completed_at):
    answer = store.get_answer(item.id)
    if not is_filled(answer):
        return None
    return _record(item, answer=answer)


def _project_multiple(item, store, completed_at):
    answer = store.get_answer(item.id)
    if not isinstance(answer, (list, tuple)) or not answer:
        return None
    return _record(item, answer=list(answer))


def _project_sub_fields(item, store, completed_at):
    answer = {name: value for name, value in store.fields(item.id).items() if is_filled(value)}
    if not answer:
        return None
    return _record(item, answer=answer)


def _project_matrix(item, store, completed_at):
    cells = [
        {"rowIndex": row, "columnIndex": col, "value": value}
        for row, col, value in store.cells(item.id)
        if is_filled(value)
    ]
    if not cells:
        return None
    return _record(item, matrix_responses=cells)


def _project_file_attachment(item, store, completed_at):
    # 文件本身走 multipart，URL 由服务端回填
    if not store.get_answer(item.id):
        return None
    return _record(item, file_attachments=[])


def _project_signature(item, store, completed_at):
    typed_name = store.get_answer(item.id)
    if not is_filled(typed_name):
        return None
    return _record(item, signature={
        "signatureData": typed_name,
        "signedBy": typed_name,
        "signedAt": completed_at.isoformat(),
    })


def _project_body_map(item, store, completed_at):
    markings = store.get_field(item.id, MARKINGS_FIELD) or []
    description = store.get_field(item.id, DESCRIPTION_FIELD)
    if not markings and not is_filled(description):
        return None
    return _record(
        item,
        answer=description if is_filled(description) else None,
        body_map_markings=list(markings),
    )


def _project_mixed_controls(item, store, completed_at):
    responses = []
    for index, value in store.controls(item.id).items():
        if not is_filled(value) or index >= len(item.controls):
            continue
        control = item.controls[index]
        responses.append({
            "controlId": str(index),
            "controlType": control.control_type,
            "label": control.label,
            "value": value,
        })
    if not responses:
        return None
    return _record(item, mixed_controls_responses=responses)


_PROJECTORS: dict[Variant, Callable[[Any, ResponseStore, datetime], SubmissionRecord | None]] = {
    Variant.OPEN_ANSWER:              _project_answer,
    Variant.SMART_EDITOR:             _project_answer,
    Variant.MULTIPLE_CHOICE_SINGLE:   _project_answer,
    Variant.DATE:                     _project_answer,
    Variant.MULTIPLE_CHOICE_MULTIPLE: _project_multiple,
    Variant.DEMOGRAPHICS:             _project_sub_fields,
    Variant.PRIMARY_INSURANCE:        _project_sub_fields,
    Variant.SECONDARY_INSURANCE:      _project_sub_fields,
    Variant.MATRIX:                   _project_matrix,
    Variant.MATRIX_SINGLE_ANSWER:     _project_matrix,
    Variant.FILE_ATTACHMENT:          _project_file_attachment,
    Variant.E_SIGNATURE:              _project_signature,
    Variant.BODY_MAP:                 _project_body_map,
    Variant.MIXED_CONTROLS:           _project_mixed_controls,
}


# ── 附件 ─────────────────────────────────────────────────────────────────

def collect_attachments(template: FormTemplate, store: ResponseStore) -> list[tuple[str, AttachedFile]]:
    """返回 (question_id, file) 列表，顺序与模板题目顺序一致。"""
    attachments = []
    for item in template.items:
        if item.variant != Variant.FILE_ATTACHMENT:
            continue
        for attached in store.get_answer(item.id) or []:
            attachments.append((item.id, attached))
    return attachments


# ── 患者记录 ─────────────────────────────────────────────────────────────

def find_demographics(template: FormTemplate) -> DemographicsItem | None:
    for item in template.items:
        if item.variant == Variant.DEMOGRAPHICS:
            return item
    return None


def build_patient_payload(item: DemographicsItem, store: ResponseStore) -> dict:
    """
    demographics 子字段 → POST /api/patients 的请求体。

    缺失的字段填空字符串；assignedDoctor 是患者模型的必填项。
    """
    values = {key: "" for key in CONTACT_KEYS + ADDRESS_KEYS}
    for field_name, value in store.fields(item.id).items():
        key = canonical_patient_key(field_name)
        if key is not None and is_filled(value) and not values[key]:
            values[key] = value

    payload = {key: values[key] for key in CONTACT_KEYS}
    payload["address"] = {key: values[key] for key in ADDRESS_KEYS}
    payload["assignedDoctor"] = store.get_field(item.id, ASSIGNED_DOCTOR_FIELD) or ""
    return payload


def patient_fingerprint(payload: dict) -> str:
    """患者请求体的内容哈希，重试时用来判断能否复用已创建的患者。"""
    canonical = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ── 最终文档 ─────────────────────────────────────────────────────────────

def build_document(
    template: FormTemplate,
    records: list[SubmissionRecord],
    completed_at: datetime,
    patient_id: str | None = None,
) -> dict:
    document = {
        "formTemplate": template.id,
        "responses": [record.to_payload() for record in records],
        "status": "completed",
        "completedAt": completed_at.isoformat(),
    }
    if patient_id is not None:
        document["patient"] = patient_id
    return document
