"""
Template Normalizer：原始模板 dict → FormTemplate。

两步流水线：
1. 校验模板结构（items 必须是对象列表，否则 MalformedTemplate，整个模板不可用）
2. 逐题 transform：补 id、补题干、推断 variant、填充 variant 默认配置

variant 推断是 best-effort 的关键词分类器，只在这里执行一次，之后不可变。
"""

import logging
import re
import uuid
from typing import Any

from ..exceptions import MalformedTemplate
from .types import (
    BodyMapItem,
    ChoiceItem,
    DateItem,
    DemographicsItem,
    FileAttachmentItem,
    FormTemplate,
    InsuranceItem,
    MatrixItem,
    MixedControl,
    MixedControlsItem,
    QuestionItem,
    SectionItem,
    SignatureItem,
    SubField,
    TextItem,
    Variant,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_QUESTION_TEXT = "Untitled question"
LANGUAGE_SELECTOR_PHRASE = "language preference"

# ── 旧模板里的 type 别名 ───────────────────────────────────────────────────
LEGACY_VARIANT_ALIASES = {
    "blank": Variant.OPEN_ANSWER,
    "text": Variant.OPEN_ANSWER,
    "sectionTitle": Variant.SECTION,
    "allergies": Variant.MATRIX,
    "dropdown": Variant.MULTIPLE_CHOICE_SINGLE,
    "radio": Variant.MULTIPLE_CHOICE_SINGLE,
    "checkbox": Variant.MULTIPLE_CHOICE_MULTIPLE,
}

# ── 关键词启发式（按优先级） ───────────────────────────────────────────────
SECTION_MARKER_RE = re.compile(r"\(section\)", re.IGNORECASE)
UPLOAD_RE = re.compile(r"\b(upload|image|photo|picture)s?\b", re.IGNORECASE)
SIGNATURE_RE = re.compile(r"\bsignature\b|\bsign (here|below)\b", re.IGNORECASE)
MULTI_SELECT_RE = re.compile(r"\b(select|check|choose|mark) all that apply\b", re.IGNORECASE)

# ── variant 默认配置 ───────────────────────────────────────────────────────
DEFAULT_CHOICE_OPTIONS = ("Yes", "No")
DEFAULT_LANGUAGE_OPTIONS = ("English", "Español")
DEFAULT_FILE_TYPES = ("pdf", "jpg", "jpeg", "png", "gif")
DEFAULT_MAX_FILE_SIZE_MB = 5
# 旧模板的 maxFileSize 以字节存储（5 * 1024 * 1024），大于此值按字节换算成 MB
_BYTE_SIZE_THRESHOLD = 1024

DEFAULT_DEMOGRAPHIC_FIELDS = (
    SubField("First Name", "text", True),
    SubField("Last Name", "text", True),
    SubField("Date of Birth", "date", True),
    SubField("Gender", "dropdown", True, ("Female", "Male", "Non-Binary")),
    SubField("Email", "text", True),
    SubField("Mobile Phone", "text", True),
    SubField("Street Address", "text", True),
    SubField("City", "text", True),
    SubField("State", "text", True),
    SubField("Zip Code", "text", True),
)

DEFAULT_INSURANCE_FIELDS = (
    SubField("Insurance Company", "text", True),
    SubField("Member ID / Policy #", "text", True),
    SubField("Group Number", "text", False),
    SubField("Client Relationship to Insured", "dropdown", True, ("Self", "Spouse", "Child", "Other")),
)

DEFAULT_MIXED_CONTROLS = (
    MixedControl(control_type="text", label="Text Field"),
)


def normalize_template(raw: Any) -> FormTemplate:
    """
    把外部模板文档转换成 FormTemplate。

    Raises:
        MalformedTemplate: 模板不是对象、items 缺失或不是列表、某个 item 不是对象
    """
    if not isinstance(raw, dict):
        raise MalformedTemplate("Form template must be a JSON object.")

    raw_items = raw.get("items")
    if not isinstance(raw_items, list):
        raise MalformedTemplate(
            "Form template has no items list.",
            detail={"template_id": _template_id(raw)},
        )

    for index, raw_item in enumerate(raw_items):
        if not isinstance(raw_item, dict):
            raise MalformedTemplate(
                f"Form template item #{index} is not an object.",
                detail={"template_id": _template_id(raw), "index": index},
            )

    seen_ids: set[str] = set()
    items = tuple(normalize_item(raw_item, seen_ids) for raw_item in raw_items)

    logger.info("[Intake][normalize] template=%s items=%d", _template_id(raw), len(items))
    return FormTemplate(
        id=_template_id(raw),
        title=_text(raw.get("title")),
        description=_text(raw.get("description")),
        is_active=bool(raw.get("isActive", True)),
        is_public=bool(raw.get("isPublic", False)),
        locale=_text(raw.get("language")) or "english",
        items=items,
        raw=raw,
    )


def normalize_item(raw: dict, seen_ids: set[str]) -> QuestionItem:
    """单题 transform。seen_ids 用来保证 id 在模板内唯一，会被就地更新。"""
    item_id = _text(raw.get("id"))
    if not item_id or item_id in seen_ids:
        item_id = generate_item_id(seen_ids)
    seen_ids.add(item_id)

    question_text = _text(raw.get("questionText")) or PLACEHOLDER_QUESTION_TEXT
    variant = infer_variant(raw, question_text)

    common = dict(
        id=item_id,
        variant=variant,
        question_text=question_text,
        instructions=_text(raw.get("instructions")),
        is_required=bool(raw.get("isRequired", False)),
        placeholder=_text(raw.get("placeholder")),
    )
    builder = _BUILDERS[variant]
    return builder(raw, common)


def generate_item_id(seen_ids: set[str]) -> str:
    while True:
        candidate = f"q_{uuid.uuid4().hex[:16]}"
        if candidate not in seen_ids:
            return candidate


def infer_variant(raw: dict, question_text: str) -> Variant:
    """
    第一条命中的规则生效：
    显式 tag → "(section)" → 上传/图片 → 签名 → 多选短语 → 语言偏好 → openAnswer
    """
    tag = raw.get("variant") or raw.get("type")
    if isinstance(tag, str) and tag:
        if tag in LEGACY_VARIANT_ALIASES:
            return LEGACY_VARIANT_ALIASES[tag]
        try:
            return Variant(tag)
        except ValueError:
            logger.warning("[Intake][normalize] unknown item type %r, falling back to heuristics", tag)
    elif tag:
        logger.warning("[Intake][normalize] ignoring non-string item type %r", tag)

    if SECTION_MARKER_RE.search(question_text):
        return Variant.SECTION
    if UPLOAD_RE.search(question_text):
        return Variant.FILE_ATTACHMENT
    if SIGNATURE_RE.search(question_text):
        return Variant.E_SIGNATURE
    if MULTI_SELECT_RE.search(question_text):
        return Variant.MULTIPLE_CHOICE_MULTIPLE
    if is_language_selector_text(question_text):
        return Variant.MULTIPLE_CHOICE_SINGLE
    return Variant.OPEN_ANSWER


def is_language_selector_text(question_text: str) -> bool:
    return LANGUAGE_SELECTOR_PHRASE in (question_text or "").lower()


# ── 宽松类型的字段读取 ─────────────────────────────────────────────────────
#
# 模板来自外部，字段类型不可信：文本字段接受数字，列表字段只接受 list / tuple，
# 其他类型一律当作缺失，回退到默认值。

def _text(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return ""
    return str(value).strip()


def _sequence(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


def _mapping(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


# ── 各 variant 的 builder ─────────────────────────────────────────────────

def _strings(values: Any) -> tuple[str, ...]:
    if isinstance(values, str):
        values = [values]
    return tuple(_text(v) for v in _sequence(values) if _text(v))


def _sub_fields(raw_fields: Any, defaults: tuple[SubField, ...]) -> tuple[SubField, ...]:
    raw_fields = _sequence(raw_fields)
    if not raw_fields:
        return defaults
    fields = []
    for raw_field in raw_fields:
        if not isinstance(raw_field, dict):
            continue
        name = _text(raw_field.get("fieldName"))
        if not name:
            continue
        fields.append(SubField(
            field_name=name,
            field_type=_text(raw_field.get("fieldType")) or "text",
            required=bool(raw_field.get("required", False)),
            options=_strings(raw_field.get("options")),
        ))
    return tuple(fields) or defaults


def _build_section(raw: dict, common: dict) -> QuestionItem:
    return SectionItem(**common, section_content=_text(raw.get("sectionContent")))


def _build_text(raw: dict, common: dict) -> QuestionItem:
    return TextItem(
        **common,
        multiple_lines=bool(raw.get("multipleLines", False)),
        editor_content=_text(raw.get("editorContent")),
    )


def _build_demographics(raw: dict, common: dict) -> QuestionItem:
    return DemographicsItem(
        **common,
        fields=_sub_fields(raw.get("demographicFields"), DEFAULT_DEMOGRAPHIC_FIELDS),
    )


def _build_insurance(raw: dict, common: dict) -> QuestionItem:
    return InsuranceItem(
        **common,
        fields=_sub_fields(raw.get("insuranceFields"), DEFAULT_INSURANCE_FIELDS),
    )


def _build_matrix(raw: dict, common: dict) -> QuestionItem:
    matrix = _mapping(raw.get("matrix"))
    return MatrixItem(
        **common,
        rows=_strings(matrix.get("rows")),
        column_headers=_strings(matrix.get("columnHeaders")),
        column_types=_strings(matrix.get("columnTypes")),
        dropdown_options=tuple(_strings(opts) for opts in _sequence(matrix.get("dropdownOptions"))),
        row_header=_text(matrix.get("rowHeader")),
        display_text_box=bool(matrix.get("displayTextBox", False)),
    )


def _build_choice(raw: dict, common: dict) -> QuestionItem:
    is_language_selector = is_language_selector_text(common["question_text"])
    default_options = DEFAULT_LANGUAGE_OPTIONS if is_language_selector else DEFAULT_CHOICE_OPTIONS
    return ChoiceItem(
        **common,
        options=_strings(raw.get("options")) or default_options,
        is_language_selector=is_language_selector,
    )


def _build_file_attachment(raw: dict, common: dict) -> QuestionItem:
    file_types = tuple(t.lower().lstrip(".") for t in _strings(raw.get("fileTypes")))
    max_size = raw.get("maxFileSize")
    if not isinstance(max_size, (int, float)) or isinstance(max_size, bool) or max_size <= 0:
        max_size = DEFAULT_MAX_FILE_SIZE_MB
    elif max_size > _BYTE_SIZE_THRESHOLD:
        max_size = max_size / (1024 * 1024)
    return FileAttachmentItem(
        **common,
        file_types=file_types or DEFAULT_FILE_TYPES,
        max_file_size=max_size,
    )


def _build_signature(raw: dict, common: dict) -> QuestionItem:
    return SignatureItem(**common, signature_prompt=_text(raw.get("signaturePrompt")))


def _build_body_map(raw: dict, common: dict) -> QuestionItem:
    allow = raw.get("allowPatientMarkings")
    return BodyMapItem(
        **common,
        body_map_type=_text(raw.get("bodyMapType")) or "fullBody",
        allow_patient_markings=True if allow is None else bool(allow),
    )


def _build_date(raw: dict, common: dict) -> QuestionItem:
    return DateItem(**common)


def _build_mixed_controls(raw: dict, common: dict) -> QuestionItem:
    controls = tuple(
        MixedControl(
            control_type=_text(c.get("controlType")) or "text",
            label=_text(c.get("label")),
            required=bool(c.get("required", False)),
            options=_strings(c.get("options")),
            placeholder=_text(c.get("placeholder")),
        )
        for c in _sequence(raw.get("mixedControlsConfig"))
        if isinstance(c, dict)
    )
    return MixedControlsItem(**common, controls=controls or DEFAULT_MIXED_CONTROLS)


_BUILDERS = {
    Variant.SECTION:                  _build_section,
    Variant.OPEN_ANSWER:              _build_text,
    Variant.SMART_EDITOR:             _build_text,
    Variant.DEMOGRAPHICS:             _build_demographics,
    Variant.PRIMARY_INSURANCE:        _build_insurance,
    Variant.SECONDARY_INSURANCE:      _build_insurance,
    Variant.MATRIX:                   _build_matrix,
    Variant.MATRIX_SINGLE_ANSWER:     _build_matrix,
    Variant.MULTIPLE_CHOICE_SINGLE:   _build_choice,
    Variant.MULTIPLE_CHOICE_MULTIPLE: _build_choice,
    Variant.FILE_ATTACHMENT:          _build_file_attachment,
    Variant.E_SIGNATURE:              _build_signature,
    Variant.BODY_MAP:                 _build_body_map,
    Variant.DATE:                     _build_date,
    Variant.MIXED_CONTROLS:           _build_mixed_controls,
}


def _template_id(raw: dict) -> str:
    return _text(raw.get("_id")) or _text(raw.get("id"))
