"""
Wizard 的标准内部结构。

Normalizer 把外部模板转换成这里的 dataclass；validation / assembler 只消费这些结构，
永远不碰原始模板 dict。

QuestionItem 是一个 tagged union：每个 variant 家族一个 dataclass，
下游按 item.variant 分派，不写一长串 if/elif。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Variant(str, Enum):
    SECTION = "section"
    OPEN_ANSWER = "openAnswer"
    DEMOGRAPHICS = "demographics"
    PRIMARY_INSURANCE = "primaryInsurance"
    SECONDARY_INSURANCE = "secondaryInsurance"
    MATRIX = "matrix"
    MATRIX_SINGLE_ANSWER = "matrixSingleAnswer"
    MULTIPLE_CHOICE_SINGLE = "multipleChoiceSingle"
    MULTIPLE_CHOICE_MULTIPLE = "multipleChoiceMultiple"
    FILE_ATTACHMENT = "fileAttachment"
    E_SIGNATURE = "eSignature"
    BODY_MAP = "bodyMap"
    SMART_EDITOR = "smartEditor"
    DATE = "date"
    MIXED_CONTROLS = "mixedControls"


class Language(str, Enum):
    PRIMARY = "primary"
    ALTERNATE = "alternate"


# demographics 题目里医生选择框的子字段名，不在模板的 demographicFields 里
ASSIGNED_DOCTOR_FIELD = "assignedDoctor"
# bodyMap 题目的两个子字段
MARKINGS_FIELD = "markings"
DESCRIPTION_FIELD = "description"


# ── 子结构 ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SubField:
    """demographics / insurance 的一个子字段。"""

    field_name: str
    field_type: str = "text"
    required: bool = False
    options: tuple[str, ...] = ()


@dataclass(frozen=True)
class MixedControl:
    control_type: str = "text"
    label: str = ""
    required: bool = False
    options: tuple[str, ...] = ()
    placeholder: str = ""


# ── QuestionItem 家族 ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class QuestionItem:
    id: str
    variant: Variant
    question_text: str
    instructions: str = ""
    is_required: bool = False
    placeholder: str = ""


@dataclass(frozen=True)
class SectionItem(QuestionItem):
    section_content: str = ""


@dataclass(frozen=True)
class TextItem(QuestionItem):
    """openAnswer / smartEditor。"""

    multiple_lines: bool = False
    editor_content: str = ""


@dataclass(frozen=True)
class DemographicsItem(QuestionItem):
    fields: tuple[SubField, ...] = ()


@dataclass(frozen=True)
class InsuranceItem(QuestionItem):
    """primaryInsurance / secondaryInsurance。"""

    fields: tuple[SubField, ...] = ()


@dataclass(frozen=True)
class MatrixItem(QuestionItem):
    """matrix / matrixSingleAnswer。单元格按 (row, col) 存储。"""

    rows: tuple[str, ...] = ()
    column_headers: tuple[str, ...] = ()
    column_types: tuple[str, ...] = ()
    dropdown_options: tuple[tuple[str, ...], ...] = ()
    row_header: str = ""
    display_text_box: bool = False


@dataclass(frozen=True)
class ChoiceItem(QuestionItem):
    """multipleChoiceSingle / multipleChoiceMultiple。"""

    options: tuple[str, ...] = ()
    is_language_selector: bool = False


@dataclass(frozen=True)
class FileAttachmentItem(QuestionItem):
    file_types: tuple[str, ...] = ()
    max_file_size: float = 5  # MB


@dataclass(frozen=True)
class SignatureItem(QuestionItem):
    signature_prompt: str = ""


@dataclass(frozen=True)
class BodyMapItem(QuestionItem):
    body_map_type: str = "fullBody"
    allow_patient_markings: bool = True


@dataclass(frozen=True)
class DateItem(QuestionItem):
    pass


@dataclass(frozen=True)
class MixedControlsItem(QuestionItem):
    controls: tuple[MixedControl, ...] = ()


# ── 模板 / 附件 / 提交记录 ────────────────────────────────────────────────

@dataclass(frozen=True)
class FormTemplate:
    """
    标准化后的模板。

    raw 保存原始文档，用于排查问题，不参与 wizard 逻辑。
    """

    id: str
    title: str
    items: tuple[QuestionItem, ...]
    description: str = ""
    is_active: bool = True
    is_public: bool = False
    locale: str = "english"
    raw: Any = field(default=None, repr=False, compare=False)

    def get_item(self, question_id: str) -> QuestionItem | None:
        for item in self.items:
            if item.id == question_id:
                return item
        return None


@dataclass(frozen=True)
class AttachedFile:
    name: str
    content_type: str
    size: int  # bytes
    content: bytes = field(repr=False)

    @property
    def extension(self) -> str:
        _, dot, ext = self.name.rpartition(".")
        return ext.lower() if dot else ""


@dataclass
class SubmissionRecord:
    """
    单题的标准化输出。只有和 variant 相关的字段会被填充，其余保持 None，
    to_payload() 输出时省略。
    """

    question_id: str
    variant: Variant
    question_text: str
    answer: Any = None
    matrix_responses: list[dict] | None = None
    file_attachments: list[dict] | None = None
    signature: dict | None = None
    body_map_markings: list[dict] | None = None
    mixed_controls_responses: list[dict] | None = None

    _WIRE_NAMES = (
        ("answer", "answer"),
        ("matrix_responses", "matrixResponses"),
        ("file_attachments", "fileAttachments"),
        ("signature", "signature"),
        ("body_map_markings", "bodyMapMarkings"),
        ("mixed_controls_responses", "mixedControlsResponses"),
    )

    def to_payload(self) -> dict:
        payload = {
            "questionId": self.question_id,
            "questionType": self.variant.value,
            "questionText": self.question_text,
        }
        for attr, wire_name in self._WIRE_NAMES:
            value = getattr(self, attr)
            if value is not None:
                payload[wire_name] = value
        return payload
