from .normalizer import normalize_template
from .session import Wizard
from .types import AttachedFile, FormTemplate, Language, QuestionItem, SubmissionRecord, Variant

__all__ = [
    "AttachedFile",
    "FormTemplate",
    "Language",
    "QuestionItem",
    "SubmissionRecord",
    "Variant",
    "Wizard",
    "normalize_template",
]
