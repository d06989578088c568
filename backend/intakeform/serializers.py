"""
Response serializers: Wizard / dataclass → JSON-able dict。

只负责「输出格式化」，不做任何解析或校验。
输入的形状检查在 Wizard.capture_*()，请求参数解析在 services.py。
"""

from dataclasses import asdict, fields

from .wizard.store import KeyKind
from .wizard.types import AttachedFile, QuestionItem

_COMMON_FIELDS = {f.name for f in fields(QuestionItem)}


def serialize_item(item):
    """题目的通用字段 + 该 variant 的配置（config）。"""
    data = asdict(item)
    config = {key: value for key, value in data.items() if key not in _COMMON_FIELDS}
    return {
        'id': item.id,
        'variant': item.variant.value,
        'question_text': item.question_text,
        'instructions': item.instructions,
        'is_required': item.is_required,
        'placeholder': item.placeholder,
        'config': config,
    }


def serialize_answers(wizard, question_id):
    """当前题目已采集的答案，前端用来回填控件。"""
    store = wizard.store
    kind = store.kind(question_id)

    if kind == KeyKind.FIELD:
        return {'fields': store.fields(question_id)}
    if kind == KeyKind.CELL:
        return {'cells': [
            {'row': row, 'column': col, 'value': value}
            for row, col, value in store.cells(question_id)
        ]}
    if kind == KeyKind.CONTROL:
        return {'controls': {str(index): value for index, value in store.controls(question_id).items()}}
    if kind == KeyKind.ANSWER:
        value = store.get_answer(question_id)
        if isinstance(value, list) and value and isinstance(value[0], AttachedFile):
            return {'files': [
                {'name': f.name, 'content_type': f.content_type, 'size': f.size}
                for f in value
            ]}
        return {'value': value}
    return {}


def serialize_wizard(session_id, wizard):
    sequencer = wizard.sequencer
    item = sequencer.current
    return {
        'session_id': session_id,
        'template': {
            'id': wizard.template.id,
            'title': wizard.template.title,
            'description': wizard.template.description,
        },
        'language': wizard.language.value,
        'current_index': sequencer.current_index,
        'total': sequencer.total,
        'can_go_back': sequencer.can_go_back,
        'can_go_forward': sequencer.can_go_forward,
        'is_terminal': sequencer.is_terminal,
        'current_item': serialize_item(item) if item is not None else None,
        'answers': serialize_answers(wizard, item.id) if item is not None else {},
    }


def serialize_doctors(doctors):
    return {
        'count': len(doctors),
        'doctors': [
            {
                'id': doctor.id,
                'first_name': doctor.first_name,
                'last_name': doctor.last_name,
                'display_name': doctor.display_name,
            }
            for doctor in doctors
        ],
    }
