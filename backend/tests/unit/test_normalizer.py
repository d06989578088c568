"""
Unit tests for the template normalizer.

不需要数据库，纯 Python 测试：
1. 结构校验（MalformedTemplate）
2. id / 题干补全
3. variant 推断的优先级
4. 各 variant 的默认配置
"""
import pytest

from intakeform.exceptions import MalformedTemplate
from intakeform.wizard import Variant, normalize_template
from intakeform.wizard.normalizer import (
    DEFAULT_CHOICE_OPTIONS,
    DEFAULT_DEMOGRAPHIC_FIELDS,
    DEFAULT_FILE_TYPES,
    DEFAULT_INSURANCE_FIELDS,
    DEFAULT_LANGUAGE_OPTIONS,
    PLACEHOLDER_QUESTION_TEXT,
    infer_variant,
)
from intakeform.wizard.types import (
    BodyMapItem,
    ChoiceItem,
    FileAttachmentItem,
    MatrixItem,
    MixedControlsItem,
)
from tests.conftest import RawItemFactory, RawTemplateFactory


def normalize_one(**raw_item):
    template = normalize_template(RawTemplateFactory(items=[raw_item]))
    return template.items[0]


# -------------------------------------------------------------------
# Template structure
# -------------------------------------------------------------------

class TestMalformedTemplate:

    def test_not_a_dict(self):
        with pytest.raises(MalformedTemplate):
            normalize_template(['not', 'a', 'template'])

    def test_missing_items(self):
        raw = RawTemplateFactory()
        del raw['items']
        with pytest.raises(MalformedTemplate) as exc_info:
            normalize_template(raw)

        assert exc_info.value.http_status == 422
        assert exc_info.value.detail['redirect'] == '/forms/templates'

    def test_items_not_a_list(self):
        with pytest.raises(MalformedTemplate):
            normalize_template(RawTemplateFactory(items={'q1': {}}))

    def test_item_not_an_object(self):
        with pytest.raises(MalformedTemplate) as exc_info:
            normalize_template(RawTemplateFactory(items=[RawItemFactory(), 'oops']))

        assert exc_info.value.detail['index'] == 1

    def test_empty_items_is_valid(self):
        template = normalize_template(RawTemplateFactory(id='tpl-empty', items=[]))
        assert template.id == 'tpl-empty'
        assert template.items == ()

    def test_template_fields(self):
        template = normalize_template(RawTemplateFactory(id='abc', title='  Intake  ', items=[]))
        assert template.title == 'Intake'
        assert template.is_active is True
        assert template.locale == 'english'

    def test_mongo_style_id(self):
        raw = RawTemplateFactory(items=[])
        del raw['id']
        raw['_id'] = '64f0c2'
        assert normalize_template(raw).id == '64f0c2'


# -------------------------------------------------------------------
# Item ids / text
# -------------------------------------------------------------------

class TestItemIdentity:

    def test_ids_are_kept(self):
        template = normalize_template(RawTemplateFactory(items=[
            RawItemFactory(id='a'), RawItemFactory(id='b'),
        ]))
        assert [item.id for item in template.items] == ['a', 'b']

    def test_missing_id_is_generated(self):
        item = normalize_one(id='', type='openAnswer', questionText='Reason')
        assert item.id.startswith('q_')

    def test_duplicate_ids_are_regenerated(self):
        template = normalize_template(RawTemplateFactory(items=[
            RawItemFactory(id='dup'), RawItemFactory(id='dup'), RawItemFactory(id='dup'),
        ]))
        ids = [item.id for item in template.items]
        assert ids[0] == 'dup'
        assert len(set(ids)) == 3

    def test_missing_text_gets_placeholder(self):
        item = normalize_one(id='q1', type='openAnswer', questionText='   ')
        assert item.question_text == PLACEHOLDER_QUESTION_TEXT

    def test_required_flag(self):
        assert normalize_one(id='q1', type='date', questionText='DOB', isRequired=True).is_required is True
        assert normalize_one(id='q1', type='date', questionText='DOB').is_required is False


# -------------------------------------------------------------------
# Variant inference
# -------------------------------------------------------------------

class TestInferVariant:

    @pytest.mark.parametrize('text, expected', [
        ('Medical History (section)', Variant.SECTION),
        ('Please upload a photo of your ID', Variant.FILE_ATTACHMENT),
        ('Attach an image of the rash', Variant.FILE_ATTACHMENT),
        ('Patient signature', Variant.E_SIGNATURE),
        ('Please sign here', Variant.E_SIGNATURE),
        ('Symptoms (select all that apply)', Variant.MULTIPLE_CHOICE_MULTIPLE),
        ('Check all that apply', Variant.MULTIPLE_CHOICE_MULTIPLE),
        ('Language Preference', Variant.MULTIPLE_CHOICE_SINGLE),
        ('What brings you in today?', Variant.OPEN_ANSWER),
    ])
    def test_keyword_heuristics(self, text, expected):
        assert infer_variant({}, text) == expected

    def test_section_marker_beats_upload(self):
        assert infer_variant({}, 'Photo uploads (section)') == Variant.SECTION

    def test_upload_beats_signature(self):
        assert infer_variant({}, 'Upload a picture of your signature') == Variant.FILE_ATTACHMENT

    def test_signature_beats_multi_select(self):
        assert infer_variant({}, 'Signature: check all that apply') == Variant.E_SIGNATURE

    def test_explicit_tag_wins(self):
        assert infer_variant({'type': 'date'}, 'Upload a photo') == Variant.DATE
        assert infer_variant({'variant': 'bodyMap'}, 'Signature') == Variant.BODY_MAP

    @pytest.mark.parametrize('tag, expected', [
        ('blank', Variant.OPEN_ANSWER),
        ('text', Variant.OPEN_ANSWER),
        ('sectionTitle', Variant.SECTION),
        ('allergies', Variant.MATRIX),
        ('checkbox', Variant.MULTIPLE_CHOICE_MULTIPLE),
        ('radio', Variant.MULTIPLE_CHOICE_SINGLE),
    ])
    def test_legacy_aliases(self, tag, expected):
        assert infer_variant({'type': tag}, 'Anything') == expected

    def test_unknown_tag_falls_back_to_heuristics(self):
        assert infer_variant({'type': 'hologram'}, 'Upload your x-ray image') == Variant.FILE_ATTACHMENT
        assert infer_variant({'type': 'hologram'}, 'Anything else?') == Variant.OPEN_ANSWER

    def test_variant_is_fixed_after_normalization(self):
        item = normalize_one(id='q1', questionText='Upload your insurance card')
        assert item.variant == Variant.FILE_ATTACHMENT
        assert isinstance(item, FileAttachmentItem)


# -------------------------------------------------------------------
# Defaults
# -------------------------------------------------------------------

class TestDefaults:

    def test_choice_defaults_to_yes_no(self):
        item = normalize_one(id='q1', type='multipleChoiceSingle', questionText='Do you smoke?')
        assert isinstance(item, ChoiceItem)
        assert item.options == DEFAULT_CHOICE_OPTIONS
        assert item.is_language_selector is False

    def test_language_selector_defaults(self):
        item = normalize_one(id='q1', questionText='Language Preference')
        assert item.is_language_selector is True
        assert item.options == DEFAULT_LANGUAGE_OPTIONS

    def test_explicit_options_kept(self):
        item = normalize_one(id='q1', type='multipleChoiceSingle', questionText='Pick', options=['A', 'B', ''])
        assert item.options == ('A', 'B')

    def test_file_defaults(self):
        item = normalize_one(id='q1', type='fileAttachment', questionText='Records')
        assert item.file_types == DEFAULT_FILE_TYPES
        assert item.max_file_size == 5

    def test_file_types_normalized(self):
        item = normalize_one(id='q1', type='fileAttachment', questionText='Records', fileTypes=['.PDF', 'Png'])
        assert item.file_types == ('pdf', 'png')

    def test_legacy_byte_size_converted_to_mb(self):
        item = normalize_one(id='q1', type='fileAttachment', questionText='Records', maxFileSize=10 * 1024 * 1024)
        assert item.max_file_size == 10

    def test_demographics_default_fields(self):
        item = normalize_one(id='q1', type='demographics', questionText='About you')
        assert item.fields == DEFAULT_DEMOGRAPHIC_FIELDS
        assert [f.field_name for f in item.fields][:2] == ['First Name', 'Last Name']

    def test_insurance_default_fields(self):
        item = normalize_one(id='q1', type='primaryInsurance', questionText='Insurance')
        assert item.fields == DEFAULT_INSURANCE_FIELDS
        group = next(f for f in item.fields if f.field_name == 'Group Number')
        assert group.required is False

    def test_body_map_defaults(self):
        item = normalize_one(id='q1', type='bodyMap', questionText='Where does it hurt?')
        assert isinstance(item, BodyMapItem)
        assert item.body_map_type == 'fullBody'
        assert item.allow_patient_markings is True

    def test_body_map_markings_disabled(self):
        item = normalize_one(id='q1', type='bodyMap', questionText='Map', allowPatientMarkings=False)
        assert item.allow_patient_markings is False

    def test_mixed_controls_default(self):
        item = normalize_one(id='q1', type='mixedControls', questionText='Details')
        assert isinstance(item, MixedControlsItem)
        assert len(item.controls) == 1
        assert item.controls[0].label == 'Text Field'

    def test_matrix_config(self):
        item = normalize_one(id='q1', type='matrix', questionText='Allergies', matrix={
            'rows': ['Peanuts', 'Penicillin'],
            'columnHeaders': ['Reaction', 'Severity'],
            'dropdownOptions': [[], ['Mild', 'Severe']],
        })
        assert isinstance(item, MatrixItem)
        assert item.rows == ('Peanuts', 'Penicillin')
        assert item.column_headers == ('Reaction', 'Severity')
        assert item.dropdown_options == ((), ('Mild', 'Severe'))


# -------------------------------------------------------------------
# Loosely typed items
# -------------------------------------------------------------------

class TestLooselyTypedItems:

    def test_numeric_question_text_is_coerced(self):
        item = normalize_one(id='q1', type='openAnswer', questionText=123)
        assert item.question_text == '123'

    def test_numeric_id_is_coerced(self):
        assert normalize_one(id=7, type='date', questionText='DOB').id == '7'

    def test_non_list_options_fall_back_to_defaults(self):
        item = normalize_one(id='q1', type='multipleChoiceSingle', questionText='Do you smoke?', options=5)
        assert item.options == DEFAULT_CHOICE_OPTIONS

    def test_non_string_tag_falls_back_to_heuristics(self):
        item = normalize_one(id='q1', type=['fileAttachment'], questionText='Upload your insurance card')
        assert item.variant == Variant.FILE_ATTACHMENT

    @pytest.mark.parametrize('raw_fields', [7, 'First Name', {'fieldName': 'First Name'}])
    def test_non_list_demographic_fields_fall_back_to_defaults(self, raw_fields):
        item = normalize_one(id='q1', type='demographics', questionText='About you', demographicFields=raw_fields)
        assert item.fields == DEFAULT_DEMOGRAPHIC_FIELDS

    def test_non_object_matrix_config(self):
        item = normalize_one(id='q1', type='matrix', questionText='Allergies', matrix='Peanuts')
        assert item.rows == ()
        assert item.column_headers == ()

    def test_non_list_mixed_controls_config(self):
        item = normalize_one(id='q1', type='mixedControls', questionText='Details', mixedControlsConfig=3)
        assert item.controls[0].label == 'Text Field'

    def test_non_string_labels_are_coerced_or_dropped(self):
        item = normalize_one(id='q1', type='primaryInsurance', questionText='Insurance', insuranceFields=[
            {'fieldName': 42, 'fieldType': None, 'required': True},
            {'fieldName': {'en': 'Carrier'}},
        ])
        assert [(f.field_name, f.field_type) for f in item.fields] == [('42', 'text')]
