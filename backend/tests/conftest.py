"""
Shared fixtures for all tests.

factory-boy factories live here so both unit/ and integration/ can import them.
模板都是原始 dict（clinic 服务端返回的形状），经过 normalize_template 才变成 FormTemplate。
"""
import pytest
from django.core.cache import cache
from django.test import Client

import factory
from intakeform.clients import ClinicApiClient, Doctor
from intakeform.exceptions import UpstreamError
from intakeform.wizard import AttachedFile, Wizard, normalize_template


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class RawItemFactory(factory.DictFactory):
    id = factory.Sequence(lambda n: f'q{n}')
    type = 'openAnswer'
    questionText = factory.Sequence(lambda n: f'Question {n}')
    isRequired = False


class RawSectionFactory(RawItemFactory):
    type = 'section'
    questionText = 'About You'
    sectionContent = 'Tell us a little about yourself.'


class RawDemographicsFactory(RawItemFactory):
    type = 'demographics'
    questionText = 'Patient Demographics'
    isRequired = True
    demographicFields = factory.LazyFunction(lambda: [
        {'fieldName': 'First Name', 'fieldType': 'text', 'required': True},
        {'fieldName': 'Last Name', 'fieldType': 'text', 'required': True},
        {'fieldName': 'Email', 'fieldType': 'text', 'required': False},
    ])


class RawChoiceFactory(RawItemFactory):
    type = 'multipleChoiceSingle'
    options = factory.LazyFunction(lambda: ['Yes', 'No'])


class RawFileFactory(RawItemFactory):
    type = 'fileAttachment'
    questionText = 'Insurance card'
    fileTypes = factory.LazyFunction(lambda: ['pdf', 'jpg', 'png'])
    maxFileSize = 5


class RawTemplateFactory(factory.DictFactory):
    id = factory.Sequence(lambda n: f'tpl{n}')
    title = 'New Patient Intake'
    description = 'Please complete before your first visit.'
    isActive = True
    language = 'english'
    items = factory.LazyFunction(list)


def make_wizard(*raw_items, **template_kwargs):
    """原始 item dict → Wizard（primary 语言，第 0 步）。"""
    return Wizard(normalize_template(RawTemplateFactory(items=list(raw_items), **template_kwargs)))


def make_file(name='card.pdf', size=1024, content_type='application/pdf'):
    return AttachedFile(name=name, content_type=content_type, size=size, content=b'x' * min(size, 16))


# ---------------------------------------------------------------------------
# Fake clinic API
# ---------------------------------------------------------------------------

class FakeClinicClient(ClinicApiClient):
    """
    内存版 ClinicApiClient，记录每次调用。

    patient_response / fail_patient / fail_submit 控制返回或失败。
    """

    def __init__(self, templates=None, doctors=None):
        self.templates = dict(templates or {})
        self.doctors = list(doctors or [Doctor(id='d1', first_name='Gregory', last_name='House')])
        self.patient_response = {'patient': {'_id': 'p1'}}
        self.fail_patient = False
        self.fail_submit = False
        self.patient_calls = []
        self.submit_calls = []

    def fetch_template(self, template_id):
        if template_id not in self.templates:
            raise UpstreamError(
                message='Clinic API returned HTTP 404.',
                code='UPSTREAM_HTTP_ERROR',
                status_code=404,
            )
        return self.templates[template_id]

    def list_doctors(self):
        return list(self.doctors)

    def create_patient(self, payload):
        self.patient_calls.append(payload)
        if self.fail_patient:
            raise UpstreamError(message='Clinic API returned HTTP 500.', code='UPSTREAM_HTTP_ERROR', status_code=500)
        return self.patient_response

    def submit_form_response(self, document, files):
        self.submit_calls.append((document, list(files)))
        if self.fail_submit:
            raise UpstreamError(message='Clinic API unreachable: timeout', code='UPSTREAM_UNREACHABLE')
        return {'formResponse': {'_id': 'r1'}}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def clear_cache():
    """Wizard session 存在 LocMem cache 里，每个测试前后清空。"""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Django test client for integration tests."""
    return Client()


@pytest.fixture
def fake_client():
    return FakeClinicClient()


@pytest.fixture
def use_fake_client(fake_client, monkeypatch):
    """让 services 里的 get_clinic_client() 返回 fake_client。"""
    monkeypatch.setattr('intakeform.services.get_clinic_client', lambda: fake_client)
    return fake_client


@pytest.fixture
def intake_template():
    """
    A typical intake form:
      section → openAnswer(required) → demographics(required) → 语言偏好 → 西语题 → 签名(last)
    primary 语言过滤后顺序：demographics, section, openAnswer, 语言偏好, 签名
    """
    return RawTemplateFactory(
        id='tpl-intake',
        items=[
            RawSectionFactory(id='s1'),
            RawItemFactory(id='q-reason', questionText='Reason for visit', isRequired=True),
            RawDemographicsFactory(id='q-demo'),
            RawChoiceFactory(id='q-lang', questionText='Language Preference', options=['English', 'Español']),
            RawItemFactory(id='q-reason-es', questionText='¿Motivo de la visita?', isRequired=True),
            RawItemFactory(id='q-sign', type='eSignature', questionText='Signature', isRequired=True),
        ],
    )
