import logging
from dataclasses import replace

from django.utils import timezone

from .clients import ClinicApiClient, Doctor, OutgoingFile, get_clinic_client
from .exceptions import (
    DependentRecordFailure,
    NothingToSubmit,
    SubmissionTransportFailure,
    UpstreamError,
    ValidationError,
    ValidationViolation,
)
from .sessions import (
    create_session,
    discard_session,
    load_session,
    save_session,
    submission_in_flight,
)
from .wizard import AttachedFile, Wizard, normalize_template
from .wizard.assembler import (
    build_document,
    build_patient_payload,
    build_records,
    collect_attachments,
    find_demographics,
    patient_fingerprint,
)
from .wizard.language import parse_language
from .wizard.types import ASSIGNED_DOCTOR_FIELD

logger = logging.getLogger(__name__)


def start_session(template_id, client: ClinicApiClient | None = None, language=None):
    """
    Fetch and normalize the template, then open a new wizard session.
    Returns (session_id, wizard). MalformedTemplate propagates: the session never starts.
    """
    client = client or get_clinic_client()
    raw = client.fetch_template(template_id)
    template = normalize_template(raw)
    if not template.id:
        template = _with_id(template, template_id)

    wizard = Wizard(template)
    if language is not None:
        wizard.change_language(_require_language(language))

    session_id = create_session(wizard)
    return session_id, wizard


def list_doctors(client: ClinicApiClient | None = None) -> list[Doctor]:
    client = client or get_clinic_client()
    return client.list_doctors()


def get_wizard(session_id) -> Wizard:
    return load_session(session_id)


def capture_response(session_id, data: dict) -> Wizard:
    """
    Apply one captured answer. Exactly one addressing mode per request:
      {question_id, value}                    bare answer
      {question_id, field, value}             demographics / insurance / body map sub-field
      {question_id, row, column, value}       matrix cell
      {question_id, control, value}           mixed-controls sub-control
    """
    wizard = load_session(session_id)

    question_id = data.get('question_id')
    if not isinstance(question_id, str) or not question_id:
        raise ValidationError(message='question_id is required.', code='QUESTION_ID_REQUIRED')
    value = data.get('value')

    if data.get('field') is not None:
        wizard.capture_field(question_id, str(data['field']), value)
    elif data.get('row') is not None or data.get('column') is not None:
        row, column = _int_param(data, 'row'), _int_param(data, 'column')
        wizard.capture_cell(question_id, row, column, value)
    elif data.get('control') is not None:
        wizard.capture_control(question_id, _int_param(data, 'control'), value)
    else:
        wizard.capture_answer(question_id, value)

    save_session(session_id, wizard)
    return wizard


def attach_files(session_id, question_id, files: list[AttachedFile]) -> Wizard:
    wizard = load_session(session_id)
    wizard.attach_files(question_id, files)
    save_session(session_id, wizard)
    return wizard


def go_next(session_id) -> Wizard:
    wizard = load_session(session_id)
    wizard.next()
    save_session(session_id, wizard)
    return wizard


def go_previous(session_id) -> Wizard:
    wizard = load_session(session_id)
    wizard.previous()
    save_session(session_id, wizard)
    return wizard


def change_language(session_id, language) -> Wizard:
    wizard = load_session(session_id)
    wizard.change_language(_require_language(language))
    save_session(session_id, wizard)
    return wizard


def submit_wizard(session_id, client: ClinicApiClient | None = None) -> dict:
    """
    Final step: validate, assemble, create the patient (if the template has demographics),
    then post the multipart form response.

    Raises ValidationViolation / NothingToSubmit / DependentRecordFailure /
    SubmissionTransportFailure. The session is only discarded after success.
    """
    client = client or get_clinic_client()

    with submission_in_flight(session_id):
        wizard = load_session(session_id)
        wizard.check_ready_to_submit()

        completed_at = timezone.now()
        records = build_records(wizard.template, wizard.store, completed_at)
        if not records:
            raise NothingToSubmit(
                message='No responses to submit. Please fill out at least one question.',
            )

        patient_id = _resolve_patient(wizard, client)
        if patient_id is not None:
            # 先保存已创建的患者 id，表单提交失败后重试可以复用
            save_session(session_id, wizard)

        document = build_document(wizard.template, records, completed_at, patient_id=patient_id)
        files = [
            OutgoingFile(
                field_name=f"attachments[{question_id}]",
                file_name=attached.name,
                content=attached.content,
                content_type=attached.content_type,
            )
            for question_id, attached in collect_attachments(wizard.template, wizard.store)
        ]

        logger.info("[Intake][submit] session=%s records=%d files=%d patient=%s",
                    session_id, len(records), len(files), patient_id)
        try:
            client.submit_form_response(document, files)
        except UpstreamError as exc:
            logger.warning("[Intake][submit] session=%s form response failed: %s", session_id, exc.message)
            raise SubmissionTransportFailure(
                message='Error submitting form. Please try again.',
                detail={'upstream': exc.detail},
            ) from exc

        discard_session(session_id)

    return {
        'status': 'submitted',
        'form_template': wizard.template.id,
        'patient': patient_id,
        'responses': len(records),
        'attachments': len(files),
        'completed_at': completed_at.isoformat(),
    }


def _resolve_patient(wizard: Wizard, client: ClinicApiClient):
    """
    Patient 创建。没有 demographics 题 → None。
    - 同样的 demographics 内容已经创建过 → 复用之前的 id，不再新建
    - 创建失败 / 响应里没有 id → DependentRecordFailure，整次提交中止
    """
    item = find_demographics(wizard.template)
    if item is None:
        return None

    payload = build_patient_payload(item, wizard.store)
    if not payload['assignedDoctor']:
        raise ValidationViolation(
            'Assigned Doctor is required', question_id=item.id, field=ASSIGNED_DOCTOR_FIELD,
        )

    fingerprint = patient_fingerprint(payload)
    existing = wizard.remembered_patient_id(fingerprint)
    if existing:
        logger.info("[Intake][patient] reusing patient=%s from previous attempt", existing)
        return existing

    try:
        body = client.create_patient(payload)
    except UpstreamError as exc:
        logger.warning("[Intake][patient] creation failed: %s", exc.message)
        raise DependentRecordFailure(
            message='Error creating patient record. Please check the form and try again.',
            detail={'upstream': exc.detail},
        ) from exc

    patient_id = _extract_patient_id(body)
    if not patient_id:
        raise DependentRecordFailure(
            message='Patient record was created without a usable id.',
            code='PATIENT_ID_MISSING',
        )

    wizard.remember_patient(fingerprint, patient_id)
    logger.info("[Intake][patient] created patient=%s", patient_id)
    return patient_id


def _extract_patient_id(body):
    patient = body.get('patient') if isinstance(body, dict) else None
    if not isinstance(patient, dict):
        return None
    patient_id = patient.get('id') or patient.get('_id')
    return str(patient_id) if patient_id else None


def _require_language(value):
    language = parse_language(value)
    if language is None:
        raise ValidationError(
            message=f"Unknown language: {value!r}.",
            code='UNKNOWN_LANGUAGE',
            detail={'known_languages': ['primary', 'alternate']},
        )
    return language


def _int_param(data: dict, name: str) -> int:
    value = data.get(name)
    if isinstance(value, bool):
        value = None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            message=f"{name} must be an integer.",
            code='INVALID_PARAMETER',
            detail={'parameter': name, 'value': value},
        )


def _with_id(template, template_id):
    return replace(template, id=str(template_id))
