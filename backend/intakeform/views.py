from rest_framework import status
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .exceptions import ValidationError
from .serializers import serialize_doctors, serialize_wizard
from .wizard import AttachedFile


class SessionCreateView(APIView):
    """POST /api/intake/sessions/ - Fetch a template and start a wizard session"""

    def post(self, request):
        template_id = request.data.get('template_id')
        if not template_id:
            raise ValidationError(message='template_id is required.', code='TEMPLATE_ID_REQUIRED')

        session_id, wizard = services.start_session(
            str(template_id),
            language=request.data.get('language'),
        )
        return Response(serialize_wizard(session_id, wizard), status=status.HTTP_201_CREATED)


class SessionDetailView(APIView):
    """GET /api/intake/sessions/<session_id>/ - Current step and its captured answers"""

    def get(self, request, session_id):
        wizard = services.get_wizard(session_id)
        return Response(serialize_wizard(session_id, wizard))


class AnswerView(APIView):
    """POST /api/intake/sessions/<session_id>/answers/ - Capture one answer"""

    def post(self, request, session_id):
        wizard = services.capture_response(session_id, request.data)
        return Response(serialize_wizard(session_id, wizard))


class AttachmentView(APIView):
    """POST /api/intake/sessions/<session_id>/attachments/<question_id>/ - Select files (multipart)"""

    parser_classes = [MultiPartParser, FormParser]

    def post(self, request, session_id, question_id):
        files = [
            AttachedFile(
                name=upload.name,
                content_type=upload.content_type or 'application/octet-stream',
                size=upload.size,
                content=upload.read(),
            )
            for upload in request.FILES.getlist('files')
        ]
        wizard = services.attach_files(session_id, question_id, files)
        return Response(serialize_wizard(session_id, wizard))


class NextStepView(APIView):
    """POST /api/intake/sessions/<session_id>/next/ - Validate the current step and advance"""

    def post(self, request, session_id):
        wizard = services.go_next(session_id)
        return Response(serialize_wizard(session_id, wizard))


class PreviousStepView(APIView):
    """POST /api/intake/sessions/<session_id>/previous/ - Go back one step (never validated)"""

    def post(self, request, session_id):
        wizard = services.go_previous(session_id)
        return Response(serialize_wizard(session_id, wizard))


class LanguageView(APIView):
    """POST /api/intake/sessions/<session_id>/language/ - Switch language, restart at step 0"""

    parser_classes = [JSONParser]

    def post(self, request, session_id):
        wizard = services.change_language(session_id, request.data.get('language'))
        return Response(serialize_wizard(session_id, wizard))


class SubmitView(APIView):
    """POST /api/intake/sessions/<session_id>/submit/ - Assemble and submit the form response"""

    def post(self, request, session_id):
        result = services.submit_wizard(session_id)
        return Response(result, status=status.HTTP_201_CREATED)


class DoctorListView(APIView):
    """GET /api/intake/doctors/ - Doctors for the assigned-doctor selector"""

    def get(self, request):
        return Response(serialize_doctors(services.list_doctors()))
