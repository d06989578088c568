from django.urls import path

from .views import (
    AnswerView,
    AttachmentView,
    DoctorListView,
    LanguageView,
    NextStepView,
    PreviousStepView,
    SessionCreateView,
    SessionDetailView,
    SubmitView,
)

urlpatterns = [
    path('intake/sessions/', SessionCreateView.as_view(), name='intake-session-create'),
    path('intake/sessions/<str:session_id>/', SessionDetailView.as_view(), name='intake-session-detail'),
    path('intake/sessions/<str:session_id>/answers/', AnswerView.as_view(), name='intake-answer'),
    path('intake/sessions/<str:session_id>/attachments/<str:question_id>/', AttachmentView.as_view(), name='intake-attachment'),
    path('intake/sessions/<str:session_id>/next/', NextStepView.as_view(), name='intake-next'),
    path('intake/sessions/<str:session_id>/previous/', PreviousStepView.as_view(), name='intake-previous'),
    path('intake/sessions/<str:session_id>/language/', LanguageView.as_view(), name='intake-language'),
    path('intake/sessions/<str:session_id>/submit/', SubmitView.as_view(), name='intake-submit'),
    path('intake/doctors/', DoctorListView.as_view(), name='intake-doctors'),
]
