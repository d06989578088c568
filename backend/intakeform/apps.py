from django.apps import AppConfig


class IntakeFormConfig(AppConfig):
    name = 'intakeform'
    verbose_name = 'Patient intake wizard'
