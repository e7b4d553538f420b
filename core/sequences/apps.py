"""
PracticeOps Core — Sequences App Configuration
================================================
Holds the per-tenant document counters.

This app does NOT format numbers into documents or decide when a
number is needed. Engines call the allocator for that.
"""

from django.apps import AppConfig


class SequencesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core.sequences"
    label = "sequences"
    verbose_name = "PracticeOps Sequences"
