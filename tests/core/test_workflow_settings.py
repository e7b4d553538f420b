"""
Tests for core.config — WorkflowSettings.
"""

import pytest

from core.config.settings import WorkflowSettings
from core.sequences.policy import KIND_INVOICE, KIND_PROPOSAL


class TestWorkflowSettings:
    def test_defaults(self):
        settings = WorkflowSettings()
        assert settings.invoice_prefix == "INV-"
        assert settings.proposal_prefix == "PROP-"
        assert settings.number_padding == 4
        assert settings.default_due_days == 30
        assert settings.default_currency == "USD"

    def test_sequence_policies_follow_prefixes(self):
        settings = WorkflowSettings(invoice_prefix="F-", number_padding=6)
        policies = {p.kind: p for p in settings.sequence_policies()}
        assert policies[KIND_INVOICE].format_number(42) == "F-000042"
        assert policies[KIND_PROPOSAL].format_number(42) == "PROP-000042"

    def test_rejects_short_padding(self):
        with pytest.raises(ValueError, match="number_padding"):
            WorkflowSettings(number_padding=2)

    def test_rejects_bad_currency(self):
        with pytest.raises(ValueError, match="currency"):
            WorkflowSettings(default_currency="EURO")

    def test_from_mapping_rejects_unknown_keys(self):
        with pytest.raises(ValueError, match="Unknown workflow settings"):
            WorkflowSettings.from_mapping({"invoice_prefx": "X-"})

    def test_from_django_settings(self, settings):
        settings.PRACTICEOPS = {"invoice_prefix": "BILL-", "default_due_days": 14}
        loaded = WorkflowSettings.from_django_settings()
        assert loaded.invoice_prefix == "BILL-"
        assert loaded.default_due_days == 14
        assert loaded.proposal_prefix == "PROP-"
