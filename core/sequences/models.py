"""
PracticeOps Sequences — SequenceCounter Model
===============================================
Exactly one row per (tenant_schema, kind). Created lazily on the
first allocation, advanced on every allocation, never deleted.
"""

from django.db import models


class SequenceKind(models.TextChoices):
    INVOICE = "invoice", "Invoice"
    PROPOSAL = "proposal", "Proposal"


class SequenceCounter(models.Model):
    tenant_schema = models.CharField(max_length=63, db_index=True)
    kind = models.CharField(max_length=32, choices=SequenceKind.choices)
    next_number = models.PositiveBigIntegerField(default=1)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        app_label = "sequences"
        db_table = "practiceops_sequence_counter"
        constraints = [
            models.UniqueConstraint(
                fields=("tenant_schema", "kind"),
                name="uq_seq_tenant_kind",
            ),
        ]

    def __str__(self):
        return f"{self.tenant_schema}:{self.kind} → {self.next_number}"
