from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SequenceCounter",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("tenant_schema", models.CharField(db_index=True, max_length=63)),
                (
                    "kind",
                    models.CharField(
                        choices=[("invoice", "Invoice"), ("proposal", "Proposal")],
                        max_length=32,
                    ),
                ),
                ("next_number", models.PositiveBigIntegerField(default=1)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "practiceops_sequence_counter",
            },
        ),
        migrations.AddConstraint(
            model_name="sequencecounter",
            constraint=models.UniqueConstraint(
                fields=("tenant_schema", "kind"),
                name="uq_seq_tenant_kind",
            ),
        ),
    ]
