from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("snelstart", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="snelstartconnection",
            name="subscription_key",
            field=models.TextField(
                help_text="Sent as Ocp-Apim-Subscription-Key on every request. Stored encrypted.",
                verbose_name="Subscription key",
            ),
        ),
        migrations.AlterField(
            model_name="snelstartconnection",
            name="integration_key",
            field=models.TextField(
                help_text="Client key exchanged for a bearer token. Stored encrypted.",
                verbose_name="Integration key",
            ),
        ),
    ]
