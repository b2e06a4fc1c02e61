import django.db.models.functions.text
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("tills", "0001_initial"),
    ]

    operations = [
        migrations.AddConstraint(
            model_name="tillsession",
            constraint=models.UniqueConstraint(
                django.db.models.functions.text.Lower("staff_username"),
                condition=models.Q(("status", "open")),
                name="unique_open_till_session_per_staff",
            ),
        ),
    ]
