from django.db import models


class UsageCounter(models.Model):
    """Per-identity daily request counter for the metered AI gateway."""

    identity = models.CharField(max_length=150, unique=True)
    request_count = models.PositiveIntegerField(default=0)
    window_reset_at = models.DateTimeField()
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"UsageCounter<{self.identity}:{self.request_count}>"
