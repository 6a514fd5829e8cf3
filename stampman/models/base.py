"""Shared model bases."""

from django.db import models


class AppendOnlyModel(models.Model):
    """
    Audit row that is written once and never modified or deleted.

    Enforced for instance saves/deletes; bulk queryset operations are the
    engine's concern and it never issues them against audit tables.
    """

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError(f"{type(self).__name__} is append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError(f"{type(self).__name__} is append-only")
