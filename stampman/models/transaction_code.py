"""
StampTransactionCode — short-lived, single-use QR payloads.

The customer app issues a code bound to (customer, reward); a staff scan
consumes it exactly once. Pending codes past expires_at are swept to
EXPIRED by StampCodeService.sweep_expired().
"""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class CodeStatus(models.TextChoices):
    PENDING = "pending", _("Pendente")
    COMPLETED = "completed", _("Utilizado")
    CANCELLED = "cancelled", _("Cancelado")
    EXPIRED = "expired", _("Expirado")


class StampTransactionCode(models.Model):
    """
    Pending stamp grant waiting for a staff scan.

    Status only moves out of PENDING, and only through conditional updates
    keyed on status=PENDING, so concurrent scans/sweeps/cancels resolve to a
    single winner.
    """

    code = models.CharField(_("código"), max_length=32, unique=True)
    tenant_id = models.CharField(_("tenant"), max_length=64, db_index=True)
    customer_id = models.CharField(_("cliente"), max_length=64, db_index=True)
    reward = models.ForeignKey(
        "stampman.RewardDefinition",
        on_delete=models.PROTECT,
        related_name="transaction_codes",
        verbose_name=_("recompensa"),
    )
    store_id = models.CharField(_("loja"), max_length=64, blank=True)

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=CodeStatus.choices,
        default=CodeStatus.PENDING,
    )
    expires_at = models.DateTimeField(_("expira em"))

    consumed_at = models.DateTimeField(_("utilizado em"), null=True, blank=True)
    consumed_by = models.CharField(_("utilizado por"), max_length=64, blank=True)
    consumed_store_id = models.CharField(_("loja de uso"), max_length=64, blank=True)
    cancelled_at = models.DateTimeField(_("cancelado em"), null=True, blank=True)

    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    class Meta:
        db_table = "stampman_transaction_code"
        verbose_name = _("código de transação")
        verbose_name_plural = _("códigos de transação")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "expires_at"], name="stampman_code_status_exp_idx"),
        ]

    def __str__(self):
        return f"{self.code} [{self.status}]"

    def is_redeemable(self, now=None) -> bool:
        now = now or timezone.now()
        return self.status == CodeStatus.PENDING and self.expires_at > now
