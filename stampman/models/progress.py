"""Reward progress (QR-scan flow) and scan history models."""

from django.db import models
from django.utils.translation import gettext_lazy as _

from stampman.models.base import AppendOnlyModel


class ProgressStatus(models.TextChoices):
    """
    Reward progress lifecycle.

    IN_PROGRESS -> READY_TO_REDEEM -> AVAILED. There is no abandoned state:
    an administrative reset zeroes the counters and keeps IN_PROGRESS.
    """

    IN_PROGRESS = "in_progress", _("Em andamento")
    READY_TO_REDEEM = "ready_to_redeem", _("Pronto para resgate")
    AVAILED = "availed", _("Resgatado")


# Allowed forward transitions; anything else is illegal
PROGRESS_TRANSITIONS: dict[str, set[str]] = {
    ProgressStatus.IN_PROGRESS: {ProgressStatus.READY_TO_REDEEM},
    ProgressStatus.READY_TO_REDEEM: {ProgressStatus.AVAILED},
    ProgressStatus.AVAILED: set(),
}


def sources_for(target: str) -> list[str]:
    """Statuses allowed to move into `target`."""
    return [status for status, allowed in PROGRESS_TRANSITIONS.items() if target in allowed]


class UserRewardProgress(models.Model):
    """
    One accrual cycle of a customer toward one reward.

    At most one open (not AVAILED) record per (customer, reward): a new
    cycle creates a new row, availed rows are kept as history.
    """

    tenant_id = models.CharField(_("tenant"), max_length=64, db_index=True)
    customer_id = models.CharField(_("cliente"), max_length=64, db_index=True)
    reward = models.ForeignKey(
        "stampman.RewardDefinition",
        on_delete=models.PROTECT,
        related_name="progress_records",
        verbose_name=_("recompensa"),
    )

    stamps_collected = models.PositiveIntegerField(_("carimbos coletados"), default=0)
    stamps_required = models.PositiveIntegerField(_("carimbos necessários"))
    status = models.CharField(
        _("status"),
        max_length=20,
        choices=ProgressStatus.choices,
        default=ProgressStatus.IN_PROGRESS,
        db_index=True,
    )

    completed_at = models.DateTimeField(_("completado em"), null=True, blank=True)
    redeemed_at = models.DateTimeField(_("resgatado em"), null=True, blank=True)
    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    class Meta:
        db_table = "stampman_reward_progress"
        verbose_name = _("progresso de recompensa")
        verbose_name_plural = _("progressos de recompensa")
        ordering = ["-updated_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["customer_id", "reward"],
                condition=~models.Q(status="availed"),
                name="stampman_one_open_progress_per_reward",
            ),
            models.CheckConstraint(
                condition=models.Q(stamps_required__gt=0),
                name="stampman_progress_required_positive",
            ),
        ]

    def __str__(self):
        return f"{self.customer_id} → {self.reward_id}: {self.stamps_collected}/{self.stamps_required} [{self.status}]"

    @property
    def completion_percentage(self) -> float:
        return min(self.stamps_collected / self.stamps_required * 100, 100.0)

    @property
    def remaining_stamps(self) -> int:
        return max(0, self.stamps_required - self.stamps_collected)

    @property
    def is_ready_for_redemption(self) -> bool:
        return (
            self.status == ProgressStatus.READY_TO_REDEEM
            and self.stamps_collected >= self.stamps_required
        )

    def can_transition_to(self, status: str) -> bool:
        return status in PROGRESS_TRANSITIONS[ProgressStatus(self.status)]


class ScanAction(models.TextChoices):
    STAMP = "stamp", _("Carimbo")
    REDEMPTION = "redemption", _("Resgate")


class ScanHistoryRecord(AppendOnlyModel):
    """
    Audit of one staff scan: which progress record it touched, who scanned,
    where, and the stamp counts before/after.

    A consumed transaction code produces at most one record (DB constraint).
    Customer, reward and counts are copied so the record stands on its own
    after an administrative progress delete clears the link.
    """

    progress = models.ForeignKey(
        UserRewardProgress,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="scans",
        verbose_name=_("progresso"),
    )
    tenant_id = models.CharField(_("tenant"), max_length=64, db_index=True)
    customer_id = models.CharField(_("cliente"), max_length=64, db_index=True)
    reward = models.ForeignKey(
        "stampman.RewardDefinition",
        on_delete=models.PROTECT,
        related_name="scans",
        verbose_name=_("recompensa"),
    )
    transaction_code = models.CharField(_("código"), max_length=32, blank=True)

    scanned_by = models.CharField(_("escaneado por"), max_length=64)
    store_id = models.CharField(_("loja"), max_length=64, blank=True, db_index=True)

    action = models.CharField(
        _("ação"),
        max_length=20,
        choices=ScanAction.choices,
        default=ScanAction.STAMP,
    )
    stamps_added = models.PositiveIntegerField(_("carimbos adicionados"), default=1)
    stamps_before = models.PositiveIntegerField(_("carimbos antes"))
    stamps_after = models.PositiveIntegerField(_("carimbos após"))
    scan_method = models.CharField(_("método"), max_length=20, default="qr_code")
    notes = models.CharField(_("observações"), max_length=200, blank=True)

    created_at = models.DateTimeField(_("criado em"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "stampman_scan_history"
        verbose_name = _("leitura")
        verbose_name_plural = _("histórico de leituras")
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["transaction_code"],
                condition=~models.Q(transaction_code=""),
                name="stampman_one_scan_per_code",
            ),
        ]

    def __str__(self):
        return f"{self.action} {self.customer_id}: {self.stamps_before}→{self.stamps_after}"
