"""Stamp card models — fixed-capacity punch cards bound to an account."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from stampman.models.base import AppendOnlyModel


class StampCard(models.Model):
    """
    Punch card tracking progress toward one reward.

    0 <= current_stamps <= total_stamps. Once is_completed is set the card is
    frozen: StampCardService refuses further stamps or completion.

    Expiry is passive: expires_at is checked when a mutation is attempted,
    expired cards are never deleted.
    """

    account = models.ForeignKey(
        "stampman.LoyaltyAccount",
        on_delete=models.PROTECT,
        related_name="stamp_cards",
        verbose_name=_("conta"),
    )
    tenant_id = models.CharField(_("tenant"), max_length=64, db_index=True)

    card_name = models.CharField(_("nome da cartela"), max_length=100)
    total_stamps = models.PositiveIntegerField(_("carimbos necessários"))
    current_stamps = models.PositiveIntegerField(_("carimbos atuais"), default=0)
    reward_description = models.CharField(_("prêmio"), max_length=200, blank=True)

    is_completed = models.BooleanField(_("completa"), default=False)
    completed_at = models.DateTimeField(_("completada em"), null=True, blank=True)
    expires_at = models.DateTimeField(_("expira em"), null=True, blank=True)

    is_active = models.BooleanField(_("ativa"), default=True)
    created_at = models.DateTimeField(_("criada em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizada em"), auto_now=True)

    class Meta:
        db_table = "stampman_stamp_card"
        verbose_name = _("cartela de carimbos")
        verbose_name_plural = _("cartelas de carimbos")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_stamps__gt=0),
                name="stampman_card_capacity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(current_stamps__lte=models.F("total_stamps")),
                name="stampman_card_within_capacity",
            ),
        ]

    def __str__(self):
        return f"{self.card_name}: {self.current_stamps}/{self.total_stamps}"

    @property
    def stamps_remaining(self) -> int:
        """Stamps remaining to complete the card."""
        return max(0, self.total_stamps - self.current_stamps)

    @property
    def progress_percent(self) -> int:
        """Completion percentage, clamped to 0-100."""
        return min(100, int(self.current_stamps / self.total_stamps * 100))

    def is_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return self.expires_at is not None and now > self.expires_at


class StampTransaction(AppendOnlyModel):
    """
    Immutable record of a stamp mutation on a card.

    stamps_after holds the raw count (stamps_before + stamps_added), which
    may exceed the card capacity when a card is over-stamped on completion.
    """

    card = models.ForeignKey(
        StampCard,
        on_delete=models.PROTECT,
        related_name="transactions",
        verbose_name=_("cartela"),
    )
    tenant_id = models.CharField(_("tenant"), max_length=64, db_index=True)

    stamps_added = models.PositiveIntegerField(_("carimbos adicionados"))
    stamps_before = models.PositiveIntegerField(_("carimbos antes"))
    stamps_after = models.PositiveIntegerField(_("carimbos após"))

    reason = models.CharField(_("motivo"), max_length=200)
    store_id = models.CharField(_("loja"), max_length=64, blank=True)
    actor_id = models.CharField(_("processado por"), max_length=64, blank=True)

    created_at = models.DateTimeField(_("criado em"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "stampman_stamp_transaction"
        verbose_name = _("transação de carimbo")
        verbose_name_plural = _("transações de carimbo")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["card", "-created_at"], name="stampman_stx_card_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    stamps_after=models.F("stamps_before") + models.F("stamps_added")
                ),
                name="stampman_stamp_transaction_consistent",
            ),
        ]

    def __str__(self):
        return f"+{self.stamps_added} ({self.stamps_before}→{self.stamps_after}) — {self.reason}"
