"""Reward definitions and redemption records."""

from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class RewardType(models.TextChoices):
    DISCOUNT = "discount", _("Desconto")
    FREE_ITEM = "free_item", _("Item grátis")
    CASHBACK = "cashback", _("Cashback")


class RewardDefinition(models.Model):
    """
    A reward a tenant offers, priced in points.

    points_cost doubles as the stamp requirement for the QR-scan progress
    flow. Availability is a pure function of (now, is_active, window,
    redemption count); see is_available().

    max_redemptions NULL means unlimited; when set, the DB constraint keeps
    current_redemptions <= max_redemptions.
    """

    tenant_id = models.CharField(_("tenant"), max_length=64, db_index=True)
    name = models.CharField(_("nome"), max_length=100)
    description = models.TextField(_("descrição"), blank=True)

    points_cost = models.PositiveIntegerField(_("custo em pontos"))
    reward_type = models.CharField(
        _("tipo"),
        max_length=20,
        choices=RewardType.choices,
        default=RewardType.DISCOUNT,
    )
    discount_amount = models.DecimalField(
        _("valor do desconto"), max_digits=10, decimal_places=2, null=True, blank=True
    )
    discount_percentage = models.DecimalField(
        _("percentual de desconto"), max_digits=5, decimal_places=2, null=True, blank=True
    )

    is_active = models.BooleanField(_("ativo"), default=True)
    starts_at = models.DateTimeField(_("início"), null=True, blank=True)
    ends_at = models.DateTimeField(_("fim"), null=True, blank=True)

    max_redemptions = models.PositiveIntegerField(_("limite de resgates"), null=True, blank=True)
    current_redemptions = models.PositiveIntegerField(_("resgates"), default=0)

    created_at = models.DateTimeField(_("criado em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    class Meta:
        db_table = "stampman_reward"
        verbose_name = _("recompensa")
        verbose_name_plural = _("recompensas")
        ordering = ["points_cost", "name"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(max_redemptions__isnull=True)
                    | models.Q(current_redemptions__lte=models.F("max_redemptions"))
                ),
                name="stampman_reward_within_cap",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.points_cost}pts)"

    def is_available(self, now=None) -> bool:
        """Active, inside its window, and under its redemption cap."""
        now = now or timezone.now()
        if not self.is_active:
            return False
        if self.starts_at and now < self.starts_at:
            return False
        if self.ends_at and now > self.ends_at:
            return False
        if self.max_redemptions is not None and self.current_redemptions >= self.max_redemptions:
            return False
        return True

    @property
    def value_description(self) -> str:
        if self.reward_type == RewardType.DISCOUNT:
            if self.discount_amount:
                return f"£{Decimal(self.discount_amount):.2f} off"
            if self.discount_percentage:
                return f"{float(self.discount_percentage):g}% off"
        elif self.reward_type == RewardType.FREE_ITEM:
            return "Free item"
        elif self.reward_type == RewardType.CASHBACK and self.discount_amount:
            return f"£{Decimal(self.discount_amount):.2f} cashback"
        return self.description


class RedemptionStatus(models.TextChoices):
    ACTIVE = "active", _("Ativo")
    USED = "used", _("Utilizado")


class RewardRedemption(models.Model):
    """
    Record of a reward bought with points.

    Created together with its ledger debit in one unit of work; the only
    later change is the single ACTIVE -> USED transition.
    """

    tenant_id = models.CharField(_("tenant"), max_length=64, db_index=True)
    account = models.ForeignKey(
        "stampman.LoyaltyAccount",
        on_delete=models.PROTECT,
        related_name="redemptions",
        verbose_name=_("conta"),
    )
    reward = models.ForeignKey(
        RewardDefinition,
        on_delete=models.PROTECT,
        related_name="redemptions",
        verbose_name=_("recompensa"),
    )
    ledger_transaction = models.OneToOneField(
        "stampman.LoyaltyTransaction",
        on_delete=models.PROTECT,
        related_name="redemption",
        verbose_name=_("transação"),
    )
    points_spent = models.PositiveIntegerField(_("pontos gastos"))

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=RedemptionStatus.choices,
        default=RedemptionStatus.ACTIVE,
    )
    store_id = models.CharField(_("loja"), max_length=64, blank=True)
    actor_id = models.CharField(_("processado por"), max_length=64, blank=True)

    used_at = models.DateTimeField(_("utilizado em"), null=True, blank=True)
    used_store_id = models.CharField(_("loja de uso"), max_length=64, blank=True)
    used_by = models.CharField(_("utilizado por"), max_length=64, blank=True)

    created_at = models.DateTimeField(_("criado em"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "stampman_reward_redemption"
        verbose_name = _("resgate de recompensa")
        verbose_name_plural = _("resgates de recompensa")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["account", "status"], name="stampman_redemption_acct_idx"),
        ]

    def __str__(self):
        return f"{self.reward_id} → {self.account_id} [{self.status}]"
