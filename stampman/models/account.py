"""Loyalty account and points ledger models."""

from django.db import models
from django.utils.translation import gettext_lazy as _

from stampman.models.base import AppendOnlyModel


class LoyaltyLevel(models.TextChoices):
    """Customer loyalty levels, derived from lifetime earned points."""

    BRONZE = "bronze", _("Bronze")
    SILVER = "silver", _("Prata")
    GOLD = "gold", _("Ouro")
    PLATINUM = "platinum", _("Platina")


class TransactionType(models.TextChoices):
    """Points ledger transaction types."""

    EARN = "earn", _("Acúmulo")
    REDEEM = "redeem", _("Resgate")


class LoyaltyAccount(models.Model):
    """
    Customer points account, one per (tenant, customer).

    Invariant (also enforced by DB constraints):
        current_points == total_earned - total_redeemed >= 0

    Balances are mutated only by LedgerService / RedemptionService under a
    row lock. Accounts are never deleted, only deactivated.
    """

    tenant_id = models.CharField(_("tenant"), max_length=64, db_index=True)
    customer_id = models.CharField(
        _("cliente"),
        max_length=64,
        help_text=_("ID do cliente no provedor de identidade"),
    )
    loyalty_number = models.CharField(_("número de fidelidade"), max_length=20)

    current_points = models.IntegerField(_("saldo de pontos"), default=0)
    total_earned = models.IntegerField(
        _("pontos acumulados"),
        default=0,
        help_text=_("Total de pontos já acumulados (nunca decresce)"),
    )
    total_redeemed = models.IntegerField(
        _("pontos resgatados"),
        default=0,
        help_text=_("Total de pontos já resgatados (nunca decresce)"),
    )

    level = models.CharField(
        _("nível"),
        max_length=20,
        choices=LoyaltyLevel.choices,
        default=LoyaltyLevel.BRONZE,
    )

    is_active = models.BooleanField(_("ativo"), default=True)
    last_activity_at = models.DateTimeField(_("última atividade"), null=True, blank=True)
    enrolled_at = models.DateTimeField(_("inscrito em"), auto_now_add=True)
    updated_at = models.DateTimeField(_("atualizado em"), auto_now=True)

    class Meta:
        db_table = "stampman_loyalty_account"
        verbose_name = _("conta de fidelidade")
        verbose_name_plural = _("contas de fidelidade")
        ordering = ["-last_activity_at", "-enrolled_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "customer_id"],
                name="stampman_unique_account_per_customer",
            ),
            models.UniqueConstraint(
                fields=["tenant_id", "loyalty_number"],
                name="stampman_unique_loyalty_number",
            ),
            models.CheckConstraint(
                condition=models.Q(current_points__gte=0),
                name="stampman_account_points_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    current_points=models.F("total_earned") - models.F("total_redeemed")
                ),
                name="stampman_account_points_balanced",
            ),
        ]

    def __str__(self):
        return f"{self.loyalty_number}: {self.current_points}pts | {self.level}"


class LoyaltyTransaction(AppendOnlyModel):
    """
    Immutable record of one points balance mutation.

    balance_after == balance_before + points always holds.
    """

    account = models.ForeignKey(
        LoyaltyAccount,
        on_delete=models.PROTECT,
        related_name="transactions",
        verbose_name=_("conta"),
    )
    tenant_id = models.CharField(_("tenant"), max_length=64, db_index=True)

    transaction_type = models.CharField(
        _("tipo"),
        max_length=20,
        choices=TransactionType.choices,
    )
    points = models.IntegerField(
        _("pontos"),
        help_text=_("Positivo para acúmulo, negativo para resgate"),
    )
    balance_before = models.IntegerField(_("saldo antes"))
    balance_after = models.IntegerField(_("saldo após"))

    description = models.CharField(
        _("descrição"),
        max_length=200,
        help_text=_("Motivo da transação"),
    )
    store_id = models.CharField(_("loja"), max_length=64, blank=True)
    actor_id = models.CharField(_("processado por"), max_length=64, blank=True)

    created_at = models.DateTimeField(_("criado em"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "stampman_loyalty_transaction"
        verbose_name = _("transação de fidelidade")
        verbose_name_plural = _("transações de fidelidade")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["account", "-created_at"], name="stampman_ltx_account_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    balance_after=models.F("balance_before") + models.F("points")
                ),
                name="stampman_transaction_balance_consistent",
            ),
        ]

    def __str__(self):
        sign = "+" if self.points > 0 else ""
        return f"{sign}{self.points}pts — {self.description}"
