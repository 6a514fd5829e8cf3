# Initial schema for the loyalty engine

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LoyaltyAccount",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64, verbose_name="tenant")),
                (
                    "customer_id",
                    models.CharField(
                        help_text="ID do cliente no provedor de identidade",
                        max_length=64,
                        verbose_name="cliente",
                    ),
                ),
                (
                    "loyalty_number",
                    models.CharField(max_length=20, verbose_name="número de fidelidade"),
                ),
                ("current_points", models.IntegerField(default=0, verbose_name="saldo de pontos")),
                (
                    "total_earned",
                    models.IntegerField(
                        default=0,
                        help_text="Total de pontos já acumulados (nunca decresce)",
                        verbose_name="pontos acumulados",
                    ),
                ),
                (
                    "total_redeemed",
                    models.IntegerField(
                        default=0,
                        help_text="Total de pontos já resgatados (nunca decresce)",
                        verbose_name="pontos resgatados",
                    ),
                ),
                (
                    "level",
                    models.CharField(
                        choices=[
                            ("bronze", "Bronze"),
                            ("silver", "Prata"),
                            ("gold", "Ouro"),
                            ("platinum", "Platina"),
                        ],
                        default="bronze",
                        max_length=20,
                        verbose_name="nível",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="ativo")),
                (
                    "last_activity_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="última atividade"),
                ),
                ("enrolled_at", models.DateTimeField(auto_now_add=True, verbose_name="inscrito em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
            ],
            options={
                "verbose_name": "conta de fidelidade",
                "verbose_name_plural": "contas de fidelidade",
                "db_table": "stampman_loyalty_account",
                "ordering": ["-last_activity_at", "-enrolled_at"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("tenant_id", "customer_id"),
                        name="stampman_unique_account_per_customer",
                    ),
                    models.UniqueConstraint(
                        fields=("tenant_id", "loyalty_number"),
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
                ],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyTransaction",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64, verbose_name="tenant")),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[("earn", "Acúmulo"), ("redeem", "Resgate")],
                        max_length=20,
                        verbose_name="tipo",
                    ),
                ),
                (
                    "points",
                    models.IntegerField(
                        help_text="Positivo para acúmulo, negativo para resgate",
                        verbose_name="pontos",
                    ),
                ),
                ("balance_before", models.IntegerField(verbose_name="saldo antes")),
                ("balance_after", models.IntegerField(verbose_name="saldo após")),
                (
                    "description",
                    models.CharField(
                        help_text="Motivo da transação", max_length=200, verbose_name="descrição"
                    ),
                ),
                ("store_id", models.CharField(blank=True, max_length=64, verbose_name="loja")),
                (
                    "actor_id",
                    models.CharField(blank=True, max_length=64, verbose_name="processado por"),
                ),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="criado em"),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="stampman.loyaltyaccount",
                        verbose_name="conta",
                    ),
                ),
            ],
            options={
                "verbose_name": "transação de fidelidade",
                "verbose_name_plural": "transações de fidelidade",
                "db_table": "stampman_loyalty_transaction",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["account", "-created_at"], name="stampman_ltx_account_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            balance_after=models.F("balance_before") + models.F("points")
                        ),
                        name="stampman_transaction_balance_consistent",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StampCard",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64, verbose_name="tenant")),
                ("card_name", models.CharField(max_length=100, verbose_name="nome da cartela")),
                ("total_stamps", models.PositiveIntegerField(verbose_name="carimbos necessários")),
                (
                    "current_stamps",
                    models.PositiveIntegerField(default=0, verbose_name="carimbos atuais"),
                ),
                (
                    "reward_description",
                    models.CharField(blank=True, max_length=200, verbose_name="prêmio"),
                ),
                ("is_completed", models.BooleanField(default=False, verbose_name="completa")),
                (
                    "completed_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="completada em"),
                ),
                ("expires_at", models.DateTimeField(blank=True, null=True, verbose_name="expira em")),
                ("is_active", models.BooleanField(default=True, verbose_name="ativa")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criada em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizada em")),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stamp_cards",
                        to="stampman.loyaltyaccount",
                        verbose_name="conta",
                    ),
                ),
            ],
            options={
                "verbose_name": "cartela de carimbos",
                "verbose_name_plural": "cartelas de carimbos",
                "db_table": "stampman_stamp_card",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(total_stamps__gt=0),
                        name="stampman_card_capacity_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(current_stamps__lte=models.F("total_stamps")),
                        name="stampman_card_within_capacity",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StampTransaction",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64, verbose_name="tenant")),
                ("stamps_added", models.PositiveIntegerField(verbose_name="carimbos adicionados")),
                ("stamps_before", models.PositiveIntegerField(verbose_name="carimbos antes")),
                ("stamps_after", models.PositiveIntegerField(verbose_name="carimbos após")),
                ("reason", models.CharField(max_length=200, verbose_name="motivo")),
                ("store_id", models.CharField(blank=True, max_length=64, verbose_name="loja")),
                (
                    "actor_id",
                    models.CharField(blank=True, max_length=64, verbose_name="processado por"),
                ),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="criado em"),
                ),
                (
                    "card",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="stampman.stampcard",
                        verbose_name="cartela",
                    ),
                ),
            ],
            options={
                "verbose_name": "transação de carimbo",
                "verbose_name_plural": "transações de carimbo",
                "db_table": "stampman_stamp_transaction",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["card", "-created_at"], name="stampman_stx_card_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            stamps_after=models.F("stamps_before") + models.F("stamps_added")
                        ),
                        name="stampman_stamp_transaction_consistent",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RewardDefinition",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64, verbose_name="tenant")),
                ("name", models.CharField(max_length=100, verbose_name="nome")),
                ("description", models.TextField(blank=True, verbose_name="descrição")),
                ("points_cost", models.PositiveIntegerField(verbose_name="custo em pontos")),
                (
                    "reward_type",
                    models.CharField(
                        choices=[
                            ("discount", "Desconto"),
                            ("free_item", "Item grátis"),
                            ("cashback", "Cashback"),
                        ],
                        default="discount",
                        max_length=20,
                        verbose_name="tipo",
                    ),
                ),
                (
                    "discount_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=10,
                        null=True,
                        verbose_name="valor do desconto",
                    ),
                ),
                (
                    "discount_percentage",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=5,
                        null=True,
                        verbose_name="percentual de desconto",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="ativo")),
                ("starts_at", models.DateTimeField(blank=True, null=True, verbose_name="início")),
                ("ends_at", models.DateTimeField(blank=True, null=True, verbose_name="fim")),
                (
                    "max_redemptions",
                    models.PositiveIntegerField(
                        blank=True, null=True, verbose_name="limite de resgates"
                    ),
                ),
                (
                    "current_redemptions",
                    models.PositiveIntegerField(default=0, verbose_name="resgates"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
            ],
            options={
                "verbose_name": "recompensa",
                "verbose_name_plural": "recompensas",
                "db_table": "stampman_reward",
                "ordering": ["points_cost", "name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=(
                            models.Q(max_redemptions__isnull=True)
                            | models.Q(current_redemptions__lte=models.F("max_redemptions"))
                        ),
                        name="stampman_reward_within_cap",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RewardRedemption",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64, verbose_name="tenant")),
                ("points_spent", models.PositiveIntegerField(verbose_name="pontos gastos")),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Ativo"), ("used", "Utilizado")],
                        default="active",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("store_id", models.CharField(blank=True, max_length=64, verbose_name="loja")),
                (
                    "actor_id",
                    models.CharField(blank=True, max_length=64, verbose_name="processado por"),
                ),
                ("used_at", models.DateTimeField(blank=True, null=True, verbose_name="utilizado em")),
                (
                    "used_store_id",
                    models.CharField(blank=True, max_length=64, verbose_name="loja de uso"),
                ),
                (
                    "used_by",
                    models.CharField(blank=True, max_length=64, verbose_name="utilizado por"),
                ),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="criado em"),
                ),
                (
                    "account",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="stampman.loyaltyaccount",
                        verbose_name="conta",
                    ),
                ),
                (
                    "reward",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="stampman.rewarddefinition",
                        verbose_name="recompensa",
                    ),
                ),
                (
                    "ledger_transaction",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption",
                        to="stampman.loyaltytransaction",
                        verbose_name="transação",
                    ),
                ),
            ],
            options={
                "verbose_name": "resgate de recompensa",
                "verbose_name_plural": "resgates de recompensa",
                "db_table": "stampman_reward_redemption",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["account", "status"], name="stampman_redemption_acct_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="StampTransactionCode",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("code", models.CharField(max_length=32, unique=True, verbose_name="código")),
                ("tenant_id", models.CharField(db_index=True, max_length=64, verbose_name="tenant")),
                (
                    "customer_id",
                    models.CharField(db_index=True, max_length=64, verbose_name="cliente"),
                ),
                ("store_id", models.CharField(blank=True, max_length=64, verbose_name="loja")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pendente"),
                            ("completed", "Utilizado"),
                            ("cancelled", "Cancelado"),
                            ("expired", "Expirado"),
                        ],
                        default="pending",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("expires_at", models.DateTimeField(verbose_name="expira em")),
                (
                    "consumed_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="utilizado em"),
                ),
                (
                    "consumed_by",
                    models.CharField(blank=True, max_length=64, verbose_name="utilizado por"),
                ),
                (
                    "consumed_store_id",
                    models.CharField(blank=True, max_length=64, verbose_name="loja de uso"),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="cancelado em"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
                (
                    "reward",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transaction_codes",
                        to="stampman.rewarddefinition",
                        verbose_name="recompensa",
                    ),
                ),
            ],
            options={
                "verbose_name": "código de transação",
                "verbose_name_plural": "códigos de transação",
                "db_table": "stampman_transaction_code",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "expires_at"], name="stampman_code_status_exp_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="UserRewardProgress",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64, verbose_name="tenant")),
                (
                    "customer_id",
                    models.CharField(db_index=True, max_length=64, verbose_name="cliente"),
                ),
                (
                    "stamps_collected",
                    models.PositiveIntegerField(default=0, verbose_name="carimbos coletados"),
                ),
                (
                    "stamps_required",
                    models.PositiveIntegerField(verbose_name="carimbos necessários"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("in_progress", "Em andamento"),
                            ("ready_to_redeem", "Pronto para resgate"),
                            ("availed", "Resgatado"),
                        ],
                        db_index=True,
                        default="in_progress",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                (
                    "completed_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="completado em"),
                ),
                (
                    "redeemed_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="resgatado em"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="criado em")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="atualizado em")),
                (
                    "reward",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="progress_records",
                        to="stampman.rewarddefinition",
                        verbose_name="recompensa",
                    ),
                ),
            ],
            options={
                "verbose_name": "progresso de recompensa",
                "verbose_name_plural": "progressos de recompensa",
                "db_table": "stampman_reward_progress",
                "ordering": ["-updated_at", "-id"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "availed"), _negated=True),
                        fields=("customer_id", "reward"),
                        name="stampman_one_open_progress_per_reward",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(stamps_required__gt=0),
                        name="stampman_progress_required_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ScanHistoryRecord",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64, verbose_name="tenant")),
                (
                    "customer_id",
                    models.CharField(db_index=True, max_length=64, verbose_name="cliente"),
                ),
                (
                    "transaction_code",
                    models.CharField(blank=True, max_length=32, verbose_name="código"),
                ),
                ("scanned_by", models.CharField(max_length=64, verbose_name="escaneado por")),
                (
                    "store_id",
                    models.CharField(blank=True, db_index=True, max_length=64, verbose_name="loja"),
                ),
                (
                    "action",
                    models.CharField(
                        choices=[("stamp", "Carimbo"), ("redemption", "Resgate")],
                        default="stamp",
                        max_length=20,
                        verbose_name="ação",
                    ),
                ),
                (
                    "stamps_added",
                    models.PositiveIntegerField(default=1, verbose_name="carimbos adicionados"),
                ),
                ("stamps_before", models.PositiveIntegerField(verbose_name="carimbos antes")),
                ("stamps_after", models.PositiveIntegerField(verbose_name="carimbos após")),
                (
                    "scan_method",
                    models.CharField(default="qr_code", max_length=20, verbose_name="método"),
                ),
                ("notes", models.CharField(blank=True, max_length=200, verbose_name="observações")),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="criado em"),
                ),
                (
                    "progress",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="scans",
                        to="stampman.userrewardprogress",
                        verbose_name="progresso",
                    ),
                ),
                (
                    "reward",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="scans",
                        to="stampman.rewarddefinition",
                        verbose_name="recompensa",
                    ),
                ),
            ],
            options={
                "verbose_name": "leitura",
                "verbose_name_plural": "histórico de leituras",
                "db_table": "stampman_scan_history",
                "ordering": ["-created_at", "-id"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("transaction_code", ""), _negated=True),
                        fields=("transaction_code",),
                        name="stampman_one_scan_per_code",
                    ),
                ],
            },
        ),
    ]
