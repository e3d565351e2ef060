from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from rest_framework.authtoken.models import Token

from payments.domain.exchange_rates import refresh_exchange_rates
from payments.domain.policies import calculate_fee
from payments.integrations.references import generate_transaction_reference
from payments.models import Currency, Transaction, Wallet

DEMO_WALLETS = (
    ("11111111-1111-1111-1111-111111111111", Currency.INR, True, Decimal("50000")),
    ("22222222-2222-2222-2222-222222222222", Currency.ETH, False, Decimal("1.5")),
    ("33333333-3333-3333-3333-333333333333", Currency.USDT, False, Decimal("250")),
)


class Command(BaseCommand):
    help = "Seed a demo user, API token, wallets and exchange rates for local testing."

    def handle(self, *args, **options):
        now = timezone.now()

        with transaction.atomic():
            user, token = self._seed_user()
            wallet_summary = self._seed_wallets(user)
            tx_count = self._seed_history(user, wallet_summary["primary"], now=now)
            rates = refresh_exchange_rates(now=now)

        self.stdout.write(self.style.SUCCESS("Demo seed completed."))
        self.stdout.write(
            "Login credentials: demo_user / demo123 "
            "(for local demo only, change in production)."
        )
        self.stdout.write(f"API token: {token.key}")
        self.stdout.write(
            f"Wallets created={wallet_summary['created']} "
            f"updated={wallet_summary['updated']}"
        )
        self.stdout.write(f"Transactions created={tx_count}")
        self.stdout.write(f"Exchange rates refreshed={len(rates)}")
        self.stdout.write(f"Wallet IDs: {', '.join(wallet_summary['wallet_ids'])}")

    def _seed_user(self):
        User = get_user_model()
        user, _ = User.objects.get_or_create(
            **{User.USERNAME_FIELD: "demo_user"},
            defaults={"email": "user@example.com"},
        )
        user.is_active = True
        user.set_password("demo123")
        user.save()
        token, _ = Token.objects.get_or_create(user=user)
        return user, token

    def _seed_wallets(self, user):
        created = 0
        updated = 0
        wallets = []
        for wallet_uuid, currency, is_primary, balance in DEMO_WALLETS:
            wallet, was_created = Wallet.objects.update_or_create(
                uuid=UUID(wallet_uuid),
                defaults={
                    "owner": user,
                    "currency": currency,
                    "is_primary": is_primary,
                    "balance": balance,
                },
            )
            if was_created:
                created += 1
            else:
                updated += 1
            wallets.append(wallet)

        return {
            "created": created,
            "updated": updated,
            "primary": wallets[0],
            "wallet_ids": [str(wallet.uuid) for wallet in wallets],
        }

    def _seed_history(self, user, wallet, *, now):
        """Completed sends spread over the last month so insights have data."""
        if Transaction.objects.filter(user=user).exists():
            return 0

        created = 0
        for days_ago, amount, upi in (
            (1, Decimal("1200"), "grocer@upi"),
            (3, Decimal("450"), "cafe@upi"),
            (9, Decimal("3000"), "landlord@upi"),
            (20, Decimal("800"), "utility@upi"),
        ):
            tx = Transaction.objects.create(
                reference=generate_transaction_reference(),
                user=user,
                from_wallet_id=wallet.uuid,
                transaction_type=Transaction.Type.SEND,
                status=Transaction.Status.COMPLETED,
                amount=amount,
                currency=wallet.currency,
                fee=calculate_fee(amount),
                recipient_upi=upi,
                completed_at=now - timedelta(days=days_ago),
            )
            # created_at is auto_now_add; backdate it for history.
            Transaction.objects.filter(pk=tx.pk).update(
                created_at=now - timedelta(days=days_ago)
            )
            created += 1
        return created
