from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import Q, Sum

from bin2win.credits.models import CreditTransaction

User = get_user_model()


class Command(BaseCommand):
    help = 'Recomputes user green credit balances and lifetime totals from the credit ledger'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Perform a dry run without saving changes',
        )
        parser.add_argument(
            '--user',
            type=int,
            help='Only repair the user with this ID',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE: No changes will be saved."))

        users = User.objects.all().order_by('id')
        if options.get('user'):
            users = users.filter(pk=options['user'])
        self.stdout.write(f"Starting balance repair for {users.count()} users...")

        repaired = 0
        broken_chains = 0

        with transaction.atomic():
            for user in users.select_for_update():
                entries = CreditTransaction.objects.filter(user=user, status='completed')

                # Each row should pick up where the previous one left off
                previous_after = 0
                for entry in entries.order_by('created_at', 'id'):
                    if entry.balance_before != previous_after:
                        broken_chains += 1
                        self.stdout.write(self.style.NOTICE(
                            f"  - {user.username}: {entry.reference_number} starts at {entry.balance_before}, "
                            f"expected {previous_after}"
                        ))
                    previous_after = entry.balance_after

                totals = entries.aggregate(
                    balance=Sum('points'),
                    earned=Sum('points', filter=Q(transaction_type__in=['earn', 'bonus'])),
                    redeemed=Sum('points', filter=Q(transaction_type='redeem')),
                    refunded=Sum('points', filter=Q(transaction_type='refund', redemption__isnull=False)),
                )
                balance = max(0, totals['balance'] or 0)
                earned = totals['earned'] or 0
                redeemed = max(0, abs(totals['redeemed'] or 0) - (totals['refunded'] or 0))

                changes = {}
                if user.green_credits != balance:
                    changes['green_credits'] = (user.green_credits, balance)
                if user.total_points_earned != earned:
                    changes['total_points_earned'] = (user.total_points_earned, earned)
                if user.total_points_redeemed != redeemed:
                    changes['total_points_redeemed'] = (user.total_points_redeemed, redeemed)

                if not changes:
                    continue

                repaired += 1
                self.stdout.write(f"\nUser: {user.username} (ID: {user.id})")
                for field, (old, new) in changes.items():
                    self.stdout.write(self.style.SUCCESS(f"  - {field}: {old} -> {new}"))
                    setattr(user, field, new)
                if not dry_run:
                    user.save(update_fields=list(changes) + ['updated_at'])

            self.stdout.write(f"\n{repaired} users need repair, {broken_chains} ledger rows out of sequence")
            if dry_run:
                self.stdout.write(self.style.WARNING("Dry run complete. Rolling back changes."))
                transaction.set_rollback(True)
            else:
                self.stdout.write(self.style.SUCCESS("Balance repair complete and committed."))
