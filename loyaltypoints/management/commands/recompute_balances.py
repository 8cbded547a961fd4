from django.core.management.base import BaseCommand, CommandError

from core.models import User
from loyaltypoints.services import ledger_balance, recompute_balance


class Command(BaseCommand):
    help = "Rebuilds cached student point balances from the points ledger."

    def add_arguments(self, parser):
        parser.add_argument("--user", type=int, help="Only recompute the balance of this user id.")
        parser.add_argument("--dry-run", action="store_true", help="Report drift without writing.")

    def handle(self, *args, **opts):
        if opts["user"]:
            if not User.objects.filter(pk=opts["user"]).exists():
                raise CommandError(f"User {opts['user']} does not exist.")
            user_ids = [opts["user"]]
        else:
            user_ids = list(User.objects.students().values_list('pk', flat=True))

        drifted = 0
        for user_id in user_ids:
            if opts["dry_run"]:
                user = User.objects.get(pk=user_id)
                previous, current = user.points, ledger_balance(user)
            else:
                _, previous, current = recompute_balance(user_id)

            if previous != current:
                drifted += 1
                self.stdout.write(f"User {user_id}: {previous} -> {current}")

        verb = "would change" if opts["dry_run"] else "changed"
        self.stdout.write(self.style.SUCCESS(
            f"Checked {len(user_ids)} balances, {drifted} {verb}."
        ))
