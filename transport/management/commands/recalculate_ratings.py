# Rebuild denormalized reputation (avg_rating, review_count) from reviews
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db.models import Avg, Count

from transport.models import Review, User


class Command(BaseCommand):
    help = 'Recalculates user ratings and review counts from submitted reviews.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report differences without saving changes to the database.',
        )
        parser.add_argument(
            '--role',
            choices=[User.ROLE_OWNER, User.ROLE_TRANSPORTER],
            help='Only recalculate users with this role.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=1000,
            help='Batch size for bulk processing.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        if batch_size < 1:
            raise CommandError('--batch-size must be a positive integer.')

        users = User.objects.all()
        if options['role']:
            users = users.filter(role=options['role'])

        changed = self.recalculate_users(users, dry_run, batch_size)

        if dry_run:
            self.stdout.write(self.style.SUCCESS(f'Dry run completed. {changed} user(s) would change. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS(f'Recalculation completed successfully. {changed} user(s) updated.'))

    def recalculate_users(self, users, dry_run, batch_size):
        self.stdout.write('Recalculating user ratings...')
        stats_by_user = {
            row['reviewee_id']: row
            for row in Review.objects.values('reviewee_id').annotate(avg=Avg('rating'), total=Count('id'))
        }

        updates = []
        changed = 0
        count = 0

        for user in users.order_by('pk').iterator(chunk_size=batch_size):
            stats = stats_by_user.get(user.pk)
            if stats is None:
                new_avg, new_total = Decimal('0.00'), 0
            else:
                new_avg = Decimal(str(stats['avg'])).quantize(Decimal('0.01'))
                new_total = stats['total']

            if user.avg_rating != new_avg or user.review_count != new_total:
                changed += 1
                if dry_run:
                    self.stdout.write(
                        f'  [DRY-RUN] User {user.id} ({user.role}): Rating {user.avg_rating} -> {new_avg}, '
                        f'Count {user.review_count} -> {new_total}'
                    )
                user.avg_rating = new_avg
                user.review_count = new_total
                updates.append(user)

            if len(updates) >= batch_size:
                if not dry_run:
                    User.objects.bulk_update(updates, ['avg_rating', 'review_count'])
                updates = []

            count += 1
            if count % 100 == 0:
                self.stdout.write(f'Processed {count} users...')

        if updates and not dry_run:
            User.objects.bulk_update(updates, ['avg_rating', 'review_count'])

        self.stdout.write(f'Processed {count} users total.')
        return changed
