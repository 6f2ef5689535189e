"""
Django management command to move receipts still storing items as a JSON
blob onto ReceiptItem rows.

Receipts also migrate themselves the first time their items are read; this
command sweeps the rest in one go.
"""

from django.core.management.base import BaseCommand

from splits.repositories import ReceiptRepository


class Command(BaseCommand):
    help = 'Normalize legacy JSON item blobs into ReceiptItem rows'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Only report how many receipts would be migrated',
        )

    def handle(self, *args, **options):
        receipts = ReceiptRepository()
        pending = list(receipts.pending_legacy_receipts().order_by('created_at'))

        if options['dry_run']:
            self.stdout.write(f'{len(pending)} receipt(s) need migrating')
            return

        item_count = 0
        for receipt in pending:
            items = receipts.migrate_legacy_items(receipt)
            item_count += len(items)
            self.stdout.write(f'  {receipt.share_code}: {len(items)} item(s)')

        self.stdout.write(self.style.SUCCESS(
            f'Migrated {len(pending)} receipt(s), {item_count} item(s)'
        ))
