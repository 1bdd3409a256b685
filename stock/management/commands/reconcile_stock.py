import logging

from django.core.management.base import BaseCommand, CommandError

from stock.services.ledger_service import StockLedgerService
from stock.services.alert_service import StockAlertService

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Check every stock item against the sum of its ledger movements'

    def add_arguments(self, parser):
        parser.add_argument('--item', type=int, help='Only check this stock item id')
        parser.add_argument('--refresh-alerts', action='store_true',
                            help='Re-derive stock alerts after the check')

    def handle(self, *args, **options):
        report = StockLedgerService.reconcile(options.get('item'))

        if options['refresh_alerts']:
            refreshed = StockAlertService.refresh_all()
            self.stdout.write(f"Alerts refreshed for {refreshed['checked_items']} item(s).")

        if report['is_consistent']:
            self.stdout.write(self.style.SUCCESS(f"Checked {report['checked']} item(s): ledger consistent."))
            return

        for row in report['mismatches']:
            self.stdout.write(self.style.WARNING(
                f"{row['stock_item_name']} (#{row['stock_item_id']}): "
                f"stock {row['current_stock']}, ledger {row['ledger_total']}, "
                f"difference {row['difference']}"
            ))

        raise CommandError(f"{len(report['mismatches'])} stock item(s) out of balance")
