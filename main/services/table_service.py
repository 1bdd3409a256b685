from main.models import Table, Order
from stock.services.base_service import ValidationError, NotFoundError, BusinessRuleError


class TableService:

    @staticmethod
    def serialize(table, active_order_id=None):
        return {
            'id': table.id,
            'table_number': table.table_number,
            'capacity': table.capacity,
            'status': table.status,
            'active_order_id': active_order_id,
        }

    @staticmethod
    def get_all_tables(status=None):
        tables = Table.objects.all()
        if status:
            tables = tables.filter(status=status)

        open_orders = dict(
            Order.objects.filter(
                table__isnull=False,
                status__in=[Order.Status.ACTIVE, Order.Status.READY]
            ).values_list('table_id', 'id')
        )

        return {
            'success': True,
            'tables': [TableService.serialize(t, open_orders.get(t.id)) for t in tables]
        }

    @staticmethod
    def _get(table_id):
        try:
            return Table.objects.get(id=table_id)
        except Table.DoesNotExist:
            raise NotFoundError('Table', table_id)

    @staticmethod
    def create_table(table_number, capacity=4):
        try:
            table_number = int(table_number)
        except (TypeError, ValueError):
            raise ValidationError('table_number must be a positive number', 'table_number')
        if table_number <= 0:
            raise ValidationError('table_number must be a positive number', 'table_number')

        if Table.objects.filter(table_number=table_number).exists():
            raise ValidationError(f'Table {table_number} already exists', 'table_number')

        table = Table.objects.create(table_number=table_number, capacity=capacity)
        return {
            'success': True,
            'message': 'Table created successfully',
            'table': TableService.serialize(table)
        }

    @staticmethod
    def update_table_status(table_id, status):
        table = TableService._get(table_id)

        if status not in Table.Status.values:
            raise ValidationError(f'Invalid table status: {status}', 'status')

        has_open_order = table.orders.filter(
            status__in=[Order.Status.ACTIVE, Order.Status.READY]
        ).exists()
        if status == Table.Status.EMPTY and has_open_order:
            raise BusinessRuleError('Table still has an open order', 'table_has_open_order')

        table.status = status
        table.save(update_fields=['status', 'updated_at'])

        return {
            'success': True,
            'message': f'Table status updated to {status}',
            'table': TableService.serialize(table)
        }

    @staticmethod
    def delete_table(table_id):
        table = TableService._get(table_id)
        if table.status == Table.Status.OCCUPIED:
            raise BusinessRuleError('Cannot delete an occupied table', 'table_occupied')
        table.delete()

        return {'success': True, 'message': 'Table deleted successfully'}

    @staticmethod
    def occupy(table):
        if table.status != Table.Status.OCCUPIED:
            table.status = Table.Status.OCCUPIED
            table.save(update_fields=['status', 'updated_at'])

    @staticmethod
    def release(table):
        """Free the table unless another open order still sits at it."""
        if table is None:
            return
        still_open = table.orders.filter(
            status__in=[Order.Status.ACTIVE, Order.Status.READY]
        ).exists()
        if not still_open and table.status != Table.Status.EMPTY:
            table.status = Table.Status.EMPTY
            table.save(update_fields=['status', 'updated_at'])
