import logging
from decimal import Decimal

from django.conf import settings
from django.core.cache import cache
from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import Sum, Count
from django.utils import timezone

from main.models import Order, OrderItem, Product, Table
from main.services.table_service import TableService
from stock.models import StockSettings
from stock.services import (
    StockAvailabilityService, OrderStockService, OrderStatusHandler,
    ValidationError, NotFoundError, BusinessRuleError, InsufficientStockError,
    parse_decimal,
)

logger = logging.getLogger(__name__)

ORDER_STATS_CACHE_KEY = 'main:order_stats'


class OrderService:

    @staticmethod
    def _serialize_item(item):
        return {
            'id': item.id,
            'product_id': item.product_id,
            'product_name': item.product.name,
            'quantity': item.quantity,
            'unit_price': str(item.unit_price),
            'total_price': str(item.total_price),
            'status': item.status,
            'notes': item.notes,
        }

    @staticmethod
    def serialize(order, include_items=True):
        data = {
            'id': order.id,
            'uuid': str(order.uuid),
            'table': order.table.table_number if order.table else None,
            'waiter_id': order.waiter_id,
            'status': order.status,
            'total_amount': str(order.total_amount),
            'payment_method': order.payment_method,
            'received_amount': str(order.received_amount) if order.received_amount is not None else None,
            'change_amount': str(order.change_amount) if order.change_amount is not None else None,
            'notes': order.notes,
            'created_at': order.created_at.isoformat(),
            'ready_at': order.ready_at.isoformat() if order.ready_at else None,
            'completed_at': order.completed_at.isoformat() if order.completed_at else None,
            'cancelled_at': order.cancelled_at.isoformat() if order.cancelled_at else None,
        }
        if include_items:
            data['items'] = [OrderService._serialize_item(item) for item in order.items.all()]
        return data

    @staticmethod
    def get_all_orders(page=1, per_page=20, status=None, table_id=None, order_by='-created_at'):
        queryset = Order.objects.select_related('table').prefetch_related('items__product')

        if status:
            queryset = queryset.filter(status=status)

        if table_id:
            queryset = queryset.filter(table_id=table_id)

        queryset = queryset.order_by(order_by)

        paginator = Paginator(queryset, per_page)
        page_obj = paginator.get_page(page)

        return {
            'orders': [OrderService.serialize(order) for order in page_obj.object_list],
            'pagination': {
                'current_page': page_obj.number,
                'total_pages': paginator.num_pages,
                'total_orders': paginator.count,
                'per_page': per_page,
                'has_next': page_obj.has_next(),
                'has_previous': page_obj.has_previous()
            }
        }

    @staticmethod
    def get_order_by_id(order_id):
        try:
            order = Order.objects.select_related('table').prefetch_related('items__product').get(id=order_id)
        except Order.DoesNotExist:
            raise NotFoundError('Order', order_id)

        data = OrderService.serialize(order)
        data['stock_deducted'] = OrderStockService.has_deducted(order.id)
        data['stock_restored'] = OrderStockService.is_restored(order.id)
        return {'success': True, 'order': data}

    @staticmethod
    def _lock_order(order_id):
        """Fetch and row-lock an order. Must run inside a transaction."""
        try:
            return Order.objects.select_for_update().get(id=order_id)
        except Order.DoesNotExist:
            raise NotFoundError('Order', order_id)

    @staticmethod
    def _ensure_open(order):
        if order.is_terminal:
            raise BusinessRuleError(
                f'Order #{order.id} is {order.status} and can no longer change',
                'order_terminal'
            )

    @staticmethod
    def _ensure_not_deducted(order):
        # A deducted line can only be given back through cancellation
        if OrderStockService.has_deducted(order.id):
            raise BusinessRuleError(
                'Stock was already deducted for this order; cancel it instead',
                'stock_already_deducted'
            )

    @staticmethod
    def _clean_quantity(quantity, field='quantity'):
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError(f'{field} must be a whole number', field)
        if quantity <= 0:
            raise ValidationError(f'{field} must be greater than 0', field)
        return quantity

    @staticmethod
    def _clean_items(items):
        if not isinstance(items, list) or not items:
            raise ValidationError('Order must contain at least one item', 'items')

        product_ids = set()
        lines = []
        for idx, item in enumerate(items):
            if not isinstance(item, dict):
                raise ValidationError(f'Item {idx} must be an object', f'items[{idx}]')
            product_id = item.get('product_id')
            if product_id is None or product_id == '':
                raise ValidationError(f'Item {idx} is missing product_id', f'items[{idx}].product_id')
            try:
                product_id = int(product_id)
            except (TypeError, ValueError):
                raise ValidationError(f'Item {idx} product_id must be a number', f'items[{idx}].product_id')
            lines.append({
                'product_id': product_id,
                'quantity': OrderService._clean_quantity(item.get('quantity'), f'items[{idx}].quantity'),
                'notes': item.get('notes'),
            })
            product_ids.add(product_id)

        products = Product.objects.in_bulk(product_ids)
        for line in lines:
            product = products.get(line['product_id'])
            if product is None:
                raise NotFoundError('Product', line['product_id'])
            if not product.is_available:
                raise BusinessRuleError(f'{product.name} is not available', 'product_unavailable')
            line['product'] = product

        return lines

    @staticmethod
    def _precheck(lines, order_id=None):
        if not StockSettings.load().stock_enabled:
            return
        availability = StockAvailabilityService.check_stock_availability(lines)
        if not availability['can_fulfill']:
            logger.warning(
                'Order %s refused: insufficient stock for %s',
                order_id or '(new)',
                ', '.join(i['stock_item_name'] for i in availability['insufficient_items'])
            )
            raise InsufficientStockError(availability['insufficient_items'])

    @staticmethod
    def create_order(items, table_id=None, waiter_id=None, notes=None):
        """
        Submit a new order. Stock availability is checked before anything is
        written; if stock is deducted on submission that happens in the same
        transaction, so a shortfall leaves no order behind.
        """
        lines = OrderService._clean_items(items)
        OrderService._precheck(lines)

        table = None
        if table_id:
            try:
                table = Table.objects.get(id=table_id)
            except Table.DoesNotExist:
                raise NotFoundError('Table', table_id)

        with transaction.atomic():
            order = Order.objects.create(table=table, waiter_id=waiter_id, notes=notes)
            for line in lines:
                OrderItem.objects.create(
                    order=order,
                    product=line['product'],
                    quantity=line['quantity'],
                    unit_price=line['product'].price,
                    notes=line['notes']
                )
            order.recalculate_total()
            order.save(update_fields=['total_amount'])

            if table is not None:
                TableService.occupy(table)

            OrderStatusHandler.on_status_change(
                order.id, None, Order.Status.ACTIVE, list(order.items.all()), waiter_id
            )

        cache.delete(ORDER_STATS_CACHE_KEY)
        logger.info('Order %s created with %d line(s), total %s', order.id, len(lines), order.total_amount)

        return {
            'success': True,
            'message': 'Order created successfully',
            'order': OrderService.serialize(order)
        }

    @staticmethod
    def add_item(order_id, product_id, quantity, notes=None, actor_id=None):
        line = OrderService._clean_items([{'product_id': product_id, 'quantity': quantity}])[0]
        quantity = line['quantity']

        with transaction.atomic():
            order = OrderService._lock_order(order_id)
            OrderService._ensure_open(order)

            item = OrderItem.objects.create(
                order=order,
                product=line['product'],
                quantity=quantity,
                unit_price=line['product'].price,
                notes=notes
            )
            order.recalculate_total()
            order.save(update_fields=['total_amount', 'updated_at'])

            if OrderStatusHandler.should_deduct_new_lines(order.status):
                OrderStockService.deduct_stock_for_order([item], order.id, actor_id)

        cache.delete(ORDER_STATS_CACHE_KEY)

        return {
            'success': True,
            'message': 'Item added to order successfully',
            'item': OrderService._serialize_item(item)
        }

    @staticmethod
    def update_item(order_id, item_id, quantity):
        quantity = OrderService._clean_quantity(quantity)

        with transaction.atomic():
            order = OrderService._lock_order(order_id)
            OrderService._ensure_open(order)
            OrderService._ensure_not_deducted(order)

            try:
                item = order.items.get(id=item_id)
            except OrderItem.DoesNotExist:
                raise NotFoundError('Order item', item_id)

            item.quantity = quantity
            item.save()
            order.recalculate_total()
            order.save(update_fields=['total_amount', 'updated_at'])

        cache.delete(ORDER_STATS_CACHE_KEY)

        return {
            'success': True,
            'message': 'Order item updated successfully',
            'item': OrderService._serialize_item(item)
        }

    @staticmethod
    def remove_item(order_id, item_id):
        with transaction.atomic():
            order = OrderService._lock_order(order_id)
            OrderService._ensure_open(order)
            OrderService._ensure_not_deducted(order)

            try:
                item = order.items.get(id=item_id)
            except OrderItem.DoesNotExist:
                raise NotFoundError('Order item', item_id)

            if order.items.count() == 1:
                raise BusinessRuleError('Cannot remove the last item; cancel the order instead', 'last_item')

            item.delete()
            order.recalculate_total()
            order.save(update_fields=['total_amount', 'updated_at'])

        cache.delete(ORDER_STATS_CACHE_KEY)

        return {'success': True, 'message': 'Item removed from order successfully'}

    @staticmethod
    def mark_ready(order_id, actor_id=None):
        """Kitchen marks the order as ready."""
        with transaction.atomic():
            order = OrderService._lock_order(order_id)
            if order.status != Order.Status.ACTIVE:
                raise BusinessRuleError(
                    f'Only active orders can be marked ready (order is {order.status})',
                    'invalid_transition'
                )

            old_status = order.status
            order.status = Order.Status.READY
            order.ready_at = timezone.now()
            order.save(update_fields=['status', 'ready_at', 'updated_at'])

            OrderStatusHandler.on_status_change(
                order.id, old_status, order.status, list(order.items.all()), actor_id
            )

        cache.delete(ORDER_STATS_CACHE_KEY)

        return {'success': True, 'message': 'Order marked as ready'}

    @staticmethod
    def complete_order(order_id, payment_method, received_amount=None, actor_id=None):
        """
        Take payment and close the order.

        Cash needs a received amount covering the total and records the
        change; card is taken as the exact total.
        """
        if payment_method not in (Order.PaymentMethod.CASH, Order.PaymentMethod.CARD):
            raise ValidationError('payment_method must be cash or card', 'payment_method')

        with transaction.atomic():
            order = OrderService._lock_order(order_id)
            OrderService._ensure_open(order)

            if payment_method == Order.PaymentMethod.CASH:
                if received_amount is None:
                    raise ValidationError('received_amount is required for cash payments', 'received_amount')
                received = parse_decimal(received_amount, 'received_amount')
                if received < order.total_amount:
                    raise ValidationError(
                        f'Received amount {received} is less than the total {order.total_amount}',
                        'received_amount'
                    )
            else:
                received = order.total_amount

            old_status = order.status
            order.status = Order.Status.COMPLETED
            order.payment_method = payment_method
            order.received_amount = received
            order.change_amount = received - order.total_amount
            order.completed_at = timezone.now()
            order.save()

            OrderStatusHandler.on_status_change(
                order.id, old_status, order.status, list(order.items.all()), actor_id
            )
            TableService.release(order.table)

        cache.delete(ORDER_STATS_CACHE_KEY)
        logger.info('Order %s completed (%s, total %s)', order.id, payment_method, order.total_amount)

        return {
            'success': True,
            'message': 'Order completed',
            'order': OrderService.serialize(order, include_items=False)
        }

    @staticmethod
    def cancel_order(order_id, actor_id=None):
        """Cancel an open order and give back any stock it consumed."""
        with transaction.atomic():
            order = OrderService._lock_order(order_id)
            OrderService._ensure_open(order)

            old_status = order.status
            order.status = Order.Status.CANCELLED
            order.cancelled_at = timezone.now()
            order.save(update_fields=['status', 'cancelled_at', 'updated_at'])

            result = OrderStatusHandler.on_status_change(
                order.id, old_status, order.status, list(order.items.all()), actor_id
            )
            TableService.release(order.table)

        cache.delete(ORDER_STATS_CACHE_KEY)
        logger.info('Order %s cancelled', order.id)

        return {
            'success': True,
            'message': 'Order cancelled',
            'stock': result['actions'][0]['result'] if result['actions'] else None
        }

    @staticmethod
    def get_order_stats():
        stats = cache.get(ORDER_STATS_CACHE_KEY)
        if stats is not None:
            return {'success': True, 'stats': stats}

        by_status = dict(
            Order.objects.values_list('status').annotate(count=Count('id')).order_by()
        )
        revenue = Order.objects.filter(status=Order.Status.COMPLETED).aggregate(
            total=Sum('total_amount')
        )['total'] or Decimal('0.00')

        stats = {
            'total_orders': sum(by_status.values()),
            'active_orders': by_status.get(Order.Status.ACTIVE, 0),
            'ready_orders': by_status.get(Order.Status.READY, 0),
            'completed_orders': by_status.get(Order.Status.COMPLETED, 0),
            'cancelled_orders': by_status.get(Order.Status.CANCELLED, 0),
            'total_revenue': str(revenue)
        }
        cache.set(ORDER_STATS_CACHE_KEY, stats, settings.ORDER_STATS_CACHE_TIMEOUT)

        return {'success': True, 'stats': stats}
