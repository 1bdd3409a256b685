from django.urls import path
from main.views import category_views, product_views, table_views, order_views


app_name = 'main'


urlpatterns = [
    path('categories', category_views.categories, name='categories'),
    path('categories/<int:category_id>', category_views.category_detail, name='category_detail'),

    path('products', product_views.products, name='products'),
    path('products/<int:product_id>', product_views.product_detail, name='product_detail'),

    path('tables', table_views.tables, name='tables'),
    path('tables/<int:table_id>/status', table_views.update_table_status, name='update_table_status'),
    path('tables/<int:table_id>/delete', table_views.delete_table, name='delete_table'),

    path('orders', order_views.orders, name='orders'),
    path('orders/stats', order_views.get_stats, name='order_stats'),
    path('orders/<int:order_id>', order_views.get_order, name='get_order'),
    path('orders/<int:order_id>/items', order_views.add_item, name='add_item'),
    path('orders/<int:order_id>/items/<int:item_id>', order_views.order_item, name='order_item'),
    path('orders/<int:order_id>/ready', order_views.mark_ready, name='mark_ready'),
    path('orders/<int:order_id>/complete', order_views.complete_order, name='complete_order'),
    path('orders/<int:order_id>/cancel', order_views.cancel_order, name='cancel_order'),
]
