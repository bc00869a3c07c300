from django.urls import path
from . import views

urlpatterns = [
    path('kitchen/send', views.SendToKitchenView.as_view(), name='send_to_kitchen'),
    path('kitchen/queue', views.KitchenQueueView.as_view(), name='kitchen_queue'),
    path('kitchen/items/<int:item_id>/status', views.ItemStatusView.as_view(), name='item_status'),
    path('kitchen/items/<int:item_id>/reopen', views.ReopenItemView.as_view(), name='reopen_item'),
    path('kitchen/orders/<int:order_id>/complete', views.CompleteOrderView.as_view(), name='complete_order'),
    path('orders/<int:order_id>/', views.OrderDetailView.as_view(), name='order_detail'),
    path('orders/<int:order_id>/bill', views.GenerateBillView.as_view(), name='generate_bill'),
    path('orders/<int:order_id>/close', views.CloseOrderView.as_view(), name='close_order'),
    path('orders/<int:order_id>/void', views.VoidOrderView.as_view(), name='void_order'),
    path('orders/<int:order_id>/discount', views.OrderDiscountView.as_view(), name='order_discount'),
    path('orders/<int:order_id>/items/<int:item_id>/void', views.VoidItemView.as_view(), name='void_item'),
    path('orders/<int:order_id>/items/<int:item_id>/discount', views.ItemDiscountView.as_view(),
         name='item_discount'),
    path('orders/<int:order_id>/items/<int:item_id>/comp', views.CompItemView.as_view(), name='comp_item'),
    path('reports/daily', views.DailyReportView.as_view(), name='daily_report'),
    path('products/', views.ProductListView.as_view(), name='products'),
    path('config/void-reasons', views.VoidReasonListView.as_view(), name='void_reasons'),
    path('config/discount-types', views.DiscountTypeListView.as_view(), name='discount_types'),
]
