from django.urls import path
from . import views

urlpatterns = [
    path('tables/', views.TableListView.as_view(), name='tables'),
    path('tables/<int:table_id>/', views.TableDetailView.as_view(), name='table_detail'),
    path('tables/<int:table_id>/seat', views.SeatTableView.as_view(), name='seat_table'),
    path('tables/<int:table_id>/unseat', views.UnseatTableView.as_view(), name='unseat_table'),
    path('tables/<int:table_id>/clear', views.ClearTableView.as_view(), name='clear_table'),
    path('tables/<int:table_id>/clean', views.CleanTableView.as_view(), name='clean_table'),
    path('tables/<int:table_id>/block', views.BlockTableView.as_view(), name='block_table'),
    path('tables/<int:table_id>/unblock', views.UnblockTableView.as_view(), name='unblock_table'),
    path('tables/<int:table_id>/reserve', views.ReserveTableView.as_view(), name='reserve_table'),
    path('reservations/', views.ReservationListView.as_view(), name='reservations'),
    path('reservations/<int:reservation_id>/cancel', views.CancelReservationView.as_view(),
         name='cancel_reservation'),
]
