from django.urls import path
from . import views

urlpatterns = [
    path('payments/', views.RecordPaymentView.as_view(), name='record_payment'),
]
