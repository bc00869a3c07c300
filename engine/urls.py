from django.urls import path
from . import views

urlpatterns = [
    path('audit/', views.AuditHistoryView.as_view(), name='audit_history'),
    path('staff/me/permissions', views.MyPermissionsView.as_view(), name='my_permissions'),
]
