"""
URL configuration for the business operations API.
"""
from django.contrib import admin
from django.db import connection
from django.db.utils import DatabaseError
from django.http import JsonResponse
from django.urls import path, include


def health_check(request):
    """Health check endpoint for container orchestration."""
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
        database = 'ok'
    except DatabaseError:
        database = 'unavailable'
    status_code = 200 if database == 'ok' else 503
    return JsonResponse(
        {'status': 'healthy' if status_code == 200 else 'degraded', 'service': 'bizops-api', 'database': database},
        status=status_code
    )


urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', health_check, name='health-check'),
    path('api/', include('accounts.urls')),
    path('api/', include('inventory.urls')),
    path('api/', include('purchasing.urls')),
    path('api/', include('billing.urls')),
]
