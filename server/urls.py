"""URL configuration.

Only the admin is routed here; the library is consumed as a Python API.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]
