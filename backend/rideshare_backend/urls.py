from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check),

    # Authentication and profiles (register, login, refresh, logout, me, users/<id>)
    path('api/auth/', include('accounts.urls')),

    # Ride lifecycle: browse, post, join, complete, rate
    path('api/rides/', include('rides.urls')),

    # Chat rooms and message history; live delivery is on ws/chat/
    path('api/chats/', include('chats.urls')),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
