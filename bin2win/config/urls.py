"""
URL configuration for the bin2win project.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Bin2Win Administration"
admin.site.site_title = "Bin2Win Admin Portal"
admin.site.index_title = "Simhastha Clean & Green"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('bin2win.core.urls')),
    path('api/v1/', include('bin2win.booths.urls')),
    path('api/v1/', include('bin2win.waste.urls')),
    path('api/v1/', include('bin2win.credits.urls')),
    path('api/v1/', include('bin2win.rewards.urls')),
    path('api/v1/', include('bin2win.reports.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
