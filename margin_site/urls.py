from django.urls import include, path

urlpatterns = [
    path('margins/', include('margins.urls')),
]
