from django.urls import path

from . import views

urlpatterns = [
    path('calculate/', views.calculate_view, name='calculate'),
    path('roas-ladder/', views.roas_ladder_view, name='roas_ladder'),
    path('tiers/upload/', views.tier_upload_view, name='tier_upload'),
    path('skus/upload/', views.sku_upload_view, name='sku_upload'),
]
