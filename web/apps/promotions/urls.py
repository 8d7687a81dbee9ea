from django.urls import path

from .views import PromoCodeCollectionView, PromoCodeDetailView, PromoCodeDisableView

app_name = "promotions"

urlpatterns = [
    path("", PromoCodeCollectionView.as_view(), name="promo-codes-collection"),
    path("<uuid:pid>/", PromoCodeDetailView.as_view(), name="promo-codes-detail"),
    path("<uuid:pid>/disable/", PromoCodeDisableView.as_view(), name="promo-codes-disable"),
]
