from django.urls import path

from . import views

app_name = "pricing"

urlpatterns = [
    path("rules/", views.PriceRuleListView.as_view(), name="rule-list"),
    path("rules/<uuid:rule_id>/", views.PriceRuleDetailView.as_view(), name="rule-detail"),
    path("calculate/", views.PriceCalculateView.as_view(), name="calculate"),
]
