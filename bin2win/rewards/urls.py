from django.urls import path
from .views import (
    reward_list_create, reward_detail, reward_categories, reward_popular, reward_featured, reward_redeem,
    wishlist, wishlist_item,
    redemption_list, redemption_detail, redemption_status, redemption_cancel, redemption_rate
)

urlpatterns = [
    path('rewards/', reward_list_create, name='reward-list-create'),
    path('rewards/categories/', reward_categories, name='reward-categories'),
    path('rewards/popular/', reward_popular, name='reward-popular'),
    path('rewards/featured/', reward_featured, name='reward-featured'),
    path('rewards/wishlist/', wishlist, name='reward-wishlist'),
    path('rewards/<int:pk>/', reward_detail, name='reward-detail'),
    path('rewards/<int:pk>/redeem/', reward_redeem, name='reward-redeem'),
    path('rewards/<int:pk>/wishlist/', wishlist_item, name='reward-wishlist-item'),
    path('redemptions/', redemption_list, name='redemption-list'),
    path('redemptions/<int:pk>/', redemption_detail, name='redemption-detail'),
    path('redemptions/<int:pk>/status/', redemption_status, name='redemption-status'),
    path('redemptions/<int:pk>/cancel/', redemption_cancel, name='redemption-cancel'),
    path('redemptions/<int:pk>/rate/', redemption_rate, name='redemption-rate'),
]
