"""
URL configuration for escrow_marketplace project.
"""
from django.contrib import admin
from django.urls import path

from core.views import (
    AdminUserActivateView,
    AdminUserDeactivateView,
    AdminUserDetailView,
    AdminUserListView,
    AdminUserStatsView,
    ChangePasswordView,
    HealthCheckView,
    LoginView,
    LogoutView,
    MeView,
    MyRoomsListView,
    ProfileView,
    PublicUserView,
    RefreshTokenView,
    RegisterView,
    RoomByCodeView,
    RoomCreateView,
    RoomDetailView,
    RoomJoinView,
    RoomStatusUpdateView,
    UserSearchView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    path('api/health/', HealthCheckView.as_view(), name='health_check'),

    # Authentication endpoints
    path('api/auth/register/', RegisterView.as_view(), name='user_register'),
    path('api/auth/login/', LoginView.as_view(), name='user_login'),
    path('api/auth/logout/', LogoutView.as_view(), name='user_logout'),
    path('api/auth/refresh-token/', RefreshTokenView.as_view(), name='token_refresh'),
    path('api/auth/me/', MeView.as_view(), name='user_me'),
    path('api/auth/change-password/', ChangePasswordView.as_view(), name='change_password'),

    # Profile and users
    path('api/profile/', ProfileView.as_view(), name='user_profile'),
    path('api/users/search/', UserSearchView.as_view(), name='user_search'),
    path('api/users/<uuid:user_id>/', PublicUserView.as_view(), name='user_public'),

    # Admin user management
    path('api/admin/users/', AdminUserListView.as_view(), name='admin_user_list'),
    path('api/admin/users/stats/', AdminUserStatsView.as_view(), name='admin_user_stats'),
    path('api/admin/users/<uuid:user_id>/', AdminUserDetailView.as_view(), name='admin_user_detail'),
    path('api/admin/users/<uuid:user_id>/activate/', AdminUserActivateView.as_view(), name='admin_user_activate'),
    path('api/admin/users/<uuid:user_id>/deactivate/', AdminUserDeactivateView.as_view(), name='admin_user_deactivate'),

    # Transaction rooms
    path('api/rooms/', RoomCreateView.as_view(), name='room_create'),
    path('api/rooms/list/', MyRoomsListView.as_view(), name='room_list'),
    path('api/rooms/code/<str:room_code>/', RoomByCodeView.as_view(), name='room_by_code'),
    path('api/rooms/code/<str:room_code>/join/', RoomJoinView.as_view(), name='room_join'),
    path('api/rooms/<uuid:room_id>/', RoomDetailView.as_view(), name='room_detail'),
    path('api/rooms/<uuid:room_id>/status/', RoomStatusUpdateView.as_view(), name='room_status_update'),
]
