"""Serializers for user-related API endpoints."""

from __future__ import annotations

from django.contrib.auth import get_user_model  # type: ignore
from rest_framework import serializers  # type: ignore

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """Public profile of a user as returned by the API."""

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "full_name",
            "phone",
            "role",
            "street",
            "ward",
            "district",
            "city",
            "created_at",
        ]
        read_only_fields = ["id", "role", "created_at"]


class UserShortSerializer(serializers.ModelSerializer):
    """Party of a booking or payment: enough to contact them."""

    class Meta:
        model = User
        fields = ["id", "full_name", "email", "phone"]
