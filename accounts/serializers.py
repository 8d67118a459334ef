from rest_framework import serializers

from .models import User


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'role', 'department']
        read_only_fields = fields


class UserMinimalSerializer(serializers.ModelSerializer):
    """Nested representation for created_by fields."""
    class Meta:
        model = User
        fields = ['id', 'username', 'email']
