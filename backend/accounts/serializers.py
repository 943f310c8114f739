import re

from django.conf import settings
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from .models import User


def validate_university_email(value, instance=None):
    """Lower-case the address, check the allowed domains and that nobody else uses it."""
    value = value.lower()
    allowed = getattr(settings, "ALLOWED_EMAIL_DOMAINS", [])
    if allowed and value.rsplit("@", 1)[-1] not in allowed:
        raise serializers.ValidationError("Please register with your university email address")

    taken = User.objects.filter(email__iexact=value)
    if instance is not None:
        taken = taken.exclude(pk=instance.pk)
    if taken.exists():
        raise serializers.ValidationError("Email already exists")
    return value


def username_from_email(email):
    """Free username derived from the mailbox name: jane.doe, jane.doe2, ..."""
    base = re.sub(r"[^\w.@+-]", "", email.split("@", 1)[0])[:140] or "user"
    candidate, suffix = base, 1
    while User.objects.filter(username__iexact=candidate).exists():
        suffix += 1
        candidate = f"{base}{suffix}"
    return candidate


class UserSerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)
    profile_picture_url = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "name",
            "display_name",
            "phone_number",
            "completed_rides",
            "profile_picture",
            "profile_picture_url",
        ]
        read_only_fields = ["id", "username", "completed_rides", "profile_picture_url"]
        extra_kwargs = {
            "profile_picture": {"write_only": True, "required": False}
        }

    def validate_email(self, value):
        return validate_university_email(value, instance=self.instance)

    def get_profile_picture_url(self, obj):
        """Absolute avatar URL when a request is available, storage URL otherwise."""
        if obj.profile_picture:
            request = self.context.get("request")
            if request:
                return request.build_absolute_uri(obj.profile_picture.url)
            return obj.profile_picture.url
        return None


class PublicUserSerializer(serializers.ModelSerializer):
    """What other users may see: no email or phone number."""
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "display_name", "completed_rides"]


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = User.objects.filter(email__iexact=data["email"]).first()
        if user is None or not user.is_active or not user.check_password(data["password"]):
            raise serializers.ValidationError("Invalid email or password")
        return user


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'password', 'email', 'name', 'phone_number']
        extra_kwargs = {
            'username': {'required': False},
            'name': {'required': False},
            'phone_number': {'required': False},
        }

    def validate_email(self, value):
        return validate_university_email(value)

    def validate_password(self, value):
        validate_password(value)
        return value

    def create(self, validated_data):
        return User.objects.create_user(
            username=validated_data.get('username') or username_from_email(validated_data['email']),
            email=validated_data['email'],
            password=validated_data['password'],
            name=validated_data.get('name', ''),
            phone_number=validated_data.get('phone_number', ''),
        )


class PasswordChangeSerializer(serializers.Serializer):
    new_password = serializers.CharField(write_only=True)
    confirm_password = serializers.CharField(write_only=True)

    def validate(self, data):
        if data["new_password"] != data["confirm_password"]:
            raise serializers.ValidationError({"confirm_password": "Passwords do not match"})
        validate_password(data["new_password"], user=self.context["request"].user)
        return data

    def save(self):
        user = self.context["request"].user
        user.set_password(self.validated_data["new_password"])
        user.save(update_fields=["password"])
        return user
