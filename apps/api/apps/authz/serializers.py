"""
Authz serializers for user administration.
"""
from rest_framework import serializers
from apps.authz.models import User, Role, UserRole, RoleChoices


class UserSerializer(serializers.ModelSerializer):
    """Read serializer with the flattened role list."""
    roles = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'full_name', 'mobile_no',
            'company', 'center', 'is_active', 'roles', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_roles(self, obj):
        return sorted(obj.user_roles.values_list('role__name', flat=True))


class UserWriteSerializer(serializers.ModelSerializer):
    """Create/update serializer (Admin only)."""
    password = serializers.CharField(write_only=True, required=False, min_length=8)
    roles = serializers.ListField(
        child=serializers.ChoiceField(choices=RoleChoices.choices),
        write_only=True,
        required=False
    )

    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'mobile_no',
            'company', 'center', 'is_active', 'password', 'roles'
        ]
        read_only_fields = ['id']

    def validate(self, attrs):
        company = attrs.get('company', getattr(self.instance, 'company', None))
        center = attrs.get('center', getattr(self.instance, 'center', None))
        if center and company and center.company_id != company.id:
            raise serializers.ValidationError({'center': 'Center does not belong to the selected company.'})
        if center and not company:
            attrs['company'] = center.company
        return attrs

    def _set_roles(self, user, role_names):
        UserRole.objects.filter(user=user).exclude(role__name__in=role_names).delete()
        for name in role_names:
            role, _ = Role.objects.get_or_create(name=name)
            UserRole.objects.get_or_create(user=user, role=role)

    def create(self, validated_data):
        roles = validated_data.pop('roles', [])
        password = validated_data.pop('password', None)
        user = User.objects.create_user(password=password, **validated_data)
        self._set_roles(user, roles)
        return user

    def update(self, instance, validated_data):
        roles = validated_data.pop('roles', None)
        password = validated_data.pop('password', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        if roles is not None:
            self._set_roles(instance, roles)
        return instance

    def to_representation(self, instance):
        return UserSerializer(instance, context=self.context).data
