from rest_framework import serializers

from broadcast.models import Display


class HeartbeatSerializer(serializers.Serializer):
    displayId = serializers.CharField(max_length=50)
    status = serializers.ChoiceField(choices=Display.STATUS_CHOICES, required=False)
    # Parsed by the heartbeat service so a bad value maps to the same error.
    timestamp = serializers.CharField(max_length=64, required=False, allow_blank=True)


class DisplayCreateSerializer(serializers.Serializer):
    location = serializers.CharField(max_length=255)
    content = serializers.ChoiceField(choices=Display.CONTENT_CHOICES, required=False)
    status = serializers.ChoiceField(choices=Display.STATUS_CHOICES, required=False)
    zone = serializers.CharField(max_length=64, required=False, allow_blank=True)
    config = serializers.DictField(required=False)


class DisplayStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Display.STATUS_CHOICES)


class DisplayUpdateSerializer(serializers.Serializer):
    location = serializers.CharField(max_length=255, required=False)
    content = serializers.ChoiceField(choices=Display.CONTENT_CHOICES, required=False)
    status = serializers.ChoiceField(choices=Display.STATUS_CHOICES, required=False)
    zone = serializers.CharField(max_length=64, required=False, allow_blank=True)
    config = serializers.DictField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('nothing to update')
        return attrs
