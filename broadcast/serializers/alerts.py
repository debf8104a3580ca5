from rest_framework import serializers

from broadcast.codes import SEVERITIES


class BroadcastSerializer(serializers.Serializer):
    codeType = serializers.CharField(max_length=32)
    department = serializers.CharField(max_length=255)
    location = serializers.CharField(max_length=255)
    message = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    severity = serializers.ChoiceField(choices=list(SEVERITIES), required=False)
    broadcastTo = serializers.ListField(
        child=serializers.CharField(max_length=64), required=False, allow_empty=True,
    )


class AlertIdSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
