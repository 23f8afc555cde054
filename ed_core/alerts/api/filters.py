import django_filters

from ed_core.alerts.models import Alert, AlertSeverity


class AlertFilter(django_filters.FilterSet):
    open = django_filters.BooleanFilter(field_name="resolved_at", lookup_expr="isnull")
    unacknowledged = django_filters.BooleanFilter(field_name="acknowledged_at", lookup_expr="isnull")
    type = django_filters.CharFilter(field_name="type")
    severity = django_filters.ChoiceFilter(choices=AlertSeverity.choices)
    encounter_id = django_filters.UUIDFilter(field_name="encounter_id")

    class Meta:
        model = Alert
        fields = ["open", "unacknowledged", "type", "severity", "encounter_id"]
