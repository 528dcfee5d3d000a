from datetime import timezone
from marshmallow import fields


class UTCDateTime(fields.DateTime):
    """ISO-8601 datetime loaded as naive UTC, the form every DateTime column stores."""

    def _deserialize(self, value, attr, data, **kwargs):
        dt = super()._deserialize(value, attr, data, **kwargs)
        if dt.tzinfo is not None:
            dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
        return dt
