from .time import coerce_datetime, format_expires_in, from_millis, isoformat_utc, now_millis, to_millis

__all__ = ["now_millis", "to_millis", "from_millis", "isoformat_utc", "coerce_datetime", "format_expires_in"]
