"""
JSON schemas for configuration validation.
"""

API_SCHEMA = {
    "type": "object",
    "properties": {
        "base_url": {"type": "string", "pattern": "^https?://"},
        "timeout": {"type": "number", "exclusiveMinimum": 0},
    },
    "additionalProperties": False,
}

SESSION_SCHEMA = {
    "type": "object",
    "properties": {
        "storage": {"type": "string", "enum": ["memory", "file"]},
        "storage_path": {"type": "string"},
        "refresh_margin": {"type": "number", "minimum": 0},
    },
    "additionalProperties": False,
}

PUSH_SCHEMA = {
    "type": "object",
    "properties": {
        "enabled": {"type": "boolean"},
        "url": {"type": "string", "pattern": "^wss?://"},
        "max_reconnect_attempts": {"type": "integer", "minimum": 0},
        "reconnect_delay": {"type": "number", "minimum": 0},
        "connect_timeout": {"type": "number", "exclusiveMinimum": 0},
        "heartbeat": {"type": ["number", "null"], "exclusiveMinimum": 0},
    },
    "additionalProperties": False,
}

POLL_SCHEMA = {
    "type": "object",
    "properties": {
        "interval": {"type": "number", "exclusiveMinimum": 0},
    },
    "additionalProperties": False,
}

LOGGING_SCHEMA = {
    "type": "object",
    "properties": {
        "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
        "format": {"type": "string", "enum": ["text", "json"]},
        "log_file": {"type": ["string", "null"]},
        "include_timestamp": {"type": "boolean"},
        "log_transitions": {"type": "boolean"},
        "log_transport_events": {"type": "boolean"},
        "redact_tokens": {"type": "boolean"},
    },
    "additionalProperties": False,
}

CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Explainer Client Configuration",
    "type": "object",
    "properties": {
        "api": API_SCHEMA,
        "session": SESSION_SCHEMA,
        "push": PUSH_SCHEMA,
        "poll": POLL_SCHEMA,
        "logging": LOGGING_SCHEMA,
    },
    "additionalProperties": False,
}
