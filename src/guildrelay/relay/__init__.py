"""Application relay core."""

from guildrelay.relay.errors import (
    DestinationNotFoundError,
    PublishError,
    RelayError,
    RelayTransportError,
    ThreadCreateError,
)
from guildrelay.relay.layout import (
    FORM_LAYOUT_PRESETS,
    FormLayout,
    resolve_form_layout,
    truncate_thread_name,
)
from guildrelay.relay.pipeline import (
    NOTICE_TITLE,
    ApplicationRelay,
    EmbedData,
    InboundMessage,
    RelayGateway,
    RelayOutcome,
)
from guildrelay.relay.retry import call_with_retry

__all__ = [
    "ApplicationRelay",
    "DestinationNotFoundError",
    "EmbedData",
    "FORM_LAYOUT_PRESETS",
    "FormLayout",
    "InboundMessage",
    "NOTICE_TITLE",
    "PublishError",
    "RelayError",
    "RelayGateway",
    "RelayOutcome",
    "RelayTransportError",
    "ThreadCreateError",
    "call_with_retry",
    "resolve_form_layout",
    "truncate_thread_name",
]
