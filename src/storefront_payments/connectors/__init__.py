"""Payment gateway connectors."""

from .base import (
    GatewayClientBase,
    GatewayForm,
    CallbackPayload,
    VerificationResult,
    StatusResult,
    FORM_FIELD_NAMES,
    COMPLETE_STATUS,
)
from .signing import (
    DEFAULT_SIGNED_FIELD_NAMES,
    build_signature_message,
    generate_signature,
    sign_fields,
    verify_signature,
)
from .esewa_connector import EsewaConnector
from .simulator_connector import (
    SimulatorConnector,
    SimulatorConfig,
    SimulatorScenario,
    SimulatedTransaction,
)

__all__ = [
    # Base classes and models
    "GatewayClientBase",
    "GatewayForm",
    "CallbackPayload",
    "VerificationResult",
    "StatusResult",
    "FORM_FIELD_NAMES",
    "COMPLETE_STATUS",
    # Signing
    "DEFAULT_SIGNED_FIELD_NAMES",
    "build_signature_message",
    "generate_signature",
    "sign_fields",
    "verify_signature",
    # Connectors
    "EsewaConnector",
    "SimulatorConnector",
    "SimulatorConfig",
    "SimulatorScenario",
    "SimulatedTransaction",
]
