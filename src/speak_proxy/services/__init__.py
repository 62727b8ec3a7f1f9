"""
speak-proxy Services Layer.

    - normalizer.py: /speak parameter validation, defaults and clamping
    - rate_limiter.py: per-client fixed-window quota
    - gateway.py: outbound Yandex SpeechKit call
    - request_log.py: one access log line per request
    - speak_service.py: SpeakService, the pipeline tying them together
"""
from .gateway import AudioPayload, GatewayError, SynthesisGateway
from .normalizer import BadRequest, SynthesisRequest, normalize
from .rate_limiter import RateLimitDecision, RateLimiter, client_identity
from .request_log import RequestLogEntry, RequestLogger, RequestStatus
from .speak_service import RequestStage, SpeakResult, SpeakService

__all__ = [
    "SpeakService",
    "SpeakResult",
    "RequestStage",
    "SynthesisRequest",
    "BadRequest",
    "normalize",
    "RateLimiter",
    "RateLimitDecision",
    "client_identity",
    "SynthesisGateway",
    "AudioPayload",
    "GatewayError",
    "RequestLogEntry",
    "RequestLogger",
    "RequestStatus",
]
