from .types import (
    BUCKET_ORDER,
    BlendInput,
    BlendOutput,
    BlendStats,
    Bucket,
    InputTrack,
    InputUser,
    OutputTrack,
)
from .config import BlendParams, default_blend_params
from .pipeline import DEFAULT_TARGET_SIZE, generate_blend

__all__ = [
    "BUCKET_ORDER",
    "BlendInput",
    "BlendOutput",
    "BlendStats",
    "Bucket",
    "InputTrack",
    "InputUser",
    "OutputTrack",
    "BlendParams",
    "default_blend_params",
    "DEFAULT_TARGET_SIZE",
    "generate_blend",
]
