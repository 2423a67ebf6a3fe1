from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

STRUCTURAL_FILES: tuple[str, ...] = (
    "config.json",
    "tokenizer_config.json",
    "tokenizer.json",
)


class Variant(str, Enum):
    FULL = "model.onnx"
    BNB4 = "model_bnb4.onnx"
    FP16 = "model_fp16.onnx"
    INT8 = "model_int8.onnx"
    Q4 = "model_q4.onnx"
    Q4F16 = "model_q4f16.onnx"
    QUANTIZED = "model_quantized.onnx"
    UINT8 = "model_uint8.onnx"

    @property
    def label(self) -> str:
        return VARIANT_LABELS[self]


VARIANT_LABELS: dict[Variant, str] = {
    Variant.FULL: "Full precision baseline",
    Variant.BNB4: "4-bit quant using BitsAndBytes",
    Variant.FP16: "Half precision",
    Variant.INT8: "INT8 quantized",
    Variant.Q4: "4-bit quantized",
    Variant.Q4F16: "Mixed 4-bit with fp16",
    Variant.QUANTIZED: "Generic quantized",
    Variant.UINT8: "Unsigned INT8 quantized",
}


class Preset(BaseModel):
    """A catalog entry. ``asset_path`` is ``onnx_path`` on the wire."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    model: str
    asset_path: str = Field(alias="onnx_path")
    options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("options", mode="before")
    @classmethod
    def _none_options(cls, value: Any) -> Any:
        return {} if value is None else value

    def variant_asset_path(self, variant: str) -> str:
        """Asset path template the inference engine loads for ``variant``."""
        base = self.asset_path.rstrip("/")
        return f"{base}/{variant}" if base else variant


def required_local_files(variant: str) -> tuple[str, ...]:
    return (variant, *STRUCTURAL_FILES)
